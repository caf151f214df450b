"""공통 유틸리티 (로깅 설정)"""

from .logging import configure_logging

__all__ = ["configure_logging"]
