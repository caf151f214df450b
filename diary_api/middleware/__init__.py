"""
다이어리 API HTTP 미들웨어

LoggingMiddleware: 구조화된 요청/응답 로깅
    - 요청 ID 생성 및 X-Request-ID 응답 헤더
    - 처리 시간 측정 및 느린 요청 경고
"""

from .logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
