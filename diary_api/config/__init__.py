"""
설정 관리 모듈

환경 변수 기반 서비스 설정을 제공합니다.
"""

from .settings import AppConfig, DatabaseConfig, LoggingConfig, RedisConfig, load_env_files

__all__ = ["AppConfig", "DatabaseConfig", "LoggingConfig", "RedisConfig", "load_env_files"]
