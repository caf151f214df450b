"""
서비스 설정 클래스

다이어리 API의 모든 설정을 환경 변수에서 읽어 관리합니다.
컴포넌트별 설정(MySQL, Redis, 로깅)을 데이터클래스로 분리하고,
각 클래스는 from_env()로 환경 변수 오버라이드를 지원합니다.

주요 기능:
    - 배포 환경(APP_ENV) 기반 캐시 키 네임스페이스
    - MySQL 연결 및 풀 크기 설정
    - Redis 캐시 연결 및 기본 TTL 설정
    - 설정 유효성 검증
    - .env 파일 로드 (APP_ENV=production이면 .env.production으로 덮어씀)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any
import structlog
from dotenv import load_dotenv

logger = structlog.get_logger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def load_env_files(env_dir: Optional[str | Path] = None) -> None:
    """
    .env 파일을 환경 변수로 로드

    .env의 값은 이미 설정된 프로세스 환경 변수를 덮어쓰지 않습니다.
    APP_ENV가 production이면 .env.production을 이어서 로드하며, 이 파일의
    값은 기존 값을 덮어씁니다. 파일이 없으면 건너뜁니다.

    Args:
        env_dir: .env 파일이 있는 디렉터리 (기본값: 현재 작업 디렉터리)
    """
    base = Path(env_dir) if env_dir is not None else Path.cwd()

    load_dotenv(base / ".env", override=False)
    if os.getenv("APP_ENV") == "production":
        load_dotenv(base / ".env.production", override=True)


@dataclass
class DatabaseConfig:
    """
    MySQL 설정

    aiomysql 연결 풀 생성에 필요한 접속 정보와 풀 크기입니다.
    """

    host: str = "localhost"
    port: int = 3306
    name: str = "diary"
    user: str = "root"
    password: str = ""
    pool_count: int = 10
    min_size: int = 1
    charset: str = "utf8mb4"
    pool_recycle: int = 3600

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """환경 변수에서 MySQL 설정 로드"""
        return cls(
            host=os.getenv("MYSQL_HOST", "localhost"),
            port=int(os.getenv("MYSQL_PORT", "3306")),
            name=os.getenv("MYSQL_NAME", "diary"),
            user=os.getenv("MYSQL_USER", "root"),
            password=os.getenv("MYSQL_PASSWORD", ""),
            pool_count=int(os.getenv("MYSQL_POOLCOUNT", "10")),
            min_size=int(os.getenv("MYSQL_POOL_MIN", "1")),
            charset=os.getenv("MYSQL_CHARSET", "utf8mb4"),
            pool_recycle=int(os.getenv("MYSQL_POOL_RECYCLE_SEC", "3600")),
        )


@dataclass
class RedisConfig:
    """
    Redis 캐시 설정

    캐시가 비활성화되어 있거나 연결에 실패하면 서비스는 캐시 없이 동작합니다.
    """

    enabled: bool = True
    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    db: int = 0
    expire_ttl: int = 60  # 기본 캐시 만료 시간 (초)
    max_ttl: int = 3600

    @classmethod
    def from_env(cls) -> "RedisConfig":
        """환경 변수에서 Redis 설정 로드"""
        return cls(
            enabled=_env_bool("REDIS_ENABLED", "true"),
            host=os.getenv("REDIS_HOST", "localhost"),
            port=int(os.getenv("REDIS_PORT", "6379")),
            password=os.getenv("REDIS_PASSWD") or None,
            db=int(os.getenv("REDIS_DB", "0")),
            expire_ttl=int(os.getenv("REDIS_EXPIRETTL_SEC", "60")),
            max_ttl=int(os.getenv("REDIS_MAX_TTL_SEC", "3600")),
        )

    @property
    def url(self) -> str:
        """redis.from_url에 넘길 연결 URL"""
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


@dataclass
class LoggingConfig:
    """
    로깅 설정

    structlog와 표준 logging 레벨, 요청 로깅 여부를 제어합니다.
    """

    log_level: str = "INFO"
    log_requests: bool = True

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        """환경 변수에서 로깅 설정 로드"""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_requests=_env_bool("LOG_REQUESTS", "true"),
        )


@dataclass
class AppConfig:
    """
    통합 서비스 설정

    사용 예시:
        config = AppConfig.from_env()
        ok, errors = config.validate()
    """

    env: str = "development"
    title: str = "diary-api"
    host: str = "0.0.0.0"
    port: int = 3000
    cors_allow_origins: list[str] = field(default_factory=lambda: ["*"])

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, env_dir: Optional[str | Path] = None) -> "AppConfig":
        """
        환경 변수에서 설정 로드

        먼저 load_env_files()로 .env 파일을 반영한 뒤 환경 변수를 읽습니다.

        Args:
            env_dir: .env 파일 디렉터리 (기본값: 현재 작업 디렉터리)

        Returns:
            환경 변수 기반 AppConfig 인스턴스
        """
        load_env_files(env_dir)

        config = cls(
            env=os.getenv("APP_ENV", "development"),
            title=os.getenv("SERVICE_TITLE", "diary-api"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            cors_allow_origins=[
                origin.strip()
                for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")
                if origin.strip()
            ],
            database=DatabaseConfig.from_env(),
            redis=RedisConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )

        logger.info(
            "환경 변수 기반 설정 로드 완료",
            env=config.env,
            port=config.port,
            cache_enabled=config.redis.enabled,
        )
        return config

    def validate(self) -> tuple[bool, list[str]]:
        """
        설정 유효성 검증

        Returns:
            (유효 여부, 오류 메시지 목록)
        """
        errors = []

        if not (1 <= self.port <= 65535):
            errors.append(f"잘못된 포트 번호: {self.port}")

        if self.database.pool_count < 1:
            errors.append(f"MySQL 풀 크기는 1 이상이어야 함: {self.database.pool_count}")
        elif self.database.min_size > self.database.pool_count:
            errors.append("MySQL 최소 풀 크기가 최대 풀 크기보다 큼")

        if not self.database.host:
            errors.append("MYSQL_HOST가 설정되지 않음")

        if self.redis.enabled:
            if not self.redis.host:
                errors.append("캐싱이 활성화되었지만 REDIS_HOST가 설정되지 않음")
            if self.redis.expire_ttl > self.redis.max_ttl:
                errors.append(
                    f"기본 TTL({self.redis.expire_ttl})이 최대 TTL({self.redis.max_ttl})보다 큼"
                )

        if not self.env:
            errors.append("APP_ENV가 비어있음")

        return len(errors) == 0, errors

    def to_dict(self) -> Dict[str, Any]:
        """설정을 딕셔너리로 변환 (비밀번호 제외)"""
        database = dict(self.database.__dict__)
        database["password"] = "***" if self.database.password else ""
        redis = dict(self.redis.__dict__)
        redis["password"] = "***" if self.redis.password else None
        return {
            "env": self.env,
            "title": self.title,
            "host": self.host,
            "port": self.port,
            "cors_allow_origins": self.cors_allow_origins,
            "database": database,
            "redis": redis,
            "logging": self.logging.__dict__,
        }
