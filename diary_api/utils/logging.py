"""
structlog 설정

서비스 시작 시 한 번 호출하여 표준 logging과 structlog를 함께 구성합니다.
모든 모듈은 structlog.get_logger(__name__)로 로거를 얻습니다.
"""

import logging
import sys

import structlog


def configure_logging(level: str = "INFO") -> None:
    """
    표준 logging 레벨과 structlog 프로세서 체인 구성

    Args:
        level: 로그 레벨 이름 (DEBUG, INFO, WARNING, ERROR)
            DEBUG이면 데이터 접근 계층의 SQL과 바인딩 값이 출력됩니다.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    logging.getLogger().setLevel(log_level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
