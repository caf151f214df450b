#!/usr/bin/env python
"""
diaries 테이블 초기화 스크립트

MYSQL_* 환경 변수로 접속하여 diaries 테이블이 없으면 생성합니다.
"""

import asyncio

import structlog

from diary_api.config.settings import DatabaseConfig, LoggingConfig, load_env_files
from diary_api.core.pool import MySQLPoolManager
from diary_api.models.diary import DiaryModel
from diary_api.utils.logging import configure_logging

logger = structlog.get_logger(__name__)


async def main():
    load_env_files()
    configure_logging(LoggingConfig.from_env().log_level)

    pool_manager = MySQLPoolManager(DatabaseConfig.from_env())
    await pool_manager.initialize()
    try:
        async with pool_manager.acquire() as conn:
            await DiaryModel().create_table(conn)
        logger.info("diaries 테이블 준비 완료")
    finally:
        await pool_manager.close()


if __name__ == "__main__":
    asyncio.run(main())
