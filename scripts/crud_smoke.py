#!/usr/bin/env python
"""
MySQL 데이터 접근 계층 CRUD 스모크 스크립트

testtable(id, name, sort)에 대해 조회 → 건수 → 삽입 → 수정 → 삭제 → 재조회를
순서대로 실행하고 결과를 로깅합니다. MYSQL_* 환경 변수로 접속합니다.

    CREATE TABLE testtable (
        id INT AUTO_INCREMENT PRIMARY KEY,
        name VARCHAR(255),
        sort INT DEFAULT 0
    );
"""

import asyncio

import aiomysql
import structlog

from diary_api.config.settings import DatabaseConfig, LoggingConfig, load_env_files
from diary_api.core.mysql_core import MySQLTable
from diary_api.core.pool import MySQLPoolManager
from diary_api.utils.logging import configure_logging

logger = structlog.get_logger(__name__)


class TestTableModel(MySQLTable):
    """testtable (기본 키 id, 정렬 컬럼 sort)"""

    def __init__(self):
        super().__init__("testtable", "id", "sort")


async def run(pool: aiomysql.Pool) -> None:
    model = TestTableModel()
    conn = await TestTableModel.open_connection(pool)

    try:
        rows = await model.query(conn, "SELECT * FROM testtable")
        logger.info("전체 조회", rows=rows)

        count = await model.count(conn)
        logger.info("전체 건수", count=count)

        new_id = await model.insert(conn, {"name": "ccca"})
        logger.info("삽입", id=new_id)

        updated = await model.update_by_filter(conn, {"id": new_id}, {"name": "eee"})
        logger.info("수정", id=new_id, updated=updated)

        deleted = await model.delete_by_filter(conn, {"id": new_id})
        logger.info("삭제", id=new_id, deleted=deleted)

        rows = await model.find_many(conn)
        logger.info("재조회", rows=rows)
    finally:
        await TestTableModel.close_connection(pool, conn)


async def main():
    load_env_files()
    configure_logging(LoggingConfig.from_env().log_level)

    pool_manager = MySQLPoolManager(DatabaseConfig.from_env())
    await pool_manager.initialize()
    try:
        await run(pool_manager.pool)
    finally:
        await pool_manager.close()


if __name__ == "__main__":
    asyncio.run(main())
