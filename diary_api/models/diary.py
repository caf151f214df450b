"""
다이어리 테이블 바인딩과 요청 모델
"""

from typing import Optional

import aiomysql
from pydantic import BaseModel

from diary_api.core.mysql_core import MySQLTable

DIARIES_DDL = """
CREATE TABLE IF NOT EXISTS `diaries` (
    `id` INT AUTO_INCREMENT PRIMARY KEY,
    `title` VARCHAR(255) NOT NULL,
    `content` TEXT NOT NULL,
    `createdAt` TIMESTAMP DEFAULT CURRENT_TIMESTAMP
)
"""


class DiaryModel(MySQLTable):
    """diaries 테이블 (기본 키 id, 기본 정렬 id 내림차순)"""

    def __init__(self, cache=None):
        super().__init__("diaries", "id", cache=cache)

    async def create_table(self, conn: aiomysql.Connection) -> None:
        """테이블이 없으면 생성"""
        await self.query(conn, DIARIES_DDL)


class DiaryIn(BaseModel):
    """
    POST/PUT 요청 본문

    필수 여부는 핸들러가 검사하여 400 메시지로 응답하므로 모델에서는
    두 필드 모두 선택적으로 받습니다.
    """

    title: Optional[str] = None
    content: Optional[str] = None

    def is_complete(self) -> bool:
        return bool(self.title) and bool(self.content)


class DiaryCreated(BaseModel):
    """POST 성공 응답"""

    id: Optional[int]
    title: str
    content: str
