"""
테이블 바인딩 모델과 HTTP 요청/응답 모델
"""

from .diary import DIARIES_DDL, DiaryCreated, DiaryIn, DiaryModel

__all__ = ["DIARIES_DDL", "DiaryCreated", "DiaryIn", "DiaryModel"]
