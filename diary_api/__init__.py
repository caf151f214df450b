"""
다이어리 API

MySQL 동적 SQL 데이터 접근 계층과 Redis 캐시 어사이드 헬퍼 위에서 동작하는
다이어리 CRUD 서비스입니다.
"""

__version__ = "1.0.0"
