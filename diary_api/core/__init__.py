"""
MySQL 데이터 접근 계층 모듈

구조화된 필터/정렬/페이징 입력을 파라미터화된 SQL로 변환하고,
풀에서 획득한 커넥션 위에서 실행하는 테이블 바인딩 CRUD 계층입니다.

구성 요소:
    query_builder: I/O 없는 순수 SQL 구문 생성기
        - Condition / SortKey 기반 WHERE, ORDER BY 컴파일
        - 식별자 백틱 이스케이프, 모든 값은 %s 바인딩

    MySQLTable: 하나의 테이블에 바인딩된 데이터 접근 객체
        - all, find_one, find_many, count, find_page
        - insert, update_by_filter, delete_by_filter, upsert
        - 원시 구문, 저장 프로시저, 트랜잭션 패스스루
        - *_from_cache 캐시 어사이드 조회 변형

    MySQLPoolManager: aiomysql 연결 풀 수명 관리
        - acquire() 컨텍스트로 작업 단위 커넥션 획득/반환

사용 예시:
    ```python
    from diary_api.core import MySQLPoolManager, MySQLTable

    pool_manager = MySQLPoolManager(config.database)
    await pool_manager.initialize()

    diaries = MySQLTable("diaries", "id")
    async with pool_manager.acquire() as conn:
        rows = await diaries.find_many(conn, {"title": "day"}, like_fields=["title"])
    ```
"""

from .mysql_core import ExecuteResult, MySQLTable
from .pool import ConnectionPoolMetrics, MySQLPoolManager

__all__ = [
    "ConnectionPoolMetrics",
    "ExecuteResult",
    "MySQLPoolManager",
    "MySQLTable",
]
