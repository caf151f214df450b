"""
MySQL 테이블 바인딩 데이터 접근 계층

이 모듈은 하나의 테이블에 바인딩된 데이터 접근 객체를 제공합니다.
구조화된 필터/정렬/페이징 입력을 query_builder로 파라미터화된 SQL로 컴파일하고,
호출자가 제공한 커넥션 위에서 실행합니다.

주요 기능:
    - 조회: all, find_one, find_many, count, find_page
    - 쓰기: insert, update_by_filter, delete_by_filter, upsert
    - 원시 구문 실행 및 저장 프로시저 호출
    - 트랜잭션 제어 패스스루 (START TRANSACTION / COMMIT / ROLLBACK)
    - Redis 캐시 어사이드 조회 변형 (*_from_cache)

리소스 정책:
    - 커넥션은 호출자가 풀에서 획득하고 반환합니다. 이 계층은 커넥션을 닫지 않습니다.
    - "행 없음"은 falsy 센티널 None으로 정규화됩니다 (find_many는 빈 리스트).

사용 예시:
    ```python
    diaries = MySQLTable("diaries", "id")

    async with pool_manager.acquire() as conn:
        diary_id = await diaries.insert(conn, {"title": "t", "content": "c"})
        diary = await diaries.find_one(conn, {"id": diary_id})
    ```
"""

import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

import aiomysql
import structlog

from diary_api.cache import RedisCache
from diary_api.core.query_builder import (
    Filter,
    Predicate,
    SortSpec,
    build_count,
    build_delete,
    build_insert,
    build_order_by_clause,
    build_select,
    build_update,
    build_upsert,
    build_where_clause,
    ensure_flat_mapping,
    escape_identifier,
)
from diary_api.exceptions import ErrorHandler, ExecutionError, ValidationError

logger = structlog.get_logger(__name__)

type Row = dict[str, Any]

# 캐시 조회 변형의 기본 만료 시간 (초)
DEFAULT_CACHE_TTL = 60


@dataclass(frozen=True)
class ExecuteResult:
    """결과 집합이 없는 구문(INSERT/UPDATE/DELETE 등)의 실행 메타데이터"""

    affected_rows: int
    last_insert_id: Optional[int] = None


class MySQLTable:
    """
    하나의 테이블에 바인딩된 데이터 접근 객체

    테이블 바인딩(table_name, primary_field, sort_key)은 인스턴스 생성 후 변경되지
    않습니다. 정렬이 지정되지 않은 조회는 항상 primary_field 내림차순으로 정렬됩니다.

    Attributes:
        table_name (str): 대상 테이블 이름
        primary_field (str): 기본 키 컬럼
        sort_key (str): 테이블의 정렬용 컬럼 이름 (바인딩 정보로만 보관, 없으면 빈 문자열)
        cache (RedisCache | None): 캐시 조회 변형이 사용할 캐시
    """

    def __init__(
        self,
        table_name: str,
        primary_field: str,
        sort_key: str = "",
        cache: Optional[RedisCache] = None,
    ):
        self._table_name = table_name
        self._primary_field = primary_field
        self._sort_key = sort_key
        self.cache = cache

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def primary_field(self) -> str:
        return self._primary_field

    @property
    def sort_key(self) -> str:
        return self._sort_key

    def bind_cache(self, cache: Optional[RedisCache]) -> None:
        """캐시 조회 변형이 사용할 캐시 지정 (None이면 캐시 없이 직접 조회)"""
        self.cache = cache

    # === 커넥션 및 트랜잭션 ===

    @staticmethod
    async def open_connection(pool: aiomysql.Pool) -> aiomysql.Connection:
        """
        풀에서 커넥션 획득

        반드시 close_connection()으로 반환해야 합니다. 가능하면
        MySQLPoolManager.acquire() 컨텍스트를 사용합니다.

        Raises:
            ExecutionError: 커넥션 획득 실패
        """
        try:
            return await pool.acquire()
        except aiomysql.MySQLError as e:
            logger.error("mysql core error", operation="open_connection", error=str(e))
            raise ExecutionError(str(e), operation="open_connection") from e

    @staticmethod
    async def close_connection(
        pool: aiomysql.Pool, connection: Optional[aiomysql.Connection]
    ) -> None:
        """커넥션을 풀로 반환"""
        if connection:
            pool.release(connection)

    async def start_transaction(self, conn: aiomysql.Connection) -> bool:
        await self._execute(conn, "START TRANSACTION", operation="start_transaction")
        return True

    async def commit_transaction(self, conn: aiomysql.Connection) -> bool:
        await self._execute(conn, "COMMIT", operation="commit_transaction")
        return True

    async def rollback_transaction(self, conn: aiomysql.Connection) -> bool:
        await self._execute(conn, "ROLLBACK", operation="rollback_transaction")
        return True

    # === 구문 실행 ===

    async def _execute(
        self,
        conn: Optional[aiomysql.Connection],
        sql: str,
        values: Sequence[Any] = (),
        operation: str = "query",
    ) -> Any:
        """
        구문 실행 공통 경로

        Returns:
            결과 집합이 있는 구문은 행 리스트, 없는 구문은 ExecuteResult,
            커넥션이 None이면 None

        Raises:
            ExecutionError: 드라이버가 오류를 보고한 경우
        """
        if conn is None:
            return None

        logger.debug(
            "mysql query",
            table=self._table_name,
            operation=operation,
            sql=sql,
            values=list(values),
        )

        try:
            async with conn.cursor(aiomysql.DictCursor) as cursor:
                # 바인딩 값이 없으면 None을 넘겨 SQL 텍스트의 %가 포맷팅되지 않도록 함
                await cursor.execute(sql, list(values) if values else None)
                if cursor.description is not None:
                    return list(await cursor.fetchall())
                return ExecuteResult(
                    affected_rows=cursor.rowcount,
                    last_insert_id=cursor.lastrowid,
                )
        except aiomysql.MySQLError as e:
            logger.error(
                "mysql core error",
                **ErrorHandler.create_error_context(
                    e, operation=operation, table=self._table_name
                ),
            )
            raise ExecutionError(str(e), statement=sql, operation=operation) from e

    async def query(
        self,
        conn: Optional[aiomysql.Connection],
        sql: str,
        values: Sequence[Any] = (),
    ) -> Any:
        """
        원시 파라미터화 구문 실행

        플레이스홀더는 %s를 사용합니다. 커넥션이 None이면 None을 반환합니다.
        """
        return await self._execute(conn, sql, values, operation="query")

    async def call_procedure(
        self,
        conn: aiomysql.Connection,
        name: str,
        values: Sequence[Any] = (),
    ) -> list[Row]:
        """
        저장 프로시저 실행

        Args:
            name: 프로시저 이름 (이스케이프됨)
            values: 프로시저 매개변수

        Returns:
            첫 번째 결과 집합의 행들 (결과 집합이 없으면 빈 리스트)
        """
        placeholders = ", ".join(["%s"] * len(values))
        sql = f"CALL {escape_identifier(name)}({placeholders})"
        result = await self._execute(conn, sql, values, operation="call_procedure")
        return result if isinstance(result, list) else []

    # === 조회 ===

    async def all(
        self,
        conn: aiomysql.Connection,
        select: str = "*",
        order_by: SortSpec = "",
    ) -> Optional[list[Row]]:
        """
        테이블의 모든 행 조회

        Returns:
            행 리스트, 행이 하나도 없으면 None
        """
        sql = build_select(
            self._table_name,
            select=select,
            order_by=build_order_by_clause(order_by, self._primary_field),
        )
        rows = await self._execute(conn, sql, operation="all")
        return rows or None

    async def find_one(
        self,
        conn: aiomysql.Connection,
        filter: Optional[Filter] = None,
        like_fields: Iterable[str] = (),
        select: str = "*",
    ) -> Optional[Row]:
        """
        필터 조건에 맞는 첫 번째 행 조회 (LIKE 검색 지원)

        Raises:
            ValidationError: filter가 평탄한 매핑이 아닌 경우
        """
        where, values = build_where_clause(filter, like_fields)
        sql = build_select(self._table_name, select=select, where=where, limit=1)

        rows = await self._execute(conn, sql, values, operation="find_one")
        return rows[0] if rows else None

    async def find_many(
        self,
        conn: aiomysql.Connection,
        filter: Optional[Filter] = None,
        like_fields: Iterable[str] = (),
        select: str = "*",
        order_by: SortSpec = "",
    ) -> list[Row]:
        """
        필터 조건에 맞는 모든 행 조회

        빈 필터는 테이블 전체를 반환합니다. 결과가 없으면 빈 리스트입니다.
        """
        where, values = build_where_clause(filter, like_fields)
        sql = build_select(
            self._table_name,
            select=select,
            where=where,
            order_by=build_order_by_clause(order_by, self._primary_field),
        )

        rows = await self._execute(conn, sql, values, operation="find_many")
        return rows or []

    async def count(
        self,
        conn: aiomysql.Connection,
        filter: Optional[Filter] = None,
        like_fields: Iterable[str] = (),
    ) -> int:
        """필터 조건에 맞는 행 수 (없으면 0)"""
        where, values = build_where_clause(filter, like_fields)
        sql = build_count(self._table_name, where, column=self._primary_field or None)

        rows = await self._execute(conn, sql, values, operation="count")
        return int(rows[0]["CNT"]) if rows else 0

    async def find_page(
        self,
        conn: aiomysql.Connection,
        filter: Optional[Filter] = None,
        like_fields: Iterable[str] = (),
        select: str = "*",
        page: int = 1,
        page_size: int = 25,
        sort: SortSpec = None,
    ) -> dict[str, Any]:
        """
        페이지 단위 조회

        데이터 페이지와 전체 건수를 같은 필터로 두 번 조회합니다. 두 구문은
        원자적으로 묶이지 않으므로, 일관된 스냅샷이 필요하면 호출자가
        트랜잭션으로 감싸야 합니다.

        Args:
            page: 1부터 시작하는 페이지 번호
            page_size: 페이지당 행 수 (1 이상)

        Returns:
            {"documents", "page", "page_size", "total_count", "total_pages"}

        Raises:
            ValidationError: page 또는 page_size가 1보다 작은 경우
        """
        if not isinstance(page, int) or page < 1:
            raise ValidationError("Page must be an integer >= 1", field="page", value=page)
        if not isinstance(page_size, int) or page_size < 1:
            raise ValidationError(
                "Page size must be an integer >= 1", field="page_size", value=page_size
            )

        where, values = build_where_clause(filter, like_fields)
        offset = (page - 1) * page_size

        sql = build_select(
            self._table_name,
            select=select,
            where=where,
            order_by=build_order_by_clause(sort, self._primary_field),
            with_offset=True,
        )
        count_sql = build_count(
            self._table_name, where, column=self._primary_field or None
        )

        rows = await self._execute(
            conn, sql, [*values, page_size, offset], operation="find_page"
        )
        counted = await self._execute(conn, count_sql, values, operation="find_page")
        total_count = int(counted[0]["CNT"]) if counted else 0

        return {
            "documents": rows or [],
            "page": page,
            "page_size": page_size,
            "total_count": total_count,
            "total_pages": math.ceil(total_count / page_size),
        }

    # === 쓰기 ===

    async def insert(self, conn: aiomysql.Connection, data: Filter) -> Optional[int]:
        """
        새 행 삽입

        Returns:
            생성된 기본 키 값, 실행 계층이 결과를 보고하지 않으면 None

        Raises:
            ValidationError: data가 매핑이 아니거나 비어 있는 경우
        """
        sql, values = build_insert(self._table_name, data)

        result = await self._execute(conn, sql, values, operation="insert")
        if not result:
            return None
        return result.last_insert_id

    async def update_by_filter(
        self, conn: aiomysql.Connection, filter: Predicate, data: Filter
    ) -> bool:
        """
        필터 조건에 맞는 행 갱신

        Args:
            filter: 구조화된 매핑(AND 결합 동등 조건) 또는 호출자가 신뢰하는 원시 술어
            data: 갱신할 컬럼과 값

        Returns:
            bool: 한 행 이상 영향을 받았으면 True

        Raises:
            ValidationError: data가 비었거나 잘못된 경우, 사용 가능한 필터가 없는 경우
        """
        sql, values = build_update(self._table_name, filter, data)

        result = await self._execute(conn, sql, values, operation="update_by_filter")
        return bool(result) and result.affected_rows > 0

    async def delete_by_filter(self, conn: aiomysql.Connection, filter: Predicate) -> bool:
        """필터 조건에 맞는 행 삭제. 한 행 이상 삭제되면 True"""
        sql, values = build_delete(self._table_name, filter)

        result = await self._execute(conn, sql, values, operation="delete_by_filter")
        return bool(result) and result.affected_rows > 0

    async def upsert(self, conn: aiomysql.Connection, filter: Filter, data: Filter) -> bool:
        """
        삽입 또는 중복 키 시 갱신

        filter는 유니크/기본 키를 가리켜야 올바르게 동작하지만 이 계층은
        이를 검증하지 않습니다 (호출자 전제 조건).

        Returns:
            bool: 삽입 또는 갱신으로 행이 영향을 받았으면 True
        """
        sql, values = build_upsert(self._table_name, filter, data)

        result = await self._execute(conn, sql, values, operation="upsert")
        return bool(result) and result.affected_rows > 0

    # === 캐시 조회 변형 ===

    async def _from_cache(self, key: str, fetch, ttl: Optional[int]) -> Any:
        if self.cache is None:
            return await fetch()
        return await self.cache.get_or_set(key, fetch, ttl)

    async def all_from_cache(
        self,
        conn: aiomysql.Connection,
        select: str = "*",
        order_by: SortSpec = "",
        ttl: Optional[int] = DEFAULT_CACHE_TTL,
    ) -> Optional[list[Row]]:
        key = RedisCache.make_key("mysql", self._table_name, "all", select, order_by)
        return await self._from_cache(
            key, lambda: self.all(conn, select, order_by), ttl
        )

    async def find_one_from_cache(
        self,
        conn: aiomysql.Connection,
        filter: Optional[Filter] = None,
        like_fields: Iterable[str] = (),
        select: str = "*",
        ttl: Optional[int] = DEFAULT_CACHE_TTL,
    ) -> Optional[Row]:
        like_fields = list(like_fields)
        filter = ensure_flat_mapping({} if filter is None else filter, "filter")
        key = RedisCache.make_key(
            "mysql", self._table_name, "one", dict(filter), sorted(like_fields), select
        )
        return await self._from_cache(
            key, lambda: self.find_one(conn, filter, like_fields, select), ttl
        )

    async def find_many_from_cache(
        self,
        conn: aiomysql.Connection,
        filter: Optional[Filter] = None,
        like_fields: Iterable[str] = (),
        select: str = "*",
        order_by: SortSpec = "",
        ttl: Optional[int] = DEFAULT_CACHE_TTL,
    ) -> list[Row]:
        like_fields = list(like_fields)
        filter = ensure_flat_mapping({} if filter is None else filter, "filter")
        key = RedisCache.make_key(
            "mysql",
            self._table_name,
            "many",
            dict(filter),
            sorted(like_fields),
            select,
            order_by,
        )
        return await self._from_cache(
            key, lambda: self.find_many(conn, filter, like_fields, select, order_by), ttl
        )

    async def count_from_cache(
        self,
        conn: aiomysql.Connection,
        filter: Optional[Filter] = None,
        like_fields: Iterable[str] = (),
        ttl: Optional[int] = DEFAULT_CACHE_TTL,
    ) -> int:
        like_fields = list(like_fields)
        filter = ensure_flat_mapping({} if filter is None else filter, "filter")
        key = RedisCache.make_key(
            "mysql", self._table_name, "count", dict(filter), sorted(like_fields)
        )
        return await self._from_cache(
            key, lambda: self.count(conn, filter, like_fields), ttl
        )

    async def find_page_from_cache(
        self,
        conn: aiomysql.Connection,
        filter: Optional[Filter] = None,
        like_fields: Iterable[str] = (),
        select: str = "*",
        page: int = 1,
        page_size: int = 25,
        sort: SortSpec = None,
        ttl: Optional[int] = DEFAULT_CACHE_TTL,
    ) -> dict[str, Any]:
        like_fields = list(like_fields)
        filter = ensure_flat_mapping({} if filter is None else filter, "filter")
        key = RedisCache.make_key(
            "mysql",
            self._table_name,
            "page",
            dict(filter),
            sorted(like_fields),
            select,
            page,
            page_size,
            sort,
        )
        return await self._from_cache(
            key,
            lambda: self.find_page(
                conn, filter, like_fields, select, page, page_size, sort
            ),
            ttl,
        )
