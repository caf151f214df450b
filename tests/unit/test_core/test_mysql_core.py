"""Unit tests for the table-bound MySQL data-access layer."""

from datetime import datetime
from unittest.mock import AsyncMock, Mock

import aiomysql
import pytest

from diary_api.cache import RedisCache
from diary_api.core.mysql_core import ExecuteResult, MySQLTable
from diary_api.exceptions import ExecutionError, ValidationError


@pytest.fixture
def diaries():
    """Table binding for diaries(id)."""
    return MySQLTable("diaries", "id")


class TestMySQLTableBinding:
    """Test table binding attributes."""

    def test_binding_attributes(self, diaries):
        assert diaries.table_name == "diaries"
        assert diaries.primary_field == "id"
        assert diaries.sort_key == ""
        assert diaries.cache is None


@pytest.mark.asyncio
class TestMySQLTableDefaultOrder:
    """Test default ordering when no sort is given."""

    @pytest.fixture
    def table(self):
        return MySQLTable("testtable", "id", "sort")

    async def test_explicit_sort_key_kept_as_binding(self, table):
        assert table.sort_key == "sort"

    async def test_find_many_orders_by_primary_field(self, table, fake_connection):
        conn = fake_connection([[]])

        await table.find_many(conn)

        assert conn.executed == [("SELECT * FROM `testtable` ORDER BY `id` DESC", None)]

    async def test_all_orders_by_primary_field(self, table, fake_connection):
        conn = fake_connection([[]])

        await table.all(conn)

        assert conn.executed[0][0] == "SELECT * FROM `testtable` ORDER BY `id` DESC"

    async def test_find_page_orders_by_primary_field(self, table, fake_connection):
        conn = fake_connection([[], [{"CNT": 0}]])

        await table.find_page(conn)

        assert conn.executed[0][0] == (
            "SELECT * FROM `testtable` ORDER BY `id` DESC LIMIT %s OFFSET %s"
        )

    async def test_explicit_sort_overrides_default(self, table, fake_connection):
        conn = fake_connection([[]])

        await table.find_many(conn, order_by={"sort": -1})

        assert conn.executed[0][0] == "SELECT * FROM `testtable` ORDER BY `sort` DESC"


@pytest.mark.asyncio
class TestMySQLTableQuery:
    """Test raw statement execution."""

    async def test_none_connection_returns_none(self, diaries):
        assert await diaries.query(None, "SELECT 1") is None

    async def test_result_set_returns_rows(self, diaries, fake_connection):
        conn = fake_connection([[{"id": 1}]])

        rows = await diaries.query(conn, "SELECT * FROM diaries")

        assert rows == [{"id": 1}]
        assert conn.executed == [("SELECT * FROM diaries", None)]
        assert conn.cursor_classes == [aiomysql.DictCursor]

    async def test_statement_returns_execute_result(self, diaries, fake_connection):
        conn = fake_connection([(2, None)])

        result = await diaries.query(conn, "DELETE FROM diaries WHERE id > %s", [3])

        assert result == ExecuteResult(affected_rows=2, last_insert_id=None)
        assert conn.executed == [("DELETE FROM diaries WHERE id > %s", [3])]

    async def test_driver_error_wrapped(self, diaries, fake_connection):
        conn = fake_connection([aiomysql.ProgrammingError(1064, "syntax error")])

        with pytest.raises(ExecutionError) as exc_info:
            await diaries.query(conn, "SELEC 1")

        assert exc_info.value.data["operation"] == "query"
        assert exc_info.value.data["statement"] == "SELEC 1"

    async def test_call_procedure(self, diaries, fake_connection):
        conn = fake_connection([[{"total": 3}]])

        rows = await diaries.call_procedure(conn, "diary_stats", [2024])

        assert rows == [{"total": 3}]
        assert conn.executed == [("CALL `diary_stats`(%s)", [2024])]

    async def test_transaction_passthrough(self, diaries, fake_connection):
        conn = fake_connection([(0, None), (0, None), (0, None)])

        assert await diaries.start_transaction(conn) is True
        assert await diaries.commit_transaction(conn) is True
        assert await diaries.rollback_transaction(conn) is True
        assert [sql for sql, _ in conn.executed] == [
            "START TRANSACTION",
            "COMMIT",
            "ROLLBACK",
        ]

    async def test_transaction_failure_raises(self, diaries, fake_connection):
        conn = fake_connection([aiomysql.OperationalError(2006, "gone away")])

        with pytest.raises(ExecutionError):
            await diaries.start_transaction(conn)


@pytest.mark.asyncio
class TestMySQLTableRead:
    """Test read operations."""

    async def test_all_orders_by_primary_key_descending(self, diaries, fake_connection):
        conn = fake_connection([[{"id": 2}, {"id": 1}]])

        rows = await diaries.all(conn)

        assert rows == [{"id": 2}, {"id": 1}]
        assert conn.executed == [("SELECT * FROM `diaries` ORDER BY `id` DESC", None)]

    async def test_all_empty_returns_none(self, diaries, fake_connection):
        assert await diaries.all(fake_connection([[]])) is None

    async def test_find_one(self, diaries, fake_connection):
        conn = fake_connection([[{"id": 5, "title": "t"}]])

        row = await diaries.find_one(conn, {"id": 5})

        assert row == {"id": 5, "title": "t"}
        assert conn.executed == [("SELECT * FROM `diaries` WHERE `id` = %s LIMIT 1", [5])]

    async def test_find_one_missing_returns_none(self, diaries, fake_connection):
        assert await diaries.find_one(fake_connection([[]]), {"id": 999}) is None

    async def test_find_one_rejects_non_mapping(self, diaries, fake_connection):
        conn = fake_connection()

        with pytest.raises(ValidationError):
            await diaries.find_one(conn, "id = 5")
        assert conn.executed == []

    async def test_find_many_with_like(self, diaries, fake_connection):
        conn = fake_connection([[{"id": 3, "title": "a day"}]])

        rows = await diaries.find_many(
            conn, {"title": "day", "id": None}, like_fields=["title"], order_by={"id": 1}
        )

        assert rows == [{"id": 3, "title": "a day"}]
        assert conn.executed == [
            (
                "SELECT * FROM `diaries` WHERE `title` LIKE %s ORDER BY `id` ASC",
                ["%day%"],
            )
        ]

    async def test_find_many_empty_returns_list(self, diaries, fake_connection):
        assert await diaries.find_many(fake_connection([[]]), {"id": 1}) == []

    async def test_count(self, diaries, fake_connection):
        conn = fake_connection([[{"CNT": 7}]])

        assert await diaries.count(conn) == 7
        assert conn.executed == [("SELECT COUNT(`id`) AS CNT FROM `diaries`", None)]

    async def test_find_page(self, diaries, fake_connection):
        conn = fake_connection([[{"id": 8}, {"id": 7}], [{"CNT": 7}]])

        page = await diaries.find_page(
            conn, {"title": "day"}, like_fields=["title"], page=2, page_size=2
        )

        assert page == {
            "documents": [{"id": 8}, {"id": 7}],
            "page": 2,
            "page_size": 2,
            "total_count": 7,
            "total_pages": 4,
        }
        assert conn.executed == [
            (
                "SELECT * FROM `diaries` WHERE `title` LIKE %s "
                "ORDER BY `id` DESC LIMIT %s OFFSET %s",
                ["%day%", 2, 2],
            ),
            ("SELECT COUNT(`id`) AS CNT FROM `diaries` WHERE `title` LIKE %s", ["%day%"]),
        ]

    async def test_find_page_empty_table(self, diaries, fake_connection):
        page = await diaries.find_page(fake_connection([[], [{"CNT": 0}]]))

        assert page["documents"] == []
        assert page["total_count"] == 0
        assert page["total_pages"] == 0

    async def test_find_page_total_matches_count(self, diaries, fake_connection):
        conn = fake_connection([[{"id": 3}], [{"CNT": 3}], [{"CNT": 3}]])
        filter = {"title": "day"}

        page = await diaries.find_page(conn, filter, like_fields=["title"], page_size=1)
        total = await diaries.count(conn, filter, like_fields=["title"])

        assert page["total_count"] == total == 3
        page_count_statement, count_statement = conn.executed[1], conn.executed[2]
        assert page_count_statement == count_statement

    @pytest.mark.parametrize("page, page_size", [(0, 10), (-1, 10), (1, 0)])
    async def test_find_page_rejects_invalid_paging(
        self, diaries, fake_connection, page, page_size
    ):
        conn = fake_connection()

        with pytest.raises(ValidationError):
            await diaries.find_page(conn, page=page, page_size=page_size)
        assert conn.executed == []


@pytest.mark.asyncio
class TestMySQLTableWrite:
    """Test write operations."""

    async def test_insert_returns_generated_id(self, diaries, fake_connection):
        conn = fake_connection([(1, 42)])

        new_id = await diaries.insert(conn, {"title": "t", "content": "c"})

        assert new_id == 42
        assert conn.executed == [
            ("INSERT INTO `diaries` (`title`, `content`) VALUES (%s, %s)", ["t", "c"])
        ]

    async def test_insert_without_connection_returns_none(self, diaries):
        assert await diaries.insert(None, {"title": "t"}) is None

    async def test_insert_rejects_empty_data(self, diaries, fake_connection):
        with pytest.raises(ValidationError):
            await diaries.insert(fake_connection(), {})

    async def test_update_reports_affected_rows(self, diaries, fake_connection):
        conn = fake_connection([(1, 0), (0, 0)])

        assert await diaries.update_by_filter(conn, {"id": 5}, {"title": "x"}) is True
        assert await diaries.update_by_filter(conn, {"id": 6}, {"title": "x"}) is False
        assert conn.executed[0] == (
            "UPDATE `diaries` SET `title` = %s WHERE `id` = %s",
            ["x", 5],
        )

    async def test_update_rejects_empty_filter(self, diaries, fake_connection):
        conn = fake_connection()

        with pytest.raises(ValidationError):
            await diaries.update_by_filter(conn, {}, {"title": "x"})
        assert conn.executed == []

    async def test_delete(self, diaries, fake_connection):
        conn = fake_connection([(1, 0), (0, 0)])

        assert await diaries.delete_by_filter(conn, {"id": 5}) is True
        assert await diaries.delete_by_filter(conn, {"id": 5}) is False

    async def test_upsert(self, diaries, fake_connection):
        conn = fake_connection([(2, 5)])

        assert await diaries.upsert(conn, {"id": 5}, {"id": 5, "title": "t"}) is True
        sql, values = conn.executed[0]
        assert "ON DUPLICATE KEY UPDATE" in sql
        assert values == [5, "t"]

    async def test_duplicate_key_wrapped(self, diaries, fake_connection):
        conn = fake_connection([aiomysql.IntegrityError(1062, "Duplicate entry")])

        with pytest.raises(ExecutionError, match="Duplicate entry") as exc_info:
            await diaries.insert(conn, {"id": 1, "title": "t"})

        assert exc_info.value.data["operation"] == "insert"


@pytest.mark.asyncio
class TestMySQLTableCache:
    """Test cache-aside read variants."""

    async def test_without_cache_queries_directly(self, diaries, fake_connection):
        conn = fake_connection([[{"CNT": 3}]])

        assert await diaries.count_from_cache(conn) == 3

    async def test_cached_read_uses_normalized_key(self, fake_connection):
        cache = Mock(spec=RedisCache)
        cache.get_or_set = AsyncMock(return_value={"id": 1})
        table = MySQLTable("diaries", "id", cache=cache)

        row = await table.find_one_from_cache(fake_connection(), {"title": "t", "id": 1})

        assert row == {"id": 1}
        key, fetch, ttl = cache.get_or_set.call_args.args
        assert key == 'mysql__diaries__one__{"id":1,"title":"t"}__[]__*'
        assert ttl == 60

    async def test_cache_miss_runs_query_once(self, redis_cache, mock_redis_client, fake_connection):
        table = MySQLTable("diaries", "id", cache=redis_cache)
        conn = fake_connection([[{"id": 2}, {"id": 1}]])

        rows = await table.find_many_from_cache(conn, ttl=30)

        assert rows == [{"id": 2}, {"id": 1}]
        assert len(conn.executed) == 1
        mock_redis_client.set.assert_called_once()
        assert mock_redis_client.set.call_args.kwargs == {"ex": 30}

    async def test_cache_hit_skips_query(self, redis_cache, mock_redis_client, fake_connection):
        mock_redis_client.get.return_value = '[{"id": 1}]'
        table = MySQLTable("diaries", "id", cache=redis_cache)
        conn = fake_connection()

        rows = await table.all_from_cache(conn)

        assert rows == [{"id": 1}]
        assert conn.executed == []

    async def test_cached_page_key_includes_paging(self, fake_connection):
        cache = Mock(spec=RedisCache)
        cache.get_or_set = AsyncMock(return_value={"documents": []})
        table = MySQLTable("diaries", "id", cache=cache)

        await table.find_page_from_cache(
            fake_connection(), {"title": "d"}, ["title"], page=3, page_size=10
        )

        key = cache.get_or_set.call_args.args[0]
        assert key == 'mysql__diaries__page__{"title":"d"}__["title"]__*__3__10__'

    async def test_cached_variant_rejects_bad_filter(self, diaries, fake_connection):
        with pytest.raises(ValidationError):
            await diaries.find_many_from_cache(fake_connection(), {"id": [1, 2]})

    @pytest.mark.parametrize(
        "like_fields", [iter(["title"]), (field for field in ["title"])]
    )
    async def test_cached_variants_accept_one_shot_like_fields(
        self, redis_cache, fake_connection, like_fields
    ):
        table = MySQLTable("diaries", "id", cache=redis_cache)
        conn = fake_connection([[{"id": 3, "title": "a day"}]])

        rows = await table.find_many_from_cache(conn, {"title": "day"}, like_fields=like_fields)

        assert rows == [{"id": 3, "title": "a day"}]
        assert conn.executed == [
            ("SELECT * FROM `diaries` WHERE `title` LIKE %s ORDER BY `id` DESC", ["%day%"])
        ]

    async def test_cached_count_accepts_generator_like_fields(self, redis_cache, fake_connection):
        table = MySQLTable("diaries", "id", cache=redis_cache)
        conn = fake_connection([[{"CNT": 2}]])

        await table.count_from_cache(conn, {"title": "day"}, like_fields=(f for f in ["title"]))

        assert conn.executed[0][1] == ["%day%"]

    async def test_cached_page_same_result_on_hit_and_miss(
        self, redis_cache, mock_redis_client, fake_connection
    ):
        stored = {}

        async def fake_get(key):
            return stored.get(key)

        async def fake_set(key, value, ex=None):
            stored[key] = value
            return True

        mock_redis_client.get.side_effect = fake_get
        mock_redis_client.set.side_effect = fake_set
        table = MySQLTable("diaries", "id", cache=redis_cache)
        conn = fake_connection(
            [[{"id": 1, "createdAt": datetime(2024, 1, 1, 9, 0)}], [{"CNT": 1}]]
        )

        first = await table.find_page_from_cache(conn)
        second = await table.find_page_from_cache(conn)

        assert first == second
        assert first["documents"] == [{"id": 1, "createdAt": "2024-01-01T09:00:00"}]
        assert len(conn.executed) == 2
