"""Shared test fixtures and configuration."""

from contextlib import asynccontextmanager
from typing import Any, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest
import redis.asyncio as redis

from diary_api.cache import CacheConfig, RedisCache
from diary_api.config.settings import AppConfig, DatabaseConfig, LoggingConfig, RedisConfig


class FakeCursor:
    """
    aiomysql DictCursor stand-in driven by the owning connection's script.

    Each execute() consumes the next scripted result:
        - list: a result set (rows as dicts)
        - (rowcount, lastrowid) tuple: a statement without a result set
        - Exception: raised from execute()
    """

    def __init__(self, connection: "FakeConnection"):
        self._connection = connection
        self._rows: List[dict] = []
        self.description = None
        self.rowcount = -1
        self.lastrowid: Optional[int] = None

    async def execute(self, sql: str, args: Any = None) -> int:
        self._connection.executed.append((sql, args))
        result = self._connection.results.pop(0) if self._connection.results else []

        if isinstance(result, Exception):
            raise result

        if isinstance(result, list):
            self.description = (("column",),)
            self._rows = result
            self.rowcount = len(result)
            self.lastrowid = None
        else:
            self.description = None
            self._rows = []
            self.rowcount, self.lastrowid = result
        return self.rowcount

    async def fetchall(self) -> List[dict]:
        return self._rows

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


class FakeConnection:
    """aiomysql connection stand-in recording executed statements."""

    def __init__(self, results: Optional[list] = None):
        self.results = list(results or [])
        self.executed: list[tuple[str, Any]] = []
        self.cursor_classes: list = []

    def cursor(self, cursor_class=None) -> FakeCursor:
        self.cursor_classes.append(cursor_class)
        return FakeCursor(self)


@pytest.fixture
def fake_connection():
    """Factory for scripted fake MySQL connections."""
    return FakeConnection


@pytest.fixture
def mock_redis_client():
    """Mock redis.asyncio client."""
    client = AsyncMock(spec=redis.Redis)
    # explicit coroutine mocks; redis 8 command methods are not detected as async
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.expire = AsyncMock(return_value=True)
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def cache_config():
    """Cache configuration used across cache tests."""
    return CacheConfig(
        redis_url="redis://localhost:6379/0",
        default_ttl=60,
        max_ttl=3600,
        key_prefix="test",
    )


@pytest.fixture
def redis_cache(cache_config, mock_redis_client):
    """RedisCache with an injected mock client."""
    return RedisCache(cache_config, client=mock_redis_client)


@pytest.fixture
def app_config():
    """Application configuration without external services."""
    return AppConfig(
        env="test",
        title="diary-api-test",
        port=3000,
        database=DatabaseConfig(host="localhost", name="diary_test"),
        redis=RedisConfig(enabled=False),
        logging=LoggingConfig(log_level="DEBUG", log_requests=True),
    )


@pytest.fixture
def mock_pool_manager():
    """Pool manager whose acquire() yields a Mock connection."""
    manager = Mock()
    manager.connection = Mock(name="connection")
    manager.released = 0

    @asynccontextmanager
    async def acquire():
        try:
            yield manager.connection
        finally:
            manager.released += 1

    manager.acquire = acquire
    manager.initialize = AsyncMock()
    manager.close = AsyncMock()
    return manager
