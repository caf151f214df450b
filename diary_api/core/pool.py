"""
MySQL connection pool manager.

Owns the process-wide aiomysql pool: opened once at start-up, connections are
checked out per unit of work through ``acquire()`` and always returned to the
pool, and ``close()`` drains the pool on shutdown.

Key features:
- aiomysql pool with DictCursor-friendly connections (autocommit on)
- Scoped acquisition with guaranteed release
- Acquisition metrics (wait time, reuse rate, errors)
- Health check reporting pool status and acquisition metrics
"""

import asyncio
import statistics
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiomysql
from pymysql.constants import CLIENT
import structlog

from diary_api.config.settings import DatabaseConfig
from diary_api.exceptions import ExecutionError

logger = structlog.get_logger(__name__)


@dataclass
class ConnectionPoolMetrics:
    """Metrics for monitoring connection pool performance."""

    total_connections: int = 0
    active_connections: int = 0
    connection_errors: int = 0
    total_requests: int = 0
    connection_wait_time_ms: List[float] = field(default_factory=list)

    def record_connection_acquired(self, wait_time_ms: float) -> None:
        """Record a connection acquisition."""
        self.active_connections += 1
        self.total_requests += 1
        self.connection_wait_time_ms.append(wait_time_ms)
        if len(self.connection_wait_time_ms) > 1000:  # Keep last 1000 samples
            self.connection_wait_time_ms = self.connection_wait_time_ms[-1000:]

    def record_connection_released(self) -> None:
        """Record a connection release."""
        self.active_connections = max(0, self.active_connections - 1)

    def record_connection_error(self) -> None:
        """Record a connection error."""
        self.connection_errors += 1

    def calculate_reuse_rate(self) -> float:
        """Calculate connection reuse rate as percentage."""
        if self.total_requests == 0:
            return 0.0

        reused_connections = max(0, self.total_requests - self.total_connections)
        return (reused_connections / self.total_requests) * 100

    def get_avg_wait_time(self) -> float:
        """Get average connection wait time in milliseconds."""
        if not self.connection_wait_time_ms:
            return 0.0
        return statistics.mean(self.connection_wait_time_ms)

    def get_p95_wait_time(self) -> float:
        """Get 95th percentile connection wait time."""
        if len(self.connection_wait_time_ms) < 2:
            return max(self.connection_wait_time_ms, default=0.0)
        return statistics.quantiles(self.connection_wait_time_ms, n=20)[18]


class MySQLPoolManager:
    """Manages the aiomysql connection pool."""

    def __init__(self, config: DatabaseConfig):
        """Initialize MySQL pool manager."""
        self.config = config
        self._pool: Optional[aiomysql.Pool] = None
        self._lock = asyncio.Lock()
        self.metrics = ConnectionPoolMetrics()

        logger.info(
            "MySQL pool manager initialized",
            host=config.host,
            database=config.name,
            max_size=config.pool_count,
        )

    @property
    def pool(self) -> Optional[aiomysql.Pool]:
        return self._pool

    async def initialize(self) -> None:
        """Initialize the connection pool."""
        async with self._lock:
            if self._pool is not None:
                return

            try:
                self._pool = await aiomysql.create_pool(
                    host=self.config.host,
                    port=self.config.port,
                    user=self.config.user,
                    password=self.config.password,
                    db=self.config.name,
                    minsize=self.config.min_size,
                    maxsize=self.config.pool_count,
                    charset=self.config.charset,
                    autocommit=True,
                    # UPDATE reports matched rows, not changed rows
                    client_flag=CLIENT.FOUND_ROWS,
                    pool_recycle=self.config.pool_recycle,
                )
                self.metrics.total_connections = self._pool.size

                logger.info(
                    "MySQL pool created successfully",
                    pool_size=self._pool.size,
                )

            except Exception as e:
                logger.error("Failed to create MySQL pool", error=str(e))
                raise ExecutionError(str(e), operation="create_pool") from e

    @asynccontextmanager
    async def acquire(self):
        """
        Acquire a connection for one unit of work.

        The connection goes back to the pool when the block exits, whether it
        completed or raised. Pool exhaustion blocks here until a connection
        frees up.
        """
        if self._pool is None:
            await self.initialize()

        start_time = time.time()
        try:
            connection = await self._pool.acquire()
        except Exception as e:
            self.metrics.record_connection_error()
            logger.error("Error acquiring MySQL connection", error=str(e))
            raise ExecutionError(str(e), operation="acquire") from e

        wait_time_ms = (time.time() - start_time) * 1000
        self.metrics.record_connection_acquired(wait_time_ms)
        self.metrics.total_connections = self._pool.size

        try:
            yield connection
        finally:
            self._pool.release(connection)
            self.metrics.record_connection_released()

    async def health_check(self) -> Dict[str, Any]:
        """Check pool health and return metrics."""
        if self._pool is None:
            return {"status": "not_initialized"}

        try:
            async with self.acquire() as conn:
                await conn.ping()

            return {
                "status": "healthy",
                "pool_size": self._pool.size,
                "idle_connections": self._pool.freesize,
                "active_connections": self.metrics.active_connections,
                "total_requests": self.metrics.total_requests,
                "reuse_rate": self.metrics.calculate_reuse_rate(),
                "avg_wait_time_ms": self.metrics.get_avg_wait_time(),
                "p95_wait_time_ms": self.metrics.get_p95_wait_time(),
                "error_rate": (
                    self.metrics.connection_errors / max(1, self.metrics.total_requests)
                )
                * 100,
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
                "error_count": self.metrics.connection_errors,
            }

    async def close(self) -> None:
        """Drain and close the connection pool."""
        if self._pool:
            self._pool.close()
            await self._pool.wait_closed()
            self._pool = None
            logger.info("MySQL pool closed")
