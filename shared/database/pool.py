"""Database connection pool management."""
import asyncio
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Deque, Dict, List, Optional, Set

import asyncpg

from config.settings import Settings
from shared.observability.logger import get_logger
from .errors import (
    ConnectionReleaseError,
    PoolClosedError,
    PoolExhaustedError,
    PoolInitializationError,
)

logger = get_logger("gym.database.pool")

ConnectionFactory = Callable[[], Awaitable[Any]]

# Sentinel: "use the pool's acquire_timeout", distinct from None ("wait forever")
_POOL_DEFAULT: Any = object()


@dataclass(frozen=True)
class PoolStats:
    """Point-in-time view of the pool."""
    capacity: int
    available: int
    lent: int
    initialized: bool
    closed: bool


class ConnectionPool:
    """Bounded pool of database connections with blocking acquire/release.

    The pool opens exactly `capacity` connections on first use. Each
    connection is either queued as available or lent to a single caller;
    release() resets it, puts it back and wakes one waiting acquirer. A
    connection that comes back closed or fails its reset is closed and
    replaced by a fresh one from the factory, so the pool keeps its size.

    Use the connection() context manager so that every acquire is paired
    with exactly one release:

        async with pool.connection() as conn:
            await conn.fetch("SELECT 1")
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        capacity: int,
        acquire_timeout: Optional[float] = None,
    ):
        """Create an uninitialized pool.

        Args:
            connection_factory: Async callable opening one connection
            capacity: Number of connections the pool owns
            acquire_timeout: Default seconds acquire() waits; None waits forever
        """
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        if acquire_timeout is not None and acquire_timeout <= 0:
            raise ValueError(f"acquire_timeout must be positive, got {acquire_timeout}")

        self._factory = connection_factory
        self._capacity = capacity
        self._acquire_timeout = acquire_timeout

        self._available: Deque[Any] = deque()
        self._lent: Dict[int, Any] = {}
        # Lent connections whose release is in progress
        self._returning: Set[int] = set()
        # Broken connections that could not be replaced yet
        self._missing = 0
        self._condition = asyncio.Condition()

        # Guards connection setup; _condition is taken only to publish the result
        self._init_lock = asyncio.Lock()
        self._initialized = False
        self._init_error: Optional[Exception] = None
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def available(self) -> int:
        return len(self._available)

    @property
    def lent(self) -> int:
        return len(self._lent)

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> PoolStats:
        return PoolStats(
            capacity=self._capacity,
            available=len(self._available),
            lent=len(self._lent),
            initialized=self._initialized,
            closed=self._closed,
        )

    async def initialize(self) -> None:
        """Open all connections, once.

        Concurrent callers block on the same initialization. Connections are
        published only after every one of them opened; on failure the ones
        already opened are closed and the error is kept, so this call and
        every later one raise PoolInitializationError.

        Raises:
            PoolInitializationError: If opening a connection failed
            PoolClosedError: If the pool was shut down first
        """
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return
            if self._init_error is not None:
                raise PoolInitializationError(
                    "Connection pool initialization failed earlier"
                ) from self._init_error
            if self._closed:
                raise PoolClosedError("Connection pool is closed")

            opened: List[Any] = []
            try:
                for _ in range(self._capacity):
                    opened.append(await self._factory())
            except Exception as e:
                await self._close_connections(opened)
                self._init_error = e
                logger.error("Connection pool initialization failed", data={
                    "capacity": self._capacity,
                    "opened": len(opened),
                    "error": str(e),
                })
                raise PoolInitializationError(
                    f"Could not open {self._capacity} connections: {e}"
                ) from e
            except asyncio.CancelledError:
                await self._close_connections(opened)
                raise

            if self._closed:
                await self._close_connections(opened)
                raise PoolClosedError("Connection pool was closed during initialization")

            async with self._condition:
                self._available.extend(opened)
                self._initialized = True
                self._condition.notify_all()

        logger.info("Connection pool initialized", data={"capacity": self._capacity})

    def _can_proceed(self) -> bool:
        return bool(self._available) or self._closed

    def _pass_on_wakeup(self) -> None:
        # A waiter that leaves after being notified must not swallow the wakeup
        if self._available and not self._closed:
            self._condition.notify(1)

    def _exhausted(self, timeout: Optional[float]) -> PoolExhaustedError:
        logger.warning("Connection pool exhausted", data={
            "capacity": self._capacity,
            "lent": len(self._lent),
            "timeout_seconds": timeout,
        })
        return PoolExhaustedError(f"No connection available within {timeout} seconds")

    async def acquire(self, timeout: Optional[float] = _POOL_DEFAULT) -> Any:
        """Take a connection out of the pool, waiting while none is available.

        Initializes the pool on first use. Cancelling the calling task while
        it waits leaves the pool unchanged.

        Args:
            timeout: Seconds to wait; None waits forever, 0 takes a free
                connection or fails at once. Defaults to the pool's
                acquire_timeout.

        Returns:
            A connection lent exclusively to the caller

        Raises:
            ValueError: If timeout is negative
            PoolExhaustedError: If the timeout expired
            PoolClosedError: If the pool is or gets shut down
            PoolInitializationError: If the pool could not be initialized
        """
        if timeout is _POOL_DEFAULT:
            timeout = self._acquire_timeout
        if timeout is not None and timeout < 0:
            raise ValueError(f"timeout must not be negative, got {timeout}")
        if self._closed:
            raise PoolClosedError("Connection pool is closed")

        await self.initialize()
        if self._missing and not self._available:
            await self._refill()

        async with self._condition:
            if not self._can_proceed():
                if timeout == 0:
                    raise self._exhausted(timeout)
                try:
                    await asyncio.wait_for(self._condition.wait_for(self._can_proceed), timeout)
                except asyncio.TimeoutError:
                    self._pass_on_wakeup()
                    raise self._exhausted(timeout) from None
                except asyncio.CancelledError:
                    self._pass_on_wakeup()
                    raise

            if self._closed:
                raise PoolClosedError("Connection pool is closed")

            connection = self._available.popleft()
            self._lent[id(connection)] = connection
            return connection

    async def _refill(self) -> None:
        """Reopen connections lost to failed replacements.

        Raises:
            PoolExhaustedError: If reopening failed and no connection is
                left that could ever come back
        """
        while self._missing and not self._closed:
            self._missing -= 1
            try:
                fresh = await self._factory()
            except asyncio.CancelledError:
                self._missing += 1
                raise
            except Exception as e:
                self._missing += 1
                logger.error("Failed to reopen connection", data={
                    "missing": self._missing,
                    "error": str(e),
                })
                if not self._available and not self._lent:
                    raise PoolExhaustedError(
                        f"No usable connections left and reopening failed: {e}"
                    ) from e
                return
            await self._put_back(fresh)

    async def release(self, connection: Any) -> None:
        """Return a lent connection and wake one waiting acquirer.

        The connection counts as lent until it is back in the queue. It is
        reset first; if it is closed or the reset fails it is closed and a
        fresh connection takes its place.

        Raises:
            ConnectionReleaseError: If the connection is not currently lent
                by this pool (double release or foreign connection)
        """
        key = id(connection)
        if self._lent.get(key) is not connection or key in self._returning:
            raise ConnectionReleaseError(
                "Connection was not acquired from this pool or was already released"
            )
        self._returning.add(key)
        # A cancelled caller must not strand the connection halfway back
        await asyncio.shield(self._return(connection))

    async def _return(self, connection: Any) -> None:
        key = id(connection)
        try:
            if not self._closed and not await self._is_reusable(connection):
                await self._replace(connection)
                return

            async with self._condition:
                del self._lent[key]
                if not self._closed:
                    self._available.append(connection)
                    self._condition.notify(1)
                    return

            await self._close_connections([connection])
            logger.info("Connection closed on release after shutdown", data={
                "still_lent": len(self._lent),
            })
        finally:
            self._returning.discard(key)

    async def _is_reusable(self, connection: Any) -> bool:
        if connection.is_closed():
            logger.warning("Released connection is closed")
            return False
        try:
            await connection.reset()
        except Exception as e:
            logger.warning("Failed to reset released connection", data={"error": str(e)})
            return False
        return True

    async def _replace(self, broken: Any) -> None:
        await self._close_connections([broken])
        try:
            fresh = await self._factory()
        except Exception as e:
            fresh = None
            logger.error("Failed to replace broken connection", data={"error": str(e)})

        async with self._condition:
            del self._lent[id(broken)]
            if fresh is None:
                self._missing += 1
                return
            if not self._closed:
                self._available.append(fresh)
                self._condition.notify(1)
                logger.info("Replaced broken connection", data={"capacity": self._capacity})
                return
        await self._close_connections([fresh])

    async def _put_back(self, connection: Any) -> None:
        async with self._condition:
            if not self._closed:
                self._available.append(connection)
                self._condition.notify(1)
                return
        await self._close_connections([connection])

    @asynccontextmanager
    async def connection(self, timeout: Optional[float] = _POOL_DEFAULT) -> AsyncIterator[Any]:
        """Acquire a connection for the duration of the block."""
        conn = await self.acquire(timeout)
        try:
            yield conn
        finally:
            await self.release(conn)

    async def shutdown(self) -> int:
        """Close every available connection and refuse further acquires.

        Close failures are logged and skipped so that as many connections as
        possible get closed. Connections still lent are reported and closed
        when they come back.

        Returns:
            Number of connections closed successfully
        """
        async with self._condition:
            if self._closed:
                return 0
            self._closed = True
            to_close = list(self._available)
            self._available.clear()
            still_lent = len(self._lent)
            self._condition.notify_all()

        closed = await self._close_connections(to_close)

        if still_lent:
            logger.warning("Connections still lent at shutdown", data={"lent": still_lent})
        logger.info("Connection pool shut down", data={
            "closed": closed,
            "failed": len(to_close) - closed,
        })
        return closed

    async def _close_connections(self, connections: List[Any]) -> int:
        closed = 0
        for conn in connections:
            try:
                await conn.close()
                closed += 1
            except Exception as e:
                logger.error("Failed to close connection", data={"error": str(e)})
        return closed


def connection_factory_from_settings(settings: Settings) -> ConnectionFactory:
    """Build a factory opening asyncpg connections with the configured DSN parts."""

    async def connect() -> asyncpg.Connection:
        return await asyncpg.connect(
            host=settings.gym_db_host,
            port=settings.gym_db_port,
            user=settings.gym_db_user,
            password=settings.gym_db_password,
            database=settings.gym_db_name,
            timeout=settings.db_connect_timeout,
        )

    return connect


async def create_pool(settings: Settings) -> ConnectionPool:
    """Create and initialize the database connection pool.

    Args:
        settings: Application settings with database configuration

    Returns:
        Initialized connection pool
    """
    pool = ConnectionPool(
        connection_factory_from_settings(settings),
        capacity=settings.db_pool_capacity,
        acquire_timeout=settings.db_pool_acquire_timeout,
    )
    await pool.initialize()
    return pool


async def close_pool(pool: ConnectionPool) -> int:
    """Close database connection pool.

    Args:
        pool: Connection pool to close

    Returns:
        Number of connections closed
    """
    return await pool.shutdown()
