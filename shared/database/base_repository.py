"""Base repository with connection pooling."""
import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Generic, List, Mapping, Optional, Sequence

import asyncpg

from shared.models.entity import Page, T
from shared.observability.logger import get_logger
from .errors import DataAccessError
from .pool import ConnectionPool

logger = get_logger("gym.database.repository")

# Failures raised by the driver or the socket underneath it
DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


def affected_rows(status: str) -> int:
    """Row count from an asyncpg command status such as "DELETE 1" or "INSERT 0 1"."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        raise DataAccessError(f"Unexpected command status: {status!r}") from None


class BaseRepository(ABC, Generic[T]):
    """Base repository with connection pooling.

    All repositories MUST inherit from this class and use the connection
    management methods to ensure proper pooling and resource cleanup.
    Every public operation borrows one connection and gives it back on all
    exit paths; driver errors leave as DataAccessError with the cause chained.

    Subclasses provide table_name, map_row, insert and update.
    """

    def __init__(self, pool: ConnectionPool):
        """Initialize repository with connection pool.

        Args:
            pool: Connection pool owned by the application
        """
        self.pool = pool

    async def get_connection(self) -> asyncpg.Connection:
        """Get connection from pool."""
        return await self.pool.acquire()

    async def release_connection(self, conn: asyncpg.Connection) -> None:
        """Release connection back to pool."""
        await self.pool.release(conn)

    @asynccontextmanager
    async def connection(self, operation: str) -> AsyncIterator[asyncpg.Connection]:
        """Borrow one connection for several statements.

        Driver errors raised inside the block are translated and the
        connection is released however the block exits.
        """
        conn = await self.get_connection()
        try:
            yield conn
        except DRIVER_ERRORS as e:
            raise self._translate(operation, e) from e
        finally:
            await self.release_connection(conn)

    def _translate(self, operation: str, error: BaseException) -> DataAccessError:
        logger.error("Database operation failed", data={
            "table": self.table_name,
            "operation": operation,
            "error_type": type(error).__name__,
            "error": str(error),
        })
        return DataAccessError(f"{operation} on {self.table_name} failed: {error}", cause=error)

    async def _fetch(self, operation: str, query: str, *args: Any) -> List[asyncpg.Record]:
        async with self.connection(operation) as conn:
            return await conn.fetch(query, *args)

    async def _fetchrow(self, operation: str, query: str, *args: Any) -> Optional[asyncpg.Record]:
        async with self.connection(operation) as conn:
            return await conn.fetchrow(query, *args)

    async def _fetchval(self, operation: str, query: str, *args: Any) -> Any:
        async with self.connection(operation) as conn:
            return await conn.fetchval(query, *args)

    async def _execute(self, operation: str, query: str, *args: Any) -> str:
        async with self.connection(operation) as conn:
            return await conn.execute(query, *args)

    def _map_rows(self, rows: Sequence[Mapping[str, Any]]) -> List[T]:
        return [self.map_row(row) for row in rows]

    async def find_all(self) -> List[T]:
        """Get every row of the table, in the order the database returns them."""
        rows = await self._fetch("find_all", f"SELECT * FROM {self.table_name}")
        return self._map_rows(rows)

    async def find_by_id(self, entity_id: int) -> Optional[T]:
        """Get entity by ID.

        Returns:
            The entity, or None if no row has this id
        """
        row = await self._fetchrow(
            "find_by_id",
            f"SELECT * FROM {self.table_name} WHERE id = $1",
            entity_id,
        )
        return self.map_row(row) if row is not None else None

    async def delete_by_id(self, entity_id: int) -> None:
        """Delete entity by ID.

        Raises:
            DataAccessError: If the statement failed or affected other than
                exactly one row
        """
        status = await self._execute(
            "delete_by_id",
            f"DELETE FROM {self.table_name} WHERE id = $1",
            entity_id,
        )
        count = affected_rows(status)
        if count != 1:
            logger.warning("Delete affected unexpected row count", data={
                "table": self.table_name,
                "entity_id": entity_id,
                "rows": count,
            })
            raise DataAccessError(
                f"Delete of {self.table_name} id={entity_id} affected {count} rows, expected 1"
            )
        logger.info("Entity deleted", data={"table": self.table_name, "entity_id": entity_id})

    async def _find_page(
        self,
        operation: str,
        query: str,
        count_query: str,
        offset: int,
        page_size: int,
        *args: Any,
    ) -> Page[T]:
        """Run a page query and its count query against one snapshot.

        query receives args followed by LIMIT and OFFSET parameters;
        count_query receives args only and must select a single count with
        the same filter.
        """
        if offset < 0:
            raise ValueError(f"offset must be non-negative, got {offset}")
        if page_size < 1:
            raise ValueError(f"page_size must be at least 1, got {page_size}")

        async with self.connection(operation) as conn:
            async with conn.transaction(isolation="repeatable_read", readonly=True):
                rows = await conn.fetch(query, *args, page_size, offset)
                total = await conn.fetchval(count_query, *args)

        items = self._map_rows(rows)
        return Page(items=items, total=total or 0, offset=offset, page_size=page_size)

    @property
    @abstractmethod
    def table_name(self) -> str:
        """Table backing this repository."""

    @abstractmethod
    def map_row(self, row: Mapping[str, Any]) -> T:
        """Build an entity from one result row."""

    @abstractmethod
    async def insert(self, entity: T) -> T:
        """Store a new entity and return it as persisted."""

    @abstractmethod
    async def update(self, entity: T) -> T:
        """Overwrite the stored entity with the same id and return it."""
