"""Unit tests for BaseRepository."""
import asyncio
from typing import Any, Mapping
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from shared.database.base_repository import BaseRepository, affected_rows
from shared.database.errors import DataAccessError, PoolExhaustedError
from shared.database.pool import ConnectionPool
from shared.models.entity import Entity, Page


class Widget(Entity):
    name: str


class WidgetRepository(BaseRepository[Widget]):
    """Minimal concrete repository used to exercise the base behaviour."""

    @property
    def table_name(self) -> str:
        return "widgets"

    def map_row(self, row: Mapping[str, Any]) -> Widget:
        return Widget(id=row["id"], name=row["name"])

    async def insert(self, entity: Widget) -> Widget:
        row = await self._fetchrow(
            "insert", "INSERT INTO widgets (name) VALUES ($1) RETURNING *", entity.name
        )
        return self.map_row(row)

    async def update(self, entity: Widget) -> Widget:
        row = await self._fetchrow(
            "update", "UPDATE widgets SET name = $2 WHERE id = $1 RETURNING *", entity.id, entity.name
        )
        return self.map_row(row)


@pytest.fixture
def mock_pool():
    """Create a mock connection pool."""
    return MagicMock(spec=ConnectionPool)


@pytest.fixture
def mock_conn():
    """Create a mock database connection."""
    conn = AsyncMock(spec=asyncpg.Connection)
    conn.transaction = MagicMock()
    return conn


@pytest.fixture
def repository(mock_pool, mock_conn):
    mock_pool.acquire = AsyncMock(return_value=mock_conn)
    mock_pool.release = AsyncMock()
    return WidgetRepository(mock_pool)


def test_affected_rows_parses_command_status():
    assert affected_rows("DELETE 1") == 1
    assert affected_rows("DELETE 0") == 0
    assert affected_rows("INSERT 0 3") == 3


def test_affected_rows_rejects_garbage():
    with pytest.raises(DataAccessError):
        affected_rows("SELECT")


@pytest.mark.asyncio
async def test_find_all_maps_every_row(repository, mock_pool, mock_conn):
    # Arrange
    mock_conn.fetch = AsyncMock(return_value=[
        {"id": 2, "name": "bolt"},
        {"id": 1, "name": "nut"},
    ])

    # Act
    result = await repository.find_all()

    # Assert
    assert result == [Widget(id=2, name="bolt"), Widget(id=1, name="nut")]
    mock_conn.fetch.assert_called_once_with("SELECT * FROM widgets")
    mock_pool.release.assert_called_once_with(mock_conn)


@pytest.mark.asyncio
async def test_find_all_empty_table_returns_empty_list(repository, mock_pool, mock_conn):
    mock_conn.fetch = AsyncMock(return_value=[])

    assert await repository.find_all() == []
    mock_pool.release.assert_called_once_with(mock_conn)


@pytest.mark.asyncio
async def test_find_by_id_found(repository, mock_pool, mock_conn):
    mock_conn.fetchrow = AsyncMock(return_value={"id": 7, "name": "gear"})

    result = await repository.find_by_id(7)

    assert result == Widget(id=7, name="gear")
    mock_conn.fetchrow.assert_called_once_with("SELECT * FROM widgets WHERE id = $1", 7)
    mock_pool.release.assert_called_once_with(mock_conn)


@pytest.mark.asyncio
async def test_find_by_id_missing_returns_none(repository, mock_pool, mock_conn):
    """Absent row is None, not an error."""
    mock_conn.fetchrow = AsyncMock(return_value=None)

    assert await repository.find_by_id(404) is None
    mock_pool.release.assert_called_once_with(mock_conn)


@pytest.mark.asyncio
async def test_delete_by_id_single_row(repository, mock_pool, mock_conn):
    mock_conn.execute = AsyncMock(return_value="DELETE 1")

    await repository.delete_by_id(3)

    mock_conn.execute.assert_called_once_with("DELETE FROM widgets WHERE id = $1", 3)
    mock_pool.release.assert_called_once_with(mock_conn)


@pytest.mark.asyncio
async def test_delete_by_id_missing_raises(repository, mock_pool, mock_conn):
    """Deleting a nonexistent id is an error, never a silent success."""
    mock_conn.execute = AsyncMock(return_value="DELETE 0")

    with pytest.raises(DataAccessError, match="affected 0 rows"):
        await repository.delete_by_id(404)

    mock_pool.release.assert_called_once_with(mock_conn)


@pytest.mark.asyncio
async def test_delete_by_id_multiple_rows_raises(repository, mock_conn):
    mock_conn.execute = AsyncMock(return_value="DELETE 2")

    with pytest.raises(DataAccessError, match="affected 2 rows"):
        await repository.delete_by_id(3)


@pytest.mark.asyncio
async def test_driver_error_is_wrapped_and_connection_released(repository, mock_pool, mock_conn):
    # Arrange
    driver_error = asyncpg.UndefinedTableError("relation \"widgets\" does not exist")
    mock_conn.fetch = AsyncMock(side_effect=driver_error)

    # Act & Assert
    with pytest.raises(DataAccessError) as exc_info:
        await repository.find_all()

    assert exc_info.value.__cause__ is driver_error
    assert exc_info.value.cause is driver_error
    mock_pool.release.assert_called_once_with(mock_conn)


@pytest.mark.asyncio
async def test_lost_connection_is_wrapped(repository, mock_pool, mock_conn):
    mock_conn.fetchrow = AsyncMock(side_effect=ConnectionResetError("peer reset"))

    with pytest.raises(DataAccessError):
        await repository.find_by_id(1)

    mock_pool.release.assert_called_once_with(mock_conn)


@pytest.mark.asyncio
async def test_command_timeout_is_wrapped(repository, mock_pool, mock_conn):
    timeout = asyncio.TimeoutError()
    mock_conn.fetch = AsyncMock(side_effect=timeout)

    with pytest.raises(DataAccessError) as exc_info:
        await repository.find_all()

    assert exc_info.value.cause is timeout
    mock_pool.release.assert_called_once_with(mock_conn)


@pytest.mark.asyncio
async def test_pool_errors_are_not_wrapped(repository, mock_pool):
    mock_pool.acquire = AsyncMock(side_effect=PoolExhaustedError("no connection"))

    with pytest.raises(PoolExhaustedError):
        await repository.find_all()

    mock_pool.release.assert_not_called()


@pytest.mark.asyncio
async def test_find_page_returns_items_and_total(repository, mock_pool, mock_conn):
    # Arrange
    mock_conn.fetch = AsyncMock(return_value=[{"id": 1, "name": "a"}, {"id": 2, "name": "b"}])
    mock_conn.fetchval = AsyncMock(return_value=12)

    # Act
    page = await repository._find_page(
        "find_page",
        "SELECT * FROM widgets WHERE name LIKE $1 ORDER BY id LIMIT $2 OFFSET $3",
        "SELECT COUNT(*) FROM widgets WHERE name LIKE $1",
        10,
        2,
        "%",
    )

    # Assert
    assert isinstance(page, Page)
    assert page.items == [Widget(id=1, name="a"), Widget(id=2, name="b")]
    assert page.total == 12
    assert page.offset == 10
    assert page.page_size == 2
    mock_conn.fetch.assert_called_once_with(
        "SELECT * FROM widgets WHERE name LIKE $1 ORDER BY id LIMIT $2 OFFSET $3", "%", 2, 10
    )
    mock_conn.fetchval.assert_called_once_with("SELECT COUNT(*) FROM widgets WHERE name LIKE $1", "%")
    mock_conn.transaction.assert_called_once_with(isolation="repeatable_read", readonly=True)
    mock_pool.release.assert_called_once_with(mock_conn)


@pytest.mark.asyncio
async def test_find_page_rejects_bad_bounds(repository, mock_pool):
    with pytest.raises(ValueError):
        await repository._find_page("p", "q", "c", -1, 10)
    with pytest.raises(ValueError):
        await repository._find_page("p", "q", "c", 0, 0)

    mock_pool.acquire.assert_not_called()
