"""Database infrastructure."""
from .base_repository import BaseRepository
from .errors import (
    ConnectionReleaseError,
    DataAccessError,
    GymDataError,
    PoolClosedError,
    PoolError,
    PoolExhaustedError,
    PoolInitializationError,
)
from .pool import ConnectionPool, PoolStats, create_pool, close_pool
from .queries import QueryCatalog, QueryNotFoundError

__all__ = [
    "BaseRepository",
    "ConnectionPool",
    "PoolStats",
    "create_pool",
    "close_pool",
    "QueryCatalog",
    "QueryNotFoundError",
    "GymDataError",
    "PoolError",
    "PoolInitializationError",
    "PoolExhaustedError",
    "PoolClosedError",
    "ConnectionReleaseError",
    "DataAccessError",
]
