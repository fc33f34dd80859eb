"""Fixtures for tests that talk to a real PostgreSQL.

Tests here are skipped when the GYM_DB_* settings are missing or the
database does not answer.
"""
import asyncio

import asyncpg
import pytest
import pytest_asyncio
from pydantic import ValidationError

from config.settings import get_settings
from gym.schema import create_schema
from shared.database.pool import close_pool, connection_factory_from_settings, create_pool


def pytest_collection_modifyitems(items):
    for item in items:
        if "tests/integration" in str(item.fspath).replace("\\", "/"):
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def settings():
    get_settings.cache_clear()
    try:
        return get_settings()
    except ValidationError as e:
        pytest.skip(f"Database settings not configured: {e.error_count()} missing values")


@pytest_asyncio.fixture
async def pool(settings):
    try:
        conn = await connection_factory_from_settings(settings)()
    except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        pytest.skip(f"Database unreachable: {e}")
    try:
        await create_schema(conn)
        await conn.execute("TRUNCATE training_programs, users RESTART IDENTITY CASCADE")
    finally:
        await conn.close()

    pool = await create_pool(settings)
    try:
        yield pool
    finally:
        await close_pool(pool)
