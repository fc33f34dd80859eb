#!/usr/bin/env python
"""Reset database by dropping and recreating the gym tables."""
import asyncio

from config.settings import get_settings
from gym.schema import create_schema, drop_schema
from shared.database.pool import connection_factory_from_settings


async def reset_db():
    connect = connection_factory_from_settings(get_settings())
    conn = await connect()
    try:
        print("Dropping gym tables...")
        await drop_schema(conn)
        print("Creating gym tables...")
        await create_schema(conn)
    finally:
        await conn.close()
    print("Database reset complete!")


if __name__ == "__main__":
    asyncio.run(reset_db())
