"""DDL for the tables the repositories read and write."""

CREATE_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        login VARCHAR(64) NOT NULL UNIQUE,
        password VARCHAR(128) NOT NULL,
        role VARCHAR(10) NOT NULL CHECK (role IN ('CLIENT', 'TRAINER', 'ADMIN')),
        first_name VARCHAR(64) NOT NULL,
        last_name VARCHAR(64) NOT NULL,
        is_personal_trainer_need SMALLINT NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS training_programs (
        id SERIAL PRIMARY KEY,
        client_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        trainer_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
        start_date DATE,
        end_date DATE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_training_programs_client ON training_programs(client_id)",
    "CREATE INDEX IF NOT EXISTS idx_training_programs_trainer ON training_programs(trainer_id)",
)

DROP_STATEMENTS = (
    "DROP TABLE IF EXISTS training_programs CASCADE",
    "DROP TABLE IF EXISTS users CASCADE",
)


async def create_schema(conn) -> None:
    for statement in CREATE_STATEMENTS:
        await conn.execute(statement)


async def drop_schema(conn) -> None:
    for statement in DROP_STATEMENTS:
        await conn.execute(statement)
