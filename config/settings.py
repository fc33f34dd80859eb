from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for gym-backend.

    Common defaults live here; environment variables override per environment.

    Values are read once per process through get_settings(); nothing re-reads
    them after the connection pool has been created.
    """

    # --- Core ---
    environment: str  # required
    service_name: str = "gym-backend"

    # --- HTTP server ---
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # --- Logging ---
    log_level: str = "INFO"

    # --- Database (PostgreSQL) ---
    gym_db_host: str  # required
    gym_db_port: int  # required
    gym_db_user: str  # required
    gym_db_password: str  # required
    gym_db_name: str  # required

    # --- Connection pool ---
    db_pool_capacity: int = Field(default=10, ge=1)
    # None means acquire() waits until a connection is released
    db_pool_acquire_timeout: float | None = Field(default=30.0, gt=0)
    db_connect_timeout: float = Field(default=10.0, gt=0)

    model_config = SettingsConfigDict(
        # .env.common: shared defaults (committed)
        # .env.local: local overrides (gitignored)
        env_file=(".env.common", ".env.local"),
        env_file_encoding="utf-8",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance. Call this instead of instantiating Settings directly."""
    return Settings()
