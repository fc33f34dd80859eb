from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, status

from config.settings import get_settings
from gym.repositories.user_repository import UserRepository
from shared.database.pool import ConnectionPool, create_pool, close_pool
from shared.observability.logger import configure_logging, get_logger
from shared.observability.middleware import ContextMiddleware

logger = get_logger("gym")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the process-wide connection pool for the lifetime of the app."""
    settings = get_settings()
    configure_logging(settings.log_level)

    pool = await create_pool(settings)
    app.state.pool = pool
    logger.info("Database pool created", data={
        "host": settings.gym_db_host,
        "port": settings.gym_db_port,
        "database": settings.gym_db_name,
        "capacity": settings.db_pool_capacity,
    })

    try:
        yield
    finally:
        closed = await close_pool(pool)
        logger.info("Database pool closed", data={"connections_closed": closed})


app = FastAPI(title="Gym", lifespan=lifespan)
app.add_middleware(ContextMiddleware, service_name="gym")


def get_db_pool(request: Request) -> ConnectionPool:
    """Dependency to get database pool."""
    return request.app.state.pool


def get_user_repository(request: Request) -> UserRepository:
    """Dependency giving each request its own repository over the shared pool."""
    return UserRepository(get_db_pool(request))


@app.get("/health")
def health(request: Request, response: Response):
    pool = getattr(request.app.state, "pool", None)
    if pool is None:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unavailable", "database": "no pool"}

    stats = pool.stats()
    healthy = stats.initialized and not stats.closed
    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning("Health check failed", data={"initialized": stats.initialized, "closed": stats.closed})

    return {
        "status": "ok" if healthy else "unavailable",
        "pool": {
            "capacity": stats.capacity,
            "available": stats.available,
            "lent": stats.lent,
            "initialized": stats.initialized,
            "closed": stats.closed,
        },
    }
