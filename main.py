import uvicorn

from config.settings import get_settings
from gym.main import app

__all__ = ["app"]


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run("main:app", host=settings.app_host, port=settings.app_port)
