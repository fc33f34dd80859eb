import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .context import RequestContext, get_context


# Security: Keys that should never be logged
FORBIDDEN_KEYS = {
    'authorization', 'token', 'password', 'secret',
    'api_key', 'bearer', 'jwt', 'credential', 'auth'
}

_loggers: Dict[str, "StructuredLogger"] = {}
_level = logging.DEBUG


class StructuredLogger:
    """
    Structured JSON logger that injects the current request context.

    Every line is one JSON object with timestamp, level, service and message,
    the trace/request ids of the current RequestContext, and a "data"
    envelope holding everything else.

    Usage:
        logger = get_logger("gym.repositories.user")
        logger.info("User found", data={"user_id": 7})
        logger.error("Query failed", ctx, operation="find_all")
    """

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.logger = logging.getLogger(service_name)
        self.logger.setLevel(_level)

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter('%(message)s'))
        self.logger.addHandler(handler)
        self.logger.propagate = False

    def _sanitize(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Remove forbidden keys for security."""
        return {
            k: v for k, v in fields.items()
            if k.lower() not in FORBIDDEN_KEYS
        }

    def _log(
        self,
        level: str,
        message: str,
        ctx: Optional[RequestContext] = None,
        data: Any = None,
        **kwargs: Any,
    ) -> None:
        """
        Build and emit one JSON line.

        An explicit ctx wins over the context bound to the running task.
        kwargs are merged into data; non-dict data is kept under "value".
        """
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": level,
            "service": self.service_name,
            "message": message,
        }
        log_entry.update(ctx.to_dict() if ctx is not None else get_context())

        if data is None:
            payload: Dict[str, Any] = {}
        elif isinstance(data, dict):
            payload = dict(data)
        else:
            payload = {"value": data}
        payload.update(kwargs)
        payload = self._sanitize(payload)
        if payload:
            log_entry["data"] = payload

        log_method = getattr(self.logger, level.lower())
        log_method(json.dumps(log_entry, default=str))

    def debug(self, message: str, ctx: Optional[RequestContext] = None, **kwargs: Any) -> None:
        self._log("DEBUG", message, ctx, **kwargs)

    def info(self, message: str, ctx: Optional[RequestContext] = None, **kwargs: Any) -> None:
        self._log("INFO", message, ctx, **kwargs)

    def warning(self, message: str, ctx: Optional[RequestContext] = None, **kwargs: Any) -> None:
        self._log("WARNING", message, ctx, **kwargs)

    def error(self, message: str, ctx: Optional[RequestContext] = None, **kwargs: Any) -> None:
        self._log("ERROR", message, ctx, **kwargs)

    def critical(self, message: str, ctx: Optional[RequestContext] = None, **kwargs: Any) -> None:
        self._log("CRITICAL", message, ctx, **kwargs)


def get_logger(service_name: str) -> StructuredLogger:
    """Get the structured logger for the given name, creating it once."""
    logger = _loggers.get(service_name)
    if logger is None:
        logger = StructuredLogger(service_name)
        _loggers[service_name] = logger
    return logger


def configure_logging(level: str) -> None:
    """Apply a level name (e.g. settings.log_level) to every structured logger."""
    global _level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    _level = resolved
    for logger in _loggers.values():
        logger.logger.setLevel(_level)
