from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Any, Dict, Optional
import re
import secrets
import time


TRACE_ID_PATTERN = re.compile(r'^t\d{10}[0-9a-f]{12}$')
REQUEST_ID_PATTERN = re.compile(r'^r\d{10}[0-9a-f]{12}$')


def generate_trace_id() -> str:
    """
    Generate a new trace_id.

    Format: t + Unix timestamp (seconds) + 12 hexadecimal characters
    Example: t1735228800a1b2c3d4e5f6
    """
    return f"t{int(time.time())}{secrets.token_hex(6)}"


def generate_request_id() -> str:
    """
    Generate a new request_id.

    Format: r + Unix timestamp (seconds) + 12 hexadecimal characters
    Example: r1735228800f6e5d4c3b2a1
    """
    return f"r{int(time.time())}{secrets.token_hex(6)}"


def is_valid_trace_id(trace_id: str) -> bool:
    return bool(TRACE_ID_PATTERN.match(trace_id))


def is_valid_request_id(request_id: str) -> bool:
    return bool(REQUEST_ID_PATTERN.match(request_id))


@dataclass(frozen=True)
class RequestContext:
    """
    Tracing information for one unit of work (an HTTP request or a job).

    Fields:
    - trace_id: Global trace identifier (e.g., "t1735228800a1b2c3d4e5f6")
    - trace_source: Where the trace originated (e.g., "GYM:GET/health")
    - request_id: Request identifier (e.g., "r1735228800f6e5d4c3b2a1")
    - request_source: Current service and endpoint
    """
    trace_id: str
    trace_source: str
    request_id: str
    request_source: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            'trace_id': self.trace_id,
            'trace_source': self.trace_source,
            'request_id': self.request_id,
            'request_source': self.request_source,
        }


_current_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "gym_request_context", default=None
)


def set_current_context(ctx: RequestContext) -> Token:
    """Bind ctx to the running task; pass the token to reset_current_context()."""
    return _current_context.set(ctx)


def reset_current_context(token: Token) -> None:
    _current_context.reset(token)


def get_current_context() -> Optional[RequestContext]:
    return _current_context.get()


def get_context() -> Dict[str, Any]:
    """Current context as log fields; empty when no context is bound."""
    ctx = _current_context.get()
    return ctx.to_dict() if ctx else {}
