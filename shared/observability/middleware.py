from starlette.requests import Request as StarletteRequest
from starlette.types import ASGIApp, Receive, Scope, Send
from .context import (
    RequestContext,
    generate_trace_id,
    generate_request_id,
    set_current_context,
    reset_current_context,
)


class ContextMiddleware:
    """
    ASGI middleware that binds a RequestContext to each HTTP request.

    Reads X-Trace-Id, X-Request-Id and X-Trace-Source, generating ids that are
    missing. The context is attached to request.state.context and bound to
    the running task so loggers pick it up without it being passed around.
    """

    def __init__(self, app: ASGIApp, service_name: str):
        self.app = app
        self.service_name = service_name

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = StarletteRequest(scope)

        trace_id = request.headers.get('X-Trace-Id') or generate_trace_id()
        request_id = request.headers.get('X-Request-Id') or generate_request_id()

        endpoint_code = f"{scope.get('method', 'GET')}{scope.get('path', '/')}"
        request_source = f"{self.service_name.upper()}:{endpoint_code}"
        trace_source = request.headers.get('X-Trace-Source') or request_source

        ctx = RequestContext(
            trace_id=trace_id,
            trace_source=trace_source,
            request_id=request_id,
            request_source=request_source,
        )

        if "state" not in scope:
            scope["state"] = {}
        scope["state"]["context"] = ctx
        token = set_current_context(ctx)

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((b"x-trace-id", trace_id.encode()))
                headers.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_with_headers)
        finally:
            reset_current_context(token)
