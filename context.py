from contextvars import ContextVar
from typing import Optional

from starlette.requests import Request
from starlette.types import ASGIApp, Receive, Scope, Send

request_context: ContextVar[Optional[Request]] = ContextVar("request_context", default=None)


class RequestContextMiddleware:
    """Expose the current request to code that has no direct access to it"""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        token = request_context.set(Request(scope, receive))
        try:
            await self.app(scope, receive, send)
        finally:
            request_context.reset(token)


def describe_request() -> str:
    """'METHOD /path' of the request being served, for log lines"""
    request = request_context.get()
    if request is None:
        return "<no request>"
    return f"{request.method} {request.url.path}"
