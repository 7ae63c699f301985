"""
Cross-cutting HTTP middleware: request size limit and secure response headers.
No business logic here.
"""
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from resource_server.errors import MaxUploadSizeExceededError

SECURE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-XSS-Protection": "1; mode=block",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds secure HTTP headers to every response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        for header_name, header_value in SECURE_HEADERS.items():
            response.headers[header_name] = header_value
        return response


class UploadLimitMiddleware:
    """
    Rejects request bodies larger than max_upload_size with MaxUploadSizeExceededError.
    Content-Length is checked up front; chunked bodies are counted as they are read.
    """

    def __init__(self, app: ASGIApp, max_upload_size: int):
        self.app = app
        self.max_upload_size = max_upload_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self.max_upload_size < 0:
            await self.app(scope, receive, send)
            return

        for name, value in scope.get("headers", []):
            if name == b"content-length":
                try:
                    declared = int(value)
                except ValueError:
                    break
                if declared > self.max_upload_size:
                    raise MaxUploadSizeExceededError(self.max_upload_size)
                break

        received = 0

        async def receive_wrapper() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_upload_size:
                    raise MaxUploadSizeExceededError(self.max_upload_size)
            return message

        await self.app(scope, receive_wrapper, send)
