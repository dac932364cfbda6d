"""
Request body size limit middleware.

Rejects oversized bodies before rate limiting, auth or JSON parsing runs.
Declared sizes are checked up front; chunked bodies are counted as they
stream in and reading stops at the first chunk past the limit.
"""
import logging

from fastapi import status
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from core.config import settings
from core.exceptions import PayloadTooLargeError, error_response, render_api_exception

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware:
    """Return 413 when the request body exceeds ``settings.MAX_BODY_BYTES``."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        limit = settings.MAX_BODY_BYTES

        content_length = self._header(scope, b"content-length")
        if content_length is not None:
            try:
                declared = int(content_length)
            except ValueError:
                response = error_response(status.HTTP_400_BAD_REQUEST, "Invalid Content-Length header")
                await response(scope, receive, send)
                return
            if declared > limit:
                self._log_rejection(scope, declared, limit)
                await render_api_exception(PayloadTooLargeError(limit))(scope, receive, send)
                return

        received = 0
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    self._log_rejection(scope, received, limit)
                    raise PayloadTooLargeError(limit)
            return message

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, tracking_send)
        except PayloadTooLargeError as exc:
            # Routes turn this into a 413 through the exception handlers; this
            # covers anything that read the body outside the router.
            if response_started:
                raise
            await render_api_exception(exc)(scope, receive, send)

    @staticmethod
    def _header(scope: Scope, name: bytes):
        for key, value in scope.get("headers", []):
            if key.lower() == name:
                return value.decode("latin-1")
        return None

    @staticmethod
    def _log_rejection(scope: Scope, size: int, limit: int) -> None:
        path = scope.get("path", "")
        logger.warning(
            f"Rejected oversized body: {scope.get('method')} {path}",
            extra={"extra_fields": {"path": path, "size": size, "limit": limit}},
        )
