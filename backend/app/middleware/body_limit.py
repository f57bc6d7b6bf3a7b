"""
Jotter Backend — Request Body Size Limit
========================================

What:  Rejects request bodies larger than max_body_bytes with 413.
How:   A declared Content-Length is checked before anything is read. Bodies
       without one (chunked uploads) are buffered up to the limit while
       counting bytes, then replayed to the application.

Plain ASGI middleware, so the replaying `receive` reaches the route.
"""

import logging
from typing import List

from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware:
    def __init__(self, app: ASGIApp, max_body_bytes: int):
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = Headers(scope=scope).get("content-length")
        if declared is not None:
            try:
                size = int(declared)
            except ValueError:
                size = -1
            if size < 0:
                response = self._reject(400, "invalid_content_length", "Invalid Content-Length header.")
                await response(scope, receive, send)
                return
            if size > self.max_body_bytes:
                await self._too_large(scope, size)(scope, receive, send)
                return
            await self.app(scope, receive, send)
            return

        buffered: List[Message] = []
        size = 0
        while True:
            message = await receive()
            buffered.append(message)
            if message["type"] != "http.request":
                break
            size += len(message.get("body", b""))
            if size > self.max_body_bytes:
                await self._too_large(scope, size)(scope, receive, send)
                return
            if not message.get("more_body", False):
                break

        async def replay() -> Message:
            if buffered:
                return buffered.pop(0)
            return await receive()

        await self.app(scope, replay, send)

    def _too_large(self, scope: Scope, size: int) -> JSONResponse:
        logger.warning(
            "Rejected %s %s: body of at least %d bytes exceeds %d",
            scope.get("method"), scope.get("path"), size, self.max_body_bytes,
        )
        return self._reject(
            413,
            "payload_too_large",
            f"Request body is too large. Maximum size is {self.max_body_bytes} bytes.",
        )

    @staticmethod
    def _reject(status_code: int, error: str, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"error": error, "message": message, "request_id": request_id_var.get("")},
        )
