"""FastAPI middleware — Request ID tracking and timing (pure ASGI, streaming-safe)."""

from __future__ import annotations

import logging
import time
import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)


class RequestIdMiddleware:
    """Inject a unique request ID into every HTTP request/response.

    Uses pure ASGI implementation (no BaseHTTPMiddleware) so paced SSE
    responses are not buffered.

    If the client sends ``X-Request-ID``, it is reused; otherwise a short
    UUID is generated.  The ID is returned in the response headers and the
    status plus time-to-first-byte is logged.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = headers.get(b"x-request-id", b"").decode() or str(uuid.uuid4())[:8]

        scope.setdefault("state", {})
        scope["state"]["request_id"] = request_id
        t0 = time.monotonic()

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers
                logger.info(
                    "[%s] %s %s → %d (%.0fms)",
                    request_id, scope.get("method", ""), scope.get("path", ""),
                    message["status"], (time.monotonic() - t0) * 1000,
                )
            await send(message)

        await self.app(scope, receive, send_with_request_id)
