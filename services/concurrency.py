"""Concurrency controls for completion calls and chat-turn endpoints.

Caps the number of *concurrent* outbound completion requests per worker
process with an ``asyncio.Semaphore``, and rejects chat turns with 503 when
the worker is already streaming too many.

All middleware uses pure ASGI implementation (not BaseHTTPMiddleware)
to preserve SSE streaming compatibility.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Callable, TypeVar

from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ── Completion semaphore ─────────────────────────────────────

_MAX_CONCURRENT_COMPLETIONS = 10
_completion_semaphore: asyncio.Semaphore | None = None


def _get_semaphore() -> asyncio.Semaphore:
    """Lazy-init to ensure semaphore is bound to the running event loop."""
    global _completion_semaphore
    if _completion_semaphore is None:
        _completion_semaphore = asyncio.Semaphore(_MAX_CONCURRENT_COMPLETIONS)
        logger.info(
            "Completion concurrency semaphore initialized (max=%d)", _MAX_CONCURRENT_COMPLETIONS,
        )
    return _completion_semaphore


async def rate_limited_call(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    **kwargs: Any,
) -> T:
    """Execute an async completion function with concurrency limiting.

    Usage::

        reply = await rate_limited_call(client.complete, messages, config)
    """
    async with _get_semaphore():
        return await func(*args, **kwargs)


# ── Chat-turn concurrency middleware (pure ASGI) ─────────────
# Turns hold a connection open for the whole paced reply, so they are
# capped per worker.  Requests over the limit get 503 instead of queuing.

_MAX_CONCURRENT_TURNS = 15
_turn_semaphore: asyncio.Semaphore | None = None

_TURN_PATH = re.compile(r"^/api/chat/[^/]+/messages$")


def _get_turn_semaphore() -> asyncio.Semaphore:
    global _turn_semaphore
    if _turn_semaphore is None:
        _turn_semaphore = asyncio.Semaphore(_MAX_CONCURRENT_TURNS)
        logger.info("Chat turn semaphore initialized (max=%d)", _MAX_CONCURRENT_TURNS)
    return _turn_semaphore


class ConcurrencyLimitMiddleware:
    """Pure ASGI middleware — reject chat turns when the worker is at capacity.

    Returns HTTP 503 with Retry-After header.  Every other endpoint passes
    through unaffected.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("method") != "POST":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        if not _TURN_PATH.match(path):
            await self.app(scope, receive, send)
            return

        sem = _get_turn_semaphore()

        if sem.locked():
            logger.warning("Concurrency limit reached for %s — returning 503", path)
            body = json.dumps(
                {"detail": "Server busy — too many concurrent requests. Please retry."}
            ).encode()
            await send({
                "type": "http.response.start",
                "status": 503,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"retry-after", b"5"),
                ],
            })
            await send({
                "type": "http.response.body",
                "body": body,
            })
            return

        async with sem:
            await self.app(scope, receive, send)
