"""Paced delivery — reveal an already-complete reply as if it were typed live.

The completion service answers atomically.  ``DeliverySession`` holds the
full text and exposes it as an async stream of growing prefixes, one unit per
fixed delay, so the UI can show a typing effect and a provisional indicator
until the distinct ``complete`` event arrives.

Cancellation is checked before every pacing delay: once the token fires no
further reveal is emitted and the ``complete`` event never is.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable

from models.chat import DeliveryEvent
from services.cancellation import CancellationToken

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 0.02


class DeliverySession:
    """Pacing state for one completion reply."""

    def __init__(
        self,
        full_text: str,
        token: CancellationToken | None = None,
        *,
        delay: float = DEFAULT_DELAY_SECONDS,
        chunk_size: int = 1,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.full_text = full_text
        self.revealed_length = 0
        self._token = token or CancellationToken()
        self._delay = delay
        self._chunk_size = chunk_size
        self._completed = False

    @property
    def cancelled(self) -> bool:
        return self._token.is_cancelled()

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def revealed(self) -> str:
        return self.full_text[: self.revealed_length]

    async def events(self) -> AsyncIterator[DeliveryEvent]:
        """Yield one ``reveal`` per unit, then a single ``complete``."""
        total = len(self.full_text)
        while self.revealed_length < total:
            if self._token.is_cancelled():
                logger.debug("Delivery cancelled at %d/%d chars", self.revealed_length, total)
                return
            await asyncio.sleep(self._delay)
            # The token may have fired while we slept.
            if self._token.is_cancelled():
                logger.debug("Delivery cancelled at %d/%d chars", self.revealed_length, total)
                return
            start = self.revealed_length
            self.revealed_length = min(start + self._chunk_size, total)
            yield DeliveryEvent(
                kind="reveal",
                content=self.full_text[: self.revealed_length],
                delta=self.full_text[start: self.revealed_length],
            )

        if self._token.is_cancelled():
            return
        self._completed = True
        yield DeliveryEvent(kind="complete", content=self.full_text)

    async def deliver(
        self,
        on_reveal: Callable[[str], Awaitable[None] | None],
        on_complete: Callable[[], Awaitable[None] | None] | None = None,
    ) -> bool:
        """Callback form of :meth:`events`.  Returns True when fully delivered."""
        async for event in self.events():
            if event.kind == "reveal":
                result = on_reveal(event.content)
            elif on_complete is not None:
                result = on_complete()
            else:
                result = None
            if asyncio.iscoroutine(result):
                await result
        return self._completed
