"""Explicit cancellation token shared by every suspend point of a chat turn.

A token is created per turn and passed by reference through the PDF fetch,
the completion request and paced delivery.  Cancelling it makes the next
check (or the in-flight awaited step) raise :class:`TurnCancelled`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, TypeVar

from errors.exceptions import TurnCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """One-shot cancellation signal."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TurnCancelled()

    async def guard(self, aw: Awaitable[T]) -> T:
        """Await *aw*, abandoning it as soon as the token is cancelled.

        The awaited step is cancelled (not merely ignored) so an in-flight
        HTTP request is torn down promptly.
        """
        self.raise_if_cancelled()
        work = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work.done():
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        logger.debug("Turn step abandoned after cancellation")
        raise TurnCancelled()
