"""Shared pytest fixtures for the tutor pipeline tests.

Provides:
- ``make_pdf``: build a small PDF in memory, one string per page
- ``FakeCompletionClient``: scripted stand-in for the completion service
- ``row_store`` / ``object_storage``: fresh in-memory collaborators per test
"""

from __future__ import annotations

import asyncio

import fitz
import pytest

from services.object_storage import InMemoryObjectStorage
from services.row_store import InMemoryRowStore


def make_pdf(*pages: str) -> bytes:
    """PDF bytes with one page per argument; an empty string gives a blank page."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


class FakeCompletionClient:
    """Records every request; replies with ``reply`` or raises ``error``.

    ``delay`` is read per call, so a test can slow down one turn and speed
    up the next.
    """

    def __init__(self, reply: str = "Bonjour", *, error: Exception | None = None, delay: float = 0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: list[list[dict[str, str]]] = []
        self.cancelled = 0

    async def complete(self, messages, config):
        self.calls.append(messages)
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def row_store() -> InMemoryRowStore:
    return InMemoryRowStore()


@pytest.fixture
def object_storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest.fixture
def sample_pdf() -> bytes:
    return make_pdf("Photosynthesis converts light energy", "Chlorophyll absorbs red light")
