"""Chat surface — the in-memory buffer behind one open tutor chat.

Owns the visible message list and the single outstanding turn.  Submitting a
new message cancels any pending turn first (last writer wins), then:

1. the user message is appended and persisted with its topics,
2. a provisional assistant message (``streaming=True``) is appended,
3. the orchestrator produces the full reply,
4. paced delivery grows the provisional message one unit at a time,
5. on completion the message is marked final and persisted.

All buffer mutations happen in the surface's own coroutine.
"""

from __future__ import annotations

import logging
import uuid
from typing import AsyncIterator

from config.prompts.tutor import APOLOGY_MESSAGE, PDF_SUMMARY_REQUEST, PDF_UPLOADED_NOTE
from config.settings import get_settings
from errors.exceptions import OrchestratorError, StoreError, TurnCancelled
from models.chat import ChatMessage, DeliveryEvent, MessageRole
from services.cancellation import CancellationToken
from services.delivery import DeliverySession
from services.history import parse_subject_label
from services.object_storage import ObjectStorage, get_object_storage
from services.orchestrator import CompletionOrchestrator
from services.resources import temp_file_path, validate_pdf_upload
from services.row_store import MESSAGES_TABLE, RowStore, get_row_store
from services.topic_extractor import extract_topics

logger = logging.getLogger(__name__)


class TurnEvent:
    """What a turn stream yields: a delivery step or a user-facing error.

    ``message`` is the assistant message the event applies to.
    """

    __slots__ = ("message", "delivery", "error")

    def __init__(
        self,
        message: ChatMessage,
        delivery: DeliveryEvent | None = None,
        error: str | None = None,
    ) -> None:
        self.message = message
        self.delivery = delivery
        self.error = error

    @property
    def final(self) -> bool:
        return self.error is not None or (
            self.delivery is not None and self.delivery.kind == "complete"
        )


class ChatSurface:
    """One chat window: subject label, author, optional grounding document."""

    def __init__(
        self,
        subject: str,
        author_id: str,
        orchestrator: CompletionOrchestrator,
        *,
        resource_path: str | None = None,
        store: RowStore | None = None,
        storage: ObjectStorage | None = None,
        delay: float | None = None,
        chunk_size: int | None = None,
    ) -> None:
        settings = get_settings()
        self.id = f"chat-{uuid.uuid4().hex[:12]}"
        self.subject = subject
        self.author_id = author_id
        self.resource_path = resource_path
        self.messages: list[ChatMessage] = []
        self._orchestrator = orchestrator
        self._store = store or get_row_store()
        self._storage = storage or get_object_storage()
        self._delay = delay if delay is not None else settings.delivery_delay_ms / 1000
        self._chunk_size = chunk_size or settings.delivery_chunk_size
        self._token: CancellationToken | None = None

        label = parse_subject_label(subject)
        self.base_subject = label.base_subject
        self.class_level = label.class_level

    @property
    def busy(self) -> bool:
        return self._token is not None and not self._token.is_cancelled()

    def cancel_pending(self) -> None:
        """Cancel the outstanding turn, if any."""
        if self._token is not None:
            self._token.cancel()
            self._token = None

    def close(self) -> None:
        self.cancel_pending()

    # -- turns ---------------------------------------------------------------

    async def submit(self, text: str) -> ChatMessage | None:
        """Run a full turn; returns the final assistant message.

        On failure that is the apology message.  Returns None if the turn
        was superseded before completing.
        """
        reply: ChatMessage | None = None
        async for event in self.stream(text):
            if event.final:
                reply = event.message
        return reply

    async def stream(self, text: str) -> AsyncIterator[TurnEvent]:
        """Run a turn, yielding each delivery step as it is revealed."""
        text = text.strip()
        if not text:
            return

        self.cancel_pending()
        token = CancellationToken()
        self._token = token

        user_message = self._new_message(MessageRole.USER, text)
        self.messages.append(user_message)
        await self._persist(user_message)

        provisional = self._new_message(MessageRole.ASSISTANT, "")
        provisional.streaming = True
        self.messages.append(provisional)

        try:
            reply = await self._orchestrator.complete(
                self.subject, text, self.resource_path, token,
            )
        except TurnCancelled:
            logger.info("Turn superseded on %s before reply arrived", self.id)
            self._drop(provisional)
            return
        except OrchestratorError as exc:
            logger.warning("Turn failed on %s: %s", self.id, exc)
            self._drop(provisional)
            apology = self._new_message(MessageRole.ASSISTANT, APOLOGY_MESSAGE)
            self.messages.append(apology)
            self._release(token)
            yield TurnEvent(apology, error=exc.user_message)
            return

        session = DeliverySession(reply, token, delay=self._delay, chunk_size=self._chunk_size)
        async for event in session.events():
            if event.kind == "reveal":
                provisional.content = event.content
            else:
                provisional.streaming = False
            yield TurnEvent(provisional, delivery=event)

        if not session.completed:
            logger.info("Delivery cancelled on %s at %d/%d chars", self.id, session.revealed_length, len(reply))
            return

        await self._persist(provisional)
        self._release(token)

    # -- attachments ---------------------------------------------------------

    async def attach_pdf(self, filename: str, content_type: str, data: bytes) -> str:
        """Upload a PDF for grounding later turns; returns the suggested question.

        Raises:
            UploadValidationError: wrong content type or too large.
            StoreError: the object storage rejected the upload.
        """
        validate_pdf_upload(content_type, len(data))
        path = temp_file_path(filename)
        await self._storage.upload(path, data, content_type)
        self.resource_path = path
        self.messages.append(
            self._new_message(MessageRole.USER, PDF_UPLOADED_NOTE.format(filename=filename))
        )
        logger.info("PDF attached to %s: %s (%d bytes)", self.id, path, len(data))
        return PDF_SUMMARY_REQUEST

    # -- internals -----------------------------------------------------------

    def _new_message(self, role: MessageRole, content: str) -> ChatMessage:
        return ChatMessage(
            author_id=self.author_id,
            role=role,
            content=content,
            subject=self.base_subject,
            class_level=self.class_level,
            resource_path=self.resource_path,
        )

    async def _persist(self, message: ChatMessage) -> None:
        """Save with topics; a store failure is logged, not shown to the user."""
        if not message.topics:
            message.topics = extract_topics(message.content)
        try:
            await self._store.insert(MESSAGES_TABLE, message.to_row())
        except StoreError as exc:
            logger.error("Failed to save %s message on %s: %s", message.role.value, self.id, exc)

    def _drop(self, message: ChatMessage) -> None:
        if message in self.messages:
            self.messages.remove(message)

    def _release(self, token: CancellationToken) -> None:
        if self._token is token:
            self._token = None


# ── Surface registry ─────────────────────────────────────────


class ChatSurfaceRegistry:
    """Open chat surfaces keyed by id (one per browser chat window)."""

    def __init__(self) -> None:
        self._surfaces: dict[str, ChatSurface] = {}

    def get(self, surface_id: str) -> ChatSurface | None:
        return self._surfaces.get(surface_id)

    def add(self, surface: ChatSurface) -> ChatSurface:
        self._surfaces[surface.id] = surface
        return surface

    def close(self, surface_id: str) -> bool:
        surface = self._surfaces.pop(surface_id, None)
        if surface is None:
            return False
        surface.close()
        return True

    def close_all(self) -> None:
        for surface in self._surfaces.values():
            surface.close()
        self._surfaces.clear()

    @property
    def size(self) -> int:
        return len(self._surfaces)


_registry: ChatSurfaceRegistry | None = None


def get_surface_registry() -> ChatSurfaceRegistry:
    global _registry
    if _registry is None:
        _registry = ChatSurfaceRegistry()
    return _registry
