"""Chat models — messages, derived conversations and per-turn prompt context.

Defines the records consumed and produced by the tutor pipeline:
- ``ChatMessage``: one persisted (or in-flight) chat message
- ``Conversation``: a derived run of messages with no long inactivity gap
- ``PromptContext``: the per-turn system prompt + grounding + question
- ``DeliveryEvent``: one step of paced delivery
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import Field, computed_field

from config.prompts.tutor import DEGRADED_MESSAGE, GROUNDED_MESSAGE
from models.base import CamelModel


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ViewerRole(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_message_id() -> str:
    return uuid.uuid4().hex


class Participant(CamelModel):
    """Author profile attached to messages in teacher views."""

    id: str
    email: str | None = None
    display_name: str | None = None


class ChatMessage(CamelModel):
    """A single chat message.

    ``streaming`` is in-memory only: it is true while paced delivery is still
    revealing ``content`` and is never written to the row store.
    """

    id: str = Field(default_factory=generate_message_id)
    author_id: str
    role: MessageRole
    content: str
    subject: str = ""
    class_level: str = ""
    topics: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    resource_path: str | None = None
    author: Participant | None = None
    streaming: bool = False

    def to_row(self) -> dict[str, Any]:
        """Serialize for the ``chat_messages`` table (snake_case, no profile)."""
        row = self.model_dump(exclude={"author", "streaming"})
        row["role"] = self.role.value
        if row.get("resource_path") is None:
            row.pop("resource_path", None)
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any], author: Participant | None = None) -> ChatMessage:
        return cls.model_validate({**row, "author": author})


class Conversation(CamelModel):
    """A maximal run of messages with no gap above the inactivity threshold.

    Derived on every read; never persisted.  ``id`` is the first message's id.
    """

    id: str
    messages: list[ChatMessage]
    start_time: datetime
    resource_path: str | None = None
    author_email: str | None = None
    author_name: str | None = None

    @computed_field
    @property
    def message_count(self) -> int:
        return len(self.messages)

    @classmethod
    def from_messages(cls, messages: list[ChatMessage]) -> Conversation:
        """Build a conversation whose identity comes from its first message."""
        first = messages[0]
        return cls(
            id=first.id,
            messages=list(messages),
            start_time=first.created_at,
            resource_path=first.resource_path,
            author_email=first.author.email if first.author else None,
            author_name=first.author.display_name if first.author else None,
        )


class PromptContext(CamelModel):
    """Everything sent upstream for one completion turn."""

    subject_prompt: str
    grounding_text: str | None = None
    grounding_failed: bool = False
    user_message: str

    def render_user_content(self) -> str:
        """User-role content: the question, prefixed by document text when grounded.

        When a document was requested but could not be read, the question is
        wrapped in a notice telling the model grounding is unavailable.
        """
        if self.grounding_text:
            return GROUNDED_MESSAGE.format(
                document=self.grounding_text, question=self.user_message,
            )
        if self.grounding_failed:
            return DEGRADED_MESSAGE.format(question=self.user_message)
        return self.user_message

    def to_messages(self) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": self.subject_prompt},
            {"role": "user", "content": self.render_user_content()},
        ]


class DeliveryEvent(CamelModel):
    """One step of paced delivery.

    ``reveal`` events carry the revealed prefix; the single ``complete`` event
    carries the full text and is distinct from the last reveal.
    """

    kind: Literal["reveal", "complete"]
    content: str
    delta: str = ""
