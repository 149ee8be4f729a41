"""Conversation segmentation — regroup a flat message stream into sessions.

A new conversation starts whenever the gap between two consecutive messages
is strictly greater than the inactivity threshold.  Input order is trusted:
the caller sorts by timestamp before segmenting.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

from models.chat import ChatMessage, Conversation

CONVERSATION_BREAK_THRESHOLD = timedelta(minutes=30)


def segment_conversations(
    messages: Iterable[ChatMessage],
    gap: timedelta = CONVERSATION_BREAK_THRESHOLD,
) -> list[Conversation]:
    """Group time-ordered messages into conversations in one linear pass."""
    conversations: list[Conversation] = []
    current: list[ChatMessage] = []
    previous: ChatMessage | None = None

    for message in messages:
        if previous is not None and message.created_at - previous.created_at > gap:
            conversations.append(Conversation.from_messages(current))
            current = []
        current.append(message)
        previous = message

    if current:
        conversations.append(Conversation.from_messages(current))
    return conversations


def group_conversations_by_date(
    messages: Iterable[ChatMessage],
    gap: timedelta = CONVERSATION_BREAK_THRESHOLD,
) -> dict[date, list[Conversation]]:
    """Bucket messages by calendar day, then segment each day on its own.

    Days appear in first-seen order, which is chronological for sorted input.
    """
    by_day: dict[date, list[ChatMessage]] = {}
    for message in messages:
        by_day.setdefault(message.created_at.date(), []).append(message)
    return {day: segment_conversations(day_messages, gap) for day, day_messages in by_day.items()}
