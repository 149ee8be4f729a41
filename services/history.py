"""History query assembly — which messages a viewer may review, grouped into sessions.

Filters applied for a :class:`HistoryQuery`:
- base subject parsed from the compound label, exact class level
- ``created_at`` within ``[start 00:00:00, end 23:59:59]``
- case-insensitive substring match on content (when a search term is given)
- role visibility: students see only their own messages, teachers see
  everyone's except their own

Results are sorted ascending and regrouped from scratch on every load.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import timedelta

from config.settings import get_settings
from models.chat import ChatMessage, Conversation, Participant, ViewerRole
from models.history import DayConversations, HistoryQuery, HistoryResponse, SubjectLabel
from services.row_store import MESSAGES_TABLE, PROFILES_TABLE, RowStore, get_row_store
from services.segmenter import group_conversations_by_date, segment_conversations

logger = logging.getLogger(__name__)

ROLE_QUALIFIERS = ("enseignant", "teacher")

# Trailing class-level tokens: French levels ("5e", "2nde", "1ere",
# "terminale") and English grades ("5th-grade", "grade-5").
_CLASS_LEVEL_RE = re.compile(
    r"(\d+e|2nde|1ere|terminale|\d+(?:st|nd|rd|th)(?:[-\s]grade)?|grade[-\s]?\d+)$",
    re.IGNORECASE,
)


def parse_subject_label(label: str) -> SubjectLabel:
    """Split a label like ``"Teacher Biology 5th-grade"`` into subject and level.

    The leading role qualifier is dropped.  A trailing class-level token wins;
    failing that, the second whitespace-separated token is the level; a single
    unrecognized token leaves the level empty.
    """
    parts = label.split()
    if parts and parts[0].lower() in ROLE_QUALIFIERS:
        parts = parts[1:]
    remainder = " ".join(parts)

    match = _CLASS_LEVEL_RE.search(remainder)
    if match and match.start() > 0:
        base = remainder[: match.start()].strip()
        if base:
            return SubjectLabel(base_subject=base, class_level=match.group(1))

    if len(parts) >= 2:
        return SubjectLabel(base_subject=parts[0], class_level=parts[1])
    return SubjectLabel(base_subject=parts[0] if parts else "", class_level="")


def _visible_to(message_author: str, query: HistoryQuery) -> bool:
    if query.viewer_role == ViewerRole.STUDENT:
        return message_author == query.viewer_id
    return message_author != query.viewer_id


class HistoryQueryAssembler:
    """Loads, filters and groups chat history for one viewer."""

    def __init__(self, store: RowStore | None = None, gap: timedelta | None = None) -> None:
        settings = get_settings()
        self._store = store or get_row_store()
        self._gap = gap or timedelta(minutes=settings.conversation_gap_minutes)

    async def fetch_messages(self, query: HistoryQuery) -> list[ChatMessage]:
        """Messages matching every filter, sorted by ``created_at`` ascending."""
        base_subject = parse_subject_label(query.subject).base_subject
        eq: dict[str, str] = {"subject": base_subject, "class_level": query.class_level}
        if query.viewer_role == ViewerRole.STUDENT:
            eq["author_id"] = query.viewer_id

        rows = await self._store.select(
            MESSAGES_TABLE,
            eq=eq,
            gte={"created_at": query.date_range.lower_bound},
            lte={"created_at": query.date_range.upper_bound},
            order_by="created_at",
            ascending=True,
        )
        logger.info(
            "History rows for subject=%s class=%s role=%s: %d",
            base_subject, query.class_level, query.viewer_role.value, len(rows),
        )

        needle = query.search_term.strip().lower()
        profiles = await self._profiles() if query.viewer_role == ViewerRole.TEACHER else {}

        messages: list[ChatMessage] = []
        for row in rows:
            if not _visible_to(row.get("author_id", ""), query):
                continue
            if needle and needle not in str(row.get("content", "")).lower():
                continue
            messages.append(ChatMessage.from_row(row, author=profiles.get(row.get("author_id", ""))))

        messages.sort(key=lambda m: m.created_at)
        return messages

    async def fetch_conversations(self, query: HistoryQuery) -> list[Conversation]:
        return segment_conversations(await self.fetch_messages(query), self._gap)

    async def fetch_history(self, query: HistoryQuery) -> HistoryResponse:
        """Per-day conversation groups, as shown on the review screens."""
        messages = await self.fetch_messages(query)
        by_day = group_conversations_by_date(messages, self._gap)
        return HistoryResponse(
            subject=parse_subject_label(query.subject).base_subject,
            class_level=query.class_level,
            days=[DayConversations(day=day, conversations=convs) for day, convs in by_day.items()],
            message_count=len(messages),
        )

    async def _profiles(self) -> dict[str, Participant]:
        rows = await self._store.select(PROFILES_TABLE, order_by="created_at", ascending=True)
        return {
            row["id"]: Participant(
                id=row["id"], email=row.get("email"), display_name=row.get("display_name"),
            )
            for row in rows
        }


class HistoryView:
    """One open history screen.

    Each :meth:`refresh` supersedes the previous one: the older load is
    cancelled and, should its result still arrive, it is discarded.
    """

    def __init__(self, assembler: HistoryQueryAssembler) -> None:
        self._assembler = assembler
        self._generation = 0
        self._task: asyncio.Task[HistoryResponse] | None = None
        self.current: HistoryResponse | None = None

    @property
    def generation(self) -> int:
        return self._generation

    async def refresh(self, query: HistoryQuery) -> HistoryResponse | None:
        """Load *query*; returns None when a newer refresh superseded this one."""
        self._generation += 1
        generation = self._generation
        if self._task is not None and not self._task.done():
            self._task.cancel()

        task = asyncio.ensure_future(self._assembler.fetch_history(query))
        self._task = task
        try:
            result = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.debug("History load %d superseded", generation)
                return None
            raise

        if generation != self._generation:
            logger.debug("Discarding stale history load %d (current=%d)", generation, self._generation)
            return None
        self.current = result
        return result

    def close(self) -> None:
        """Cancel an in-flight load, if any; its caller gets None."""
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


# ── View registry ────────────────────────────────────────────


class HistoryViewRegistry:
    """One :class:`HistoryView` per viewer, so a viewer's newer history
    request supersedes their own older one and no one else's."""

    def __init__(self, store: RowStore | None = None) -> None:
        self._store = store
        self._views: dict[str, HistoryView] = {}

    def get(self, viewer_id: str) -> HistoryView:
        """Return the viewer's view, opening it on first use."""
        view = self._views.get(viewer_id)
        if view is None:
            view = HistoryView(HistoryQueryAssembler(self._store))
            self._views[viewer_id] = view
        return view

    def close_all(self) -> None:
        for view in self._views.values():
            view.close()
        self._views.clear()

    @property
    def size(self) -> int:
        return len(self._views)


_views: HistoryViewRegistry | None = None


def get_history_views() -> HistoryViewRegistry:
    global _views
    if _views is None:
        _views = HistoryViewRegistry()
    return _views
