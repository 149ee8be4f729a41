"""History models — query filters and grouped conversation views."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from pydantic import Field, model_validator

from models.base import CamelModel
from models.chat import Conversation, ViewerRole


class SubjectLabel(CamelModel):
    """A compound subject label split into its parts."""

    base_subject: str
    class_level: str = ""


class DateRange(CamelModel):
    """Inclusive calendar-day range, compared against UTC timestamps."""

    start: date
    end: date

    @model_validator(mode="after")
    def _check_order(self) -> DateRange:
        if self.end < self.start:
            raise ValueError("date range end precedes start")
        return self

    @classmethod
    def last_days(cls, days: int, today: date | None = None) -> DateRange:
        today = today or datetime.now(timezone.utc).date()
        return cls(start=today - timedelta(days=days), end=today)

    @property
    def lower_bound(self) -> datetime:
        return datetime.combine(self.start, time(0, 0, 0), tzinfo=timezone.utc)

    @property
    def upper_bound(self) -> datetime:
        return datetime.combine(self.end, time(23, 59, 59), tzinfo=timezone.utc)


class HistoryQuery(CamelModel):
    """Filters for one history view load."""

    subject: str
    class_level: str
    viewer_role: ViewerRole
    viewer_id: str
    date_range: DateRange
    search_term: str = ""


class DayConversations(CamelModel):
    """Conversations that started on one calendar day."""

    day: date
    conversations: list[Conversation] = Field(default_factory=list)


class HistoryResponse(CamelModel):
    subject: str
    class_level: str
    days: list[DayConversations] = Field(default_factory=list)
    message_count: int = 0
