"""Conversation history endpoints — review past sessions per subject and class."""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError

from api.deps import Viewer, get_viewer
from config.settings import get_settings
from errors.exceptions import StoreError
from models.history import DateRange, HistoryQuery, HistoryResponse, SubjectLabel
from services.history import get_history_views, parse_subject_label

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/history", tags=["history"])


@router.get("", response_model=HistoryResponse)
async def get_history(
    subject: str = Query(..., min_length=1),
    class_level: str = Query("", alias="classLevel"),
    start: date | None = Query(None),
    end: date | None = Query(None),
    search: str = Query(""),
    viewer: Viewer = Depends(get_viewer),
):
    """Conversations grouped by day for the viewer's role.

    Students see their own messages; teachers see their learners' messages.
    The date range defaults to the last 30 days.  A newer request from the
    same viewer supersedes this one, which then answers 409.
    """
    settings = get_settings()
    label = parse_subject_label(subject)
    default = DateRange.last_days(settings.history_default_days)
    try:
        date_range = DateRange(start=start or default.start, end=end or default.end)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid date range: {exc.errors()[0]['msg']}")

    query = HistoryQuery(
        subject=label.base_subject,
        class_level=class_level or label.class_level,
        viewer_role=viewer.role,
        viewer_id=viewer.id,
        date_range=date_range,
        search_term=search,
    )
    try:
        result = await get_history_views().get(viewer.id).refresh(query)
    except StoreError as exc:
        logger.error("History load failed: %s", exc)
        raise HTTPException(status_code=502, detail="History temporarily unavailable")
    if result is None:
        raise HTTPException(status_code=409, detail="Superseded by a newer history request")
    return result


@router.get("/subject", response_model=SubjectLabel)
async def parse_subject(label: str = Query(..., min_length=1)):
    """Show how a compound subject label is split (used by the dashboards)."""
    return parse_subject_label(label)
