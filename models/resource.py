"""Resource library records — PDFs teachers share with a class."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import Field

from models.base import CamelModel


class Resource(CamelModel):
    """One uploaded document, keyed by ``(subject, class_level)``."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    description: str = ""
    file_path: str
    subject: str
    class_level: str
    uploaded_by: str
    extracted_text: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_row(self) -> dict[str, Any]:
        return self.model_dump()


class ResourceSummary(CamelModel):
    """Resource as listed to clients (without the extracted text body)."""

    id: str
    name: str
    description: str = ""
    file_path: str
    uploaded_by: str
    created_at: datetime
    has_text: bool = False

    @classmethod
    def from_resource(cls, resource: Resource) -> ResourceSummary:
        return cls(
            id=resource.id,
            name=resource.name,
            description=resource.description,
            file_path=resource.file_path,
            uploaded_by=resource.uploaded_by,
            created_at=resource.created_at,
            has_text=bool(resource.extracted_text),
        )
