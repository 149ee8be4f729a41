"""Resource library — PDFs shared per subject and class level.

Upload validates the file (PDF only, 50 MB max), extracts its text for later
grounding, stores the object under ``subject/class/<ms>_<safe name>`` and
records a row.  Only the uploader may delete a resource.
"""

from __future__ import annotations

import logging
import re
import time

from config.settings import get_settings
from errors.exceptions import ResourceAccessError, UploadValidationError
from models.resource import Resource
from services.object_storage import ObjectStorage, get_object_storage
from services.pdf_extractor import extract_pdf_text_async
from services.row_store import RESOURCES_TABLE, RowStore, get_row_store

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"


def validate_pdf_upload(content_type: str, size: int, max_bytes: int | None = None) -> None:
    """Reject non-PDF or oversized uploads before they reach storage."""
    limit = max_bytes if max_bytes is not None else get_settings().max_upload_bytes
    if content_type != PDF_MIME:
        raise UploadValidationError("bad_file_type", "Seuls les fichiers PDF sont acceptés")
    if size > limit:
        raise UploadValidationError(
            "too_large",
            f"La taille du fichier ne doit pas dépasser {limit // (1024 * 1024)}MB",
        )


def _slug(value: str, keep: str = "") -> str:
    return re.sub(r"_+", "_", re.sub(rf"[^a-z0-9{re.escape(keep)}]", "_", value.lower()))


def resource_file_path(filename: str, subject: str, class_level: str, now_ms: int | None = None) -> str:
    """Storage path ``subject/class/<ms>_<name>`` with unsafe characters replaced."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{_slug(subject)}/{_slug(class_level)}/{stamp}_{_slug(filename, keep='.')}"


def temp_file_path(filename: str, now_ms: int | None = None) -> str:
    """Storage path for a PDF attached directly inside a chat."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"temp/{stamp}_{re.sub(r'[^a-z0-9]', '_', filename.lower())}"


class ResourceLibrary:
    """CRUD over the ``resources`` table and its stored files."""

    def __init__(self, store: RowStore | None = None, storage: ObjectStorage | None = None) -> None:
        self._store = store or get_row_store()
        self._storage = storage or get_object_storage()

    async def list_resources(self, subject: str, class_level: str) -> list[Resource]:
        """Resources for one subject/class, newest first."""
        rows = await self._store.select(
            RESOURCES_TABLE,
            eq={"subject": subject, "class_level": class_level},
            order_by="created_at",
            ascending=False,
        )
        return [Resource.model_validate(row) for row in rows]

    async def get(self, resource_id: str) -> Resource | None:
        rows = await self._store.select(RESOURCES_TABLE, eq={"id": resource_id})
        return Resource.model_validate(rows[0]) if rows else None

    async def upload(
        self,
        *,
        filename: str,
        content_type: str,
        data: bytes,
        subject: str,
        class_level: str,
        uploaded_by: str,
        description: str = "",
    ) -> Resource:
        """Validate, extract, store and record one PDF.

        Raises:
            UploadValidationError: wrong content type or too large.
            ExtractionError: the PDF has no readable text.
        """
        validate_pdf_upload(content_type, len(data))
        path = resource_file_path(filename, subject, class_level)
        extracted = await extract_pdf_text_async(data)

        await self._storage.upload(path, data, content_type)
        resource = Resource(
            name=filename,
            description=description,
            file_path=path,
            subject=subject,
            class_level=class_level,
            uploaded_by=uploaded_by,
            extracted_text=extracted,
        )
        stored = await self._store.insert(RESOURCES_TABLE, resource.to_row())
        logger.info("Resource uploaded: %s → %s (%d chars)", filename, path, len(extracted))
        return Resource.model_validate(stored)

    async def delete(self, resource: Resource, user_id: str) -> None:
        """Remove the stored file, then the row.  Uploader only."""
        if resource.uploaded_by != user_id:
            raise ResourceAccessError(resource.id, user_id)
        await self._storage.remove([resource.file_path])
        await self._store.delete(RESOURCES_TABLE, eq={"id": resource.id})
        logger.info("Resource deleted: %s (%s)", resource.id, resource.file_path)

    def download_url(self, resource: Resource) -> str:
        return self._storage.get_public_url(resource.file_path)
