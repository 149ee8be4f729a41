"""Resource library endpoints — list, upload, delete and download PDFs."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from api.deps import Viewer, get_viewer
from errors.exceptions import ExtractionError, ResourceAccessError, StoreError, UploadValidationError
from models.resource import ResourceSummary
from services.resources import ResourceLibrary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/resources", tags=["resources"])


@router.get("", response_model=list[ResourceSummary])
async def list_resources(
    subject: str = Query(..., min_length=1),
    class_level: str = Query(..., alias="classLevel"),
    viewer: Viewer = Depends(get_viewer),
):
    try:
        resources = await ResourceLibrary().list_resources(subject, class_level)
    except StoreError as exc:
        logger.error("Failed to load resources: %s", exc)
        raise HTTPException(status_code=502, detail="Failed to load resources")
    return [ResourceSummary.from_resource(r) for r in resources]


@router.post("", response_model=ResourceSummary, status_code=201)
async def upload_resource(
    subject: str = Form(...),
    class_level: str = Form(..., alias="classLevel"),
    description: str = Form(""),
    file: UploadFile = File(...),
    viewer: Viewer = Depends(get_viewer),
):
    """Upload a PDF to the class library (text is extracted at upload time)."""
    data = await file.read()
    try:
        resource = await ResourceLibrary().upload(
            filename=file.filename or "document.pdf",
            content_type=file.content_type or "",
            data=data,
            subject=subject,
            class_level=class_level,
            uploaded_by=viewer.id,
            description=description,
        )
    except UploadValidationError as exc:
        raise HTTPException(status_code=422, detail={"kind": exc.kind, "message": str(exc)})
    except ExtractionError as exc:
        raise HTTPException(status_code=422, detail={"kind": exc.kind, "message": str(exc)})
    except StoreError as exc:
        logger.error("Resource upload failed: %s", exc)
        raise HTTPException(status_code=502, detail="Upload failed")
    return ResourceSummary.from_resource(resource)


@router.delete("/{resource_id}")
async def delete_resource(resource_id: str, viewer: Viewer = Depends(get_viewer)):
    library = ResourceLibrary()
    resource = await library.get(resource_id)
    if resource is None:
        raise HTTPException(status_code=404, detail="Resource not found")
    try:
        await library.delete(resource, viewer.id)
    except ResourceAccessError as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    except StoreError as exc:
        logger.error("Resource delete failed: %s", exc)
        raise HTTPException(status_code=502, detail="Delete failed")
    return {"deleted": True}


@router.get("/{resource_id}/download")
async def download_resource(resource_id: str, viewer: Viewer = Depends(get_viewer)):
    library = ResourceLibrary()
    resource = await library.get(resource_id)
    if resource is None:
        raise HTTPException(status_code=404, detail="Resource not found")
    return {"url": library.download_url(resource)}
