"""Tutor chat endpoints — open a surface, send turns, attach PDFs.

Each turn streams its paced reply as a Vercel AI SDK Data Stream Protocol
SSE response.  Sending a new turn on a surface cancels the pending one.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import Field
from starlette.responses import StreamingResponse

from api.deps import Viewer, get_viewer
from errors.exceptions import StoreError, UploadValidationError
from models.base import CamelModel
from models.chat import ChatMessage
from services.chat_surface import ChatSurface, get_surface_registry
from services.datastream import STREAM_HEADERS, DataStreamEncoder, map_delivery_event
from services.orchestrator import CompletionOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


class OpenChatRequest(CamelModel):
    subject: str = Field(min_length=1)
    resource_path: str | None = None


class OpenChatResponse(CamelModel):
    surface_id: str
    base_subject: str
    class_level: str


class TurnRequest(CamelModel):
    message: str = Field(min_length=1)


class AttachmentResponse(CamelModel):
    resource_path: str
    suggested_message: str


class SurfaceMessages(CamelModel):
    surface_id: str
    messages: list[ChatMessage]


def _surface_for(surface_id: str, viewer: Viewer) -> ChatSurface:
    surface = get_surface_registry().get(surface_id)
    if surface is None or surface.author_id != viewer.id:
        raise HTTPException(status_code=404, detail="Chat not found")
    return surface


@router.post("", response_model=OpenChatResponse)
async def open_chat(req: OpenChatRequest, viewer: Viewer = Depends(get_viewer)):
    """Open a chat surface for a subject, optionally grounded in a resource."""
    surface = ChatSurface(
        req.subject,
        viewer.id,
        CompletionOrchestrator(),
        resource_path=req.resource_path,
    )
    get_surface_registry().add(surface)
    logger.info("Opened %s for %s (subject=%s)", surface.id, viewer.id, req.subject)
    return OpenChatResponse(
        surface_id=surface.id,
        base_subject=surface.base_subject,
        class_level=surface.class_level,
    )


@router.get("/{surface_id}", response_model=SurfaceMessages)
async def get_chat(surface_id: str, viewer: Viewer = Depends(get_viewer)):
    surface = _surface_for(surface_id, viewer)
    return SurfaceMessages(surface_id=surface.id, messages=surface.messages)


@router.delete("/{surface_id}")
async def close_chat(surface_id: str, viewer: Viewer = Depends(get_viewer)):
    """Close a surface, cancelling any turn still in flight."""
    _surface_for(surface_id, viewer)
    get_surface_registry().close(surface_id)
    return {"closed": True}


@router.post("/{surface_id}/messages")
async def send_message(surface_id: str, req: TurnRequest, viewer: Viewer = Depends(get_viewer)):
    """Send a user turn; the reply is streamed as paced text deltas.

    Required frontend: ``useChat`` with ``x-vercel-ai-ui-message-stream: v1``.
    """
    surface = _surface_for(surface_id, viewer)
    return StreamingResponse(
        _turn_stream_generator(surface, req.message),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )


async def _turn_stream_generator(surface: ChatSurface, message: str) -> AsyncGenerator[str, None]:
    enc = DataStreamEncoder()
    text_id = f"text-{enc._id()}"
    started = False
    text_open = False

    yield enc.start()
    async for event in surface.stream(message):
        if not started:
            yield enc.data("message", {"id": event.message.id})
            if event.delivery is not None:
                yield enc.text_start(text_id)
                text_open = True
            started = True
        if event.error is not None:
            yield enc.error(event.error)
            continue
        if event.delivery is not None:
            for line in map_delivery_event(enc, text_id, event.delivery):
                yield line
            if event.delivery.kind == "complete":
                text_open = False
    # A superseded turn stops mid-reveal; the text part still has to be closed.
    if text_open:
        yield enc.text_end(text_id)
    yield enc.finish()


@router.post("/{surface_id}/attachments", response_model=AttachmentResponse)
async def attach_pdf(
    surface_id: str,
    file: UploadFile = File(...),
    viewer: Viewer = Depends(get_viewer),
):
    """Upload a PDF that grounds the following turns of this chat."""
    surface = _surface_for(surface_id, viewer)
    data = await file.read()
    try:
        suggested = await surface.attach_pdf(
            file.filename or "document.pdf",
            file.content_type or "",
            data,
        )
    except UploadValidationError as exc:
        raise HTTPException(status_code=422, detail={"kind": exc.kind, "message": str(exc)})
    except StoreError as exc:
        logger.error("Attachment upload failed on %s: %s", surface_id, exc)
        raise HTTPException(status_code=502, detail="Erreur lors du téléchargement du PDF. Veuillez réessayer.")
    return AttachmentResponse(resource_path=surface.resource_path or "", suggested_message=suggested)
