"""Liveness endpoint."""

from fastapi import APIRouter

from services.chat_surface import get_surface_registry

router = APIRouter()


@router.get("/api/health")
async def health():
    return {"status": "healthy", "openChats": get_surface_registry().size}
