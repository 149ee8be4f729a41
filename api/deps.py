"""Request-scoped dependencies shared by the routers.

Viewer identity is trusted from the upstream auth gateway, which sets
``X-User-Id`` and ``X-User-Role`` on every proxied request.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header, HTTPException

from models.chat import ViewerRole


@dataclass(frozen=True)
class Viewer:
    id: str
    role: ViewerRole


def _normalize(raw: str | None) -> str:
    if raw is None:
        return ""
    value = raw.strip()
    if value.lower() in ("", "null", "undefined", "none"):
        return ""
    return value


async def get_viewer(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Viewer:
    user_id = _normalize(x_user_id)
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id")
    try:
        role = ViewerRole(_normalize(x_user_role).lower() or ViewerRole.STUDENT.value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown role: {x_user_role}")
    return Viewer(id=user_id, role=role)
