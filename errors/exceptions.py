"""Domain-specific exceptions for the tutor pipeline.

These exceptions let the chat surface and API layers distinguish between
failure modes and respond with the right SSE event or HTTP status.  None of
them is fatal: every failure path returns control to the caller.
"""

from __future__ import annotations

from typing import Literal

ExtractionKind = Literal["empty", "decode"]
OrchestratorKind = Literal["timeout", "upstream", "malformed_response"]
UploadKind = Literal["bad_file_type", "too_large"]

TIMEOUT_MESSAGE = "La requête a pris trop de temps. Veuillez réessayer."
UPSTREAM_MESSAGE = (
    "Une erreur est survenue lors de la communication avec l'assistant. "
    "Veuillez réessayer."
)


class ExtractionError(Exception):
    """A PDF could not be turned into text.

    ``kind`` is ``"decode"`` when the document structure is unreadable and
    ``"empty"`` when it decoded but carries no text layer.
    """

    def __init__(self, kind: ExtractionKind, message: str = "") -> None:
        self.kind = kind
        super().__init__(message or f"PDF extraction failed: {kind}")


class OrchestratorError(Exception):
    """A completion turn failed.

    Carries the upstream ``detail`` when one is available and a
    ``user_message`` suitable for showing in the chat.
    """

    def __init__(self, kind: OrchestratorKind, detail: str = "") -> None:
        self.kind = kind
        self.detail = detail
        self.user_message = TIMEOUT_MESSAGE if kind == "timeout" else UPSTREAM_MESSAGE
        suffix = f": {detail}" if detail else ""
        super().__init__(f"Completion {kind}{suffix}")


class UploadValidationError(Exception):
    """An uploaded file was rejected before reaching storage."""

    def __init__(self, kind: UploadKind, message: str) -> None:
        self.kind = kind
        super().__init__(message)


class TurnCancelled(Exception):
    """The chat turn was superseded or the surface was closed."""


class StoreError(Exception):
    """The row store or object storage was unreachable or returned a non-2xx response.

    ``status_code`` is 0 when no response arrived (connection or timeout failure).
    """

    def __init__(self, status_code: int, detail: str, url: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        self.url = url
        super().__init__(f"Store {status_code}: {detail} ({url})")


class ResourceAccessError(Exception):
    """A viewer tried to modify a resource they did not upload."""

    def __init__(self, resource_id: str, user_id: str) -> None:
        self.resource_id = resource_id
        self.user_id = user_id
        super().__init__(f"User '{user_id}' may not modify resource '{resource_id}'")
