"""Custom exception hierarchy for the tutor service."""

from errors.exceptions import (
    ExtractionError,
    OrchestratorError,
    ResourceAccessError,
    StoreError,
    TurnCancelled,
    UploadValidationError,
)

__all__ = [
    "ExtractionError",
    "OrchestratorError",
    "ResourceAccessError",
    "StoreError",
    "TurnCancelled",
    "UploadValidationError",
]
