"""Reusable completion sampling parameters.

LLMConfig is a standalone Pydantic model that can be:
- embedded in Settings as the global default,
- passed to the orchestrator for surface-specific tuning,
- merged with per-call overrides.

Priority chain (low → high):
    .env global defaults  →  orchestrator-level LLMConfig  →  per-call overrides
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """Completion sampling parameters.

    All fields are optional.  ``None`` means "use the service's default"
    and the field is left out of the request body.
    """

    model: str | None = Field(default=None, description="Completion model identifier")
    max_tokens: int | None = Field(default=None, description="Max tokens to generate")
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    presence_penalty: float | None = Field(default=None, ge=-2.0, le=2.0)
    frequency_penalty: float | None = Field(
        default=None, ge=-2.0, le=2.0, description="OpenAI-style frequency penalty"
    )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def merge(self, overrides: LLMConfig) -> LLMConfig:
        """Return a new LLMConfig: *self* as base, *overrides* wins on non-None fields."""
        base = self.model_dump(exclude_none=True)
        over = overrides.model_dump(exclude_none=True)
        base.update(over)
        return LLMConfig(**base)

    def to_litellm_kwargs(self) -> dict:
        """Convert to ``litellm.acompletion()`` keyword arguments (``model`` excluded)."""
        kw: dict = {}
        for field in (
            "temperature",
            "max_tokens",
            "top_p",
            "presence_penalty",
            "frequency_penalty",
        ):
            val = getattr(self, field)
            if val is not None:
                kw[field] = val
        return kw
