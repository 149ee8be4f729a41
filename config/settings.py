"""Pydantic Settings — typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from config.llm_config import LLMConfig


class Settings(BaseSettings):
    """Application configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    service_port: int = 5000
    cors_origins: list[str] = ["*"]
    debug: bool = False

    # ── Completion service ───────────────────────────────────
    completion_base_url: str = "https://api.deepseek.com/v1"
    completion_api_key: str = ""
    completion_model: str = "deepseek/deepseek-chat"  # LiteLLM provider/model
    completion_timeout: float = 60.0  # seconds, covers PDF fetch + completion

    # ── Sampling defaults ────────────────────────────────────
    temperature: float | None = 1.2
    top_p: float | None = 0.9
    max_tokens: int | None = 3000
    presence_penalty: float | None = 0.0
    frequency_penalty: float | None = 0.0

    # ── Grounding ────────────────────────────────────────────
    signed_url_ttl: int = 60  # seconds
    language_arts_subjects: list[str] = ["Français", "French"]

    # ── Paced delivery ───────────────────────────────────────
    delivery_delay_ms: int = 20
    delivery_chunk_size: int = 1

    # ── History ──────────────────────────────────────────────
    conversation_gap_minutes: int = 30
    history_default_days: int = 30

    # ── Uploads / storage ────────────────────────────────────
    max_upload_bytes: int = 50 * 1024 * 1024
    storage_bucket: str = "resource-files"
    store_backend: str = "memory"  # "memory" or "rest"
    store_base_url: str = ""  # e.g. https://<project>.supabase.co
    store_service_key: str = ""
    store_timeout: int = 15  # seconds

    # ── Helpers ───────────────────────────────────────────────

    def get_default_llm_config(self) -> LLMConfig:
        """Build an :class:`LLMConfig` from global .env defaults."""
        return LLMConfig(
            model=self.completion_model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            top_p=self.top_p,
            presence_penalty=self.presence_penalty,
            frequency_penalty=self.frequency_penalty,
        )


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for application settings."""
    return Settings()
