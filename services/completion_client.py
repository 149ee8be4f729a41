"""Completion service client powered by LiteLLM.

The model name carries the provider prefix LiteLLM routes on
(``deepseek/deepseek-chat``, ``openai/gpt-4o-mini``); ``completion_base_url``
and ``completion_api_key`` point it at the configured endpoint.

Every turn is one non-streaming call with one system + one user message.
The reply must be ``choices[0].message.content``; anything else is reported
as ``malformed_response``.

No retries: a failed turn is reported to the user, who resubmits.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import litellm

from config.llm_config import LLMConfig
from config.settings import get_settings
from errors.exceptions import OrchestratorError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
_client: CompletionClient | None = None

MAX_DETAIL_CHARS = 500

# Provider failures reported to the user as "upstream".  ``litellm.Timeout``
# subclasses the connection error, so it is caught first.
UPSTREAM_ERRORS = (
    litellm.APIConnectionError,
    litellm.APIError,
    litellm.AuthenticationError,
    litellm.BadRequestError,
    litellm.NotFoundError,
    litellm.RateLimitError,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
)


class CompletionClient:
    """Thin wrapper around ``litellm.acompletion()`` for one configured endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = base_url if base_url is not None else settings.completion_base_url
        self._api_key = api_key if api_key is not None else settings.completion_api_key
        self._timeout = timeout if timeout is not None else settings.completion_timeout

    @property
    def base_url(self) -> str:
        return self._base_url

    async def complete(self, messages: list[dict[str, str]], config: LLMConfig) -> str:
        """Send one non-streaming completion request and return the reply text.

        Raises:
            OrchestratorError: ``timeout`` when the provider call times out,
                ``upstream`` on a provider or network failure,
                ``malformed_response`` when the reply field is missing.
        """
        kwargs: dict[str, Any] = {
            "model": config.model,
            "messages": messages,
            "api_base": self._base_url or None,
            "api_key": self._api_key or None,
            "timeout": self._timeout,
            "max_retries": 0,
            "stream": False,
            **config.to_litellm_kwargs(),
        }

        t0 = time.monotonic()
        try:
            response = await litellm.acompletion(**kwargs)
        except litellm.Timeout as exc:
            logger.warning("Completion request timed out after %.0fms", (time.monotonic() - t0) * 1000)
            raise OrchestratorError("timeout", _error_detail(exc)) from exc
        except UPSTREAM_ERRORS as exc:
            detail = _error_detail(exc)
            logger.error("Completion service error (%s): %s", type(exc).__name__, detail)
            raise OrchestratorError("upstream", detail) from exc

        logger.info(
            "Completion → ok (%.0fms, model=%s)", (time.monotonic() - t0) * 1000, config.model,
        )
        return _reply_content(response)


def _error_detail(exc: Exception) -> str:
    """Upstream error message carried by a LiteLLM exception."""
    message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
    return str(message)[:MAX_DETAIL_CHARS]


def _reply_content(response: Any) -> str:
    """Pull ``choices[0].message.content`` out of a completion response."""
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, KeyError, TypeError) as exc:
        raise OrchestratorError("malformed_response", "missing choices[0].message.content") from exc
    if not isinstance(content, str) or not content:
        raise OrchestratorError("malformed_response", "empty choices[0].message.content")
    return content


# ---------------------------------------------------------------------------
# Singleton accessor
# ---------------------------------------------------------------------------

def get_completion_client() -> CompletionClient:
    """Return the module-level CompletionClient singleton (create if needed)."""
    global _client
    if _client is None:
        _client = CompletionClient()
    return _client
