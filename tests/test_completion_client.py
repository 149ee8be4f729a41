"""Tests for services/completion_client.py — LiteLLM completion wrapper."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import litellm
import pytest

from config.llm_config import LLMConfig
from config.settings import get_settings
from errors.exceptions import TIMEOUT_MESSAGE, UPSTREAM_MESSAGE, OrchestratorError
from services.completion_client import CompletionClient

MESSAGES = [
    {"role": "system", "content": "Vous êtes un assistant pédagogique spécialisé en Biologie."},
    {"role": "user", "content": "Qu'est-ce que la photosynthèse ?"},
]


def _response(content):
    message = SimpleNamespace(role="assistant", content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="stop")])


def _client() -> CompletionClient:
    return CompletionClient(base_url="https://llm.test/v1", api_key="sk-test", timeout=30.0)


@pytest.mark.asyncio
async def test_request_shape_and_reply():
    with patch("services.completion_client.litellm.acompletion", new_callable=AsyncMock) as acompletion:
        acompletion.return_value = _response("La photosynthèse est...")
        reply = await _client().complete(MESSAGES, get_settings().get_default_llm_config())

    assert reply == "La photosynthèse est..."
    kwargs = acompletion.await_args.kwargs
    assert kwargs["messages"] == MESSAGES
    assert kwargs["model"] == "deepseek/deepseek-chat"
    assert kwargs["api_base"] == "https://llm.test/v1"
    assert kwargs["api_key"] == "sk-test"
    assert kwargs["timeout"] == 30.0
    assert kwargs["stream"] is False
    assert kwargs["max_retries"] == 0
    assert kwargs["temperature"] == 1.2
    assert kwargs["max_tokens"] == 3000
    assert kwargs["top_p"] == 0.9
    assert kwargs["presence_penalty"] == 0.0
    assert kwargs["frequency_penalty"] == 0.0


@pytest.mark.asyncio
async def test_none_fields_left_out():
    with patch("services.completion_client.litellm.acompletion", new_callable=AsyncMock) as acompletion:
        acompletion.return_value = _response("ok")
        await _client().complete(MESSAGES, LLMConfig(model="openai/m"))

    kwargs = acompletion.await_args.kwargs
    assert set(kwargs) == {"model", "messages", "api_base", "api_key", "timeout", "max_retries", "stream"}


@pytest.mark.asyncio
async def test_provider_error_is_upstream_with_detail():
    error = litellm.RateLimitError(message="Rate limit reached", llm_provider="deepseek", model="deepseek-chat")
    with patch("services.completion_client.litellm.acompletion", new_callable=AsyncMock, side_effect=error):
        with pytest.raises(OrchestratorError) as exc_info:
            await _client().complete(MESSAGES, LLMConfig(model="deepseek/deepseek-chat"))

    assert exc_info.value.kind == "upstream"
    assert "Rate limit reached" in exc_info.value.detail
    assert exc_info.value.user_message == UPSTREAM_MESSAGE


@pytest.mark.asyncio
async def test_connection_error_is_upstream():
    error = litellm.APIConnectionError(message="connection refused", llm_provider="deepseek", model="deepseek-chat")
    with patch("services.completion_client.litellm.acompletion", new_callable=AsyncMock, side_effect=error):
        with pytest.raises(OrchestratorError) as exc_info:
            await _client().complete(MESSAGES, LLMConfig(model="deepseek/deepseek-chat"))
    assert exc_info.value.kind == "upstream"
    assert "connection refused" in exc_info.value.detail


@pytest.mark.asyncio
async def test_provider_timeout_maps_to_timeout():
    error = litellm.Timeout(message="Request timed out", model="deepseek-chat", llm_provider="deepseek")
    with patch("services.completion_client.litellm.acompletion", new_callable=AsyncMock, side_effect=error):
        with pytest.raises(OrchestratorError) as exc_info:
            await _client().complete(MESSAGES, LLMConfig(model="deepseek/deepseek-chat"))
    assert exc_info.value.kind == "timeout"
    assert exc_info.value.user_message == TIMEOUT_MESSAGE


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        SimpleNamespace(choices=[]),
        SimpleNamespace(choices=[SimpleNamespace(message=None)]),
        _response(""),
        _response(None),
        SimpleNamespace(result="no choices"),
    ],
)
async def test_missing_reply_is_malformed(response):
    with patch("services.completion_client.litellm.acompletion", new_callable=AsyncMock, return_value=response):
        with pytest.raises(OrchestratorError) as exc_info:
            await _client().complete(MESSAGES, LLMConfig(model="m"))
    assert exc_info.value.kind == "malformed_response"


def test_defaults_come_from_settings():
    settings = get_settings()
    client = CompletionClient()
    assert client.base_url == settings.completion_base_url
