"""Tests for services/orchestrator.py — grounded completion turns."""

import asyncio

import pytest

from config.llm_config import LLMConfig
from config.prompts.tutor import LANGUAGE_ARTS_ADDENDUM, build_subject_prompt
from errors.exceptions import OrchestratorError, TurnCancelled
from services.cancellation import CancellationToken
from services.orchestrator import CompletionOrchestrator
from tests.conftest import FakeCompletionClient, make_pdf


@pytest.fixture
def client():
    return FakeCompletionClient("Voici la réponse.")


@pytest.fixture
def orchestrator(client, object_storage):
    return CompletionOrchestrator(client=client, storage=object_storage, timeout=1.0)


# ---------------------------------------------------------------------------
# Prompt composition
# ---------------------------------------------------------------------------


def test_language_arts_subject_gets_addendum():
    assert build_subject_prompt("Français 5e", ("Français",)).endswith(LANGUAGE_ARTS_ADDENDUM)
    assert LANGUAGE_ARTS_ADDENDUM not in build_subject_prompt("Biologie 5e", ("Français",))


def test_subject_is_embedded():
    prompt = build_subject_prompt("Biologie")
    assert "spécialisé en Biologie" in prompt
    assert "Ne discuter que des sujets liés à Biologie" in prompt


@pytest.mark.asyncio
async def test_ungrounded_turn(orchestrator, client):
    reply = await orchestrator.complete("Biologie 5e", "Qu'est-ce qu'une cellule ?")

    assert reply == "Voici la réponse."
    (messages,) = client.calls
    assert [m["role"] for m in messages] == ["system", "user"]
    assert "Biologie 5e" in messages[0]["content"]
    assert messages[1]["content"] == "Qu'est-ce qu'une cellule ?"


@pytest.mark.asyncio
async def test_grounded_turn(orchestrator, client, object_storage, sample_pdf):
    await object_storage.upload("temp/1_cours_pdf", sample_pdf)

    await orchestrator.complete("Biologie", "Résume le document", "temp/1_cours_pdf")

    user_content = client.calls[0][1]["content"]
    assert user_content.startswith("Contenu du document PDF:")
    assert "Photosynthesis converts light energy" in user_content
    assert user_content.endswith("Question de l'utilisateur:\nRésume le document")


@pytest.mark.asyncio
async def test_missing_document_degrades(orchestrator, client):
    reply = await orchestrator.complete("Biologie", "Résume le document", "temp/missing.pdf")

    assert reply == "Voici la réponse."
    user_content = client.calls[0][1]["content"]
    assert user_content.startswith("Note: Je n'ai pas pu accéder")
    assert user_content.endswith("Question originale:\nRésume le document")


@pytest.mark.asyncio
async def test_unreadable_document_degrades(orchestrator, client, object_storage):
    await object_storage.upload("temp/empty.pdf", make_pdf(""))

    context = await orchestrator.build_prompt("Biologie", "Résume", "temp/empty.pdf")

    assert context.grounding_failed
    assert context.grounding_text is None


@pytest.mark.asyncio
async def test_expired_signed_url_degrades(client, object_storage, sample_pdf):
    await object_storage.upload("doc.pdf", sample_pdf)
    orchestrator = CompletionOrchestrator(client=client, storage=object_storage)
    orchestrator._signed_url_ttl = -1

    context = await orchestrator.build_prompt("Biologie", "Résume", "doc.pdf")
    assert context.grounding_failed


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_upstream_error_propagates(object_storage):
    client = FakeCompletionClient(error=OrchestratorError("upstream", "boom"))
    orchestrator = CompletionOrchestrator(client=client, storage=object_storage)

    with pytest.raises(OrchestratorError) as exc_info:
        await orchestrator.complete("Biologie", "Bonjour")
    assert exc_info.value.kind == "upstream"


@pytest.mark.asyncio
async def test_budget_exceeded_is_timeout(object_storage):
    client = FakeCompletionClient(delay=5)
    orchestrator = CompletionOrchestrator(client=client, storage=object_storage, timeout=0.05)

    with pytest.raises(OrchestratorError) as exc_info:
        await orchestrator.complete("Biologie", "Bonjour")
    assert exc_info.value.kind == "timeout"


@pytest.mark.asyncio
async def test_cancelled_token_abandons_request(object_storage):
    client = FakeCompletionClient(delay=5)
    orchestrator = CompletionOrchestrator(client=client, storage=object_storage, timeout=10)
    token = CancellationToken()

    task = asyncio.create_task(orchestrator.complete("Biologie", "Bonjour", token=token))
    while not client.calls:
        await asyncio.sleep(0)
    token.cancel()

    with pytest.raises(TurnCancelled):
        await task
    assert client.cancelled == 1


@pytest.mark.asyncio
async def test_pre_cancelled_token_sends_nothing(orchestrator, client):
    token = CancellationToken()
    token.cancel()
    with pytest.raises(TurnCancelled):
        await orchestrator.complete("Biologie", "Bonjour", token=token)
    assert client.calls == []


def test_config_overrides_merge(client, object_storage):
    orchestrator = CompletionOrchestrator(
        client=client, storage=object_storage, config=LLMConfig(temperature=0.3),
    )
    assert orchestrator.config.temperature == 0.3
    assert orchestrator.config.max_tokens == 3000
    assert orchestrator.config.model == "deepseek/deepseek-chat"
