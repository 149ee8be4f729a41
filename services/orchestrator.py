"""Completion orchestration — one grounded tutor turn.

Steps for :meth:`CompletionOrchestrator.complete`:

1. Resolve the subject's system prompt.
2. If a resource path is given, fetch the PDF through a short-lived signed
   URL and extract its text.  Any failure here degrades the turn to an
   ungrounded answer with a notice; it never aborts the turn.
3. Send a single non-streaming completion request.

Steps 2-3 share one time budget (60 s by default).  A cancellation token,
when given, is observed at every suspend point.
"""

from __future__ import annotations

import asyncio
import logging
import time

from config.llm_config import LLMConfig
from config.prompts.tutor import build_subject_prompt
from config.settings import get_settings
from errors.exceptions import OrchestratorError, TurnCancelled
from models.chat import PromptContext
from services.cancellation import CancellationToken
from services.completion_client import CompletionClient, get_completion_client
from services.concurrency import rate_limited_call
from services.object_storage import ObjectStorage, get_object_storage
from services.pdf_extractor import extract_pdf_text_async

logger = logging.getLogger(__name__)


class CompletionOrchestrator:
    """Builds grounded prompts and runs them against the completion service.

    Accepts an optional :class:`LLMConfig` merged on top of the global
    sampling defaults from Settings.
    """

    def __init__(
        self,
        client: CompletionClient | None = None,
        storage: ObjectStorage | None = None,
        config: LLMConfig | None = None,
        timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self._client = client or get_completion_client()
        self._storage = storage or get_object_storage()
        self._config = settings.get_default_llm_config()
        if config:
            self._config = self._config.merge(config)
        self._timeout = timeout if timeout is not None else settings.completion_timeout
        self._signed_url_ttl = settings.signed_url_ttl
        self._language_arts = settings.language_arts_subjects

    @property
    def config(self) -> LLMConfig:
        return self._config

    async def complete(
        self,
        subject: str,
        user_message: str,
        resource_path: str | None = None,
        token: CancellationToken | None = None,
    ) -> str:
        """Run one turn and return the assistant's full reply.

        Raises:
            OrchestratorError: ``timeout``, ``upstream`` or ``malformed_response``.
            TurnCancelled: the token was cancelled before the reply arrived.
        """
        token = token or CancellationToken()
        t0 = time.monotonic()
        try:
            reply = await asyncio.wait_for(
                self._run(subject, user_message, resource_path, token),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                "Completion turn exceeded %.0fs budget (subject=%s, grounded=%s)",
                self._timeout, subject, bool(resource_path),
            )
            raise OrchestratorError("timeout", f"exceeded {self._timeout:.0f}s") from exc

        logger.info(
            "Completion turn done in %.0fms (subject=%s, %d chars)",
            (time.monotonic() - t0) * 1000, subject, len(reply),
        )
        return reply

    async def build_prompt(
        self,
        subject: str,
        user_message: str,
        resource_path: str | None = None,
        token: CancellationToken | None = None,
    ) -> PromptContext:
        """Compose the prompt, fetching grounding text when a document is attached."""
        token = token or CancellationToken()
        context = PromptContext(
            subject_prompt=build_subject_prompt(subject, self._language_arts),
            user_message=user_message,
        )
        if not resource_path:
            return context

        try:
            context.grounding_text = await token.guard(self.fetch_grounding(resource_path))
        except TurnCancelled:
            raise
        except Exception as exc:
            logger.warning("Grounding unavailable for %s: %s", resource_path, exc)
            context.grounding_failed = True
        return context

    async def fetch_grounding(self, resource_path: str) -> str:
        """Signed URL → download → text extraction."""
        signed_url = await self._storage.create_signed_url(resource_path, self._signed_url_ttl)
        data = await self._storage.download_signed(signed_url)
        text = await extract_pdf_text_async(data)
        logger.info("Grounding text for %s: %d chars", resource_path, len(text))
        return text

    async def _run(
        self,
        subject: str,
        user_message: str,
        resource_path: str | None,
        token: CancellationToken,
    ) -> str:
        context = await self.build_prompt(subject, user_message, resource_path, token)
        token.raise_if_cancelled()
        return await token.guard(
            rate_limited_call(self._client.complete, context.to_messages(), self._config)
        )
