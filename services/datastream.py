"""Data Stream Protocol encoder — Vercel AI SDK UI Message Stream v1.

Encodes paced-delivery events of a tutor turn into the Vercel AI SDK Data
Stream Protocol (SSE format) consumed by ``useChat`` on the frontend.

Each method returns one or more SSE lines: ``"data: {json}\\n\\n"``

Reference: https://ai-sdk.dev/docs/ai-sdk-ui/stream-protocol

Required response header: ``x-vercel-ai-ui-message-stream: v1``
Termination marker: ``data: [DONE]\\n\\n``
"""

from __future__ import annotations

import json
import uuid
from typing import Any

from models.chat import DeliveryEvent

STREAM_HEADERS = {
    "x-vercel-ai-ui-message-stream": "v1",
    "Cache-Control": "no-cache, no-transform",
    "X-Accel-Buffering": "no",
}


class DataStreamEncoder:
    """Encode turn events into Vercel AI SDK Data Stream Protocol.

    Every public method returns a ready-to-yield SSE string.
    """

    @staticmethod
    def _sse(payload: dict[str, Any]) -> str:
        return f"data: {json.dumps(payload, ensure_ascii=False, default=str)}\n\n"

    @staticmethod
    def _id() -> str:
        return uuid.uuid4().hex[:8]

    # ── Message Control ──────────────────────────────────────────

    def start(self, message_id: str | None = None) -> str:
        return self._sse({"type": "start", "messageId": message_id or self._id()})

    def finish(self) -> str:
        return self._sse({"type": "finish"}) + "data: [DONE]\n\n"

    # ── Text ─────────────────────────────────────────────────────

    def text_start(self, text_id: str) -> str:
        return self._sse({"type": "text-start", "id": text_id})

    def text_delta(self, text_id: str, delta: str) -> str:
        return self._sse({"type": "text-delta", "id": text_id, "delta": delta})

    def text_end(self, text_id: str) -> str:
        return self._sse({"type": "text-end", "id": text_id})

    # ── Custom Data ──────────────────────────────────────────────

    def data(self, name: str, payload: Any) -> str:
        return self._sse({"type": f"data-{name}", "data": payload})

    # ── Error ────────────────────────────────────────────────────

    def error(self, text: str) -> str:
        return self._sse({"type": "error", "errorText": text})


# ── Delivery event mapping ───────────────────────────────────────


def map_delivery_event(enc: DataStreamEncoder, text_id: str, event: DeliveryEvent) -> list[str]:
    """Map one paced-delivery event to Data Stream Protocol lines.

    A ``reveal`` becomes a ``text-delta`` carrying only the newly revealed
    unit; ``complete`` closes the text part.
    """
    if event.kind == "reveal":
        return [enc.text_delta(text_id, event.delta)]
    return [enc.text_end(text_id)]
