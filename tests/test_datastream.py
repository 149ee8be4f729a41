"""Tests for DataStreamEncoder and map_delivery_event.

Validates that encoded output conforms to the Vercel AI SDK
Data Stream Protocol (UI Message Stream v1).
"""

from __future__ import annotations

import json

from models.chat import DeliveryEvent
from services.datastream import STREAM_HEADERS, DataStreamEncoder, map_delivery_event


# ── Helpers ──────────────────────────────────────────────────────


def _parse_sse(sse_str: str) -> list[dict | str]:
    """Parse an SSE string into a list of payloads (dicts or raw strings)."""
    results = []
    for line in sse_str.strip().split("\n"):
        line = line.strip()
        if not line:
            continue
        if line.startswith("data: "):
            payload = line[len("data: ") :]
            if payload == "[DONE]":
                results.append("[DONE]")
            else:
                results.append(json.loads(payload))
    return results


def _parse_first(sse_str: str) -> dict:
    results = _parse_sse(sse_str)
    assert len(results) >= 1, f"Expected at least one payload, got: {sse_str!r}"
    assert isinstance(results[0], dict), f"Expected dict, got: {results[0]!r}"
    return results[0]


# ── DataStreamEncoder unit tests ─────────────────────────────────


class TestMessageControl:
    def test_start_with_custom_id(self):
        enc = DataStreamEncoder()
        assert _parse_first(enc.start("msg-123")) == {"type": "start", "messageId": "msg-123"}

    def test_start_generates_id(self):
        payload = _parse_first(DataStreamEncoder().start())
        assert payload["type"] == "start"
        assert len(payload["messageId"]) == 8

    def test_finish_includes_done_marker(self):
        payloads = _parse_sse(DataStreamEncoder().finish())
        assert payloads == [{"type": "finish"}, "[DONE]"]


class TestText:
    def test_text_lifecycle(self):
        enc = DataStreamEncoder()
        assert _parse_first(enc.text_start("t-1")) == {"type": "text-start", "id": "t-1"}
        assert _parse_first(enc.text_delta("t-1", "é")) == {"type": "text-delta", "id": "t-1", "delta": "é"}
        assert _parse_first(enc.text_end("t-1")) == {"type": "text-end", "id": "t-1"}

    def test_unicode_not_escaped(self):
        raw = DataStreamEncoder().text_delta("t-1", "théorème")
        assert "théorème" in raw


class TestDataAndError:
    def test_data_message(self):
        payload = _parse_first(DataStreamEncoder().data("message", {"id": "m-1"}))
        assert payload == {"type": "data-message", "data": {"id": "m-1"}}

    def test_error_event(self):
        payload = _parse_first(DataStreamEncoder().error("La requête a pris trop de temps."))
        assert payload == {"type": "error", "errorText": "La requête a pris trop de temps."}


class TestDeliveryMapping:
    def test_reveal_maps_to_delta(self):
        enc = DataStreamEncoder()
        lines = map_delivery_event(enc, "t-1", DeliveryEvent(kind="reveal", content="ab", delta="b"))
        assert [_parse_first(line) for line in lines] == [
            {"type": "text-delta", "id": "t-1", "delta": "b"},
        ]

    def test_complete_maps_to_text_end(self):
        enc = DataStreamEncoder()
        lines = map_delivery_event(enc, "t-1", DeliveryEvent(kind="complete", content="ab"))
        assert [_parse_first(line) for line in lines] == [{"type": "text-end", "id": "t-1"}]


def test_stream_headers():
    assert STREAM_HEADERS["x-vercel-ai-ui-message-stream"] == "v1"
    assert "no-cache" in STREAM_HEADERS["Cache-Control"]
