"""Tests for the row store and object storage collaborators."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from errors.exceptions import StoreError
from services.object_storage import RestObjectStorage
from services.rest_client import RestClient
from services.row_store import MESSAGES_TABLE, RestRowStore


def _rest(handler) -> RestClient:
    return RestClient(base_url="https://db.test", service_key="svc-key", transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_memory_select_filters_and_orders(row_store):
    for i, author in enumerate(["a", "b", "a"]):
        await row_store.insert("t", {"id": i, "author": author, "n": i})

    rows = await row_store.select("t", eq={"author": "a"}, order_by="n", ascending=False)
    assert [r["id"] for r in rows] == [2, 0]

    rows = await row_store.select("t", gte={"n": 1}, lte={"n": 1})
    assert [r["id"] for r in rows] == [1]

    assert await row_store.delete("t", eq={"author": "a"}) == 2
    assert [r["id"] for r in await row_store.select("t")] == [1]


@pytest.mark.asyncio
async def test_memory_select_orders_rows_missing_the_column(row_store):
    await row_store.insert("profiles", {"id": "p1", "created_at": "2026-03-02"})
    await row_store.insert("profiles", {"id": "p2"})
    await row_store.insert("profiles", {"id": "p3", "created_at": "2026-03-01"})
    await row_store.insert("profiles", {"id": "p4", "created_at": None})

    rows = await row_store.select("profiles", order_by="created_at")
    assert [r["id"] for r in rows][:2] == ["p3", "p1"]
    assert {r["id"] for r in rows[2:]} == {"p2", "p4"}

    rows = await row_store.select("profiles", order_by="created_at", ascending=False)
    assert {r["id"] for r in rows[:2]} == {"p2", "p4"}
    assert [r["id"] for r in rows][2:] == ["p1", "p3"]


@pytest.mark.asyncio
async def test_memory_storage_signed_urls(object_storage):
    await object_storage.upload("a/b.pdf", b"%PDF")
    with pytest.raises(StoreError):
        await object_storage.upload("a/b.pdf", b"%PDF")

    url = await object_storage.create_signed_url("a/b.pdf", 60)
    assert await object_storage.download_signed(url) == b"%PDF"

    with pytest.raises(StoreError):
        await object_storage.create_signed_url("missing.pdf", 60)
    with pytest.raises(StoreError):
        await object_storage.download_signed("memory://resource-files/sign/a/b.pdf?token=forged")


# ---------------------------------------------------------------------------
# REST
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_rest_select_builds_postgrest_query():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, json=[{"id": "m1"}])

    client = _rest(handler)
    rows = await RestRowStore(client).select(
        MESSAGES_TABLE,
        eq={"subject": "Biologie"},
        gte={"created_at": datetime(2026, 3, 1, tzinfo=timezone.utc)},
        order_by="created_at",
    )
    await client.close()

    request = seen["request"]
    assert rows == [{"id": "m1"}]
    assert request.url.path == "/rest/v1/chat_messages"
    params = request.url.params
    assert params["subject"] == "eq.Biologie"
    assert params["created_at"] == "gte.2026-03-01T00:00:00+00:00"
    assert params["order"] == "created_at.asc"
    assert request.headers["apikey"] == "svc-key"
    assert request.headers["authorization"] == "Bearer svc-key"


@pytest.mark.asyncio
async def test_rest_insert_serializes_datetimes():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=[seen["body"]])

    client = _rest(handler)
    stored = await RestRowStore(client).insert(
        MESSAGES_TABLE, {"id": "m1", "created_at": datetime(2026, 3, 1, tzinfo=timezone.utc)},
    )
    await client.close()

    assert seen["body"]["created_at"].startswith("2026-03-01T00:00:00")
    assert stored["id"] == "m1"


@pytest.mark.asyncio
async def test_rest_error_raises_store_error():
    client = _rest(lambda request: httpx.Response(409, text="duplicate"))
    with pytest.raises(StoreError) as exc_info:
        await RestRowStore(client).insert("resources", {"id": "r1"})
    await client.close()
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_rest_signed_url_and_download():
    def handler(request):
        if request.url.path != "/storage/v1/object/sign/resource-files/temp/1_a_pdf":
            return httpx.Response(404)
        if request.method == "POST":
            assert json.loads(request.content) == {"expiresIn": 60}
            return httpx.Response(200, json={"signedURL": "/object/sign/resource-files/temp/1_a_pdf?token=abc"})
        if request.url.params.get("token") == "abc":
            return httpx.Response(200, content=b"%PDF-1.7")
        return httpx.Response(404)

    client = _rest(handler)
    storage = RestObjectStorage(client, "resource-files")
    url = await storage.create_signed_url("temp/1_a_pdf", 60)
    data = await storage.download_signed(url)
    await client.close()

    assert url == "https://db.test/storage/v1/object/sign/resource-files/temp/1_a_pdf?token=abc"
    assert data == b"%PDF-1.7"
    assert storage.get_public_url("temp/1_a_pdf") == (
        "https://db.test/storage/v1/object/public/resource-files/temp/1_a_pdf"
    )


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


@pytest.mark.asyncio
async def test_rest_connection_failure_raises_store_error():
    client = _rest(_unreachable)
    with pytest.raises(StoreError) as exc_info:
        await RestRowStore(client).select(MESSAGES_TABLE, eq={"subject": "Biologie"})
    assert exc_info.value.status_code == 0
    assert "connection refused" in exc_info.value.detail

    with pytest.raises(StoreError):
        await client.get_absolute("https://db.test/storage/v1/object/sign/resource-files/a.pdf?token=t")
    await client.close()
