"""Shared httpx client for the Supabase-compatible storage and row-store REST APIs.

Both collaborators live behind one base URL and authenticate with the same
service key, so they share a single connection pool.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from config.settings import get_settings
from errors.exceptions import StoreError

logger = logging.getLogger(__name__)

_client: RestClient | None = None


class RestClient:
    """Async HTTP client with service-key auth and request timing logs."""

    def __init__(
        self,
        base_url: str | None = None,
        service_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url if base_url is not None else settings.store_base_url).rstrip("/")
        self._service_key = service_key if service_key is not None else settings.store_service_key
        self._timeout = settings.store_timeout
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers=self._auth_headers(),
            transport=self._transport,
        )
        logger.info("RestClient started — base_url=%s", self._base_url)

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            logger.info("RestClient closed")

    # -- public API ----------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json_body: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send one request; raise :class:`StoreError` on non-2xx or transport failure."""
        client = await self._ensure_started()
        t0 = time.monotonic()
        try:
            response = await client.request(
                method, path, params=params, json=json_body, content=content, headers=headers,
            )
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise StoreError(0, str(exc) or type(exc).__name__, path) from exc
        elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info("%s %s → %d (%.0fms)", method, path, response.status_code, elapsed_ms)

        if not response.is_success:
            detail = response.text[:500] if response.text else f"HTTP {response.status_code}"
            raise StoreError(response.status_code, detail, str(response.url))
        return response

    async def get_absolute(self, url: str) -> bytes:
        """GET a fully-qualified URL (e.g. a signed download link)."""
        client = await self._ensure_started()
        try:
            response = await client.get(url)
        except httpx.TransportError as exc:
            logger.warning("GET %s failed: %s", url, exc)
            raise StoreError(0, str(exc) or type(exc).__name__, url) from exc
        if not response.is_success:
            raise StoreError(response.status_code, f"HTTP {response.status_code}", url)
        return response.content

    # -- internals -----------------------------------------------------------

    def _auth_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._service_key:
            headers["apikey"] = self._service_key
            headers["Authorization"] = f"Bearer {self._service_key}"
        return headers

    async def _ensure_started(self) -> httpx.AsyncClient:
        if self._http is None:
            await self.start()
        return self._http  # type: ignore[return-value]


def get_rest_client() -> RestClient:
    """Return the module-level RestClient singleton (create if needed)."""
    global _client
    if _client is None:
        _client = RestClient()
    return _client
