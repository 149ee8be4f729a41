"""Row store collaborator — chat messages, resources and profiles.

Exposes equality / range filters with ordering by one column, which is all
the history and resource views need.  Ships an in-memory implementation and
a PostgREST (Supabase) implementation.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any

from pydantic_core import to_jsonable_python

from services.rest_client import RestClient, get_rest_client

logger = logging.getLogger(__name__)

MESSAGES_TABLE = "chat_messages"
RESOURCES_TABLE = "resources"
PROFILES_TABLE = "profiles"

Row = dict[str, Any]


# ── Abstract Interface ───────────────────────────────────────


class RowStore(ABC):
    """Abstract table store."""

    @abstractmethod
    async def insert(self, table: str, row: Row) -> Row:
        """Insert one row and return it as stored."""
        ...

    @abstractmethod
    async def select(
        self,
        table: str,
        *,
        eq: dict[str, Any] | None = None,
        gte: dict[str, Any] | None = None,
        lte: dict[str, Any] | None = None,
        order_by: str | None = None,
        ascending: bool = True,
    ) -> list[Row]:
        """Return rows matching every filter, optionally ordered by one column."""
        ...

    @abstractmethod
    async def delete(self, table: str, *, eq: dict[str, Any]) -> int:
        """Delete rows matching *eq*.  Returns count removed."""
        ...


# ── In-Memory Implementation ────────────────────────────────


class InMemoryRowStore(RowStore):
    """List-per-table store.  Suitable for tests and single-instance dev."""

    def __init__(self) -> None:
        self._tables: dict[str, list[Row]] = {}

    async def insert(self, table: str, row: Row) -> Row:
        stored = dict(row)
        self._tables.setdefault(table, []).append(stored)
        return dict(stored)

    async def select(
        self,
        table: str,
        *,
        eq: dict[str, Any] | None = None,
        gte: dict[str, Any] | None = None,
        lte: dict[str, Any] | None = None,
        order_by: str | None = None,
        ascending: bool = True,
    ) -> list[Row]:
        rows = [
            dict(r) for r in self._tables.get(table, [])
            if _matches(r, eq or {}, gte or {}, lte or {})
        ]
        if order_by:
            # Missing values sort last ascending, first descending (PostgreSQL default).
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by)), reverse=not ascending)
        return rows

    async def delete(self, table: str, *, eq: dict[str, Any]) -> int:
        rows = self._tables.get(table, [])
        kept = [r for r in rows if not _matches(r, eq, {}, {})]
        removed = len(rows) - len(kept)
        self._tables[table] = kept
        return removed


def _matches(row: Row, eq: dict[str, Any], gte: dict[str, Any], lte: dict[str, Any]) -> bool:
    if any(row.get(k) != v for k, v in eq.items()):
        return False
    if any(row.get(k) is None or row[k] < v for k, v in gte.items()):
        return False
    if any(row.get(k) is None or row[k] > v for k, v in lte.items()):
        return False
    return True


# ── PostgREST Implementation ─────────────────────────────────


class RestRowStore(RowStore):
    """Supabase PostgREST tables over the shared :class:`RestClient`."""

    def __init__(self, client: RestClient) -> None:
        self._client = client

    def _path(self, table: str) -> str:
        return f"/rest/v1/{table}"

    async def insert(self, table: str, row: Row) -> Row:
        response = await self._client.request(
            "POST",
            self._path(table),
            json_body=to_jsonable_python(row),
            headers={"Prefer": "return=representation"},
        )
        body = response.json()
        return body[0] if isinstance(body, list) and body else row

    async def select(
        self,
        table: str,
        *,
        eq: dict[str, Any] | None = None,
        gte: dict[str, Any] | None = None,
        lte: dict[str, Any] | None = None,
        order_by: str | None = None,
        ascending: bool = True,
    ) -> list[Row]:
        params = [("select", "*")]
        params += _filters("eq", eq)
        params += _filters("gte", gte)
        params += _filters("lte", lte)
        if order_by:
            params.append(("order", f"{order_by}.{'asc' if ascending else 'desc'}"))
        response = await self._client.request("GET", self._path(table), params=params)
        return response.json() or []

    async def delete(self, table: str, *, eq: dict[str, Any]) -> int:
        response = await self._client.request(
            "DELETE",
            self._path(table),
            params=_filters("eq", eq),
            headers={"Prefer": "return=representation"},
        )
        body = response.json() if response.content else []
        return len(body) if isinstance(body, list) else 0


def _filters(op: str, values: dict[str, Any] | None) -> list[tuple[str, str]]:
    return [(column, f"{op}.{_literal(value)}") for column, value in (values or {}).items()]


def _literal(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


# ── Module-level Singleton ───────────────────────────────────

_store: RowStore | None = None


def get_row_store() -> RowStore:
    """Get the singleton row store instance."""
    global _store
    if _store is None:
        from config.settings import get_settings

        settings = get_settings()
        if settings.store_backend == "rest" and settings.store_base_url:
            _store = RestRowStore(get_rest_client())
            logger.info("Initialized RestRowStore (%s)", settings.store_base_url)
        else:
            _store = InMemoryRowStore()
            logger.info("Initialized InMemoryRowStore")
    return _store
