"""Hosted ledger store over a PostgREST-compatible REST API.

Natural-key uniqueness is enforced by the hosted tables' unique
constraints; this adapter relies on ``on_conflict`` upserts:

- whole-row upsert: ``Prefer: resolution=merge-duplicates``
- conditional insert: ``Prefer: resolution=ignore-duplicates`` (an empty
  representation means the key already existed)

Reads retry transport failures with exponential backoff. Writes are sent
exactly once; failures surface as ``LedgerWriteFailed``.
"""

import asyncio
from collections.abc import AsyncIterator, Iterable
from typing import Any

import httpx
import structlog

from delivery_ledger.config import get_settings
from delivery_ledger.errors import LedgerReadFailed, LedgerWriteFailed, StoreError
from delivery_ledger.events.types import ChangeEvent
from delivery_ledger.models import KEY_FIELDS, Key, Table, key_filters
from delivery_ledger.store.base import EventPredicate, LedgerStore, Row
from delivery_ledger.store.realtime import RealtimeChangeFeed

logger = structlog.get_logger(__name__)


def _filter_params(
    eq: dict[str, Any] | None = None,
    gte: dict[str, Any] | None = None,
    lte: dict[str, Any] | None = None,
) -> list[tuple[str, str]]:
    """Build PostgREST filter query parameters (``col=op.value``)."""
    params: list[tuple[str, str]] = []
    for operator, filters in (("eq", eq), ("gte", gte), ("lte", lte)):
        for column, value in (filters or {}).items():
            params.append((column, f"{operator}.{value}"))
    return params


class RestLedgerStore(LedgerStore):
    """Async client for the hosted tables."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        realtime_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.store_url).rstrip("/")
        self._api_key = api_key or settings.store_key.get_secret_value()
        self._realtime_url = realtime_url or settings.realtime_url
        self._timeout = timeout if timeout is not None else settings.store_timeout
        self._max_retries = max_retries if max_retries is not None else settings.store_max_retries

        self._client: httpx.AsyncClient | None = None
        self._logger = logger.bind(component="rest_store", base_url=self.base_url)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @staticmethod
    def _path(table: Table) -> str:
        return f"/rest/v1/{table.value}"

    # === Generic request methods ===

    async def _read(
        self, table: Table, params: list[tuple[str, str]], retry_count: int = 0
    ) -> list[Row]:
        """GET rows, retrying transport errors with exponential backoff."""
        client = await self._get_client()
        try:
            response = await client.get(
                self._path(table),
                params=[("select", "*"), *params],
                headers=self._get_headers(),
            )
        except httpx.RequestError as e:
            if retry_count < self._max_retries:
                await asyncio.sleep(2**retry_count)
                return await self._read(table, params, retry_count + 1)
            raise LedgerReadFailed(f"Read from {table.value} failed: {e}") from e

        self._raise_for_status(response, LedgerReadFailed, table)
        return self._rows(response, LedgerReadFailed, table)

    async def _write(
        self,
        method: str,
        table: Table,
        params: list[tuple[str, str]],
        prefer: str,
        json: Row | None = None,
    ) -> list[Row]:
        """Send one write request. Never retried."""
        client = await self._get_client()
        try:
            response = await client.request(
                method=method,
                url=self._path(table),
                params=params,
                json=json,
                headers=self._get_headers(prefer),
            )
        except httpx.RequestError as e:
            raise LedgerWriteFailed(f"Write to {table.value} failed: {e}") from e

        self._raise_for_status(response, LedgerWriteFailed, table)
        return self._rows(response, LedgerWriteFailed, table)

    @staticmethod
    def _raise_for_status(
        response: httpx.Response, error_class: type[StoreError], table: Table
    ) -> None:
        if response.status_code < 400:
            return
        try:
            error_detail = response.json() if response.content else {}
        except Exception:
            error_detail = {"raw": response.text[:500] if response.text else "empty response"}
        raise error_class(
            f"Store error on {table.value}: {response.status_code}",
            status_code=response.status_code,
            details=error_detail,
        )

    @staticmethod
    def _rows(
        response: httpx.Response, error_class: type[StoreError], table: Table
    ) -> list[Row]:
        if not response.content:
            return []
        try:
            data = response.json()
        except ValueError as e:
            raise error_class(
                f"Undecodable response from {table.value}",
                status_code=response.status_code,
                details={"raw": response.text[:500] if response.text else ""},
            ) from e
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return [data]
        return []

    # === Row primitives ===

    async def get(self, table: Table, key: Key) -> Row | None:
        rows = await self._read(table, _filter_params(eq=key_filters(table, key)))
        return rows[0] if rows else None

    async def upsert(self, table: Table, key: Key, row: Row) -> Row:
        rows = await self._write(
            "POST",
            table,
            [("on_conflict", ",".join(KEY_FIELDS[table]))],
            prefer="resolution=merge-duplicates,return=representation",
            json=row,
        )
        self._logger.debug("row_upserted", table=table.value, key=list(key))
        return rows[0] if rows else dict(row)

    async def insert_if_absent(self, table: Table, key: Key, row: Row) -> bool:
        rows = await self._write(
            "POST",
            table,
            [("on_conflict", ",".join(KEY_FIELDS[table]))],
            prefer="resolution=ignore-duplicates,return=representation",
            json=row,
        )
        inserted = bool(rows)
        self._logger.debug(
            "conditional_insert", table=table.value, key=list(key), inserted=inserted
        )
        return inserted

    async def delete(self, table: Table, key: Key) -> bool:
        return await self.delete_where(table, key_filters(table, key)) > 0

    async def delete_where(self, table: Table, eq: dict[str, Any]) -> int:
        if not eq:
            raise ValueError("Refusing to delete without filters")
        rows = await self._write(
            "DELETE", table, _filter_params(eq=eq), prefer="return=representation"
        )
        self._logger.debug("rows_deleted", table=table.value, count=len(rows))
        return len(rows)

    async def select(
        self,
        table: Table,
        eq: dict[str, Any] | None = None,
        gte: dict[str, Any] | None = None,
        lte: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[Row]:
        params = _filter_params(eq, gte, lte)
        if order_by:
            params.append(("order", f"{order_by}.asc"))
        return await self._read(table, params)

    def subscribe(
        self,
        tables: Iterable[Table] | None = None,
        predicate: EventPredicate | None = None,
    ) -> AsyncIterator[ChangeEvent]:
        feed = RealtimeChangeFeed(url=self._realtime_url, api_key=self._api_key)
        return feed.subscribe(tables, predicate)
