"""Realtime change feed client for the hosted store.

Speaks the Phoenix-channel protocol used by the hosted realtime service:
join one channel listening for ``postgres_changes`` on the ledger tables,
keep it alive with heartbeats, and decode each change payload into a
``ChangeEvent``.
"""

import asyncio
import contextlib
import itertools
import json
from collections.abc import AsyncIterator, Iterable
from typing import Any

import structlog
import websockets
from websockets.asyncio.client import ClientConnection, connect

from delivery_ledger.config import get_settings
from delivery_ledger.errors import LedgerReadFailed
from delivery_ledger.events.types import ChangeEvent
from delivery_ledger.models import Table
from delivery_ledger.store.base import EventPredicate

logger = structlog.get_logger(__name__)

CHANNEL_TOPIC = "realtime:delivery-ledger"


class RealtimeChangeFeed:
    """Subscribe to row changes pushed by the hosted store.

    Usage:
        feed = RealtimeChangeFeed()
        async for event in feed.subscribe([Table.CUSTOMER]):
            applier.apply(event)
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        schema: str = "public",
        heartbeat_seconds: float | None = None,
    ):
        settings = get_settings()
        self._url = url or settings.realtime_url
        self._api_key = api_key or settings.store_key.get_secret_value()
        self._schema = schema
        self._heartbeat_seconds = heartbeat_seconds or settings.realtime_heartbeat_seconds
        self._refs = itertools.count(1)
        self._logger = logger.bind(component="realtime_feed")

    def _connect_url(self) -> str:
        separator = "&" if "?" in self._url else "?"
        return f"{self._url}{separator}apikey={self._api_key}&vsn=1.0.0"

    def _message(self, topic: str, event: str, payload: dict[str, Any]) -> str:
        return json.dumps(
            {"topic": topic, "event": event, "payload": payload, "ref": str(next(self._refs))}
        )

    def join_message(self, tables: Iterable[Table]) -> str:
        """Channel join request listening to every change on ``tables``."""
        changes = [
            {"event": "*", "schema": self._schema, "table": table.value} for table in tables
        ]
        return self._message(
            CHANNEL_TOPIC,
            "phx_join",
            {"config": {"postgres_changes": changes}, "access_token": self._api_key},
        )

    @staticmethod
    def decode(message: str | bytes) -> ChangeEvent | None:
        """Decode a channel message; None for anything but a row change."""
        if isinstance(message, bytes):
            message = message.decode("utf-8")
        try:
            envelope = json.loads(message)
        except json.JSONDecodeError:
            logger.warning("invalid_realtime_message")
            return None

        if envelope.get("event") != "postgres_changes":
            return None

        data = (envelope.get("payload") or {}).get("data") or {}
        try:
            return ChangeEvent.from_dict(data)
        except (KeyError, ValueError) as e:
            logger.warning("undecodable_change", error=str(e), table=data.get("table"))
            return None

    async def _heartbeat(self, websocket: ClientConnection) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_seconds)
            await websocket.send(self._message("phoenix", "heartbeat", {}))

    @staticmethod
    def _check_reply(message: str | bytes) -> None:
        envelope = json.loads(message)
        if envelope.get("event") == "phx_reply":
            status = (envelope.get("payload") or {}).get("status")
            if status != "ok":
                raise LedgerReadFailed(
                    "Realtime subscription rejected", details=envelope.get("payload")
                )

    async def subscribe(
        self,
        tables: Iterable[Table] | None = None,
        predicate: EventPredicate | None = None,
    ) -> AsyncIterator[ChangeEvent]:
        """Yield change events until the server closes the connection.

        An abnormal close raises ``LedgerReadFailed``; consumers recover by
        re-fetching from the store and subscribing again.
        """
        wanted = set(tables) if tables is not None else set(Table)

        async with connect(self._connect_url()) as websocket:
            await websocket.send(self.join_message(sorted(wanted, key=lambda t: t.value)))
            self._check_reply(await websocket.recv())
            self._logger.info("realtime_subscribed", tables=[t.value for t in wanted])

            heartbeat = asyncio.create_task(self._heartbeat(websocket))
            try:
                async for message in websocket:
                    event = self.decode(message)
                    if event is None or event.table not in wanted:
                        continue
                    if predicate is not None and not predicate(event):
                        continue
                    yield event
            except websockets.ConnectionClosedError as e:
                raise LedgerReadFailed(f"Realtime connection lost: {e}") from e
            finally:
                heartbeat.cancel()
                # The heartbeat may already have died on the closed socket
                with contextlib.suppress(asyncio.CancelledError, websockets.ConnectionClosed):
                    await heartbeat
