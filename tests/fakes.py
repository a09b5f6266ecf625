"""In-memory ledger servers and transports for tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from ledger_stats.config import NetworkEndpoint
from ledger_stats.errors import (
    ConnectionLostError,
    NotConnectedError,
    ServerError,
)
from ledger_stats.protocols import EventCallback


def tx(result: str | None = "tesSUCCESS", tx_type: str = "Payment") -> dict[str, Any]:
    """An expanded transaction record with meta.TransactionResult."""
    record: dict[str, Any] = {"TransactionType": tx_type}
    if result is not None:
        record["meta"] = {"TransactionResult": result}
    return record


class FakeLedgerServer:
    """Scripted ledger server for one network."""

    def __init__(self, latest: int = 100) -> None:
        self.latest = latest
        self.ledgers: dict[int, list[dict[str, Any]]] = {}
        self.failures: dict[int, int] = {}
        self.lost_at: int | None = None
        self.head_response: dict[str, Any] | None = None
        self.head_error: Exception | None = None
        self.connect_error: Exception | None = None
        self.requests: list[dict[str, Any]] = []
        self.subscribers: list[FakeTransport] = []
        self.gate: asyncio.Event | None = None

    def fail_ledger(self, index: int, times: int = 1_000) -> None:
        self.failures[index] = times

    def close_ledger(self, index: int, transactions: list[dict[str, Any]]) -> None:
        """Add a validated ledger and notify stream subscribers."""
        self.ledgers[index] = transactions
        self.latest = index
        for transport in list(self.subscribers):
            transport.emit({"type": "ledgerClosed", "ledger_index": index})

    def drop_subscribers(self) -> None:
        for transport in list(self.subscribers):
            transport.drop()

    def ledger_requests(self) -> list[Any]:
        return [
            r["ledger_index"] for r in self.requests if r.get("command") == "ledger"
        ]

    async def handle(self, command: dict[str, Any], transport: FakeTransport) -> dict[str, Any]:
        self.requests.append(command)
        if self.gate is not None:
            await self.gate.wait()

        if command["command"] == "subscribe":
            return {"status": "success", "result": {}}

        index = command["ledger_index"]
        if index == "validated":
            if self.head_error is not None:
                raise self.head_error
            if self.head_response is not None:
                return self.head_response
            return {"status": "success", "result": {"ledger_index": self.latest}}

        if index == self.lost_at:
            transport.drop()
            raise ConnectionLostError()
        remaining = self.failures.get(index, 0)
        if remaining:
            self.failures[index] = remaining - 1
            raise ServerError("ledgerNotFound")
        return {
            "status": "success",
            "result": {"ledger": {"transactions": list(self.ledgers.get(index, []))}},
        }


class FakeTransport:
    """In-memory Transport bound to whichever FakeLedgerServer it connects to."""

    def __init__(self, hub: FakeNetworkHub) -> None:
        self._hub = hub
        self._server: FakeLedgerServer | None = None
        self._connected = False
        self._closed = asyncio.Event()
        self._callback: EventCallback | None = None
        self.disconnect_calls = 0

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self, endpoint: NetworkEndpoint) -> None:
        server = self._hub.server(endpoint)
        if server.connect_error is not None:
            raise server.connect_error
        self._server = server
        self._connected = True
        self._closed = asyncio.Event()

    async def request(self, command: dict[str, Any]) -> dict[str, Any]:
        if not self._connected or self._server is None:
            raise NotConnectedError()
        await asyncio.sleep(0)
        return await self._server.handle(command, self)

    async def subscribe_ledger_stream(self, callback: EventCallback) -> dict[str, Any]:
        self._callback = callback
        response = await self.request({"command": "subscribe", "streams": ["ledger"]})
        assert self._server is not None
        self._server.subscribers.append(self)
        return response

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.drop()
        self._callback = None

    def emit(self, event: dict[str, Any]) -> None:
        if self._callback is not None:
            self._callback(event)

    def drop(self) -> None:
        self._connected = False
        self._closed.set()
        if self._server is not None and self in self._server.subscribers:
            self._server.subscribers.remove(self)


class FakeNetworkHub:
    """One FakeLedgerServer per network; hands out transports."""

    def __init__(self) -> None:
        self.servers: dict[str, FakeLedgerServer] = {}
        self.transports: list[FakeTransport] = []

    def server(self, endpoint: NetworkEndpoint) -> FakeLedgerServer:
        return self.servers.setdefault(endpoint.short_name, FakeLedgerServer())

    def client(self) -> FakeTransport:
        transport = FakeTransport(self)
        self.transports.append(transport)
        return transport


async def wait_for(predicate: Callable[[], bool], attempts: int = 500) -> None:
    """Yield to the event loop until predicate() holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not met")
