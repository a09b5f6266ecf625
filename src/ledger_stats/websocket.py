"""WebSocket client for rippled/xahaud request-response traffic.

This module provides a single-connection client that multiplexes many
in-flight commands over one websocket. Each outgoing command gets an
integer id; the reader task resolves the matching pending future when a
response with that id arrives. Messages without a pending id that are
tagged as ledgerClosed events go to the registered event callback.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TYPE_CHECKING, Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ledger_stats.config import DEFAULT_OPEN_TIMEOUT
from ledger_stats.errors import (
    ClientConnectionError,
    ConnectionLostError,
    NotConnectedError,
    ServerError,
)
from ledger_stats.utils.logging import make_logger

if TYPE_CHECKING:
    from ledger_stats.config import NetworkEndpoint
    from ledger_stats.protocols import EventCallback, Transport

logger = make_logger(__name__)

# Expanded ledgers with many transactions easily exceed the 1 MiB default
DEFAULT_MAX_MESSAGE_SIZE = 16 * 1024 * 1024

Connector = Callable[..., Awaitable[Any]]


class LedgerSocketClient:
    """Websocket client with id-correlated requests and ledger event routing.

    One inbound message is handled at a time, in arrival order, by a single
    reader task. Responses are matched to requests strictly by id, so the
    server may answer out of order.

    Attributes:
        open_timeout: Handshake timeout in seconds
        max_size: Maximum inbound message size in bytes
    """

    def __init__(
        self,
        open_timeout: float = DEFAULT_OPEN_TIMEOUT,
        max_size: int | None = DEFAULT_MAX_MESSAGE_SIZE,
        connector: Connector | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            open_timeout: Handshake timeout in seconds
            max_size: Maximum inbound message size in bytes (None for no limit)
            connector: Replacement for websockets.connect (used by tests)
        """
        self.open_timeout = open_timeout
        self.max_size = max_size
        self._connector: Connector = connector or websockets.connect
        self._websocket: Any = None
        self._reader: asyncio.Task[None] | None = None
        self._closed = asyncio.Event()
        self._pending: dict[int, asyncio.Future[dict[str, Any]]] = {}
        self._last_id = 0
        self._event_callback: EventCallback | None = None
        self._url: str | None = None

    @property
    def is_connected(self) -> bool:
        return self._websocket is not None and not self._closed.is_set()

    @property
    def pending_count(self) -> int:
        """Number of requests still waiting for a response."""
        return len(self._pending)

    async def connect(self, endpoint: NetworkEndpoint) -> None:
        """Open the websocket and start the reader task.

        Calling connect() on an already connected client does nothing.

        Raises:
            ClientConnectionError: If the endpoint is unreachable or the
                handshake fails
        """
        if self.is_connected:
            logger.debug(f"Already connected to {self._url}")
            return

        url = endpoint.url
        try:
            websocket = await self._connector(
                url, open_timeout=self.open_timeout, max_size=self.max_size
            )
        except (WebSocketException, OSError, TimeoutError) as e:
            raise ClientConnectionError(url, str(e) or type(e).__name__) from e

        self._websocket = websocket
        self._url = url
        self._closed = asyncio.Event()
        self._reader = asyncio.create_task(
            self._read_loop(websocket), name=f"ledger-socket-reader[{url}]"
        )
        logger.info(f"Connected to {endpoint.name} ({url})")

    async def request(self, command: dict[str, Any]) -> dict[str, Any]:
        """Send a command and wait for the response carrying its id.

        No timeout is applied here; wrap the call if the caller needs one.

        Args:
            command: Command payload; an "id" field is added

        Returns:
            The full response message

        Raises:
            NotConnectedError: If the client is not connected
            ServerError: If the response carries an error
            ConnectionLostError: If the connection closes before the response
        """
        websocket = self._websocket
        if websocket is None or self._closed.is_set():
            raise NotConnectedError()

        self._last_id += 1
        request_id = self._last_id
        future: asyncio.Future[dict[str, Any]] = (
            asyncio.get_running_loop().create_future()
        )
        self._pending[request_id] = future

        payload = {**command, "id": request_id}
        logger.debug(f"-> {self._url} id={request_id} {command.get('command')}")
        try:
            await websocket.send(json.dumps(payload))
        except (WebSocketException, OSError) as e:
            self._pending.pop(request_id, None)
            _discard(future)
            raise ConnectionLostError(f"Send failed: {e}") from e

        try:
            return await future
        finally:
            self._pending.pop(request_id, None)

    async def subscribe_ledger_stream(self, callback: EventCallback) -> dict[str, Any]:
        """Register callback for ledgerClosed events and subscribe to them.

        The callback runs on the reader task and must not block.

        Returns:
            The subscribe response message
        """
        self._event_callback = callback
        return await self.request({"command": "subscribe", "streams": ["ledger"]})

    async def wait_closed(self) -> None:
        """Wait until the connection has closed (returns at once if never opened)."""
        if self._websocket is None and self._reader is None:
            return
        await self._closed.wait()

    async def disconnect(self) -> None:
        """Close the socket and fail every outstanding request.

        Safe to call on a client that never connected, and safe to call twice.
        """
        websocket, self._websocket = self._websocket, None
        reader, self._reader = self._reader, None
        self._event_callback = None

        if websocket is not None:
            try:
                await websocket.close()
            except (WebSocketException, OSError) as e:
                logger.debug(f"Error closing websocket {self._url}: {e}")

        if reader is not None and not reader.done():
            reader.cancel()
            await asyncio.wait({reader})

        self._closed.set()
        self._fail_pending("Disconnected while waiting for response")

    async def _read_loop(self, websocket: Any) -> None:
        """Dispatch inbound messages one at a time until the socket closes."""
        reason = "Connection closed while waiting for response"
        try:
            while True:
                message = await websocket.recv()
                self._dispatch(message)
        except ConnectionClosed as e:
            logger.debug(f"Websocket {self._url} closed: {e}")
        except (WebSocketException, OSError) as e:
            logger.warning(f"Websocket {self._url} failed: {e}")
            reason = f"Connection failed: {e}"
        finally:
            self._closed.set()
            self._fail_pending(reason)

    def _dispatch(self, message: str | bytes) -> None:
        try:
            data = json.loads(message)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.debug(f"Dropping undecodable message from {self._url}: {e}")
            return

        if not isinstance(data, dict):
            logger.debug(f"Dropping non-object message from {self._url}")
            return

        request_id = data.get("id")
        if _is_int(request_id) and request_id in self._pending:
            future = self._pending.pop(request_id)
            if future.done():
                return
            error = _extract_error(data)
            if error is not None:
                future.set_exception(ServerError(error))
            else:
                future.set_result(data)
            return

        if data.get("type") == "ledgerClosed":
            callback = self._event_callback
            if callback is None:
                return
            try:
                callback(data)
            except Exception:
                logger.exception("Ledger event callback failed")
            return

        logger.debug(f"Ignoring unmatched message from {self._url} (id={request_id})")

    def _fail_pending(self, reason: str) -> None:
        """Fail every pending request with ConnectionLostError."""
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(ConnectionLostError(reason))
        if pending:
            logger.debug(f"Failed {len(pending)} pending request(s): {reason}")


@contextlib.asynccontextmanager
async def connected(
    client: Transport,
    endpoint: NetworkEndpoint,
) -> AsyncIterator[Transport]:
    """Connect client for the duration of the block, always disconnecting."""
    try:
        await client.connect(endpoint)
        yield client
    finally:
        await client.disconnect()


def _extract_error(data: dict[str, Any]) -> str | None:
    """Get the error message from a response, or None for a success.

    Accepts both an error object ({"error": {"error_message": ...}}) and the
    flat rippled form ({"error": "lgrNotFound", "error_message": ...}), at
    the top level or inside "result".
    """
    for container in (data, data.get("result")):
        if not isinstance(container, dict):
            continue
        error = container.get("error")
        if error is None:
            continue
        if isinstance(error, dict):
            message = error.get("error_message") or error.get("error")
            return str(message) if message else "Unknown error"
        message = container.get("error_message")
        return str(message or error)
    return None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _discard(future: asyncio.Future[Any]) -> None:
    """Drop a future nobody will await, retrieving any exception it holds."""
    if not future.done():
        future.cancel()
    elif not future.cancelled():
        future.exception()
