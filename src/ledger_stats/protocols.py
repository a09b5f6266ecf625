"""Protocol definitions for pluggable ledger statistics components.

The scanner and the refresh coordinator only talk to a Transport, so the
websocket client can be swapped for an in-memory fake in tests.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ledger_stats.config import NetworkEndpoint

EventCallback = Callable[[dict[str, Any]], None]


@runtime_checkable
class Transport(Protocol):
    """Protocol for a request/response message socket to one ledger server.

    Implementations:
        - LedgerSocketClient: websocket client using the websockets library
    """

    @property
    def is_connected(self) -> bool:
        """True between a successful connect() and the connection closing."""
        ...

    async def connect(self, endpoint: NetworkEndpoint) -> None:
        """Open the connection.

        Raises:
            ClientConnectionError: If the endpoint is unreachable
        """
        ...

    async def request(self, command: dict[str, Any]) -> dict[str, Any]:
        """Send a command and wait for its correlated response.

        Args:
            command: JSON-serializable command payload (without an id)

        Returns:
            The full response message

        Raises:
            NotConnectedError: If connect() has not succeeded
            ServerError: If the response carries an error
            ConnectionLostError: If the connection closes first
        """
        ...

    async def subscribe_ledger_stream(self, callback: EventCallback) -> dict[str, Any]:
        """Route ledgerClosed events to callback and subscribe to the ledger stream.

        Returns:
            The subscribe response message
        """
        ...

    async def wait_closed(self) -> None:
        """Wait until the connection has closed for any reason."""
        ...

    async def disconnect(self) -> None:
        """Close the connection and fail all outstanding requests."""
        ...


ClientFactory = Callable[[], Transport]
