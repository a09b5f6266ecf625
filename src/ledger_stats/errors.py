"""Exception taxonomy for ledger statistics fetching.

Every failure the socket client or the ledger scanner can produce is one of
these. The coordinator turns them into status strings via describe_error().
"""

from __future__ import annotations


class LedgerStatsError(Exception):
    """Base class for all ledger statistics errors."""


class ClientConnectionError(LedgerStatsError):
    """The endpoint was unreachable or the websocket handshake failed."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Could not connect to {url}: {reason}")


class NotConnectedError(LedgerStatsError):
    """A request was issued on a client that is not connected."""

    def __init__(self, message: str = "Not connected to ledger server") -> None:
        super().__init__(message)


class ConnectionLostError(LedgerStatsError):
    """The connection closed while a request was outstanding."""

    def __init__(self, message: str = "Connection lost before response arrived") -> None:
        super().__init__(message)


class ServerError(LedgerStatsError):
    """The server answered a request with an error response."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Server error: {message}")


class InvalidResponseError(LedgerStatsError):
    """A response lacked an expected field or carried a malformed one."""

    def __init__(self, message: str = "Invalid response from server") -> None:
        self.message = message
        super().__init__(message)


def describe_error(exc: BaseException) -> str:
    """Render any fetch failure as a short user-facing message."""
    if isinstance(exc, LedgerStatsError):
        return str(exc)
    if isinstance(exc, TimeoutError):
        return "Timed out waiting for ledger data"
    detail = str(exc)
    if detail:
        return f"{type(exc).__name__}: {detail}"
    return type(exc).__name__
