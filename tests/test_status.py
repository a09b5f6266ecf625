from __future__ import annotations

from datetime import UTC, datetime

from ledger_stats.config import XAHAU_NETWORK, XRPL_MAINNET
from ledger_stats.errors import (
    ClientConnectionError,
    ConnectionLostError,
    InvalidResponseError,
    NotConnectedError,
    ServerError,
    describe_error,
)
from ledger_stats.status import NetworkState, StatusBoard, describe_status

WHEN = datetime(2024, 5, 1, 9, 30, 15, tzinfo=UTC)


def test_error_messages() -> None:
    assert describe_error(ServerError("lgrNotFound")) == "Server error: lgrNotFound"
    assert describe_error(NotConnectedError()) == "Not connected to ledger server"
    assert describe_error(InvalidResponseError()) == "Invalid response from server"
    assert "Connection lost" in describe_error(ConnectionLostError())
    assert (
        describe_error(ClientConnectionError("wss://a", "refused"))
        == "Could not connect to wss://a: refused"
    )
    assert describe_error(TimeoutError()) == "Timed out waiting for ledger data"
    assert describe_error(RuntimeError("boom")) == "RuntimeError: boom"
    assert describe_error(RuntimeError()) == "RuntimeError"


def test_board_transitions_and_error_clearing() -> None:
    board = StatusBoard((XRPL_MAINNET, XAHAU_NETWORK))
    assert board.get(XRPL_MAINNET).state is NetworkState.IDLE

    board.begin(XRPL_MAINNET, WHEN)
    assert board.get(XRPL_MAINNET).state is NetworkState.FETCHING
    assert board.get(XRPL_MAINNET).last_attempt == WHEN

    board.fail(XRPL_MAINNET, "Server error: noNetwork")
    assert board.get(XRPL_MAINNET).state is NetworkState.FETCH_FAILED
    assert board.get(XRPL_MAINNET).last_error == "Server error: noNetwork"
    assert board.get(XAHAU_NETWORK).state is NetworkState.IDLE

    board.begin(XRPL_MAINNET, WHEN)
    board.succeed(XRPL_MAINNET, WHEN)
    status = board.get(XRPL_MAINNET)
    assert status.state is NetworkState.CACHED
    assert status.last_error is None
    assert status.last_success == WHEN


def test_status_text() -> None:
    board = StatusBoard((XAHAU_NETWORK,))
    assert describe_status(XAHAU_NETWORK, board.get(XAHAU_NETWORK)) == (
        "Ready to fetch Xahau data"
    )

    board.begin(XAHAU_NETWORK, WHEN)
    assert describe_status(XAHAU_NETWORK, board.get(XAHAU_NETWORK)) == (
        "Fetching Xahau data..."
    )

    board.succeed(XAHAU_NETWORK, WHEN)
    assert describe_status(XAHAU_NETWORK, board.get(XAHAU_NETWORK)) == "Updated 09:30:15"
