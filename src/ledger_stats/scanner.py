"""Ledger range scanning over a connected transport.

Looks up the latest validated ledger, then walks a window of ledgers from
the newest down, collecting the expanded transactions of each one. A ledger
that cannot be fetched is dropped from the window instead of failing the
whole scan; only a failed head lookup fails the scan.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ledger_stats.errors import (
    ConnectionLostError,
    InvalidResponseError,
    NotConnectedError,
    ServerError,
)
from ledger_stats.utils.logging import make_logger

if TYPE_CHECKING:
    from ledger_stats.protocols import Transport

logger = make_logger(__name__)

UNKNOWN_LABEL = "Unknown"

# (container, field) pairs checked in order for a transaction's result code
RESULT_CODE_LOCATIONS: tuple[tuple[str, str], ...] = (
    ("meta", "TransactionResult"),
    ("meta", "transaction_result"),
    ("metaData", "TransactionResult"),
    ("metaData", "transaction_result"),
)


@dataclass(frozen=True)
class ScanResult:
    """Transactions collected from one window of ledgers.

    Attributes:
        latest_index: Latest validated ledger at scan time
        start_index: Oldest ledger index in the requested window
        transactions: Raw transaction records from every fetched ledger
        fetched_ledgers: Ledger indices fetched successfully, newest first
        failed_ledgers: Ledger indices whose fetch failed, newest first
    """

    latest_index: int
    start_index: int
    transactions: tuple[dict[str, Any], ...]
    fetched_ledgers: tuple[int, ...]
    failed_ledgers: tuple[int, ...] = ()

    @property
    def ledger_range(self) -> str:
        return f"{self.start_index} to {self.latest_index}"

    @property
    def complete(self) -> bool:
        """True if every ledger in the window was fetched."""
        return not self.failed_ledgers


def parse_ledger_index(value: Any) -> int | None:
    """Parse a ledger index given as a positive int or a digit string."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.isascii() and value.isdecimal():
        index = int(value)
        return index if index > 0 else None
    return None


def window_start(latest: int, count: int) -> int:
    """Get the oldest ledger index of a window ending at latest, clamped to 1."""
    return max(latest - count + 1, 1)


def extract_result_code(tx: dict[str, Any]) -> str:
    """Get a transaction's result code, or "Unknown" if none is present."""
    for container_name, field_name in RESULT_CODE_LOCATIONS:
        container = tx.get(container_name)
        if not isinstance(container, dict):
            continue
        value = container.get(field_name)
        if isinstance(value, str):
            return value
    return UNKNOWN_LABEL


def extract_transaction_type(tx: dict[str, Any]) -> str:
    """Get a transaction's type from the top level or a nested "tx" object."""
    tx_type = tx.get("TransactionType")
    if isinstance(tx_type, str):
        return tx_type
    nested = tx.get("tx")
    if isinstance(nested, dict):
        tx_type = nested.get("TransactionType")
        if isinstance(tx_type, str):
            return tx_type
    return UNKNOWN_LABEL


async def latest_validated_ledger(client: Transport) -> int:
    """Get the index of the latest validated ledger.

    Raises:
        InvalidResponseError: If result.ledger_index is missing or malformed
    """
    response = await client.request({"command": "ledger", "ledger_index": "validated"})
    result = response.get("result")
    if not isinstance(result, dict):
        raise InvalidResponseError("Ledger response has no result")

    index = parse_ledger_index(result.get("ledger_index"))
    if index is None:
        raise InvalidResponseError(
            f"Ledger response has invalid ledger_index: {result.get('ledger_index')!r}"
        )
    return index


async def fetch_ledger_transactions(
    client: Transport,
    ledger_index: int,
) -> list[dict[str, Any]]:
    """Get the expanded transactions of one ledger.

    Raises:
        InvalidResponseError: If result.ledger.transactions is missing
    """
    response = await client.request(
        {
            "command": "ledger",
            "ledger_index": ledger_index,
            "transactions": True,
            "expand": True,
            "binary": False,
        }
    )
    result = response.get("result")
    ledger = result.get("ledger") if isinstance(result, dict) else None
    transactions = ledger.get("transactions") if isinstance(ledger, dict) else None
    if not isinstance(transactions, list):
        raise InvalidResponseError(f"Ledger {ledger_index} response has no transactions")
    return [tx for tx in transactions if isinstance(tx, dict)]


async def scan_window(
    client: Transport,
    count: int,
    retries: int = 0,
) -> ScanResult:
    """Collect transactions from the latest count validated ledgers.

    Ledgers are fetched newest first. A ledger whose fetch fails with a
    server or response error is retried up to retries extra times and then
    dropped. Once the connection is lost, every remaining ledger is dropped
    and the scan returns what it has.

    Args:
        client: A connected transport
        count: Number of ledgers in the window
        retries: Extra attempts per failing ledger

    Raises:
        Whatever latest_validated_ledger() raises; per-ledger errors never
        propagate.
    """
    if count < 1:
        raise ValueError(f"Ledger count must be >= 1, got {count}")

    latest = await latest_validated_ledger(client)
    start = window_start(latest, count)

    transactions: list[dict[str, Any]] = []
    fetched: list[int] = []
    failed: list[int] = []

    indices = range(latest, start - 1, -1)
    for position, ledger_index in enumerate(indices):
        try:
            ledger_txs = await _fetch_with_retries(client, ledger_index, retries)
        except (ConnectionLostError, NotConnectedError) as e:
            remaining = list(indices[position:])
            logger.warning(
                f"Connection lost at ledger {ledger_index}, "
                f"dropping {len(remaining)} remaining ledger(s): {e}"
            )
            failed.extend(remaining)
            break
        except (ServerError, InvalidResponseError) as e:
            logger.warning(f"Skipping ledger {ledger_index}: {e}")
            failed.append(ledger_index)
            continue

        transactions.extend(ledger_txs)
        fetched.append(ledger_index)

    logger.debug(
        f"Scanned ledgers {start}..{latest}: {len(transactions)} txns, "
        f"{len(failed)} ledger(s) dropped"
    )
    return ScanResult(
        latest_index=latest,
        start_index=start,
        transactions=tuple(transactions),
        fetched_ledgers=tuple(fetched),
        failed_ledgers=tuple(failed),
    )


async def _fetch_with_retries(
    client: Transport,
    ledger_index: int,
    retries: int,
) -> list[dict[str, Any]]:
    attempt = 0
    while True:
        try:
            return await fetch_ledger_transactions(client, ledger_index)
        except (ServerError, InvalidResponseError) as e:
            if attempt >= retries:
                raise
            attempt += 1
            logger.debug(f"Retrying ledger {ledger_index} ({attempt}/{retries}): {e}")
