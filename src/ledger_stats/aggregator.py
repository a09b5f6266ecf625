"""Counting and ranking of transaction outcomes.

Reduces raw transactions into two frequency tables (result code and
transaction type), ranks each by descending count and wraps the result,
together with the scanned ledger range, in an immutable Snapshot.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ledger_stats.scanner import extract_result_code, extract_transaction_type

if TYPE_CHECKING:
    from ledger_stats.config import NetworkEndpoint
    from ledger_stats.scanner import ScanResult


@dataclass(frozen=True)
class RankedEntry:
    """One label in a ranked frequency table.

    Attributes:
        label: Result code or transaction type
        count: Number of transactions with this label
        share: Percentage of all counted transactions (0 when there are none)
    """

    label: str
    count: int
    share: float


@dataclass(frozen=True)
class Aggregate:
    """Ranked tables and summary statistics for a set of transactions."""

    ranked_result_codes: tuple[RankedEntry, ...]
    ranked_transaction_types: tuple[RankedEntry, ...]
    total_transactions: int
    most_common_result_code: str | None
    most_common_transaction_type: str | None
    average_per_result_code: float
    average_per_transaction_type: float


@dataclass(frozen=True)
class Snapshot:
    """Immutable statistics for one network at one point in time."""

    ranked_result_codes: tuple[RankedEntry, ...]
    ranked_transaction_types: tuple[RankedEntry, ...]
    total_transactions: int
    most_common_result_code: str | None
    most_common_transaction_type: str | None
    average_per_result_code: float
    average_per_transaction_type: float
    latest_ledger_index: int
    ledger_range: str
    network_label: str
    timestamp: datetime
    failed_ledgers: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "network": self.network_label,
            "timestamp": self.timestamp.isoformat(),
            "latest_ledger_index": self.latest_ledger_index,
            "ledger_range": self.ledger_range,
            "failed_ledgers": self.failed_ledgers,
            "total_transactions": self.total_transactions,
            "most_common_result_code": self.most_common_result_code,
            "most_common_transaction_type": self.most_common_transaction_type,
            "average_per_result_code": self.average_per_result_code,
            "average_per_transaction_type": self.average_per_transaction_type,
            "result_codes": [_entry_dict(e) for e in self.ranked_result_codes],
            "transaction_types": [_entry_dict(e) for e in self.ranked_transaction_types],
        }


def rank_counts(counts: dict[str, int]) -> tuple[RankedEntry, ...]:
    """Rank a count table by descending count.

    Equal counts keep the table's insertion order (sorted() is stable).
    """
    total = sum(counts.values())
    ordered = sorted(counts.items(), key=lambda item: -item[1])
    return tuple(
        RankedEntry(
            label=label,
            count=count,
            share=100.0 * count / total if total > 0 else 0.0,
        )
        for label, count in ordered
    )


def average_per_bucket(total: int, ranked: tuple[RankedEntry, ...]) -> float:
    """Average transactions per distinct label, 0 for an empty table."""
    if not ranked:
        return 0.0
    return total / len(ranked)


def aggregate(transactions: Iterable[dict[str, Any]]) -> Aggregate:
    """Build both ranked tables from one pass over transactions."""
    result_counts: dict[str, int] = {}
    type_counts: dict[str, int] = {}
    for tx in transactions:
        result_code = extract_result_code(tx)
        tx_type = extract_transaction_type(tx)
        result_counts[result_code] = result_counts.get(result_code, 0) + 1
        type_counts[tx_type] = type_counts.get(tx_type, 0) + 1

    total = sum(result_counts.values())
    ranked_results = rank_counts(result_counts)
    ranked_types = rank_counts(type_counts)

    return Aggregate(
        ranked_result_codes=ranked_results,
        ranked_transaction_types=ranked_types,
        total_transactions=total,
        most_common_result_code=ranked_results[0].label if ranked_results else None,
        most_common_transaction_type=ranked_types[0].label if ranked_types else None,
        average_per_result_code=average_per_bucket(total, ranked_results),
        average_per_transaction_type=average_per_bucket(total, ranked_types),
    )


def build_snapshot(
    network: NetworkEndpoint,
    scan: ScanResult,
    timestamp: datetime,
) -> Snapshot:
    """Aggregate a scan into a Snapshot for network."""
    stats = aggregate(scan.transactions)
    return Snapshot(
        ranked_result_codes=stats.ranked_result_codes,
        ranked_transaction_types=stats.ranked_transaction_types,
        total_transactions=stats.total_transactions,
        most_common_result_code=stats.most_common_result_code,
        most_common_transaction_type=stats.most_common_transaction_type,
        average_per_result_code=stats.average_per_result_code,
        average_per_transaction_type=stats.average_per_transaction_type,
        latest_ledger_index=scan.latest_index,
        ledger_range=scan.ledger_range,
        network_label=network.name,
        timestamp=timestamp,
        failed_ledgers=len(scan.failed_ledgers),
    )


def _entry_dict(entry: RankedEntry) -> dict[str, Any]:
    return {"label": entry.label, "count": entry.count, "share": entry.share}
