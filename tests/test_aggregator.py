from __future__ import annotations

from datetime import UTC, datetime

import pytest
from fakes import tx

from ledger_stats.aggregator import aggregate, build_snapshot, rank_counts
from ledger_stats.config import XAHAU_NETWORK
from ledger_stats.scanner import ScanResult

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def test_example_result_code_ranking() -> None:
    stats = aggregate([tx("tesSUCCESS"), tx("tesSUCCESS"), tx("tecNO_DST")])

    assert [(e.label, e.count) for e in stats.ranked_result_codes] == [
        ("tesSUCCESS", 2),
        ("tecNO_DST", 1),
    ]
    shares = [round(e.share, 1) for e in stats.ranked_result_codes]
    assert shares == [66.7, 33.3]
    assert stats.most_common_result_code == "tesSUCCESS"
    assert stats.average_per_result_code == 1.5
    assert stats.total_transactions == 3


def test_ties_keep_first_seen_order() -> None:
    stats = aggregate(
        [
            tx("tecB", "OfferCancel"),
            tx("tecA", "Payment"),
            tx("tesSUCCESS", "OfferCreate"),
            tx("tecA", "Payment"),
            tx("tecB", "OfferCancel"),
            tx("tesSUCCESS", "OfferCreate"),
        ]
    )

    assert [e.label for e in stats.ranked_result_codes] == ["tecB", "tecA", "tesSUCCESS"]
    assert [e.label for e in stats.ranked_transaction_types] == [
        "OfferCancel",
        "Payment",
        "OfferCreate",
    ]
    assert stats.most_common_result_code == "tecB"


def test_rank_counts_sorts_descending_and_sums_to_hundred() -> None:
    ranked = rank_counts({"a": 1, "b": 5, "c": 3, "d": 5})

    assert [e.label for e in ranked] == ["b", "d", "c", "a"]
    counts = [e.count for e in ranked]
    assert counts == sorted(counts, reverse=True)
    assert sum(e.share for e in ranked) == pytest.approx(100.0)


def test_empty_input_has_zero_statistics() -> None:
    stats = aggregate([])

    assert stats.ranked_result_codes == ()
    assert stats.ranked_transaction_types == ()
    assert stats.total_transactions == 0
    assert stats.most_common_result_code is None
    assert stats.most_common_transaction_type is None
    assert stats.average_per_result_code == 0
    assert stats.average_per_transaction_type == 0


def test_zero_counts_have_zero_share() -> None:
    ranked = rank_counts({"tesSUCCESS": 0})
    assert ranked[0].share == 0


def test_tables_are_independent_but_share_total() -> None:
    stats = aggregate(
        [
            tx("tesSUCCESS", "Payment"),
            tx("tesSUCCESS", "OfferCreate"),
            tx("tecUNFUNDED_OFFER", "OfferCreate"),
            tx(None, "Payment"),
        ]
    )

    assert sum(e.count for e in stats.ranked_result_codes) == 4
    assert sum(e.count for e in stats.ranked_transaction_types) == 4
    assert stats.ranked_result_codes[-1].label == "Unknown"
    assert stats.average_per_result_code == pytest.approx(4 / 3)
    assert stats.average_per_transaction_type == 2.0
    assert stats.most_common_transaction_type == "Payment"


def test_build_snapshot_carries_scan_metadata() -> None:
    scan = ScanResult(
        latest_index=200,
        start_index=101,
        transactions=(tx("tesSUCCESS"), tx("tecNO_DST")),
        fetched_ledgers=tuple(range(200, 101, -1)),
        failed_ledgers=(101,),
    )

    snapshot = build_snapshot(XAHAU_NETWORK, scan, NOW)

    assert snapshot.network_label == "Xahau Network"
    assert snapshot.latest_ledger_index == 200
    assert snapshot.ledger_range == "101 to 200"
    assert snapshot.failed_ledgers == 1
    assert snapshot.timestamp == NOW
    assert snapshot.total_transactions == 2

    payload = snapshot.to_dict()
    assert payload["timestamp"] == "2024-05-01T12:00:00+00:00"
    assert payload["result_codes"][0] == {"label": "tesSUCCESS", "count": 1, "share": 50.0}
