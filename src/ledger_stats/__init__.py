"""Transaction result statistics for XRPL and Xahau.

This package polls ledger servers over a websocket, scans a window of recent
validated ledgers and ranks transaction result codes and types. A refresh
coordinator keeps one always-readable snapshot per network, refreshed either
periodically (historical mode) or on every closed ledger (live mode).

Usage (CLI):
    ledger-stats snapshot [--network xrpl|xahau|all]
    ledger-stats watch [--mode live|historical]

Usage (Python):
    >>> from ledger_stats import RefreshMode, create_coordinator
    >>>
    >>> async with create_coordinator() as coordinator:
    ...     await coordinator.force_refresh_all()
    ...     snapshot = coordinator.current_snapshot("xrpl")
    ...     await coordinator.set_mode(RefreshMode.LIVE)
"""

from __future__ import annotations

from ledger_stats.aggregator import (
    Aggregate,
    RankedEntry,
    Snapshot,
    aggregate,
    build_snapshot,
)
from ledger_stats.config import (
    NETWORKS,
    XAHAU_NETWORK,
    XRPL_MAINNET,
    ConfigBuilder,
    NetworkEndpoint,
    RefreshMode,
    StatsConfig,
    get_network,
)
from ledger_stats.coordinator import RefreshCoordinator
from ledger_stats.errors import (
    ClientConnectionError,
    ConnectionLostError,
    InvalidResponseError,
    LedgerStatsError,
    NotConnectedError,
    ServerError,
    describe_error,
)
from ledger_stats.protocols import ClientFactory, Transport
from ledger_stats.scanner import (
    ScanResult,
    extract_result_code,
    extract_transaction_type,
    latest_validated_ledger,
    scan_window,
)
from ledger_stats.status import NetworkState, NetworkStatus
from ledger_stats.websocket import LedgerSocketClient

__all__ = [
    # Main classes
    "RefreshCoordinator",
    "LedgerSocketClient",
    "ConfigBuilder",
    # Config
    "NetworkEndpoint",
    "RefreshMode",
    "StatsConfig",
    "NETWORKS",
    "XRPL_MAINNET",
    "XAHAU_NETWORK",
    "get_network",
    # Data
    "Aggregate",
    "RankedEntry",
    "ScanResult",
    "Snapshot",
    "NetworkState",
    "NetworkStatus",
    # Protocols
    "Transport",
    "ClientFactory",
    # Errors
    "LedgerStatsError",
    "ClientConnectionError",
    "NotConnectedError",
    "ConnectionLostError",
    "ServerError",
    "InvalidResponseError",
    "describe_error",
    # Functions
    "aggregate",
    "build_snapshot",
    "extract_result_code",
    "extract_transaction_type",
    "latest_validated_ledger",
    "scan_window",
    "create_coordinator",
]


def create_coordinator(
    config: StatsConfig | None = None,
    client_factory: ClientFactory | None = None,
) -> RefreshCoordinator:
    """Factory function to create a RefreshCoordinator with sensible defaults.

    Args:
        config: Tunables (default: StatsConfig(), both networks)
        client_factory: Transport factory (default: LedgerSocketClient)

    Returns:
        A coordinator that has not been started yet

    Example:
        >>> coordinator = create_coordinator(
        ...     ConfigBuilder().historical(ledger_count=20).build()
        ... )
    """
    # Default config
    if config is None:
        config = StatsConfig()

    return RefreshCoordinator(config=config, client_factory=client_factory)
