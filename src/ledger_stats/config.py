"""Network endpoints, refresh modes and tunables.

This module provides:
- NetworkEndpoint: Immutable identity of one tracked network
- RefreshMode: Live (event driven) vs. historical (periodic) refreshing
- StatsConfig: Window sizes, intervals and timeouts
- ConfigBuilder: Fluent builder for creating a StatsConfig
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

# Window sizes (ledgers)
DEFAULT_HISTORICAL_LEDGER_COUNT = 100
DEFAULT_LIVE_LEDGER_COUNT = 1

# Timing (seconds)
DEFAULT_HISTORICAL_INTERVAL = 300.0
DEFAULT_OPEN_TIMEOUT = 10.0
DEFAULT_RECONNECT_DELAY = 5.0

DEFAULT_LEDGER_RETRIES = 1


@dataclass(frozen=True)
class NetworkEndpoint:
    """Immutable identity of a tracked network.

    Attributes:
        name: Display name (e.g. "XRPL Mainnet")
        url: Websocket URL of the server to poll
        short_name: Compact label used in menus and on the command line
    """

    name: str
    url: str
    short_name: str

    def __str__(self) -> str:
        return self.name


XRPL_MAINNET = NetworkEndpoint(
    name="XRPL Mainnet",
    url="wss://xrpl1.panicbot.app",
    short_name="XRPL",
)
XAHAU_NETWORK = NetworkEndpoint(
    name="Xahau Network",
    url="wss://xahau2.panicbot.app",
    short_name="Xahau",
)

NETWORKS: tuple[NetworkEndpoint, ...] = (XRPL_MAINNET, XAHAU_NETWORK)


def get_network(
    name: str,
    networks: tuple[NetworkEndpoint, ...] = NETWORKS,
) -> NetworkEndpoint:
    """Look up a network by short name or display name (case-insensitive).

    Raises:
        ValueError: If no network matches
    """
    wanted = name.strip().lower()
    for network in networks:
        if wanted in (network.short_name.lower(), network.name.lower()):
            return network
    known = ", ".join(n.short_name for n in networks)
    raise ValueError(f"Unknown network: {name}. Expected one of: {known}")


class RefreshMode(Enum):
    """How cached snapshots are kept fresh."""

    LIVE = "live"
    HISTORICAL = "historical"


@dataclass(frozen=True)
class StatsConfig:
    """Tunables for scanning and refreshing.

    Attributes:
        historical_ledger_count: Ledgers per scan in historical mode
        historical_interval: Seconds between historical rescans
        live_ledger_count: Ledgers per scan on each ledger close in live mode
        ledger_retries: Extra attempts for a single failing ledger fetch
        scan_timeout: Optional bound (seconds) on one fetch cycle, None for no bound
        open_timeout: Websocket handshake timeout in seconds
        reconnect_delay: Seconds before a dropped live subscription reconnects
        networks: The tracked networks, in display order
    """

    historical_ledger_count: int = DEFAULT_HISTORICAL_LEDGER_COUNT
    historical_interval: float = DEFAULT_HISTORICAL_INTERVAL
    live_ledger_count: int = DEFAULT_LIVE_LEDGER_COUNT
    ledger_retries: int = DEFAULT_LEDGER_RETRIES
    scan_timeout: float | None = None
    open_timeout: float = DEFAULT_OPEN_TIMEOUT
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY
    networks: tuple[NetworkEndpoint, ...] = field(default=NETWORKS)

    def ledger_count(self, mode: RefreshMode) -> int:
        """Get the scan window size for a refresh mode."""
        if mode is RefreshMode.LIVE:
            return self.live_ledger_count
        return self.historical_ledger_count


class ConfigBuilder:
    """Fluent builder for StatsConfig.

    Example:
        >>> config = (
        ...     ConfigBuilder()
        ...     .historical(ledger_count=50, interval=120)
        ...     .scan_timeout(60)
        ...     .build()
        ... )
    """

    def __init__(self, base: StatsConfig | None = None) -> None:
        self._config = base or StatsConfig()

    def historical(
        self,
        ledger_count: int | None = None,
        interval: float | None = None,
    ) -> ConfigBuilder:
        """Set the historical window size and/or rescan interval."""
        if ledger_count is not None:
            _require(ledger_count >= 1, "historical ledger count must be >= 1")
            self._config = replace(self._config, historical_ledger_count=ledger_count)
        if interval is not None:
            _require(interval > 0, "historical interval must be > 0")
            self._config = replace(self._config, historical_interval=float(interval))
        return self

    def live(self, ledger_count: int) -> ConfigBuilder:
        """Set the window size scanned on each ledger close."""
        _require(ledger_count >= 1, "live ledger count must be >= 1")
        self._config = replace(self._config, live_ledger_count=ledger_count)
        return self

    def ledger_retries(self, retries: int) -> ConfigBuilder:
        """Set extra attempts for an individual ledger fetch."""
        _require(retries >= 0, "ledger retries must be >= 0")
        self._config = replace(self._config, ledger_retries=retries)
        return self

    def scan_timeout(self, seconds: float | None) -> ConfigBuilder:
        """Bound one fetch cycle, or None to disable."""
        if seconds is not None:
            _require(seconds > 0, "scan timeout must be > 0")
            seconds = float(seconds)
        self._config = replace(self._config, scan_timeout=seconds)
        return self

    def open_timeout(self, seconds: float) -> ConfigBuilder:
        _require(seconds > 0, "open timeout must be > 0")
        self._config = replace(self._config, open_timeout=float(seconds))
        return self

    def reconnect_delay(self, seconds: float) -> ConfigBuilder:
        _require(seconds >= 0, "reconnect delay must be >= 0")
        self._config = replace(self._config, reconnect_delay=float(seconds))
        return self

    def networks(self, *networks: NetworkEndpoint) -> ConfigBuilder:
        """Restrict tracking to the given networks."""
        _require(len(networks) > 0, "at least one network is required")
        self._config = replace(self._config, networks=tuple(networks))
        return self

    def build(self) -> StatsConfig:
        return self._config


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ValueError(message)
