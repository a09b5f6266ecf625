"""Per-network fetch state reported to the presentation layer."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ledger_stats.config import NetworkEndpoint


class NetworkState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    CACHED = "cached"
    FETCH_FAILED = "fetch_failed"


@dataclass(frozen=True)
class NetworkStatus:
    """Latest fetch state of one network.

    Attributes:
        state: Where the network is in the fetch state machine
        last_error: Message of the most recent failure, cleared on success
        last_attempt: When the most recent fetch started
        last_success: When the most recent successful fetch finished
    """

    state: NetworkState = NetworkState.IDLE
    last_error: str | None = None
    last_attempt: datetime | None = None
    last_success: datetime | None = None


class StatusBoard:
    """Fetch status for every tracked network.

    Only the refresh coordinator writes to a board; readers get the frozen
    NetworkStatus values.
    """

    def __init__(self, networks: tuple[NetworkEndpoint, ...]) -> None:
        self._statuses: dict[NetworkEndpoint, NetworkStatus] = {
            network: NetworkStatus() for network in networks
        }

    def get(self, network: NetworkEndpoint) -> NetworkStatus:
        return self._statuses.get(network, NetworkStatus())

    def begin(self, network: NetworkEndpoint, when: datetime) -> None:
        self._statuses[network] = replace(
            self.get(network), state=NetworkState.FETCHING, last_attempt=when
        )

    def succeed(self, network: NetworkEndpoint, when: datetime) -> None:
        self._statuses[network] = replace(
            self.get(network),
            state=NetworkState.CACHED,
            last_error=None,
            last_success=when,
        )

    def fail(self, network: NetworkEndpoint, message: str) -> None:
        self._statuses[network] = replace(
            self.get(network), state=NetworkState.FETCH_FAILED, last_error=message
        )

    def restore(self, network: NetworkEndpoint, state: NetworkState) -> None:
        """Set the state without touching the recorded error or timestamps."""
        self._statuses[network] = replace(self.get(network), state=state)


def describe_status(network: NetworkEndpoint, status: NetworkStatus) -> str:
    """One-line status text for a network."""
    if status.state is NetworkState.FETCHING:
        return f"Fetching {network.short_name} data..."
    if status.state is NetworkState.FETCH_FAILED:
        return status.last_error or f"Fetching {network.short_name} data failed"
    if status.state is NetworkState.CACHED and status.last_success is not None:
        return f"Updated {status.last_success.strftime('%H:%M:%S')}"
    return f"Ready to fetch {network.short_name} data"
