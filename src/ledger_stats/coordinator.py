"""Refresh coordinator owning the per-network snapshot cache.

This module provides:
- RefreshCoordinator: Cache owner, refresh scheduling and the query API
- PeriodicSchedule: Historical mode, full rescans on a timer
- EventDrivenSchedule: Live mode, one subscription per network
- LiveSubscription: A reconnecting ledger stream for one network

Single-writer discipline: only the coordinator mutates the cache, the status
board and the active schedule. Every fetch builds its snapshot privately and
merges it into the cache in one assignment, and only on success.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Callable, Coroutine
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from ledger_stats.aggregator import build_snapshot
from ledger_stats.config import NetworkEndpoint, RefreshMode, StatsConfig, get_network
from ledger_stats.errors import LedgerStatsError, describe_error
from ledger_stats.scanner import parse_ledger_index, scan_window
from ledger_stats.status import NetworkState, NetworkStatus, StatusBoard, describe_status
from ledger_stats.utils.logging import make_logger
from ledger_stats.websocket import LedgerSocketClient, connected

if TYPE_CHECKING:
    from ledger_stats.aggregator import Snapshot
    from ledger_stats.protocols import ClientFactory, Transport

logger = make_logger(__name__)

SnapshotListener = Callable[[NetworkEndpoint, "Snapshot"], None]
LedgerClosedHandler = Callable[[NetworkEndpoint, int], None]
SubscriptionFailureHandler = Callable[[NetworkEndpoint, BaseException], None]


def utcnow() -> datetime:
    return datetime.now(UTC)


def _log_task_failure(task: asyncio.Task[Any]) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Task {task.get_name()} failed: {error!r}")


class LiveSubscription:
    """Keeps a ledger stream open for one network, reconnecting on loss.

    The subscription connection only delivers ledgerClosed events; data is
    fetched by the coordinator on separate short-lived clients.
    """

    def __init__(
        self,
        network: NetworkEndpoint,
        client_factory: ClientFactory,
        on_ledger_closed: LedgerClosedHandler,
        on_failure: SubscriptionFailureHandler,
        reconnect_delay: float,
    ) -> None:
        self.network = network
        self._client_factory = client_factory
        self._on_ledger_closed = on_ledger_closed
        self._on_failure = on_failure
        self._reconnect_delay = reconnect_delay
        self._task: asyncio.Task[None] | None = None
        self._client: Transport | None = None

    @property
    def is_subscribed(self) -> bool:
        return self._client is not None and self._client.is_connected

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(
                self._run(), name=f"ledger-stream[{self.network.short_name}]"
            )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

    async def _run(self) -> None:
        while True:
            client = self._client_factory()
            self._client = client
            try:
                async with connected(client, self.network):
                    await client.subscribe_ledger_stream(self._handle_event)
                    logger.info(f"Subscribed to {self.network.name} ledger stream")
                    await client.wait_closed()
                logger.warning(f"{self.network.name} ledger stream closed")
            except LedgerStatsError as e:
                logger.warning(f"{self.network.name} ledger stream failed: {e}")
                self._on_failure(self.network, e)
            except Exception as e:
                logger.exception(f"{self.network.name} ledger stream crashed")
                self._on_failure(self.network, e)
            finally:
                self._client = None

            await asyncio.sleep(self._reconnect_delay)

    def _handle_event(self, event: dict[str, Any]) -> None:
        ledger_index = parse_ledger_index(event.get("ledger_index"))
        if ledger_index is None:
            logger.debug(
                f"Ignoring ledgerClosed without a valid index on {self.network.name}: "
                f"{event.get('ledger_index')!r}"
            )
            return
        self._on_ledger_closed(self.network, ledger_index)


class PeriodicSchedule:
    """Historical mode: a task that rescans every network on an interval."""

    mode = RefreshMode.HISTORICAL

    def __init__(self, interval: float, task: asyncio.Task[None]) -> None:
        self.interval = interval
        self.task = task

    async def stop(self) -> None:
        if not self.task.done():
            self.task.cancel()
            await asyncio.wait({self.task})


class EventDrivenSchedule:
    """Live mode: one ledger stream subscription per network."""

    mode = RefreshMode.LIVE

    def __init__(self, subscriptions: dict[NetworkEndpoint, LiveSubscription]) -> None:
        self.subscriptions = subscriptions

    async def stop(self) -> None:
        await asyncio.gather(*(sub.stop() for sub in self.subscriptions.values()))


Schedule = PeriodicSchedule | EventDrivenSchedule


class RefreshCoordinator:
    """Keeps an always-readable snapshot per network fresh.

    Attributes:
        config: Window sizes, intervals and timeouts
    """

    def __init__(
        self,
        config: StatsConfig | None = None,
        client_factory: ClientFactory | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the coordinator (no I/O happens until start()).

        Args:
            config: Tunables (default: StatsConfig())
            client_factory: Builds a fresh transport per fetch or subscription
                (default: LedgerSocketClient)
            clock: Returns the current time (default: UTC now)
        """
        self.config = config or StatsConfig()
        self._client_factory: ClientFactory = client_factory or self._default_client
        self._clock = clock or utcnow

        self._cache: dict[NetworkEndpoint, Snapshot] = {}
        self._applied_seq: dict[NetworkEndpoint, int] = {}
        self._status = StatusBoard(self.config.networks)
        self._listeners: list[SnapshotListener] = []

        self._mode = RefreshMode.HISTORICAL
        self._schedule: Schedule | None = None
        self._generation = 0
        self._fetch_seq = 0
        self._tasks: set[asyncio.Task[Any]] = set()
        self._transition_lock = asyncio.Lock()
        self._selected = self.config.networks[0]

    def _default_client(self) -> Transport:
        return LedgerSocketClient(open_timeout=self.config.open_timeout)

    async def __aenter__(self) -> RefreshCoordinator:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # Query API

    @property
    def networks(self) -> tuple[NetworkEndpoint, ...]:
        return self.config.networks

    @property
    def mode(self) -> RefreshMode:
        return self._mode

    @property
    def schedule(self) -> Schedule | None:
        """The active scheduling strategy, None before start() or after close()."""
        return self._schedule

    @property
    def selected_network(self) -> NetworkEndpoint:
        return self._selected

    def select_network(self, network: NetworkEndpoint | str) -> NetworkEndpoint:
        """Select the network that network-less queries refer to.

        Raises:
            ValueError: If the network is not tracked
        """
        self._selected = self._resolve(network)
        return self._selected

    def current_snapshot(
        self,
        network: NetworkEndpoint | str | None = None,
    ) -> Snapshot | None:
        """Get the cached snapshot for a network without fetching."""
        return self._cache.get(self._resolve(network))

    def snapshots(self) -> dict[NetworkEndpoint, Snapshot | None]:
        """Get the cached snapshot (or None) of every tracked network."""
        return {network: self._cache.get(network) for network in self.networks}

    def status(self, network: NetworkEndpoint | str | None = None) -> NetworkStatus:
        return self._status.get(self._resolve(network))

    def last_error(self, network: NetworkEndpoint | str | None = None) -> str | None:
        """Message of the most recent failure, None once a fetch succeeds."""
        return self.status(network).last_error

    def status_text(self, network: NetworkEndpoint | str | None = None) -> str:
        resolved = self._resolve(network)
        return describe_status(resolved, self._status.get(resolved))

    def add_listener(self, listener: SnapshotListener) -> None:
        """Call listener(network, snapshot) after every cache update."""
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        self._listeners.remove(listener)

    # Lifecycle and modes

    async def start(self, mode: RefreshMode | None = None) -> None:
        """Install the scheduling strategy for mode (default: current mode)."""
        await self.set_mode(mode or self._mode)

    async def set_mode(self, mode: RefreshMode) -> None:
        """Tear down the active schedule and install the one for mode.

        In-flight fetches are left to finish; results from fetches the old
        schedule launched are discarded.
        """
        async with self._transition_lock:
            if mode is self._mode and self._schedule is not None:
                return
            await self._teardown_schedule()
            self._mode = mode
            self._generation += 1
            self._schedule = self._install_schedule(mode, self._generation)
            logger.info(f"Refresh mode set to {mode.value}")

    async def close(self) -> None:
        """Stop scheduling and cancel every outstanding fetch."""
        async with self._transition_lock:
            await self._teardown_schedule()
            self._generation += 1
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks)

    async def wait_for_pending_fetches(self) -> None:
        """Wait until no spawned fetch is running."""
        while self._tasks:
            await asyncio.wait(set(self._tasks))

    # Forced refreshes

    async def force_refresh_all(
        self,
        ledger_count: int | None = None,
    ) -> dict[NetworkEndpoint, Snapshot | None]:
        """Fetch every network now, concurrently, regardless of mode.

        Args:
            ledger_count: Window size (default: the current mode's window)

        Returns:
            The cached snapshot (or None) of every network afterwards
        """
        count = self._window_size(ledger_count)
        await self._refresh_all(count, generation=None)
        return self.snapshots()

    async def force_refresh(
        self,
        network: NetworkEndpoint | str | None = None,
        ledger_count: int | None = None,
    ) -> Snapshot | None:
        """Fetch one network now (default: the selected network).

        Returns:
            The cached snapshot afterwards, which is the previous one if the
            fetch failed
        """
        resolved = self._resolve(network)
        count = self._window_size(ledger_count)
        await self._refresh(resolved, count, generation=None)
        return self._cache.get(resolved)

    # Internals

    def _window_size(self, ledger_count: int | None) -> int:
        if ledger_count is None:
            return self.config.ledger_count(self._mode)
        if ledger_count < 1:
            raise ValueError(f"Ledger count must be >= 1, got {ledger_count}")
        return ledger_count

    def _resolve(self, network: NetworkEndpoint | str | None) -> NetworkEndpoint:
        if network is None:
            return self._selected
        if isinstance(network, str):
            return get_network(network, self.networks)
        if network not in self.networks:
            raise ValueError(f"Network is not tracked: {network.name}")
        return network

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(_log_task_failure)
        return task

    def _install_schedule(self, mode: RefreshMode, generation: int) -> Schedule:
        if mode is RefreshMode.HISTORICAL:
            interval = self.config.historical_interval
            task = asyncio.create_task(
                self._run_periodic(interval, generation), name="historical-refresh"
            )
            return PeriodicSchedule(interval, task)

        subscriptions: dict[NetworkEndpoint, LiveSubscription] = {}
        for network in self.networks:
            subscription = LiveSubscription(
                network,
                self._client_factory,
                functools.partial(self._on_ledger_closed, generation),
                self._on_subscription_failure,
                self.config.reconnect_delay,
            )
            subscription.start()
            subscriptions[network] = subscription
        return EventDrivenSchedule(subscriptions)

    async def _teardown_schedule(self) -> None:
        schedule, self._schedule = self._schedule, None
        if schedule is not None:
            await schedule.stop()
            logger.debug(f"Stopped {schedule.mode.value} schedule")

    async def _run_periodic(self, interval: float, generation: int) -> None:
        count = self.config.historical_ledger_count
        while True:
            cycle = self._spawn(
                self._refresh_all(count, generation), name="historical-cycle"
            )
            # Cancelling the schedule must not cancel a running cycle
            await asyncio.shield(cycle)
            await asyncio.sleep(interval)

    def _on_ledger_closed(
        self,
        generation: int,
        network: NetworkEndpoint,
        ledger_index: int,
    ) -> None:
        if generation != self._generation:
            return
        logger.debug(f"{network.name} closed ledger {ledger_index}")
        self._spawn(
            self._refresh(network, self.config.live_ledger_count, generation),
            name=f"live-refresh[{network.short_name}:{ledger_index}]",
        )

    def _on_subscription_failure(
        self,
        network: NetworkEndpoint,
        error: BaseException,
    ) -> None:
        self._status.fail(network, f"Live updates unavailable: {describe_error(error)}")

    async def _refresh_all(self, count: int, generation: int | None) -> None:
        results = await asyncio.gather(
            *(self._refresh(network, count, generation) for network in self.networks),
            return_exceptions=True,
        )
        for network, result in zip(self.networks, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(f"Refresh of {network.name} crashed: {result!r}")

    async def _refresh(
        self,
        network: NetworkEndpoint,
        count: int,
        generation: int | None,
    ) -> Snapshot | None:
        """Run one fetch for network and merge the result into the cache.

        Args:
            network: Network to fetch
            count: Window size in ledgers
            generation: Schedule generation that launched the fetch, or None
                for forced refreshes (never superseded by mode changes)

        Returns:
            The stored snapshot, or None if the fetch failed or was superseded
        """
        self._fetch_seq += 1
        seq = self._fetch_seq
        self._status.begin(network, self._clock())

        try:
            snapshot = await self._fetch_snapshot(network, count)
        except (LedgerStatsError, TimeoutError) as e:
            self._record_failure(network, seq, e)
            logger.warning(f"Fetch for {network.name} failed: {describe_error(e)}")
            return None
        except Exception as e:
            self._record_failure(network, seq, e)
            raise

        return self._store(network, snapshot, seq, generation)

    async def _fetch_snapshot(self, network: NetworkEndpoint, count: int) -> Snapshot:
        client = self._client_factory()
        async with asyncio.timeout(self.config.scan_timeout):
            async with connected(client, network):
                scan = await scan_window(client, count, self.config.ledger_retries)
        return build_snapshot(network, scan, self._clock())

    def _record_failure(
        self,
        network: NetworkEndpoint,
        seq: int,
        error: BaseException,
    ) -> None:
        if seq < self._applied_seq.get(network, 0):
            self._settle(network)
            return
        self._status.fail(network, describe_error(error))

    def _store(
        self,
        network: NetworkEndpoint,
        snapshot: Snapshot,
        seq: int,
        generation: int | None,
    ) -> Snapshot | None:
        if generation is not None and generation != self._generation:
            logger.info(f"Discarding {network.name} snapshot from superseded schedule")
            self._settle(network)
            return None
        if seq < self._applied_seq.get(network, 0):
            logger.debug(f"Discarding stale {network.name} snapshot (fetch {seq})")
            self._settle(network)
            return None

        self._cache[network] = snapshot
        self._applied_seq[network] = seq
        self._status.succeed(network, snapshot.timestamp)
        logger.info(
            f"Stored {network.name} snapshot: {snapshot.total_transactions} txns "
            f"in ledgers {snapshot.ledger_range}"
        )
        self._notify(network, snapshot)
        return snapshot

    def _settle(self, network: NetworkEndpoint) -> None:
        """Leave FETCHING after a superseded fetch without touching the error."""
        if self._status.get(network).state is NetworkState.FETCHING:
            if network in self._cache:
                self._status.restore(network, NetworkState.CACHED)
            else:
                self._status.restore(network, NetworkState.IDLE)

    def _notify(self, network: NetworkEndpoint, snapshot: Snapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(network, snapshot)
            except Exception:
                logger.exception(f"Snapshot listener failed for {network.name}")
