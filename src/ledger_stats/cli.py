"""CLI for ledger result statistics.

This module provides Click commands that drive the refresh coordinator
and render its snapshots with rich.

Usage:
    ledger-stats snapshot [--network xrpl|xahau|all] [--json]
    ledger-stats watch [--mode live|historical] [--network ...]
    ledger-stats --ledgers 50 --scan-timeout 120 snapshot
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import click

from ledger_stats.config import (
    NETWORKS,
    ConfigBuilder,
    RefreshMode,
    StatsConfig,
    get_network,
)
from ledger_stats.coordinator import RefreshCoordinator
from ledger_stats.display import console, display_snapshot, display_status
from ledger_stats.utils.logging import make_logger, setup_logging

if TYPE_CHECKING:
    from ledger_stats.aggregator import Snapshot
    from ledger_stats.config import NetworkEndpoint

logger = make_logger(__name__)

NETWORK_CHOICES = [n.short_name.lower() for n in NETWORKS] + ["all"]


def _build_config(
    ctx: click.Context,
    network: str,
) -> StatsConfig:
    """Create a StatsConfig from the group options and a --network choice."""
    builder = ConfigBuilder(ctx.obj["config"])
    if network != "all":
        builder.networks(get_network(network))
    return builder.build()


@click.group()
@click.option(
    "--ledgers",
    type=int,
    default=None,
    envvar="LEDGER_STATS_LEDGERS",
    help="Ledgers per historical scan (env: LEDGER_STATS_LEDGERS, default: 100)",
)
@click.option(
    "--interval",
    type=float,
    default=None,
    envvar="LEDGER_STATS_INTERVAL",
    help="Seconds between historical rescans (env: LEDGER_STATS_INTERVAL, default: 300)",
)
@click.option(
    "--retries",
    type=int,
    default=None,
    envvar="LEDGER_STATS_RETRIES",
    help="Extra attempts per failing ledger (env: LEDGER_STATS_RETRIES, default: 1)",
)
@click.option(
    "--scan-timeout",
    type=float,
    default=None,
    envvar="LEDGER_STATS_SCAN_TIMEOUT",
    help="Give up on a network fetch after N seconds (default: no limit)",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="warning",
    help="Log level",
)
@click.pass_context
def cli(
    ctx: click.Context,
    ledgers: int | None,
    interval: float | None,
    retries: int | None,
    scan_timeout: float | None,
    log_level: str,
) -> None:
    """Rank transaction result codes and types on XRPL and Xahau.

    Examples:

        # One-off scan of the last 100 ledgers on both networks
        ledger-stats snapshot

        # Last 20 ledgers on Xahau only, as JSON
        ledger-stats --ledgers 20 snapshot --network xahau --json

        # Update on every closed ledger
        ledger-stats watch --mode live
    """
    setup_logging(log_level.upper(), logger)

    builder = ConfigBuilder()
    try:
        builder.historical(ledger_count=ledgers, interval=interval)
        if retries is not None:
            builder.ledger_retries(retries)
        builder.scan_timeout(scan_timeout)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    ctx.ensure_object(dict)
    ctx.obj["config"] = builder.build()


@cli.command()
@click.option(
    "--network",
    type=click.Choice(NETWORK_CHOICES, case_sensitive=False),
    default="all",
    help="Network to scan (default: all)",
)
@click.option("--json", "as_json", is_flag=True, help="Print snapshots as JSON")
@click.pass_context
def snapshot(ctx: click.Context, network: str, as_json: bool) -> None:
    """Scan recent ledgers once and print the ranked statistics.

    Exits with status 1 if no requested network could be fetched.
    """
    config = _build_config(ctx, network)
    coordinator = RefreshCoordinator(config)

    results = asyncio.run(
        coordinator.force_refresh_all(ledger_count=config.historical_ledger_count)
    )

    if as_json:
        payload = {
            endpoint.short_name: (
                snap.to_dict()
                if snap is not None
                else {"error": coordinator.last_error(endpoint)}
            )
            for endpoint, snap in results.items()
        }
        click.echo(json.dumps(payload, indent=2))
    else:
        for endpoint, snap in results.items():
            _print_result(coordinator, endpoint, snap)

    if all(snap is None for snap in results.values()):
        ctx.exit(1)


@cli.command()
@click.option(
    "--mode",
    type=click.Choice([m.value for m in RefreshMode], case_sensitive=False),
    default=RefreshMode.HISTORICAL.value,
    help="live: rescan on every closed ledger; historical: periodic window rescans",
)
@click.option(
    "--network",
    type=click.Choice(NETWORK_CHOICES, case_sensitive=False),
    default="all",
    help="Network to watch (default: all)",
)
@click.pass_context
def watch(ctx: click.Context, mode: str, network: str) -> None:
    """Keep snapshots fresh and print each one as it is stored (Ctrl-C to stop)."""
    config = _build_config(ctx, network)
    try:
        asyncio.run(_watch(config, RefreshMode(mode.lower())))
    except KeyboardInterrupt:
        console.print("\n[bold yellow]Watching stopped by user[/bold yellow]")


async def _watch(config: StatsConfig, mode: RefreshMode) -> None:
    coordinator = RefreshCoordinator(config)

    def on_snapshot(endpoint: NetworkEndpoint, snap: Snapshot) -> None:
        console.print()
        display_snapshot(snap)

    coordinator.add_listener(on_snapshot)
    console.print(
        f"[yellow]Watching {', '.join(n.name for n in config.networks)} "
        f"({mode.value} mode)...[/yellow]"
    )
    await coordinator.start(mode)
    try:
        await asyncio.Event().wait()
    finally:
        await coordinator.close()


def _print_result(
    coordinator: RefreshCoordinator,
    endpoint: NetworkEndpoint,
    snap: Snapshot | None,
) -> None:
    console.print()
    if snap is not None:
        display_snapshot(snap)
    else:
        display_status(
            endpoint,
            coordinator.status_text(endpoint),
            coordinator.last_error(endpoint),
        )


def main() -> None:
    """Entry point for the ledger-stats CLI."""
    cli()


if __name__ == "__main__":
    main()
