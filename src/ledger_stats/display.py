"""Rich rendering of cached snapshots.

This module provides:
- Ranked result code / transaction type tables
- A one-line summary (total, top entries, ledger range)
- Status lines for networks without a snapshot
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from ledger_stats.aggregator import RankedEntry, Snapshot
    from ledger_stats.config import NetworkEndpoint

console = Console()

BAR_WIDTH = 20
BAR_COLORS = ["green", "blue", "dark_orange", "red", "magenta", "pink1", "yellow", "cyan"]


def format_share(share: float) -> str:
    return f"{share:.1f}%"


def share_bar(share: float, index: int, width: int = BAR_WIDTH) -> str:
    """Markup for a proportional bar, colored by rank."""
    filled = round(width * max(0.0, min(share, 100.0)) / 100.0)
    color = BAR_COLORS[index % len(BAR_COLORS)]
    return f"[{color}]{'█' * filled}[/{color}][dim]{'░' * (width - filled)}[/dim]"


def ranked_table(title: str, label_header: str, entries: tuple[RankedEntry, ...]) -> Table:
    """Build a table of ranked entries with count, share and bar columns."""
    table = Table(title=title, title_justify="left")
    table.add_column(label_header, style="cyan", no_wrap=True)
    table.add_column("Count", justify="right", style="yellow")
    table.add_column("Share", justify="right", style="magenta")
    table.add_column("", no_wrap=True)

    for index, entry in enumerate(entries):
        table.add_row(
            entry.label,
            str(entry.count),
            format_share(entry.share),
            share_bar(entry.share, index),
        )
    return table


def summary_line(snapshot: Snapshot) -> str:
    parts = [f"[bold]{snapshot.network_label}[/bold]"]
    parts.append(f"Total: {snapshot.total_transactions}")
    if snapshot.most_common_result_code:
        parts.append(f"Top: {snapshot.most_common_result_code}")
    if snapshot.most_common_transaction_type:
        parts.append(f"Top type: {snapshot.most_common_transaction_type}")
    parts.append(f"Ledgers: {snapshot.ledger_range}")
    if snapshot.failed_ledgers:
        parts.append(f"[yellow]{snapshot.failed_ledgers} ledger(s) skipped[/yellow]")
    return "  ".join(parts)


def footer_line(snapshot: Snapshot) -> str:
    updated = snapshot.timestamp.astimezone().strftime("%H:%M:%S")
    line = f"[dim]Updated: {updated}"
    if snapshot.average_per_result_code > 0:
        line += f"  Avg: {snapshot.average_per_result_code:.1f}"
    if snapshot.average_per_transaction_type > 0:
        line += f"  Avg/type: {snapshot.average_per_transaction_type:.1f}"
    return line + "[/dim]"


def display_snapshot(snapshot: Snapshot, target: Console | None = None) -> None:
    """Print a snapshot's summary and both ranked tables."""
    out = target or console
    out.print(summary_line(snapshot))

    if not snapshot.ranked_result_codes:
        out.print("[dim]No transactions found[/dim]")
    else:
        out.print(
            ranked_table("Result Codes", "Result", snapshot.ranked_result_codes)
        )
        out.print(
            ranked_table(
                "Transaction Types", "Type", snapshot.ranked_transaction_types
            )
        )

    out.print(footer_line(snapshot))


def display_status(
    network: NetworkEndpoint,
    status_text: str,
    error: str | None = None,
    target: Console | None = None,
) -> None:
    """Print a status line for a network (used when there is no snapshot)."""
    out = target or console
    if error:
        out.print(f"[bold]{network.name}[/bold]  [red]{error}[/red]")
    else:
        out.print(f"[bold]{network.name}[/bold]  [dim]{status_text}[/dim]")
