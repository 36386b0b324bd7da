"""
Rich-based terminal dashboard for speedtest results.

All formatting helpers live in ``netmeter.stats`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

import statistics
from datetime import datetime, timezone
from typing import Any, Dict, List

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from netmeter.grading import latency_category, speed_category
from netmeter.stats import (
    calculate_percentile,
    chunk_mbps,
    format_bytes,
    format_latency,
    format_speed,
)
from netmeter.throughput import ProgressSnapshot

console = Console()


# ---------------------------------------------------------------------------
# Histogram helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"


def create_histogram(values: List[float], width: int = 40) -> str:
    """Return a single-line Unicode bar-chart of at most *width* bars."""
    if not values:
        return "No data"

    if len(values) > width:
        step = len(values) / width
        values = [values[int(i * step)] for i in range(width)]

    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    return "".join(
        _BARS[min(int((v - lo) / span * (len(_BARS) - 1)), len(_BARS) - 1)] for v in values
    )


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]netmeter[/bold cyan]\n"
            "[dim]Latency, jitter and throughput from the terminal[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_endpoint_ranking(ranking: list) -> None:  # noqa: ANN001 (List[RankedEndpoint])
    table = Table(title="Endpoint Selection", box=box.ROUNDED)
    table.add_column("#", style="dim", width=4)
    table.add_column("Endpoint", style="bold")
    table.add_column("Location")
    table.add_column("Latency", justify="right")

    for i, ranked in enumerate(ranking[:10]):
        style = "green" if i == 0 else None
        marker = ">" if i == 0 else " "
        table.add_row(
            f"{marker}{i + 1}",
            ranked.endpoint.name,
            ranked.endpoint.location,
            format_latency(ranked.latency_ms) if ranked.reachable else "N/A",
            style=style,
        )

    console.print(table)


def print_latency_details(result) -> None:  # noqa: ANN001 (LatencyResult)
    """Print detailed latency statistics and a histogram."""
    table = Table(title="Latency Details", box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    pings = result.samples
    if not pings:
        console.print("[yellow]No latency samples collected.[/yellow]")
        return

    table.add_row("Ping (median)", f"{format_latency(result.ping)}  [dim]{latency_category(result.ping)}[/dim]")
    table.add_row("Jitter (std dev)", f"{result.jitter:.2f} ms")
    table.add_row("Min", format_latency(min(pings)))
    table.add_row("Max", format_latency(max(pings)))
    table.add_row("Mean", format_latency(statistics.mean(pings)))
    table.add_row("p95", format_latency(calculate_percentile(pings, 95)))
    table.add_row("Samples", f"{len(pings)}/{result.attempts}")
    if result.failed_probes:
        table.add_row("Failed Probes", f"[red]{result.failed_probes}[/red]")
    console.print(table)

    console.print(
        Panel(
            f"[cyan]{create_histogram(pings)}[/cyan]\n"
            f"[dim]Min: {min(pings):.1f} ms  Max: {max(pings):.1f} ms[/dim]",
            title="Ping Histogram",
        )
    )


def print_speed_result(result, title: str, color: str = "green") -> None:  # noqa: ANN001
    """Print a download or upload result panel."""
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Speed", f"[bold {color}]{format_speed(result.mbps)}[/bold {color}]")
    table.add_row("Category", speed_category(result.mbps))
    table.add_row("Data Transferred", format_bytes(result.bytes_total))
    table.add_row("Duration", f"{result.duration_s:.1f} s")
    table.add_row("Connections", str(result.connections))
    table.add_row("Chunk Size", format_bytes(result.chunk_size))
    table.add_row("Chunks", str(len(result.samples)))
    if result.errors:
        table.add_row("Failed Chunks", f"[red]{result.errors}[/red]")
    console.print(table)

    per_chunk = chunk_mbps(result.samples)
    if per_chunk:
        console.print(
            Panel(
                f"[{color}]{create_histogram(per_chunk)}[/{color}]\n"
                f"[dim]Per-chunk min: {min(per_chunk):.1f} Mbps  "
                f"max: {max(per_chunk):.1f} Mbps[/dim]",
                title="Chunk Speeds",
            )
        )


def print_final_results(report) -> None:  # noqa: ANN001 (SpeedtestReport)
    quality = report.quality
    summary = ""
    if quality is not None:
        summary = (
            f"\n\n[bold white]   Grade:[/bold white]  [bold {quality.color}]{quality.grade}[/bold {quality.color}]"
            f"  [dim]({quality.score}/100)[/dim]\n"
            f"   [dim]{quality.description}[/dim]"
        )

    caps = report.capabilities
    if caps is not None:
        summary += (
            f"\n\n[bold white]   Streams:[/bold white]  {caps.hd_streams} HD  "
            f"{caps.full_hd_streams} Full HD  {caps.four_k_streams} 4K"
        )
        if caps.cannot_support:
            names = ", ".join(a.name for a in caps.cannot_support)
            summary += f"\n   [dim]Too slow for: {names}[/dim]"

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Endpoint:[/bold cyan] {report.endpoint.name} ({report.endpoint.location})\n\n"
            f"[bold white]   Ping:[/bold white]  [bold yellow]{report.latency.ping:.1f} ms[/bold yellow]  "
            f"[dim](jitter: {report.latency.jitter:.2f} ms)[/dim]\n"
            f"[bold white]   Download:[/bold white]  [bold green]{format_speed(report.download.mbps)}[/bold green]\n"
            f"[bold white]   Upload:[/bold white]  [bold blue]{format_speed(report.upload.mbps)}[/bold blue]"
            f"{summary}",
            title="[bold]Results[/bold]",
            border_style="cyan",
        )
    )
    console.print()


def print_history(entries: List[Dict[str, Any]]) -> None:
    if not entries:
        console.print("[dim]No test history yet.[/dim]")
        return

    table = Table(title="Recent Tests", box=box.ROUNDED)
    table.add_column("When", style="dim")
    table.add_column("Endpoint")
    table.add_column("Ping", justify="right")
    table.add_column("Jitter", justify="right")
    table.add_column("Download", justify="right", style="green")
    table.add_column("Upload", justify="right", style="blue")

    for e in entries:
        # Remote records carry server_id and epoch-millisecond timestamps.
        when = e.get("timestamp", "?")
        if isinstance(when, (int, float)):
            when = datetime.fromtimestamp(when / 1000, tz=timezone.utc).isoformat()
        table.add_row(
            str(when)[:16].replace("T", " "),
            str(e.get("endpoint_id") or e.get("server_id") or "?"),
            f"{e.get('ping') or 0:.1f} ms",
            f"{e.get('jitter') or 0:.2f} ms",
            format_speed(e.get("download_mbps") or 0),
            format_speed(e.get("upload_mbps") or 0),
        )

    console.print(table)


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

class ProgressDisplay:
    """Manages a ``rich`` progress bar during download / upload tests."""

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[bold cyan]{task.fields[speed]}[/bold cyan]"),
            TextColumn("[dim]{task.fields[conns]}[/dim]"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id = None

    def start(self, description: str) -> None:
        self.progress.start()
        self._task_id = self.progress.add_task(description, total=100, speed="...", conns="")

    def update(self, snapshot: ProgressSnapshot) -> None:
        if self._task_id is None:
            return
        self.progress.update(
            self._task_id,
            completed=snapshot.fraction * 100,
            speed=format_speed(snapshot.mbps) if snapshot.mbps > 0 else "...",
            conns=f"{snapshot.connections} conn",
        )

    def stop(self) -> None:
        if self._task_id is not None:
            self.progress.update(self._task_id, completed=100)
        self.progress.stop()
        self._task_id = None
