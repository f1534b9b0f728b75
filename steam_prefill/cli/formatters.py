"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any, Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from steam_prefill.models.config import PrefillConfig
from steam_prefill.models.stats import PrefillSummary
from steam_prefill.models.workload import BenchmarkWorkload
from steam_prefill.utils.formatting import format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "LancacheNotFoundError": [
            "• Make sure your Lancache is running and reachable from this machine.",
            "• lancache.steamcontent.com must resolve to your Lancache's IP.",
            "• Check the DNS server configured for this machine.",
        ],
        "UserCancelledError": [
            "• The run was cancelled. Nothing else needs to be done.",
        ],
        "InfiniteLoopError": [
            "• A download kept retrying without making any progress.",
            "• Check that your Lancache has free disk space.",
            "• Try again later, Steam's CDN may be having issues.",
        ],
        "EntitlementQueryError": [
            "• Steam did not return your account's package info.",
            "• Steam may be down for maintenance. Please try again in a few minutes.",
        ],
        "SelectionStoreError": [
            "• Your selected apps file is unreadable.",
            "• Run `steam-prefill selection clear` and select your apps again.",
        ],
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `steam-prefill validate` to see the current settings.",
        ],
        "BenchmarkWorkloadError": [
            "• The workload file may be missing or from an incompatible version.",
            "• Build a new workload file.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if isinstance(value, list):
            value = ", ".join(map(str, value))
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: PrefillConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Operating Systems:", ", ".join(config.operating_systems))
    table.add_row("CPU Architecture:", config.cpu_architecture)
    table.add_row("Language:", config.language)
    table.add_row("Benchmark Workers:", str(config.benchmark_workers))
    table.add_row("Force:", "✓ Enabled" if config.force else "✗ Disabled")
    table.add_row(
        "Skip Downloads:", "✓ Enabled" if config.skip_downloads else "✗ Disabled"
    )
    table.add_row("Config Dir:", f"[dim]{config.config_dir}[/dim]")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_unowned_apps_table(
    app_names: Sequence[str], console: Optional[Console] = None
) -> None:
    """Warns about requested apps the account doesn't own, so users know they were skipped."""
    if not app_names:
        return
    console = console or Console()

    table = Table(box=box.MINIMAL_HEAVY_HEAD)
    table.add_column("App", style="white")
    for name in sorted(app_names, key=str.lower):
        table.add_row(name)

    console.print()
    console.print(
        f"[yellow] Warning!  Found [magenta]{len(app_names)}[/magenta] unowned apps!  "
        "They will be excluded from this prefill run...[/yellow]"
    )
    console.print(table)


def print_summary_panel(
    summary: PrefillSummary, duration_s: float, console: Optional[Console] = None
):
    """Displays the final summary of the prefill run."""
    console = console or Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("✓ Updated:", f"[bold green]{summary.updated}[/bold green]")
    stats_table.add_row(
        "○ Up To Date:", f"[yellow]{summary.already_up_to_date}[/yellow]"
    )

    # Only shown when non-zero
    if summary.no_depots_matched > 0:
        stats_table.add_row(
            "○ No Depots Matched:", f"[yellow]{summary.no_depots_matched}[/yellow]"
        )
    if summary.unowned_apps_skipped > 0:
        stats_table.add_row(
            "⚠ Unowned:", f"[yellow]{summary.unowned_apps_skipped}[/yellow]"
        )
    if summary.failed_apps > 0:
        stats_table.add_row(
            "✗ Failed:", f"[bold red]{summary.failed_apps}[/bold red]"
        )
        stats_table.add_row("", f"[red]{', '.join(summary.failed_app_names)}[/red]")

    stats_table.add_row("", "")  # Spacer
    stats_table.add_row(
        "Total Queued:", f"[cyan]{format_size(summary.total_bytes_queued)}[/cyan]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    border_color = "red" if summary.failed_apps else "green"
    console.print()
    console.print(
        Panel(
            stats_table,
            title="🎮 [bold]Prefill Summary[/bold]",
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()


def print_benchmark_summary(
    workload: BenchmarkWorkload,
    path: Path,
    file_size: int,
    console: Optional[Console] = None,
):
    """Displays what a benchmark workload file contains."""
    console = console or Console()

    table = Table(box=box.ROUNDED, title="[bold]Benchmark Workload[/bold]")
    table.add_column("App", style="cyan")
    table.add_column("Chunks", justify="right")
    table.add_column("Size", justify="right", style="magenta")
    for app in workload.queued_apps:
        table.add_row(app.name, str(len(app.queued_requests)), format_size(app.total_bytes))
    table.add_section()
    table.add_row(
        "[bold]Total[/bold]",
        f"[bold]{workload.chunk_count}[/bold]",
        f"[bold]{format_size(workload.total_bytes)}[/bold]",
    )

    console.print(table)
    console.print(f"[dim]CDN servers captured: {len(workload.cdn_servers)}[/dim]")
    console.print(Rule())
    console.print(f"Completed build of workload file [dim]{path}[/dim]")
    console.print(f"Resulting file size : [medium_purple]{format_size(file_size)}[/]")
