"""
Defines the command-line interface for the application using Typer.

These commands manage the state a prefill run leaves behind. Running a prefill
needs a logged in Steam session, which is provided by the embedding application
through `steam_prefill.core.prefill_manager.PrefillManager`.
"""

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from steam_prefill import __version__
from steam_prefill.exceptions import SteamPrefillError
from steam_prefill.models.workload import BenchmarkWorkload
from steam_prefill.storage.config_manager import ConfigManager
from steam_prefill.storage.selection import SelectionStore
from steam_prefill.storage.success_store import SqliteDepotSuccessStore

from .formatters import (
    print_benchmark_summary,
    print_config,
    print_validation_table,
)

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("steam_prefill")

app = typer.Typer(
    name="steam-prefill",
    help="Prefills a Lancache with your Steam games.",
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)
selection_app = typer.Typer(help="Manage the apps selected for prefill.")
app.add_typer(selection_app, name="selection")


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "steam-prefill"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_config():
    try:
        return ConfigManager(CONFIG_FILE).load_config()
    except SteamPrefillError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """Steam Lancache Prefill CLI"""
    if version:
        console.print(f"[bold]steam-prefill[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("steam_prefill").setLevel(log_level)

    if show_config:
        config = _load_config()
        print_config(CONFIG_FILE, config.model_dump(exclude={"config_dir", "cache_dir"}))
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def validate():
    """Validate the current configuration."""
    print_validation_table(_load_config())


@selection_app.command("show")
def selection_show():
    """List the app ids currently selected for prefill."""
    config = _load_config()
    try:
        app_ids = SelectionStore(config.selected_apps_path).load()
    except SteamPrefillError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e

    if not app_ids:
        console.print("[yellow]No apps have been selected yet.[/yellow]")
        return
    console.print(f"[bold]Selected apps ([magenta]{len(app_ids)}[/magenta]):[/bold]")
    for app_id in app_ids:
        console.print(f"  [cyan]{app_id}[/cyan]")


@selection_app.command("clear")
def selection_clear(
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Remove every app from the prefill selection."""
    if not force and not typer.confirm("Clear all selected apps?"):
        raise typer.Abort()
    config = _load_config()
    if SelectionStore(config.selected_apps_path).clear():
        console.print("[green]✓ Selection cleared.[/green]")
    else:
        console.print("[dim]No selection to clear.[/dim]")


@app.command(name="benchmark-summary")
def benchmark_summary(
    path: Path | None = typer.Argument(  # noqa: B008
        None, help="Workload file to inspect. Defaults to the last one built."
    ),
):
    """Show the contents of a benchmark workload file."""
    config = _load_config()
    workload_path = path or config.benchmark_workload_path

    try:
        workload = asyncio.run(BenchmarkWorkload.load(workload_path))
    except SteamPrefillError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    print_benchmark_summary(workload, workload_path, workload_path.stat().st_size, console)


@app.command(name="clear-success-state")
def clear_success_state(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Bypass the confirmation prompt.",
    ),
):
    """Forget which depots were downloaded, so the next prefill downloads everything."""
    if not force and not typer.confirm(
        "Are you sure you want to clear the record of downloaded depots? "
        "Every app will be downloaded again on the next run."
    ):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    config = _load_config()

    async def _clear_async():
        store = SqliteDepotSuccessStore(config.success_store_path)
        if await store.clear():
            console.print("[green]✓ Downloaded depots cleared successfully.[/green]")
        else:
            console.print("[red]✗ Failed to clear downloaded depots.[/red]")

    asyncio.run(_clear_async())


@app.command()
def vacuum():
    """Optimize the downloaded depots database."""
    config = _load_config()

    async def _vacuum():
        console.print("[cyan]Optimizing downloaded depots database...[/cyan]")
        store = SqliteDepotSuccessStore(config.success_store_path)
        if await store.vacuum():
            console.print(
                f"[green]✓ Database optimized ({await store.count()} depots).[/green]"
            )
        else:
            console.print("[red]✗ Optimization failed.[/red]")

    asyncio.run(_vacuum())
