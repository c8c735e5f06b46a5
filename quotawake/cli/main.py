"""
Quotawake CLI entry point.

Usage:
    # Run one update pass
    quotawake --once

    # Run the adaptive monitor until interrupted
    quotawake --scheduled

    # Show accounts and usage windows
    quotawake --status

    # Seed accounts from YAML
    quotawake --import-accounts accounts.yaml
"""

import signal
import threading
from typing import Optional

import click
import yaml
from rich.console import Console
from rich.table import Table

from quotawake.core.config import get_monitor_config, get_settings
from quotawake.core.logging import get_logger, setup_logging
from quotawake.core.timeutil import format_timestamp, now_utc, round_minutes, to_local
from quotawake.domain.models import UsageWindow
from quotawake.services.monitor import create_usage_monitor
from quotawake.services.persistence import SQLiteAccountStore, create_account_store

console = Console()
logger = get_logger("cli")


def run_once(store: SQLiteAccountStore) -> None:
    """Run a single update pass and show the planned next interval."""
    monitor = create_usage_monitor(store=store)
    try:
        counts = monitor.update_pass.run()
        interval = monitor.planner.next_interval()
    finally:
        monitor.close()

    table = Table(title="Update Pass")
    table.add_column("Counter", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in counts.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)
    console.print(f"Next update would run in [bold]{round_minutes(interval)}[/bold] minutes\n")


def _window_cell(window: Optional[UsageWindow]) -> str:
    if window is None:
        return "[dim]-[/dim]"
    if window.resets_at is None:
        return "[yellow]dormant[/yellow]"
    resets = format_timestamp(to_local(window.resets_at), "display")
    return f"{window.utilization * 100:.1f}% (resets {resets})"


def show_status(store: SQLiteAccountStore) -> None:
    """Show configuration and per-account usage."""
    settings = get_settings()
    config = get_monitor_config()

    console.print("\n[bold]Quotawake Status[/bold]\n")

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Environment", settings.quotawake_env)
    table.add_row("Timezone", settings.timezone)
    table.add_row("Database", settings.database_url)
    table.add_row("Base interval", f"{config.base_interval_minutes} min")
    table.add_row("After reset", f"{config.after_reset_minutes} min")
    table.add_row("Reset threshold", f"{config.reset_threshold_minutes} min")

    console.print(table)
    console.print()

    accounts = store.list_accounts()
    if not accounts:
        console.print("[yellow]No accounts. Use --import-accounts to add some.[/yellow]")
        return

    table = Table(title="Accounts")
    table.add_column("Account", style="cyan")
    table.add_column("Active")
    table.add_column("Tracked")
    table.add_column("5h window")
    table.add_column("7d window")

    for account in accounts:
        snapshot = store.get_usage_snapshot(account.id)
        table.add_row(
            account.name,
            "[green]yes[/green]" if account.is_active else "[red]no[/red]",
            "yes" if account.is_tracked(config.required_scopes) else "no",
            _window_cell(snapshot.five_hour if snapshot else None),
            _window_cell(snapshot.seven_day if snapshot else None),
        )

    console.print(table)


def import_accounts(store: SQLiteAccountStore, path: str) -> None:
    """Seed the account store from a YAML list."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or []
    if isinstance(data, dict):
        data = data.get("accounts", [])

    count = store.import_accounts(data)
    console.print(f"[green]Imported {count} accounts[/green]")


def run_scheduled(store: SQLiteAccountStore) -> None:
    """Run the adaptive monitor until SIGINT/SIGTERM."""
    console.print("[bold]Starting Quotawake usage monitor...[/bold]")
    console.print("Press Ctrl+C to stop\n")

    monitor = create_usage_monitor(store=store)
    stopped = threading.Event()

    def shutdown(signum, frame):
        console.print("\n[yellow]Shutting down...[/yellow]")
        stopped.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    monitor.start()

    status = monitor.get_status()
    if status.next_run_at:
        console.print(
            f"Next update at {format_timestamp(to_local(status.next_run_at), 'display')}"
        )

    try:
        while not stopped.wait(timeout=1):
            pass
    finally:
        monitor.close()
        logger.info(f"Monitor exited at {format_timestamp(now_utc())}")


@click.command()
@click.option("--once", is_flag=True, help="Run one update pass and exit")
@click.option("--scheduled", is_flag=True, help="Run the adaptive monitor")
@click.option("--status", is_flag=True, help="Show accounts and usage windows")
@click.option(
    "--import-accounts",
    "accounts_file",
    type=click.Path(exists=True, dir_okay=False),
    help="Seed accounts from a YAML file",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def main(
    once: bool,
    scheduled: bool,
    status: bool,
    accounts_file: Optional[str],
    verbose: bool,
) -> None:
    """Quotawake - adaptive usage-window monitor"""

    log_level = "DEBUG" if verbose else None
    setup_logging(log_level=log_level)

    if not (once or scheduled or status or accounts_file):
        ctx = click.get_current_context()
        click.echo(ctx.get_help())
        return

    store = create_account_store()

    if accounts_file:
        import_accounts(store, accounts_file)

    if status:
        show_status(store)
        return

    if once:
        run_once(store)
        return

    if scheduled:
        run_scheduled(store)


if __name__ == "__main__":
    main()
