"""
Boardbook - CLI Entry Point

Command-line interface for database setup and governance housekeeping.

Usage:
    # Create the tables (development databases, production uses Alembic)
    boardbook init-db

    # List review flags past their due date
    boardbook overdue-flags
"""

import asyncio

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from boardbook.core.config import settings
from boardbook.core.database import async_session_maker, create_tables, engine
from boardbook.core.logging_config import setup_logging
from boardbook.governance.models import utcnow
from boardbook.governance.services import ReviewFlagService

app = typer.Typer(
    name="boardbook",
    help="Governance records for a board: meetings, minutes, motions and review flags",
    add_completion=False,
)
console = Console()


def print_banner() -> None:
    """Print the application banner."""
    console.print(Panel.fit(
        f"[bold blue]{settings.app_name}[/bold blue]\n"
        f"[dim]Environment: {settings.environment}[/dim]",
        border_style="blue",
    ))
    console.print()


@app.callback()
def main(
    log_level: str = typer.Option(None, "--log-level", "-l", help="Override LOG_LEVEL"),
) -> None:
    setup_logging(log_level)


@app.command("init-db")
def init_db() -> None:
    """
    Create all governance and audit tables.

    Existing tables are left untouched.
    """
    print_banner()

    async def run_init() -> None:
        await create_tables()
        await engine.dispose()

    try:
        asyncio.run(run_init())
    except Exception as e:
        console.print(f"\n[red]Database setup failed: {e}[/red]")
        raise typer.Exit(1)

    console.print("[green]Tables created.[/green]")


@app.command("overdue-flags")
def overdue_flags() -> None:
    """
    List review flags that are past their due date and not closed.

    Exits with status 2 when overdue flags exist, so it can gate scheduled
    jobs.
    """
    print_banner()

    async def run_list() -> list:
        async with async_session_maker() as session:
            flags = await ReviewFlagService(session).get_overdue_flags()
        await engine.dispose()
        return flags

    try:
        flags = asyncio.run(run_list())
    except Exception as e:
        console.print(f"\n[red]Failed to load flags: {e}[/red]")
        raise typer.Exit(1)

    if not flags:
        console.print("[green]No overdue review flags.[/green]")
        return

    now = utcnow()
    table = Table(title="Overdue Review Flags")
    table.add_column("Title", style="green")
    table.add_column("Type", style="cyan")
    table.add_column("Status")
    table.add_column("Target", style="dim")
    table.add_column("Due")
    table.add_column("Days Overdue", justify="right", style="red")

    for flag in flags:
        due = flag.due_date if flag.due_date.tzinfo else flag.due_date.replace(tzinfo=now.tzinfo)
        table.add_row(
            flag.title[:60] + "..." if len(flag.title) > 60 else flag.title,
            flag.flag_type.value,
            flag.status.value,
            f"{flag.target_type}:{flag.target_id}",
            due.strftime("%Y-%m-%d"),
            str((now - due).days),
        )

    console.print(table)
    raise typer.Exit(2)


if __name__ == "__main__":
    app()
