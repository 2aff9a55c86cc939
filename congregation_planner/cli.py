"""
Congregation Planner - CLI Entry Point

Usage:
    # Run the API server
    congregation-planner serve --port 8000

    # Create the database tables
    congregation-planner init-db

    # Ask for the next speaker suggestion, skipping some speakers
    congregation-planner suggest --exclude 3f1c... --exclude 9a0b...
"""

import asyncio
import uuid
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from congregation_planner import __version__
from congregation_planner.core.config import settings

app = typer.Typer(
    name="congregation-planner",
    help="Weekend meeting planning for congregations",
    add_completion=False,
)
console = Console()


def print_banner() -> None:
    """Print the application banner."""
    console.print(Panel.fit(
        f"[bold blue]Congregation Planner[/bold blue] [dim]v{__version__}[/dim]\n"
        "[dim]Weekend meetings, speakers and public talks[/dim]",
        border_style="blue",
    ))
    console.print()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Interface to bind"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the API server."""
    import uvicorn

    from congregation_planner.main import configure_logging

    print_banner()
    configure_logging()
    uvicorn.run(
        "congregation_planner.main:app",
        host=host,
        port=port,
        reload=reload,
        log_config=None,
    )


@app.command()
def init_db() -> None:
    """
    Initialize the database schema.

    Creates all required tables if they don't exist. Production databases
    should be migrated with ``alembic upgrade head`` instead.
    """
    from congregation_planner.core.database import init_db as create_tables

    print_banner()
    console.print("[blue]Initializing database schema...[/blue]")

    try:
        asyncio.run(create_tables())
    except Exception as e:
        console.print(f"[red]Failed to initialize database: {e}[/red]")
        console.print(f"[dim]Database URL: {settings.database_url}[/dim]")
        raise typer.Exit(1)

    console.print("[green]Database schema initialized successfully![/green]")


@app.command()
def suggest(
    exclude: Optional[list[str]] = typer.Option(
        None, "--exclude", "-x",
        help="Speaker id to skip (repeatable)",
    ),
) -> None:
    """
    Suggest the next public talk speaker and the talks they could give.

    Skip a suggestion by running again with its speaker id passed to
    --exclude.
    """
    from congregation_planner.core.database import async_session_maker
    from congregation_planner.scheduling.suggestion import AutoSuggestionService

    try:
        excluded = [uuid.UUID(value) for value in exclude or []]
    except ValueError as e:
        console.print(f"[red]Invalid speaker id: {e}[/red]")
        raise typer.Exit(2)

    async def run_suggest():
        async with async_session_maker() as session:
            return await AutoSuggestionService(session).suggest(excluded)

    suggestion = asyncio.run(run_suggest())

    if suggestion.speaker is None:
        console.print("[yellow]No speaker available to suggest.[/yellow]")
        return

    speaker = suggestion.speaker
    table = Table(show_header=True, header_style="bold", title="Suggested Speaker")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("ID", str(speaker.id))
    table.add_row("Name", f"{speaker.first_name} {speaker.last_name}")
    table.add_row("Congregation", speaker.congregation_name or "-")
    table.add_row("Phone", speaker.phone or "-")
    table.add_row("Visiting", "yes" if speaker.is_visiting else "no (local publisher)")
    table.add_row(
        "Last Talk",
        speaker.last_talk_date.isoformat() if speaker.last_talk_date else "Never",
    )
    console.print(table)
    console.print()

    talks = Table(show_header=True, header_style="bold", title="Available Talks")
    talks.add_column("No", justify="right", style="cyan")
    talks.add_column("Title")
    talks.add_column("Last Given", style="dim")
    for talk in suggestion.available_talks:
        talks.add_row(
            str(talk.no),
            talk.title,
            talk.last_given_date.isoformat() if talk.last_given_date else "Never",
        )
    console.print(talks)

    if suggestion.has_more_suggestions:
        console.print()
        console.print(
            f"[dim]More speakers available: add --exclude {speaker.id} to see the next one[/dim]"
        )


@app.callback()
def main() -> None:
    """
    Congregation Planner - weekend meeting scheduling.

    Use 'congregation-planner COMMAND --help' for more information on a command.
    """
    pass


if __name__ == "__main__":
    app()
