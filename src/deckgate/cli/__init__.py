"""CLI commands using Typer."""

import typer

from deckgate.cli.links import app as links_app
from deckgate.cli.maintenance import app as maintenance_app
from deckgate.cli.otp import app as otp_app
from deckgate.cli.users import app as users_app

app = typer.Typer(name="deckgate", help="DeckGate CLI")

# Register sub-apps
app.add_typer(users_app, name="users")
app.add_typer(links_app, name="links")
app.add_typer(otp_app, name="otp")
app.add_typer(maintenance_app, name="maintenance")


@app.command()
def version():
    """Show version information."""
    from deckgate import __version__

    typer.echo(f"DeckGate v{__version__}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
):
    """Run the API server."""
    import uvicorn

    from deckgate.logging import get_uvicorn_log_config

    uvicorn.run(
        "deckgate.main:app",
        host=host,
        port=port,
        reload=reload,
        log_config=get_uvicorn_log_config(),
    )


@app.command()
def worker(
    concurrency: int = typer.Option(2, help="Number of concurrent tasks"),
):
    """Run the maintenance worker (OTP sweep, dead link purge)."""
    import asyncio

    from saq import Worker

    from deckgate.logging import setup_logging
    from deckgate.tasks import get_queue_settings

    setup_logging()
    queue_settings = get_queue_settings()
    typer.echo(f"Starting worker with concurrency={concurrency}")

    async def run_worker():
        w = Worker(
            queue=queue_settings["queue"],
            functions=queue_settings["functions"],
            cron_jobs=queue_settings["cron_jobs"],
            concurrency=concurrency,
            startup=queue_settings["startup"],
            shutdown=queue_settings["shutdown"],
        )
        await w.start()

    asyncio.run(run_worker())


@app.command()
def migrate(
    revision: str = typer.Argument("head", help="Target revision (default: head)"),
):
    """Run database migrations to the specified revision."""
    import subprocess
    import sys

    from rich.console import Console

    console = Console()
    console.print(f"[dim]Running migrations to {revision}...[/dim]")
    result = subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", revision],
        check=False,
    )
    if result.returncode != 0:
        console.print("[red]Migration failed![/red]")
        raise typer.Exit(1)
    console.print("[green]Migrations complete![/green]")


if __name__ == "__main__":
    app()
