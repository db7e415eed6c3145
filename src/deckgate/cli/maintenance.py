"""Maintenance CLI commands."""

import asyncio

import typer
from rich.console import Console

from deckgate.tasks import queue
from deckgate.tasks.maintenance import MAINTENANCE_TIMEOUT_SECONDS

console = Console()
app = typer.Typer(help="Maintenance and cleanup commands")


@app.command("purge-links")
def purge_links(
    background: bool = typer.Option(False, "--background", "-b", help="Run in background worker"),
):
    """Delete share links past their expiry or maximum age."""

    async def _purge():
        if background:
            job = await queue.enqueue("purge_share_links", timeout=MAINTENANCE_TIMEOUT_SECONDS)
            console.print(f"[green]Queued link purge job:[/green] {job.id if job else 'unknown'}")
            return

        from deckgate.tasks.maintenance import purge_share_links

        console.print("[cyan]Purging dead share links...[/cyan]")
        result = await purge_share_links()
        console.print(f"[green]Deleted {result['deleted']} share links.[/green]")

    asyncio.run(_purge())
