"""Passcode state CLI commands."""

import asyncio

import typer
from rich.console import Console

from deckgate.services.cache import close_cache, create_redis_client
from deckgate.services.otp import OtpStore
from deckgate.tasks.maintenance import sweep_stale_otp_keys

console = Console()
app = typer.Typer(help="One-time passcode commands")


@app.command("clear")
def clear(
    email: str = typer.Argument(..., help="Recipient email"),
    token: str = typer.Argument(..., help="Share token"),
):
    """Reset code, attempts and cooldown for a recipient on a link."""

    async def _clear():
        client = create_redis_client()
        try:
            deleted = await OtpStore(client).clear(email, token)
        finally:
            await close_cache(client)
        console.print(f"[green]Cleared {deleted} keys[/green] for {email.strip().lower()}")

    asyncio.run(_clear())


@app.command("cleanup")
def cleanup(
    dry_run: bool = typer.Option(True, "--dry-run/--execute", help="Only report, don't delete"),
):
    """Delete passcode keys that were left without an expiry."""

    async def _cleanup():
        client = create_redis_client()
        try:
            result = await sweep_stale_otp_keys(client, dry_run=dry_run)
        finally:
            await close_cache(client)

        console.print(f"Scanned: {result['scanned']}")
        console.print(f"Without TTL: {result['stale']}")
        if dry_run:
            if result["stale"]:
                console.print("[yellow]Dry run - run with --execute to delete them.[/yellow]")
        else:
            console.print(f"[green]Deleted: {result['deleted']}[/green]")

    asyncio.run(_cleanup())
