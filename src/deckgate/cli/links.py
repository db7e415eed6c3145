"""Share link inspection CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import select

from deckgate.database import get_session_context
from deckgate.models import ShareLink, User
from deckgate.services import share_links
from deckgate.services.access_policy import check_liveness

console = Console()
app = typer.Typer(help="Share link commands")


@app.command("list")
def list_links(
    email: str | None = typer.Option(None, "--owner", "-o", help="Only links of this owner"),
    limit: int = typer.Option(50, "--limit", "-l", help="Maximum rows"),
):
    """List share links, newest first."""

    async def _list():
        async with get_session_context() as session:
            stmt = select(ShareLink, User.email).join(User, ShareLink.user_id == User.id)  # type: ignore[arg-type]
            if email:
                stmt = stmt.where(User.email == email.strip().lower())
            stmt = stmt.order_by(ShareLink.created_at.desc()).limit(limit)  # type: ignore[attr-defined]
            rows = (await session.execute(stmt)).all()

        table = Table(title="Share links")
        table.add_column("Token", style="cyan")
        table.add_column("Owner")
        table.add_column("Access")
        table.add_column("Identifier")
        table.add_column("State")
        table.add_column("Expires", style="dim")
        for link, owner_email in rows:
            expires = link.expires_at.strftime("%Y-%m-%d") if link.expires_at else "-"
            table.add_row(
                link.token,
                owner_email,
                link.access_level.value,
                link.link_identifier or "-",
                check_liveness(link).value,
                expires,
            )
        console.print(table)

    asyncio.run(_list())


@app.command("inspect")
def inspect_link(token: str = typer.Argument(..., help="Share token")):
    """Show a link's policy and liveness."""

    async def _inspect():
        async with get_session_context() as session:
            link = await share_links.get_by_token(session, token)
        if link is None:
            console.print("[red]Error:[/red] Share link not found")
            raise typer.Exit(1)

        console.print(f"[bold]Token:[/bold] {link.token}")
        console.print(f"URL: {share_links.build_share_url(link.token, link.link_identifier)}")
        console.print(f"Access level: {link.access_level.value}")
        console.print(f"Recipient: {link.recipient_email or '-'}")
        console.print(f"Allowed emails: {', '.join(link.allowed_emails or []) or '-'}")
        console.print(f"Allowed domains: {', '.join(link.allowed_domains or []) or '-'}")
        console.print(f"Downloadable: {link.is_downloadable}")
        console.print(f"Verified: {link.is_verified}")
        console.print(f"Created: {link.created_at}")
        console.print(f"Expires: {link.expires_at or '-'}")
        console.print(f"State: {check_liveness(link).value}")

    asyncio.run(_inspect())


@app.command("revoke")
def revoke_link(
    token: str = typer.Argument(..., help="Share token"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Revoke a share link on behalf of its owner."""

    async def _revoke():
        async with get_session_context() as session:
            link = await share_links.get_by_token(session, token)
            if link is None:
                console.print("[yellow]Share link not found, nothing to revoke[/yellow]")
                return
            await share_links.revoke_share_link(session, link.user_id, link.token)
        console.print(f"[green]Revoked:[/green] {token}")

    if not force and not typer.confirm(f"Revoke share link {token}?"):
        console.print("[dim]Cancelled[/dim]")
        raise typer.Exit(0)
    asyncio.run(_revoke())
