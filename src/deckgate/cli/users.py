"""Deck owner management CLI commands."""

import asyncio

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.table import Table
from sqlmodel import select

from deckgate.config import settings
from deckgate.database import get_session_context
from deckgate.models import User
from deckgate.models.user import UserCreate
from deckgate.services.auth import create_token

console = Console()
app = typer.Typer(help="Deck owner management commands")


async def _get_user(session, email: str) -> User:
    stmt = select(User).where(User.email == email.strip().lower())
    user = (await session.execute(stmt)).scalar_one_or_none()
    if not user:
        console.print(f"[red]Error:[/red] User {email} not found")
        raise typer.Exit(1)
    return user


@app.command("list")
def list_users():
    """List all deck owners."""

    async def _list():
        async with get_session_context() as session:
            result = await session.execute(select(User).order_by(User.email))
            users = result.scalars().all()

        table = Table(title="Users")
        table.add_column("ID", style="cyan")
        table.add_column("Email", style="green")
        table.add_column("Name")
        table.add_column("Created", style="dim")
        for user in users:
            created = user.created_at.strftime("%Y-%m-%d") if user.created_at else "-"
            table.add_row(user.id, user.email, user.name or "-", created)
        console.print(table)

    asyncio.run(_list())


@app.command("create")
def create_user(
    email: str = typer.Argument(..., help="User email"),
    name: str | None = typer.Option(None, "--name", "-n", help="Display name"),
):
    """Create a deck owner."""
    try:
        data = UserCreate(email=email, name=name)
    except PydanticValidationError as e:
        console.print(f"[red]Error:[/red] {e.errors()[0]['msg']}")
        raise typer.Exit(1) from e

    async def _create():
        address = data.email
        async with get_session_context() as session:
            stmt = select(User).where(User.email == address)
            if (await session.execute(stmt)).scalar_one_or_none():
                console.print(f"[red]Error:[/red] User {address} already exists")
                raise typer.Exit(1)

            user = User(email=address, name=data.name)
            session.add(user)
            await session.commit()
            console.print(f"[green]Created user:[/green] {address} ({user.id})")

    asyncio.run(_create())


@app.command("token")
def issue_token(email: str = typer.Argument(..., help="User email")):
    """Mint an owner API token for a user."""

    async def _token():
        async with get_session_context() as session:
            user = await _get_user(session, email)
        console.print(create_token(user))
        console.print(
            f"[dim]Valid for {settings.owner_token_expiration_days} days. "
            f"Send as 'Authorization: Bearer <token>'.[/dim]"
        )

    asyncio.run(_token())
