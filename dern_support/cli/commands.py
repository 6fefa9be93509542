"""CLI commands for Dern Support."""

import asyncio
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from dern_support.config import get_settings
from dern_support.core.models import UserType

app = typer.Typer(
    name="dern-support",
    help="Technician scheduling for Dern Support",
    add_completion=False,
)
console = Console()

DATETIME_FORMATS = ["%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M"]


def _run(coro):
    """Run *coro* and release database connections on the same loop."""
    from dern_support.core.database import dispose_engine

    async def runner():
        try:
            return await coro
        finally:
            await dispose_engine()

    return asyncio.run(runner())


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
):
    """Start the REST API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(f"Starting Dern Support API server on {host}:{port}")
    uvicorn.run(
        "dern_support.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def init_db():
    """Create database tables and seed the first admin."""
    from dern_support.core.database import init_db as create_tables

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Creating tables...", total=None)
        _run(create_tables())
        progress.update(task, completed=True)

    console.print("[green]Database initialized[/green]")


@app.command()
def create_user(
    email: str = typer.Argument(..., help="Login e-mail"),
    first_name: str = typer.Option(..., "--first-name", help="First name"),
    last_name: str = typer.Option(..., "--last-name", help="Last name"),
    user_type: UserType = typer.Option(UserType.technician, "--type", "-t", help="User type"),
    password: str = typer.Option(..., prompt=True, hide_input=True, help="Password"),
    company: Optional[str] = typer.Option(None, "--company", help="Company"),
):
    """Create a customer, technician or admin user."""
    from dern_support.core.auth import hash_password
    from dern_support.core.database import session_scope
    from dern_support.core.repository import UserRepository

    async def create():
        async with session_scope() as session:
            repo = UserRepository(session)
            if await repo.get_by_email(email):
                return None
            user = await repo.create(
                email=email,
                first_name=first_name,
                last_name=last_name,
                company=company,
                user_type=user_type.value,
                password_hash=hash_password(password),
            )
            return str(user.id)

    user_id = _run(create())
    if user_id is None:
        console.print(f"[red]User already exists: {email}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Created {user_type.value} {email}[/green] id={user_id}")


@app.command()
def issue_token(
    email: str = typer.Argument(..., help="E-mail of an existing user"),
):
    """Print an access token for a user (development only)."""
    from dern_support.core.auth import create_access_token
    from dern_support.core.database import session_scope
    from dern_support.core.repository import UserRepository

    async def lookup():
        async with session_scope() as session:
            user = await UserRepository(session).get_by_email(email)
            if user is None:
                return None
            return str(user.id), user.user_type

    found = _run(lookup())
    if found is None:
        console.print(f"[red]User not found: {email}[/red]")
        raise typer.Exit(1)

    user_id, user_type = found
    console.print(create_access_token(user_id, user_type), soft_wrap=True)


@app.command()
def available(
    start: datetime = typer.Option(..., "--start", formats=DATETIME_FORMATS, help="Window start (UTC)"),
    end: datetime = typer.Option(..., "--end", formats=DATETIME_FORMATS, help="Window end (UTC)"),
):
    """List technicians free for a time window."""
    from dern_support.core.database import session_scope
    from dern_support.scheduling.availability import AvailabilityFinder
    from dern_support.scheduling.errors import ValidationError

    settings = get_settings()

    async def find():
        async with session_scope() as session:
            finder = AvailabilityFinder(
                session, count_terminal=settings.availability_counts_terminal_schedules
            )
            technicians = await finder.find_available(start, end)
            return [
                (str(t.id), f"{t.first_name} {t.last_name}", t.email)
                for t in technicians
            ]

    try:
        rows = _run(find())
    except ValidationError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)

    if not rows:
        console.print("[yellow]No technicians available for this window[/yellow]")
        return

    table = Table(title=f"Available technicians {start:%Y-%m-%d %H:%M} - {end:%Y-%m-%d %H:%M}")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Email")
    for row in rows:
        table.add_row(*row)
    console.print(table)


@app.command()
def version():
    """Show version information."""
    from dern_support import __version__

    console.print(f"Dern Support v{__version__}")
