"""CLI for contact-link.

Commands:
    init-db                              - Create tables
    reset-db                             - Drop and recreate tables
    identify --email X --phone Y         - Resolve a contact pair
    show-cluster <contact_id>            - Show the cluster a contact belongs to
"""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from contact_link.config import configure_logging
from contact_link.db import async_session_factory, engine, init_db
from contact_link.errors import ContactLinkError, ValidationError
from contact_link.models import Contact
from contact_link.resolution import AggregateIdentity, ClusterReader, IdentityResolver
from contact_link.storage import SqlContactStore

app = typer.Typer(
    name="contact-link",
    help="contact-link — identity reconciliation across partial contact records",
    no_args_is_help=True,
)
console = Console()


def run_async(coro):
    """Run an async coroutine in sync context."""
    return asyncio.run(coro)


@app.callback()
def main_callback(
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="Override LOG_LEVEL from settings")
    ] = None,
):
    configure_logging(log_level)


def _aggregate_panel(identity: AggregateIdentity, title: str) -> Panel:
    lines = [
        f"[bold]Primary contact:[/bold] {identity.primary_contact_id}",
        f"[bold]Emails:[/bold] {', '.join(identity.emails) or '-'}",
        f"[bold]Phone numbers:[/bold] {', '.join(identity.phone_numbers) or '-'}",
        f"[bold]Secondary contacts:[/bold] "
        f"{', '.join(str(i) for i in identity.secondary_contact_ids) or '-'}",
    ]
    return Panel("\n".join(lines), title=title)


def _members_table(members: list[Contact]) -> Table:
    table = Table(title="Cluster Members")
    table.add_column("ID", style="cyan")
    table.add_column("Precedence")
    table.add_column("Linked To")
    table.add_column("Email")
    table.add_column("Phone")
    table.add_column("Created")

    for contact in members:
        table.add_row(
            str(contact.id),
            contact.link_precedence.value,
            str(contact.linked_id) if contact.linked_id is not None else "-",
            contact.email or "-",
            contact.phone_number or "-",
            str(contact.created_at),
        )
    return table


@app.command("init-db")
def init_db_command():
    """Initialize the database schema (creates tables if they don't exist)."""
    async def _init():
        await init_db()
        console.print("[green]Database initialized.[/green]")

    run_async(_init())


@app.command("reset-db")
def reset_db(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Skip confirmation prompt")
    ] = False,
):
    """Drop all tables and recreate them.

    WARNING: This destroys all contacts!
    """
    if not force:
        confirm = typer.confirm(
            "This will DELETE ALL CONTACTS. Are you sure?",
            default=False,
        )
        if not confirm:
            console.print("[yellow]Aborted.[/yellow]")
            raise typer.Exit(0)

    async def _reset():
        from contact_link.models import Base

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        console.print("[green]Database reset.[/green]")

    run_async(_reset())


@app.command()
def identify(
    email: Annotated[str | None, typer.Option("--email", "-e", help="Email address")] = None,
    phone: Annotated[str | None, typer.Option("--phone", "-p", help="Phone number")] = None,
):
    """Resolve an email and/or phone number into its identity cluster."""
    async def _identify():
        await init_db()
        async with async_session_factory() as session:
            async with session.begin():
                resolver = IdentityResolver(SqlContactStore(session))
                return await resolver.resolve_with_outcome(email=email, phone_number=phone)

    try:
        outcome = run_async(_identify())
    except ValidationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2) from None
    except ContactLinkError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    console.print(_aggregate_panel(outcome.identity, title=f"Identity ({outcome.action.value})"))


@app.command("show-cluster")
def show_cluster(
    contact_id: Annotated[int, typer.Argument(help="Any contact ID in the cluster")],
):
    """Show every contact in the cluster that a contact belongs to."""
    async def _show():
        await init_db()
        async with async_session_factory() as session:
            store = SqlContactStore(session)
            contact = await store.find_by_id(contact_id)
            if contact is None:
                console.print(f"[red]Error:[/red] Contact not found: {contact_id}")
                raise typer.Exit(1)

            reader = ClusterReader(store)
            members: list[Contact] = []
            try:
                primary = await reader.find_primary(contact)
                members = await reader.materialize(primary.id)
                identity = reader.render(members)
            except ContactLinkError as e:
                console.print(f"[red]Error:[/red] {e}")
                if members:
                    console.print(_members_table(members))
                raise typer.Exit(1) from None

            console.print(_aggregate_panel(identity, title="Identity"))
            console.print(_members_table(members))

    run_async(_show())


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
