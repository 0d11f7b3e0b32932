# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line interface for temp-mail-relay.

Usage:
    temp-mail serve                 # run the relay under uvicorn
    temp-mail new                   # create a new disposable address
    temp-mail address               # show the current address
    temp-mail inbox                 # list received messages
    temp-mail read <message-id>     # show one message
    temp-mail delete <message-id>   # delete one message
    temp-mail watch                 # poll and print new messages
    temp-mail forget                # drop the stored address

Example:
    $ temp-mail --relay-url http://localhost:8000/api/mail new
    ✓ New address: k2j4h5g6f7@example.dev
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from .client import RelayClient
from .logger import configure_logging
from .models import MessageDetail, MessageSummary
from .session import CredentialError, MailSession
from .settings import load_settings
from .storage import CredentialStore, LocalStorage

console = Console()
err_console = Console(stderr=True)


def run_async(coro):
    """Execute an async coroutine synchronously from CLI context."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    """Print a formatted error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a formatted success message with checkmark."""
    console.print(f"[green]✓[/green] {message}")


def print_json(data: Any) -> None:
    """Print data as syntax-highlighted JSON."""
    console.print_json(json.dumps(data, indent=2, default=str))


def build_session(settings: dict[str, Any]) -> MailSession:
    """Create a session wired to the configured relay and storage file."""
    return MailSession(
        RelayClient(str(settings["relay_url"])),
        CredentialStore(LocalStorage(str(settings["storage_path"]))),
        poll_interval=float(settings["poll_interval"]),
    )


def _messages_table(messages: list[MessageSummary], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("", justify="center")
    table.add_column("From")
    table.add_column("Subject")
    table.add_column("Received", style="dim")
    for msg in messages:
        table.add_row(
            msg.id,
            "[dim]·[/dim]" if msg.seen else "[green]●[/green]",
            str(msg.sender) or "-",
            msg.subject or "[dim](no subject)[/dim]",
            msg.created_at or "-",
        )
    return table


def _print_detail(detail: MessageDetail) -> None:
    console.print(f"\n[bold cyan]{detail.subject or '(no subject)'}[/bold cyan]\n")
    console.print(f"  From:     {detail.sender or '-'}")
    console.print(f"  Received: {detail.created_at or '-'}")
    console.print(f"  ID:       {detail.id}\n")
    if detail.text:
        console.print(detail.text, markup=False, highlight=False)
    elif detail.html:
        console.print("[dim](HTML only, use --json to see the raw body)[/dim]")
    else:
        console.print(f"[dim]{detail.intro or '(empty message)'}[/dim]")
    console.print()


def _require_credential(session: MailSession) -> None:
    if session.restore_credential() is None:
        print_error("No address yet. Run 'temp-mail new' first.")
        sys.exit(1)


@click.group()
@click.version_option(package_name="temp-mail-relay")
@click.option("--relay-url", envvar="TMR_RELAY_URL", default=None, help="URL of the relay mail routes.")
@click.option("--storage", "storage_path", default=None, type=click.Path(dir_okay=False),
              help="Client-local storage file.")
@click.pass_context
def main(ctx: click.Context, relay_url: str | None, storage_path: str | None) -> None:
    """temp-mail - disposable mailboxes through the relay."""
    settings = load_settings()
    if relay_url:
        settings["relay_url"] = relay_url
    if storage_path:
        settings["storage_path"] = storage_path
    configure_logging(str(settings["log_level"]))
    ctx.obj = settings


@main.command("serve")
@click.option("--host", "-h", default=None, help="Host to bind to (default: 0.0.0.0).")
@click.option("--port", "-p", type=int, default=None, help="Port to listen on (default: 8000).")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development.")
@click.pass_obj
def serve(settings: dict[str, Any], host: str | None, port: int | None, reload: bool) -> None:
    """Run the relay server."""
    import uvicorn

    uvicorn.run(
        "temp_mail_relay.server:app",
        host=host or str(settings["http_host"]),
        port=port or int(settings["http_port"]),
        reload=reload,
    )


@main.command("new")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_obj
def new_address(settings: dict[str, Any], as_json: bool) -> None:
    """Create a new address, replacing the stored one."""
    session = build_session(settings)

    async def _new():
        try:
            return await session.acquire_credential()
        finally:
            await session.close()

    try:
        credential = run_async(_new())
    except CredentialError as exc:
        print_error(str(exc))
        sys.exit(1)

    if as_json:
        print_json({"id": credential.id, "address": credential.address})
        return
    print_success(f"New address: [bold]{credential.address}[/bold]")


@main.command("address")
@click.pass_obj
def show_address(settings: dict[str, Any]) -> None:
    """Show the stored address."""
    credential = CredentialStore(LocalStorage(str(settings["storage_path"]))).load()
    if credential is None:
        print_error("No address yet. Run 'temp-mail new' first.")
        sys.exit(1)
    click.echo(credential.address)


@main.command("inbox")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_obj
def inbox(settings: dict[str, Any], as_json: bool) -> None:
    """List received messages."""
    session = build_session(settings)
    _require_credential(session)

    async def _list():
        try:
            return await session.fetch_messages()
        finally:
            await session.close()

    messages = run_async(_list())
    if messages is None:
        print_error("Could not fetch messages (see log for details).")
        sys.exit(1)

    if as_json:
        print_json([m.to_dict() for m in messages])
        return
    if not messages:
        console.print(f"[dim]Inbox of {session.credential.address} is empty.[/dim]")
        return
    console.print(_messages_table(messages, f"Inbox of {session.credential.address}"))


@main.command("read")
@click.argument("message_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_obj
def read_message(settings: dict[str, Any], message_id: str, as_json: bool) -> None:
    """Show a message."""
    session = build_session(settings)
    _require_credential(session)

    async def _read():
        try:
            return await session.fetch_message_detail(message_id)
        finally:
            await session.close()

    detail = run_async(_read())
    if detail is None:
        print_error(f"Message '{message_id}' could not be fetched.")
        sys.exit(1)

    if as_json:
        print_json(detail.to_dict())
        return
    _print_detail(detail)


@main.command("delete")
@click.argument("message_id")
@click.pass_obj
def delete_message(settings: dict[str, Any], message_id: str) -> None:
    """Delete a message."""
    session = build_session(settings)
    _require_credential(session)

    async def _delete():
        try:
            return await session.delete_message(message_id)
        finally:
            await session.close()

    if not run_async(_delete()):
        print_error(f"Message '{message_id}' could not be deleted.")
        sys.exit(1)
    print_success(f"Message '{message_id}' deleted.")


@main.command("watch")
@click.option("--interval", "-i", type=float, default=None, help="Polling interval in seconds.")
@click.pass_obj
def watch(settings: dict[str, Any], interval: float | None) -> None:
    """Poll the inbox and print messages as they arrive (Ctrl+C to stop)."""
    if interval is not None:
        settings = {**settings, "poll_interval": interval}
    session = build_session(settings)

    async def _watch():
        shown: set[str] = set()
        try:
            if await session.start() is None:
                return session.error
            console.print(f"Watching [bold]{session.credential.address}[/bold] "
                          f"(every {session.poll_interval:g}s, Ctrl+C to stop)")
            while True:
                fresh = [m for m in session.messages if m.id not in shown]
                if fresh:
                    console.print(_messages_table(fresh, "New messages"))
                    shown.update(m.id for m in fresh)
                await asyncio.sleep(0.5)
        finally:
            await session.close()

    try:
        error = run_async(_watch())
    except KeyboardInterrupt:
        return
    if error:
        print_error(error)
        sys.exit(1)


@main.command("forget")
@click.pass_obj
def forget(settings: dict[str, Any]) -> None:
    """Drop the stored address."""
    session = build_session(settings)

    async def _forget():
        try:
            await session.clear_credential()
        finally:
            await session.close()

    run_async(_forget())
    print_success("Stored address removed.")


if __name__ == "__main__":
    main()
