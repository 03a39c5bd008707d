#!/usr/bin/env python3

from __future__ import annotations
import asyncio
import signal
from functools import partial
from typing import NoReturn, Optional, Tuple

import typer
from rich.console import Console
from rich.markup import escape

from shared.errors import Interrupted, MineChatError
from shared.log import get_logger, set_log_level
from shared.utils import is_hostport
from minechat.client import connect as connect_session, link_account
from minechat.identity_store import IdentityStore
from minechat.session import SessionEnd
from minechat.settings import Settings, load_settings
from minechat.transport import Connection

app = typer.Typer(help="MineChat CLI client")
console = Console()
logger = get_logger(__name__)

_SERVER_HELP = "MineChat server address (host:port); defaults to MINECHAT_SERVER or config.yaml"


def _fail(error: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/] {escape(str(error))}")
    raise typer.Exit(code=1)


def _prepare(server: Optional[str], verbose: bool) -> Tuple[Settings, str, IdentityStore]:
    """Load settings, apply logging level and pick the server address."""
    try:
        settings = load_settings()
    except MineChatError as e:
        _fail(e)
    set_log_level("DEBUG" if verbose else settings.log_level)

    address = server or settings.server
    if not address:
        raise typer.BadParameter("no server given", param_hint="--server")
    if not is_hostport(address):
        raise typer.BadParameter(f"expected host:port, got {address!r}", param_hint="--server")

    try:
        store = IdentityStore(settings.identity_file)
    except MineChatError as e:
        _fail(e)
    return settings, address, store


def _opener(settings: Settings):
    return partial(Connection.open, timeout=settings.connect_timeout)


@app.command()
def link(
    code: str = typer.Argument(..., help="One-time link code obtained in game"),
    server: Optional[str] = typer.Option(None, "--server", "-s", help=_SERVER_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Link this client to a server and remember the identity."""
    settings, address, store = _prepare(server, verbose)
    try:
        outcome = asyncio.run(link_account(address, code, store, opener=_opener(settings)))
    except MineChatError as e:
        _fail(e)
    console.print(f"[bold green]Linked[/] to {escape(address)}: {escape(outcome.ack.message)}")


@app.command()
def connect(
    server: Optional[str] = typer.Option(None, "--server", "-s", help=_SERVER_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Connect to a linked server and chat. Type /exit or press Ctrl+D to leave."""
    settings, address, store = _prepare(server, verbose)

    async def main_loop() -> SessionEnd:
        interrupt = asyncio.Event()
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, interrupt.set)
                installed.append(sig)
            except (NotImplementedError, RuntimeError):
                pass  # Signal handlers not supported on this platform (e.g. Windows)
        try:
            return await connect_session(address, store, interrupt=interrupt, opener=_opener(settings))
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

    try:
        end = asyncio.run(main_loop())
    except Interrupted as e:
        console.print(escape(str(e)))
        raise typer.Exit(code=130)
    except MineChatError as e:
        _fail(e)
    logger.debug(f"Session ended by {end.initiated_by.value}: {end.reason}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
