#!/usr/bin/env python3
"""
MineChat client entry points.

link_account() pairs this client with a server using a one-time code.
connect() authenticates with the stored identity and runs the chat session.
"""

from __future__ import annotations
import asyncio
from typing import Awaitable, Callable, Optional, Tuple

from shared.errors import AuthFailed, Interrupted
from shared.log import get_logger
from minechat.console import ChatDisplay, ConsoleInput
from minechat.handshake import Authenticated, Handshake, Rejected
from minechat.identity_store import IdentityStore
from minechat.session import Session, SessionEnd
from minechat.transport import Connection

logger = get_logger(__name__)

Opener = Callable[[str], Awaitable[Connection]]


async def _unless_interrupted(coro, interrupt: Optional[asyncio.Event]):
    """Await ``coro`` but give up as soon as ``interrupt`` is set."""
    if interrupt is None:
        return await coro

    work = asyncio.ensure_future(coro)
    stop = asyncio.ensure_future(interrupt.wait())
    try:
        await asyncio.wait({work, stop}, return_when=asyncio.FIRST_COMPLETED)
        if work.done():
            return work.result()
        raise Interrupted("Interrupted before the session started")
    finally:
        for task in (work, stop):
            task.cancel()
        await asyncio.gather(work, stop, return_exceptions=True)


async def _authenticate(handshake: Handshake, opener: Opener,
                        interrupt: Optional[asyncio.Event] = None) -> Tuple[Connection, Authenticated]:
    connection = await _unless_interrupted(opener(handshake.address), interrupt)
    try:
        outcome = await _unless_interrupted(handshake.run(connection), interrupt)
    except BaseException:
        await connection.close()
        raise

    if isinstance(outcome, Rejected):
        await connection.close()
        raise AuthFailed(outcome.reason)
    return connection, outcome


async def link_account(address: str, code: str, store: IdentityStore,
                       opener: Opener = Connection.open) -> Authenticated:
    """
    Link this client to ``address`` with a one-time code.

    On success the generated identity is stored for the address, replacing
    any earlier one, before this returns.

    Raises:
        AuthFailed: the server refused the code or answered out of protocol
        TransportError: the server could not be reached
    """
    logger.info(f"Linking with code: {code}", extra={"server": address})
    handshake = Handshake.link(address, code, store)
    connection, outcome = await _authenticate(handshake, opener)
    await connection.close()
    logger.info(f"Linked successfully: {outcome.ack.message}", extra={"server": address})
    return outcome


async def connect(address: str, store: IdentityStore, *,
                  lines=None,
                  display: Optional[ChatDisplay] = None,
                  interrupt: Optional[asyncio.Event] = None,
                  opener: Opener = Connection.open) -> SessionEnd:
    """
    Reconnect to ``address`` with the stored identity and chat until done.

    Raises:
        ServerNotLinked: no identity on record (nothing is sent)
        AuthFailed: the server refused the identity
        TransportError: the server could not be reached or dropped mid-write
        Interrupted: ``interrupt`` was set before the handshake finished
    """
    handshake = Handshake.reconnect(address, store)
    connection, outcome = await _authenticate(handshake, opener, interrupt)
    if outcome.ack.display_name:
        logger.info(f"Connected as {outcome.ack.display_name}: {outcome.ack.message}", extra={"server": address})
    else:
        logger.info(f"Connected: {outcome.ack.message}", extra={"server": address})

    session = Session(connection, outcome.identity, display=display, interrupt=interrupt)
    return await session.run(lines if lines is not None else ConsoleInput())
