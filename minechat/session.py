"""
Authenticated MineChat session.

After the handshake the session multiplexes three sources on one event loop:

- inbound frames from the server
- lines typed by the user
- an external interrupt (Ctrl+C, SIGTERM)

Each source keeps one pending read task. Every iteration waits for whichever
is ready first, handles exactly one event to completion (including any frame
it sends) and only then re-arms that source. Nothing read is ever dropped by
the scheduler, and an interrupt always wins; inbound and input otherwise take
turns so a chatty server cannot starve the keyboard or vice versa.
"""

from __future__ import annotations
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

from shared.envelope import Broadcast, Chat, Disconnect, decode
from shared.errors import DecodingError, MineChatError
from shared.log import get_logger, log_envelope
from minechat.console import ChatDisplay

if TYPE_CHECKING:
    from minechat.transport import Connection

logger = get_logger(__name__)

CLIENT_EXIT_REASON = "Client exit"
CONNECTION_CLOSED_REASON = "connection closed"
QUIT_COMMAND = "/exit"

_INBOUND = "inbound"
_INPUT = "input"
_INTERRUPT = "interrupt"


class EndedBy(str, Enum):
    CLIENT = "client"
    SERVER = "server"


@dataclass(frozen=True)
class SessionEnd:
    reason: str
    initiated_by: EndedBy


class Session:
    """
    Owns an authenticated connection until one termination condition fires.

    ``lines`` passed to run() is any object with ``async readline()``
    returning the next line, or None at end of input.
    """

    def __init__(
        self,
        connection: Connection,
        identity: str,
        *,
        display: Optional[ChatDisplay] = None,
        interrupt: Optional[asyncio.Event] = None,
        farewell_timeout: float = 2.0,
    ) -> None:
        self.connection = connection
        self.identity = identity
        self.display = display or ChatDisplay()
        self.interrupt = interrupt
        self.farewell_timeout = farewell_timeout
        self.alive = False

    async def run(self, lines) -> SessionEnd:
        """Run until the user leaves, the server leaves or we are interrupted."""
        if self.interrupt is None:
            self.interrupt = asyncio.Event()

        readers = {
            _INBOUND: self.connection.read_frame,
            _INPUT: lines.readline,
            _INTERRUPT: self.interrupt.wait,
        }
        tasks: Dict[str, asyncio.Future] = {
            name: asyncio.ensure_future(read()) for name, read in readers.items()
        }
        turn = [_INBOUND, _INPUT]

        self.alive = True
        logger.info("Session started", extra={"server": self.connection.address, "identity": self.identity})
        try:
            while True:
                done, _ = await asyncio.wait(set(tasks.values()), return_when=asyncio.FIRST_COMPLETED)
                name = self._pick(done, tasks, turn)
                end = await self._dispatch(name, tasks.pop(name))
                if end is not None:
                    return end
                tasks[name] = asyncio.ensure_future(readers[name]())
        finally:
            self.alive = False
            for task in tasks.values():
                task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            await self.connection.close()

    @staticmethod
    def _pick(done, tasks: Dict[str, asyncio.Future], turn: List[str]) -> str:
        ready = {name for name, task in tasks.items() if task in done}
        if _INTERRUPT in ready:
            return _INTERRUPT
        for name in turn:
            if name in ready:
                turn.remove(name)
                turn.append(name)
                return name
        raise RuntimeError("asyncio.wait returned without a ready source")

    async def _dispatch(self, name: str, task: asyncio.Future) -> Optional[SessionEnd]:
        if name == _INTERRUPT:
            logger.info("Interrupted")
            return await self._leave()
        if name == _INPUT:
            return await self._on_line(task.result())
        return await self._on_frame(task)

    # ========================================
    #           EVENT HANDLERS
    # ========================================

    async def _on_line(self, line: Optional[str]) -> Optional[SessionEnd]:
        if line is None:
            logger.debug("End of input")
            return await self._leave()

        text = line.strip()
        if text == QUIT_COMMAND:
            return await self._leave()
        if not text:
            return None

        await self.connection.send(Chat(text=text))
        return None

    async def _on_frame(self, task: asyncio.Future) -> Optional[SessionEnd]:
        try:
            line = task.result()
            if line is None:
                return self._server_left(CONNECTION_CLOSED_REASON)
            envelope = decode(line)
        except DecodingError as e:
            logger.debug(f"Dropping malformed frame: {e}")
            return None

        if isinstance(envelope, Broadcast):
            self.display.broadcast(envelope.sender_name, envelope.text)
        elif isinstance(envelope, Disconnect):
            return self._server_left(envelope.reason)
        else:
            log_envelope(logger, "debug", "Ignoring message", envelope=envelope,
                         server=self.connection.address)
        return None

    # ========================================
    #           TERMINATION
    # ========================================

    def _server_left(self, reason: str) -> SessionEnd:
        self.display.disconnected(reason)
        return SessionEnd(reason=reason, initiated_by=EndedBy.SERVER)

    async def _leave(self) -> SessionEnd:
        await self._say_goodbye(CLIENT_EXIT_REASON)
        self.display.disconnected(CLIENT_EXIT_REASON)
        return SessionEnd(reason=CLIENT_EXIT_REASON, initiated_by=EndedBy.CLIENT)

    async def _say_goodbye(self, reason: str) -> None:
        """Best-effort DISCONNECT; the peer may already be gone."""
        try:
            await asyncio.wait_for(self.connection.send(Disconnect(reason=reason)),
                                   timeout=self.farewell_timeout)
        except (MineChatError, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"Could not send disconnect notice: {e!r}")
