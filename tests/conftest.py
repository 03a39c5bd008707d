import asyncio
import io
from typing import List, Optional

import pytest
from rich.console import Console

from shared.envelope import decode, encode
from shared.errors import TransportError
from minechat.console import ChatDisplay
from minechat.identity_store import IdentityStore

SERVER = "mc.example.com:25575"


async def _park() -> None:
    """Block forever, like a silent peer or an idle keyboard."""
    await asyncio.Event().wait()


class FakeConnection:
    def __init__(self, frames=(), *, eof: bool = False, fail_send: bool = False,
                 hang_send: bool = False, address: str = SERVER) -> None:
        self.frames: List[bytes] = [f if isinstance(f, bytes) else encode(f) for f in frames]
        self.eof = eof
        self.fail_send = fail_send
        self.hang_send = hang_send
        self.address = address
        self.sent: List[bytes] = []
        self.closed = False

    async def read_frame(self) -> Optional[bytes]:
        await asyncio.sleep(0)
        if self.frames:
            return self.frames.pop(0)
        if self.eof:
            return None
        await _park()

    async def write_frame(self, data: bytes) -> None:
        if self.fail_send:
            raise TransportError("Failed to send frame: broken pipe")
        if self.hang_send:
            await _park()
        self.sent.append(data)

    async def send(self, envelope) -> None:
        await self.write_frame(encode(envelope))

    async def close(self) -> None:
        self.closed = True

    @property
    def sent_envelopes(self):
        return [decode(data) for data in self.sent]


class ScriptedInput:
    def __init__(self, lines=(), *, eof: bool = False) -> None:
        self.lines = list(lines)
        self.eof = eof

    async def readline(self) -> Optional[str]:
        await asyncio.sleep(0)
        if self.lines:
            return self.lines.pop(0)
        if self.eof:
            return None
        await _park()


class RecordingDisplay(ChatDisplay):
    def __init__(self) -> None:
        super().__init__(Console(file=io.StringIO(), width=200))

    @property
    def lines(self) -> List[str]:
        return self.console.file.getvalue().splitlines()


@pytest.fixture
def display() -> RecordingDisplay:
    return RecordingDisplay()


@pytest.fixture
def store(tmp_path) -> IdentityStore:
    return IdentityStore(tmp_path / "servers.json")


@pytest.fixture
def opener_for():
    """Build an opener that hands out a prepared FakeConnection and counts calls."""
    def build(connection):
        calls = []

        async def opener(address: str):
            calls.append(address)
            return connection

        opener.calls = calls
        return opener
    return build


@pytest.fixture
def untouchable_opener():
    async def opener(address: str):
        pytest.fail(f"network touched for {address}")
    return opener
