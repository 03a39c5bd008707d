from __future__ import annotations
import asyncio
from typing import Optional

from shared.envelope import Envelope, encode
from shared.errors import DecodingError, TransportError
from shared.log import get_logger
from shared.utils import parse_address

logger = get_logger(__name__)

# Longest line we are willing to buffer for a single frame
MAX_FRAME_SIZE = 1024 * 1024


class Connection:
    """
    Line-framed TCP connection to a MineChat server.

    The read half (read_frame) and the write half (send) are independent and
    may be driven by different handlers of the same session.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, address: str) -> None:
        self.reader = reader
        self.writer = writer
        self.address = address
        self.closed = False

    @classmethod
    async def open(cls, address: str, timeout: Optional[float] = None) -> Connection:
        """Connect to 'host:port'"""
        try:
            host, port = parse_address(address)
        except ValueError as e:
            raise TransportError(f"Invalid server address: {e}")

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host=host, port=port, limit=MAX_FRAME_SIZE),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise TransportError(f"Timed out connecting to {address}")
        except OSError as e:
            raise TransportError(f"Could not connect to {address}: {e}")

        logger.debug(f"Connected to {address}", extra={"server": address})
        return cls(reader, writer, address)

    async def read_frame(self) -> Optional[bytes]:
        """
        Read the next line from the server.

        Returns:
            The raw line (terminator included when present), or None once the
            peer has closed the stream.

        Raises:
            DecodingError: the line exceeded MAX_FRAME_SIZE and was discarded
            TransportError: the socket failed
        """
        try:
            line = await self.reader.readline()
        except ValueError:
            raise DecodingError(f"Frame exceeds {MAX_FRAME_SIZE} bytes")
        except OSError as e:
            raise TransportError(f"Connection lost: {e}")
        if not line:
            return None
        return line

    async def write_frame(self, data: bytes) -> None:
        """Write one encoded frame and wait until it is flushed."""
        if self.closed:
            raise TransportError("Connection already closed")
        try:
            self.writer.write(data)
            await self.writer.drain()
        except OSError as e:
            raise TransportError(f"Failed to send frame: {e}")

    async def send(self, envelope: Envelope) -> None:
        """Encode and send an envelope"""
        await self.write_frame(encode(envelope))
        logger.debug(f"Sent {envelope.TYPE.value}", extra={"server": self.address})

    async def close(self) -> None:
        """Close the TCP connection; safe to call more than once"""
        if self.closed:
            return
        self.closed = True
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError as e:
            logger.debug(f"Error while closing connection: {e}")
