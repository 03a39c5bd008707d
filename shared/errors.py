from __future__ import annotations

from typing import Optional


class MineChatError(Exception):
    """Base class for every error the client surfaces to its caller."""
    pass


class TransportError(MineChatError):
    """Raised when the connection is refused, reset or fails mid I/O."""
    pass


class ProtocolError(MineChatError):
    """Raised when an envelope cannot cross the wire in either direction."""
    pass


class EncodingError(ProtocolError):
    """Raised when an outbound envelope cannot be represented as one line."""
    pass


class DecodingError(ProtocolError):
    """Raised when an inbound line is not a valid tagged envelope."""
    pass


class ServerNotLinked(MineChatError):
    """Raised when no identity is on record for the target server."""

    def __init__(self, address: Optional[str] = None) -> None:
        self.address = address
        if address:
            super().__init__(f"Server not linked: {address}")
        else:
            super().__init__("Server not linked")


class AuthFailed(MineChatError):
    """Raised when the server rejects the handshake or answers out of protocol."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"Authentication failed: {self.message}"


class ConfigError(MineChatError):
    """Raised when the identity store or the settings file is unusable."""
    pass


class HandshakeError(MineChatError):
    """Raised when the handshake state machine is driven out of order."""
    pass


class Interrupted(MineChatError):
    """Raised when the user interrupts before a session is established."""
    pass
