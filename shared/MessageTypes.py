from __future__ import annotations

from enum import Enum


class MessageType(str, Enum):
    """MineChat envelope tags, as carried in the ``type`` field."""

    AUTH = "AUTH"                # client -> server, first frame of every connection
    AUTH_ACK = "AUTH_ACK"        # server -> client, answer to AUTH
    CHAT = "CHAT"                # client -> server, user-typed line
    BROADCAST = "BROADCAST"      # server -> client, message to display
    DISCONNECT = "DISCONNECT"    # either side, terminal notice

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Check if string is a valid message type."""
        try:
            cls(value)
            return True
        except ValueError:
            return False


class AuthStatus(str, Enum):
    """Values of ``AUTH_ACK.payload.status``."""
    SUCCESS = "success"
    FAILURE = "failure"
