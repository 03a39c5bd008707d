"""
MineChat envelope codec.

Every frame on the wire is one line of UTF-8 JSON:
{
  "type": "AUTH | AUTH_ACK | CHAT | BROADCAST | DISCONNECT",
  "payload": { ... }
}

The set of variants is closed: each tag maps to exactly one dataclass below.
A well-formed frame with a tag this client does not know is handed back as
UnknownEnvelope so the caller decides whether it matters.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Type, Union
import json

from shared.errors import DecodingError, EncodingError
from shared.MessageTypes import AuthStatus, MessageType

LINE_TERMINATOR = b"\n"
_FORBIDDEN_CHARS = ("\n", "\r")


# ========================================
#           FIELD HELPERS
# ========================================

def _wire_str(value: Any, name: str, optional: bool = False) -> Optional[str]:
    """Check an outbound field can be written inside a single line."""
    if value is None and optional:
        return None
    if not isinstance(value, str):
        raise EncodingError(f"'{name}' must be a string, got {type(value).__name__}")
    if any(ch in value for ch in _FORBIDDEN_CHARS):
        raise EncodingError(f"'{name}' contains a line terminator")
    return value


def _reject_terminators(value: str, key: str, tag: MessageType) -> None:
    if any(ch in value for ch in _FORBIDDEN_CHARS):
        raise DecodingError(f"{tag.value} payload '{key}' contains a line terminator")


def _require_str(payload: Dict[str, Any], key: str, tag: MessageType) -> str:
    if key not in payload:
        raise DecodingError(f"{tag.value} payload missing '{key}'")
    value = payload[key]
    if not isinstance(value, str):
        raise DecodingError(f"{tag.value} payload '{key}' must be a string")
    _reject_terminators(value, key, tag)
    return value


def _optional_str(payload: Dict[str, Any], key: str, tag: MessageType) -> Optional[str]:
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise DecodingError(f"{tag.value} payload '{key}' must be a string or null")
    if value is not None:
        _reject_terminators(value, key, tag)
    return value


# ========================================
#           VARIANTS
# ========================================

@dataclass(frozen=True)
class Auth:
    """First frame of a connection. ``link_code`` is empty on reconnect."""
    client_identity: str
    link_code: str = ""

    TYPE: ClassVar[MessageType] = MessageType.AUTH

    def to_payload(self) -> Dict[str, Any]:
        return {
            "client_uuid": _wire_str(self.client_identity, "client_identity"),
            "link_code": _wire_str(self.link_code, "link_code"),
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Auth:
        return cls(
            client_identity=_require_str(payload, "client_uuid", cls.TYPE),
            link_code=_require_str(payload, "link_code", cls.TYPE),
        )


@dataclass(frozen=True)
class AuthAck:
    """Server answer to Auth."""
    status: AuthStatus
    message: str
    remote_identity: Optional[str] = None   # minecraft_uuid on the wire
    display_name: Optional[str] = None      # username on the wire

    TYPE: ClassVar[MessageType] = MessageType.AUTH_ACK

    @property
    def succeeded(self) -> bool:
        return self.status == AuthStatus.SUCCESS

    def to_payload(self) -> Dict[str, Any]:
        try:
            status = AuthStatus(self.status).value
        except ValueError:
            raise EncodingError(f"Unknown AUTH_ACK status: {self.status!r}")
        return {
            "status": status,
            "message": _wire_str(self.message, "message"),
            "minecraft_uuid": _wire_str(self.remote_identity, "remote_identity", optional=True),
            "username": _wire_str(self.display_name, "display_name", optional=True),
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> AuthAck:
        raw_status = _require_str(payload, "status", cls.TYPE)
        try:
            status = AuthStatus(raw_status)
        except ValueError:
            raise DecodingError(f"AUTH_ACK status must be 'success' or 'failure', got {raw_status!r}")
        return cls(
            status=status,
            message=_require_str(payload, "message", cls.TYPE),
            remote_identity=_optional_str(payload, "minecraft_uuid", cls.TYPE),
            display_name=_optional_str(payload, "username", cls.TYPE),
        )


@dataclass(frozen=True)
class Chat:
    """A line typed by the user."""
    text: str

    TYPE: ClassVar[MessageType] = MessageType.CHAT

    def to_payload(self) -> Dict[str, Any]:
        return {"message": _wire_str(self.text, "text")}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Chat:
        return cls(text=_require_str(payload, "message", cls.TYPE))


@dataclass(frozen=True)
class Broadcast:
    """A message relayed by the server for display."""
    sender_name: str
    text: str

    TYPE: ClassVar[MessageType] = MessageType.BROADCAST

    def to_payload(self) -> Dict[str, Any]:
        return {
            "from": _wire_str(self.sender_name, "sender_name"),
            "message": _wire_str(self.text, "text"),
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Broadcast:
        return cls(
            sender_name=_require_str(payload, "from", cls.TYPE),
            text=_require_str(payload, "message", cls.TYPE),
        )


@dataclass(frozen=True)
class Disconnect:
    """Terminal notice, sendable by either peer."""
    reason: str

    TYPE: ClassVar[MessageType] = MessageType.DISCONNECT

    def to_payload(self) -> Dict[str, Any]:
        return {"reason": _wire_str(self.reason, "reason")}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Disconnect:
        return cls(reason=_require_str(payload, "reason", cls.TYPE))


@dataclass
class UnknownEnvelope:
    """Well-formed frame whose tag is not one of the MineChat variants."""
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)


Envelope = Union[Auth, AuthAck, Chat, Broadcast, Disconnect]

_VARIANTS: Dict[MessageType, Type[Any]] = {
    MessageType.AUTH: Auth,
    MessageType.AUTH_ACK: AuthAck,
    MessageType.CHAT: Chat,
    MessageType.BROADCAST: Broadcast,
    MessageType.DISCONNECT: Disconnect,
}


# ========================================
#           CODEC
# ========================================

def to_dict(envelope: Envelope) -> Dict[str, Any]:
    """Convert an envelope into its tagged JSON object."""
    tag = getattr(envelope, "TYPE", None)
    if _VARIANTS.get(tag) is not type(envelope):
        raise EncodingError(f"Cannot encode {type(envelope).__name__}")
    return {"type": tag.value, "payload": envelope.to_payload()}


def encode(envelope: Envelope) -> bytes:
    """Serialize an envelope to one newline-terminated UTF-8 frame."""
    text = json.dumps(to_dict(envelope), separators=(',', ':'), sort_keys=True, ensure_ascii=False)
    try:
        data = text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncodingError(f"Envelope is not representable as UTF-8: {e}")
    return data + LINE_TERMINATOR


def from_dict(data: Any, strict: bool = False) -> Union[Envelope, UnknownEnvelope]:
    """Create an envelope from a parsed JSON value, validating its shape."""
    if not isinstance(data, dict):
        raise DecodingError("Envelope must be a JSON object")
    tag = data.get("type")
    if not isinstance(tag, str):
        raise DecodingError("'type' must be a string")
    payload = data.get("payload")
    if not isinstance(payload, dict):
        raise DecodingError("'payload' must be an object")

    if not MessageType.is_valid(tag):
        if strict:
            raise DecodingError(f"Unknown message type: {tag}")
        return UnknownEnvelope(type=tag, payload=payload)
    return _VARIANTS[MessageType(tag)].from_payload(payload)


def decode(line: Union[bytes, bytearray, str], strict: bool = False) -> Union[Envelope, UnknownEnvelope]:
    """
    Parse one frame.

    A single trailing "\\n" (or "\\r\\n") is accepted; any other line
    terminator inside the frame is an error.

    Raises:
        DecodingError: the line is not UTF-8, not JSON, not a tagged object,
            or a known variant has a missing or mistyped field. With
            ``strict`` an unknown tag is an error too.
    """
    if isinstance(line, str):
        text = line
    else:
        try:
            text = bytes(line).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodingError(f"Frame is not valid UTF-8: {e}")

    if text.endswith("\n"):
        text = text[:-1]
        if text.endswith("\r"):
            text = text[:-1]
    if any(ch in text for ch in _FORBIDDEN_CHARS):
        raise DecodingError("Frame contains an embedded line terminator")

    try:
        data = json.loads(text)
    except (ValueError, RecursionError) as e:
        raise DecodingError(f"Invalid JSON: {e}")

    return from_dict(data, strict=strict)
