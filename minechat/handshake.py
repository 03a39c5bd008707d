"""
Authentication handshake.

Exactly one request/response pair is exchanged:

    START --request()--> AWAITING_ACK --receive()--> AUTHENTICATED | REJECTED

Rejection is an ordinary outcome and is returned as a value; only transport
and codec failures are raised.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

from shared.envelope import Auth, AuthAck, decode
from shared.errors import AuthFailed, HandshakeError, ServerNotLinked
from shared.log import get_logger, log_envelope
from shared.utils import generate_client_identity

if TYPE_CHECKING:
    from minechat.identity_store import IdentityStore
    from minechat.transport import Connection

logger = get_logger(__name__)

UNEXPECTED_RESPONSE = "Unexpected response"
CONNECTION_CLOSED = "connection closed"


class HandshakeState(str, Enum):
    START = "start"
    AWAITING_ACK = "awaiting_ack"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Authenticated:
    identity: str
    ack: AuthAck


@dataclass(frozen=True)
class Rejected:
    reason: str


HandshakeOutcome = Union[Authenticated, Rejected]


class Handshake:
    """State machine for the link and reconnect flows against one server."""

    def __init__(self, address: str, identity: str, link_code: str = "",
                 store: Optional[IdentityStore] = None) -> None:
        self.address = address
        self.identity = identity
        self.link_code = link_code
        self.store = store
        self.state = HandshakeState.START
        self.outcome: Optional[HandshakeOutcome] = None

    @property
    def is_link(self) -> bool:
        return bool(self.link_code)

    @classmethod
    def link(cls, address: str, code: str, store: Optional[IdentityStore] = None) -> Handshake:
        """First-time flow: a fresh identity paired with a one-time code."""
        if not code:
            raise AuthFailed("Link code must not be empty")
        return cls(address, generate_client_identity(), link_code=code, store=store)

    @classmethod
    def reconnect(cls, address: str, store: IdentityStore) -> Handshake:
        """
        Returning flow: authenticate with the identity stored for ``address``.

        Raises:
            ServerNotLinked: nothing is on record for this server
        """
        identity = store.lookup(address)
        if identity is None:
            raise ServerNotLinked(address)
        return cls(address, identity, store=store)

    def request(self) -> Auth:
        """The Auth envelope to send; moves START -> AWAITING_ACK."""
        if self.state is not HandshakeState.START:
            raise HandshakeError(f"Cannot send AUTH in state {self.state.value}")
        self.state = HandshakeState.AWAITING_ACK
        return Auth(client_identity=self.identity, link_code=self.link_code)

    def receive(self, envelope) -> HandshakeOutcome:
        """Feed the server's answer and settle the outcome."""
        if self.state is not HandshakeState.AWAITING_ACK:
            raise HandshakeError(f"Not awaiting AUTH_ACK (state {self.state.value})")

        if not isinstance(envelope, AuthAck):
            log_envelope(logger, "warning", "Unexpected handshake response",
                         envelope=envelope, server=self.address)
            return self._reject(UNEXPECTED_RESPONSE)

        if not envelope.succeeded:
            return self._reject(envelope.message)

        if self.is_link and self.store is not None:
            self.store.upsert(self.address, self.identity)

        self.state = HandshakeState.AUTHENTICATED
        self.outcome = Authenticated(identity=self.identity, ack=envelope)
        logger.info(f"Authenticated: {envelope.message}", extra={"server": self.address})
        return self.outcome

    def connection_closed(self) -> HandshakeOutcome:
        """The peer hung up before answering."""
        if self.state is not HandshakeState.AWAITING_ACK:
            raise HandshakeError(f"Not awaiting AUTH_ACK (state {self.state.value})")
        return self._reject(CONNECTION_CLOSED)

    async def run(self, connection: Connection) -> HandshakeOutcome:
        """
        Drive the whole exchange over ``connection``.

        Raises:
            TransportError: the socket failed
            EncodingError / DecodingError: a frame could not cross the wire
        """
        await connection.send(self.request())
        line = await connection.read_frame()
        if line is None:
            return self.connection_closed()
        return self.receive(decode(line))

    def _reject(self, reason: str) -> Rejected:
        self.state = HandshakeState.REJECTED
        self.outcome = Rejected(reason=reason)
        logger.warning(f"Handshake rejected: {reason}", extra={"server": self.address})
        return self.outcome
