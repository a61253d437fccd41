"""SOCKS5 client handshake state machine.

This module implements the client side of the RFC 1928 negotiation without
doing any I/O itself. The caller writes the bytes it is handed and feeds back
whatever the proxy sends; the machine advances through two stages:

1. ``AWAITING_AUTH_REPLY``: the "no authentication" method request has been
   sent and the proxy's method selection is expected.
2. ``AWAITING_CONNECT_REPLY``: the CONNECT request has been sent and the reply
   is expected.

Replies may arrive split over several deliveries or glued together with the
next message. Each stage consumes exactly its own bytes and hands the rest to
the next stage in the same pass. Bytes that follow a complete CONNECT reply
are application payload and are returned untouched.

Example:
    handshake = Socks5Handshake(Destination("example.com", 80))
    transport.write(handshake.auth_request())
    ...
    progress = handshake.receive(data)
    if progress.outgoing:
        transport.write(progress.outgoing)
    if progress.completed:
        deliver(progress.payload)
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto
from typing import Final

from loguru import logger

from proxy_socket.core.exceptions import AuthenticationError, ConnectReplyError, HandshakeError
from proxy_socket.core.lib.address import address_type_of, decode_address, encode_address, encode_port
from proxy_socket.core.models import BoundAddress, Destination

# SOCKS protocol constants
SOCKS_VERSION: Final = 0x05
METHOD_NO_AUTH: Final = 0x00
CONNECT_CMD: Final = 0x01
RESERVED: Final = 0x00

# Reply codes
REPLY_SUCCESS: Final = 0x00

AUTH_REPLY_LENGTH: Final = 2
REPLY_HEADER_LENGTH: Final = 3

REPLY_MESSAGES: Final = {
    0x00: "request granted",
    0x01: "general failure",
    0x02: "connection not allowed by ruleset",
    0x03: "network unreachable",
    0x04: "host unreachable",
    0x05: "connection refused by destination host",
    0x06: "TTL expired",
    0x07: "command not supported / protocol error",
    0x08: "address type not supported",
}


def reply_message(code: int) -> str:
    """Return the human readable meaning of a CONNECT reply code."""
    return REPLY_MESSAGES.get(code, f"unknown reply code 0x{code:02x}")


class HandshakeStage(Enum):
    """Negotiation stages, in the order they are passed."""

    AWAITING_AUTH_REPLY = auto()
    AWAITING_CONNECT_REPLY = auto()


@dataclass
class HandshakeProgress:
    """Result of feeding bytes to the handshake.

    Attributes:
        outgoing: Bytes that must be written to the proxy
        completed: True once the CONNECT reply was accepted
        bound_address: Address the proxy reported as bound, once completed
        payload: Application bytes that followed the CONNECT reply
    """

    outgoing: bytes = b""
    completed: bool = False
    bound_address: BoundAddress | None = None
    payload: bytes = b""


def build_auth_request() -> bytes:
    """Build the method selection request offering "no authentication" only."""
    return bytes([SOCKS_VERSION, 1, METHOD_NO_AUTH])


def build_connect_request(destination: Destination, address: bytes | None = None) -> bytes:
    """Build a CONNECT request for ``destination``.

    Args:
        destination: Target host and port
        address: Pre-encoded ATYP/DST.ADDR field, encoded from the host if omitted
    """
    if address is None:
        address = encode_address(destination.host)
    return bytes([SOCKS_VERSION, CONNECT_CMD, RESERVED]) + address + encode_port(destination.port)


class Socks5Handshake:
    """Drive one SOCKS5 negotiation for a single destination."""

    def __init__(self, destination: Destination) -> None:
        """Prepare the handshake for ``destination``.

        The address type is derived and the address encoded here, once, so an
        unencodable destination fails before anything is sent.
        """
        self.destination = destination
        self.address_type = address_type_of(destination.host)
        self._connect_request = build_connect_request(
            destination, encode_address(destination.host, self.address_type)
        )
        self._stage: HandshakeStage | None = HandshakeStage.AWAITING_AUTH_REPLY
        self._buffer = bytearray()
        self._failed = False
        self._handlers: dict[HandshakeStage, Callable[[HandshakeProgress], bool]] = {
            HandshakeStage.AWAITING_AUTH_REPLY: self._handle_auth_reply,
            HandshakeStage.AWAITING_CONNECT_REPLY: self._handle_connect_reply,
        }

    @property
    def stage(self) -> HandshakeStage | None:
        """Current stage, or None once the handshake completed."""
        return self._stage

    @property
    def completed(self) -> bool:
        return self._stage is None and not self._failed

    @property
    def connect_request(self) -> bytes:
        return self._connect_request

    def auth_request(self) -> bytes:
        return build_auth_request()

    def receive(self, data: bytes) -> HandshakeProgress:
        """Consume bytes received from the proxy.

        Raises:
            AuthenticationError: If the method selection reply is rejected
            ConnectReplyError: If the CONNECT reply is rejected
            HandshakeError: If called after the handshake failed or completed
        """
        if self._failed:
            raise HandshakeError("SOCKS handshake already failed")
        if self._stage is None:
            raise HandshakeError("SOCKS handshake already completed")

        self._buffer += data
        progress = HandshakeProgress()
        try:
            while self._stage is not None:
                if not self._handlers[self._stage](progress):
                    break
        except HandshakeError:
            self._failed = True
            self._buffer.clear()
            raise

        if self._stage is None:
            progress.completed = True
            progress.payload = bytes(self._buffer)
            self._buffer.clear()
        return progress

    def _handle_auth_reply(self, progress: HandshakeProgress) -> bool:
        """Validate the method selection reply and queue the CONNECT request."""
        if len(self._buffer) < AUTH_REPLY_LENGTH:
            return False

        version, method = self._buffer[0], self._buffer[1]
        if version != SOCKS_VERSION:
            raise AuthenticationError(
                f"SOCKS authentication failed. Unexpected SOCKS version number: {version}."
            )
        if method != METHOD_NO_AUTH:
            raise AuthenticationError(
                f"SOCKS authentication failed. Unexpected SOCKS authentication method: {method}."
            )

        del self._buffer[:AUTH_REPLY_LENGTH]
        logger.debug(f"Proxy accepted no-auth, requesting {self.destination}")
        progress.outgoing += self._connect_request
        self._stage = HandshakeStage.AWAITING_CONNECT_REPLY
        return True

    def _handle_connect_reply(self, progress: HandshakeProgress) -> bool:
        """Validate the CONNECT reply and finish the handshake."""
        # Version and reply code can be judged before the header is complete
        self._check_reply_header(self._buffer)
        if len(self._buffer) < REPLY_HEADER_LENGTH:
            return False

        try:
            bound, end = decode_address(self._buffer, REPLY_HEADER_LENGTH)
        except ValueError as exc:
            raise ConnectReplyError(
                f"Unexpected address type in reply: {self._buffer[REPLY_HEADER_LENGTH]}"
            ) from exc
        if bound is None:
            return False

        del self._buffer[:end]
        progress.bound_address = bound
        self._stage = None
        logger.debug(f"Proxy connected to {self.destination}, bound {bound.host}:{bound.port}")
        return True

    @staticmethod
    def _check_reply_header(header: bytearray) -> None:
        if len(header) > 0 and header[0] != SOCKS_VERSION:
            raise ConnectReplyError(f"Unexpected SOCKS version number: {header[0]}")
        if len(header) > 1 and header[1] != REPLY_SUCCESS:
            raise ConnectReplyError(reply_message(header[1]), reply_code=header[1])
        if len(header) > 2 and header[2] != RESERVED:
            raise ConnectReplyError("The reserved byte must be 0x00")
