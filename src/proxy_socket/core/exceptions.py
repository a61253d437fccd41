"""Custom exceptions for the SOCKS5 client.

This module defines the exceptions raised and emitted by the proxy socket.
They keep the different failure kinds apart so callers can react to them:
- Structural misuse (connecting twice, writing before the tunnel is up)
- Invalid destinations
- Transport write failures during the handshake
- Authentication and connect reply failures reported by the proxy

Structural errors are raised synchronously. Handshake errors are delivered
through the socket's ``error`` signal.

Example:
    def on_error(exc):
        if isinstance(exc, ConnectReplyError):
            console.print(f"[red]Proxy refused the connection: {exc.reason}")

    sock.on("error", on_error)
"""


class ProxyError(Exception):
    """Base exception for proxy socket errors."""


class ReentrantConnectError(ProxyError):
    """Raised when connect() is called on a socket that already has a destination."""


class NotConnectedError(ProxyError):
    """Raised when writing to a socket before the tunnel is established."""


class InvalidDestinationError(ProxyError, ValueError):
    """Raised when a destination host or port cannot be encoded."""


class TransportWriteError(ProxyError):
    """Raised when the transport refuses a handshake write."""


class HandshakeError(ProxyError):
    """Base exception for SOCKS5 negotiation failures."""


class AuthenticationError(HandshakeError):
    """Raised when the authentication method reply is malformed or unsupported."""


class ConnectReplyError(HandshakeError):
    """Raised when the proxy rejects or garbles the CONNECT reply.

    Attributes:
        reason: Human readable reason for the failure
        reply_code: Reply code sent by the proxy, if the failure came from one
    """

    def __init__(self, reason: str, reply_code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.reply_code = reply_code
