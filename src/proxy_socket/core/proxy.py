"""Public entry point for the SOCKS5 client.

This module exposes the pieces callers need to open tunnels through a SOCKS5
proxy, keeping the module layout of the library an implementation detail.

Example:
    from proxy_socket.core.proxy import ProxyEndpoint, ProxySocket

    sock = ProxySocket(ProxyEndpoint("127.0.0.1", 9050))
    sock.connect("example.com", 80, on_connect)

Attributes:
    __all__ (list): List of public components exposed by this module
"""

from .exceptions import (
    AuthenticationError,
    ConnectReplyError,
    HandshakeError,
    InvalidDestinationError,
    NotConnectedError,
    ProxyError,
    ReentrantConnectError,
    TransportWriteError,
)
from .lib import ProxySocket, ProxyStats, SocketTransport, Transport, proxy_stats
from .models import AddressType, BoundAddress, ConnectionState, Destination, ProxyEndpoint

__all__ = [
    "AddressType",
    "AuthenticationError",
    "BoundAddress",
    "ConnectionState",
    "ConnectReplyError",
    "Destination",
    "HandshakeError",
    "InvalidDestinationError",
    "NotConnectedError",
    "ProxyEndpoint",
    "ProxyError",
    "ProxySocket",
    "ProxyStats",
    "proxy_stats",
    "ReentrantConnectError",
    "SocketTransport",
    "Transport",
    "TransportWriteError",
]
