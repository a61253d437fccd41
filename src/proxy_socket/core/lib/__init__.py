"""Core proxy socket library components."""

from .handshake import HandshakeStage, Socks5Handshake
from .proxy_socket import ProxySocket
from .proxy_stats import ByteCounters, ProxyStats, proxy_stats
from .transport import SocketTransport, Transport

__all__ = [
    "ByteCounters",
    "HandshakeStage",
    "ProxySocket",
    "ProxyStats",
    "proxy_stats",
    "Socks5Handshake",
    "SocketTransport",
    "Transport",
]
