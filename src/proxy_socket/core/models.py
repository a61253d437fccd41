"""Value types shared by the proxy socket components.

Example:
    proxy = ProxyEndpoint("127.0.0.1", 1080)
    destination = Destination("example.com", 443)
"""

from dataclasses import dataclass
from enum import Enum, IntEnum, auto
from typing import Final

# Defaults used when no proxy endpoint is given (a local Tor client)
DEFAULT_PROXY_HOST: Final = "localhost"
DEFAULT_PROXY_PORT: Final = 9050

MAX_PORT: Final = 0xFFFF


class AddressType(IntEnum):
    """SOCKS5 address type tags."""

    IPV4 = 0x01
    DOMAIN = 0x03
    IPV6 = 0x04


class ConnectionState(Enum):
    """Externally observable lifecycle of a proxy socket."""

    IDLE = auto()
    CONNECTING = auto()
    HANDSHAKING = auto()
    CONNECTED = auto()
    CLOSED = auto()
    FAILED = auto()


@dataclass(frozen=True)
class ProxyEndpoint:
    """SOCKS5 proxy to dial.

    Attributes:
        host: Proxy host name or IP address
        port: Proxy TCP port
    """

    host: str = DEFAULT_PROXY_HOST
    port: int = DEFAULT_PROXY_PORT

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class Destination:
    """Target reached through the proxy.

    Attributes:
        host: Domain name, IPv4 or IPv6 literal
        port: Target TCP port
    """

    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class BoundAddress:
    """Address the proxy reports as bound for the tunnel (BND.ADDR/BND.PORT)."""

    host: str
    port: int
    address_type: AddressType
