"""SOCKS5 address encoding.

This module converts destination hosts into the address field of a SOCKS5
request (RFC 1928, section 5):

    +------+----------+----------+
    | ATYP | DST.ADDR | DST.PORT |
    +------+----------+----------+
    |  1   | Variable |    2     |
    +------+----------+----------+

The address type is derived from the syntactic form of the host only. Nothing
here resolves names; a host that is not an IP literal is sent to the proxy as
a domain name and resolved there.

Example:
    >>> encode_address("10.0.0.1").hex()
    '010a000001'
    >>> encode_address("example.com")[:2]
    b'\\x03\\x0b'
"""

import ipaddress
import struct
from typing import Final

from proxy_socket.core.exceptions import InvalidDestinationError
from proxy_socket.core.models import MAX_PORT, AddressType, BoundAddress

MAX_DOMAIN_LENGTH: Final = 255
IPV4_LENGTH: Final = 4
IPV6_LENGTH: Final = 16
PORT_LENGTH: Final = 2


def address_type_of(host: str) -> AddressType:
    """Classify a host as IPv4, IPv6 or domain name.

    Strings that look like IP addresses but are malformed (several ``::``
    groups, too many groups, octets out of range) are not IP literals and are
    classified as domain names.
    """
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return AddressType.DOMAIN
    return AddressType.IPV4 if ip.version == 4 else AddressType.IPV6


def encode_ipv4(host: str) -> bytes:
    """Encode a dotted-decimal IPv4 address as 4 bytes."""
    try:
        return ipaddress.IPv4Address(host).packed
    except ValueError as exc:
        raise InvalidDestinationError(f"Invalid IPv4 address: {host!r}") from exc


def encode_ipv6(host: str) -> bytes:
    """Encode an IPv6 address as 16 bytes.

    ``::`` is expanded to as many zero groups as the explicit groups leave
    room for, including leading (``::1``) and trailing (``fe80::``) runs.

    Raises:
        InvalidDestinationError: If the literal is malformed or carries a zone
            (``fe80::1%eth0``), which the 16 byte field has no room for
    """
    try:
        ip = ipaddress.IPv6Address(host)
    except ValueError as exc:
        raise InvalidDestinationError(f"Invalid IPv6 address: {host!r}") from exc
    if ip.scope_id:
        raise InvalidDestinationError(f"Scoped IPv6 address cannot be sent to a SOCKS5 proxy: {host!r}")
    return ip.packed


def encode_domain(host: str) -> bytes:
    """Encode a domain name as a length byte followed by the name.

    Raises:
        InvalidDestinationError: If the name is empty or longer than 255 bytes
    """
    try:
        raw = host.encode("ascii")
    except UnicodeEncodeError:
        try:
            raw = host.encode("idna")
        except UnicodeError as exc:
            raise InvalidDestinationError(f"Cannot encode domain name {host!r}") from exc

    if not raw:
        raise InvalidDestinationError("Domain name must not be empty")
    if len(raw) > MAX_DOMAIN_LENGTH:
        raise InvalidDestinationError(
            f"Domain name is {len(raw)} bytes long, at most {MAX_DOMAIN_LENGTH} are allowed"
        )
    return bytes([len(raw)]) + raw


def encode_port(port: int) -> bytes:
    """Encode a port number as 2 big-endian bytes."""
    if not 0 <= port <= MAX_PORT:
        raise InvalidDestinationError(f"Port out of range: {port}")
    return struct.pack("!H", port)


_ENCODERS: Final = {
    AddressType.IPV4: encode_ipv4,
    AddressType.DOMAIN: encode_domain,
    AddressType.IPV6: encode_ipv6,
}


def encode_address(host: str, address_type: AddressType | None = None) -> bytes:
    """Encode ``host`` as an address type tag followed by the address bytes.

    Args:
        host: Domain name, IPv4 or IPv6 literal
        address_type: Precomputed address type; derived from ``host`` if omitted

    Returns:
        bytes: ATYP byte and DST.ADDR field
    """
    if address_type is None:
        address_type = address_type_of(host)
    return bytes([address_type]) + _ENCODERS[address_type](host)


def decode_address(buffer: bytes | bytearray, offset: int = 0) -> tuple[BoundAddress | None, int]:
    """Decode an ATYP/ADDR/PORT triple starting at ``offset``.

    Returns:
        tuple: The decoded address and the offset just past it, or
            ``(None, offset)`` if the buffer does not hold the whole field yet

    Raises:
        ValueError: If the address type tag is unknown
    """
    if len(buffer) <= offset:
        return None, offset

    address_type = AddressType(buffer[offset])
    start = offset + 1
    if address_type is AddressType.DOMAIN:
        if len(buffer) <= start:
            return None, offset
        length = buffer[start]
        start += 1
    elif address_type is AddressType.IPV4:
        length = IPV4_LENGTH
    else:
        length = IPV6_LENGTH

    end = start + length + PORT_LENGTH
    if len(buffer) < end:
        return None, offset

    raw = bytes(buffer[start : start + length])
    if address_type is AddressType.DOMAIN:
        host = raw.decode("ascii", errors="replace")
    else:
        host = str(ipaddress.ip_address(raw))
    (port,) = struct.unpack("!H", buffer[start + length : end])
    return BoundAddress(host=host, port=port, address_type=address_type), end
