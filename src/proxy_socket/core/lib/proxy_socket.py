"""SOCKS5 client socket.

This module provides ``ProxySocket``, a stream that reaches a destination
through a SOCKS5 proxy. It:
- Connects its transport to the proxy
- Runs the SOCKS5 handshake on the bytes the proxy sends back
- Switches to relay mode once the proxy accepted the CONNECT request
- Passes application data through unmodified in both directions
- Counts relayed bytes per socket and in the shared ``ProxyStats``

Signals (register with ``on``): ``connect``, ``data``, ``error``, ``end``,
``timeout``, ``close``, ``drain``, ``readable`` and ``socksdata`` (every raw
delivery from the transport, handshake bytes included).

Example:
    sock = ProxySocket(ProxyEndpoint("127.0.0.1", 9050))
    sock.on("data", handle_data)
    sock.on("error", handle_error)
    sock.connect("example.com", 80, lambda: sock.write(b"GET / HTTP/1.0\\r\\n\\r\\n"))
"""

import codecs
from collections.abc import Callable
from typing import Any

from loguru import logger

from proxy_socket.core.exceptions import (
    HandshakeError,
    InvalidDestinationError,
    NotConnectedError,
    ProxyError,
    ReentrantConnectError,
    TransportWriteError,
)
from proxy_socket.core.lib.events import EventEmitter
from proxy_socket.core.lib.handshake import HandshakeStage, Socks5Handshake
from proxy_socket.core.lib.proxy_stats import ByteCounters, ProxyStats, proxy_stats
from proxy_socket.core.lib.transport import SocketTransport, Transport
from proxy_socket.core.models import MAX_PORT, BoundAddress, ConnectionState, Destination, ProxyEndpoint

# Signals that only mean something once the tunnel is up
CONNECTION_SIGNALS = ("drain", "readable")
# Signals that can happen at any time and must reach the caller
TRANSPORT_SIGNALS = ("end", "timeout")


class ProxySocket(EventEmitter):
    """Stream to a destination host tunnelled through a SOCKS5 proxy."""

    def __init__(
        self,
        proxy: ProxyEndpoint | None = None,
        transport: Transport | None = None,
        stats: ProxyStats | None = None,
    ) -> None:
        """Create an idle proxy socket.

        Args:
            proxy: SOCKS5 proxy to use, ``localhost:9050`` if omitted
            transport: Stream to the proxy, a new ``SocketTransport`` if omitted
            stats: Shared traffic totals, the global ``proxy_stats`` if omitted
        """
        super().__init__()
        self.proxy = proxy or ProxyEndpoint()
        self.transport: Transport = transport if transport is not None else SocketTransport()
        self.stats = stats if stats is not None else proxy_stats
        self.counters = ByteCounters()
        self.destination: Destination | None = None
        self._bound_address: BoundAddress | None = None
        self._local: tuple[str | None, int | None] = (None, None)
        self._remote: tuple[str | None, int | None] = (None, None)
        self._buffer_size: int | None = None
        self._state = ConnectionState.IDLE
        self._handshake: Socks5Handshake | None = None
        self._decoder: codecs.IncrementalDecoder | None = None

        self.transport.on("data", self._on_transport_data)
        self.transport.on("error", self._on_transport_error)
        self.transport.on("close", self._on_transport_close)
        for event in TRANSPORT_SIGNALS:
            self.transport.on(event, self._forwarder(event))
        for event in CONNECTION_SIGNALS:
            self.transport.on(event, self._forwarder(event, connected_only=True))

    def __repr__(self) -> str:
        return f"<ProxySocket {self._state.name} via {self.proxy} to {self.destination}>"

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def stage(self) -> HandshakeStage | None:
        """Current handshake stage, None outside of the handshake."""
        if self._state is not ConnectionState.HANDSHAKING or self._handshake is None:
            return None
        return self._handshake.stage

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    # Connection properties, None until the tunnel is established

    @property
    def local_address(self) -> str | None:
        return self._local[0]

    @property
    def local_port(self) -> int | None:
        return self._local[1]

    @property
    def remote_address(self) -> str | None:
        return self._remote[0]

    @property
    def remote_port(self) -> int | None:
        return self._remote[1]

    @property
    def buffer_size(self) -> int | None:
        return self._buffer_size

    @property
    def bound_address(self) -> BoundAddress | None:
        """Address the proxy reported as bound for this tunnel."""
        return self._bound_address

    @property
    def bytes_read(self) -> int:
        return self.counters.bytes_read

    @property
    def bytes_written(self) -> int:
        return self.counters.bytes_written

    def connect(self, host: str, port: int, on_connect: Callable[[], Any] | None = None) -> None:
        """Open a tunnel to ``host:port`` through the proxy.

        Returns immediately. ``connect`` is emitted once the proxy confirmed
        the tunnel; failures are emitted as ``error``.

        Args:
            host: Destination domain name, IPv4 or IPv6 literal
            port: Destination port
            on_connect: Registered as a ``connect`` handler

        Raises:
            ReentrantConnectError: If this socket was already given a destination
            InvalidDestinationError: If the destination cannot be encoded
        """
        if self._state is ConnectionState.CONNECTED:
            raise ReentrantConnectError("Socket is already connected")
        if self._state in (ConnectionState.CONNECTING, ConnectionState.HANDSHAKING):
            raise ReentrantConnectError("Socket is already connecting")
        if self._state is not ConnectionState.IDLE:
            raise ReentrantConnectError(f"Socket is {self._state.name.lower()} and cannot be reused")
        if not isinstance(port, int) or not 0 <= port <= MAX_PORT:
            raise InvalidDestinationError(f"Port out of range: {port!r}")

        destination = Destination(host, port)
        self._handshake = Socks5Handshake(destination)
        self.destination = destination
        self._state = ConnectionState.CONNECTING

        if on_connect:
            self.on("connect", on_connect)

        logger.debug(f"Connecting to {destination} via SOCKS5 proxy {self.proxy}")
        self.transport.connect(self.proxy.host, self.proxy.port, self._on_transport_connect)

    def _on_transport_connect(self) -> None:
        if self._state is not ConnectionState.CONNECTING:
            return
        self._state = ConnectionState.HANDSHAKING
        logger.debug(f"Connected to proxy {self.proxy}, sending auth request")
        self._send(self._handshake.auth_request())

    def _send(self, data: bytes) -> bool:
        """Write handshake bytes, failing the attempt if the transport refuses them."""
        try:
            accepted = self.transport.write(data)
        except OSError as exc:
            self._fail(TransportWriteError(f"Unable to write to SOCKS socket: {exc}"))
            return False
        if accepted is False:
            self._fail(TransportWriteError("Unable to write to SOCKS socket"))
            return False
        return True

    def _fail(self, exc: ProxyError) -> None:
        self._state = ConnectionState.FAILED
        logger.warning(f"SOCKS handshake with {self.proxy} for {self.destination} failed: {exc}")
        self.emit("error", exc)

    def _on_transport_data(self, data: bytes) -> None:
        self.emit("socksdata", data)

        if self._state is ConnectionState.CONNECTED:
            self._deliver(data)
        elif self._state is ConnectionState.HANDSHAKING:
            self._handle_handshake_data(data)
        else:
            logger.debug(f"Ignoring {len(data)} bytes received while {self._state.name}")

    def _handle_handshake_data(self, data: bytes) -> None:
        try:
            progress = self._handshake.receive(data)
        except HandshakeError as exc:
            self._fail(exc)
            return

        if progress.outgoing and not self._send(progress.outgoing):
            return
        if not progress.completed:
            return

        self._bound_address = progress.bound_address
        self._mark_connected()
        if progress.payload and self._state is ConnectionState.CONNECTED:
            self._deliver(progress.payload)

    def _mark_connected(self) -> None:
        transport = self.transport
        self._local = (transport.local_address, transport.local_port)
        self._remote = (transport.remote_address, transport.remote_port)
        self._buffer_size = transport.buffer_size
        self._state = ConnectionState.CONNECTED
        self.stats.connection_started()
        logger.info(f"SOCKS tunnel to {self.destination} established via {self.proxy}")
        self.emit("connect")

    def _deliver(self, data: bytes) -> None:
        self.counters.bytes_read += len(data)
        self.stats.update_bytes(sent=0, received=len(data))
        if self._decoder is None:
            self.emit("data", data)
            return
        text = self._decoder.decode(data)
        if text:
            self.emit("data", text)

    def set_encoding(self, encoding: str | None = None) -> None:
        """Deliver ``data`` as ``str`` decoded with ``encoding`` instead of bytes.

        Multi-byte characters split across deliveries are held back until
        complete and invalid sequences become U+FFFD. ``None`` switches back
        to bytes. Counters and ``socksdata`` always see raw bytes.

        Raises:
            LookupError: If ``encoding`` is unknown
        """
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace") if encoding else None

    def _forwarder(self, event: str, connected_only: bool = False) -> Callable[..., None]:
        def forward(*args: Any) -> None:
            if connected_only and self._state is not ConnectionState.CONNECTED:
                return
            self.emit(event, *args)

        return forward

    def _on_transport_error(self, exc: BaseException | None = None) -> None:
        if self._state in (ConnectionState.CONNECTING, ConnectionState.HANDSHAKING):
            self._state = ConnectionState.FAILED
        self.emit("error", exc)

    def _on_transport_close(self, had_error: bool = False) -> None:
        was_connected = self._state is ConnectionState.CONNECTED
        if self._state is not ConnectionState.FAILED:
            self._state = ConnectionState.CLOSED
        if was_connected:
            self.stats.connection_ended()
            self.emit("close", had_error)

    def write(self, data: bytes) -> bool:
        """Send ``data`` to the destination.

        Raises:
            NotConnectedError: If the tunnel is not established
        """
        if self._state is not ConnectionState.CONNECTED:
            raise NotConnectedError("Socket is not connected")

        self.counters.bytes_written += len(data)
        self.stats.update_bytes(sent=len(data), received=0)
        return self.transport.write(data)

    def end(self, data: bytes | None = None) -> None:
        """Half-close the stream; ``data`` is only sent if the tunnel is up."""
        if self._state is not ConnectionState.CONNECTED:
            self.transport.end()
            return
        if data:
            self.write(data)
        self.transport.end()

    def destroy(self) -> None:
        self.transport.destroy()

    def pause(self) -> None:
        self.transport.pause()

    def resume(self) -> None:
        self.transport.resume()

    def set_timeout(self, timeout: float | None, callback: Callable[[], Any] | None = None) -> None:
        """Delegate idle timeout handling to the transport; ``callback`` runs on ``timeout``."""
        if callback:
            self.once("timeout", callback)
        self.transport.set_timeout(timeout)

    def set_no_delay(self, no_delay: bool = True) -> None:
        self.transport.set_no_delay(no_delay)

    def set_keep_alive(self, enable: bool = False, initial_delay: float | None = None) -> None:
        self.transport.set_keep_alive(enable, initial_delay)

    def address(self) -> tuple[Any, ...] | None:
        return self.transport.address()
