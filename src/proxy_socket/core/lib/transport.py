"""Byte stream transports used underneath a proxy socket.

``Transport`` describes what a proxy socket needs from the connection to the
SOCKS proxy: connecting, writing, lifecycle control and a set of signals
(``connect``, ``data``, ``end``, ``close``, ``error``, ``timeout``,
``drain``, ``readable``). Anything implementing it can be handed to a
``ProxySocket``; ``SocketTransport`` is the default, built on a plain TCP
socket with one reader thread per connection.

Example:
    transport = SocketTransport()
    transport.on("data", lambda data: print(data.hex()))
    transport.connect("127.0.0.1", 9050, lambda: transport.write(b"\\x05\\x01\\x00"))
"""

import contextlib
import socket
import threading
from collections.abc import Callable
from typing import Any, Final, Protocol

from loguru import logger

from proxy_socket.core.lib.events import EventEmitter, Handler

READ_SIZE: Final = 4096
CONNECT_TIMEOUT: Final = 30.0  # Seconds


class Transport(Protocol):
    """Connected, byte oriented duplex stream to the SOCKS proxy."""

    local_address: str | None
    local_port: int | None
    remote_address: str | None
    remote_port: int | None
    buffer_size: int | None

    def on(self, event: str, handler: Handler) -> Handler: ...

    def connect(self, host: str, port: int, on_connect: Callable[[], Any] | None = None) -> None: ...

    def write(self, data: bytes) -> bool: ...

    def end(self, data: bytes | None = None) -> None: ...

    def destroy(self) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def set_timeout(self, timeout: float | None, callback: Callable[[], Any] | None = None) -> None: ...

    def set_no_delay(self, no_delay: bool = True) -> None: ...

    def set_keep_alive(self, enable: bool = False, initial_delay: float | None = None) -> None: ...

    def address(self) -> tuple[Any, ...] | None: ...


class SocketTransport(EventEmitter):
    """TCP socket transport driven by a background reader thread.

    ``connect()`` returns immediately; connecting and reading happen on a
    daemon thread, which emits the signals in the order events occur.
    Writes are synchronous (``sendall``), so ``drain`` is never needed and
    never emitted.
    """

    def __init__(self, connect_timeout: float = CONNECT_TIMEOUT) -> None:
        super().__init__()
        self.connect_timeout = connect_timeout
        self.local_address: str | None = None
        self.local_port: int | None = None
        self.remote_address: str | None = None
        self.remote_port: int | None = None
        self.buffer_size: int | None = None
        self._sock: socket.socket | None = None
        self._thread: threading.Thread | None = None
        self._write_lock = threading.Lock()
        self._flowing = threading.Event()
        self._flowing.set()
        self._destroyed = False
        self._timeout: float | None = None
        self._no_delay: bool | None = None
        self._keep_alive: tuple[bool, float | None] | None = None

    @property
    def connected(self) -> bool:
        return self._sock is not None and not self._destroyed

    def connect(self, host: str, port: int, on_connect: Callable[[], Any] | None = None) -> None:
        """Connect to ``host:port`` in the background.

        Args:
            host: Host to connect to
            port: Port to connect to
            on_connect: Called once the TCP connection is established
        """
        if self._thread is not None:
            raise RuntimeError("Transport already connecting or connected")
        if on_connect:
            self.once("connect", on_connect)

        self._thread = threading.Thread(
            target=self._run, args=(host, port), name=f"transport-{host}:{port}", daemon=True
        )
        self._thread.start()

    def _run(self, host: str, port: int) -> None:
        had_error = False
        try:
            try:
                sock = socket.create_connection((host, port), timeout=self.connect_timeout)
            except OSError as exc:
                logger.debug(f"Connection to {host}:{port} failed: {exc}")
                had_error = True
                self.emit("error", exc)
                return

            if self._destroyed:
                sock.close()
                return

            self._sock = sock
            self._apply_options()
            self._update_addresses()
            logger.debug(f"Connected to {host}:{port} from {self.local_address}:{self.local_port}")
            self.emit("connect")
            had_error = self._read_loop()
        except Exception:
            # A raising handler must not leak the socket or swallow the close signal
            logger.exception(f"Handler failed on transport to {host}:{port}, closing it")
            had_error = True
        finally:
            self._close_socket()
            self._emit_close(had_error)

    def _emit_close(self, had_error: bool) -> None:
        try:
            self.emit("close", had_error)
        except Exception:
            logger.exception("Close handler failed")

    def _read_loop(self) -> bool:
        """Read until EOF, error or destroy. Returns True if it ended with an error."""
        sock = self._sock
        while not self._destroyed:
            self._flowing.wait()
            if self._destroyed:
                break
            try:
                data = sock.recv(READ_SIZE)
            except TimeoutError:
                self.emit("timeout")
                continue
            except OSError as exc:
                if self._destroyed:
                    break
                self.emit("error", exc)
                return True

            if self._destroyed:
                break
            if not data:
                self.emit("end")
                break
            self.emit("readable")
            self.emit("data", data)
        return False

    def _apply_options(self) -> None:
        sock = self._sock
        # create_connection leaves the connect timeout on the socket
        sock.settimeout(self._timeout)
        if self._no_delay is not None:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, int(self._no_delay))
        if self._keep_alive is not None:
            enable, initial_delay = self._keep_alive
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, int(enable))
            if enable and initial_delay and hasattr(socket, "TCP_KEEPIDLE"):
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, max(1, int(initial_delay)))

    def _update_addresses(self) -> None:
        local = self._sock.getsockname()
        remote = self._sock.getpeername()
        self.local_address, self.local_port = local[0], local[1]
        self.remote_address, self.remote_port = remote[0], remote[1]
        self.buffer_size = self._sock.getsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF)

    def _close_socket(self) -> None:
        if self._sock is None:
            return
        with contextlib.suppress(OSError):
            self._sock.close()

    def write(self, data: bytes) -> bool:
        """Send ``data`` completely. Returns False if the socket refused it."""
        if not self.connected:
            return False
        try:
            with self._write_lock:
                self._sock.sendall(data)
        except OSError as exc:
            logger.debug(f"Write of {len(data)} bytes failed: {exc}")
            return False
        return True

    def end(self, data: bytes | None = None) -> None:
        """Optionally send ``data``, then half-close the connection."""
        if data:
            self.write(data)
        if self.connected:
            with contextlib.suppress(OSError):
                self._sock.shutdown(socket.SHUT_WR)

    def destroy(self) -> None:
        """Close the connection immediately. Pending reads are abandoned."""
        self._destroyed = True
        self._flowing.set()
        if self._sock is not None:
            with contextlib.suppress(OSError):
                self._sock.shutdown(socket.SHUT_RDWR)
            self._close_socket()

    def pause(self) -> None:
        self._flowing.clear()

    def resume(self) -> None:
        self._flowing.set()

    def set_timeout(self, timeout: float | None, callback: Callable[[], Any] | None = None) -> None:
        """Emit ``timeout`` after ``timeout`` seconds without incoming data.

        A timeout of 0 or None disables it. The connection stays open.
        """
        self._timeout = timeout or None
        if callback:
            self.once("timeout", callback)
        if self._sock is not None:
            self._sock.settimeout(self._timeout)

    def set_no_delay(self, no_delay: bool = True) -> None:
        self._no_delay = no_delay
        if self._sock is not None:
            self._apply_options()

    def set_keep_alive(self, enable: bool = False, initial_delay: float | None = None) -> None:
        self._keep_alive = (enable, initial_delay)
        if self._sock is not None:
            self._apply_options()

    def address(self) -> tuple[Any, ...] | None:
        if self._sock is None:
            return None
        return self._sock.getsockname()
