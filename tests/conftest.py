"""Shared fixtures: an in-memory transport and a local SOCKS5 server."""

import socket
import socketserver
import struct
import threading

import pytest

from proxy_socket.core.lib.events import EventEmitter
from proxy_socket.core.lib.proxy_stats import ProxyStats
from proxy_socket.core.models import ProxyEndpoint
from proxy_socket.core.proxy import ProxySocket

AUTH_OK = b"\x05\x00"
# Success reply bound to 127.0.0.1:8080
CONNECT_OK = b"\x05\x00\x00\x01\x7f\x00\x00\x01\x1f\x90"


class FakeTransport(EventEmitter):
    """Transport that records writes and lets tests inject signals."""

    def __init__(self) -> None:
        super().__init__()
        self.writes: list[bytes] = []
        self.accept_writes = True
        self.connect_args: tuple[str, int] | None = None
        self.on_connect = None
        self.ended = False
        self.destroyed = False
        self.paused = False
        self.timeout: float | None = None
        self.no_delay: bool | None = None
        self.keep_alive: tuple[bool, float | None] | None = None
        self.local_address = "10.0.0.2"
        self.local_port = 50000
        self.remote_address = "10.0.0.1"
        self.remote_port = 1080
        self.buffer_size = 0

    def connect(self, host, port, on_connect=None):
        self.connect_args = (host, port)
        self.on_connect = on_connect

    def establish(self) -> None:
        self.on_connect()
        self.emit("connect")

    def feed(self, data: bytes) -> None:
        self.emit("data", data)

    def write(self, data: bytes) -> bool:
        if not self.accept_writes:
            return False
        self.writes.append(bytes(data))
        return True

    def end(self, data=None):
        self.ended = True

    def destroy(self):
        self.destroyed = True

    def pause(self):
        self.paused = True

    def resume(self):
        self.paused = False

    def set_timeout(self, timeout, callback=None):
        self.timeout = timeout

    def set_no_delay(self, no_delay=True):
        self.no_delay = no_delay

    def set_keep_alive(self, enable=False, initial_delay=None):
        self.keep_alive = (enable, initial_delay)

    def address(self):
        return (self.local_address, self.local_port)


class Recorder:
    """Collect the signals a socket emits, in order."""

    def __init__(self, emitter: EventEmitter, events=("connect", "data", "error", "end", "timeout", "close", "drain", "readable")) -> None:
        self.events: list[tuple[str, tuple]] = []
        for event in events:
            emitter.on(event, self._recorder(event))

    def _recorder(self, event):
        def record(*args):
            self.events.append((event, args))

        return record

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def args(self, event: str) -> list[tuple]:
        return [args for name, args in self.events if name == event]

    @property
    def data(self) -> bytes:
        return b"".join(args[0] for args in self.args("data"))


@pytest.fixture
def stats() -> ProxyStats:
    return ProxyStats()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sock(transport, stats) -> ProxySocket:
    return ProxySocket(ProxyEndpoint("proxy.local", 1080), transport=transport, stats=stats)


@pytest.fixture
def recorder(sock) -> Recorder:
    return Recorder(sock)


def connect_through(sock: ProxySocket, transport: FakeTransport, host: str = "example.com", port: int = 80) -> None:
    """Drive ``sock`` through a successful handshake."""
    sock.connect(host, port)
    transport.establish()
    transport.feed(AUTH_OK)
    transport.feed(CONNECT_OK)


def _recv_exact(conn: socket.socket, size: int) -> bytes:
    data = b""
    while len(data) < size:
        chunk = conn.recv(size - len(data))
        if not chunk:
            raise ConnectionError("client went away")
        data += chunk
    return data


class Socks5EchoHandler(socketserver.BaseRequestHandler):
    """Minimal SOCKS5 server: no-auth, CONNECT, then echo everything back."""

    def handle(self) -> None:
        try:
            version, nmethods = struct.unpack("!BB", _recv_exact(self.request, 2))
            methods = _recv_exact(self.request, nmethods)
            self.server.greetings.append((version, methods))
            self.request.sendall(b"\x05\x00")

            _, cmd, _, addr_type = struct.unpack("!BBBB", _recv_exact(self.request, 4))
            if addr_type == 0x01:
                address = socket.inet_ntoa(_recv_exact(self.request, 4))
            elif addr_type == 0x04:
                address = socket.inet_ntop(socket.AF_INET6, _recv_exact(self.request, 16))
            else:
                length = _recv_exact(self.request, 1)[0]
                address = _recv_exact(self.request, length).decode()
            (port,) = struct.unpack("!H", _recv_exact(self.request, 2))
            self.server.requests.append((cmd, addr_type, address, port))

            reply = struct.pack("!BBBB", 5, self.server.reply_code, 0, 1) + socket.inet_aton("127.0.0.1")
            reply += struct.pack("!H", 4660)
            if self.server.reply_code != 0:
                self.request.sendall(reply)
                return
            self.request.sendall(reply + self.server.banner)

            while data := self.request.recv(4096):
                self.request.sendall(data)
        except (ConnectionError, OSError):
            return


class Socks5TestServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self) -> None:
        super().__init__(("127.0.0.1", 0), Socks5EchoHandler)
        self.greetings: list[tuple[int, bytes]] = []
        self.requests: list[tuple[int, int, str, int]] = []
        self.reply_code = 0
        self.banner = b""


@pytest.fixture
def socks_server():
    server = Socks5TestServer()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
