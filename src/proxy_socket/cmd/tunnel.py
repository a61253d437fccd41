"""One-shot tunnel command.

This module opens a single tunnel through a SOCKS5 proxy, optionally sends a
payload, collects whatever the destination answers until the stream ends or
goes idle, and reports the result in a table.

Example:
    report = run_tunnel(ProxyEndpoint("127.0.0.1", 9050), "example.com", 80, b"HEAD / HTTP/1.0\\r\\n\\r\\n")
    show_tunnel_report(report)
"""

import threading
from dataclasses import dataclass, field

from loguru import logger
from rich.console import Console
from rich.table import Table

from proxy_socket.core.lib.proxy_stats import proxy_stats
from proxy_socket.core.models import BoundAddress, ProxyEndpoint
from proxy_socket.core.proxy import ProxySocket
from proxy_socket.core.utils.utils import format_bytes, format_hex

console = Console()

DEFAULT_IDLE_TIMEOUT = 5.0  # Seconds


@dataclass
class TunnelReport:
    """Outcome of a one-shot tunnel."""

    proxy: ProxyEndpoint
    destination: str
    connected: bool = False
    error: BaseException | None = None
    received: bytearray = field(default_factory=bytearray)
    bytes_read: int = 0
    bytes_written: int = 0
    local: str | None = None
    remote: str | None = None
    bound_address: BoundAddress | None = None


def run_tunnel(
    proxy: ProxyEndpoint,
    host: str,
    port: int,
    payload: bytes | None = None,
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
) -> TunnelReport:
    """Open a tunnel, send ``payload`` and wait for the exchange to finish.

    The exchange ends when the destination closes its side, the stream stays
    idle for ``idle_timeout`` seconds, or an error is reported. An idle timeout
    of 0 disables the idle check and waits until the stream ends or fails.
    """
    report = TunnelReport(proxy=proxy, destination=f"{host}:{port}")
    done = threading.Event()
    sock = ProxySocket(proxy)

    def on_connect() -> None:
        report.connected = True
        report.local = f"{sock.local_address}:{sock.local_port}"
        report.remote = f"{sock.remote_address}:{sock.remote_port}"
        report.bound_address = sock.bound_address
        if payload:
            sock.write(payload)
        else:
            done.set()

    def on_data(data: bytes) -> None:
        logger.debug(f"Received {len(data)} bytes: {format_hex(data)}")
        report.received += data

    def on_error(exc: BaseException | None) -> None:
        report.error = exc
        done.set()

    sock.on("data", on_data)
    sock.on("error", on_error)
    sock.on("end", done.set)
    sock.on("close", lambda *_: done.set())
    sock.on("timeout", done.set)
    sock.on("socksdata", lambda data: logger.trace(f"SOCKS <- {format_hex(data)}"))

    sock.set_timeout(idle_timeout)
    try:
        sock.connect(host, port, on_connect)
        # Generous bound: proxy connect, handshake, then idle timeout
        done.wait(timeout=idle_timeout * 3 if idle_timeout else None)
    finally:
        sock.destroy()

    report.bytes_read = sock.bytes_read
    report.bytes_written = sock.bytes_written
    return report


def show_tunnel_report(report: TunnelReport) -> None:
    """Print the tunnel outcome and traffic figures."""
    table = Table(title=f"SOCKS5 tunnel to {report.destination} via {report.proxy}")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Established", "yes" if report.connected else "no")
    if report.error is not None:
        table.add_row("Error", f"[red]{type(report.error).__name__}: {report.error}")
    if report.local:
        table.add_row("Local endpoint", report.local)
        table.add_row("Proxy endpoint", report.remote or "")
    if report.bound_address:
        table.add_row("Bound by proxy", f"{report.bound_address.host}:{report.bound_address.port}")
    table.add_row("Bytes read", format_bytes(report.bytes_read))
    table.add_row("Bytes written", format_bytes(report.bytes_written))

    received, sent = proxy_stats.snapshot()
    table.add_row("Process total received", format_bytes(received))
    table.add_row("Process total sent", format_bytes(sent))
    table.add_row("Bandwidth", f"{format_bytes(proxy_stats.get_bandwidth())}/s")
    table.add_row("Active tunnels", str(proxy_stats.active_connections))
    table.add_row("Stats uptime", f"{proxy_stats.uptime():.1f}s")

    console.print(table)
