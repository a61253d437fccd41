"""Command-line interface for the SOCKS5 client.

This module provides the ``proxy-socket`` command, handling:
- Command-line argument parsing
- Proxy endpoint configuration (options or environment variables)
- Logging setup
- Error reporting

Example:
    # Send an HTTP request to example.com through a local Tor client:
    $ proxy-socket connect example.com 80 --send "HEAD / HTTP/1.0\\r\\n\\r\\n"

    # Show the CONNECT request that would be sent for an IPv6 destination:
    $ proxy-socket encode 2001:db8::1 443
"""

import codecs

import typer
from loguru import logger
from rich.console import Console

from proxy_socket import __version__
from proxy_socket.cmd.tunnel import DEFAULT_IDLE_TIMEOUT, run_tunnel, show_tunnel_report
from proxy_socket.core.exceptions import InvalidDestinationError
from proxy_socket.core.lib.address import address_type_of
from proxy_socket.core.lib.handshake import build_auth_request, build_connect_request
from proxy_socket.core.models import DEFAULT_PROXY_HOST, DEFAULT_PROXY_PORT, Destination, ProxyEndpoint
from proxy_socket.core.utils.log_config import configure_logging
from proxy_socket.core.utils.utils import format_hex

console = Console()
app = typer.Typer(help="Open TCP streams through a SOCKS5 proxy")


@app.callback(invoke_without_command=True)
def version_callback():
    """Show version information."""
    console.print(f"[cyan]Proxy Socket v{__version__}[/cyan]")


@app.command(name="connect")
def connect(
    host: str = typer.Argument(..., help="Destination host (domain, IPv4 or IPv6)"),
    port: int = typer.Argument(..., min=0, max=65535, help="Destination port"),
    proxy_host: str = typer.Option(
        DEFAULT_PROXY_HOST, "--proxy-host", envvar="PROXY_SOCKET_HOST", help="SOCKS5 proxy host"
    ),
    proxy_port: int = typer.Option(
        DEFAULT_PROXY_PORT, "--proxy-port", envvar="PROXY_SOCKET_PORT", min=0, max=65535, help="SOCKS5 proxy port"
    ),
    send: str | None = typer.Option(
        None, "--send", "-s", help="Payload to send once connected (backslash escapes allowed)"
    ),
    timeout: float = typer.Option(
        DEFAULT_IDLE_TIMEOUT, "--timeout", "-t", min=0, help="Idle timeout in seconds, 0 waits until the stream ends"
    ),
    debug: bool = typer.Option(
        default=False,
        help="Enable debug logging",
    ),
):
    """Open a tunnel to HOST:PORT and print what the destination sends back."""
    configure_logging("DEBUG" if debug else "WARNING")

    proxy = ProxyEndpoint(proxy_host, proxy_port)
    payload = codecs.decode(send, "unicode_escape").encode("latin-1") if send else None

    logger.info(f"Opening tunnel to {host}:{port} via {proxy}")
    try:
        with console.status(f"Connecting to {host}:{port} via {proxy}..."):
            report = run_tunnel(proxy, host, port, payload, timeout)
    except InvalidDestinationError as e:
        console.print(f"[red]Invalid destination: {e}")
        raise typer.Exit(2) from e

    if report.error is not None:
        console.print(f"[red]Error: {report.error}")
    if report.received:
        console.print(report.received.decode("utf-8", errors="replace"), markup=False, highlight=False)
    show_tunnel_report(report)

    if not report.connected:
        raise typer.Exit(1)


@app.command(name="encode")
def encode(
    host: str = typer.Argument(..., help="Destination host (domain, IPv4 or IPv6)"),
    port: int = typer.Argument(..., help="Destination port"),
):
    """Print the handshake requests sent for HOST:PORT."""
    try:
        request = build_connect_request(Destination(host, port))
    except InvalidDestinationError as e:
        console.print(f"[red]Invalid destination: {e}")
        raise typer.Exit(2) from e

    console.print(f"Address type: [cyan]{address_type_of(host).name}[/cyan]")
    console.print(f"Auth request: [green]{format_hex(build_auth_request())}[/green]")
    console.print(f"CONNECT request: [green]{format_hex(request, limit=len(request))}[/green]")


if __name__ == "__main__":
    app()
