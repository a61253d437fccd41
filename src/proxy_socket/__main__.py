"""Allow ``python -m proxy_socket``."""

from proxy_socket.cmd.cli import app

app()
