"""Utility functions and helpers."""

from proxy_socket.core.utils.utils import format_bytes, format_hex

__all__ = ["format_bytes", "format_hex"]
