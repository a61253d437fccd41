"""Byte accounting for proxy sockets.

This module tracks how much application data flows through proxy sockets:
- Per-socket read/write counters (``ByteCounters``)
- Process-wide totals across every socket (``ProxyStats``)
- Number of currently established tunnels
- Recent bandwidth history and uptime, shown by the ``connect`` command

The process-wide totals only ever grow. They are updated under a lock, so
sockets driven from different threads can share one ``ProxyStats``. Each
socket references a stats object rather than owning it; by default that is
the module-level ``proxy_stats`` instance.

Example:
    from proxy_socket.core.lib.proxy_stats import proxy_stats

    sock = ProxySocket(stats=proxy_stats)
    ...
    print(proxy_stats.total_bytes_received)
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Final

BANDWIDTH_WINDOW: Final = 5  # Seconds
HISTORY_SIZE: Final = 60


@dataclass
class ByteCounters:
    """Application bytes moved through a single proxy socket.

    Attributes:
        bytes_read: Bytes delivered to the caller after the tunnel was established
        bytes_written: Bytes the caller wrote through the tunnel
    """

    bytes_read: int = 0
    bytes_written: int = 0


class ProxyStats:
    """Thread-safe aggregate of the traffic of all proxy sockets sharing it."""

    def __init__(self) -> None:
        """Initialize the tracker with zeroed totals and an empty history."""
        self.active_connections = 0
        self.total_bytes_sent = 0
        self.total_bytes_received = 0
        self.bandwidth_history: deque[tuple[int, float]] = deque(maxlen=HISTORY_SIZE)
        self.start_time = datetime.now(tz=UTC)
        self._lock = threading.Lock()

    def update_bytes(self, sent: int, received: int) -> None:
        """Add transferred bytes to the totals.

        Args:
            sent: Number of bytes written through a tunnel
            received: Number of bytes read from a tunnel
        """
        with self._lock:
            self.total_bytes_sent += sent
            self.total_bytes_received += received
            self.bandwidth_history.append((sent + received, time.time()))

    def get_bandwidth(self) -> float:
        """Average bandwidth over the last few seconds in bytes per second."""
        with self._lock:
            cutoff = time.time() - BANDWIDTH_WINDOW
            recent = sum(bytes_ for bytes_, ts in self.bandwidth_history if ts > cutoff)
        return recent / BANDWIDTH_WINDOW

    def uptime(self) -> float:
        """Seconds since this tracker was created."""
        return (datetime.now(tz=UTC) - self.start_time).total_seconds()

    def connection_started(self) -> None:
        with self._lock:
            self.active_connections += 1

    def connection_ended(self) -> None:
        with self._lock:
            self.active_connections -= 1

    def snapshot(self) -> tuple[int, int]:
        """Return ``(total_bytes_received, total_bytes_sent)`` read under the lock."""
        with self._lock:
            return self.total_bytes_received, self.total_bytes_sent


# Global statistics object
proxy_stats = ProxyStats()
