"""Minimal observer registry used for socket signals."""

import threading
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from loguru import logger

Handler = Callable[..., Any]


class EventEmitter:
    """Register handlers per signal name and call them in registration order.

    Handlers run synchronously on the thread that emits, so signals of one
    emitter are observed in the order they were emitted.
    """

    def __init__(self) -> None:
        self._handlers: defaultdict[str, list[Handler]] = defaultdict(list)
        self._handlers_lock = threading.Lock()

    def on(self, event: str, handler: Handler) -> Handler:
        """Register ``handler`` for ``event``. Returns the handler, so it works as a decorator."""
        with self._handlers_lock:
            self._handlers[event].append(handler)
        return handler

    def once(self, event: str, handler: Handler) -> Handler:
        """Register ``handler`` for the next ``event`` only."""

        def wrapper(*args: Any) -> Any:
            self.off(event, wrapper)
            return handler(*args)

        return self.on(event, wrapper)

    def off(self, event: str, handler: Handler) -> None:
        with self._handlers_lock:
            handlers = self._handlers.get(event, [])
            if handler in handlers:
                handlers.remove(handler)

    def listener_count(self, event: str) -> int:
        with self._handlers_lock:
            return len(self._handlers.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        """Call every handler registered for ``event``.

        An ``error`` signal nobody listens to is logged rather than dropped
        silently.

        Returns:
            bool: True if at least one handler was called
        """
        with self._handlers_lock:
            handlers = list(self._handlers.get(event, []))

        if not handlers:
            if event == "error":
                logger.warning(f"Unhandled error on {type(self).__name__}: {args[0] if args else None!r}")
            return False

        for handler in handlers:
            handler(*args)
        logger.trace(f"{type(self).__name__} emitted {event!r} to {len(handlers)} handler(s)")
        return True
