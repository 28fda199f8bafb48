"""Minimal observer registry shared by the stateful modules."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class ListenerSet:
    """Set of callbacks. A listener that raises is logged and skipped."""

    def __init__(self) -> None:
        self._listeners: list[Callable[..., Any]] = []
        self._lock = threading.Lock()

    def add(self, listener: Callable[..., Any]) -> Callable[[], None]:
        """Register ``listener`` and return a function that unregisters it."""
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

        def unsubscribe() -> None:
            self.discard(listener)

        return unsubscribe

    def discard(self, listener: Callable[..., Any]) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)

    def notify(self, *args: Any) -> None:
        with self._lock:
            snapshot = list(self._listeners)
        for listener in snapshot:
            try:
                listener(*args)
            except Exception:
                logger.exception("Listener %r failed", listener)
