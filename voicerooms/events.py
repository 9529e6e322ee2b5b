"""Local notifications for UI listeners."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any


class EventEmitter:
    def __init__(self) -> None:
        self.log = logging.getLogger("voicerooms.events")
        self._lock = threading.Lock()
        self._listeners: dict[str, list[Callable[[Any], None]]] = {}

    def subscribe(self, name: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Register a listener. Returns a function that removes it again."""
        with self._lock:
            self._listeners.setdefault(name, []).append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(name)
                if listeners and callback in listeners:
                    listeners.remove(callback)

        return _unsubscribe

    def emit(self, name: str, payload: Any = None) -> None:
        with self._lock:
            listeners = list(self._listeners.get(name, ()))
        for cb in listeners:
            try:
                cb(payload)
            except Exception:
                self.log.exception("Listener for %s failed", name)
