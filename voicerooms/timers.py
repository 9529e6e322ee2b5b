"""One-shot removal timers keyed by room id."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable


class RemovalScheduler:
    """
    Per-room one-shot timers.

    Scheduling a key again replaces its timer. Callbacks run on timer threads,
    so they must take the service state lock before touching room state.
    """

    def __init__(self) -> None:
        self.log = logging.getLogger("voicerooms.timers")
        self._lock = threading.Lock()
        self._timers: dict[str, threading.Timer] = {}

    def schedule(self, key: str, delay_s: float, callback: Callable[[], None]) -> None:
        delay = max(0.0, float(delay_s))
        timer = threading.Timer(delay, self._fire, args=(key, callback))
        timer.daemon = True
        timer.name = f"voicerooms-timer-{key}"
        with self._lock:
            old = self._timers.pop(key, None)
            self._timers[key] = timer
        if old is not None:
            old.cancel()
        timer.start()

    def cancel(self, key: str) -> bool:
        with self._lock:
            timer = self._timers.pop(key, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def cancel_all(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for t in timers:
            t.cancel()

    def pending(self) -> list[str]:
        with self._lock:
            return list(self._timers.keys())

    def _fire(self, key: str, callback: Callable[[], None]) -> None:
        with self._lock:
            if self._timers.get(key) is not threading.current_thread():
                # Replaced or cancelled after the wait ran out.
                self.log.debug("Dropping stale timer key=%s", key)
                return
            self._timers.pop(key, None)
        try:
            callback()
        except Exception:
            self.log.exception("Removal callback failed key=%s", key)
