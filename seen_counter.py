"""
Debounced view counter.

Cards get re-rendered many times while a user flips through them. Each key
gets at most one timer at a time; when it fires the counter is incremented
once and the key can be armed again.
"""

import logging
import threading
from typing import Callable, Hashable

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 1.0


class SeenCounter:
    def __init__(self, increment: Callable[[Hashable], None], window: float = DEFAULT_WINDOW_SECONDS):
        """
        Args:
            increment: Durable "+1" for a key, called from the timer thread
            window: Debounce window in seconds
        """
        self.increment = increment
        self.window = window
        self._lock = threading.Lock()
        self._pending: dict = {}

    def record_seen(self, key: Hashable) -> bool:
        """Arm a timer for key. Returns False if one is already pending."""
        with self._lock:
            if key in self._pending:
                return False
            timer = threading.Timer(self.window, self._fire, args=(key,))
            timer.daemon = True
            self._pending[key] = timer
            timer.start()
        return True

    def is_pending(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._pending

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def _fire(self, key: Hashable) -> None:
        try:
            self.increment(key)
        except Exception as exc:
            # View counts are soft analytics, a failed increment is dropped
            logger.warning("Dropped seen increment for %s: %s", key, exc)
        finally:
            with self._lock:
                self._pending.pop(key, None)

    def shutdown(self, timeout: float = None) -> None:
        """Wait for every armed timer to fire. Nothing is cancelled."""
        with self._lock:
            timers = list(self._pending.values())
        for timer in timers:
            timer.join(timeout)
