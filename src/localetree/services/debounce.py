"""Debounce timer used to batch bursts of edits before a flush.

Last-event-wins: every ``schedule()`` restarts the quiet window, so a burst of
calls results in a single callback once ``delay_ms`` passes without another
call. ``fire_now()`` runs the callback immediately (tests, shutdown paths) and
``cancel()`` drops a pending run.

Timers are ``threading.Timer`` objects; the callback runs on the timer thread.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from ..config import settings

__all__ = ["Debouncer"]

log = logging.getLogger(__name__)


def _clamp(ms: int) -> int:
    return max(settings.MIN_DEBOUNCE_MS, min(ms, settings.MAX_DEBOUNCE_MS))


class Debouncer:
    def __init__(self, callback: Callable[[], None], delay_ms: int = settings.DEFAULT_DEBOUNCE_MS):
        self._callback = callback
        self._delay_ms = _clamp(delay_ms)
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0

    # Configuration -----------------------------------------------------
    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    def set_delay_ms(self, ms: int) -> None:
        self._delay_ms = _clamp(ms)
        # Timer will pick up new interval on next schedule.

    # Control -----------------------------------------------------------
    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                log.debug("debounce window restarted")
            self._generation += 1
            timer = threading.Timer(self._delay_ms / 1000.0, self._on_timeout, args=(self._generation,))
            timer.daemon = True
            self._timer = timer
        timer.start()

    def cancel(self) -> bool:
        """Drop a pending run; returns True when one was pending."""
        with self._lock:
            timer = self._timer
            self._timer = None
            self._generation += 1
        if timer is None:
            return False
        timer.cancel()
        return True

    def fire_now(self) -> None:
        self.cancel()
        self._callback()

    # Internal ----------------------------------------------------------
    def _on_timeout(self, generation: int) -> None:
        with self._lock:
            # a reschedule or cancel raced with this timer; the newer one wins
            if generation != self._generation:
                return
            self._timer = None
        self._callback()
