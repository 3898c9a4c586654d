"""Change event dispatch for loader subscribers.

Every subscriber receives every ``ChangeEvent`` of a merge cycle, on the
publishing thread, in publish order. A handler that raises is logged and
recorded in ``errors``; the remaining handlers still run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Callable, List, Tuple

from ..core.models import ChangeEvent

__all__ = ["ChangeHandler", "EventBus", "Subscription"]

log = logging.getLogger(__name__)

ChangeHandler = Callable[[ChangeEvent], None]


@dataclass
class Subscription:
    handler: ChangeHandler
    active: bool = True


class EventBus:
    """Synchronous ``ChangeEvent`` dispatcher.

    Handlers run without the lock held (the subscriber list is copied first),
    so a handler may subscribe, unsubscribe or trigger another publish.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._subs: List[Subscription] = []
        self._errors: List[Tuple[ChangeEvent, Exception]] = []

    def subscribe(self, handler: ChangeHandler) -> Subscription:
        sub = Subscription(handler=handler)
        with self._lock:
            self._subs.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            self._subs = [s for s in self._subs if s is not sub]
        sub.active = False

    def clear(self) -> None:
        with self._lock:
            for sub in self._subs:
                sub.active = False
            self._subs = []
            self._errors.clear()

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            subs = list(self._subs)
        for sub in subs:
            # unsubscribed by an earlier handler of this same event
            if not sub.active:
                continue
            try:
                sub.handler(event)
            except Exception as exc:  # noqa: BLE001 - capture any handler failure
                log.exception("change handler failed for %s %s", event.type.value, event.keypath or event.filepath)
                with self._lock:
                    self._errors.append((event, exc))

    @property
    def errors(self) -> List[Tuple[ChangeEvent, Exception]]:
        with self._lock:
            return list(self._errors)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subs)
