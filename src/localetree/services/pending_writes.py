"""Pending write queue.

Collects value edits keyed by ``(locale, keypath)`` until they are flushed
through a persistence adapter. A later edit of the same key replaces the queued
one, so enqueue order between different keys does not matter and concurrent
callers can enqueue safely.

``flush`` drains the whole queue as one batch and reports every entry
separately: a failing write never stops its siblings from being persisted.
Debouncing is not handled here; the loader owns the timer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Dict, List, Optional, Protocol, Tuple

from ..core.errors import PersistenceError
from ..core.models import PendingWrite

__all__ = ["PersistenceAdapter", "PendingWriteQueue", "WriteResult"]

log = logging.getLogger(__name__)


class PersistenceAdapter(Protocol):
    def persist(self, write: PendingWrite) -> None: ...  # pragma: no cover - structural


@dataclass(frozen=True)
class WriteResult:
    write: PendingWrite
    ok: bool
    error: Optional[PersistenceError] = None


class PendingWriteQueue:
    def __init__(self) -> None:
        self._lock = RLock()
        self._pending: Dict[Tuple[str, str], PendingWrite] = {}

    def enqueue(self, write: PendingWrite) -> None:
        with self._lock:
            replaced = self._pending.pop(write.key, None)
            self._pending[write.key] = write
        if replaced is not None:
            log.debug("replaced queued write for %s/%s", write.locale, write.keypath)

    def pending(self) -> List[PendingWrite]:
        with self._lock:
            return list(self._pending.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def drain(self) -> List[PendingWrite]:
        """Remove and return every queued write."""
        with self._lock:
            batch = list(self._pending.values())
            self._pending.clear()
        return batch

    def discard(self) -> List[PendingWrite]:
        dropped = self.drain()
        for write in dropped:
            log.warning("dropped unflushed write %s/%s", write.locale, write.keypath)
        return dropped

    def flush(self, adapter: PersistenceAdapter) -> List[WriteResult]:
        results: List[WriteResult] = []
        for write in self.drain():
            try:
                adapter.persist(write)
            except PersistenceError as exc:
                log.warning(
                    "write %s/%s to %s failed (%s): %s",
                    write.locale,
                    write.keypath,
                    write.filepath,
                    exc.reason,
                    exc,
                )
                results.append(WriteResult(write=write, ok=False, error=exc))
            except Exception as exc:  # noqa: BLE001 - adapter failures stay per write
                log.exception("persistence adapter raised for %s/%s", write.locale, write.keypath)
                error = PersistenceError(
                    str(exc) or type(exc).__name__,
                    reason="error",
                    context={"filepath": write.filepath, "exception": type(exc).__name__},
                )
                error.__cause__ = exc
                results.append(WriteResult(write=write, ok=False, error=error))
            else:
                results.append(WriteResult(write=write, ok=True))
        return results
