"""Locale loader: owns the published tree / flat index / coverage snapshot.

Lifecycle
---------
``UNINITIALIZED`` until the first successful ``load``; ``READY`` afterwards.
Every merge cycle (``load``, ``on_file_changed``, ``on_file_removed``, the
re-parse after a flush) rebuilds the complete file set, diffs the new flat
index against the published one, swaps a new ``LoaderSnapshot`` in with a
single assignment and then publishes the change events. Readers always get
a complete snapshot; a failing cycle leaves the previous one in place.

Concurrency
-----------
Single writer, many readers. Only one cycle runs at a time; notifications
that arrive while a cycle is in flight (from other threads, or from a
subscriber reacting to an event) are queued and handled by one more pass of
the running cycle loop instead of starting a second cycle.

Writes are queued in a ``PendingWriteQueue`` and flushed after a debounce
window (``Debouncer``); ``flush()`` bypasses the window. Successfully written
files are re-parsed so the tree reflects the new values.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from threading import RLock
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple

from ..config import settings
from ..core import keypath as kp
from ..core.errors import LoaderClosedError, ParseFailure, PersistenceError
from ..core.models import (
    ChangeEvent,
    Coverage,
    FlattenLocaleTree,
    LocaleLoaderEventType,
    LocaleNode,
    LocaleTree,
    ParsedFile,
    PendingWrite,
)
from .change_detector import diff
from .coverage import compute_coverage
from .debounce import Debouncer
from .event_bus import ChangeHandler, EventBus
from .pending_writes import PendingWriteQueue, PersistenceAdapter, WriteResult
from .tree_builder import BuildResult, TreeBuilder

__all__ = ["FileParserAdapter", "LoaderSnapshot", "LoaderState", "LocaleLoader"]

log = logging.getLogger(__name__)


class FileParserAdapter(Protocol):
    def parse(self, filepath: str) -> ParsedFile: ...  # pragma: no cover - structural


class LoaderState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


class _Change(Enum):
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True)
class LoaderSnapshot:
    tree: LocaleTree
    flatten: FlattenLocaleTree
    coverage: Tuple[Coverage, ...] = ()
    report: Optional[BuildResult] = None
    version: int = 0


def _empty_snapshot(version: int = 0) -> LoaderSnapshot:
    return LoaderSnapshot(tree=LocaleTree(), flatten={}, version=version)


class LocaleLoader:
    """Public query / write API over the merged locale data."""

    def __init__(
        self,
        parser: FileParserAdapter,
        persistence: Optional[PersistenceAdapter] = None,
        *,
        locales: Optional[Iterable[str]] = None,
        debounce_ms: int = settings.DEFAULT_DEBOUNCE_MS,
        event_bus: Optional[EventBus] = None,
        builder: Optional[TreeBuilder] = None,
    ) -> None:
        self._parser = parser
        self._persistence = persistence
        self._extra_locales = frozenset(locales or ())
        self._bus = event_bus or EventBus()
        self._builder = builder or TreeBuilder()
        self._queue = PendingWriteQueue()
        self._debouncer = Debouncer(self._flush_from_timer, debounce_ms)
        self._lock = RLock()
        self._cycle_lock = threading.Lock()
        self._cycle_owner: Optional[int] = None
        self._files: Dict[str, ParsedFile] = {}
        self._dirty: Dict[str, _Change] = {}
        self._snapshot = _empty_snapshot()
        self._state = LoaderState.UNINITIALIZED
        self._closed = False
        self.parse_failures: Dict[str, ParseFailure] = {}
        self.last_error: Optional[BaseException] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def state(self) -> LoaderState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def load(self, filepaths: Iterable[str]) -> BuildResult:
        """Parse and merge the initial file set, replacing any previous one.

        Files that fail to parse are left out and recorded in
        ``parse_failures``. A failing build propagates and leaves the
        published snapshot untouched.
        """
        self._ensure_open()
        parsed: Dict[str, ParsedFile] = {}
        failures: Dict[str, ParseFailure] = {}
        for filepath in dict.fromkeys(filepaths):
            try:
                parsed[filepath] = self._parse(filepath)
            except ParseFailure as exc:
                log.warning("excluding %s from load: %s", filepath, exc)
                failures[filepath] = exc
        with self._cycle():
            previous = self._files
            file_events = [
                ChangeEvent(
                    LocaleLoaderEventType.FILE_UPDATED
                    if filepath in previous
                    else LocaleLoaderEventType.FILE_ADDED,
                    filepath=filepath,
                )
                for filepath in sorted(parsed)
            ]
            file_events.extend(
                ChangeEvent(LocaleLoaderEventType.FILE_REMOVED, filepath=filepath)
                for filepath in sorted(previous.keys() - parsed.keys())
            )
            result = self._commit(parsed, file_events)
            self.parse_failures = failures
        self._drain()
        return result

    def shutdown(self, *, flush: bool = False) -> List[PendingWrite]:
        """Stop timers, clear state and return the writes that were dropped.

        With ``flush=True`` queued writes are persisted first (failures are
        logged by the queue); otherwise every queued write is discarded and
        returned.
        """
        if self._closed:
            return []
        self._debouncer.cancel()
        if flush and self._persistence is not None:
            self.flush()
        dropped = self._queue.discard()
        owned = self._cycle_owner == threading.get_ident()
        if not owned:
            self._cycle_lock.acquire()
        try:
            with self._lock:
                self._closed = True
                self._files = {}
                self._dirty = {}
                self._snapshot = _empty_snapshot(self._snapshot.version + 1)
                self._state = LoaderState.UNINITIALIZED
        finally:
            if not owned:
                self._cycle_lock.release()
        self._bus.clear()
        log.info("locale loader shut down (%d writes dropped)", len(dropped))
        return dropped

    # ------------------------------------------------------------------
    # File notifications
    # ------------------------------------------------------------------
    def on_file_changed(self, filepath: str) -> None:
        self._notify({filepath: _Change.UPDATED})

    def on_file_removed(self, filepath: str) -> None:
        self._notify({filepath: _Change.REMOVED})

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def snapshot(self) -> LoaderSnapshot:
        return self._snapshot

    @property
    def last_report(self) -> Optional[BuildResult]:
        return self._snapshot.report

    def files(self) -> List[str]:
        with self._lock:
            return sorted(self._files)

    def get_tree(self) -> LocaleTree:
        return self._snapshot.tree

    def get_flatten(self) -> FlattenLocaleTree:
        return self._snapshot.flatten

    def get_node(self, keypath: str) -> Optional[LocaleNode]:
        return self._snapshot.flatten.get(keypath)

    def get_value(self, keypath: str, locale: str, fallback: str = "") -> str:
        node = self._snapshot.flatten.get(keypath)
        if node is None:
            return fallback
        return node.get_value(locale, fallback)

    def get_coverage(self, locales: Optional[Iterable[str]] = None) -> List[Coverage]:
        snapshot = self._snapshot
        if locales is None:
            return list(snapshot.coverage)
        if isinstance(locales, str):
            locales = (locales,)
        return compute_coverage(snapshot.flatten, locales)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def write(self, locale: str, keypath: str, value: str, filepath: Optional[str] = None) -> PendingWrite:
        """Queue a value edit and (re)start the debounce window."""
        self._ensure_open()
        if self._persistence is None:
            raise PersistenceError("no persistence adapter configured", reason="no-target")
        kp.split(keypath)  # KeypathFormatError surfaces to the caller
        pending = PendingWrite(
            locale=locale,
            keypath=keypath,
            value=value,
            filepath=filepath or self._target_file(locale, keypath),
        )
        self._queue.enqueue(pending)
        self._debouncer.schedule()
        return pending

    def pending_writes(self) -> List[PendingWrite]:
        return self._queue.pending()

    def flush(self) -> List[WriteResult]:
        """Persist every queued write now and re-parse the written files."""
        self._debouncer.cancel()
        if self._persistence is None:
            return []
        results = self._queue.flush(self._persistence)
        written = {r.write.filepath for r in results if r.ok and r.write.filepath}
        if written and not self._closed:
            self._notify({filepath: _Change.UPDATED for filepath in sorted(written)})
        return results

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------
    def subscribe(self, handler: ChangeHandler) -> Callable[[], None]:
        """Deliver every ``ChangeEvent`` to ``handler``; returns an unsubscribe callable."""
        sub = self._bus.subscribe(handler)

        def unsubscribe() -> None:
            self._bus.unsubscribe(sub)

        return unsubscribe

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _ensure_open(self) -> None:
        if self._closed:
            raise LoaderClosedError("locale loader has been shut down")

    def _parse(self, filepath: str) -> ParsedFile:
        try:
            return self._parser.parse(filepath)
        except ParseFailure:
            raise
        except Exception as exc:  # noqa: BLE001 - adapters may raise anything (OSError, decode errors)
            raise ParseFailure(str(exc) or type(exc).__name__, filepath=filepath) from exc

    def _target_file(self, locale: str, keypath: str) -> Optional[str]:
        node = self._snapshot.flatten.get(keypath)
        record = node.locales.get(locale) if node is not None else None
        if record is not None and record.filepath:
            return record.filepath
        segments = kp.split(keypath)
        with self._lock:
            candidates = [f for f in self._files.values() if f.locale == locale]
        scoped = [
            f
            for f in candidates
            if f.scope and kp.is_prefix(kp.split(f.scope), segments)
        ]
        pool = scoped or [f for f in candidates if not f.scope] or candidates
        if not pool:
            return None
        pool.sort(key=lambda f: (-f.specificity, f.filepath))
        return pool[0].filepath

    def _flush_from_timer(self) -> None:
        if self._closed:
            return
        try:
            self.flush()
        except Exception:  # noqa: BLE001 - timer thread has no caller to report to
            log.exception("debounced flush failed")

    def _notify(self, changes: Dict[str, _Change]) -> None:
        self._ensure_open()
        if self._state is LoaderState.UNINITIALIZED:
            log.debug("ignoring %d file notifications before load", len(changes))
            return
        with self._lock:
            self._dirty.update(changes)
        self._drain()

    @contextmanager
    def _cycle(self) -> Iterator[None]:
        if self._cycle_owner == threading.get_ident():
            raise RuntimeError("load() called from inside a merge cycle")
        with self._cycle_lock:
            self._cycle_owner = threading.get_ident()
            try:
                yield
            finally:
                self._cycle_owner = None

    def _drain(self) -> None:
        while True:
            if not self._cycle_lock.acquire(blocking=False):
                log.debug("merge cycle in flight; notification coalesced")
                return
            self._cycle_owner = threading.get_ident()
            try:
                with self._lock:
                    batch, self._dirty = self._dirty, {}
                if batch and not self._closed:
                    self._run_cycle(batch)
            finally:
                self._cycle_owner = None
                self._cycle_lock.release()
            with self._lock:
                if not self._dirty or self._closed:
                    return

    def _run_cycle(self, batch: Dict[str, _Change]) -> None:
        files = dict(self._files)
        file_events: List[ChangeEvent] = []
        for filepath in sorted(batch):
            if batch[filepath] is _Change.REMOVED:
                self.parse_failures.pop(filepath, None)
                if files.pop(filepath, None) is not None:
                    file_events.append(ChangeEvent(LocaleLoaderEventType.FILE_REMOVED, filepath=filepath))
                continue
            try:
                parsed = self._parse(filepath)
            except ParseFailure as exc:
                self.parse_failures[filepath] = exc
                log.warning("keeping last good content of %s: %s", filepath, exc)
                continue
            self.parse_failures.pop(filepath, None)
            event_type = (
                LocaleLoaderEventType.FILE_UPDATED if filepath in files else LocaleLoaderEventType.FILE_ADDED
            )
            files[filepath] = parsed
            file_events.append(ChangeEvent(event_type, filepath=filepath))
        if not file_events:
            return
        try:
            self._commit(files, file_events)
        except Exception as exc:  # noqa: BLE001 - keep serving the last good snapshot
            self.last_error = exc
            log.exception("merge cycle failed; previous snapshot retained")

    def _commit(self, files: Dict[str, ParsedFile], file_events: List[ChangeEvent]) -> BuildResult:
        result = self._builder.build(files.values(), self._extra_locales)
        previous = self._snapshot
        events = diff(previous.flatten, result.flatten)
        snapshot = LoaderSnapshot(
            tree=result.tree,
            flatten=result.flatten,
            coverage=tuple(compute_coverage(result.flatten, result.locales)),
            report=result,
            version=previous.version + 1,
        )
        with self._lock:
            self._files = files
            self._snapshot = snapshot
            self._state = LoaderState.READY
        self.last_error = None
        log.info(
            "merge cycle %d: %d files, %d keys, %d changes",
            snapshot.version,
            len(files),
            len(result.flatten),
            len(events),
        )
        if not events:
            # a re-parse with no key changes is silent; membership changes are not
            file_events = [e for e in file_events if e.type is not LocaleLoaderEventType.FILE_UPDATED]
        for event in [*file_events, *events]:
            self._bus.publish(event)
        return result

