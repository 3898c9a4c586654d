"""Structured errors and non-fatal warnings raised or reported by the engine.

Exceptions (``LocaleEngineError`` subclasses) are raised where the caller has
to decide what happens next. Warnings (``LocaleEngineWarning`` subclasses) are
data-quality notes: the engine collects them into build reports and logs them,
it never raises them.
"""

from __future__ import annotations

from typing import Any, Sequence


class LocaleEngineError(Exception):
    """Base class for engine errors."""

    def __init__(self, message: str, *, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class KeypathFormatError(LocaleEngineError):
    """Raised when a keypath contains a malformed escape sequence."""

    def __init__(self, message: str, *, keypath: str, context: dict[str, Any] | None = None):
        super().__init__(message, context=context)
        self.keypath = keypath


class ParseFailure(LocaleEngineError):
    """Raised when a file could not be turned into a ``ParsedFile``."""

    def __init__(self, message: str, *, filepath: str, context: dict[str, Any] | None = None):
        super().__init__(message, context=context)
        self.filepath = filepath


class PersistenceError(LocaleEngineError):
    """Raised when a single pending write could not be persisted.

    ``reason`` is a short machine-readable tag: ``missing``, ``permission``,
    ``stale``, ``invalid``, ``no-target`` or ``error``.
    """

    def __init__(self, message: str, *, reason: str = "error", context: dict[str, Any] | None = None):
        super().__init__(message, context=context)
        self.reason = reason


class LoaderClosedError(LocaleEngineError):
    """Raised when a shut-down loader is asked to do work."""


class LocaleEngineWarning(UserWarning):
    """Base class for non-fatal conditions collected during a merge."""

    def __init__(self, message: str, *, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class MergeConflictWarning(LocaleEngineWarning):
    """Several files tie for the same ``(locale, keypath)``; ``winner`` was kept."""

    def __init__(self, *, locale: str, keypath: str, filepaths: Sequence[str], winner: str):
        super().__init__(
            f"{len(filepaths)} files define {keypath!r} for locale {locale!r}; using {winner!r}",
            context={"locale": locale, "keypath": keypath},
        )
        self.locale = locale
        self.keypath = keypath
        self.filepaths = tuple(filepaths)
        self.winner = winner

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MergeConflictWarning):
            return NotImplemented
        return (self.locale, self.keypath, self.filepaths, self.winner) == (
            other.locale,
            other.keypath,
            other.filepaths,
            other.winner,
        )

    def __hash__(self) -> int:
        return hash((self.locale, self.keypath, self.filepaths, self.winner))


class StructuralConflictWarning(LocaleEngineWarning):
    """``keypath`` holds a value but is also a namespace of ``deeper`` keys.

    The deeper keys win; the shallow leaf is dropped for every locale.
    """

    def __init__(self, *, keypath: str, deeper: Sequence[str], locales: Sequence[str]):
        super().__init__(
            f"{keypath!r} is both a value and a namespace ({len(deeper)} deeper keys); dropping the value",
            context={"keypath": keypath},
        )
        self.keypath = keypath
        self.deeper = tuple(deeper)
        self.locales = tuple(locales)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StructuralConflictWarning):
            return NotImplemented
        return (self.keypath, self.deeper, self.locales) == (
            other.keypath,
            other.deeper,
            other.locales,
        )

    def __hash__(self) -> int:
        return hash((self.keypath, self.deeper, self.locales))


__all__ = [
    "LocaleEngineError",
    "KeypathFormatError",
    "ParseFailure",
    "PersistenceError",
    "LoaderClosedError",
    "LocaleEngineWarning",
    "MergeConflictWarning",
    "StructuralConflictWarning",
]
