"""Keypath helpers: split / join dotted paths and derive key names.

A keypath is a separator-joined list of segments (``"menu.file.save"``). A
segment that itself contains the separator is written with a backslash escape
(``"units.km\\.h"`` has the two segments ``units`` and ``km.h``); a literal
backslash is written ``\\\\``. ``join(split(k)) == k`` holds for every keypath
written in that canonical form.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

from ..config import settings
from .errors import KeypathFormatError

__all__ = ["split", "join", "keyname", "parent", "is_prefix"]

_ESC = settings.ESCAPE_CHAR


def split(keypath: str, separator: str = settings.KEY_SEPARATOR) -> List[str]:
    """Split ``keypath`` into unescaped segments.

    Raises ``KeypathFormatError`` for a trailing lone backslash or a backslash
    followed by anything other than the separator or another backslash.
    """
    if not keypath:
        return []
    segments: List[str] = []
    current: List[str] = []
    i = 0
    n = len(keypath)
    while i < n:
        ch = keypath[i]
        if ch == _ESC:
            if i + 1 >= n:
                raise KeypathFormatError(
                    f"dangling escape at end of keypath {keypath!r}", keypath=keypath
                )
            nxt = keypath[i + 1]
            if nxt != separator and nxt != _ESC:
                raise KeypathFormatError(
                    f"invalid escape {_ESC + nxt!r} at offset {i} in {keypath!r}",
                    keypath=keypath,
                    context={"offset": i},
                )
            current.append(nxt)
            i += 2
            continue
        if ch == separator:
            segments.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    segments.append("".join(current))
    return segments


def _escape(segment: str, separator: str) -> str:
    return segment.replace(_ESC, _ESC + _ESC).replace(separator, _ESC + separator)


def join(segments: Iterable[str], separator: str = settings.KEY_SEPARATOR) -> str:
    return separator.join(_escape(s, separator) for s in segments)


def keyname(keypath: str, separator: str = settings.KEY_SEPARATOR) -> str:
    """Last segment of ``keypath`` (``""`` for the root)."""
    segments = split(keypath, separator)
    return segments[-1] if segments else ""


def parent(keypath: str, separator: str = settings.KEY_SEPARATOR) -> str:
    return join(split(keypath, separator)[:-1], separator)


def is_prefix(prefix: Sequence[str], segments: Sequence[str]) -> bool:
    """True when ``prefix`` is a strict leading part of ``segments``."""
    return len(prefix) < len(segments) and tuple(segments[: len(prefix)]) == tuple(prefix)
