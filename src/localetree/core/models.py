"""Data model shared by every engine service.

Tree children are a tagged variant: each carries ``type`` (``"tree"`` or
``"node"``) and traversal code switches on that tag.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Union

from . import keypath as kp

__all__ = [
    "ParsedFile",
    "LocaleRecord",
    "LocaleNode",
    "LocaleTree",
    "FlattenLocaleTree",
    "Coverage",
    "PendingWrite",
    "LocaleLoaderEventType",
    "ChangeEvent",
]


@dataclass(frozen=True)
class ParsedFile:
    """One on-disk file as handed over by a parser collaborator.

    ``flatten`` maps full keypaths to string values. ``mtime`` (seconds since
    epoch) and ``scope`` (namespace keypath the file is dedicated to) are
    optional metadata used to break ties between files defining the same key.
    """

    filepath: str
    locale: str
    value: Any
    nested: bool
    flatten: Mapping[str, str]
    mtime: Optional[float] = None
    scope: Optional[str] = None

    @property
    def specificity(self) -> int:
        if not self.scope:
            return 0
        return len(kp.split(self.scope))


@dataclass(frozen=True)
class LocaleRecord:
    keypath: str
    keyname: str
    value: str
    locale: str
    filepath: Optional[str] = None
    shadow: bool = False
    type: str = field(default="record", init=False)

    @classmethod
    def shadow_for(cls, keypath: str, locale: str) -> "LocaleRecord":
        return cls(keypath=keypath, keyname=kp.keyname(keypath), value="", locale=locale, shadow=True)


@dataclass(frozen=True)
class LocaleNode:
    """All locales' records for one keypath."""

    keypath: str
    locales: Mapping[str, LocaleRecord] = field(default_factory=dict)
    type: str = field(default="node", init=False)

    @property
    def keyname(self) -> str:
        return kp.keyname(self.keypath)

    @property
    def shadow(self) -> bool:
        # a node without records is an empty namespace, not a ghost
        return bool(self.locales) and all(r.shadow for r in self.locales.values())

    def get_value(self, locale: str, fallback: str = "") -> str:
        record = self.locales.get(locale)
        return (record.value if record is not None else "") or fallback

    def current_value(self, display_locale: str, fallback: str = "") -> str:
        return self.get_value(display_locale, fallback)


@dataclass
class LocaleTree:
    keypath: str = ""
    keyname: str = ""
    children: Dict[str, Union["LocaleTree", LocaleNode]] = field(default_factory=dict)
    type: str = field(default="tree", init=False)

    def walk(self) -> Iterator[LocaleNode]:
        """Yield every leaf node depth-first in child insertion order."""
        for child in self.children.values():
            if child.type == "tree":
                yield from child.walk()  # type: ignore[union-attr]
            else:
                yield child  # type: ignore[misc]

    def get(self, keypath: str) -> Union["LocaleTree", LocaleNode, None]:
        current: Union[LocaleTree, LocaleNode] = self
        for segment in kp.split(keypath):
            if current.type != "tree":
                return None
            nxt = current.children.get(segment)  # type: ignore[union-attr]
            if nxt is None:
                return None
            current = nxt
        return current


FlattenLocaleTree = Dict[str, LocaleNode]


@dataclass(frozen=True)
class Coverage:
    locale: str
    keys: Tuple[str, ...]
    translated: int
    total: int

    @property
    def ratio(self) -> float:
        return self.translated / self.total if self.total else 0.0


@dataclass(frozen=True)
class PendingWrite:
    locale: str
    keypath: str
    value: str
    filepath: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.locale, self.keypath)


class LocaleLoaderEventType(str, Enum):  # str subclass so values compare with plain strings
    CHANGED = "changed"
    ADDED = "added"
    REMOVED = "removed"
    FILE_ADDED = "file_added"
    FILE_UPDATED = "file_updated"
    FILE_REMOVED = "file_removed"


@dataclass(frozen=True)
class ChangeEvent:
    type: LocaleLoaderEventType
    keypath: str = ""
    locale: Optional[str] = None
    filepath: Optional[str] = None

