"""Locale tree engine: merge per-locale key/value files into one key tree.

The public surface most callers need is re-exported here; the sub-packages
hold the individual pieces (``core`` data and keypath helpers, ``services``
for building / diffing / queueing, ``parsing`` for the default JSON/YAML file
collaborators).
"""

from __future__ import annotations

from .core.models import (
    ChangeEvent,
    Coverage,
    LocaleLoaderEventType,
    LocaleNode,
    LocaleRecord,
    LocaleTree,
    ParsedFile,
    PendingWrite,
)
from .services.locale_loader import LoaderState, LocaleLoader
from .services.tree_builder import BuildResult, TreeBuilder

__all__ = [
    "BuildResult",
    "ChangeEvent",
    "Coverage",
    "LoaderState",
    "LocaleLoader",
    "LocaleLoaderEventType",
    "LocaleNode",
    "LocaleRecord",
    "LocaleTree",
    "ParsedFile",
    "PendingWrite",
    "TreeBuilder",
]

__version__ = "0.1.0"
