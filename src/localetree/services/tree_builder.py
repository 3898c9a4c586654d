"""Tree builder: merge ``ParsedFile`` objects into a key tree plus flat index.

The flat index (``FlattenLocaleTree``) is the lookup structure; the
``LocaleTree`` hierarchy mirrors it for presentation. Both are rebuilt from
scratch on every call so the result depends only on the input set, never on
arrival order:

* keypaths are processed in segment order, locales in sorted order;
* per-key winners come from ``MergeResolver`` whose tie-break is explicit
  (scope, mtime, filepath);
* keypaths that are both a value and a namespace lose their value (the deeper
  keys win) and are reported as ``StructuralConflictWarning``;
* keypaths with malformed escapes are skipped and reported.

Empty objects inside nested files (``{"a": {}}``) surface as a ``LocaleNode``
with no records so a childless ``LocaleTree`` never appears.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from ..config import settings
from ..core import keypath as kp
from ..core.errors import KeypathFormatError, MergeConflictWarning, StructuralConflictWarning
from ..core.models import FlattenLocaleTree, LocaleNode, LocaleRecord, LocaleTree, ParsedFile
from .merge_resolver import MergeResolver

__all__ = ["BuildResult", "TreeBuilder", "build_tree"]

log = logging.getLogger(__name__)

Segments = Tuple[str, ...]


@dataclass(frozen=True)
class BuildResult:
    tree: LocaleTree
    flatten: FlattenLocaleTree
    locales: Tuple[str, ...]
    conflicts: Tuple[MergeConflictWarning, ...] = ()
    structural_conflicts: Tuple[StructuralConflictWarning, ...] = ()
    skipped: Tuple[KeypathFormatError, ...] = ()

    @property
    def warnings(self) -> List[Any]:
        return [*self.conflicts, *self.structural_conflicts, *self.skipped]


def _iter_empty_objects(value: Any, prefix: Segments = ()) -> Iterator[Segments]:
    if not isinstance(value, dict):
        return
    for key, child in value.items():
        path = prefix + (str(key),)
        if isinstance(child, dict):
            if child:
                yield from _iter_empty_objects(child, path)
            else:
                yield path


class TreeBuilder:
    """Build ``BuildResult`` objects from a complete set of parsed files."""

    def __init__(
        self,
        resolver: Optional[MergeResolver] = None,
        *,
        separator: str = settings.KEY_SEPARATOR,
    ) -> None:
        self.resolver = resolver or MergeResolver()
        self.separator = separator

    def build(
        self, parsed_files: Iterable[ParsedFile], locales: Optional[Iterable[str]] = None
    ) -> BuildResult:
        files = sorted(parsed_files, key=lambda f: f.filepath)
        all_locales = tuple(sorted({f.locale for f in files} | set(locales or ())))

        segments_of, candidates, skipped = self._collect(files)
        dropped, structural = self._prune_prefixes(segments_of, candidates)
        for keypath in dropped:
            del segments_of[keypath]

        flatten: FlattenLocaleTree = {}
        conflicts: List[MergeConflictWarning] = []
        for keypath in segments_of:
            per_locale = candidates[keypath]
            records: Dict[str, LocaleRecord] = {}
            for locale in all_locales:
                resolution = self.resolver.resolve(keypath, locale, per_locale.get(locale, ()))
                records[locale] = resolution.record
                if resolution.conflict is not None:
                    conflicts.append(resolution.conflict)
            flatten[keypath] = LocaleNode(keypath=keypath, locales=records)

        for segs in self._empty_namespaces(files, segments_of):
            keypath = kp.join(segs, self.separator)
            segments_of[keypath] = segs
            flatten[keypath] = LocaleNode(keypath=keypath)

        order = sorted(segments_of, key=segments_of.__getitem__)
        flatten = {keypath: flatten[keypath] for keypath in order}
        tree = self._grow_tree(flatten, segments_of)

        for warning in [*conflicts, *structural, *skipped]:
            log.warning("%s", warning)
        log.debug(
            "built tree: %d files, %d keys, %d locales, %d warnings",
            len(files),
            len(flatten),
            len(all_locales),
            len(conflicts) + len(structural) + len(skipped),
        )
        return BuildResult(
            tree=tree,
            flatten=flatten,
            locales=all_locales,
            conflicts=tuple(conflicts),
            structural_conflicts=tuple(structural),
            skipped=tuple(skipped),
        )

    # Internal helpers -----------------------------------------------------
    def _collect(
        self, files: List[ParsedFile]
    ) -> Tuple[Dict[str, Segments], Dict[str, Dict[str, List[ParsedFile]]], List[KeypathFormatError]]:
        segments_of: Dict[str, Segments] = {}
        candidates: Dict[str, Dict[str, List[ParsedFile]]] = {}
        skipped: List[KeypathFormatError] = []
        bad: Set[str] = set()
        for parsed in files:
            for keypath in parsed.flatten:
                if keypath in bad:
                    continue
                if keypath not in segments_of:
                    try:
                        segs = tuple(kp.split(keypath, self.separator))
                    except KeypathFormatError as exc:
                        exc.context.setdefault("filepath", parsed.filepath)
                        skipped.append(exc)
                        bad.add(keypath)
                        continue
                    if not segs:
                        skipped.append(
                            KeypathFormatError(
                                "empty keypath",
                                keypath=keypath,
                                context={"filepath": parsed.filepath},
                            )
                        )
                        bad.add(keypath)
                        continue
                    segments_of[keypath] = segs
                candidates.setdefault(keypath, {}).setdefault(parsed.locale, []).append(parsed)
        return segments_of, candidates, skipped

    def _prune_prefixes(
        self,
        segments_of: Dict[str, Segments],
        candidates: Dict[str, Dict[str, List[ParsedFile]]],
    ) -> Tuple[List[str], List[StructuralConflictWarning]]:
        by_segments = {segs: keypath for keypath, segs in segments_of.items()}
        deeper: Dict[str, List[str]] = {}
        for keypath, segs in segments_of.items():
            for i in range(1, len(segs)):
                shallow = by_segments.get(segs[:i])
                if shallow is not None:
                    deeper.setdefault(shallow, []).append(keypath)
        dropped = sorted(deeper, key=segments_of.__getitem__)
        warnings = [
            StructuralConflictWarning(
                keypath=shallow,
                deeper=sorted(deeper[shallow]),
                locales=sorted(candidates[shallow]),
            )
            for shallow in dropped
        ]
        return dropped, warnings

    def _empty_namespaces(
        self, files: List[ParsedFile], segments_of: Dict[str, Segments]
    ) -> List[Segments]:
        empties: Set[Segments] = set()
        for parsed in files:
            if parsed.nested:
                empties.update(_iter_empty_objects(parsed.value))
        if not empties:
            return []
        leaves = set(segments_of.values())
        interior: Set[Segments] = set()
        for segs in leaves | empties:
            for i in range(1, len(segs)):
                interior.add(segs[:i])
        kept = []
        for segs in empties:
            if segs in leaves or segs in interior:
                continue
            # an empty object below an existing leaf cannot be placed
            if any(segs[:i] in leaves for i in range(1, len(segs))):
                continue
            kept.append(segs)
        return sorted(kept)

    def _grow_tree(self, flatten: FlattenLocaleTree, segments_of: Dict[str, Segments]) -> LocaleTree:
        root = LocaleTree()
        for keypath, node in flatten.items():
            segs = segments_of[keypath]
            current = root
            for depth, segment in enumerate(segs[:-1]):
                child = current.children.get(segment)
                if child is None:
                    child = LocaleTree(
                        keypath=kp.join(segs[: depth + 1], self.separator), keyname=segment
                    )
                    current.children[segment] = child
                if child.type != "tree":
                    # prefix pruning removes such leaves before we get here
                    raise AssertionError(f"leaf {child.keypath!r} found on the path of {keypath!r}")
                current = child  # type: ignore[assignment]
            current.children[segs[-1]] = node
        return root


def build_tree(
    parsed_files: Iterable[ParsedFile], locales: Optional[Iterable[str]] = None
) -> BuildResult:
    """Convenience wrapper using a default ``TreeBuilder``."""
    return TreeBuilder().build(parsed_files, locales)
