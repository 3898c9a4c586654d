"""Merge resolver: choose one record when several files define the same key.

Ranking for candidates of one ``(locale, keypath)`` pair:

1. Higher scope specificity (number of segments in ``ParsedFile.scope``).
2. Newest ``mtime``; files without a timestamp rank below any timestamped one.
3. Lexically greatest ``filepath``.

Only step 1 is a *decision*; when two or more candidates share the top
specificity the winner is picked by the tie-break and a
``MergeConflictWarning`` is attached to the resolution. Conflicts are data
quality notes, never exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from ..core import keypath as kp
from ..core.errors import MergeConflictWarning
from ..core.models import LocaleRecord, ParsedFile

__all__ = ["MergeResolver", "Resolution"]


@dataclass(frozen=True)
class Resolution:
    record: LocaleRecord
    conflict: Optional[MergeConflictWarning] = None


def _rank(candidate: ParsedFile) -> Tuple[int, int, float, str]:
    has_mtime = 1 if candidate.mtime is not None else 0
    return (candidate.specificity, has_mtime, candidate.mtime or 0.0, candidate.filepath)


class MergeResolver:
    """Resolve per-locale records from the files contributing a keypath."""

    def resolve(self, keypath: str, locale: str, candidates: Sequence[ParsedFile]) -> Resolution:
        if not candidates:
            return Resolution(record=LocaleRecord.shadow_for(keypath, locale))
        ranked = sorted(candidates, key=_rank, reverse=True)
        winner = ranked[0]
        record = LocaleRecord(
            keypath=keypath,
            keyname=kp.keyname(keypath),
            value=winner.flatten[keypath],
            locale=locale,
            filepath=winner.filepath,
        )
        tied = [c for c in ranked if c.specificity == winner.specificity]
        if len(tied) < 2:
            return Resolution(record=record)
        conflict = MergeConflictWarning(
            locale=locale,
            keypath=keypath,
            filepaths=sorted(c.filepath for c in tied),
            winner=winner.filepath,
        )
        return Resolution(record=record, conflict=conflict)
