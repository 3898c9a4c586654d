"""Change detector: minimal event list between two flat indices.

Pure function over ``FlattenLocaleTree`` values; it never looks at files.
Events are ordered by keypath (segment order of the index itself is not
relied on) and, for changed keys, by locale.
"""

from __future__ import annotations

from typing import List, Optional

from ..core.models import ChangeEvent, FlattenLocaleTree, LocaleLoaderEventType, LocaleRecord

__all__ = ["diff"]


def _signature(record: Optional[LocaleRecord]) -> tuple:
    if record is None:
        return ("", True)
    return (record.value, record.shadow)


def diff(previous: FlattenLocaleTree, next: FlattenLocaleTree) -> List[ChangeEvent]:  # noqa: A002
    events: List[ChangeEvent] = []
    for keypath in sorted(previous.keys() | next.keys()):
        before = previous.get(keypath)
        after = next.get(keypath)
        if before is None:
            events.append(ChangeEvent(LocaleLoaderEventType.ADDED, keypath))
            continue
        if after is None:
            events.append(ChangeEvent(LocaleLoaderEventType.REMOVED, keypath))
            continue
        if before.locales == after.locales:
            continue
        for locale in sorted(before.locales.keys() | after.locales.keys()):
            if _signature(before.locales.get(locale)) != _signature(after.locales.get(locale)):
                events.append(ChangeEvent(LocaleLoaderEventType.CHANGED, keypath, locale))
    return events
