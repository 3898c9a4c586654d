"""Per-locale translation coverage derived from the flat index."""

from __future__ import annotations

from typing import Iterable, List

from ..core.models import Coverage, FlattenLocaleTree

__all__ = ["compute_coverage"]


def compute_coverage(flatten: FlattenLocaleTree, locales: Iterable[str]) -> List[Coverage]:
    """Return one ``Coverage`` per locale, sorted by locale.

    ``total`` is the number of known keypaths (shared by every locale in the
    report); ``keys`` are the keypaths backed by a real record for the locale
    and ``translated`` counts those whose value is non-blank.
    """
    total = len(flatten)
    report: List[Coverage] = []
    for locale in sorted(set(locales)):
        keys = []
        translated = 0
        for keypath, node in flatten.items():
            record = node.locales.get(locale)
            if record is None or record.shadow:
                continue
            keys.append(keypath)
            if record.value.strip():
                translated += 1
        report.append(Coverage(locale=locale, keys=tuple(keys), translated=translated, total=total))
    return report
