"""Default file collaborators for JSON and YAML locale files.

``FileParser`` turns one file into a ``ParsedFile``; ``FilePersistenceAdapter``
writes a ``PendingWrite`` back into its file. Both keep the file's shape: a
nested file (``{"menu": {"save": "Save"}}``) stays nested, a flat file
(``{"menu.save": "Save"}``) stays flat. A file holding any dict or list value
is nested; list items are addressed by index (``items.0``).

The locale comes from the file name (``locales/en.json``) or, with
``locale_from="parent"``, from the directory (``locales/en/menu.json``).
"""

from __future__ import annotations

import errno
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

from ..config import settings
from ..core import keypath as kp
from ..core.errors import KeypathFormatError, ParseFailure, PersistenceError
from ..core.models import ParsedFile, PendingWrite

__all__ = ["FileParser", "FilePersistenceAdapter", "flatten_value"]

log = logging.getLogger(__name__)

_YAML_SUFFIXES = {".yml", ".yaml"}


def _scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def flatten_value(value: Any, prefix: tuple = ()) -> Dict[str, str]:
    """Flatten nested dicts / lists into escaped keypath -> string."""
    out: Dict[str, str] = {}
    if isinstance(value, dict):
        items = ((str(k), v) for k, v in value.items())
    elif isinstance(value, list):
        items = ((str(i), v) for i, v in enumerate(value))
    else:
        if prefix:
            out[kp.join(prefix)] = _scalar(value)
        return out
    for key, child in items:
        out.update(flatten_value(child, prefix + (key,)))
    return out


def _is_nested(data: Dict[str, Any]) -> bool:
    return any(isinstance(v, (dict, list)) for v in data.values())


def _read(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as fh:
        if path.suffix.lower() in _YAML_SUFFIXES:
            return yaml.safe_load(fh)
        return json.load(fh)


def _dump(path: Path, data: Any) -> None:
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as fh:
        if path.suffix.lower() in _YAML_SUFFIXES:
            yaml.safe_dump(data, fh, allow_unicode=True, default_flow_style=False, sort_keys=False)
        else:
            json.dump(data, fh, ensure_ascii=False, indent=settings.JSON_INDENT)
            fh.write("\n")
    os.replace(tmp, path)


class FileParser:
    """Parse JSON / YAML locale files into ``ParsedFile`` objects."""

    def __init__(self, locale_from: str = "stem", *, scope_from_stem: bool = False) -> None:
        if locale_from not in ("stem", "parent"):
            raise ValueError(f"locale_from must be 'stem' or 'parent', not {locale_from!r}")
        self.locale_from = locale_from
        # with parent-directory locales, locales/en/menu.json may scope its keys to "menu"
        self.scope_from_stem = scope_from_stem and locale_from == "parent"

    def supports(self, filepath: str | Path) -> bool:
        return Path(filepath).suffix.lower() in settings.SUPPORTED_EXTENSIONS

    def parse(self, filepath: str) -> ParsedFile:
        path = Path(filepath)
        if not self.supports(path):
            raise ParseFailure(f"unsupported file type {path.suffix!r}", filepath=filepath)
        try:
            data = _read(path)
            mtime = path.stat().st_mtime
        except (OSError, UnicodeDecodeError, ValueError, yaml.YAMLError) as exc:
            raise ParseFailure(f"cannot read {filepath}: {exc}", filepath=filepath) from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ParseFailure(
                f"top level of {filepath} is {type(data).__name__}, expected a mapping",
                filepath=filepath,
            )
        locale = path.stem if self.locale_from == "stem" else path.parent.name
        nested = _is_nested(data)
        # flat files already spell their keys as keypaths
        flatten = flatten_value(data) if nested else {str(k): _scalar(v) for k, v in data.items()}
        return ParsedFile(
            filepath=filepath,
            locale=locale,
            value=data,
            nested=nested,
            flatten=flatten,
            mtime=mtime,
            scope=kp.join([path.stem]) if self.scope_from_stem else None,
        )


class FilePersistenceAdapter:
    """Write pending values back into JSON / YAML files."""

    def __init__(self, *, create_missing: bool = False) -> None:
        self.create_missing = create_missing

    def persist(self, write: PendingWrite) -> None:
        if not write.filepath:
            raise PersistenceError(
                f"no file to write {write.locale}/{write.keypath} to", reason="no-target"
            )
        path = Path(write.filepath)
        try:
            data = _read(path) if path.exists() else None
        except (UnicodeDecodeError, ValueError, yaml.YAMLError) as exc:
            raise PersistenceError(f"{path} is not valid: {exc}", reason="invalid") from exc
        except OSError as exc:
            raise self._os_error(path, exc) from exc
        if data is None:
            if path.exists() or self.create_missing:
                data = {}
            else:
                raise PersistenceError(f"{path} does not exist", reason="missing")
        if not isinstance(data, dict):
            raise PersistenceError(f"top level of {path} is not a mapping", reason="invalid")
        try:
            segments = kp.split(write.keypath)
        except KeypathFormatError as exc:
            raise PersistenceError(str(exc), reason="invalid") from exc

        if _is_nested(data) or (not data and len(segments) > 1 and self.create_missing):
            self._set_nested(data, segments, write.value, path)
        else:
            data[write.keypath] = write.value
        try:
            _dump(path, data)
        except OSError as exc:
            raise self._os_error(path, exc) from exc
        log.debug("wrote %s/%s to %s", write.locale, write.keypath, path)

    # Internal helpers -----------------------------------------------------
    @classmethod
    def _set_nested(cls, data: Dict[str, Any], segments: List[str], value: str, path: Path) -> None:
        current: Any = data
        for segment in segments[:-1]:
            slot = cls._slot(current, segment, path)
            child = cls._get(current, slot)
            if child is None:
                child = {}
                cls._put(current, slot, child)
            if not isinstance(child, (dict, list)):
                raise PersistenceError(
                    f"{segment!r} in {path} holds a value, cannot nest under it", reason="stale"
                )
            current = child
        slot = cls._slot(current, segments[-1], path)
        if isinstance(cls._get(current, slot), (dict, list)):
            raise PersistenceError(
                f"{kp.join(segments)!r} in {path} is a namespace, not a value", reason="stale"
            )
        cls._put(current, slot, value)

    @staticmethod
    def _slot(container: Any, segment: str, path: Path) -> Any:
        """Dict key or list index addressing ``segment`` inside ``container``."""
        if isinstance(container, dict):
            return segment
        # one past the end appends
        if segment.isdigit() and int(segment) <= len(container):
            return int(segment)
        raise PersistenceError(f"{segment!r} is not an index of a list in {path}", reason="invalid")

    @staticmethod
    def _get(container: Any, slot: Any) -> Any:
        if isinstance(container, dict):
            return container.get(slot)
        return container[slot] if slot < len(container) else None

    @staticmethod
    def _put(container: Any, slot: Any, value: Any) -> None:
        if isinstance(container, list) and slot == len(container):
            container.append(value)
        else:
            container[slot] = value

    @staticmethod
    def _os_error(path: Path, exc: OSError) -> PersistenceError:
        if exc.errno in (errno.EACCES, errno.EPERM):
            return PersistenceError(f"permission denied writing {path}", reason="permission")
        if exc.errno == errno.ENOENT:
            return PersistenceError(f"{path} does not exist", reason="missing")
        return PersistenceError(f"cannot write {path}: {exc}", reason="error")
