"""Default JSON / YAML collaborators feeding and persisting the engine."""

from .files import FileParser, FilePersistenceAdapter, flatten_value

__all__ = ["FileParser", "FilePersistenceAdapter", "flatten_value"]
