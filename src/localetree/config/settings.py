"""Global configuration and constants for the locale tree engine."""

from __future__ import annotations

import os
from typing import Final

KEY_SEPARATOR: Final = "."
ESCAPE_CHAR: Final = "\\"

DEFAULT_DEBOUNCE_MS: Final = int(os.environ.get("LOCALETREE_DEBOUNCE_MS", "300"))
MIN_DEBOUNCE_MS: Final = 10
MAX_DEBOUNCE_MS: Final = 5000

# Default file parser
SUPPORTED_EXTENSIONS: Final = (".json", ".yml", ".yaml")
JSON_INDENT: Final = 2
