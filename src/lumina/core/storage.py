"""Namespaced JSON key-value storage on local disk.

:class:`LocalStorage` is the process-side equivalent of a browser's
``localStorage``: every key maps to one JSON document, stored as
``<data_dir>/<key>.json``.  Reads are forgiving (a missing, empty or corrupt
file reads as the default) while writes are synchronous and fail loudly
with :class:`~lumina.core.errors.PersistenceError`.

Keys used by the application:

- ``lumina_user`` — the signed-in account.
- ``lumina_history`` — saved artifacts, most recent first.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

from .errors import PersistenceError

logger = logging.getLogger(__name__)

USER_KEY = "lumina_user"
HISTORY_KEY = "lumina_history"

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class LocalStorage:
    """JSON documents keyed by name under a single directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.root / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        """Load the document stored under *key*, or *default* on any failure."""
        path = self._path(key)
        if not path.exists():
            return default
        try:
            with open(path, encoding="utf-8") as handle:
                return json.load(handle)
        except Exception as e:
            logger.warning(f"Ignoring unreadable storage file {path}: {e}")
            return default

    def set(self, key: str, value: Any) -> None:
        """Persist *value* under *key*.

        The document is written to a sibling temp file and moved into place
        so a crash mid-write never leaves a truncated file behind.

        Raises:
            PersistenceError: If the file cannot be written.
        """
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as handle:
                json.dump(value, handle, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}", exc_info=True)
            raise PersistenceError(f"Could not save {key}: {e}") from e

    def remove(self, key: str) -> None:
        """Delete the document under *key*; a missing key is a no-op."""
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Could not remove {key}: {e}") from e
