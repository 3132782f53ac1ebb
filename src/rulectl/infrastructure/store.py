"""Durable keyed JSON store.

Every logical name maps to one JSON file under the cache directory. Only
whitelisted names are accepted, so a caller can never read or write an
arbitrary path.

INVARIANT: Writes replace the whole file atomically (temp file +
``os.replace``). A reader sees either the previous document or the new
one, never a partial write. Concurrent writers are not serialized; the
last replace wins.
"""

from __future__ import annotations

import json
import logging
import os
from enum import StrEnum
from pathlib import Path
from typing import Any

from rulectl.errors import PersistenceError, StoreNameError

logger = logging.getLogger(__name__)


class StoreName(StrEnum):
    """The fixed set of logical documents the store will persist."""

    TEMPLATES = "security-rules-templates.json"
    DOMAIN_STATUS = "domain-rules-status.json"
    APPLICATION_LOG = "rule-application-log.json"
    PREFERENCES = "user-preferences.json"


ALLOWED_NAMES = frozenset(n.value for n in StoreName)


class JsonStore:
    """Read/replace JSON documents by logical name."""

    def __init__(self, cache_dir: Path) -> None:
        self._root = cache_dir

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, name: str) -> Path:
        """Resolve *name* to its file, rejecting anything off the whitelist."""
        if name not in ALLOWED_NAMES:
            msg = f"Store name not allowed: {name!r}"
            raise StoreNameError(msg, detail={"name": name})

        path = self._root / name
        if not path.resolve().is_relative_to(self._root.resolve()):
            msg = f"Path escapes cache directory: {name!r}"
            raise StoreNameError(msg, detail={"name": name})
        return path

    def read(self, name: str) -> Any | None:
        """Return the parsed document, or None if it has never been written."""
        path = self.path_for(name)
        if not path.exists():
            return None
        raw = path.read_text(encoding="utf-8")
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            msg = f"Corrupt JSON in {name}: {exc}"
            raise PersistenceError(msg, detail={"name": name}) from exc

    def write(self, name: str, data: Any) -> None:
        """Atomically replace the document stored under *name*."""
        path = self.path_for(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f"{path.name}.tmp")
        payload = json.dumps(data, indent=2, ensure_ascii=False)
        try:
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            msg = f"Failed to write {name}: {exc}"
            raise PersistenceError(msg, detail={"name": name}) from exc
        logger.debug("Wrote %s (%d bytes)", name, len(payload))

    def exists(self, name: str) -> bool:
        return self.path_for(name).exists()
