"""Allow-list store.

The allowed roots live in a small JSON file::

    {"allowedDirectories": ["/home/me/projects", "/srv/data"]}

Policy:
- ``load()`` reads the file on every call, creating it (with an empty list)
  when missing, so edits made while the server runs apply to the next call.
- ``merge()`` appends new roots after the existing ones, de-duplicated.
  Nothing in semantic-fs removes roots.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from sfs.guard import AllowedRootSet
from sfs.utils.fileio import atomic_write_text

__all__ = ["ALLOWLIST_KEY", "AllowListStore"]

ALLOWLIST_KEY = "allowedDirectories"


class AllowListStore:
    """JSON-file persistence for the allowed root directories."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def initialize(self) -> None:
        """Create the store with an empty allow-list if it doesn't exist."""
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write([])
        logger.info(f"Created allow-list store at {self.path}")

    def _read_raw(self) -> list[str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {self.path}: {e}") from e

        entries = data.get(ALLOWLIST_KEY, []) if isinstance(data, dict) else None
        if not isinstance(entries, list) or not all(isinstance(e, str) for e in entries):
            raise ValueError(f"'{ALLOWLIST_KEY}' in {self.path} must be a list of strings")
        return entries

    def _write(self, roots: Iterable[str]) -> None:
        payload = json.dumps({ALLOWLIST_KEY: list(roots)}, indent=2)
        atomic_write_text(self.path, payload + "\n")

    def load(self) -> AllowedRootSet:
        """Load the current allow-list.

        Raises:
            ValueError: If the store exists but is malformed
        """
        self.initialize()
        roots = AllowedRootSet(self._read_raw())
        logger.debug(f"Loaded {len(roots)} allowed directories from {self.path}")
        return roots

    def merge(self, directories: Iterable[str]) -> AllowedRootSet:
        """Append directories to the store and return the merged set."""
        current = self.load()
        merged = current.extend(directories)
        if merged != current:
            self._write(merged.roots)
            added = len(merged) - len(current)
            logger.info(f"Added {added} allowed directories to {self.path}")
        return merged
