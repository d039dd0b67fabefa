"""
Lumen — Settings Storage
Where chains and user presets are persisted between sessions.

A store maps a key to one JSON-compatible document. Callers own the
document format (see core/documents.py); stores only move it around.
"""

import json
import logging
import re
from copy import deepcopy
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_DIR = Path.home() / ".lumen" / "settings"

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


class SettingsStore(Protocol):
    def save(self, key: str, document: dict) -> None: ...

    def load(self, key: str) -> dict | None: ...


class MemorySettings:
    """In-process store. Documents are deep-copied in and out."""

    def __init__(self):
        self._data = {}

    def save(self, key: str, document: dict) -> None:
        self._data[key] = deepcopy(document)

    def load(self, key: str) -> dict | None:
        doc = self._data.get(key)
        return deepcopy(doc) if doc is not None else None

    def keys(self) -> list[str]:
        return sorted(self._data)


def sanitize_key(key: str) -> str:
    """Turn a key into a safe file stem (no separators, no leading dots)."""
    stem = _UNSAFE.sub("_", str(key)).strip("._")
    if not stem:
        raise ValueError(f"Invalid settings key: {key!r}")
    return stem[:100]


class JsonFileSettings:
    """One ``<key>.json`` per key under ``directory``."""

    def __init__(self, directory: str | Path | None = None):
        self.directory = Path(directory) if directory is not None else DEFAULT_SETTINGS_DIR

    def path_for(self, key: str) -> Path:
        return self.directory / f"{sanitize_key(key)}.json"

    def save(self, key: str, document: dict) -> None:
        path = self.path_for(key)
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(document, indent=2))
        tmp.replace(path)
        logger.debug(f"Saved settings '{key}' to {path}")

    def load(self, key: str) -> dict | None:
        path = self.path_for(key)
        if not path.is_file():
            return None
        return json.loads(path.read_text())

    def keys(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))
