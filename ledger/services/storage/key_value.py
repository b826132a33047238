"""
JSON Key-Value File

A tiny persistent key-value map: one JSON object per file.
Used for the flat invoice backend and for user preferences.

Writes replace the whole file atomically (temporary file + rename),
so a crash mid-write never leaves a truncated file behind.
"""

import json
import os
from pathlib import Path
from typing import Any

from ledger.services.storage.interface import StorageError


class KeyValueFile:
    """
    Persistent string-keyed map backed by a single JSON file.

    A missing file reads as an empty map.
    """

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read_all(self) -> dict[str, Any]:
        """Read the whole map."""
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read {self._path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Unexpected content in {self._path}: not a JSON object")
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return self.read_all().get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store one key, keeping every other key as it was."""
        data = self.read_all()
        data[key] = value
        self._write(data)

    def _write(self, data: dict[str, Any]) -> None:
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps(data, ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            os.replace(tmp_path, self._path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to write {self._path}: {e}") from e
