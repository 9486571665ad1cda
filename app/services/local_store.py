"""Side-channel key-value store.

Holds small values that live outside the scoring_config table: the speech
rate detection method and a cached snapshot of the resolved metric config.
The snapshot is a convenience cache only; scoring_config stays authoritative.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal interface the scoring config needs from a store."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


class MemoryStore:
    """In-process store, used by tests and as a fallback."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value


class JsonFileStore:
    """
    Store persisted as a single JSON document.

    A missing or unreadable file reads as empty. Writes replace the file
    atomically and propagate any OSError to the caller.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read local store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Local store {self.path} does not hold an object, ignoring it")
            return {}
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, default=str)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
