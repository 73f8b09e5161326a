"""JSON file blob store - one file per key under output/store/."""

import json
import logging
import re
import threading
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_SAFE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]")


class JsonFileStore:
    """Save and load JSON values to {output_dir}/store/{key}.json.

    Thread-safe: file operations are protected by a reentrant lock.
    Writes go to a temp file first and are moved into place.
    """

    def __init__(self, output_dir: str = "output") -> None:
        self._base = Path(output_dir) / "store"
        self._base.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    @property
    def base_dir(self) -> Path:
        return self._base

    def _path(self, key: str) -> Path:
        if not key:
            raise ValueError("Store key must not be empty")
        return self._base / f"{_SAFE_KEY_RE.sub('_', key)}.json"

    def save(self, key: str, value: Any) -> bool:
        """Store value under key. Returns False (and logs) on failure."""
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        try:
            payload = json.dumps(value, ensure_ascii=False)
            with self._lock:
                tmp.write_text(payload, encoding="utf-8")
                tmp.replace(path)
            return True
        except (TypeError, ValueError):
            logger.warning("Value for key %s is not JSON-serialisable", key, exc_info=True)
        except OSError:
            logger.warning("Failed to save key %s to %s", key, path, exc_info=True)
            tmp.unlink(missing_ok=True)
        return False

    def load(self, key: str) -> Any | None:
        """Load value for key. Returns None if not found or unreadable."""
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with self._lock:
                return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Malformed store file: %s", path, exc_info=True)
        except OSError:
            logger.warning("Failed to load key %s", key, exc_info=True)
        return None

    def delete(self, key: str) -> bool:
        """Delete key. Returns True if deleted."""
        path = self._path(key)
        if not path.exists():
            return False
        try:
            with self._lock:
                path.unlink()
            return True
        except OSError:
            logger.warning("Failed to delete key %s", key, exc_info=True)
            return False

    def list_keys(self, prefix: str = "") -> list[str]:
        """Stored keys starting with prefix, sorted."""
        if not self._base.exists():
            return []
        return sorted(p.stem for p in self._base.glob("*.json") if p.stem.startswith(prefix))
