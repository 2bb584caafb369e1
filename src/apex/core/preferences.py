"""
Persistent key-value preferences.

A small JSON file holding device-local state that does not belong in the
backend: update-check timestamps, the lean calibration offset, and the
installed version/build stamp. Values are stored as strings, like the
platform preferences stores they stand in for.
"""

import json
import logging
import threading
from pathlib import Path

logger = logging.getLogger(__name__)


class Preferences:
    """
    JSON-file key-value store.

    Usage:
        prefs = Preferences(data_dir / "preferences.json")
        prefs.set("app_update_last_version", "1.2.0")
        prefs.get("app_update_last_version")  # "1.2.0"
    """

    def __init__(self, path: str | Path | None = None):
        """
        Args:
            path: JSON file to persist to. None keeps values in memory only.
        """
        self.path = Path(path) if path is not None else None
        self._lock = threading.Lock()
        self._values = self._load()

    def _load(self) -> dict[str, str]:
        if self.path is None:
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Preferences unreadable, starting empty: {e}")
            return {}
        if not isinstance(payload, dict):
            return {}
        return {str(k): str(v) for k, v in payload.items() if v is not None}

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._values, indent=2, sort_keys=True), encoding="utf-8")

    def get(self, key: str, default: str | None = None) -> str | None:
        with self._lock:
            return self._values.get(key, default)

    def get_float(self, key: str, default: float = 0.0) -> float:
        value = self.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            return default

    def set(self, key: str, value: object) -> None:
        with self._lock:
            self._values[key] = str(value)
            self._save()

    def remove(self, key: str) -> None:
        with self._lock:
            if self._values.pop(key, None) is not None:
                self._save()

    def clear(self) -> None:
        with self._lock:
            self._values.clear()
            self._save()

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._values)
