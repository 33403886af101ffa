"""Session registry: small key-value store shared between toggle invocations."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

RECORDER_PID = "recorder_pid"
AUDIO_PATH = "audio_path"


class SessionRegistry(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def clear(self) -> None: ...


class MemorySessionRegistry:
    """In-process registry, for a single long-running listener and for tests."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._data)


class JsonSessionRegistry:
    """Registry persisted as a JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def clear(self) -> None:
        self._write_all({})

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Failed to read session state %s: %s", self._path, e)
            self.clear()
            return {}
        if not isinstance(data, dict):
            logger.error("Session state %s is not a JSON object, resetting", self._path)
            self.clear()
            return {}
        return data

    def _write_all(self, data: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
