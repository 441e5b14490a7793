"""
Local durable key/value stores (the browser's localStorage, on disk).

Two keys are used by the app:
  - DRAFT_KEY       personal-info draft, JSON text
  - PANEL_OPEN_KEY  "true" / "false"
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Optional, Protocol

from cvintake.config import get_settings

DRAFT_KEY = "personalInfoDraft"
PANEL_OPEN_KEY = "isFormDataOpen"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str) -> None: ...
    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore:
    """
    All keys in one JSON object on disk, rewritten on every change.

    Errors (unreadable file, full disk) propagate as OSError / ValueError;
    callers decide whether they are fatal.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or get_settings().kv_store_path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)
