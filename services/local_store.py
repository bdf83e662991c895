"""
services/local_store.py

Per-user key-value cache kept as one JSON file per key.

Reads are best-effort: a missing or corrupted file reads as None so that
UI state (theme, favorites, recent items) never blocks a request.
"""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from config import LOCAL_STORE_DIR, STORAGE_KEY_PREFIX

logger = logging.getLogger("classroomhq.store")

_UNSAFE_KEY = re.compile(r"[^A-Za-z0-9._-]")


def user_key(name: str, user_id: str) -> str:
    """`classroomhq-<name>-<userId>`, the namespacing used for every per-user key."""
    return f"{STORAGE_KEY_PREFIX}-{name}-{user_id}"


class LocalStore:
    def __init__(self, directory: str | Path | None = None):
        self.directory = Path(directory) if directory is not None else LOCAL_STORE_DIR

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY.sub('_', key)}.json"

    def get(self, key: str) -> Any:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Ignoring unreadable local store key %s: %s", key, exc)
            return None

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(value, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
