"""Durable client-local storage for the session token.

A small JSON object on disk; the token lives under the fixed key "token".
An unreadable or malformed file is treated as empty (no persisted session).
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"


class TokenStorage:
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> str | None:
        value = _load_store(self._path).get(TOKEN_KEY)
        if isinstance(value, str) and value:
            return value
        return None

    def set(self, token: str) -> None:
        store = _load_store(self._path)
        store[TOKEN_KEY] = token
        self._write(store)

    def remove(self) -> None:
        """Drop the persisted token. No-op when nothing is stored."""
        store = _load_store(self._path)
        if TOKEN_KEY not in store:
            return
        del store[TOKEN_KEY]
        self._write(store)

    def _write(self, store: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(json.dumps(store))
        os.chmod(tmp, 0o600)
        tmp.replace(self._path)


def _load_store(path: Path) -> dict[str, Any]:
    """Load the storage object. Returns an empty dict on any failure."""
    if not path.exists():
        logger.debug("Storage file not found: %s", path)
        return {}
    try:
        data = json.loads(path.read_text())
        if isinstance(data, dict):
            return data
        logger.warning("Storage file is not a JSON object: %s", path)
        return {}
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to read storage from %s: %s", path, e)
        return {}
