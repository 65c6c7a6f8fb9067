"""Small persistent key-value cache (a JSON file)."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from .errors import StoreUnavailable

logger = logging.getLogger(__name__)


class SessionCache:
    def __init__(self, path: Path):
        self.path = path

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreUnavailable(f"Could not read {self.path}: {exc}") from exc
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, str]):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as exc:
            raise StoreUnavailable(f"Could not write {self.path}: {exc}") from exc

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str):
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str):
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)
            logger.debug("Removed %s from session cache", key)
