"""Persisted preference stores.

The engine only needs ``get``/``set`` on a key-value store. Read failures
default to the enabled state; write failures are logged by the session and
never block the overlay.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Protocol

from inatmap.exceptions import PreferenceStoreError

_logger = logging.getLogger(__name__)


class PreferenceStore(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...


class MemoryPreferenceStore:
    """Process-local store, mainly for tests and one-off runs."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(initial or {})

    async def get(self, key: str) -> Any | None:
        return self._values.get(key)

    async def set(self, key: str, value: Any) -> None:
        self._values[key] = value


class JsonFilePreferenceStore:
    """Store preferences as one JSON object in a file.

    File I/O runs in the default executor so the event loop never blocks.
    A missing file reads as an empty store.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise PreferenceStoreError(f"Cannot read {self._path}: {exc}") from exc
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise PreferenceStoreError(f"{self._path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise PreferenceStoreError(f"{self._path} does not hold a JSON object")
        return data

    def _write(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            tmp.replace(self._path)
        except OSError as exc:
            raise PreferenceStoreError(f"Cannot write {self._path}: {exc}", key=key) from exc

    async def get(self, key: str) -> Any | None:
        loop = asyncio.get_running_loop()
        async with self._lock:
            data = await loop.run_in_executor(None, self._read_all)
        return data.get(key)

    async def set(self, key: str, value: Any) -> None:
        loop = asyncio.get_running_loop()
        async with self._lock:
            await loop.run_in_executor(None, self._write, key, value)
        _logger.debug("Stored %s=%r in %s", key, value, self._path)
