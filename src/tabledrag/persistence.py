"""Persistence substrates for the plugin payload.

The payload is ``{"tables": {...}, "version": 1, "settings": {...}}``.
Backends only move whole payloads; they know nothing about its structure.
"""

from __future__ import annotations

import asyncio
import json
import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Protocol


class Persistence(Protocol):
    async def load(self) -> dict[str, Any] | None:
        """Return the stored payload, or ``None`` when nothing is stored."""
        ...

    async def save(self, data: dict[str, Any]) -> None: ...


class InMemoryPersistence:
    """Keeps the payload in memory; for tests and throwaway sessions."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self.data = deepcopy(data) if data is not None else None
        self.saves = 0

    async def load(self) -> dict[str, Any] | None:
        return deepcopy(self.data)

    async def save(self, data: dict[str, Any]) -> None:
        self.data = deepcopy(data)
        self.saves += 1


class JsonFilePersistence:
    """A JSON file on disk, replaced atomically on every save."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    async def load(self) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._read)

    async def save(self, data: dict[str, Any]) -> None:
        text = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
        await asyncio.to_thread(self._write, text)

    def _read(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{self.path}: expected a JSON object")
        return data

    def _write(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, self.path)
