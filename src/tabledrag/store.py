"""SizingStore: the single writer of persisted table sizes.

Records live in memory and are flushed to the persistence backend after
every mutation (fire-and-forget, one save at a time, never batched across
ticks).  Flush failures are logged and reported through ``on_error``; the
in-memory state remains authoritative until the next successful flush.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable

from pydantic import ValidationError

from tabledrag.identity import (
    canonical_key,
    dump_key,
    key_from_obj,
    normalize_fingerprint,
    parse_key,
    stored_fingerprint,
)
from tabledrag.settings import TableDragSettings, settings_payload
from tabledrag.persistence import Persistence
from tabledrag.types import STORE_VERSION, SizeRecord, StoreData, TableKey

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class StoredEntry:
    key: TableKey
    key_str: str
    record: SizeRecord


class SizingStore:
    def __init__(
        self,
        persistence: Persistence,
        *,
        clock: Callable[[], int] = _now_ms,
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        self._persistence = persistence
        self._clock = clock
        self._on_error = on_error
        self._data = StoreData()
        self._settings: dict[str, Any] | None = None
        self._tasks: set[asyncio.Task[bool]] = set()
        self._flush_lock = asyncio.Lock()
        self.last_error: Exception | None = None

    # ── Loading / saving ─────────────────────────────────────────────

    async def load(self) -> None:
        """Load the payload once at startup; bad data never aborts loading."""
        try:
            raw = await self._persistence.load()
        except (OSError, ValueError) as exc:
            logger.warning("Could not read stored table sizes, starting empty: %s", exc)
            return
        if not raw:
            return

        tables = raw.get("tables")
        if tables is not None and not isinstance(tables, dict):
            logger.warning("Ignoring stored tables: expected an object, got %s", type(tables).__name__)
            tables = None
        loaded: dict[str, SizeRecord] = {}
        for key_str, value in (tables or {}).items():
            try:
                loaded[key_str] = SizeRecord.model_validate(value)
            except ValidationError as exc:
                logger.warning("Skipping malformed record %s: %s", key_str, exc.errors()[0]["msg"])
        version = raw.get("version")
        self._data = StoreData(
            tables=loaded,
            version=version if isinstance(version, int) else STORE_VERSION,
        )
        settings = raw.get("settings")
        self._settings = settings if isinstance(settings, dict) else None

    @property
    def raw_settings(self) -> dict[str, Any] | None:
        """The stored ``settings`` object, unknown fields included."""
        return self._settings

    def payload(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "tables": {k: r.to_json() for k, r in self._data.tables.items()},
            "version": self._data.version,
        }
        if self._settings is not None:
            data["settings"] = self._settings
        return data

    async def flush(self) -> bool:
        """Write the payload now; failures are reported, not retried.

        Saves run one at a time and each takes its payload once it holds the
        lock, so the last save to finish always carries the newest state.
        """
        async with self._flush_lock:
            return await self._save()

    async def _save(self) -> bool:
        try:
            await self._persistence.save(self.payload())
        except (OSError, TypeError, ValueError) as exc:
            self.last_error = exc
            logger.error("Failed to save table sizes: %s", exc)
            if self._on_error is not None:
                self._on_error(exc)
            return False
        self.last_error = None
        return True

    def schedule_flush(self) -> None:
        """Persist in the background; runs inline when no loop is running."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.flush())
            return
        task = loop.create_task(self.flush())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for every scheduled flush to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def save_settings(self, settings: TableDragSettings) -> None:
        merged = dict(self._settings or {})
        merged.update(settings_payload(settings))
        self._settings = merged
        self.schedule_flush()

    # ── Records ──────────────────────────────────────────────────────

    @property
    def version(self) -> int:
        return self._data.version

    @property
    def tables(self) -> Mapping[str, SizeRecord]:
        return MappingProxyType(self._data.tables)

    def get(self, key_str: str) -> SizeRecord | None:
        return self._data.tables.get(key_str)

    def put(self, key_str: str, record: SizeRecord) -> SizeRecord:
        """Overwrite the record for *key_str*, stamp it and persist."""
        stamped = record.model_copy(update={"updated_at": self._clock()})
        self._data.tables[key_str] = stamped
        self.schedule_flush()
        return stamped

    def resolve_canonical_key(self, key: TableKey) -> str:
        """Canonical key for *key*, promoting a legacy record on a miss.

        The most recently updated record stored under an older key for the
        same path and canonical fingerprint is copied to the canonical key.
        The legacy entry is left in place.
        """
        canonical = canonical_key(key)
        if canonical in self._data.tables:
            return canonical

        wanted = normalize_fingerprint(key.fingerprint)
        best_key: str | None = None
        best_ts = -1
        for key_str, record in self._data.tables.items():
            try:
                key_obj = parse_key(key_str)
            except ValueError:
                continue
            if key_obj["path"] != key.path or stored_fingerprint(key_obj) != wanted:
                continue
            if record.updated_at > best_ts:
                best_ts = record.updated_at
                best_key = key_str

        if best_key is not None:
            self._data.tables[canonical] = self._data.tables[best_key].model_copy(deep=True)
            logger.debug("Migrated %s -> %s", best_key, canonical)
            self.schedule_flush()
        return canonical

    def most_recent_for_path(self, path: str) -> StoredEntry | None:
        """Most recently updated record for *path*, whatever its fingerprint."""
        best: StoredEntry | None = None
        best_ts = -1
        for key_str, record in self._data.tables.items():
            try:
                key_obj = parse_key(key_str)
            except ValueError:
                continue
            if key_obj["path"] != path:
                continue
            if record.updated_at > best_ts:
                best = StoredEntry(key=key_from_obj(key_obj), key_str=key_str, record=record)
                best_ts = record.updated_at
        return best

    def rekey_path(self, old_path: str, new_path: str) -> int:
        """Point every key stored for *old_path* at *new_path*.

        Other key fields and the entry order are preserved.  Returns the
        number of rewritten entries.
        """
        updated: dict[str, SizeRecord] = {}
        rewritten = 0
        for key_str, record in self._data.tables.items():
            try:
                key_obj = parse_key(key_str)
            except ValueError:
                updated[key_str] = record
                continue
            if key_obj["path"] == old_path:
                key_obj["path"] = new_path
                key_str = dump_key(key_obj)
                rewritten += 1
            updated[key_str] = record
        if rewritten:
            self._data.tables = updated
            self.schedule_flush()
        return rewritten
