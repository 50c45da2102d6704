"""Tests for tabledrag.store and tabledrag.persistence."""

from __future__ import annotations

import asyncio
import json
from copy import deepcopy
from typing import Any

import pytest

import tabledrag.store
from tabledrag.identity import canonical_key
from tabledrag.persistence import InMemoryPersistence, JsonFilePersistence
from tabledrag.settings import TableDragSettings
from tabledrag.store import SizingStore
from tabledrag.types import SizeRecord, TableKey


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Clock:
    def __init__(self, start: int = 1000) -> None:
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


class FailingPersistence(InMemoryPersistence):
    async def save(self, data: dict[str, Any]) -> None:
        raise OSError("disk full")


class SlowFirstSave(InMemoryPersistence):
    """The first save stalls long enough for later ones to overtake it."""

    async def save(self, data: dict[str, Any]) -> None:
        if self.saves == 0:
            self.saves += 1
            await asyncio.sleep(0.05)
            self.data = deepcopy(data)
            return
        await super().save(data)


def legacy_key(path: str, fingerprint: Any, **extra: Any) -> str:
    return json.dumps({"path": path, "fingerprint": fingerprint, **extra})


KEY = TableKey(path="notes.md", fingerprint="2:A|B", line_start=3, line_end=6)


# ---------------------------------------------------------------------------
# Loading and saving
# ---------------------------------------------------------------------------


class TestLoadSave:
    @pytest.mark.asyncio
    async def test_round_trip(self) -> None:
        backend = InMemoryPersistence()
        store = SizingStore(backend, clock=Clock())
        key_str = store.resolve_canonical_key(KEY)
        written = store.put(
            key_str,
            SizeRecord(ratios=[0.25, 0.75], last_px_width=640, table_px_width=800, row_heights={1: 40}),
        )
        await store.drain()

        reloaded = SizingStore(backend)
        await reloaded.load()
        assert reloaded.get(reloaded.resolve_canonical_key(KEY)) == written

    @pytest.mark.asyncio
    async def test_payload_uses_camel_case(self) -> None:
        backend = InMemoryPersistence()
        store = SizingStore(backend, clock=lambda: 7)
        store.put("k", SizeRecord(ratios=[0.5, 0.5], last_px_width=400))
        await store.drain()
        assert backend.data == {
            "tables": {"k": {"ratios": [0.5, 0.5], "lastPxWidth": 400.0, "updatedAt": 7}},
            "version": 1,
        }

    @pytest.mark.asyncio
    async def test_malformed_records_are_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        backend = InMemoryPersistence(
            {
                "tables": {
                    "good": {"ratios": [0.5, 0.5], "updatedAt": 3},
                    "bad": {"ratios": "wide"},
                },
                "version": 1,
            }
        )
        store = SizingStore(backend)
        await store.load()
        assert list(store.tables) == ["good"]
        assert "Skipping malformed record bad" in caplog.text

    @pytest.mark.asyncio
    async def test_records_with_unusable_ratios_are_skipped(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        backend = InMemoryPersistence(
            {
                "tables": {
                    "zero": {"ratios": [0, 1]},
                    "negative": {"ratios": [1.5, -0.5]},
                    "unnormalized": {"ratios": [200, 300]},
                    "good": {"ratios": [0.4, 0.6]},
                },
                "version": 1,
            }
        )
        store = SizingStore(backend)
        await store.load()
        assert list(store.tables) == ["good"]
        assert "Skipping malformed record zero" in caplog.text
        assert "ratios must be positive" in caplog.text
        assert "not 1" in caplog.text

    @pytest.mark.asyncio
    async def test_settings_are_kept_and_merged(self) -> None:
        backend = InMemoryPersistence({"tables": {}, "version": 1, "settings": {"futureThing": 1}})
        store = SizingStore(backend)
        await store.load()
        assert store.raw_settings == {"futureThing": 1}

        store.save_settings(TableDragSettings(snap_step_px=4))
        await store.drain()
        assert backend.data["settings"]["futureThing"] == 1
        assert backend.data["settings"]["snapStepPx"] == 4

    @pytest.mark.asyncio
    async def test_empty_backend(self) -> None:
        store = SizingStore(InMemoryPersistence())
        await store.load()
        assert store.tables == {}
        assert store.version == 1
        assert store.raw_settings is None

    @pytest.mark.asyncio
    async def test_flush_failure_is_reported(self) -> None:
        errors: list[Exception] = []
        store = SizingStore(FailingPersistence(), on_error=errors.append)
        store.put("k", SizeRecord(ratios=[0.5, 0.5]))
        await store.drain()
        assert isinstance(store.last_error, OSError)
        assert len(errors) == 1
        # in-memory state stays authoritative
        assert store.get("k") is not None

    def test_put_without_loop_flushes_inline(self) -> None:
        backend = InMemoryPersistence()
        store = SizingStore(backend)
        store.put("k", SizeRecord(ratios=[0.5, 0.5]))
        assert backend.saves == 1
        assert "k" in backend.data["tables"]

    @pytest.mark.asyncio
    async def test_slow_save_cannot_overwrite_newer_state(self) -> None:
        backend = SlowFirstSave()
        store = SizingStore(backend, clock=Clock())
        store.put("k", SizeRecord(ratios=[0.5, 0.5]))
        await asyncio.sleep(0)
        store.put("k", SizeRecord(ratios=[0.25, 0.75]))
        await store.drain()
        assert backend.data["tables"]["k"]["ratios"] == [0.25, 0.75]

        reloaded = SizingStore(backend)
        await reloaded.load()
        assert reloaded.get("k") == store.get("k")


class TestJsonFilePersistence:
    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path) -> None:
        path = tmp_path / "nested" / "data.json"
        backend = JsonFilePersistence(path)
        assert await backend.load() is None

        await backend.save({"tables": {}, "version": 1})
        assert json.loads(path.read_text(encoding="utf-8")) == {"tables": {}, "version": 1}
        assert await backend.load() == {"tables": {}, "version": 1}
        assert not path.with_name("data.json.tmp").exists()

    @pytest.mark.asyncio
    async def test_back_to_back_puts_keep_the_last(self, tmp_path) -> None:
        path = tmp_path / "data.json"
        store = SizingStore(JsonFilePersistence(path), clock=Clock())
        for step in range(1, 6):
            store.put("k", SizeRecord(ratios=[step / 10, 1 - step / 10]))
        await store.drain()
        assert store.last_error is None
        saved = json.loads(path.read_text(encoding="utf-8"))
        assert saved["tables"]["k"]["ratios"] == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_corrupt_file_starts_empty(self, tmp_path) -> None:
        path = tmp_path / "data.json"
        path.write_text("{oops", encoding="utf-8")
        store = SizingStore(JsonFilePersistence(path))
        await store.load()
        assert store.tables == {}


# ---------------------------------------------------------------------------
# Canonical keys and legacy migration
# ---------------------------------------------------------------------------


class TestResolveCanonicalKey:
    def test_migrates_legacy_record_once(self, monkeypatch: pytest.MonkeyPatch) -> None:
        store = SizingStore(InMemoryPersistence(), clock=Clock())
        old = legacy_key("notes.md", "2:A|B#1", lineStart=3, lineEnd=6)
        store.put(old, SizeRecord(ratios=[0.3, 0.7], row_heights={0: 30}))

        canonical = store.resolve_canonical_key(KEY)
        assert canonical == canonical_key(KEY)
        assert store.get(canonical) == store.get(old)
        assert store.get(canonical) is not store.get(old)
        assert old in store.tables

        calls = 0
        real_parse_key = tabledrag.store.parse_key

        def counting_parse_key(key_str: str) -> dict[str, Any]:
            nonlocal calls
            calls += 1
            return real_parse_key(key_str)

        monkeypatch.setattr(tabledrag.store, "parse_key", counting_parse_key)
        assert store.resolve_canonical_key(KEY) == canonical
        assert calls == 0

    def test_newest_legacy_record_wins(self) -> None:
        store = SizingStore(InMemoryPersistence(), clock=Clock())
        store.put(legacy_key("notes.md", "2:A|B#0"), SizeRecord(ratios=[0.1, 0.9]))
        store.put(legacy_key("notes.md", {"fp": "2:A|B"}), SizeRecord(ratios=[0.4, 0.6]))
        key_str = store.resolve_canonical_key(KEY)
        assert store.get(key_str).ratios == [0.4, 0.6]

    def test_other_paths_and_fingerprints_are_ignored(self) -> None:
        store = SizingStore(InMemoryPersistence(), clock=Clock())
        store.put(legacy_key("other.md", "2:A|B"), SizeRecord(ratios=[0.1, 0.9]))
        store.put(legacy_key("notes.md", "2:A|C"), SizeRecord(ratios=[0.2, 0.8]))
        key_str = store.resolve_canonical_key(KEY)
        assert store.get(key_str) is None

    def test_malformed_keys_do_not_abort_the_scan(self) -> None:
        store = SizingStore(InMemoryPersistence(), clock=Clock())
        store.put("not-json", SizeRecord(ratios=[0.5, 0.5]))
        store.put(legacy_key("notes.md", "2:A|B#2"), SizeRecord(ratios=[0.2, 0.8]))
        key_str = store.resolve_canonical_key(KEY)
        assert store.get(key_str).ratios == [0.2, 0.8]

    def test_put_stamps_updated_at(self) -> None:
        store = SizingStore(InMemoryPersistence(), clock=lambda: 42)
        record = store.put("k", SizeRecord(ratios=[0.5, 0.5], updated_at=1))
        assert record.updated_at == 42


class TestPathQueries:
    def test_most_recent_for_path(self) -> None:
        store = SizingStore(InMemoryPersistence(), clock=Clock())
        store.put(legacy_key("notes.md", "3:A|B|C"), SizeRecord(ratios=[0.2, 0.3, 0.5]))
        store.put(legacy_key("notes.md", "2:X|Y"), SizeRecord(ratios=[0.5, 0.5]))
        store.put(legacy_key("other.md", "2:X|Y"), SizeRecord(ratios=[0.9, 0.1]))
        entry = store.most_recent_for_path("notes.md")
        assert entry is not None
        assert entry.key.fingerprint == "2:X|Y"
        assert entry.record.ratios == [0.5, 0.5]
        assert store.most_recent_for_path("missing.md") is None

    def test_rekey_path_preserves_order_and_fields(self) -> None:
        backend = InMemoryPersistence()
        store = SizingStore(backend, clock=Clock())
        store.put(legacy_key("a.md", "2:A|B", lineStart=1), SizeRecord(ratios=[0.5, 0.5]))
        store.put("garbage", SizeRecord(ratios=[0.5, 0.5]))
        store.put(legacy_key("b.md", "2:A|B"), SizeRecord(ratios=[0.5, 0.5]))
        saves = backend.saves

        assert store.rekey_path("a.md", "c.md") == 1
        keys = list(store.tables)
        assert json.loads(keys[0]) == {"path": "c.md", "fingerprint": "2:A|B", "lineStart": 1}
        assert keys[1:] == ["garbage", legacy_key("b.md", "2:A|B")]
        assert backend.saves == saves + 1

    def test_rekey_without_matches_does_not_flush(self) -> None:
        backend = InMemoryPersistence()
        store = SizingStore(backend)
        store.put(legacy_key("a.md", "2:A|B"), SizeRecord(ratios=[0.5, 0.5]))
        saves = backend.saves
        assert store.rekey_path("zzz.md", "c.md") == 0
        assert backend.saves == saves
