"""Tests for tabledrag.identity."""

from __future__ import annotations

import json

import pytest

from tabledrag.dom import Element, TableElement
from tabledrag.identity import (
    canonical_key,
    compute_fingerprint,
    header_labels,
    key_from_obj,
    normalize_fingerprint,
    parse_key,
    stored_fingerprint,
)
from tabledrag.types import TableKey


class TestFingerprint:
    def test_from_header(self) -> None:
        table = TableElement.build(["Name", " Age "], [["a", "1"], ["b", "2"]])
        assert compute_fingerprint(table) == "2:Name|Age"

    def test_falls_back_to_first_row(self) -> None:
        table = TableElement.build(None, [["x", "y", "z"], ["1", "2", "3"]])
        assert compute_fingerprint(table) == "3:x|y|z"

    def test_column_count_is_widest_row(self) -> None:
        table = TableElement.build(["A", "B"], [["1", "2", "3"]])
        assert compute_fingerprint(table) == "3:A|B"

    def test_nested_text(self) -> None:
        table = TableElement.build(["A", ""], [["1", "2"]])
        table.header_cells()[1].append(Element("strong", text="Bold"))
        assert compute_fingerprint(table) == "2:A|Bold"

    def test_normalize_strips_suffix(self) -> None:
        assert normalize_fingerprint("2:A|B#3") == "2:A|B"
        assert normalize_fingerprint("2:A|B") == "2:A|B"

    def test_header_labels(self) -> None:
        assert header_labels("3:A|B|C#1") == ["A", "B", "C"]
        assert header_labels("3") == []
        assert header_labels("0:") == []


class TestKeys:
    def test_canonical_key_ignores_lines_and_suffix(self) -> None:
        a = TableKey(path="n.md", fingerprint="2:A|B", line_start=3, line_end=6)
        b = TableKey(path="n.md", fingerprint="2:A|B#1", line_start=40, line_end=43)
        assert canonical_key(a) == canonical_key(b)
        assert json.loads(canonical_key(a)) == {"path": "n.md", "fingerprint": "2:A|B"}

    def test_canonical_key_is_compact(self) -> None:
        key = TableKey(path="dir/ü.md", fingerprint="2:A|B")
        assert canonical_key(key) == '{"path":"dir/ü.md","fingerprint":"2:A|B"}'

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"fingerprint": "2:A|B"}', '{"path": 3}'])
    def test_parse_key_rejects_malformed(self, raw: str) -> None:
        with pytest.raises(ValueError):
            parse_key(raw)

    def test_stored_fingerprint_variants(self) -> None:
        assert stored_fingerprint({"path": "p", "fingerprint": "2:A|B#0"}) == "2:A|B"
        assert stored_fingerprint({"path": "p", "fingerprint": {"fp": "2:A|B"}}) == "2:A|B"
        assert stored_fingerprint({"path": "p"}) == ""

    def test_key_from_obj(self) -> None:
        key = key_from_obj({"path": "p", "fingerprint": "2:A|B#1", "lineStart": 4, "lineEnd": "x"})
        assert key == TableKey(path="p", fingerprint="2:A|B", line_start=4, line_end=-1)
