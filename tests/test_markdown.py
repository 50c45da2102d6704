"""Tests for tabledrag.markdown, the headless reading-view host."""

from __future__ import annotations

from tabledrag.breakout import measure_context
from tabledrag.dom import BREAKOUT
from tabledrag.engine import TableEngine
from tabledrag.identity import compute_fingerprint
from tabledrag.markdown import build_table, parse_tables, render_document, text_width
from tabledrag.persistence import InMemoryPersistence
from tabledrag.store import SizingStore
from tabledrag.types import ContextMeasurement

from .virtual_scheduler import VirtualScheduler

DOC = """# Notes

| Name | Qty |
| ---- | --- |
| **apple** | 3 |
| 香蕉 | `12` |

Some text.

| A | B | C |
|---|---|---|
| 1 | 2 | 3 |
"""


class TestParseTables:
    def test_tables_in_order(self) -> None:
        tables = parse_tables(DOC)
        assert len(tables) == 2
        first, second = tables
        assert first.header == ["Name", "Qty"]
        assert first.rows == [["apple", "3"], ["香蕉", "12"]]
        assert (first.line_start, first.line_end) == (2, 5)
        assert second.header == ["A", "B", "C"]
        assert (second.line_start, second.line_end) == (9, 11)

    def test_no_tables(self) -> None:
        assert parse_tables("just text\n\n- a list\n") == []


class TestLayout:
    def test_text_width(self) -> None:
        assert text_width("apple") == 5
        assert text_width("香蕉") == 4
        assert text_width("") == 0

    def test_build_table_natural_widths(self) -> None:
        table = build_table(parse_tables(DOC)[0])
        assert [c.rect.width for c in table.header_cells()] == [56, 40]
        assert table.rect.width == 96
        assert table.scroll_width == 96
        assert [r.rect.top for r in table.rows] == [0, 28, 56]
        assert compute_fingerprint(table) == "2:Name|Qty"

    def test_render_document_geometry(self) -> None:
        doc = render_document(DOC, pane_width=1200, line_width=800)
        assert len(doc.tables) == 2
        assert measure_context(doc.tables[0]) == ContextMeasurement("reading", 1200, 800, 200, 200)


class TestEngineOnMarkdown:
    def test_bind_all(self) -> None:
        store = SizingStore(InMemoryPersistence())
        engine = TableEngine(store, scheduler=VirtualScheduler())
        doc = render_document(DOC)
        assert engine.bind_all(doc.view, "notes.md") == 2
        assert len(store.tables) == 2

    def test_wide_table_breaks_out(self) -> None:
        wide = "| " + " | ".join("x" * 40 for _ in range(4)) + " |\n"
        wide += "|" + "---|" * 4 + "\n"
        wide += "| " + " | ".join("y" * 40 for _ in range(4)) + " |\n"
        sched = VirtualScheduler()
        engine = TableEngine(SizingStore(InMemoryPersistence()), scheduler=sched)
        doc = render_document(wide)
        table = doc.tables[0]
        assert table.rect.width == 4 * (40 * 8 + 16)
        engine.bind_all(doc.view, "wide.md")
        sched.advance(50)
        sched.run_frames()
        assert BREAKOUT in table.classes
