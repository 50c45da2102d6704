"""Headless reading-view host for markdown documents.

Parses GFM tables with ``markdown-it-py`` and lays them out under a
reading surface (``markdown-reading-view`` > ``markdown-preview-sizer``)
with measurements derived from terminal cell widths at a fixed pixel pitch.
This is enough for the engine to bind, resize and materialize tables
without a browser.

markdown-it-py uses an open/close token model: a table is
``table_open ... table_close`` with ``thead``/``tbody``/``tr``/``th``/``td``
pairs and the cell text in the ``children`` of an ``inline`` token.
``table_open.map`` holds the source line range ``[start, end)``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import wcwidth
from markdown_it import MarkdownIt
from markdown_it.token import Token

from tabledrag.dom import READING_SIZER, READING_VIEWS, Element, Rect, TableElement, cells_of

_md_parser = MarkdownIt("commonmark").enable("table")

CHAR_WIDTH_PX = 8
CELL_PADDING_PX = 8
ROW_HEIGHT_PX = 28


@dataclass
class ParsedTable:
    header: list[str]
    rows: list[list[str]] = field(default_factory=list)
    line_start: int = -1  # 0-based, inclusive
    line_end: int = -1


@dataclass
class RenderedDocument:
    """A reading view holding the laid out tables; keep it alive while bound."""

    view: Element
    sizer: Element
    tables: list[TableElement]
    parsed: list[ParsedTable]


def text_width(text: str) -> int:
    """Display width in terminal cells; unprintable characters count as zero."""
    width = wcwidth.wcswidth(text)
    if width >= 0:
        return width
    return sum(max(0, wcwidth.wcwidth(ch)) for ch in text)


def _inline_text(tok: Token | None) -> str:
    if tok is None or tok.type != "inline":
        return ""
    if not tok.children:
        return tok.content
    parts: list[str] = []
    for child in tok.children:
        if child.type in ("text", "code_inline", "html_inline"):
            parts.append(child.content)
        elif child.type in ("softbreak", "hardbreak"):
            parts.append(" ")
    return "".join(parts).strip()


def parse_tables(text: str) -> list[ParsedTable]:
    """Every GFM table of *text* in document order."""
    tokens = _md_parser.parse(text)
    tables: list[ParsedTable] = []
    current: ParsedTable | None = None
    row: list[str] | None = None
    in_head = False

    for i, tok in enumerate(tokens):
        t = tok.type
        if t == "table_open":
            start, end = tok.map if tok.map else (-1, 0)
            current = ParsedTable(header=[], line_start=start, line_end=end - 1)
        elif t == "table_close":
            if current is not None:
                tables.append(current)
            current = None
        elif t == "thead_open":
            in_head = True
        elif t == "thead_close":
            in_head = False
        elif t == "tr_open":
            row = []
        elif t == "tr_close":
            if current is not None and row is not None:
                if in_head:
                    current.header = row
                else:
                    current.rows.append(row)
            row = None
        elif t in ("th_open", "td_open") and row is not None:
            row.append(_inline_text(tokens[i + 1] if i + 1 < len(tokens) else None))
    return tables


def build_table(parsed: ParsedTable, char_px: int = CHAR_WIDTH_PX) -> TableElement:
    """Table element with measured cells, sized like an auto-layout table."""
    table = TableElement.build(parsed.header, parsed.rows)
    column_count = table.column_count
    natural = [0.0] * column_count
    for row_index, row in enumerate(table.rows):
        row.rect = Rect(top=row_index * ROW_HEIGHT_PX, height=ROW_HEIGHT_PX)
        for col_index, cell in enumerate(cells_of(row)):
            cell.computed["padding-left"] = f"{CELL_PADDING_PX}px"
            cell.computed["padding-right"] = f"{CELL_PADDING_PX}px"
            cell.scroll_width = text_width(cell.text_content) * char_px
            natural[col_index] = max(natural[col_index], cell.scroll_width + 2 * CELL_PADDING_PX)

    header_row = table.header_cells()
    for col_index, cell in enumerate(header_row):
        cell.rect = Rect(width=natural[col_index], height=ROW_HEIGHT_PX)

    total = sum(natural)
    table.scroll_width = total
    table.offset_width = total
    table.rect = Rect(width=total, height=len(table.rows) * ROW_HEIGHT_PX)
    return table


def render_document(
    text: str,
    *,
    pane_width: float = 1000,
    line_width: float = 700,
    char_px: int = CHAR_WIDTH_PX,
) -> RenderedDocument:
    """Lay the tables of *text* out in a reading view of the given geometry.

    Tables narrower than the readable line are as wide as their content;
    wider ones keep their natural width, which is what breakout reacts to.
    """
    view = Element("div", classes=[READING_VIEWS[0]])
    view.client_width = pane_width
    view.rect = Rect(width=pane_width)

    side = max(0.0, (pane_width - line_width) / 2)
    sizer = view.append(Element("div", classes=[READING_SIZER]))
    sizer.client_width = line_width
    sizer.rect = Rect(left=side, width=line_width)

    parsed = parse_tables(text)
    tables: list[TableElement] = []
    for item in parsed:
        table = build_table(item, char_px)
        table.rect.left = side
        sizer.append(table)
        tables.append(table)
    return RenderedDocument(view=view, sizer=sizer, tables=tables, parsed=parsed)
