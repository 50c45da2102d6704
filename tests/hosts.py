"""Host trees mirroring what the reading and editing surfaces render."""

from __future__ import annotations

from dataclasses import dataclass

from tabledrag.dom import (
    EDITOR_CONTENT,
    EDITOR_GUTTERS,
    EDITOR_SCROLLER,
    EDITOR_SIZER,
    EDITOR_TABLE_WIDGET,
    READING_SIZER,
    READING_VIEWS,
    Element,
    Rect,
    TableElement,
)


@dataclass
class ReadingHost:
    view: Element
    sizer: Element
    table: TableElement


@dataclass
class EditorHost:
    scroller: Element
    content: Element
    widget: Element | None
    table: TableElement


def make_table(
    header: list[str] | None = ("A", "B", "C"),
    rows: int = 2,
    width: float = 300,
) -> TableElement:
    """A laid out table with equal header cells and 30px rows."""
    header = list(header) if header is not None else None
    count = len(header) if header else 3
    body = [[f"r{r}c{c}" for c in range(count)] for r in range(rows)]
    table = TableElement.build(header, body)
    for index, row in enumerate(table.rows):
        row.rect = Rect(top=index * 30, height=30, width=width)
    for cell in table.header_cells():
        cell.rect = Rect(width=width / count, height=30)
    table.rect = Rect(width=width, height=30 * len(table.rows))
    table.scroll_width = width
    table.offset_width = width
    return table


def reading_host(
    table: TableElement | None = None, pane_width: float = 1000, line_width: float = 700
) -> ReadingHost:
    table = table if table is not None else make_table()
    view = Element("div", classes=[READING_VIEWS[0]])
    view.rect = Rect(width=pane_width)
    view.client_width = pane_width
    sizer = view.append(Element("div", classes=[READING_SIZER]))
    sizer.rect = Rect(left=(pane_width - line_width) / 2, width=line_width)
    sizer.client_width = line_width
    sizer.append(table)
    return ReadingHost(view, sizer, table)


def editor_host(
    table: TableElement | None = None,
    pane_width: float = 1000,
    line_width: float = 700,
    gutter_width: float = 40,
    widget: bool = True,
) -> EditorHost:
    """An editor pane; without *widget* the table sits directly in the content."""
    table = table if table is not None else make_table()
    scroller = Element("div", classes=[EDITOR_SCROLLER])
    scroller.client_width = pane_width + gutter_width
    scroller.rect = Rect(width=pane_width + gutter_width)
    gutters = scroller.append(Element("div", classes=[EDITOR_GUTTERS]))
    gutters.client_width = gutter_width
    sizer = scroller.append(Element("div", classes=[EDITOR_SIZER]))
    content = sizer.append(Element("div", classes=[EDITOR_CONTENT]))
    content.client_width = line_width
    content.rect = Rect(left=gutter_width + (pane_width - line_width) / 2, width=line_width)
    if not widget:
        content.append(table)
        return EditorHost(scroller, content, None, table)
    wrapper = content.append(Element("div", classes=[EDITOR_TABLE_WIDGET]))
    wrapper.append(table)
    return EditorHost(scroller, content, wrapper, table)
