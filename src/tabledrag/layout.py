"""Column/row geometry reads and writes on a bound table."""

from __future__ import annotations

import math

from tabledrag.dom import Element, TableElement, cells_of, parse_px, px
from tabledrag.geometry import round_half_up

OTD_ATTR = "data-otd"


def format_percent(ratio: float) -> str:
    """``max(1, round(r * 10000) / 100)`` as a CSS percentage (two decimals)."""
    pct = max(1, round_half_up(ratio * 10000) / 100)
    return f"{pct:g}%"


def ensure_colgroup(table: TableElement, column_count: int) -> list[Element]:
    """Return exactly *column_count* ``<col>`` elements of the engine's colgroup.

    The colgroup is namespaced with ``data-otd="1"`` and placed after any
    colgroup the renderer produced, or first in the table.
    """
    colgroup = next(
        (c for c in table.children if c.tag == "colgroup" and c.attrs.get(OTD_ATTR) == "1"),
        None,
    )
    if colgroup is None:
        colgroup = Element("colgroup", attrs={OTD_ATTR: "1"})
        existing = next((c for c in table.children if c.tag == "colgroup"), None)
        if existing is not None:
            index = table.children.index(existing) + 1
            ref = table.children[index] if index < len(table.children) else None
        else:
            ref = table.children[0] if table.children else None
        table.insert_before(colgroup, ref)

    cols = [c for c in colgroup.children if c.tag == "col"]
    while len(cols) < column_count:
        cols.append(colgroup.append(Element("col")))
    while len(cols) > column_count:
        cols.pop().remove()
    return cols


def get_col_widths(cols: list[Element], base: float | None = None) -> list[float]:
    """Current ``<col>`` widths in pixels.

    Percentage widths resolve against *base* when given; anything else
    unparseable reads as 0.
    """
    widths: list[float] = []
    for col in cols:
        value = col.style.get("width", "").strip()
        if value.endswith("%"):
            widths.append(parse_px(value[:-1]) * base / 100 if base else 0.0)
        else:
            widths.append(parse_px(value))
    return widths


def apply_col_widths(cols: list[Element], widths: list[float], min_width: float) -> None:
    for col, width in zip(cols, widths):
        col.style["width"] = px(max(min_width, math.floor(width)))


def apply_ratios_as_percent(cols: list[Element], ratios: list[float]) -> None:
    for col, ratio in zip(cols, ratios):
        col.style["width"] = format_percent(ratio)


def ratios_to_px(ratios: list[float], base: float, min_width: float) -> list[float]:
    return [max(min_width, round_half_up(r * base)) for r in ratios]


def set_table_width(table: TableElement, width: float) -> None:
    table.style["width"] = px(width)


def container_width(table: TableElement) -> float:
    return max(0.0, table.rect.width)


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------


def row_height(row: Element) -> float:
    """Explicit height when set, else the measured one."""
    return parse_px(row.style.get("height")) or row.rect.height


def apply_row_heights(
    table: TableElement, row_heights: dict[int, float] | None, min_height: float
) -> int:
    """Apply stored heights to rows that still exist; returns how many."""
    if not row_heights:
        return 0
    applied = 0
    for index, row in enumerate(table.rows):
        height = row_heights.get(index)
        if height is not None and height > 0:
            row.style["height"] = px(max(min_height, math.floor(height)))
            applied += 1
    return applied


def clear_row_heights(table: TableElement) -> None:
    for row in table.rows:
        row.style.pop("height", None)


# ---------------------------------------------------------------------------
# Cells
# ---------------------------------------------------------------------------


def measure_autofit_width(table: TableElement, column: int, min_width: float) -> float:
    """Widest cell content of *column* plus horizontal padding and a 2px buffer."""
    widest = 0
    for row in table.rows:
        cells = cells_of(row)
        if column >= len(cells):
            continue
        cell = cells[column]
        padding = cell.computed_px("padding-left") + cell.computed_px("padding-right")
        content = cell.scroll_width or cell.client_width
        widest = max(widest, math.ceil(content + padding + 2))
    return max(min_width, widest)
