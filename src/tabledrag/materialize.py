"""Static HTML copies of tables with their stored column widths baked in."""

from __future__ import annotations

from html import escape

from tabledrag.dom import HANDLE_CLASSES, Element, TableElement
from tabledrag.layout import format_percent
from tabledrag.types import SizeRecord

VOID_TAGS = frozenset({"area", "br", "col", "hr", "img", "input", "wbr"})
ENGINE_CLASS_PREFIX = "otd-"


def build_materialized_html(table: TableElement, record: SizeRecord) -> str:
    """Serialize *table* with a fresh percentage ``<colgroup>``.

    Resize handles, existing colgroups, inline styles and engine classes are
    left out so the copy renders the same anywhere.
    """
    colgroup = Element(
        "colgroup",
        children=[
            Element("col", attrs={"style": f"width: {format_percent(r)}"}) for r in record.ratios
        ],
    )
    attrs = _attrs(table)
    attrs["data-otd-materialized"] = "1"
    parts = [f"<table{_render_attrs(attrs)}>", element_to_html(colgroup)]
    for child in table.children:
        if child.tag != "colgroup":
            parts.append(element_to_html(child))
    parts.append("</table>")
    return "".join(parts)


def element_to_html(el: Element) -> str:
    """Outer HTML of *el*; handles are skipped."""
    if el.classes & HANDLE_CLASSES:
        return ""
    attrs = _attrs(el)
    if el.tag == "col" and "style" in el.attrs:
        attrs["style"] = el.attrs["style"]
    start = f"<{el.tag}{_render_attrs(attrs)}>"
    if el.tag in VOID_TAGS:
        return start
    inner = escape(el.text, quote=False) + "".join(element_to_html(c) for c in el.children)
    return f"{start}{inner}</{el.tag}>"


def _attrs(el: Element) -> dict[str, str]:
    attrs: dict[str, str] = {}
    classes = sorted(c for c in el.classes if not c.startswith(ENGINE_CLASS_PREFIX))
    if classes:
        attrs["class"] = " ".join(classes)
    for name, value in el.attrs.items():
        if name != "style" and not name.startswith("data-otd"):
            attrs[name] = value
    return attrs


def _render_attrs(attrs: dict[str, str]) -> str:
    return "".join(f' {name}="{escape(value, quote=True)}"' for name, value in attrs.items())
