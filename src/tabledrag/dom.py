"""Minimal retained element tree the engine operates on.

The engine never touches a real DOM.  A host (browser bridge, the markdown
host, tests) builds ``Element`` trees mirroring what it rendered, keeps the
measured geometry fields (``rect``, ``client_width``, ``scroll_width`` ...)
up to date, and forwards pointer/keyboard events through
:meth:`Element.dispatch`.  Style writes made by the engine land in
``Element.style`` for the host to reflect back.

Children are owned by their parent while parents are referenced weakly,
so whoever renders a tree must keep its root alive.
"""

from __future__ import annotations

import math
import weakref
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

Listener = Callable[[Any], None]

# Host container class markers
EDITOR_SCROLLER = "cm-scroller"
EDITOR_SIZER = "cm-sizer"
EDITOR_CONTENT = "cm-content"
EDITOR_GUTTERS = "cm-gutters"
EDITOR_TABLE_WIDGET = "cm-table-widget"
READING_VIEWS = ("markdown-reading-view", "markdown-preview-view")
READING_SIZER = "markdown-preview-sizer"

# Engine-owned markers
MANAGED = "otd-managed"
WRAP = "otd-wrap"
INACTIVE = "otd-inactive"
BREAKOUT = "otd-breakout"
BREAKOUT_EDITOR = "otd-breakout-cm"
LEGACY_WRAPPER = "otd-breakout-wrap"
COLUMN_HANDLE = "otd-chandle"
OUTER_HANDLE = "otd-ohandle"
ROW_HANDLE = "otd-rhandle"
HANDLE_CLASSES = frozenset({COLUMN_HANDLE, OUTER_HANDLE, ROW_HANDLE})


# ---------------------------------------------------------------------------
# Geometry and events
# ---------------------------------------------------------------------------


@dataclass
class Rect:
    left: float = 0.0
    top: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass
class Event:
    default_prevented: bool = field(default=False, kw_only=True)
    propagation_stopped: bool = field(default=False, kw_only=True)

    def prevent_default(self) -> None:
        self.default_prevented = True

    def stop_propagation(self) -> None:
        self.propagation_stopped = True


@dataclass
class PointerEvent(Event):
    client_x: float = 0.0
    client_y: float = 0.0
    pointer_id: int = 1
    alt_key: bool = False
    ctrl_key: bool = False
    meta_key: bool = False
    shift_key: bool = False

    @property
    def precise(self) -> bool:
        """Ctrl/Meta held: bypass snapping."""
        return self.ctrl_key or self.meta_key


@dataclass
class KeyEvent(Event):
    key: str = ""
    alt_key: bool = False
    ctrl_key: bool = False
    meta_key: bool = False
    shift_key: bool = False

    @property
    def precise(self) -> bool:
        """Ctrl/Meta held: move by a single pixel."""
        return self.ctrl_key or self.meta_key

    @property
    def activates(self) -> bool:
        return self.key in ("Enter", " ")


def parse_px(value: str | None) -> float:
    """``"120px"`` -> ``120.0``; anything unparseable -> ``0.0``."""
    if not value:
        return 0.0
    text = value.strip()
    if text.endswith("px"):
        text = text[:-2]
    try:
        number = float(text)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def px(value: float) -> str:
    return f"{math.floor(value)}px"


# ---------------------------------------------------------------------------
# Elements
# ---------------------------------------------------------------------------


class Element:
    """A node of the host tree.

    Elements compare by identity so they can key side tables.
    """

    def __init__(
        self,
        tag: str = "div",
        *,
        classes: tuple[str, ...] | list[str] = (),
        text: str = "",
        attrs: dict[str, str] | None = None,
        children: tuple[Element, ...] | list[Element] = (),
    ) -> None:
        self.tag = tag
        self.classes: set[str] = set(classes)
        self.attrs: dict[str, str] = dict(attrs or {})
        self.style: dict[str, str] = {}
        self.computed: dict[str, str] = {}  # host-computed style (padding etc.)
        self.text = text
        self._parent: weakref.ReferenceType[Element] | None = None
        self.children: list[Element] = []

        # Measured geometry, maintained by the host
        self.rect = Rect()
        self.client_width = 0.0
        self.scroll_width = 0.0
        self.offset_width = 0.0
        self.scroll_left = 0.0
        self.visible = True

        self.focused = False
        self.captured_pointer: int | None = None
        self._listeners: dict[str, list[Listener]] = {}

        for child in children:
            self.append(child)

    def __repr__(self) -> str:
        cls = f" .{'.'.join(sorted(self.classes))}" if self.classes else ""
        return f"<{self.tag}{cls}>"

    # -- tree ---------------------------------------------------------------

    @property
    def parent(self) -> Element | None:
        """Parents are held weakly; only the ``children`` links own nodes."""
        return self._parent() if self._parent is not None else None

    def append(self, child: Element) -> Element:
        return self.insert_before(child, None)

    def insert_before(self, child: Element, ref: Element | None) -> Element:
        old_parent = child.parent
        if old_parent is not None:
            old_parent.children.remove(child)
        child._parent = weakref.ref(self)
        if ref is None or ref not in self.children:
            self.children.append(child)
        else:
            self.children.insert(self.children.index(ref), child)
        return child

    def remove(self) -> None:
        parent = self.parent
        if parent is not None:
            parent.children.remove(self)
        self._parent = None

    def iter(self) -> Iterator[Element]:
        """Descendants in document order (self excluded)."""
        for child in self.children:
            yield child
            yield from child.iter()

    def find_all(self, tag: str | None = None, cls: str | None = None) -> list[Element]:
        return [
            el
            for el in self.iter()
            if (tag is None or el.tag == tag) and (cls is None or cls in el.classes)
        ]

    def find(self, tag: str | None = None, cls: str | None = None) -> Element | None:
        for el in self.iter():
            if (tag is None or el.tag == tag) and (cls is None or cls in el.classes):
                return el
        return None

    def closest(self, *classes: str) -> Element | None:
        """Self or nearest ancestor carrying any of *classes*."""
        node: Element | None = self
        while node is not None:
            if node.classes.intersection(classes):
                return node
            node = node.parent
        return None

    def add_class(self, name: str) -> None:
        self.classes.add(name)

    def remove_class(self, name: str) -> None:
        self.classes.discard(name)

    @property
    def text_content(self) -> str:
        return self.text + "".join(child.text_content for child in self.children)

    # -- geometry -----------------------------------------------------------

    @property
    def measured_width(self) -> float:
        """``clientWidth || rect.width || 0``."""
        return self.client_width or self.rect.width or 0.0

    def computed_px(self, name: str) -> float:
        return parse_px(self.computed.get(name) or self.style.get(name))

    # -- events -------------------------------------------------------------

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        self._listeners.setdefault(event_type, []).append(listener)

    def remove_event_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event_type: str) -> int:
        return len(self._listeners.get(event_type, []))

    def dispatch(self, event_type: str, event: Event) -> Event:
        for listener in list(self._listeners.get(event_type, [])):
            listener(event)
        return event

    def focus(self) -> None:
        self.focused = True

    def set_pointer_capture(self, pointer_id: int) -> None:
        self.captured_pointer = pointer_id

    def release_pointer_capture(self, pointer_id: int) -> None:
        if self.captured_pointer == pointer_id:
            self.captured_pointer = None


def cells_of(row: Element) -> list[Element]:
    return [c for c in row.children if c.tag in ("td", "th")]


class TableElement(Element):
    def __init__(self, **kwargs: Any) -> None:
        super().__init__("table", **kwargs)

    @classmethod
    def build(cls, header: list[str] | None, body: list[list[str]]) -> TableElement:
        """Table with an optional ``<thead>`` row and a ``<tbody>``."""
        table = cls()
        if header is not None:
            head_row = Element("tr", children=[Element("th", text=h) for h in header])
            table.append(Element("thead", children=[head_row]))
        table.append(
            Element(
                "tbody",
                children=[
                    Element("tr", children=[Element("td", text=c) for c in row]) for row in body
                ],
            )
        )
        return table

    @property
    def rows(self) -> list[Element]:
        return self.find_all("tr")

    @property
    def column_count(self) -> int:
        return max((len(cells_of(r)) for r in self.rows), default=0)

    def header_cells(self) -> list[Element]:
        cells: list[Element] = []
        for head in self.find_all("thead"):
            cells.extend(el for el in head.iter() if el.tag == "th")
        return cells
