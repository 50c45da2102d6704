"""Column boundary handles: drag, keyboard and double action."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Protocol

from tabledrag.binding import EngineContext, TableBinding, commit_columns
from tabledrag.dom import COLUMN_HANDLE, Element, KeyEvent, PointerEvent, TableElement, cells_of, px
from tabledrag.geometry import redistribute, split_evenly
from tabledrag.layout import apply_col_widths, measure_autofit_width
from tabledrag.settings import HandleMount

INDEX_ATTR = "data-otd-index"


# ---------------------------------------------------------------------------
# Mount strategies
# ---------------------------------------------------------------------------


class ColumnHandleMount(Protocol):
    def mount(self, table: TableElement, index: int) -> Element: ...

    def position(self, table: TableElement, handle: Element, boundary_px: float) -> None: ...


def _new_handle(index: int) -> Element:
    return Element(
        "div",
        classes=[COLUMN_HANDLE],
        attrs={
            INDEX_ATTR: str(index),
            "role": "separator",
            "aria-label": f"Resize column {index + 1}",
            "tabindex": "0",
        },
    )


class TableMount:
    """Absolutely positioned handles appended to the table."""

    def mount(self, table: TableElement, index: int) -> Element:
        return table.append(_new_handle(index))

    def position(self, table: TableElement, handle: Element, boundary_px: float) -> None:
        handle.style["top"] = "0px"
        handle.style["left"] = px(max(0, boundary_px - 3))
        handle.style["height"] = px(max(0, table.rect.height))


class HeaderMount:
    """Each handle lives in the header cell left of its boundary."""

    def mount(self, table: TableElement, index: int) -> Element:
        cell = _header_cell(table, index)
        if cell is None:
            return TableMount().mount(table, index)
        return cell.append(_new_handle(index))

    def position(self, table: TableElement, handle: Element, boundary_px: float) -> None:
        if handle.parent is table:
            TableMount().position(table, handle, boundary_px)
            return
        handle.style["top"] = "0px"
        handle.style["right"] = "-3px"
        handle.style["height"] = px(max(0, table.rect.height))


def _header_cell(table: TableElement, index: int) -> Element | None:
    cells = table.header_cells()
    if not cells:
        first_row = table.find("tr")
        cells = cells_of(first_row) if first_row is not None else []
    return cells[index] if index < len(cells) else None


MOUNTS: dict[HandleMount, ColumnHandleMount] = {
    "table": TableMount(),
    "header": HeaderMount(),
}


# ---------------------------------------------------------------------------
# Handles
# ---------------------------------------------------------------------------


@dataclass
class _Drag:
    index: int
    pointer_id: int
    start_x: float
    left: float
    right: float


class ColumnHandles:
    """The ``n - 1`` boundary handles of one bound table."""

    def __init__(self, ctx: EngineContext, binding: TableBinding) -> None:
        self._ctx = ctx
        self._binding = binding
        self._mount = MOUNTS[ctx.settings.handle_mount]
        self._drag: _Drag | None = None
        self.handles: list[Element] = []

    def attach(self) -> None:
        table = self._binding.table
        existing = {h.attrs.get(INDEX_ATTR): h for h in table.find_all(cls=COLUMN_HANDLE)}
        for index in range(self._binding.column_count - 1):
            handle = existing.get(str(index)) or self._mount.mount(table, index)
            handle.add_event_listener("pointerdown", partial(self._on_pointer_down, index, handle))
            handle.add_event_listener("pointermove", self._on_pointer_move)
            handle.add_event_listener("pointerup", partial(self._on_pointer_up, handle))
            handle.add_event_listener("dblclick", partial(self._on_double_click, index))
            handle.add_event_listener("keydown", partial(self._on_key_down, index))
            self.handles.append(handle)

    def position(self) -> None:
        widths = self._binding.col_widths()
        boundary = 0.0
        for index, handle in enumerate(self.handles):
            boundary += max(0.0, widths[index]) if index < len(widths) else 0.0
            self._mount.position(self._binding.table, handle, boundary)

    @property
    def dragging(self) -> bool:
        return self._drag is not None

    # -- pointer -----------------------------------------------------------

    def _on_pointer_down(self, index: int, handle: Element, ev: PointerEvent) -> None:
        if self._ctx.settings.require_alt_to_drag and not ev.alt_key:
            return
        ev.prevent_default()
        ev.stop_propagation()
        widths = self._binding.col_widths()
        self._drag = _Drag(
            index=index,
            pointer_id=ev.pointer_id,
            start_x=ev.client_x,
            left=widths[index],
            right=widths[index + 1],
        )
        handle.set_pointer_capture(ev.pointer_id)
        handle.focus()
        self._ctx.on_active(self._binding.table, self._binding.key)

    def _on_pointer_move(self, ev: PointerEvent) -> None:
        drag = self._drag
        if drag is None:
            return
        settings = self._ctx.settings
        new_left, new_right = redistribute(
            drag.left,
            drag.right,
            drag.left + drag.right,
            ev.client_x - drag.start_x,
            settings.min_column_width_px,
            settings.snap_step_px,
            ev.precise,
        )
        self._apply_pair(drag.index, new_left, new_right)

    def _on_pointer_up(self, handle: Element, ev: PointerEvent) -> None:
        drag = self._drag
        if drag is None:
            return
        self._drag = None
        handle.release_pointer_capture(drag.pointer_id)
        commit_columns(self._ctx, self._binding, "persist-drag")

    # -- double action / keyboard -------------------------------------------

    def _on_double_click(self, index: int, ev: PointerEvent) -> None:
        self._ctx.on_active(self._binding.table, self._binding.key)
        ev.prevent_default()
        if self._double_action(index):
            commit_columns(self._ctx, self._binding, "persist-dblclick")

    def _on_key_down(self, index: int, ev: KeyEvent) -> None:
        self._ctx.on_active(self._binding.table, self._binding.key)
        settings = self._ctx.settings
        step = 1 if ev.precise else settings.keyboard_step_px
        if ev.key in ("ArrowLeft", "ArrowRight"):
            widths = self._binding.col_widths()
            left, right = widths[index], widths[index + 1]
            new_left, new_right = redistribute(
                left,
                right,
                left + right,
                -step if ev.key == "ArrowLeft" else step,
                settings.min_column_width_px,
                settings.snap_step_px,
                True,
            )
            self._apply_pair(index, new_left, new_right)
        elif not (ev.activates and self._double_action(index)):
            return
        ev.prevent_default()
        commit_columns(self._ctx, self._binding, "persist-keyboard")

    def _double_action(self, index: int) -> bool:
        settings = self._ctx.settings
        widths = self._binding.col_widths()
        left, right = widths[index], widths[index + 1]
        total = left + right
        if settings.double_click_action == "autofit":
            target = measure_autofit_width(
                self._binding.table, index, settings.min_column_width_px
            )
            new_left, new_right = redistribute(
                left,
                right,
                total,
                target - left,
                settings.min_column_width_px,
                settings.snap_step_px,
                False,
            )
        elif settings.double_click_action == "reset":
            new_left, new_right = split_evenly(total, settings.min_column_width_px)
        else:
            return False
        self._apply_pair(index, new_left, new_right)
        return True

    def _apply_pair(self, index: int, left: float, right: float) -> None:
        widths = self._binding.col_widths()
        widths[index] = left
        widths[index + 1] = right
        apply_col_widths(self._binding.cols, widths, self._ctx.settings.min_column_width_px)
        self._binding.position_handles()
