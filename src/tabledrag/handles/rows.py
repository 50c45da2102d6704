"""Row bottom-edge handles."""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import partial

from tabledrag.binding import EngineContext, TableBinding
from tabledrag.dom import ROW_HANDLE, Element, KeyEvent, PointerEvent, px
from tabledrag.geometry import normalize_ratios
from tabledrag.layout import row_height
from tabledrag.types import SizeRecord

ROW_INDEX_ATTR = "data-otd-row-index"
HANDLE_THICKNESS = 6


@dataclass
class _Drag:
    index: int
    pointer_id: int
    start_y: float
    start_height: float


class RowHandles:
    def __init__(self, ctx: EngineContext, binding: TableBinding) -> None:
        self._ctx = ctx
        self._binding = binding
        self._drag: _Drag | None = None
        self.handles: list[Element] = []

    def attach(self) -> None:
        table = self._binding.table
        existing = {h.attrs.get(ROW_INDEX_ATTR): h for h in table.find_all(cls=ROW_HANDLE)}
        for index, _row in enumerate(table.rows):
            handle = existing.get(str(index))
            if handle is None:
                handle = table.append(
                    Element(
                        "div",
                        classes=[ROW_HANDLE],
                        attrs={
                            "tabindex": "0",
                            "role": "separator",
                            "aria-label": f"Resize row {index + 1}",
                            ROW_INDEX_ATTR: str(index),
                        },
                    )
                )
            handle.add_event_listener("pointerdown", partial(self._on_pointer_down, index, handle))
            handle.add_event_listener("pointermove", self._on_pointer_move)
            handle.add_event_listener("pointerup", partial(self._on_pointer_up, handle))
            handle.add_event_listener("keydown", partial(self._on_key_down, index))
            self.handles.append(handle)
        self.position()

    def position(self) -> None:
        table = self._binding.table
        rows = table.rows
        for index, handle in enumerate(self.handles):
            if index >= len(rows):
                continue
            thickness = handle.rect.height or HANDLE_THICKNESS
            top = rows[index].rect.bottom - table.rect.top - thickness
            handle.style["top"] = px(max(0, top))
            handle.style["left"] = "0px"
            handle.style["width"] = px(max(0, table.rect.width))

    def _row(self, index: int) -> Element | None:
        rows = self._binding.table.rows
        return rows[index] if index < len(rows) else None

    # -- pointer -----------------------------------------------------------

    def _on_pointer_down(self, index: int, handle: Element, ev: PointerEvent) -> None:
        row = self._row(index)
        if row is None:
            return
        ev.prevent_default()
        ev.stop_propagation()
        self._drag = _Drag(index, ev.pointer_id, ev.client_y, row_height(row))
        handle.set_pointer_capture(ev.pointer_id)
        handle.focus()
        self._ctx.on_active(self._binding.table, self._binding.key)

    def _on_pointer_move(self, ev: PointerEvent) -> None:
        drag = self._drag
        row = self._row(drag.index) if drag is not None else None
        if drag is None or row is None:
            return
        target = max(
            self._ctx.settings.row_min_height_px,
            math.floor(drag.start_height + ev.client_y - drag.start_y),
        )
        row.style["height"] = px(target)

    def _on_pointer_up(self, handle: Element, ev: PointerEvent) -> None:
        drag = self._drag
        if drag is None:
            return
        self._drag = None
        handle.release_pointer_capture(drag.pointer_id)
        row = self._row(drag.index)
        if row is None:
            return
        height = max(self._ctx.settings.row_min_height_px, math.floor(row_height(row)))
        self._commit(drag.index, height, "persist-row-drag")

    # -- keyboard -----------------------------------------------------------

    def _on_key_down(self, index: int, ev: KeyEvent) -> None:
        row = self._row(index)
        if row is None:
            return
        settings = self._ctx.settings
        step = 1 if ev.precise else settings.row_keyboard_step_px
        if ev.key in ("ArrowUp", "ArrowDown"):
            delta = -step if ev.key == "ArrowUp" else step
            target = max(settings.row_min_height_px, math.floor(row_height(row) + delta))
            ev.prevent_default()
            row.style["height"] = px(target)
            self._commit(index, target, "persist-row-keyboard")
        elif ev.activates and row.style.get("height"):
            ev.prevent_default()
            del row.style["height"]
            self._commit(index, None, "clear-row-height")

    def _commit(self, index: int, height: float | None, event: str) -> None:
        """Update one row index of the stored map; ``None`` removes it."""
        store = self._ctx.store
        key_str = self._binding.key_str
        record = store.get(key_str)
        if record is None:
            record = SizeRecord(ratios=normalize_ratios(self._binding.col_widths()))
        row_heights = dict(record.row_heights or {})
        if height is None:
            row_heights.pop(index, None)
        else:
            row_heights[index] = height
        store.put(key_str, record.model_copy(update={"row_heights": row_heights or None}))
        self._ctx.log(event, key=key_str, row=index, height=height)
        self._binding.position_handles()
