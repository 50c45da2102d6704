"""Whole-table width handle on the table's right edge."""

from __future__ import annotations

from tabledrag.binding import EngineContext, TableBinding
from tabledrag.dom import OUTER_HANDLE, Element, KeyEvent, PointerEvent, px
from tabledrag.geometry import clamp_total, normalize_ratios, resize_total
from tabledrag.layout import apply_col_widths, set_table_width
from tabledrag.scheduler import Slot
from tabledrag.types import SizeRecord


class OuterWidthHandle:
    """Resizes every column at once, in ``edge`` or ``scale`` mode.

    Pointer moves only record the latest target total; one frame applies it.
    """

    def __init__(self, ctx: EngineContext, binding: TableBinding) -> None:
        self._ctx = ctx
        self._binding = binding
        self._frame = Slot()
        self._pending_total: float | None = None
        self._start_widths: list[float] = []
        self._start_x = 0.0
        self._pointer_id: int | None = None
        self.handle: Element | None = None

    def attach(self) -> None:
        table = self._binding.table
        handle = table.find(cls=OUTER_HANDLE)
        if handle is None:
            handle = table.append(
                Element(
                    "div",
                    classes=[OUTER_HANDLE],
                    attrs={"role": "separator", "aria-label": "Resize table width", "tabindex": "0"},
                )
            )
            self._ctx.log("outer-mounted", key=self._binding.key_str)
        handle.add_event_listener("pointerdown", self._on_pointer_down)
        handle.add_event_listener("pointermove", self._on_pointer_move)
        handle.add_event_listener("pointerup", self._on_pointer_up)
        handle.add_event_listener("keydown", self._on_key_down)
        self.handle = handle
        self.position()

    def position(self) -> None:
        if self.handle is None:
            return
        self.handle.style["top"] = "0px"
        self.handle.style["height"] = px(max(0, self._binding.table.rect.height))
        self.handle.style["right"] = "-2px"

    @property
    def dragging(self) -> bool:
        return self._pointer_id is not None

    # -- pointer -----------------------------------------------------------

    def _on_pointer_down(self, ev: PointerEvent) -> None:
        ev.prevent_default()
        ev.stop_propagation()
        self._start_x = ev.client_x
        self._start_widths = self._binding.col_widths()
        self._pointer_id = ev.pointer_id
        self._ctx.breakout.set_outer_drag_active(self._binding.table, True)
        if self.handle is not None:
            self.handle.set_pointer_capture(ev.pointer_id)
        self._ctx.on_active(self._binding.table, self._binding.key)
        self._ctx.log(
            "outer-ptrdown", key=self._binding.key_str, start_px=self._start_widths, start_x=ev.client_x
        )

    def _on_pointer_move(self, ev: PointerEvent) -> None:
        if self._pointer_id is None:
            return
        self._pending_total = self._clamp(sum(self._start_widths) + ev.client_x - self._start_x)
        self._frame.arm(self._ctx.scheduler.request_frame, self._apply_frame)

    def _on_pointer_up(self, ev: PointerEvent) -> None:
        if self._pointer_id is None:
            return
        table = self._binding.table
        if self.handle is not None:
            self.handle.release_pointer_capture(self._pointer_id)
        self._pointer_id = None
        self._ctx.breakout.set_outer_drag_active(table, False)
        self._frame.flush()

        widths = self._binding.col_widths()
        total = sum(widths)
        self._commit(widths, total)
        self._ctx.breakout.update(table)
        self._ctx.breakout.schedule(table)
        self._ctx.log(
            "outer-drag", key=self._binding.key_str, mode=self._ctx.settings.outer_handle_mode, total=total
        )

    def _apply_frame(self) -> None:
        target = self._pending_total
        self._pending_total = None
        if target is None:
            return
        self._apply_total(self._start_widths, target)
        self._ctx.breakout.center_during_resize(self._binding.table, target)
        self._binding.position_handles()

    # -- keyboard -----------------------------------------------------------

    def _on_key_down(self, ev: KeyEvent) -> None:
        if ev.key not in ("ArrowLeft", "ArrowRight"):
            return
        ev.prevent_default()
        step = 1 if ev.precise else self._ctx.settings.keyboard_step_px
        widths = self._binding.col_widths()
        delta = -step if ev.key == "ArrowLeft" else step
        target = self._clamp(sum(widths) + delta)
        nxt = self._apply_total(widths, target)
        table = self._binding.table
        self._ctx.breakout.center_during_resize(table, target)
        self._ctx.breakout.update(table)
        self._commit(nxt, target)
        self._binding.position_handles()

    # -- helpers -----------------------------------------------------------

    def _clamp(self, target: float) -> float:
        settings = self._ctx.settings
        return clamp_total(
            target,
            self._binding.column_count,
            settings.min_column_width_px,
            settings.outer_max_width_px,
        )

    def _apply_total(self, widths: list[float], target: float) -> list[float]:
        settings = self._ctx.settings
        nxt = resize_total(widths, target, settings.outer_handle_mode, settings.min_column_width_px)
        apply_col_widths(self._binding.cols, nxt, settings.min_column_width_px)
        set_table_width(self._binding.table, target)
        return nxt

    def _commit(self, widths: list[float], total: float) -> None:
        existing = self._ctx.store.get(self._binding.key_str)
        self._ctx.store.put(
            self._binding.key_str,
            SizeRecord(
                ratios=normalize_ratios(widths),
                last_px_width=total,
                table_px_width=total,
                row_heights=existing.row_heights if existing else None,
            ),
        )
