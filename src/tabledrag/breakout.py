"""Overflow ("breakout") handling for tables wider than the readable column.

A table whose desired width exceeds the readable line width escapes the
column and spreads over the pane:

* on the editing surface the container (``cm-table-widget``) is widened to
  the pane and shifted with a transform, so the editor never gains a page
  level horizontal scrollbar;
* on the reading surface the table itself gets negative margins and an
  opaque background that paints over the centered column.

When the host has not laid out yet (zero pane or line width) the evaluation
is retried with exponential backoff and any existing styling is left alone.
"""

from __future__ import annotations

import logging
import math
import weakref
from dataclasses import dataclass, field
from typing import Callable, Literal

from tabledrag.dom import (
    BREAKOUT,
    BREAKOUT_EDITOR,
    EDITOR_CONTENT,
    EDITOR_GUTTERS,
    EDITOR_SCROLLER,
    EDITOR_SIZER,
    EDITOR_TABLE_WIDGET,
    INACTIVE,
    LEGACY_WRAPPER,
    READING_SIZER,
    READING_VIEWS,
    Element,
    parse_px,
    px,
)
from tabledrag.geometry import round_half_up
from tabledrag.log import EventLog
from tabledrag.retry import BackoffPolicy, RetryTask
from tabledrag.scheduler import Scheduler, Slot
from tabledrag.settings import TableDragSettings
from tabledrag.types import UNMEASURED, ContextMeasurement

logger = logging.getLogger(__name__)

BreakoutOutcome = Literal["skipped", "deferred", "applied", "cleared", "gave-up"]
MeasureFn = Callable[[Element], ContextMeasurement]

CENTER_INTERVAL_MS = 50  # at most 20 recenterings per second while dragging
BREAKOUT_STYLES = (
    "width",
    "margin-left",
    "margin-right",
    "transform",
    "overflow-x",
    "position",
    "z-index",
    "padding-left",
    "padding-right",
    "background",
)


def _width(el: Element | None) -> float:
    return el.measured_width if el is not None else 0.0


def measure_context(el: Element) -> ContextMeasurement:
    """Measure the surface hosting *el*.

    Offsets are taken from element rects so they match the pane edges
    exactly; a symmetric split is used when the editor content is missing.
    """
    scroller = el.closest(EDITOR_SCROLLER)
    sizer = el.closest(EDITOR_SIZER)
    if scroller is not None and sizer is not None:
        pane_client = _width(scroller)
        content = el.closest(EDITOR_CONTENT) or scroller.find(cls=EDITOR_CONTENT)
        line_width = _width(content) or _width(sizer)
        gutter = _width(scroller.find(cls=EDITOR_GUTTERS))
        pane = max(0.0, pane_client - gutter)
        if content is not None:
            pane_left = scroller.rect.left + gutter
            pane_right = scroller.rect.left + pane_client
            left = max(0, round_half_up(content.rect.left - pane_left))
            right = max(0, round_half_up(pane_right - content.rect.right))
        else:
            left = right = max(0.0, (pane - line_width) / 2)
        return ContextMeasurement("editor", pane, line_width, left, right)

    reading = el.closest(*READING_VIEWS)
    preview_sizer = el.closest(READING_SIZER)
    if reading is not None and preview_sizer is not None:
        left = max(0, round_half_up(preview_sizer.rect.left - reading.rect.left))
        right = max(0, round_half_up(reading.rect.right - preview_sizer.rect.right))
        return ContextMeasurement("reading", _width(reading), _width(preview_sizer), left, right)

    logger.debug(
        "No host surface around %r (reading=%s, sizer=%s)",
        el,
        reading is not None,
        preview_sizer is not None,
    )
    return UNMEASURED


@dataclass
class _TableState:
    pending: Slot = field(default_factory=Slot)
    retry: RetryTask | None = None
    outcome: BreakoutOutcome = "skipped"
    centered: bool = False
    outer_drag: bool = False
    last_center_at: float = float("-inf")
    # Width written onto a table that breaks out by itself, and the one it replaced
    own_width: str | None = None
    layout_width: str | None = None


class BreakoutEngine:
    def __init__(
        self,
        settings: TableDragSettings,
        scheduler: Scheduler,
        *,
        measure: MeasureFn = measure_context,
        policy: BackoffPolicy | None = None,
        log: EventLog | None = None,
    ) -> None:
        self._settings = settings
        self._scheduler = scheduler
        self._measure = measure
        self._policy = policy or BackoffPolicy()
        self._log = log or EventLog(settings)
        self._states: weakref.WeakKeyDictionary[Element, _TableState] = weakref.WeakKeyDictionary()

    def _state(self, table: Element) -> _TableState:
        state = self._states.get(table)
        if state is None:
            state = self._states[table] = _TableState()
        return state

    # ── Drag coordination ────────────────────────────────────────────

    def set_outer_drag_active(self, table: Element, active: bool) -> None:
        self._state(table).outer_drag = active

    def is_outer_drag_active(self, table: Element) -> bool:
        state = self._states.get(table)
        return state is not None and state.outer_drag

    def is_centered(self, table: Element) -> bool:
        state = self._states.get(table)
        return state is not None and state.centered

    # ── Scheduling ───────────────────────────────────────────────────

    def schedule(self, table: Element, delay_ms: float = 0) -> bool:
        """Evaluate on the next frame, after *delay_ms* if given.

        Returns ``False`` when an evaluation is already pending.
        """
        scheduler = self._scheduler
        table_ref = weakref.ref(table)

        def evaluate() -> None:
            live = table_ref()
            if live is not None:
                self.update(live)

        def schedule_frame(fire: Callable[[], None]):
            if delay_ms > 0:
                return scheduler.call_later(delay_ms, lambda: scheduler.request_frame(fire))
            return scheduler.request_frame(fire)

        return self._state(table).pending.arm(schedule_frame, evaluate)

    def update(self, table: Element) -> BreakoutOutcome:
        """Evaluate now.

        An unmeasurable host yields ``"deferred"`` while retries remain and
        ``"gave-up"`` once the backoff policy is exhausted.
        """
        state = self._state(table)
        if state.retry is None:
            # The state is the value of a weak-keyed map; it must not own the table
            table_ref = weakref.ref(table)

            def attempt() -> bool:
                live = table_ref()
                return live is None or self._evaluate(live, state)

            state.retry = RetryTask(
                attempt,
                self._scheduler,
                self._policy,
                on_exhausted=lambda: self._log("breakout-give-up"),
            )
        if state.retry.run():
            return state.outcome
        return "deferred" if state.retry.armed else "gave-up"

    def _evaluate(self, table: Element, state: _TableState) -> bool:
        if not table.visible or INACTIVE in table.classes:
            self._log("breakout-skip-inactive", classes=sorted(table.classes))
            state.outcome = "skipped"
            return True
        ctx = self._measure(table)
        if not ctx.measurable:
            self._log(
                "breakout-skip-noctx",
                host=ctx.host,
                pane_width=ctx.pane_width,
                line_width=ctx.line_width,
                retries=state.retry.retries if state.retry else 0,
            )
            return False
        state.outcome = self._apply(table, ctx, state)
        return True

    # ── Application ──────────────────────────────────────────────────

    def container_for(self, table: Element) -> Element:
        """The element that breaks out: the editor widget, else the table."""
        return table.closest(EDITOR_TABLE_WIDGET) or table

    def desired_width(self, table: Element) -> float:
        """Intrinsic width, or the layout width when that is wider.

        A pane width this engine wrote onto the table is not a layout width.
        """
        intrinsic = max(table.scroll_width, table.offset_width, 0)
        width = table.style.get("width")
        state = self._states.get(table)
        if state is not None and state.own_width is not None and width == state.own_width:
            width = state.layout_width
        return max(intrinsic, parse_px(width))

    def _apply(self, table: Element, ctx: ContextMeasurement, state: _TableState) -> BreakoutOutcome:
        desired = self.desired_width(table)
        if desired <= ctx.line_width + 1:
            self.clear(table)
            return "cleared"

        bleed = self._settings.bleed_px
        left_adj = max(0.0, ctx.left_offset - bleed)
        right_adj = max(0.0, ctx.right_offset - bleed)
        pane_avail = max(0.0, ctx.pane_width - bleed * 2)
        scrolls = desired > pane_avail + 1
        pad = 0 if scrolls else max(0, math.floor((pane_avail - desired) / 2))

        if ctx.host == "editor":
            self.cleanup_legacy_wrapper(table)
            el = self.container_for(table)
            if el is table:
                current = table.style.get("width")
                if state.own_width is None or current != state.own_width:
                    state.layout_width = current
                state.own_width = px(pane_avail)
            el.style.update(
                {
                    "width": px(pane_avail),
                    "transform": f"translateX({-math.floor(left_adj)}px)",
                    "overflow-x": "auto" if scrolls else "visible",
                    "position": "relative",
                    "z-index": "1",
                    "padding-left": px(pad),
                    "padding-right": px(pad),
                },
            )
            el.add_class(BREAKOUT_EDITOR)
            if scrolls and not state.outer_drag and not state.centered:
                el.scroll_left = max(0, math.floor((max(el.scroll_width, desired) - pane_avail) / 2))
                state.centered = True
        else:
            self.remove_wrapper(table)
            table.style.update(
                {
                    "margin-left": f"{-math.floor(left_adj)}px",
                    "margin-right": f"{-math.floor(right_adj)}px",
                    "overflow-x": "auto" if scrolls else "visible",
                    "position": "relative",
                    "z-index": "10",
                    "background": "var(--background-primary)",
                    "padding-left": px(pad),
                    "padding-right": px(pad),
                },
            )
            table.add_class(BREAKOUT)

        self._log(
            "breakout-apply",
            host=ctx.host,
            pane_width=ctx.pane_width,
            line_width=ctx.line_width,
            desired=desired,
            side=ctx.side_margin,
        )
        return "applied"

    def clear(self, table: Element) -> None:
        """Remove every breakout style, class and wrapper.

        The table's own ``width`` belongs to the stored layout and stays,
        unless breakout wrote it; then the layout width is put back.
        """
        container = self.container_for(table)
        state = self._states.get(table)
        for name in BREAKOUT_STYLES:
            if name != "width" or container is not table:
                container.style.pop(name, None)
            if name != "width":
                table.style.pop(name, None)
        if state is not None and state.own_width is not None:
            if table.style.get("width") == state.own_width:
                if state.layout_width is None:
                    table.style.pop("width", None)
                else:
                    table.style["width"] = state.layout_width
            state.own_width = state.layout_width = None
        container.remove_class(BREAKOUT_EDITOR)
        table.remove_class(BREAKOUT)
        self.remove_wrapper(table)
        if state is not None:
            state.centered = False

    def cleanup_legacy_wrapper(self, table: Element) -> None:
        """Unwrap a legacy wrapper placed directly around the table."""
        _unwrap(table)

    def remove_wrapper(self, table: Element) -> None:
        self.cleanup_legacy_wrapper(table)
        _unwrap(self.container_for(table))

    def center_during_resize(self, table: Element, target_total: float) -> bool:
        """Keep an already scrollable breakout container centered on *target_total*.

        Throttled while the outer drag is active.  Only the scroll position
        changes; transforms are left for the full evaluation on release.
        """
        state = self._state(table)
        if state.outer_drag:
            now = self._scheduler.now_ms()
            if now - state.last_center_at < CENTER_INTERVAL_MS:
                return False
            state.last_center_at = now

        container = self.container_for(table)
        if container.style.get("overflow-x") != "auto" or not (
            container.classes & {BREAKOUT, BREAKOUT_EDITOR}
        ):
            return False
        ctx = self._measure(table)
        if not ctx.measurable:
            return False
        pane_avail = max(0.0, ctx.pane_width - self._settings.bleed_px * 2)
        container.scroll_left = max(0, math.floor((target_total - pane_avail) / 2))
        self._log("outer-drag-center", target_total=target_total, pane_avail=pane_avail)
        return True


def _unwrap(el: Element) -> None:
    wrapper = el.parent
    if wrapper is None or LEGACY_WRAPPER not in wrapper.classes:
        return
    outer = wrapper.parent
    if outer is not None:
        outer.insert_before(el, wrapper)
    wrapper.remove()
