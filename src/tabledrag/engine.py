"""TableEngine: binds tables, materializes their layout and owns the handles.

Lifecycle of a table element is ``unbound -> bound``.  Binding happens once
per element; a repeated notification for a bound element only re-applies
the stored widths and re-evaluates overflow, so handles and listeners are
never duplicated.
"""

from __future__ import annotations

import logging
import math
import weakref

from tabledrag.adaptation import ColumnAdaptationResolver
from tabledrag.binding import EngineContext, TableBinding
from tabledrag.breakout import BreakoutEngine, BreakoutOutcome, MeasureFn, measure_context
from tabledrag.dom import MANAGED, WRAP, Element, TableElement
from tabledrag.geometry import normalize_ratios, round_half_up
from tabledrag.handles.columns import ColumnHandles
from tabledrag.handles.outer import OuterWidthHandle
from tabledrag.handles.rows import RowHandles
from tabledrag.identity import compute_fingerprint
from tabledrag.layout import (
    apply_col_widths,
    apply_ratios_as_percent,
    apply_row_heights,
    clear_row_heights,
    container_width,
    ensure_colgroup,
    ratios_to_px,
    set_table_width,
)
from tabledrag.log import EventLog
from tabledrag.materialize import build_materialized_html
from tabledrag.retry import BackoffPolicy
from tabledrag.scheduler import AsyncioScheduler, Scheduler
from tabledrag.settings import TableDragSettings
from tabledrag.store import SizingStore
from tabledrag.types import SizeRecord, TableKey

logger = logging.getLogger(__name__)

INITIAL_BREAKOUT_DELAY_MS = 50


class TableEngine:
    def __init__(
        self,
        store: SizingStore,
        settings: TableDragSettings | None = None,
        scheduler: Scheduler | None = None,
        *,
        measure: MeasureFn = measure_context,
        retry_policy: BackoffPolicy | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or TableDragSettings()
        self.scheduler = scheduler or AsyncioScheduler()
        self.log = EventLog(self.settings)
        self.breakout = BreakoutEngine(
            self.settings, self.scheduler, measure=measure, policy=retry_policy, log=self.log
        )
        self.adaptation = ColumnAdaptationResolver(store, self.settings, self.log)
        self._ctx = EngineContext(
            settings=self.settings,
            store=store,
            scheduler=self.scheduler,
            breakout=self.breakout,
            log=self.log,
            on_active=self._set_active,
        )
        self._bindings: weakref.WeakKeyDictionary[TableElement, TableBinding] = (
            weakref.WeakKeyDictionary()
        )
        self.last_active: tuple[TableElement, TableKey] | None = None

    def _set_active(self, table: TableElement, key: TableKey) -> None:
        self.last_active = (table, key)

    def binding_for(self, table: TableElement) -> TableBinding | None:
        return self._bindings.get(table)

    def is_bound(self, table: TableElement) -> bool:
        binding = self._bindings.get(table)
        return binding is not None and binding.state == "bound"

    @staticmethod
    def compute_fingerprint(table: TableElement) -> str:
        return compute_fingerprint(table)

    # ── Binding ──────────────────────────────────────────────────────

    def bind_table(self, table: TableElement, key: TableKey) -> TableBinding | None:
        """Bind *table*; returns ``None`` when there is nothing to resize."""
        key_str = self.store.resolve_canonical_key(key)

        binding = self._bindings.get(table)
        if binding is not None and binding.state == "bound":
            self.apply_stored_layout(table, key)
            self.breakout.update(table)
            return binding

        column_count = table.column_count
        if column_count < 2:
            self.log("bind-skip", key=key_str, columns=column_count)
            return None

        binding = TableBinding(
            table_ref=weakref.ref(table),
            key=key,
            key_str=key_str,
            cols=ensure_colgroup(table, column_count),
            column_count=column_count,
            container_width=container_width(table),
        )
        self._bindings[table] = binding

        stored = self.store.get(key_str)
        if stored is not None and len(stored.ratios) == column_count:
            self._apply_record(binding, stored)
        else:
            self._initialize(binding)

        if self.settings.wrap_long_text:
            table.add_class(WRAP)
        else:
            table.remove_class(WRAP)
        table.add_class(MANAGED)

        stored = self.store.get(key_str)
        apply_row_heights(
            table, stored.row_heights if stored else None, self.settings.row_min_height_px
        )

        self._attach_handles(binding)
        binding.state = "bound"
        self.breakout.schedule(table, INITIAL_BREAKOUT_DELAY_MS)
        return binding

    def _apply_record(self, binding: TableBinding, record: SizeRecord) -> None:
        table = binding.table
        min_width = self.settings.min_column_width_px
        if record.table_px_width and record.table_px_width > 0:
            set_table_width(table, record.table_px_width)
            base = record.table_px_width
        else:
            base = binding.container_width

        if base > 0:
            widths = ratios_to_px(record.ratios, base, min_width)
            apply_col_widths(binding.cols, widths, min_width)
            self.log("apply-px", key=binding.key_str, container=base, px=widths)
        else:
            apply_ratios_as_percent(binding.cols, record.ratios)
            binding.pending_percent = list(record.ratios)
            self.log("apply-percent", key=binding.key_str, ratios=record.ratios)

    def _initialize(self, binding: TableBinding) -> None:
        table = binding.table
        min_width = self.settings.min_column_width_px
        width = binding.container_width
        count = binding.column_count

        adapted = self.adaptation.adapt(binding.key, binding.key_str, count, width)
        if adapted is not None:
            record = self.store.get(binding.key_str)
            if record is not None and record.table_px_width:
                set_table_width(table, record.table_px_width)
            apply_col_widths(binding.cols, adapted, min_width)
            return

        header_cells = table.header_cells()
        if len(header_cells) == count:
            widths = [max(min_width, round_half_up(th.rect.width)) for th in header_cells]
        else:
            widths = [max(min_width, math.floor(max(1.0, width) / count))] * count
        ratios = normalize_ratios([max(1, w) for w in widths])
        self.store.put(binding.key_str, SizeRecord(ratios=ratios, last_px_width=max(1.0, width)))
        self.log("init-ratios", key=binding.key_str, ratios=ratios)
        apply_col_widths(binding.cols, widths, min_width)

    def _attach_handles(self, binding: TableBinding) -> None:
        binding.column_handles = ColumnHandles(self._ctx, binding)
        binding.column_handles.attach()
        binding.column_handles.position()
        if self.settings.show_outer_width_handle:
            binding.outer_handle = OuterWidthHandle(self._ctx, binding)
            binding.outer_handle.attach()
        if self.settings.enable_row_resize:
            binding.row_handles = RowHandles(self._ctx, binding)
            binding.row_handles.attach()

    def bind_all(
        self,
        root: Element,
        path: str,
        line_start: int | None = None,
        line_end: int | None = None,
    ) -> int:
        """Bind every table under a rendered section; returns how many bound.

        Line numbers are advisory: the n-th table of the section gets the
        section's lines offset by n.
        """
        tables = [el for el in (root, *root.iter()) if isinstance(el, TableElement)]
        bound = 0
        for index, table in enumerate(tables):
            try:
                key = TableKey(
                    path=path,
                    fingerprint=compute_fingerprint(table),
                    line_start=line_start + index if line_start is not None else -1,
                    line_end=line_end + index if line_end is not None else -1,
                )
                if self.bind_table(table, key) is not None:
                    bound += 1
            except Exception as exc:
                logger.warning("Failed to attach resizers to table %d of %s: %s", index, path, exc)
        return bound

    # ── Re-application ───────────────────────────────────────────────

    def apply_stored_layout(self, table: TableElement, key: TableKey) -> bool:
        """Re-apply a stored, length-matching record in pixels."""
        column_count = table.column_count
        if column_count < 2:
            return False
        cols = ensure_colgroup(table, column_count)
        key_str = self.store.resolve_canonical_key(key)
        record = self.store.get(key_str)
        if record is None or len(record.ratios) != column_count:
            return False
        if record.table_px_width and record.table_px_width > 0:
            set_table_width(table, record.table_px_width)
        base = record.table_px_width or container_width(table) or record.last_px_width or 0
        if base <= 0:
            return False
        min_width = self.settings.min_column_width_px
        widths = ratios_to_px(record.ratios, base, min_width)
        apply_col_widths(cols, widths, min_width)
        table.add_class(MANAGED)

        binding = self._bindings.get(table)
        if binding is not None:
            binding.cols = cols
            binding.pending_percent = None
        self.log("reapply-px", key=key_str, container=base, px=widths)
        return True

    def notify_resized(self, table: TableElement) -> bool:
        """The table changed size; re-layout on the next frame (coalesced)."""
        binding = self._bindings.get(table)
        if binding is None or binding.state != "bound":
            return False
        if self.breakout.is_outer_drag_active(table):
            return False
        return binding.relayout.arm(self.scheduler.request_frame, lambda: self._relayout(binding))

    def _relayout(self, binding: TableBinding) -> None:
        table = binding.table_ref()
        if table is None:
            return
        if binding.pending_percent is not None and table.rect.width > 0:
            min_width = self.settings.min_column_width_px
            widths = ratios_to_px(binding.pending_percent, table.rect.width, min_width)
            apply_col_widths(binding.cols, widths, min_width)
            binding.pending_percent = None
            self.log("apply-px-late", key=binding.key_str, container=table.rect.width, px=widths)
        binding.position_handles()
        self.breakout.schedule(table)

    def notify_pane_resized(self, table: TableElement) -> BreakoutOutcome | None:
        """The hosting pane changed width; re-evaluate overflow now."""
        if not self.is_bound(table):
            return None
        return self.breakout.update(table)

    # ── Document-level operations ────────────────────────────────────

    def on_document_renamed(self, old_path: str, new_path: str) -> int:
        rewritten = self.store.rekey_path(old_path, new_path)
        for binding in list(self._bindings.values()):
            if binding.key.path == old_path:
                binding.key = binding.key.model_copy(update={"path": new_path})
                binding.key_str = self.store.resolve_canonical_key(binding.key)
        self.log("rekey", old=old_path, new=new_path, count=rewritten)
        return rewritten

    def reset_table(self, table: TableElement, key: TableKey) -> bool:
        """Equal split at the current width, dropping row heights and table width."""
        binding = self.bind_table(table, key)
        if binding is None:
            return False
        width = sum(binding.col_widths()) or binding.live_width()
        count = binding.column_count
        min_width = self.settings.min_column_width_px
        widths = [max(min_width, math.floor(max(1.0, width) / count))] * count

        table.style.pop("width", None)
        apply_col_widths(binding.cols, widths, min_width)
        clear_row_heights(table)
        binding.pending_percent = None
        self.store.put(
            binding.key_str,
            SizeRecord(ratios=normalize_ratios(widths), last_px_width=max(1.0, width)),
        )
        self.log("reset-table", key=binding.key_str, px=widths)
        binding.position_handles()
        self.breakout.update(table)
        return True

    def materialize(self, table: TableElement, key: TableKey) -> str | None:
        """Static HTML of *table* with its stored widths as percentages."""
        record = self.store.get(self.store.resolve_canonical_key(key))
        if record is None or not record.ratios:
            return None
        return build_materialized_html(table, record)
