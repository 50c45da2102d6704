"""Per-table binding state and the services handles share."""

from __future__ import annotations

import weakref
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Literal

from tabledrag.dom import Element, TableElement
from tabledrag.geometry import normalize_ratios
from tabledrag.layout import get_col_widths
from tabledrag.log import EventLog
from tabledrag.scheduler import Scheduler, Slot
from tabledrag.settings import TableDragSettings
from tabledrag.store import SizingStore
from tabledrag.types import SizeRecord, TableKey

if TYPE_CHECKING:
    from tabledrag.breakout import BreakoutEngine
    from tabledrag.handles.columns import ColumnHandles
    from tabledrag.handles.outer import OuterWidthHandle
    from tabledrag.handles.rows import RowHandles

BindState = Literal["unbound", "bound"]


@dataclass
class EngineContext:
    settings: TableDragSettings
    store: SizingStore
    scheduler: Scheduler
    breakout: BreakoutEngine
    log: EventLog
    on_active: Callable[[TableElement, TableKey], None] = lambda table, key: None


@dataclass(eq=False)
class TableBinding:
    """Engine-owned state of one table element.

    Bindings are values of a map weakly keyed by their table, so the table
    itself is only referenced weakly.
    """

    table_ref: weakref.ReferenceType[TableElement]
    key: TableKey
    key_str: str
    cols: list[Element] = field(default_factory=list)
    column_count: int = 0
    container_width: float = 0.0  # live width at bind time
    state: BindState = "unbound"

    # Ratios applied as percentages, waiting for a measurable width
    pending_percent: list[float] | None = None
    relayout: Slot = field(default_factory=Slot)

    column_handles: ColumnHandles | None = None
    outer_handle: OuterWidthHandle | None = None
    row_handles: RowHandles | None = None

    @property
    def table(self) -> TableElement:
        table = self.table_ref()
        if table is None:
            raise ReferenceError("table element no longer exists")
        return table

    def live_width(self) -> float:
        """Current table width, falling back to the bind-time width."""
        return self.table.rect.width if self.table.rect.width > 0 else self.container_width

    def col_widths(self) -> list[float]:
        return get_col_widths(self.cols, self.live_width())

    def position_handles(self) -> None:
        if self.column_handles is not None:
            self.column_handles.position()
        if self.outer_handle is not None:
            self.outer_handle.position()
        if self.row_handles is not None:
            self.row_handles.position()


def commit_columns(ctx: EngineContext, binding: TableBinding, event: str) -> SizeRecord:
    """Persist the live column widths, keeping row heights and table width."""
    widths = binding.col_widths()
    existing = ctx.store.get(binding.key_str)
    record = SizeRecord(
        ratios=normalize_ratios(widths),
        last_px_width=binding.live_width(),
        table_px_width=existing.table_px_width if existing else None,
        row_heights=existing.row_heights if existing else None,
    )
    record = ctx.store.put(binding.key_str, record)
    ctx.log(event, key=binding.key_str, ratios=record.ratios)
    return record
