"""Resizable table layouts with persisted column widths, row heights and breakout."""

from tabledrag.adaptation import ColumnAdaptationResolver
from tabledrag.breakout import BreakoutEngine, BreakoutOutcome, measure_context
from tabledrag.dom import Element, KeyEvent, PointerEvent, Rect, TableElement
from tabledrag.engine import TableEngine
from tabledrag.identity import canonical_key, compute_fingerprint, normalize_fingerprint
from tabledrag.markdown import render_document
from tabledrag.persistence import InMemoryPersistence, JsonFilePersistence, Persistence
from tabledrag.retry import BackoffPolicy, RetryTask
from tabledrag.scheduler import AsyncioScheduler, Scheduler
from tabledrag.settings import TableDragSettings, load_settings
from tabledrag.store import SizingStore
from tabledrag.types import ContextMeasurement, SizeRecord, TableKey

__all__ = [
    "AsyncioScheduler",
    "BackoffPolicy",
    "BreakoutEngine",
    "BreakoutOutcome",
    "ColumnAdaptationResolver",
    "ContextMeasurement",
    "Element",
    "InMemoryPersistence",
    "JsonFilePersistence",
    "KeyEvent",
    "Persistence",
    "PointerEvent",
    "Rect",
    "RetryTask",
    "Scheduler",
    "SizeRecord",
    "SizingStore",
    "TableDragSettings",
    "TableElement",
    "TableEngine",
    "TableKey",
    "canonical_key",
    "compute_fingerprint",
    "load_settings",
    "measure_context",
    "normalize_fingerprint",
    "render_document",
]
