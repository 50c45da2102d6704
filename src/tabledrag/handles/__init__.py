"""Interactive resize handles."""

from tabledrag.handles.columns import ColumnHandles, HeaderMount, TableMount
from tabledrag.handles.outer import OuterWidthHandle
from tabledrag.handles.rows import RowHandles

__all__ = [
    "ColumnHandles",
    "HeaderMount",
    "OuterWidthHandle",
    "RowHandles",
    "TableMount",
]
