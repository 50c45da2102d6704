"""Core data types.

Persisted types are Pydantic models: snake_case attributes with camelCase
aliases so stored JSON stays compatible with existing data files.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

RATIO_TOLERANCE = 1e-3

HostKind = Literal["editor", "reading", "unknown"]

STORE_VERSION = 1


class TableKey(BaseModel):
    """Identity of a rendered table.

    Line ranges are advisory only; they never take part in the canonical
    identity (see :func:`tabledrag.identity.canonical_key`).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    path: str
    fingerprint: str
    line_start: int = Field(default=-1, alias="lineStart")
    line_end: int = Field(default=-1, alias="lineEnd")


class SizeRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ratios: list[float]
    last_px_width: float | None = Field(default=None, alias="lastPxWidth")
    table_px_width: float | None = Field(default=None, alias="tablePxWidth")
    row_heights: dict[int, float] | None = Field(default=None, alias="rowHeights")
    updated_at: int = Field(default=0, alias="updatedAt")

    @field_validator("ratios")
    @classmethod
    def _check_ratios(cls, ratios: list[float]) -> list[float]:
        if any(not r > 0 for r in ratios):
            raise ValueError("ratios must be positive")
        if ratios and abs(sum(ratios) - 1) > RATIO_TOLERANCE:
            raise ValueError(f"ratios sum to {sum(ratios):g}, not 1")
        return ratios

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class StoreData(BaseModel):
    tables: dict[str, SizeRecord] = Field(default_factory=dict)
    version: int = STORE_VERSION


@dataclass(frozen=True)
class ContextMeasurement:
    """Snapshot of the surface hosting a table, in CSS pixels."""

    host: HostKind
    pane_width: float  # usable pane width (editor gutters excluded)
    line_width: float  # readable line width
    left_offset: float  # readable column start -> pane left edge
    right_offset: float  # readable column end -> pane right edge

    @property
    def side_margin(self) -> float:
        return self.left_offset

    @property
    def measurable(self) -> bool:
        return self.pane_width > 0 and self.line_width > 0


UNMEASURED = ContextMeasurement("unknown", 0, 0, 0, 0)
