"""User-facing settings with defaults and tolerant loading.

Settings are persisted alongside the table data under ``"settings"`` but
loaded independently: whatever is stored is merged over the defaults, unknown
fields are ignored (forward compatibility) and invalid values fall back to
their defaults.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

DoubleClickAction = Literal["autofit", "reset", "none"]
OuterHandleMode = Literal["edge", "scale"]
HandleMount = Literal["table", "header"]


class TableDragSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", validate_assignment=True)

    min_column_width_px: int = Field(default=60, ge=1, alias="minColumnWidthPx")
    require_alt_to_drag: bool = Field(default=False, alias="requireAltToDrag")
    snap_step_px: int = Field(default=8, ge=0, alias="snapStepPx")
    keyboard_step_px: int = Field(default=8, ge=1, alias="keyboardStepPx")
    double_click_action: DoubleClickAction = Field(default="autofit", alias="doubleClickAction")
    wrap_long_text: bool = Field(default=True, alias="wrapLongText")
    enable_row_resize: bool = Field(default=True, alias="enableRowResize")
    row_min_height_px: int = Field(default=24, ge=1, alias="rowMinHeightPx")
    row_keyboard_step_px: int = Field(default=4, ge=1, alias="rowKeyboardStepPx")

    # Outer width handle
    show_outer_width_handle: bool = Field(default=True, alias="showOuterWidthHandle")
    outer_handle_mode: OuterHandleMode = Field(default="edge", alias="outerHandleMode")
    outer_max_width_px: int = Field(default=0, ge=0, alias="outerMaxWidthPx")  # 0 = unbounded

    # Breakout gutter from the pane edges
    bleed_wide_tables: bool = Field(default=True, alias="bleedWideTables")
    bleed_gutter_px: int = Field(default=16, ge=0, alias="bleedGutterPx")

    handle_mount: HandleMount = Field(default="table", alias="handleMount")

    # Diagnostics
    enable_debug_logs: bool = Field(default=False, alias="enableDebugLogs")
    debug_verbose: bool = Field(default=False, alias="debugVerbose")
    debug_buffer_size: int = Field(default=500, ge=50, alias="debugBufferSize")

    @property
    def bleed_px(self) -> int:
        """Gutter kept on each side of a broken-out table."""
        return max(0, self.bleed_gutter_px) if self.bleed_wide_tables else 0


def settings_payload(settings: TableDragSettings) -> dict[str, Any]:
    """Settings as stored on disk (camelCase keys)."""
    return settings.model_dump(by_alias=True)


def load_settings(raw: dict[str, Any] | None) -> TableDragSettings:
    """Build settings from a stored ``settings`` object.

    ``None`` values are skipped so they never override a default.  A field
    that fails validation is dropped (its default wins) and a warning is
    logged; the remaining fields still apply.
    """
    if not isinstance(raw, dict):
        return TableDragSettings()
    values = {k: v for k, v in raw.items() if v is not None}
    while True:
        try:
            return TableDragSettings.model_validate(values)
        except ValidationError as exc:
            bad: set[str] = set()
            for err in exc.errors():
                if err.get("loc"):
                    bad |= _spellings(str(err["loc"][0]))
            bad &= set(values)
            if not bad:
                raise
            for name in sorted(bad):
                logger.warning("Ignoring invalid setting %s=%r", name, values.pop(name))


def _spellings(name: str) -> set[str]:
    """Both the attribute name and the alias of a settings field."""
    for field_name, info in TableDragSettings.model_fields.items():
        if name in (field_name, info.alias):
            return {field_name, info.alias or field_name}
    return {name}
