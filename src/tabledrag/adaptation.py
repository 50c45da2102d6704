"""Carry column widths across structural edits of a table."""

from __future__ import annotations

import logging

from tabledrag.geometry import normalize_ratios, round_half_up
from tabledrag.identity import header_labels
from tabledrag.log import EventLog
from tabledrag.settings import TableDragSettings
from tabledrag.store import SizingStore
from tabledrag.types import SizeRecord, TableKey

logger = logging.getLogger(__name__)


class ColumnAdaptationResolver:
    """Derives widths for a table from the newest record of its document.

    With an unchanged column count widths carry over by position (a header
    rename).  Otherwise live headers are aligned left to right against the
    historical ones; recognized columns keep their width and inserted ones
    get the minimum width.
    """

    def __init__(
        self,
        store: SizingStore,
        settings: TableDragSettings,
        log: EventLog | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._log = log or EventLog(settings)

    def adapt(
        self,
        key: TableKey,
        resolved_key: str,
        column_count: int,
        container_width: float,
    ) -> list[float] | None:
        """Persist and return adapted pixel widths, or ``None`` on failure."""
        entry = self._store.most_recent_for_path(key.path)
        if entry is None:
            return None
        historical = entry.record
        base = historical.table_px_width or historical.last_px_width or container_width
        old_px = [round_half_up(r * base) for r in historical.ratios]

        if len(old_px) == column_count:
            widths = [float(w) for w in old_px]
        else:
            widths = self.align(
                header_labels(key.fingerprint),
                header_labels(entry.key.fingerprint),
                old_px,
                column_count,
            )

        total = sum(widths)
        if total <= 0:
            logger.debug("Adaptation for %s produced no usable width", resolved_key)
            return None

        self._store.put(
            resolved_key,
            SizeRecord(
                ratios=normalize_ratios(widths),
                last_px_width=container_width if container_width > 0 else total,
                table_px_width=total if historical.table_px_width else None,
            ),
        )
        self._log("adapt-columns", key=resolved_key, source=entry.key_str, widths=widths)
        return widths

    def align(
        self,
        live_labels: list[str],
        old_labels: list[str],
        old_px: list[float],
        column_count: int,
    ) -> list[float]:
        """Left-to-right subsequence alignment of live against old headers."""
        min_width = float(self._settings.min_column_width_px)
        widths: list[float] = []
        cursor = 0
        for index in range(column_count):
            label = live_labels[index] if index < len(live_labels) else None
            if (
                label is not None
                and cursor < len(old_labels)
                and cursor < len(old_px)
                and label == old_labels[cursor]
            ):
                widths.append(float(old_px[cursor]))
                cursor += 1
            else:
                widths.append(min_width)
        return widths
