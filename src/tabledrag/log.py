"""Debug event channel and console logging setup."""

from __future__ import annotations

import logging
from typing import Any

from tabledrag.settings import TableDragSettings

logger = logging.getLogger("tabledrag.events")


class EventLog:
    """Named debug events emitted by the engine.

    Events are dropped unless ``enable_debug_logs`` is set; their details are
    only attached when ``debug_verbose`` is set as well.  The most recent
    ``debug_buffer_size`` events are kept for inspection.  Settings are read
    on every call so toggling them takes effect immediately.
    """

    def __init__(self, settings: TableDragSettings) -> None:
        self._settings = settings
        self._entries: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, event: str, **details: Any) -> None:
        if not self._settings.enable_debug_logs:
            return
        verbose = self._settings.debug_verbose
        self._entries.append((event, details if verbose else {}))
        overflow = len(self._entries) - self._settings.debug_buffer_size
        if overflow > 0:
            del self._entries[:overflow]
        if verbose and details:
            logger.debug("%s %s", event, details)
        else:
            logger.debug("%s", event)

    def recent(self) -> list[tuple[str, dict[str, Any]]]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()


def configure_logging(level: str = "WARNING") -> None:
    """Console logging for command-line use."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
