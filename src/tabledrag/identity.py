"""Table fingerprints and canonical storage keys."""

from __future__ import annotations

import json
from typing import Any

from tabledrag.dom import TableElement, cells_of
from tabledrag.types import TableKey


def normalize_fingerprint(fingerprint: str) -> str:
    """Strip the ``#index`` suffix the editing surface may append."""
    hash_at = fingerprint.find("#")
    return fingerprint[:hash_at] if hash_at >= 0 else fingerprint


def canonical_key(key: TableKey) -> str:
    """Serialized ``{path, canonical fingerprint}``; line ranges never count."""
    return _dumps({"path": key.path, "fingerprint": normalize_fingerprint(key.fingerprint)})


def parse_key(key_str: str) -> dict[str, Any]:
    """Decode a stored key; raises ``ValueError`` for anything malformed."""
    obj = json.loads(key_str)
    if not isinstance(obj, dict) or not isinstance(obj.get("path"), str):
        raise ValueError(f"not a table key: {key_str!r}")
    return obj


def stored_fingerprint(key_obj: dict[str, Any]) -> str:
    """Normalized fingerprint of a decoded key, legacy ``{"fp": ...}`` included."""
    fp = key_obj.get("fingerprint")
    if isinstance(fp, str):
        return normalize_fingerprint(fp)
    if isinstance(fp, dict) and isinstance(fp.get("fp"), str):
        return fp["fp"]
    return ""


def key_from_obj(key_obj: dict[str, Any]) -> TableKey:
    return TableKey(
        path=key_obj["path"],
        fingerprint=stored_fingerprint(key_obj),
        line_start=_int_or(key_obj.get("lineStart"), -1),
        line_end=_int_or(key_obj.get("lineEnd"), -1),
    )


def dump_key(key_obj: dict[str, Any]) -> str:
    return _dumps(key_obj)


def header_labels(fingerprint: str) -> list[str]:
    """Header labels encoded in ``"{count}:{a}|{b}|..."``."""
    fingerprint = normalize_fingerprint(fingerprint)
    _, sep, header = fingerprint.partition(":")
    if not sep or not header:
        return []
    return header.split("|")


def compute_fingerprint(table: TableElement) -> str:
    """``"{columnCount}:{label1}|{label2}|..."`` from the header row.

    Falls back to the first row's cells when the table has no ``<thead>`` so
    the reading and editing surfaces agree.
    """
    header_cells = table.header_cells()
    if not header_cells:
        first_row = table.find("tr")
        header_cells = cells_of(first_row) if first_row is not None else []
    header = "|".join(cell.text_content.strip() for cell in header_cells)
    return f"{table.column_count}:{header}"


def _dumps(obj: dict[str, Any]) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def _int_or(value: Any, default: int) -> int:
    return value if isinstance(value, int) else default
