"""Canonicalizer: turn assistant-supplied row data into a rectangular grid.

Input comes from an untrusted generator, so nothing here raises. Rows may be
plain sequences of cells or the assistant's wire shape ``{"cells": [...]}``;
cells may be ``{"value": ...}`` mappings, ``Cell`` models, bare scalars or
missing entirely. The output width is the widest input row and shorter rows
are padded with empty cells.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

import orjson

from gridpilot.contracts.grid import Cell, Grid, Row

_EMPTY = Cell()


def coerce_text(value: Any) -> str:
    """Render a single cell value as text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, (Mapping, list, tuple)):
        try:
            return orjson.dumps(value, option=orjson.OPT_SORT_KEYS).decode()
        except TypeError:
            return str(value)
    return str(value)


def _cell_value(raw: Any) -> Any:
    if isinstance(raw, Cell):
        return raw.value
    if isinstance(raw, Mapping):
        return raw.get("value")
    if raw is None or isinstance(raw, (str, int, float, bool)):
        return raw
    if hasattr(raw, "value"):
        return getattr(raw, "value", None)
    return raw


def _safe_text(raw: Any) -> str:
    try:
        return coerce_text(_cell_value(raw))
    except Exception:
        return ""


def _row_texts(raw: Any) -> list[str]:
    try:
        cells = _row_cells(raw)
    except Exception:
        return []
    return [_safe_text(c) for c in cells]


def _row_cells(raw: Any) -> list[Any]:
    if isinstance(raw, Mapping):
        cells = raw.get("cells")
        if cells is None or isinstance(cells, (str, bytes, Mapping)):
            return []
        raw = cells
    elif isinstance(raw, (str, bytes)):
        return [raw.decode(errors="replace") if isinstance(raw, bytes) else raw]
    if not isinstance(raw, Iterable):
        return []
    try:
        return list(raw)
    except Exception:
        return []


def canonicalize(raw_rows: Any) -> tuple[Row, ...]:
    """Normalize *raw_rows* into equal-length rows of text cells.

    Pure and deterministic; applying it to its own output returns the same
    rows.
    """
    if raw_rows is None or isinstance(raw_rows, (str, bytes, Mapping)):
        return ()
    if not isinstance(raw_rows, Iterable):
        return ()
    try:
        raw_list = list(raw_rows)
    except Exception:
        return ()

    texts = [_row_texts(r) for r in raw_list]
    width = max((len(t) for t in texts), default=0)
    rows: list[Row] = []
    for values in texts:
        cells = [Cell(value=v) for v in values]
        cells.extend(_EMPTY for _ in range(width - len(cells)))
        rows.append(tuple(cells))
    return tuple(rows)


def canonicalize_grid(raw_rows: Any, title: str = "") -> Grid:
    """Canonicalize rows and wrap them in a ``Grid``."""
    return Grid(title=title, rows=canonicalize(raw_rows))


def rows_payload(rows: Iterable[Row]) -> list[dict[str, Any]]:
    """Serialize rows into the assistant's ``{"cells": [{"value": ...}]}`` shape."""
    return [{"cells": [{"value": cell.value} for cell in row]} for row in rows]
