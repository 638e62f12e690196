"""Import grids from, and export grids to, .xlsx workbooks via openpyxl."""

from __future__ import annotations

import re
from io import BytesIO
from pathlib import Path
from typing import Any

import openpyxl
from openpyxl import Workbook

from gridpilot.contracts.common import GridCorruptError
from gridpilot.contracts.grid import Grid
from gridpilot.engine.canonical import canonicalize
from gridpilot.io.fileops import atomic_write

_INVALID_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")


def read_sheet_rows(path: str | Path, sheet: str | None = None) -> tuple[str, list[list[Any]]]:
    """Return ``(sheet_name, raw_rows)`` for a worksheet's used range.

    Values are cached results (``data_only=True``); formulas are out of scope.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Workbook not found: {p}")
    try:
        wb = openpyxl.load_workbook(str(p), data_only=True, read_only=True)
    except Exception as e:
        raise GridCorruptError(f"Cannot open workbook {p}: {e}") from e
    try:
        if sheet is None:
            ws = wb.worksheets[0]
        elif sheet in wb.sheetnames:
            ws = wb[sheet]
        else:
            raise KeyError(f"Sheet not found: {sheet}")
        rows = [list(values) for values in ws.iter_rows(values_only=True)]
        return ws.title, rows
    finally:
        wb.close()


def import_grid(path: str | Path, sheet: str | None = None, *, title: str | None = None) -> Grid:
    """Read a worksheet into a canonical grid titled after the sheet."""
    sheet_name, rows = read_sheet_rows(path, sheet)
    return Grid(title=title if title is not None else sheet_name, rows=canonicalize(rows))


def _sheet_title(title: str) -> str:
    cleaned = _INVALID_SHEET_CHARS.sub("_", title).strip()
    return cleaned[:31] or "Sheet1"


def export_grid(grid: Grid, path: str | Path) -> bytes:
    """Write *grid* to a single-sheet workbook. Returns the saved bytes."""
    wb = Workbook()
    ws = wb.active
    ws.title = _sheet_title(grid.title)
    for row in grid.rows:
        ws.append([cell.value for cell in row])
    buf = BytesIO()
    wb.save(buf)
    wb.close()
    data = buf.getvalue()
    atomic_write(path, data)
    return data
