"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from openpyxl import Workbook

from gridpilot.contracts.grid import Cell, Grid
from gridpilot.io.fileops import save_grid


def make_grid(values: list[list[str]], title: str = "Budget") -> Grid:
    """Build a Grid from a nested list of strings."""
    return Grid(title=title, rows=tuple(tuple(Cell(value=v) for v in row) for row in values))


@pytest.fixture()
def sample_grid() -> Grid:
    return make_grid([
        ["Item", "Cost"],
        ["Rent", "900"],
        ["Food", ""],
    ])


@pytest.fixture()
def blank_grid() -> Grid:
    return make_grid([["", " "], ["", ""]], title="Empty")


@pytest.fixture()
def grid_file(tmp_path: Path, sample_grid: Grid) -> Path:
    path = tmp_path / "grid.json"
    save_grid(path, sample_grid)
    return path


@pytest.fixture()
def blank_grid_file(tmp_path: Path, blank_grid: Grid) -> Path:
    path = tmp_path / "blank.json"
    save_grid(path, blank_grid)
    return path


@pytest.fixture()
def assistant_rows() -> list[dict]:
    """Rows in the assistant's wire shape, deliberately ragged."""
    return [
        {"cells": [{"value": "Item"}, {"value": "Cost"}, {"value": "Note"}]},
        {"cells": [{"value": "Rent"}, {"value": 900}]},
        {"cells": [{}]},
    ]


@pytest.fixture()
def rows_file(tmp_path: Path, assistant_rows: list[dict]) -> Path:
    path = tmp_path / "rows.json"
    path.write_text(json.dumps(assistant_rows))
    return path


@pytest.fixture()
def sample_xlsx(tmp_path: Path) -> Path:
    """A workbook with a ragged 'Budget' sheet and a second empty sheet."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Budget"
    ws.append(["Item", "Cost", "Paid"])
    ws.append(["Rent", 900, True])
    ws.append(["Food", 250.5])
    wb.create_sheet("Other")
    path = tmp_path / "budget.xlsx"
    wb.save(str(path))
    wb.close()
    return path
