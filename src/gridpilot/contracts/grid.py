"""Grid snapshot models: cells, rows, grids and cell positions."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Cell(BaseModel):
    """A single text cell. The value is always present."""

    model_config = ConfigDict(frozen=True)

    value: str = ""


Row = tuple[Cell, ...]


class CellPosition(BaseModel):
    """Zero-based coordinates of a focused cell."""

    model_config = ConfigDict(frozen=True)

    row: int = Field(ge=0)
    column: int = Field(ge=0)

    @property
    def ref(self) -> str:
        """A1-style reference for this position."""
        from openpyxl.utils import get_column_letter

        return f"{get_column_letter(self.column + 1)}{self.row + 1}"

    @classmethod
    def from_ref(cls, ref: str) -> "CellPosition":
        """Parse an A1-style reference such as ``B3``."""
        from openpyxl.utils.cell import column_index_from_string, coordinate_from_string

        try:
            letters, row = coordinate_from_string(ref.strip().upper())
        except Exception as e:
            raise ValueError(f"Invalid cell reference: {ref!r}") from e
        return cls(row=row - 1, column=column_index_from_string(letters) - 1)


class Grid(BaseModel):
    """Immutable spreadsheet snapshot: a title plus ordered rows of cells.

    Every mutation builds a new ``Grid``; rows are tuples so no snapshot
    shares a mutable row with another.
    """

    model_config = ConfigDict(frozen=True)

    title: str = ""
    rows: tuple[Row, ...] = ()

    @property
    def height(self) -> int:
        return len(self.rows)

    @property
    def width(self) -> int:
        return max((len(r) for r in self.rows), default=0)

    def is_rectangular(self) -> bool:
        return len({len(r) for r in self.rows}) <= 1

    def is_blank(self) -> bool:
        """True when every cell's stripped value is empty (or there are no cells)."""
        return all(not cell.value.strip() for row in self.rows for cell in row)

    def value_at(self, position: Optional[CellPosition]) -> str | None:
        """Return the text at *position*, or None when absent or out of bounds."""
        if position is None:
            return None
        if position.row >= len(self.rows):
            return None
        row = self.rows[position.row]
        if position.column >= len(row):
            return None
        return row[position.column].value

    def with_rows(self, rows: tuple[Row, ...]) -> "Grid":
        return Grid(title=self.title, rows=rows)

    def with_title(self, title: str) -> "Grid":
        return Grid(title=title, rows=self.rows)

    def to_values(self) -> list[list[str]]:
        return [[cell.value for cell in row] for row in self.rows]
