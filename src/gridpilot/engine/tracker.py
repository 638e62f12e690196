"""Active-cell tracking."""

from __future__ import annotations

from typing import Optional

from gridpilot.contracts.grid import CellPosition, Grid


class ActiveCellTracker:
    """Remembers the focused cell. At most one position is active."""

    def __init__(self) -> None:
        self._position: Optional[CellPosition] = None

    def activate(self, position: CellPosition) -> None:
        self._position = position

    def deactivate(self) -> None:
        self._position = None

    def current(self) -> Optional[CellPosition]:
        return self._position

    def value_in(self, grid: Grid) -> str | None:
        """Text of the active cell in *grid*; None when unfocused or out of bounds.

        The grid may have shrunk since the position was recorded.
        """
        return grid.value_at(self._position)
