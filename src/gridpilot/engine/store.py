"""GridStore: the single owner and writer of the current grid snapshot."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from gridpilot.contracts.grid import Cell, CellPosition, Grid, Row
from gridpilot.engine.canonical import canonicalize
from gridpilot.observe.events import EventEmitter

GridConsumer = Callable[[Grid], None]


class GridStore:
    """Holds the accepted grid and publishes every replacement.

    All writes go through :meth:`replace`, which swaps in a new frozen
    ``Grid`` and notifies subscribers with it. With ``reconcile=True`` the
    commit helpers re-canonicalize the whole grid so it stays rectangular
    across mixed operations; otherwise only each incoming batch is.

    A consumer that raises does not undo the replacement; its error is kept
    for :meth:`drain_failures`.
    """

    def __init__(
        self,
        grid: Grid | None = None,
        *,
        reconcile: bool = False,
        emitter: EventEmitter | None = None,
    ) -> None:
        self._grid = grid if grid is not None else Grid()
        self.reconcile = reconcile
        self._emitter = emitter or EventEmitter()
        self._consumers: list[GridConsumer] = []
        self._failures: list[str] = []

    @property
    def grid(self) -> Grid:
        return self._grid

    def subscribe(self, consumer: GridConsumer) -> Callable[[], None]:
        """Register an outbound consumer. Returns an unsubscribe function."""
        self._consumers.append(consumer)

        def _unsubscribe() -> None:
            if consumer in self._consumers:
                self._consumers.remove(consumer)

        return _unsubscribe

    def replace(self, grid: Grid, *, reason: str = "replace") -> Grid:
        self._grid = grid
        self._emitter.emit("grid.replaced", {
            "reason": reason,
            "height": grid.height,
            "width": grid.width,
        })
        for consumer in list(self._consumers):
            try:
                consumer(grid)
            except Exception as e:
                # The new grid stays current; later consumers still run.
                self._failures.append(str(e))
                self._emitter.emit("grid.consumer_failed", {"reason": reason, "error": str(e)})
        return grid

    def drain_failures(self) -> list[str]:
        """Return and clear consumer errors raised since the last drain."""
        failures, self._failures = self._failures, []
        return failures

    def _commit_rows(self, rows: tuple[Row, ...], reason: str) -> Grid:
        if self.reconcile:
            rows = canonicalize(rows)
        return self.replace(self._grid.with_rows(rows), reason=reason)

    # -- commit paths -------------------------------------------------------

    def replace_rows(self, rows: Iterable[Row]) -> Grid:
        """Make *rows* the entire grid, keeping the title."""
        return self._commit_rows(tuple(rows), "replace_rows")

    def append_rows(self, rows: Iterable[Row]) -> Grid:
        """Concatenate *rows* after the existing rows, keeping the title."""
        return self._commit_rows(self._grid.rows + tuple(rows), "append_rows")

    # -- user edits ---------------------------------------------------------

    def set_title(self, title: str) -> Grid:
        return self.replace(self._grid.with_title(title), reason="set_title")

    def set_cell(self, position: CellPosition, value: str) -> Grid:
        """Replace one cell's value. Raises IndexError outside the grid."""
        rows = self._grid.rows
        if position.row >= len(rows) or position.column >= len(rows[position.row]):
            raise IndexError(f"Cell {position.ref} is outside the grid")
        row = rows[position.row]
        new_row = row[: position.column] + (Cell(value=value),) + row[position.column + 1:]
        new_rows = rows[: position.row] + (new_row,) + rows[position.row + 1:]
        return self.replace(self._grid.with_rows(new_rows), reason="set_cell")

    def add_row(self) -> Grid:
        """Append an empty row as wide as the grid (one cell for an empty grid)."""
        width = self._grid.width or 1
        new_row = tuple(Cell() for _ in range(width))
        return self.replace(self._grid.with_rows(self._grid.rows + (new_row,)), reason="add_row")

    def add_column(self) -> Grid:
        """Append an empty cell to every row."""
        new_rows = tuple(row + (Cell(),) for row in self._grid.rows)
        return self.replace(self._grid.with_rows(new_rows), reason="add_column")
