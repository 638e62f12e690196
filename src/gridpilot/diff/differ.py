"""Grid diff logic: compare two grid snapshots cell by cell."""

from __future__ import annotations

from openpyxl.utils import get_column_letter

from gridpilot.contracts.common import ChangeRecord
from gridpilot.contracts.grid import CellPosition, Grid
from gridpilot.contracts.responses import DiffSummary


def diff_grids(before: Grid, after: Grid) -> list[ChangeRecord]:
    """Return one ChangeRecord per differing cell (plus the title, if changed)."""
    changes: list[ChangeRecord] = []
    if before.title != after.title:
        changes.append(ChangeRecord(
            type="title.modified",
            target="title",
            before=before.title,
            after=after.title,
        ))

    max_row = max(before.height, after.height)
    max_col = max(before.width, after.width)
    for row in range(max_row):
        for col in range(max_col):
            pos = CellPosition(row=row, column=col)
            val_a = before.value_at(pos)
            val_b = after.value_at(pos)
            if val_a == val_b:
                continue
            if val_a is None:
                change_type = "cell.added"
            elif val_b is None:
                change_type = "cell.removed"
            else:
                change_type = "cell.modified"
            changes.append(ChangeRecord(
                type=change_type,
                target=f"{get_column_letter(col + 1)}{row + 1}",
                before=val_a,
                after=val_b,
            ))
    return changes


def summarize_diff(before: Grid, after: Grid, changes: list[ChangeRecord]) -> DiffSummary:
    by_type: dict[str, int] = {}
    for change in changes:
        by_type[change.type] = by_type.get(change.type, 0) + 1
    return DiffSummary(
        total_changes=len(changes),
        by_type=by_type,
        rows_before=before.height,
        rows_after=after.height,
        columns_before=before.width,
        columns_after=after.width,
    )
