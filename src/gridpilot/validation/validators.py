"""Validation logic for grids and proposal documents."""

from __future__ import annotations

from typing import Any

from gridpilot.config import Settings
from gridpilot.contracts.grid import Grid
from gridpilot.contracts.proposals import ProposalDocument, ProposalKind, ProposalStatus
from gridpilot.contracts.responses import ValidationResult
from gridpilot.engine.canonical import canonicalize
from gridpilot.io.fileops import grid_fingerprint


def validate_proposal(
    grid: Grid,
    document: ProposalDocument,
    settings: Settings | None = None,
) -> ValidationResult:
    """Check a proposal document against the current grid and thresholds."""
    settings = settings or Settings()
    checks: list[dict[str, Any]] = []

    if document.target.fingerprint:
        actual = grid_fingerprint(grid)
        fp_ok = document.target.fingerprint == actual
        checks.append({
            "type": "fingerprint_match",
            "passed": fp_ok,
            "expected": document.target.fingerprint,
            "actual": actual,
            "message": "Fingerprint matches" if fp_ok else "Fingerprint mismatch: grid changed since proposal was created",
        })

    complete = document.status is ProposalStatus.COMPLETE
    checks.append({
        "type": "status_complete",
        "passed": complete,
        "message": "Proposal is complete" if complete else "Proposal is still in progress",
    })

    rows = canonicalize(document.rows)
    width = max((len(r) for r in rows), default=0)
    height = len(rows) + (grid.height if document.kind is ProposalKind.APPEND else 0)

    max_rows = settings.thresholds.max_rows
    if max_rows is not None:
        checks.append({
            "type": "row_threshold",
            "passed": height <= max_rows,
            "actual": height,
            "message": f"Grid would have {height} rows (max {max_rows})",
        })
    max_columns = settings.thresholds.max_columns
    if max_columns is not None:
        checks.append({
            "type": "column_threshold",
            "passed": width <= max_columns,
            "actual": width,
            "message": f"Proposal rows have {width} columns (max {max_columns})",
        })

    if document.kind is ProposalKind.APPEND and grid.rows and rows and width != grid.width:
        checks.append({
            "type": "width_match",
            "passed": True,
            "severity": "warning",
            "message": f"Appended rows have {width} columns, grid has {grid.width}",
        })

    valid = all(c.get("passed", True) for c in checks)
    return ValidationResult(valid=valid, checks=checks)


def validate_grid(grid: Grid) -> ValidationResult:
    """Run hygiene checks on a grid."""
    checks: list[dict[str, Any]] = []

    if not grid.is_rectangular():
        widths = sorted({len(r) for r in grid.rows})
        checks.append({
            "type": "grid_hygiene",
            "category": "ragged_rows",
            "passed": True,
            "severity": "warning",
            "message": f"Rows have differing widths: {widths}",
        })

    if grid.is_blank():
        checks.append({
            "type": "grid_hygiene",
            "category": "blank",
            "passed": True,
            "severity": "info",
            "message": "Grid has no content; suggestions stay idle.",
        })

    if not checks:
        checks.append({
            "type": "grid_hygiene",
            "passed": True,
            "message": "No issues detected.",
        })

    return ValidationResult(valid=True, checks=checks)
