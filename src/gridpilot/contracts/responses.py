"""Command-specific result models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class GridMeta(BaseModel):
    """Metadata returned by ``grid show``."""

    path: str | None = None
    title: str = ""
    fingerprint: str = ""
    height: int = 0
    width: int = 0
    rectangular: bool = True
    blank: bool = True


class ValidationResult(BaseModel):
    """Result of validating a proposal against a grid."""

    valid: bool = True
    checks: list[dict[str, Any]] = Field(default_factory=list)


class CommitResult(BaseModel):
    """Result of the ``commit`` command."""

    committed: bool = False
    dry_run: bool = False
    kind: str = ""
    backup_path: str | None = None
    rows_committed: int = 0
    fingerprint_before: str = ""
    fingerprint_after: str | None = None


class DiffSummary(BaseModel):
    """Summary of changes between two grids."""

    total_changes: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    rows_before: int = 0
    rows_after: int = 0
    columns_before: int = 0
    columns_after: int = 0
