"""Tests for proposal and grid validation."""

from __future__ import annotations

from conftest import make_grid
from gridpilot.config import Settings, Thresholds
from gridpilot.contracts.proposals import ProposalDocument, ProposalKind, ProposalStatus, ProposalTarget
from gridpilot.io.fileops import grid_fingerprint
from gridpilot.validation.validators import validate_grid, validate_proposal


def _checks(result) -> dict[str, dict]:
    return {c["type"]: c for c in result.checks}


def test_valid_proposal(sample_grid):
    document = ProposalDocument(
        kind=ProposalKind.OVERRIDE,
        target=ProposalTarget(fingerprint=grid_fingerprint(sample_grid)),
        rows=[["a", "b"]],
    )
    result = validate_proposal(sample_grid, document)
    assert result.valid
    assert _checks(result)["fingerprint_match"]["passed"]


def test_fingerprint_mismatch(sample_grid):
    document = ProposalDocument(
        kind=ProposalKind.OVERRIDE,
        target=ProposalTarget(fingerprint="sha256:stale"),
        rows=[["a"]],
    )
    result = validate_proposal(sample_grid, document)
    assert not result.valid
    assert _checks(result)["fingerprint_match"]["actual"] == grid_fingerprint(sample_grid)


def test_without_fingerprint_skips_check(sample_grid):
    result = validate_proposal(sample_grid, ProposalDocument(kind=ProposalKind.OVERRIDE, rows=[]))
    assert result.valid
    assert "fingerprint_match" not in _checks(result)


def test_in_progress_is_invalid(sample_grid):
    document = ProposalDocument(kind=ProposalKind.APPEND, status=ProposalStatus.IN_PROGRESS, rows=[["a"]])
    assert not validate_proposal(sample_grid, document).valid


def test_append_row_threshold_counts_existing_rows(sample_grid):
    settings = Settings(thresholds=Thresholds(max_rows=4))
    one = ProposalDocument(kind=ProposalKind.APPEND, rows=[["a", "b"]])
    two = ProposalDocument(kind=ProposalKind.APPEND, rows=[["a", "b"], ["c", "d"]])
    assert validate_proposal(sample_grid, one, settings).valid
    assert not validate_proposal(sample_grid, two, settings).valid


def test_column_threshold(sample_grid):
    settings = Settings(thresholds=Thresholds(max_columns=2))
    document = ProposalDocument(kind=ProposalKind.OVERRIDE, rows=[["a", "b", "c"]])
    result = validate_proposal(sample_grid, document, settings)
    assert not result.valid
    assert _checks(result)["column_threshold"]["actual"] == 3


def test_ragged_append_is_a_warning(sample_grid):
    document = ProposalDocument(kind=ProposalKind.APPEND, rows=[["a", "b", "c"]])
    result = validate_proposal(sample_grid, document)
    assert result.valid
    assert _checks(result)["width_match"]["severity"] == "warning"


def test_grid_hygiene(sample_grid, blank_grid):
    assert validate_grid(sample_grid).checks[0]["message"] == "No issues detected."
    ragged = validate_grid(make_grid([["a", "b"], ["c"]]))
    assert ragged.valid
    assert ragged.checks[0]["category"] == "ragged_rows"
    assert validate_grid(blank_grid).checks[-1]["category"] == "blank"
