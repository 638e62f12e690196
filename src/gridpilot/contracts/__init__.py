"""Pydantic models for grids, proposals, suggestions and responses."""

from gridpilot.contracts.common import (
    ChangeRecord,
    ErrorDetail,
    Metrics,
    ResponseEnvelope,
    Target,
    WarningDetail,
)
from gridpilot.contracts.grid import Cell, CellPosition, Grid, Row
from gridpilot.contracts.proposals import (
    ProposalDocument,
    ProposalKind,
    ProposalPreview,
    ProposalState,
    ProposalStatus,
    ProposalTarget,
)
from gridpilot.contracts.responses import (
    CommitResult,
    DiffSummary,
    GridMeta,
    ValidationResult,
)
from gridpilot.contracts.suggestions import (
    RequestContext,
    SuggestionRequest,
    SuggestionState,
    SuggestionStatus,
)

__all__ = [
    "Cell",
    "CellPosition",
    "ChangeRecord",
    "CommitResult",
    "DiffSummary",
    "ErrorDetail",
    "Grid",
    "GridMeta",
    "Metrics",
    "ProposalDocument",
    "ProposalKind",
    "ProposalPreview",
    "ProposalState",
    "ProposalStatus",
    "ProposalTarget",
    "RequestContext",
    "ResponseEnvelope",
    "Row",
    "SuggestionRequest",
    "SuggestionState",
    "SuggestionStatus",
    "Target",
    "ValidationResult",
    "WarningDetail",
]
