"""Proposal models: kinds, lifecycle states and the serializable document."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from gridpilot.contracts.common import ChangeRecord
from gridpilot.contracts.grid import Row


class ProposalKind(str, Enum):
    OVERRIDE = "override"  # rows become the whole grid
    APPEND = "append"  # rows follow the existing rows


class ProposalStatus(str, Enum):
    """Delivery status reported by the proposal supplier."""

    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class ProposalState(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    REJECTED = "rejected"


class ProposalTarget(BaseModel):
    """Grid file a proposal was generated against."""

    file: str | None = None
    fingerprint: str | None = None


class ProposalDocument(BaseModel):
    """A proposal as written to disk by ``gridpilot propose``.

    ``rows`` holds the raw supplier payload; it is canonicalized when the
    document is turned into a live proposal.
    """

    schema_version: str = "1.0"
    proposal_id: str = ""
    kind: ProposalKind
    status: ProposalStatus = ProposalStatus.COMPLETE
    title: str | None = None
    target: ProposalTarget = Field(default_factory=ProposalTarget)
    rows: list[Any] = Field(default_factory=list)


class ProposalPreview(BaseModel):
    """What a reviewer sees before (and after) accepting a proposal."""

    kind: ProposalKind
    state: ProposalState
    status: ProposalStatus
    label: str
    can_accept: bool
    rows: tuple[Row, ...] = ()
    changes: list[ChangeRecord] = Field(default_factory=list)
