"""Preview-commit protocol for assistant-proposed grid changes.

A ``ChangeProposal`` holds canonicalized candidate rows until the user
accepts or rejects them. Accepting invokes the commit action exactly once;
the proposal then stays committed forever. What "commit" means (replace the
whole grid, append to it) is decided by whoever builds the proposal.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from typing import Any

from gridpilot.config import CommitLabels, Settings
from gridpilot.contracts.grid import Grid, Row
from gridpilot.contracts.proposals import (
    ProposalDocument,
    ProposalKind,
    ProposalPreview,
    ProposalState,
    ProposalStatus,
)
from gridpilot.diff.differ import diff_grids
from gridpilot.engine.canonical import canonicalize
from gridpilot.engine.store import GridStore
from gridpilot.observe.events import EventEmitter

CommitAction = Callable[[tuple[Row, ...]], Any]


class ChangeProposal:
    """A staged grid mutation awaiting a single explicit accept."""

    def __init__(
        self,
        raw_rows: Any,
        *,
        pre_commit_label: str,
        post_commit_label: str,
        commit_action: CommitAction,
        kind: ProposalKind = ProposalKind.OVERRIDE,
        status: ProposalStatus = ProposalStatus.COMPLETE,
        title: str | None = None,
        proposal_id: str | None = None,
        emitter: EventEmitter | None = None,
    ) -> None:
        self.proposal_id = proposal_id or f"prp_{uuid.uuid4().hex[:12]}"
        self.kind = kind
        self.status = status
        self.title = title  # shown in previews; commits keep the grid's own title
        self.pre_commit_label = pre_commit_label
        self.post_commit_label = post_commit_label
        self.candidate_rows: tuple[Row, ...] = canonicalize(raw_rows)
        self._commit_action = commit_action
        self._emitter = emitter or EventEmitter()
        self._state = ProposalState.PENDING

    @property
    def state(self) -> ProposalState:
        return self._state

    @property
    def label(self) -> str:
        if self._state is ProposalState.COMMITTED:
            return self.post_commit_label
        return self.pre_commit_label

    @property
    def can_accept(self) -> bool:
        return self._state is ProposalState.PENDING and self.status is ProposalStatus.COMPLETE

    def update(self, raw_rows: Any, status: ProposalStatus | None = None) -> bool:
        """Refresh the candidate while the supplier is still streaming it."""
        if self._state is not ProposalState.PENDING:
            return False
        self.candidate_rows = canonicalize(raw_rows)
        if status is not None:
            self.status = status
        return True

    def accept(self) -> bool:
        """Commit the candidate. Returns False when nothing was committed.

        The state flips before the action runs so a re-entrant accept is a
        no-op. If the action raises, the proposal returns to pending.
        """
        if not self.can_accept:
            return False
        self._state = ProposalState.COMMITTED
        try:
            self._commit_action(self.candidate_rows)
        except Exception:
            self._state = ProposalState.PENDING
            raise
        self._emitter.emit("proposal.committed", {
            "proposal_id": self.proposal_id,
            "kind": self.kind.value,
            "rows": len(self.candidate_rows),
        })
        return True

    def reject(self) -> bool:
        if self._state is not ProposalState.PENDING:
            return False
        self._state = ProposalState.REJECTED
        self._emitter.emit("proposal.rejected", {"proposal_id": self.proposal_id})
        return True

    def project(self, base: Grid) -> Grid:
        """The grid that accepting would produce from *base*."""
        if self.kind is ProposalKind.APPEND:
            return base.with_rows(base.rows + self.candidate_rows)
        return base.with_rows(self.candidate_rows)

    def preview(self, base: Grid | None = None) -> ProposalPreview:
        changes = diff_grids(base, self.project(base)) if base is not None else []
        return ProposalPreview(
            kind=self.kind,
            state=self._state,
            status=self.status,
            label=self.label,
            can_accept=self.can_accept,
            rows=self.candidate_rows,
            changes=changes,
        )


def _labels_for(kind: ProposalKind, settings: Settings) -> CommitLabels:
    if kind is ProposalKind.APPEND:
        return settings.labels.append
    return settings.labels.override


def build_proposal(
    store: GridStore,
    kind: ProposalKind,
    raw_rows: Any,
    *,
    settings: Settings | None = None,
    status: ProposalStatus = ProposalStatus.COMPLETE,
    title: str | None = None,
    proposal_id: str | None = None,
    emitter: EventEmitter | None = None,
) -> ChangeProposal:
    """Build an override or append proposal that commits into *store*."""
    settings = settings or Settings()
    labels = _labels_for(kind, settings)
    action = store.append_rows if kind is ProposalKind.APPEND else store.replace_rows
    return ChangeProposal(
        raw_rows,
        pre_commit_label=labels.pre_commit,
        post_commit_label=labels.post_commit,
        commit_action=action,
        kind=kind,
        status=status,
        title=title,
        proposal_id=proposal_id,
        emitter=emitter,
    )


def override_proposal(store: GridStore, raw_rows: Any, **kwargs: Any) -> ChangeProposal:
    return build_proposal(store, ProposalKind.OVERRIDE, raw_rows, **kwargs)


def append_proposal(store: GridStore, raw_rows: Any, **kwargs: Any) -> ChangeProposal:
    return build_proposal(store, ProposalKind.APPEND, raw_rows, **kwargs)


def proposal_from_document(
    store: GridStore,
    document: ProposalDocument,
    *,
    settings: Settings | None = None,
    emitter: EventEmitter | None = None,
) -> ChangeProposal:
    return build_proposal(
        store,
        document.kind,
        document.rows,
        settings=settings,
        status=document.status,
        title=document.title,
        proposal_id=document.proposal_id or None,
        emitter=emitter,
    )
