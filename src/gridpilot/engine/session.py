"""Session: the single event hub in front of the grid store.

Every host event (focus, blur, edit, proposal, key press, supplier result)
enters through a ``Session`` method. The session owns the store, the
active-cell tracker, the suggestion cycle and the live proposals, and
refreshes the suggestion context after every change.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from gridpilot.config import Settings
from gridpilot.contracts.grid import CellPosition, Grid
from gridpilot.contracts.proposals import ProposalKind, ProposalStatus
from gridpilot.contracts.suggestions import RequestContext, SuggestionRequest, SuggestionState
from gridpilot.engine.keys import KeyAction, KeyEvent, Shortcut, map_key_event
from gridpilot.engine.proposal import ChangeProposal, build_proposal
from gridpilot.engine.store import GridConsumer, GridStore
from gridpilot.engine.suggestions import SuggestionCycle, SuggestionSupplier, build_context
from gridpilot.engine.tracker import ActiveCellTracker
from gridpilot.observe.events import EventEmitter


class Session:
    """One user editing one grid, with an assistant on the side."""

    def __init__(
        self,
        grid: Grid | None = None,
        *,
        settings: Settings | None = None,
        supplier: SuggestionSupplier | None = None,
        emitter: EventEmitter | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.emitter = emitter or EventEmitter(enabled=self.settings.events)
        self.store = GridStore(grid, reconcile=self.settings.reconcile_on_commit, emitter=self.emitter)
        self.tracker = ActiveCellTracker()
        self.suggestions = SuggestionCycle(instructions=self.settings.instructions, emitter=self.emitter)
        self.shortcut = Shortcut.parse(self.settings.shortcut)
        self.supplier = supplier
        self.proposals: dict[str, ChangeProposal] = {}
        self.last_request: SuggestionRequest | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self.store.subscribe(self._on_grid_changed)

    # -- views ----------------------------------------------------------------

    @property
    def grid(self) -> Grid:
        return self.store.grid

    @property
    def suggestion(self) -> SuggestionState:
        return self.suggestions.state

    def context(self) -> RequestContext:
        return build_context(self.store.grid, self.tracker)

    def subscribe(self, consumer: GridConsumer) -> Callable[[], None]:
        """Register an outbound grid consumer (persistence, rendering, ...)."""
        return self.store.subscribe(consumer)

    # -- focus ----------------------------------------------------------------

    def focus(self, position: CellPosition) -> None:
        self.tracker.activate(position)
        self._refresh()

    def blur(self) -> None:
        self.tracker.deactivate()
        self._refresh()

    # -- user edits -------------------------------------------------------------

    def edit_cell(self, position: CellPosition, value: str) -> Grid:
        return self.store.set_cell(position, value)

    def set_title(self, title: str) -> Grid:
        return self.store.set_title(title)

    def add_row(self) -> Grid:
        return self.store.add_row()

    def add_column(self) -> Grid:
        return self.store.add_column()

    # -- proposals ------------------------------------------------------------

    def propose(
        self,
        kind: ProposalKind,
        raw_rows: Any,
        *,
        status: ProposalStatus = ProposalStatus.COMPLETE,
        title: str | None = None,
        proposal_id: str | None = None,
    ) -> ChangeProposal:
        """Stage a proposal, or refresh a pending one delivered under the same id.

        A settled proposal is returned unchanged when its id is delivered again.
        """
        existing = self.proposals.get(proposal_id) if proposal_id else None
        if existing is not None:
            existing.update(raw_rows, status)
            return existing
        proposal = build_proposal(
            self.store,
            kind,
            raw_rows,
            settings=self.settings,
            status=status,
            title=title,
            proposal_id=proposal_id,
            emitter=self.emitter,
        )
        self.proposals[proposal.proposal_id] = proposal
        return proposal

    def get_proposal(self, proposal_id: str) -> ChangeProposal:
        if proposal_id not in self.proposals:
            raise KeyError(f"Proposal not found: {proposal_id}")
        return self.proposals[proposal_id]

    def accept_proposal(self, proposal_id: str) -> bool:
        return self.get_proposal(proposal_id).accept()

    def reject_proposal(self, proposal_id: str) -> bool:
        return self.get_proposal(proposal_id).reject()

    # -- suggestions ------------------------------------------------------------

    def press_key(self, event: KeyEvent) -> KeyAction | None:
        """Handle a key press; the shortcut triggers suggestion accept."""
        action = map_key_event(event, self.shortcut)
        if action is not None:
            self.accept_suggestion()
        return action

    def accept_suggestion(self) -> bool:
        return self.suggestions.accept(self.store)

    def deliver_suggestion(self, key: str, payload: Any) -> bool:
        return self.suggestions.deliver(key, payload)

    def fail_suggestion(self, key: str, error: BaseException | str | None = None) -> bool:
        return self.suggestions.fail(key, error)

    async def wait_for_suggestions(self) -> SuggestionState:
        """Wait until every dispatched supplier call has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
        return self.suggestions.state

    def _on_grid_changed(self, grid: Grid) -> None:
        self._refresh()

    def _refresh(self) -> None:
        request = self.suggestions.refresh(self.context())
        if request is None:
            return
        self.last_request = request
        if self.supplier is not None:
            self._dispatch(request)

    def _dispatch(self, request: SuggestionRequest) -> None:
        # Without a running loop the host delivers results via deliver_suggestion.
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self.suggestions.resolve(request, self.supplier))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
