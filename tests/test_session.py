"""Tests for the session event hub."""

from __future__ import annotations

import asyncio

import pytest

from gridpilot.config import Settings
from gridpilot.contracts.grid import CellPosition
from gridpilot.contracts.proposals import ProposalKind, ProposalState, ProposalStatus
from gridpilot.contracts.suggestions import SuggestionStatus
from gridpilot.engine.keys import KeyEvent
from gridpilot.engine.session import Session


def test_focus_issues_request(sample_grid):
    session = Session(sample_grid)
    session.focus(CellPosition(row=1, column=0))
    assert session.suggestion.is_loading
    assert session.last_request is not None
    assert session.context().active_cell_value == "Rent"


def test_blur_returns_to_idle(sample_grid):
    session = Session(sample_grid)
    session.focus(CellPosition(row=0, column=0))
    session.blur()
    assert session.suggestion.status is SuggestionStatus.IDLE


def test_edit_supersedes_outstanding_request(sample_grid):
    session = Session(sample_grid)
    session.focus(CellPosition(row=0, column=0))
    first = session.last_request
    session.edit_cell(CellPosition(row=2, column=1), "300")
    second = session.last_request
    assert second.key != first.key
    assert session.deliver_suggestion(first.key, {"rows": [["stale"]]}) is False
    assert session.deliver_suggestion(second.key, {"rows": [["fresh"]]}) is True


def test_shortcut_accepts_suggestion(sample_grid):
    session = Session(sample_grid)
    session.focus(CellPosition(row=0, column=0))
    session.deliver_suggestion(session.last_request.key, {"rows": [["A", "B"], ["C"]]})
    action = session.press_key(KeyEvent(key="k", ctrl=True))
    assert action is not None
    assert session.grid.to_values() == [["A", "B"], ["C", ""]]
    assert session.grid.title == "Budget"


def test_shortcut_without_suggestion_leaves_grid(sample_grid):
    session = Session(sample_grid)
    action = session.press_key(KeyEvent(key="k", meta=True))
    assert action is not None
    assert session.grid is sample_grid


def test_custom_shortcut_from_settings(sample_grid):
    session = Session(sample_grid, settings=Settings(shortcut="alt+j"))
    assert session.press_key(KeyEvent(key="k", ctrl=True)) is None
    assert session.press_key(KeyEvent(key="j", alt=True)) is not None


def test_propose_and_accept(sample_grid):
    session = Session(sample_grid)
    proposal = session.propose(ProposalKind.APPEND, [["Water", "40"]], proposal_id="p1")
    assert session.get_proposal("p1") is proposal
    assert session.accept_proposal("p1") is True
    assert session.accept_proposal("p1") is False
    assert session.grid.height == 4


def test_streamed_proposal_updates_in_place(sample_grid):
    session = Session(sample_grid)
    first = session.propose(ProposalKind.OVERRIDE, [["a"]], status=ProposalStatus.IN_PROGRESS, proposal_id="p1")
    second = session.propose(ProposalKind.OVERRIDE, [["a"], ["b"]], proposal_id="p1")
    assert first is second
    assert second.can_accept
    assert len(second.candidate_rows) == 2


def test_settled_proposal_is_not_reopened(sample_grid):
    session = Session(sample_grid)
    session.propose(ProposalKind.OVERRIDE, [["a"]], proposal_id="p1")
    session.reject_proposal("p1")
    again = session.propose(ProposalKind.OVERRIDE, [["b"]], proposal_id="p1")
    assert again.state is ProposalState.REJECTED
    assert again.candidate_rows[0][0].value == "a"


def test_unknown_proposal(sample_grid):
    with pytest.raises(KeyError):
        Session(sample_grid).accept_proposal("missing")


def test_subscribers_see_commits(sample_grid):
    seen = []
    session = Session(sample_grid)
    session.subscribe(seen.append)
    session.add_row()
    session.add_column()
    session.set_title("New")
    assert len(seen) == 3
    assert seen[-1].title == "New"
    assert seen[-1].width == 3


def test_supplier_dispatched_on_running_loop(sample_grid):
    calls = []

    async def supplier(request):
        calls.append(request.key)
        return {"rows": [["Item", "Cost"], ["Rent", "900"], ["Food", "250"]]}

    async def scenario():
        session = Session(sample_grid, supplier=supplier)
        session.focus(CellPosition(row=2, column=1))
        return session, await session.wait_for_suggestions()

    session, state = asyncio.run(scenario())
    assert len(calls) == 1
    assert state.is_available
    assert session.accept_suggestion() is True
    assert session.grid.value_at(CellPosition(row=2, column=1)) == "250"


def test_supplier_without_loop_waits_for_host(sample_grid):
    async def supplier(request):
        raise AssertionError("not called without a loop")

    session = Session(sample_grid, supplier=supplier)
    session.focus(CellPosition(row=0, column=0))
    assert session.suggestion.is_loading
