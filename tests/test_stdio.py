"""Tests for the JSON-lines session server."""

from __future__ import annotations

import io
import json
from pathlib import Path

from gridpilot.io.fileops import load_grid
from gridpilot.server.stdio import StdioServer


def _call(server: StdioServer, command: str, **args) -> dict:
    return server.handle_request({"id": command, "command": command, "args": args})


def test_grid_get(sample_grid):
    response = _call(StdioServer(sample_grid), "grid.get")
    assert response["ok"] is True
    assert response["id"] == "grid.get"
    assert response["result"]["title"] == "Budget"
    assert response["suggestion"]["status"] == "idle"
    assert "request" not in response


def test_focus_returns_request(sample_grid):
    server = StdioServer(sample_grid)
    response = _call(server, "cell.focus", row=1, column=1)
    assert response["result"]["value"] == "900"
    assert response["suggestion"]["status"] == "loading"
    request = response["request"]
    assert request["key"] == response["suggestion"]["key"]
    assert request["context"]["rows"][0]["cells"][0] == {"value": "Item"}

    # Re-focusing the same cell issues nothing new.
    assert "request" not in _call(server, "cell.focus", row=1, column=1)


def test_deliver_and_accept_via_shortcut(sample_grid):
    server = StdioServer(sample_grid)
    key = _call(server, "cell.focus", row=2, column=1)["request"]["key"]
    delivered = _call(server, "suggestion.deliver", key=key,
                      payload={"rows": [["Item", "Cost"], ["Rent", "900"], ["Food", "250"]]})
    assert delivered["result"]["delivered"] is True
    assert delivered["suggestion"]["status"] == "available"

    pressed = _call(server, "key.press", key="k", ctrl=True)
    assert pressed["result"]["action"]["command"] == "accept_suggestion"
    assert pressed["result"]["accepted"] is True
    assert server.session.grid.to_values()[2] == ["Food", "250"]


def test_stale_delivery_is_ignored(sample_grid):
    server = StdioServer(sample_grid)
    old_key = _call(server, "cell.focus", row=0, column=0)["request"]["key"]
    _call(server, "cell.set", row=0, column=0, value="Thing")
    response = _call(server, "suggestion.deliver", key=old_key, payload={"rows": [["x"]]})
    assert response["result"]["delivered"] is False
    assert response["suggestion"]["status"] == "loading"


def test_proposal_flow(sample_grid):
    server = StdioServer(sample_grid)
    staged = _call(server, "proposal.append", rows=[[{"value": "Water"}, {"value": 40}]], proposal_id="p1")
    assert staged["result"]["label"] == "Append rows"
    assert staged["result"]["changes"][0]["target"] == "A4"

    accepted = _call(server, "proposal.accept", proposal_id="p1")
    assert accepted["result"]["committed"] is True
    assert accepted["result"]["label"] == "Rows appended"
    again = _call(server, "proposal.accept", proposal_id="p1")
    assert again["result"]["committed"] is False
    assert server.session.grid.height == 4


def test_reject(sample_grid):
    server = StdioServer(sample_grid)
    _call(server, "proposal.override", rows=[["x"]], proposal_id="p1")
    response = _call(server, "proposal.reject", proposal_id="p1")
    assert response["result"]["rejected"] is True
    assert response["result"]["state"] == "rejected"
    assert server.session.grid == sample_grid


def test_unknown_proposal(sample_grid):
    response = _call(StdioServer(sample_grid), "proposal.accept", proposal_id="nope")
    assert response["ok"] is False
    assert "Proposal not found" in response["error"]


def test_unknown_command():
    response = _call(StdioServer(), "unknown.cmd")
    assert response["ok"] is False
    assert "Unknown command" in response["error"]


def test_edit_outside_grid(sample_grid):
    response = _call(StdioServer(sample_grid), "cell.set", row=9, column=0, value="x")
    assert response["ok"] is False


def test_changes_are_persisted(grid_file: Path):
    server = StdioServer(load_grid(grid_file), file=grid_file)
    _call(server, "grid.title", title="Saved")
    _call(server, "row.add")
    grid = load_grid(grid_file)
    assert grid.title == "Saved"
    assert grid.height == 4


def test_run_loop(sample_grid, monkeypatch, capsys):
    lines = [
        json.dumps({"id": "1", "command": "grid.get"}),
        "",
        "not json",
        json.dumps([1, 2]),
        json.dumps({"id": "2", "command": "close"}),
        json.dumps({"id": "3", "command": "grid.get"}),
    ]
    monkeypatch.setattr("sys.stdin", io.StringIO("\n".join(lines) + "\n"))
    StdioServer(sample_grid).run()
    responses = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [r["ok"] for r in responses] == [True, False, False, True]
    assert responses[-1]["result"] == "closed"


def test_failed_save_is_reported_as_warning(tmp_path: Path, sample_grid):
    server = StdioServer(sample_grid, file=tmp_path / "missing" / "grid.json")
    response = _call(server, "cell.set", row=0, column=0, value="z")
    assert response["ok"] is True
    assert response["result"]["rows"][0][0] == {"value": "z"}
    assert response["warnings"][0].startswith("Grid consumer failed:")
    assert server.session.grid.to_values()[0] == ["z", "Cost"]

    # Failures are reported once.
    assert "warnings" not in _call(server, "grid.get")
