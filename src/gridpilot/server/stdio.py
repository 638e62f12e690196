"""stdio server mode: JSON line-delimited protocol over stdin/stdout.

One server hosts one :class:`Session`. The host UI sends editing events,
assistant proposals and suggestion results; every response carries the
current suggestion state, plus a ``request`` when the command caused a new
suggestion request that the host should forward to the assistant. Results
come back through ``suggestion.deliver`` tagged with the request key.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

from gridpilot.config import Settings
from gridpilot.contracts.grid import CellPosition, Grid
from gridpilot.contracts.proposals import ProposalKind, ProposalStatus
from gridpilot.engine.keys import KeyEvent
from gridpilot.engine.session import Session
from gridpilot.io.fileops import GridLock, save_grid


class StdioServer:
    """Simple JSON-RPC-like server over stdin/stdout."""

    def __init__(
        self,
        grid: Grid | None = None,
        *,
        settings: Settings | None = None,
        file: str | Path | None = None,
    ) -> None:
        self.session = Session(grid, settings=settings)
        self.file = Path(file) if file else None
        if self.file is not None:
            self.session.subscribe(self._persist)

    def _persist(self, grid: Grid) -> None:
        with GridLock(self.file, timeout=5):
            save_grid(self.file, grid)

    def _suggestion_view(self) -> dict[str, Any]:
        state = self.session.suggestion
        return {
            "status": state.status.value,
            "key": state.key,
            "rows": [[c.value for c in row] for row in state.rows],
        }

    def _proposal_view(self, proposal_id: str) -> dict[str, Any]:
        proposal = self.session.get_proposal(proposal_id)
        data = proposal.preview(self.session.grid).model_dump(mode="json")
        data["proposal_id"] = proposal.proposal_id
        return data

    def _dispatch(self, command: str, args: dict[str, Any]) -> Any:
        session = self.session

        if command == "grid.get":
            return session.grid.model_dump(mode="json")

        elif command == "grid.title":
            return session.set_title(str(args.get("title", ""))).model_dump(mode="json")

        elif command == "cell.set":
            pos = CellPosition(row=args["row"], column=args["column"])
            return session.edit_cell(pos, str(args.get("value", ""))).model_dump(mode="json")

        elif command == "cell.focus":
            session.focus(CellPosition(row=args["row"], column=args["column"]))
            return {"active_cell": args, "value": session.tracker.value_in(session.grid)}

        elif command == "cell.blur":
            session.blur()
            return {"active_cell": None}

        elif command == "row.add":
            return session.add_row().model_dump(mode="json")

        elif command == "column.add":
            return session.add_column().model_dump(mode="json")

        elif command in ("proposal.override", "proposal.append"):
            kind = ProposalKind.OVERRIDE if command == "proposal.override" else ProposalKind.APPEND
            proposal = session.propose(
                kind,
                args.get("rows"),
                status=ProposalStatus(args.get("status", "complete")),
                title=args.get("title"),
                proposal_id=args.get("proposal_id"),
            )
            return self._proposal_view(proposal.proposal_id)

        elif command == "proposal.show":
            return self._proposal_view(args["proposal_id"])

        elif command == "proposal.accept":
            committed = session.accept_proposal(args["proposal_id"])
            return {"committed": committed, **self._proposal_view(args["proposal_id"])}

        elif command == "proposal.reject":
            rejected = session.reject_proposal(args["proposal_id"])
            return {"rejected": rejected, **self._proposal_view(args["proposal_id"])}

        elif command == "suggestion.state":
            return self._suggestion_view()

        elif command == "suggestion.deliver":
            accepted = session.deliver_suggestion(args["key"], args.get("payload"))
            return {"delivered": accepted, **self._suggestion_view()}

        elif command == "suggestion.fail":
            failed = session.fail_suggestion(args["key"], args.get("error"))
            return {"failed": failed, **self._suggestion_view()}

        elif command == "suggestion.accept":
            return {"accepted": session.accept_suggestion(), "grid": session.grid.model_dump(mode="json")}

        elif command == "key.press":
            before = session.grid
            action = session.press_key(KeyEvent(**args))
            return {
                "action": action.model_dump(mode="json") if action else None,
                "accepted": session.grid is not before,
            }

        raise ValueError(f"Unknown command: {command}")

    def handle_request(self, request: dict[str, Any]) -> dict[str, Any]:
        req_id = request.get("id", "")
        command = request.get("command", "")
        args = request.get("args", {}) or {}

        if command == "close":
            return {"id": req_id, "ok": True, "result": "closed"}

        before = self.session.last_request
        try:
            result = self._dispatch(command, args)
        except KeyError as e:
            self.session.store.drain_failures()
            return {"id": req_id, "ok": False, "error": f"Missing or unknown key: {e}"}
        except Exception as e:
            self.session.store.drain_failures()
            return {"id": req_id, "ok": False, "error": str(e)}

        response: dict[str, Any] = {
            "id": req_id,
            "ok": True,
            "result": result,
            "suggestion": self._suggestion_view(),
        }
        failures = self.session.store.drain_failures()
        if failures:
            response["warnings"] = [f"Grid consumer failed: {f}" for f in failures]
        request_out = self.session.last_request
        if request_out is not None and request_out is not before:
            response["request"] = request_out.model_dump(mode="json")
        return response

    def run(self) -> None:
        """Main server loop: read JSON lines from stdin, write responses to stdout."""
        for line in sys.stdin:
            line = line.strip()
            if not line:
                continue
            try:
                request = json.loads(line)
                if not isinstance(request, dict):
                    raise ValueError("request must be a JSON object")
            except ValueError as e:
                response = {"ok": False, "error": f"Invalid JSON: {e}"}
                sys.stdout.write(json.dumps(response) + "\n")
                sys.stdout.flush()
                continue

            response = self.handle_request(request)
            sys.stdout.write(json.dumps(response, default=str) + "\n")
            sys.stdout.flush()
            if request.get("command") == "close":
                break
