"""Suggestion cycle: context-keyed auto-completion with a stale-response guard.

The cycle is idle until a cell is focused in a non-blank grid. Each new
request context (active cell, its value, the whole grid) supersedes the
previous one: in-flight requests are not cancelled, but their results are
dropped on arrival because their key no longer matches.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

import orjson

from gridpilot.config import DEFAULT_INSTRUCTIONS
from gridpilot.contracts.grid import Grid
from gridpilot.contracts.suggestions import (
    RequestContext,
    SuggestionRequest,
    SuggestionState,
    SuggestionStatus,
)
from gridpilot.engine.canonical import canonicalize, rows_payload
from gridpilot.engine.store import GridStore
from gridpilot.engine.tracker import ActiveCellTracker
from gridpilot.io.fileops import payload_fingerprint
from gridpilot.observe.events import EventEmitter

SuggestionSupplier = Callable[[SuggestionRequest], Awaitable[Any]]

_IDLE = SuggestionState()


def build_context(grid: Grid, tracker: ActiveCellTracker) -> RequestContext:
    return RequestContext(
        active_cell=tracker.current(),
        active_cell_value=tracker.value_in(grid),
        grid=grid,
    )


def context_key(context: RequestContext) -> str:
    return payload_fingerprint(context.model_dump(mode="json"))


def is_enabled(context: RequestContext) -> bool:
    """Only ask for suggestions when a cell is focused and the grid has content."""
    return context.active_cell is not None and not context.grid.is_blank()


def build_instructions(context: RequestContext, prefix: str = DEFAULT_INSTRUCTIONS) -> str:
    cell = context.active_cell.model_dump() if context.active_cell is not None else None
    return (
        f"{prefix} "
        f"The user currently selected cell is: {orjson.dumps(cell).decode()} "
        f"The value of the cell is: {context.active_cell_value}"
    )


def _payload_rows(payload: Any) -> Any:
    if not isinstance(payload, Mapping):
        return None
    rows = payload.get("rows")
    if isinstance(rows, (str, bytes)) or not isinstance(rows, Sequence):
        return None
    return rows


class SuggestionCycle:
    """Tracks the latest request context and the suggestion it produced."""

    def __init__(
        self,
        *,
        instructions: str = DEFAULT_INSTRUCTIONS,
        emitter: EventEmitter | None = None,
    ) -> None:
        self.instructions = instructions
        self._emitter = emitter or EventEmitter()
        self._state = _IDLE
        self._key: str | None = None

    @property
    def state(self) -> SuggestionState:
        return self._state

    @property
    def current_key(self) -> str | None:
        return self._key

    def reset(self) -> None:
        self._state = _IDLE
        self._key = None

    def refresh(self, context: RequestContext) -> SuggestionRequest | None:
        """Recompute from *context*; return a request when a new one is due."""
        if not is_enabled(context):
            self.reset()
            return None
        key = context_key(context)
        if key == self._key:
            return None
        self._key = key
        self._state = SuggestionState(status=SuggestionStatus.LOADING, key=key)
        self._emitter.emit("suggestion.requested", {"key": key})
        return SuggestionRequest(
            key=key,
            instructions=build_instructions(context, self.instructions),
            context={"rows": rows_payload(context.grid.rows)},
            enabled=True,
        )

    def _is_current(self, key: str) -> bool:
        return key == self._key and self._state.status is SuggestionStatus.LOADING

    def deliver(self, key: str, payload: Any) -> bool:
        """Accept a supplier result for *key*. Returns True if it became visible."""
        if not self._is_current(key):
            self._emitter.emit("suggestion.stale", {"key": key, "current": self._key})
            return False
        raw_rows = _payload_rows(payload)
        rows = canonicalize(raw_rows) if raw_rows is not None else ()
        if not rows:
            self._state = SuggestionState(key=key)
            self._emitter.emit("suggestion.failed", {"key": key, "reason": "malformed"})
            return False
        self._state = SuggestionState(status=SuggestionStatus.AVAILABLE, key=key, rows=rows)
        self._emitter.emit("suggestion.available", {"key": key, "rows": len(rows)})
        return True

    def fail(self, key: str, error: BaseException | str | None = None) -> bool:
        """Drop back to idle if *key* is still the outstanding request."""
        if not self._is_current(key):
            return False
        self._state = SuggestionState(key=key)
        self._emitter.emit("suggestion.failed", {"key": key, "reason": str(error or "")})
        return True

    async def run(self, context: RequestContext, supplier: SuggestionSupplier) -> SuggestionState:
        """Refresh, await the supplier and deliver its result."""
        request = self.refresh(context)
        if request is None:
            return self._state
        return await self.resolve(request, supplier)

    async def resolve(self, request: SuggestionRequest, supplier: SuggestionSupplier) -> SuggestionState:
        """Await *supplier* for an already-issued request; failures become idle."""
        try:
            payload = await supplier(request)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.fail(request.key, exc)
            return self._state
        self.deliver(request.key, payload)
        return self._state

    def accept(self, store: GridStore) -> bool:
        """Replace the store's rows with the available suggestion; no-op otherwise."""
        if not self._state.is_available:
            return False
        rows = canonicalize(self._state.rows)
        key = self._state.key
        self.reset()
        store.replace_rows(rows)
        self._emitter.emit("suggestion.accepted", {"key": key, "rows": len(rows)})
        return True
