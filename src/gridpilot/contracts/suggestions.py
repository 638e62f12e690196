"""Suggestion cycle models: request context, request and tri-state."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from gridpilot.contracts.grid import CellPosition, Grid, Row


class SuggestionStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    AVAILABLE = "available"


class RequestContext(BaseModel):
    """Everything that decides whether, and what, to ask the assistant for."""

    model_config = ConfigDict(frozen=True)

    active_cell: Optional[CellPosition] = None
    active_cell_value: Optional[str] = None
    grid: Grid = Grid()


class SuggestionRequest(BaseModel):
    """Payload handed to the external suggestion supplier."""

    key: str
    instructions: str
    context: dict[str, Any]
    enabled: bool = True


class SuggestionState(BaseModel):
    """Snapshot of the cycle. ``rows`` is only populated when available."""

    model_config = ConfigDict(frozen=True)

    status: SuggestionStatus = SuggestionStatus.IDLE
    key: Optional[str] = None
    rows: tuple[Row, ...] = ()

    @property
    def is_loading(self) -> bool:
        return self.status is SuggestionStatus.LOADING

    @property
    def is_available(self) -> bool:
        return self.status is SuggestionStatus.AVAILABLE
