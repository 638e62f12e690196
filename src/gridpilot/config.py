"""Settings: load and hold ``gridpilot.yaml`` options."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from gridpilot.io.fileops import read_text_safe

SETTINGS_FILENAME = "gridpilot.yaml"

DEFAULT_INSTRUCTIONS = (
    "Based on the user's current spreadsheet and the cell they are working on, try "
    "to help the user by auto-completing what they might want to achieve. You can "
    "autocomplete the cell they are working on, or make any other changes to the spreadsheet. "
    "You must always return the complete spreadsheet, including all rows and columns."
)


class CommitLabels(BaseModel):
    pre_commit: str
    post_commit: str


class Labels(BaseModel):
    override: CommitLabels = Field(
        default_factory=lambda: CommitLabels(pre_commit="Replace contents", post_commit="Changes committed")
    )
    append: CommitLabels = Field(
        default_factory=lambda: CommitLabels(pre_commit="Append rows", post_commit="Rows appended")
    )


class Thresholds(BaseModel):
    """Upper bounds a proposal may not exceed. ``None`` means unbounded."""

    max_rows: int | None = None
    max_columns: int | None = None


class Settings(BaseModel):
    """Session and proposal settings."""

    shortcut: str = "mod+k"
    instructions: str = DEFAULT_INSTRUCTIONS
    reconcile_on_commit: bool = False  # re-canonicalize the whole grid after each commit
    events: bool = False
    labels: Labels = Field(default_factory=Labels)
    thresholds: Thresholds = Field(default_factory=Thresholds)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        unknown = sorted(set(data) - set(cls.model_fields))
        if unknown:
            raise ValueError(f"Unknown settings keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def load(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        text = read_text_safe(path)
        data = yaml.safe_load(text) or {}
        if not isinstance(data, dict):
            raise ValueError("Settings YAML must be a mapping/object.")
        return cls.from_dict(data)

    @classmethod
    def load_from_dir(cls, directory: str | Path) -> "Settings":
        """Load gridpilot.yaml from a directory, falling back to defaults."""
        path = Path(directory) / SETTINGS_FILENAME
        if path.exists():
            return cls.load(path)
        return cls()
