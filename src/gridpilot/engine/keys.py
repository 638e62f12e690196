"""Keyboard shortcut mapping, kept free of any rendering concerns."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

_MODIFIERS = frozenset({"mod", "meta", "cmd", "ctrl", "alt", "shift"})


class KeyCommand(str, Enum):
    ACCEPT_SUGGESTION = "accept_suggestion"


class KeyEvent(BaseModel):
    """A key press as reported by the host UI."""

    key: str
    meta: bool = False
    ctrl: bool = False
    alt: bool = False
    shift: bool = False


class Shortcut(BaseModel):
    key: str
    modifiers: frozenset[str] = frozenset()

    @classmethod
    def parse(cls, text: str) -> "Shortcut":
        """Parse ``"mod+k"`` style text. ``mod`` means Meta or Ctrl."""
        parts = [p.strip().lower() for p in text.split("+") if p.strip()]
        if not parts:
            raise ValueError(f"Invalid shortcut: {text!r}")
        *mods, key = parts
        unknown = [m for m in mods if m not in _MODIFIERS]
        if unknown or key in _MODIFIERS:
            raise ValueError(f"Invalid shortcut: {text!r}")
        normalized = {"meta" if m == "cmd" else m for m in mods}
        return cls(key=key, modifiers=frozenset(normalized))

    def matches(self, event: KeyEvent) -> bool:
        if event.key.lower() != self.key:
            return False
        for mod in self.modifiers:
            if mod == "mod" and not (event.meta or event.ctrl):
                return False
            if mod in ("meta", "ctrl", "alt", "shift") and not getattr(event, mod):
                return False
        # Shift and Alt only match when the shortcut names them.
        for mod in ("alt", "shift"):
            if getattr(event, mod) and mod not in self.modifiers:
                return False
        return True


class KeyAction(BaseModel):
    command: KeyCommand
    prevent_default: bool = True


def map_key_event(event: KeyEvent, shortcut: str | Shortcut = "mod+k") -> KeyAction | None:
    """Map a key press to a command, or None when it is not the shortcut."""
    if isinstance(shortcut, str):
        shortcut = Shortcut.parse(shortcut)
    if shortcut.matches(event):
        return KeyAction(command=KeyCommand.ACCEPT_SUGGESTION)
    return None
