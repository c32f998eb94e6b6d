"""Shared console for shellflow terminal output."""

from __future__ import annotations

from rich.console import Console

from shellflow.ui.theme import THEME

_CONSOLE: Console | None = None


def get_console() -> Console:
    global _CONSOLE
    if _CONSOLE is None:
        _CONSOLE = Console(theme=THEME, highlight=False)
    return _CONSOLE
