"""Rich theme for shellflow output."""

from __future__ import annotations

from rich.theme import Theme

THEME = Theme(
    {
        "banner": "bold bright_blue",
        "border": "bright_black",
        "prompt": "bold",
        "echo": "dim",
        "message": "white",
        "progress": "cyan",
        "done": "green3",
        "error": "bold red3",
        "warning": "red3",
        "hint": "yellow3",
    }
)
