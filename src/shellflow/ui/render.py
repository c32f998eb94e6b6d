"""Render helpers for shellflow terminal output."""

from __future__ import annotations

import logging
from typing import Sequence

from rich import box
from rich.console import Console, Group
from rich.logging import RichHandler
from rich.panel import Panel
from rich.text import Text

from shellflow.ui.console import get_console


def render_greeting(lines: Sequence[str], console: Console | None = None) -> None:
    if not lines:
        return
    console = console or get_console()
    panel = Panel(
        Group(*[Text(line, style="banner" if index == 0 else "message") for index, line in enumerate(lines)]),
        box=box.ROUNDED,
        border_style="border",
        padding=(0, 2),
        expand=False,
    )
    console.print(panel)
    console.print()


def format_prompt(instruction: str, options: Sequence[str], default: str | None) -> str:
    prompt = f"> {instruction} [options: {', '.join(options)}]"
    if default:
        prompt = f"{prompt} (default '{default}')"
    return prompt


def format_progress(label: str, glyph: str) -> str:
    return f"> {label} {glyph}"


def format_outcome(label: str, outcome: str) -> str:
    return f"> {label}  ...{outcome}"


def configure_logging(verbose: bool = False) -> None:
    """Route library loggers through rich. Only entrypoints call this."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


def render_error(text: str, console: Console | None = None) -> None:
    console = console or get_console()
    panel = Panel(
        Text(text, style="error"),
        box=box.ROUNDED,
        border_style="error",
        padding=(0, 2),
        expand=True,
    )
    console.print(panel)
