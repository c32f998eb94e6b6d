"""Output strategies: committed lines plus a single overwritable line."""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from rich.console import Console
from rich.live import Live
from rich.text import Text

from shellflow.ui.console import get_console
from shellflow.ui.render import render_greeting


@runtime_checkable
class ShellOutput(Protocol):
    def banner(self, lines: Sequence[str]) -> None:
        """Print the greeting lines."""

    def write_line(self, text: str, style: str = "message") -> None:
        """Append a committed line, committing any pending overwrite line first."""

    def overwrite(self, text: str, style: str = "progress") -> None:
        """Replace the current overwritable line."""

    def commit(self) -> None:
        """Freeze the current overwritable line, if any."""

    def close(self) -> None:
        """Release terminal resources."""


class ConsoleOutput:
    """Terminal output backed by a rich console and a rich Live line."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or get_console()
        self._live: Live | None = None

    @property
    def console(self) -> Console:
        return self._console

    def banner(self, lines: Sequence[str]) -> None:
        self.commit()
        render_greeting(lines, console=self._console)

    def write_line(self, text: str, style: str = "message") -> None:
        self.commit()
        self._console.print(Text(text, style=style))

    def overwrite(self, text: str, style: str = "progress") -> None:
        line = Text(text, style=style)
        if self._live is None:
            self._live = Live(line, console=self._console, auto_refresh=False, transient=False)
            self._live.start()
        self._live.update(line, refresh=True)

    def commit(self) -> None:
        if self._live is None:
            return
        live, self._live = self._live, None
        live.stop()

    def close(self) -> None:
        self.commit()


class BufferedOutput:
    """In-memory output used when the session runs against injected buffers."""

    def __init__(self) -> None:
        self.lines: list[str] = []
        self.frames: list[str] = []
        self.closed = False
        self._pending: str | None = None

    def banner(self, lines: Sequence[str]) -> None:
        self.commit()
        self.lines.extend(lines)

    def write_line(self, text: str, style: str = "message") -> None:
        self.commit()
        self.lines.append(text)

    def overwrite(self, text: str, style: str = "progress") -> None:
        self.frames.append(text)
        self._pending = text

    def commit(self) -> None:
        if self._pending is None:
            return
        self.lines.append(self._pending)
        self._pending = None

    def close(self) -> None:
        self.commit()
        self.closed = True

    def contains(self, fragment: str) -> bool:
        return any(fragment in line for line in self.lines)
