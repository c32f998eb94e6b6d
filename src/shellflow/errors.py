"""Error taxonomy for shellflow."""

from __future__ import annotations


class ShellflowError(Exception):
    """Base class for errors raised by shellflow."""


class ConfigError(ShellflowError):
    """Invalid session or flow configuration. Fatal at construction time."""


class ReservedWordError(ConfigError):
    def __init__(self, token: str, reserved: tuple[str, ...]) -> None:
        self.token = token
        super().__init__(
            f"{token} is a reserved word; please use inputs other than: {', '.join(reserved)}"
        )


class ExecTimeoutError(ShellflowError):
    def __init__(self, label: str, deadline_ms: int, detail: str | None = None) -> None:
        self.label = label
        self.deadline_ms = deadline_ms
        message = f"'{label}' timed out after {deadline_ms}ms"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class EndOfInput(ShellflowError):
    """Raised by exec callbacks that hit the end of their input. Ignored silently."""


class BlankLineRetry(ShellflowError):
    """Raised by exec callbacks to have the event re-run without printing an error."""
