"""Session configuration and I/O strategy selection."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import os
from pathlib import Path

from shellflow.errors import ConfigError
from shellflow.history import DEFAULT_CAPACITY
from shellflow.ui.input import LineSource, MemoryLineSource, StreamLineSource
from shellflow.ui.output import BufferedOutput, ConsoleOutput, ShellOutput

JITTER_TIME_MS = 140

ENV_BUFFER_SIZE = "SHELLFLOW_BUFFER_SIZE"
ENV_IO_MODE = "SHELLFLOW_IO"
ENV_TICK_MS = "SHELLFLOW_TICK_MS"


class IOMode(str, Enum):
    TERMINAL = "terminal"
    BUFFER = "buffer"


@dataclass
class SessionConfig:
    """Everything a session needs that is not part of the flow graph.

    ``io_mode`` picks the default input source and output when they are not
    injected explicitly: the terminal (stdin + rich console) or in-memory
    buffers for tests.
    """

    greeting: list[str] = field(default_factory=list)
    buffer_size: int = DEFAULT_CAPACITY
    io_mode: IOMode = IOMode.TERMINAL
    input_source: LineSource | None = None
    output: ShellOutput | None = None
    handle_interrupts: bool = True
    tick_ms: int = JITTER_TIME_MS

    def __post_init__(self) -> None:
        if self.buffer_size < 1:
            raise ConfigError(f"buffer_size must be >= 1, got {self.buffer_size}.")
        if self.tick_ms < 1:
            raise ConfigError(f"tick_ms must be >= 1, got {self.tick_ms}.")
        self.io_mode = IOMode(self.io_mode)

    @classmethod
    def for_testing(cls, lines: list[str | bytes] | None = None, **overrides: object) -> "SessionConfig":
        overrides.setdefault("handle_interrupts", False)
        return cls(
            io_mode=IOMode.BUFFER,
            input_source=MemoryLineSource(lines or []),
            output=BufferedOutput(),
            **overrides,  # type: ignore[arg-type]
        )

    @classmethod
    def from_env(cls, dotenv_path: str = ".env", **overrides: object) -> "SessionConfig":
        load_dotenv(dotenv_path)
        values: dict[str, object] = {}
        if ENV_BUFFER_SIZE in os.environ:
            values["buffer_size"] = _env_int(ENV_BUFFER_SIZE)
        if ENV_TICK_MS in os.environ:
            values["tick_ms"] = _env_int(ENV_TICK_MS)
        if ENV_IO_MODE in os.environ:
            raw = os.environ[ENV_IO_MODE].strip().lower()
            try:
                values["io_mode"] = IOMode(raw)
            except ValueError as exc:
                raise ConfigError(f"{ENV_IO_MODE} must be 'terminal' or 'buffer', got {raw!r}.") from exc
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]

    def build_io(self) -> tuple[LineSource, ShellOutput]:
        source = self.input_source
        output = self.output
        if source is None:
            source = StreamLineSource() if self.io_mode is IOMode.TERMINAL else MemoryLineSource()
        if output is None:
            output = ConsoleOutput() if self.io_mode is IOMode.TERMINAL else BufferedOutput()
        return source, output


def _env_int(name: str) -> int:
    raw = os.environ[name].strip()
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}.") from exc


def load_dotenv(path: str = ".env") -> bool:
    """Load KEY=VALUE lines without overriding variables already set."""
    env_path = Path(path)
    if not env_path.is_file():
        return False
    try:
        text = env_path.read_text(encoding="utf-8")
    except OSError:
        return False

    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = (part.strip() for part in stripped.split("=", 1))
        if not key or not value:
            continue
        if len(value) > 1 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)
    return True
