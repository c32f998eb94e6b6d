"""Terminal input/output for shellflow."""

from shellflow.ui.input import LineSource, MemoryLineSource, StreamLineSource
from shellflow.ui.output import BufferedOutput, ConsoleOutput, ShellOutput

__all__ = [
    "BufferedOutput",
    "ConsoleOutput",
    "LineSource",
    "MemoryLineSource",
    "ShellOutput",
    "StreamLineSource",
]
