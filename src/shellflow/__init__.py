"""Declarative interactive shell wizards driven by user input."""

from shellflow.config import IOMode, SessionConfig
from shellflow.errors import (
    BlankLineRetry,
    ConfigError,
    EndOfInput,
    ExecTimeoutError,
    ReservedWordError,
    ShellflowError,
)
from shellflow.flow import AnswerKind, FlowBuilder, FlowNode
from shellflow.history import HistoryBuffer, HistoryRecord
from shellflow.jitter import ExecContext, Jitter
from shellflow.shell import Shell

__version__ = "0.3.0"

__all__ = [
    "AnswerKind",
    "BlankLineRetry",
    "ConfigError",
    "EndOfInput",
    "ExecContext",
    "ExecTimeoutError",
    "FlowBuilder",
    "FlowNode",
    "HistoryBuffer",
    "HistoryRecord",
    "IOMode",
    "Jitter",
    "ReservedWordError",
    "SessionConfig",
    "Shell",
    "ShellflowError",
    "__version__",
]
