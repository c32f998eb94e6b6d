"""Event variants attached to flow nodes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import re
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

if TYPE_CHECKING:
    from shellflow.flow.builder import FlowBuilder
    from shellflow.jitter import ExecContext

ExecFunc = Callable[["ExecContext"], Union[Awaitable[Any], Any]]
BuildFunc = Callable[["FlowBuilder"], Any]
DisplayFunc = Callable[[], str]

# Plain ASCII numerals only: no digit separators, no non-ASCII digits.
_INT_SYNTAX = re.compile(r"[+-]?[0-9]+")
_FLOAT_SYNTAX = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
    re.IGNORECASE,
)


class AnswerKind(Enum):
    TEXT = "text"
    INT = "int"
    FLOAT = "float"

    @property
    def hint(self) -> str | None:
        if self is AnswerKind.INT:
            return "Please enter an integer e.g. 34"
        if self is AnswerKind.FLOAT:
            return "Please enter a number e.g. 3.1415"
        return None

    def parse(self, text: str) -> str | int | float:
        """Convert an answer, raising ValueError when it is not acceptable."""
        if not text:
            raise ValueError("empty answer")
        if self is AnswerKind.INT:
            if not _INT_SYNTAX.fullmatch(text):
                raise ValueError(f"not an integer: {text!r}")
            return int(text)
        if self is AnswerKind.FLOAT:
            if not _FLOAT_SYNTAX.fullmatch(text):
                raise ValueError(f"not a number: {text!r}")
            return float(text)
        return text


class Event:
    """Base for the fixed set of event variants."""


@dataclass(frozen=True)
class RunExec(Event):
    fn: ExecFunc
    loading_message: str
    timeout_ms: int


@dataclass(frozen=True)
class Branch(Event):
    instruction: str
    build: BuildFunc


@dataclass(frozen=True)
class GoTo(Event):
    name: str
    instruction: str


@dataclass(frozen=True)
class Display(Event):
    produce: DisplayFunc


@dataclass(frozen=True)
class AskQuestion(Event):
    question: str
    key: str
    kind: AnswerKind = AnswerKind.TEXT


@dataclass(frozen=True)
class Quit(Event):
    message: str


FlowEvent = Union[RunExec, Branch, GoTo, Display, AskQuestion, Quit]
