"""Flow graph package."""

from shellflow.flow.builder import BranchRegistry, FlowBuilder
from shellflow.flow.events import (
    AnswerKind,
    AskQuestion,
    Branch,
    Display,
    Event,
    FlowEvent,
    GoTo,
    Quit,
    RunExec,
)
from shellflow.flow.graph import BACK, DEFAULT_WAIT_MS, EXIT, QUIT, RESERVED_WORDS, FlowNode

__all__ = [
    "AnswerKind",
    "AskQuestion",
    "BACK",
    "Branch",
    "BranchRegistry",
    "DEFAULT_WAIT_MS",
    "Display",
    "EXIT",
    "Event",
    "FlowBuilder",
    "FlowEvent",
    "FlowNode",
    "GoTo",
    "QUIT",
    "Quit",
    "RESERVED_WORDS",
    "RunExec",
]
