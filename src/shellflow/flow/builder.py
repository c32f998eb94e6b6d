"""Fluent configuration surface for flow graphs."""

from __future__ import annotations

from typing import TypeVar

from shellflow.flow.events import (
    AnswerKind,
    AskQuestion,
    Branch,
    BuildFunc,
    Display,
    DisplayFunc,
    Event,
    ExecFunc,
    GoTo,
    Quit,
    RunExec,
)
from shellflow.flow.graph import FlowNode

_B = TypeVar("_B", bound="FlowBuilder")


class BranchRegistry:
    """Named subgraph builders that ``go_to`` can re-enter from any node."""

    def __init__(self) -> None:
        self._builders: dict[str, BuildFunc] = {}

    def register(self, name: str, build: BuildFunc) -> None:
        self._builders[name] = build

    def get(self, name: str) -> BuildFunc | None:
        return self._builders.get(name)

    def names(self) -> list[str]:
        return sorted(self._builders)

    def __contains__(self, name: object) -> bool:
        return name in self._builders


class FlowBuilder:
    """Configures the flow graph around one context node.

    ``if_user_inputs`` selects the new child; the ``then_*`` and ``ask*``
    methods attach events to the selected child, or to the context node when
    nothing is selected yet. ``default`` always applies to the context node.

    When ``extension`` is given (branch builders run during a visit), events
    for the context node land there instead of on the node, so the running
    sequence picks them up for this visit only.
    """

    def __init__(
        self,
        node: FlowNode,
        registry: BranchRegistry,
        extension: list[Event] | None = None,
    ) -> None:
        self._node = node
        self._registry = registry
        self._extension = extension
        self._selected: FlowNode | None = None

    @property
    def node(self) -> FlowNode:
        return self._node

    @property
    def selected(self) -> FlowNode | None:
        return self._selected

    def first_instruction(self: _B, instruction: str) -> _B:
        self._target().instruction = instruction
        return self

    def if_user_inputs(self: _B, *tokens: str) -> _B:
        self._selected = self._node.add_command_set(*tokens)
        return self

    def default(self: _B, token: str) -> _B:
        self._node.set_default(token)
        return self

    def wait_time(self: _B, timeout_ms: int) -> _B:
        self._target().wait_time_ms = timeout_ms
        return self

    def loading_message(self: _B, message: str) -> _B:
        self._target().loading_message = message
        return self

    def then_run(
        self: _B,
        fn: ExecFunc,
        loading_message: str | None = None,
        timeout_ms: int | None = None,
    ) -> _B:
        target = self._target()
        self._add(
            RunExec(
                fn=fn,
                loading_message=target.loading_message if loading_message is None else loading_message,
                timeout_ms=target.wait_time_ms if timeout_ms is None else timeout_ms,
            )
        )
        return self

    def then_branch(self: _B, instruction: str, build: BuildFunc) -> _B:
        self._add(Branch(instruction=instruction, build=build))
        return self

    def branch(self: _B, name: str, build: BuildFunc) -> _B:
        self._registry.register(name, build)
        return self

    def go_to(self: _B, name: str, instruction: str) -> _B:
        if name not in self._registry:
            return self.then_quit(f"branch '{name}' not found")
        self._add(GoTo(name=name, instruction=instruction))
        return self

    def then_display(self: _B, produce: DisplayFunc | str) -> _B:
        if isinstance(produce, str):
            text = produce
            produce = lambda: text  # noqa: E731
        self._add(Display(produce=produce))
        return self

    def then_quit(self: _B, message: str) -> _B:
        self._add(Quit(message=message))
        return self

    def ask(self: _B, question: str, store_as: str) -> _B:
        self._add(AskQuestion(question=question, key=store_as, kind=AnswerKind.TEXT))
        return self

    def ask_for_int(self: _B, question: str, store_as: str) -> _B:
        self._add(AskQuestion(question=question, key=store_as, kind=AnswerKind.INT))
        return self

    def ask_for_float(self: _B, question: str, store_as: str) -> _B:
        self._add(AskQuestion(question=question, key=store_as, kind=AnswerKind.FLOAT))
        return self

    def _target(self) -> FlowNode:
        return self._selected if self._selected is not None else self._node

    def _add(self, event: Event) -> None:
        target = self._target()
        if target is self._node and self._extension is not None:
            self._extension.append(event)
            return
        target.add_event(event)
