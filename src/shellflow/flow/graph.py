"""Flow graph nodes."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING

from shellflow.errors import ReservedWordError

if TYPE_CHECKING:
    from shellflow.flow.events import Event

logger = logging.getLogger(__name__)

BACK = "back"
QUIT = "quit"
EXIT = "exit"
RESERVED_WORDS = (EXIT, BACK, QUIT)

DEFAULT_WAIT_MS = 10 * 1000


def check_reserved(token: str) -> None:
    if token in RESERVED_WORDS:
        raise ReservedWordError(token, RESERVED_WORDS)


@dataclass(eq=False)
class FlowNode:
    """One wizard state: a prompt, its options, its default and its events.

    Children are owned by the node. ``parent`` is a plain back pointer used to
    step back up the graph and never owns anything.
    """

    token: str | None = None
    instruction: str = ""
    default: str | None = None
    accepted_commands: list[str] = field(default_factory=list)
    children: dict[str, FlowNode] = field(default_factory=dict)
    events: list[Event] = field(default_factory=list)
    wait_time_ms: int = DEFAULT_WAIT_MS
    loading_message: str = ""
    executed: bool = False
    parent: FlowNode | None = field(default=None, repr=False)

    def add_command_set(self, *tokens: str) -> FlowNode:
        if not tokens:
            raise ValueError("At least one command token is required.")
        for token in tokens:
            check_reserved(token)
        primary = tokens[0]
        child = FlowNode(
            token=primary,
            wait_time_ms=self.wait_time_ms,
            loading_message=self.loading_message,
            parent=self,
        )
        for token in tokens:
            if token in self.children:
                # Last write wins.
                logger.debug("Command %r re-registered under %r; replacing earlier flow.", token, self.label)
            self.children[token] = child
        if primary not in self.accepted_commands:
            self.accepted_commands.append(primary)
        return child

    def set_default(self, token: str) -> None:
        self.default = token

    def resolve(self, token: str) -> FlowNode | None:
        return self.children.get(token)

    def add_event(self, event: Event) -> None:
        self.events.append(event)

    def options(self) -> list[str]:
        return list(self.accepted_commands)

    @property
    def has_children(self) -> bool:
        return bool(self.children)

    @property
    def label(self) -> str:
        return self.token if self.token is not None else "<root>"
