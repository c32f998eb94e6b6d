"""Session loop: walks the flow graph as the user types."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Sequence

from shellflow.config import SessionConfig
from shellflow.errors import BlankLineRetry, ConfigError, EndOfInput
from shellflow.flow.builder import BranchRegistry, FlowBuilder
from shellflow.flow.events import (
    AskQuestion,
    Branch,
    BuildFunc,
    Display,
    Event,
    GoTo,
    Quit,
    RunExec,
)
from shellflow.flow.graph import BACK, EXIT, QUIT, FlowNode
from shellflow.history import HistoryBuffer
from shellflow.jitter import Jitter, running_on
from shellflow.reader import InputReader, ReadRequest, Token
from shellflow.ui.output import ShellOutput
from shellflow.ui.render import format_prompt

logger = logging.getLogger(__name__)

EXIT_MESSAGE = "> exiting..."


class Shell(FlowBuilder):
    """Builder root and session loop for one interactive wizard.

    Configure the graph with the fluent builder methods, then call ``start()``
    (or ``await run()``). All session state (current node, answers, history,
    executed flags) is mutated only by the session task; the input reader and
    the interrupt handler talk to it through the inbox queue and the interrupt
    event.
    """

    def __init__(self, config: SessionConfig | None = None) -> None:
        self._config = config or SessionConfig()
        self._root = FlowNode()
        super().__init__(self._root, BranchRegistry())
        self._greeting = list(self._config.greeting)
        self.history = HistoryBuffer(self._config.buffer_size)
        self._source, self._output = self._config.build_io()
        self._reader = InputReader(self._source)
        self._jitter = Jitter(self._output, tick_ms=self._config.tick_ms)

        self._current = self._root
        self._awaiting_answer: str | None = None
        self._values: dict[str, str] = {}
        self._int_values: dict[str, int] = {}
        self._float_values: dict[str, float] = {}

        self._started = False
        self._terminated = False
        self._closed = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._inbox: asyncio.Queue[Token] | None = None
        self._interrupted: asyncio.Event | None = None
        self._interrupt_requested = False

    # Configuration

    def set_greeting(self, *lines: str) -> Shell:
        self._greeting = list(lines)
        return self

    def set_buffer_size(self, size: int) -> Shell:
        if self._started:
            raise ConfigError("Buffer size cannot change once the session has started.")
        if size < 1:
            raise ConfigError(f"Buffer size must be >= 1, got {size}.")
        self.history = HistoryBuffer(size)
        return self

    # State

    @property
    def root(self) -> FlowNode:
        return self._root

    @property
    def current(self) -> FlowNode:
        return self._current

    @property
    def awaiting_answer(self) -> str | None:
        return self._awaiting_answer

    @property
    def terminated(self) -> bool:
        return self._terminated

    @property
    def greeting(self) -> Sequence[str]:
        return tuple(self._greeting)

    @property
    def output(self) -> ShellOutput:
        return self._output

    def get_value(self, stored_as: str) -> str:
        return self._values.get(stored_as, "")

    def get_int_value(self, stored_as: str) -> tuple[int, bool]:
        if stored_as in self._int_values:
            return self._int_values[stored_as], True
        return 0, False

    def get_float_value(self, stored_as: str) -> tuple[float, bool]:
        if stored_as in self._float_values:
            return self._float_values[stored_as], True
        return 0.0, False

    # Output

    def display(self, message: str, overwrite: bool = False) -> Shell:
        """Show and record ``message``. Safe to call from exec worker threads."""
        if self._loop is not None and not running_on(self._loop):
            self._loop.call_soon_threadsafe(self._show, message, overwrite)
        else:
            self._show(message, overwrite)
        return self

    def _show(self, message: str, overwrite: bool) -> None:
        self.history.record("", message)
        if overwrite:
            self._output.overwrite(message)
        else:
            self._output.write_line(message)

    def _emit(self, message: str, *, input: str = "", hidden: bool = False, style: str = "message") -> None:
        self.history.record(input, message, hidden=hidden)
        self._output.write_line(message, style=style)

    # Lifecycle

    def start(self) -> None:
        asyncio.run(self.run())

    def interrupt(self) -> None:
        """Stop the session as if the process received SIGINT."""
        self._interrupt_requested = True
        if self._interrupted is None or self._loop is None:
            return
        if running_on(self._loop):
            self._interrupted.set()
        else:
            self._loop.call_soon_threadsafe(self._interrupted.set)

    async def run(self) -> None:
        if self._started:
            raise RuntimeError("A shell session can only run once.")
        self._started = True
        self._loop = asyncio.get_running_loop()
        self._inbox = asyncio.Queue()
        self._interrupted = asyncio.Event()
        if self._interrupt_requested:
            self._interrupted.set()
        handler_installed = self._install_interrupt_handler()

        self._output.banner(self._greeting)
        drive = asyncio.create_task(self._drive(), name="shellflow-session")
        interrupted = asyncio.create_task(self._interrupted.wait(), name="shellflow-interrupt")
        try:
            done, _ = await asyncio.wait({drive, interrupted}, return_when=asyncio.FIRST_COMPLETED)
            if interrupted in done and not drive.done():
                logger.debug("Interrupt received; cancelling session")
                drive.cancel()
            await asyncio.wait({drive})
            self._report_failure(drive)
        finally:
            interrupted.cancel()
            if not drive.done():
                drive.cancel()
                await asyncio.wait({drive})
            if handler_installed:
                self._loop.remove_signal_handler(signal.SIGINT)
            await self._shutdown()

    def _install_interrupt_handler(self) -> bool:
        if not self._config.handle_interrupts or self._loop is None:
            return False
        try:
            self._loop.add_signal_handler(signal.SIGINT, self.interrupt)
        except (NotImplementedError, RuntimeError, ValueError) as exc:
            logger.debug("SIGINT handler not installed: %s", exc)
            return False
        return True

    def _report_failure(self, drive: asyncio.Task[None]) -> None:
        if drive.cancelled():
            return
        exc = drive.exception()
        if exc is None:
            return
        logger.error("Session stopped by an unexpected error", exc_info=exc)
        self._emit(f"> An error occurred ({exc})", hidden=True, style="error")

    async def _shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._terminated = True
        await self._reader.close()
        # Written after the session ends, so it is not part of the history.
        self._output.write_line(EXIT_MESSAGE)
        self._output.close()

    def _terminate(self, reason: str) -> None:
        if not self._terminated:
            logger.debug("Terminating session: %s", reason)
        self._terminated = True

    # Session loop

    async def _drive(self) -> None:
        await self._run_events(self._root)
        while not self._terminated:
            if not self._current.has_children:
                self._terminate(f"flow exhausted at {self._current.label}")
                return
            token = await self._next_token(answer_mode=False)
            await self._dispatch(token)

    async def _next_token(self, *, answer_mode: bool) -> Token:
        assert self._inbox is not None
        if not answer_mode:
            self._instruct()
        request = ReadRequest(
            default=self._current.default,
            answer_mode=answer_mode,
            recall=self.history.recall(),
        )
        self._reader.spawn(request, self._inbox)
        return await self._inbox.get()

    def _instruct(self) -> None:
        node = self._current
        if not node.has_children:
            return
        self._emit(format_prompt(node.instruction, node.options(), node.default), style="prompt")

    async def _dispatch(self, token: Token) -> None:
        if token.is_end:
            self._terminate("end of input")
            return
        if token.is_empty:
            return
        command = token.text
        if token.defaulted:
            self._emit(command, input=command, style="echo")
        if command in (EXIT, QUIT):
            self._terminate(f"'{command}' entered")
            return
        if command == BACK:
            await self._go_back()
            return
        child = self._current.resolve(command)
        if child is None:
            self._emit(f"> unrecognised command '{command}'", input=command, style="warning")
            return
        if not token.defaulted:
            self.history.record(command, command)
        logger.debug("Transition %s -> %s", self._current.label, child.label)
        self._current = child
        await self._run_events(child)

    async def _go_back(self) -> None:
        parent = self._current.parent
        if parent is None:
            self._emit("> nothing to go back to", input=BACK, style="warning")
            return
        logger.debug("Back %s -> %s", self._current.label, parent.label)
        self.history.record(BACK, BACK)
        self._current = parent
        await self._run_events(parent)

    async def _run_events(self, node: FlowNode) -> None:
        revisit = node.executed
        sequence: list[Event] = list(node.events)
        index = 0
        while index < len(sequence) and not self._terminated:
            event = sequence[index]
            index += 1
            if isinstance(event, RunExec):
                if revisit:
                    continue
                await self._run_exec(event)
                node.executed = True
            elif isinstance(event, Branch):
                sequence[index:index] = self._materialize(node, event.instruction, event.build)
            elif isinstance(event, GoTo):
                build = self._registry.get(event.name)
                if build is None:
                    self._emit(f"> branch '{event.name}' not found", style="error")
                    self._terminate(f"missing branch {event.name}")
                    return
                sequence[index:index] = self._materialize(node, event.instruction, build)
            elif isinstance(event, Display):
                self._emit(f"> {event.produce()}")
            elif isinstance(event, AskQuestion):
                await self._ask(event)
            elif isinstance(event, Quit):
                self._emit(f"> {event.message}", style="done")
                self._terminate("quit event")
            else:
                raise TypeError(f"Unknown event type: {type(event).__name__}")

    def _materialize(self, node: FlowNode, instruction: str, build: BuildFunc) -> list[Event]:
        node.instruction = instruction
        extension: list[Event] = []
        build(FlowBuilder(node, self._registry, extension))
        return extension

    async def _run_exec(self, event: RunExec) -> None:
        while True:
            try:
                await self._jitter.run(event.timeout_ms, event.loading_message, event.fn, display=self.display)
            except BlankLineRetry:
                logger.debug("Exec %r asked for a retry", event.loading_message)
                continue
            except EndOfInput:
                return
            except Exception as exc:
                self._emit(f"> An error occurred ({exc})", hidden=True, style="error")
            return

    async def _ask(self, event: AskQuestion) -> None:
        self._awaiting_answer = event.key
        try:
            while not self._terminated:
                self._emit(f"> {event.question}", style="prompt")
                token = await self._next_token(answer_mode=True)
                if token.is_end:
                    self._terminate("end of input")
                    return
                try:
                    value = event.kind.parse(token.text)
                except ValueError:
                    if token.text and event.kind.hint:
                        self._emit(f"> {event.kind.hint}", input=token.text, hidden=True, style="hint")
                    continue
                self.history.record(token.text, token.text, hidden=True)
                self._store_answer(event.key, value)
                return
        finally:
            self._awaiting_answer = None

    def _store_answer(self, key: str, value: str | int | float) -> None:
        if isinstance(value, int):
            self._int_values[key] = value
        elif isinstance(value, float):
            self._float_values[key] = value
        else:
            self._values[key] = value
