from __future__ import annotations

import asyncio
import os
import signal
import sys
import time

import pytest

from shellflow import BlankLineRetry, ConfigError, EndOfInput, ExecContext, SessionConfig, Shell
from shellflow.config import IOMode
from shellflow.shell import EXIT_MESSAGE
from shellflow.ui.input import MemoryLineSource
from shellflow.ui.output import BufferedOutput
from tests.utils import (
    RECALL,
    count_containing,
    history_outputs,
    make_shell,
    run_session,
    yes_no_shell,
)

PROMPT = "> run programme? [options: yes, no] (default 'yes')"


def _idle_shell(handle_interrupts: bool = False) -> Shell:
    """Shell whose input never arrives, for interrupt tests."""
    config = SessionConfig(
        io_mode=IOMode.BUFFER,
        input_source=MemoryLineSource(close=False),
        output=BufferedOutput(),
        handle_interrupts=handle_interrupts,
        tick_ms=10,
    )
    return Shell(config)


def test_new_shell_configuration() -> None:
    shell = make_shell()
    shell.set_greeting("Hello Test!", "version 1.0.0").set_buffer_size(40)
    assert shell.history.capacity == 40
    assert shell.greeting == ("Hello Test!", "version 1.0.0")
    assert shell.current is shell.root


def test_buffer_size_must_be_positive() -> None:
    with pytest.raises(ConfigError):
        make_shell().set_buffer_size(0)
    with pytest.raises(ConfigError):
        make_shell(buffer_size=0)


@pytest.mark.asyncio
async def test_greeting_printed_first() -> None:
    shell = yes_no_shell(["yes"])
    shell.set_greeting("welcome to the test shell", "version 1.0.0")
    output = await run_session(shell)
    assert output.lines[:3] == ["welcome to the test shell", "version 1.0.0", PROMPT]


@pytest.mark.asyncio
async def test_bad_command_keeps_current_node() -> None:
    shell = yes_no_shell(["bad_command"])
    output = await run_session(shell)
    assert "> unrecognised command 'bad_command'" in history_outputs(shell)
    assert shell.current is shell.root
    # Prompted once before and once after the unmatched token.
    assert output.lines.count(PROMPT) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("word", ["exit", "quit"])
async def test_reserved_exit_words(word: str) -> None:
    shell = yes_no_shell([word])
    output = await run_session(shell)
    assert output.lines[-1] == EXIT_MESSAGE
    assert count_containing(output, "exiting...") == 1
    assert not output.contains("thank you")
    assert shell.terminated
    assert output.closed


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("lines", "expected"),
    [
        (["yes"], "> thank you"),
        (["Y"], "> thank you"),
        ([""], "> thank you"),
        (["n"], "> maybe later"),
        (["bad", "", "no"], "> thank you"),
        (["bad", "no"], "> maybe later"),
    ],
)
async def test_valid_path_reaches_one_quit_message(lines: list[str], expected: str) -> None:
    shell = yes_no_shell(lines)
    output = await run_session(shell)
    quits = [line for line in output.lines if line in ("> thank you", "> maybe later")]
    assert quits == [expected]
    assert output.lines[-1] == EXIT_MESSAGE


@pytest.mark.asyncio
async def test_empty_line_equivalent_to_default(defaulted_session, typed_session) -> None:
    defaulted_shell, defaulted_output = defaulted_session
    typed_shell, _ = typed_session
    assert defaulted_output.contains("> thank you")
    # The default is echoed as if typed.
    assert "yes" in defaulted_output.lines
    defaulted_records = [(r.input, r.output, r.hidden) for r in defaulted_shell.history]
    typed_records = [(r.input, r.output, r.hidden) for r in typed_shell.history]
    assert defaulted_records == typed_records


@pytest.mark.asyncio
async def test_recall_repeats_last_input() -> None:
    shell = make_shell(["no", RECALL])
    (
        shell.first_instruction("run programme?")
        .if_user_inputs("yes")
        .then_quit("thank you")
        .if_user_inputs("no")
        .then_branch("are you sure?", lambda flow: flow.if_user_inputs("no").then_quit("fine"))
    )
    output = await run_session(shell)
    assert output.contains("> fine")


@pytest.mark.asyncio
async def test_branching() -> None:
    shell = make_shell(["n", "yes"], buffer_size=1000)

    def anything_else(flow) -> None:
        (
            flow.if_user_inputs("yes")
            .then_quit("that's all we can do though.")
            .default("yes")
            .if_user_inputs("no")
            .then_quit("OK")
        )

    (
        shell.first_instruction("run programme?")
        .if_user_inputs("yes", "y", "Yes", "YES", "Y")
        .default("yes")
        .then_quit("thank you")
        .if_user_inputs("no", "n", "NO", "N")
        .then_branch("would you like to do anything else?", anything_else)
    )
    output = await run_session(shell)
    assert "> that's all we can do though." in history_outputs(shell)
    assert "> would you like to do anything else? [options: yes, no] (default 'yes')" in output.lines
    assert output.lines[-1] == EXIT_MESSAGE


@pytest.mark.asyncio
async def test_gotos() -> None:
    shell = make_shell(["one", "hello world!"])
    (
        shell.first_instruction("run programme?")
        .branch("branch_one", lambda flow: flow.if_user_inputs("hello world!").then_quit("hello"))
        .branch("branch_two", lambda flow: flow.if_user_inputs("goodbye").then_quit("goodbye"))
        .if_user_inputs("one")
        .default("one")
        .go_to("branch_one", "you've entered branch one")
        .if_user_inputs("branch_two")
        .go_to("branch_two", "you've entered branch two")
    )
    output = await run_session(shell)
    outputs = history_outputs(shell)
    assert "> you've entered branch one [options: hello world!]" in outputs
    assert "> hello" in outputs
    assert not output.contains("> goodbye")


@pytest.mark.asyncio
async def test_go_to_missing_branch_terminates() -> None:
    shell = make_shell(["one", "ignored"])
    (
        shell.first_instruction("run programme?")
        .if_user_inputs("one")
        .default("one")
        .go_to("missing_branch", "you've entered branch one")
    )
    output = await run_session(shell)
    assert "> branch 'missing_branch' not found" in history_outputs(shell)
    assert count_containing(output, "[options") == 1
    assert output.lines[-1] == EXIT_MESSAGE


@pytest.mark.asyncio
async def test_go_to_reenters_named_branch() -> None:
    shell = make_shell(["no", "again", "finish"])

    def loop_back(flow) -> None:
        flow.if_user_inputs("again").go_to("menu", "menu again")
        flow.if_user_inputs("finish").then_quit("finished")

    (
        shell.first_instruction("start?")
        .branch("menu", loop_back)
        .if_user_inputs("no")
        .go_to("menu", "menu")
    )
    output = await run_session(shell)
    assert output.contains("> menu [options: again, finish]")
    assert output.contains("> menu again [options: again, finish]")
    assert output.contains("> finished")


@pytest.mark.asyncio
async def test_func_runs_callback() -> None:
    shell = make_shell([""], buffer_size=10000, tick_ms=10)
    state = {"message": ""}

    def work(ctx: ExecContext) -> None:
        if ctx.cancelled:
            raise RuntimeError("timeout (not expected)")
        state["message"] = "ran function"

    (
        shell.set_greeting("welcome to the test shell")
        .first_instruction("run programme?")
        .if_user_inputs("yes", "y", "Yes", "YES", "Y")
        .default("yes")
        .then_run(work, "function loading", 10000)
        .then_quit("thank you")
    )
    output = await run_session(shell)
    assert state["message"] == "ran function"
    assert "> function loading  ...done" in output.lines
    assert output.contains("> thank you")
    # Animation frames never reach the history.
    assert not any("function loading" in text for text in history_outputs(shell))


@pytest.mark.asyncio
async def test_func_timeout_leaves_side_effect_unset() -> None:
    shell = make_shell([RECALL], tick_ms=10)
    state = {"message": ""}

    def work(ctx: ExecContext) -> None:
        if ctx.wait(2):
            raise RuntimeError("timeout (expected)")
        state["message"] = "ran function"

    (
        shell.first_instruction("run programme?")
        .if_user_inputs("yes", "y", "Yes", "YES", "Y")
        .default("yes")
        .then_run(work, "running...", 100)
        .then_quit("thank you")
    )
    started = time.monotonic()
    output = await run_session(shell)
    assert time.monotonic() - started < 2
    assert state["message"] == ""
    assert any("timeout (expected)" in text for text in history_outputs(shell))
    assert "> running...  ...error" in output.lines
    # The error is not fatal; the sequence carries on.
    assert output.contains("> thank you")


@pytest.mark.asyncio
async def test_exec_error_is_displayed_and_hidden() -> None:
    shell = make_shell(["go"], tick_ms=10)

    async def work(ctx: ExecContext) -> None:
        raise ValueError("disk full")

    shell.if_user_inputs("go").then_run(work, "copying", 1000).then_display("after")
    output = await run_session(shell)
    assert output.contains("> An error occurred (disk full)")
    assert output.contains("> after")
    errors = [record for record in shell.history if "disk full" in record.output]
    assert len(errors) == 1
    assert errors[0].hidden


@pytest.mark.asyncio
async def test_end_of_input_from_exec_is_silent() -> None:
    shell = make_shell(["go"], tick_ms=10)

    async def work(ctx: ExecContext) -> None:
        raise EndOfInput()

    shell.if_user_inputs("go").then_run(work, "reading", 1000).then_quit("done")
    output = await run_session(shell)
    assert not output.contains("An error occurred")
    assert output.contains("> done")


@pytest.mark.asyncio
async def test_blank_line_retry_reruns_exec() -> None:
    shell = make_shell(["go"], tick_ms=10)
    attempts = {"count": 0}

    async def work(ctx: ExecContext) -> None:
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise BlankLineRetry()

    shell.if_user_inputs("go").then_run(work, "retrying", 1000).then_quit("done")
    output = await run_session(shell)
    assert attempts["count"] == 3
    assert not output.contains("An error occurred")
    assert output.contains("> done")


@pytest.mark.asyncio
async def test_exec_display_is_recorded() -> None:
    shell = make_shell(["go"], tick_ms=10)

    async def work(ctx: ExecContext) -> None:
        ctx.display("> Programme installed")

    shell.if_user_inputs("go").then_run(work, "installing", 1000).then_quit("done")
    output = await run_session(shell)
    assert output.contains("> Programme installed")
    assert "> Programme installed" in history_outputs(shell)


@pytest.mark.asyncio
async def test_ask() -> None:
    shell = make_shell(["", "Gandalf"])
    shell.ask("what's your name?", "name").then_display(lambda: f"hello {shell.get_value('name')}")
    output = await run_session(shell)
    assert shell.get_value("name") == "Gandalf"
    assert output.lines.count("> what's your name?") == 2
    assert output.contains("> hello Gandalf")
    answers = [record for record in shell.history if record.input == "Gandalf"]
    assert len(answers) == 1
    assert answers[0].hidden
    assert shell.history.recall() == ""
    assert shell.awaiting_answer is None


@pytest.mark.asyncio
async def test_ask_does_not_apply_default() -> None:
    shell = make_shell(["", "robot", "yes"])
    (
        shell.ask("what are you?", "kind")
        .first_instruction("continue?")
        .if_user_inputs("yes")
        .default("yes")
        .then_quit("bye")
    )
    output = await run_session(shell)
    assert shell.get_value("kind") == "robot"
    assert output.contains("> bye")


@pytest.mark.asyncio
async def test_ask_for_int_retries_until_parseable() -> None:
    shell = make_shell(["seventeen", "1.5", "17"])
    shell.ask_for_int("how old are you?", "age")
    output = await run_session(shell)
    assert shell.get_int_value("age") == (17, True)
    assert shell.get_float_value("age") == (0.0, False)
    assert output.lines.count("> Please enter an integer e.g. 34") == 2
    assert output.lines.count("> how old are you?") == 3


@pytest.mark.asyncio
async def test_ask_for_float() -> None:
    shell = make_shell(["tall", "180.2"])
    shell.ask_for_float("how tall are you?", "height")
    output = await run_session(shell)
    assert shell.get_float_value("height") == (180.2, True)
    assert shell.get_int_value("height") == (0, False)
    assert output.lines.count("> Please enter a number e.g. 3.1415") == 1


@pytest.mark.asyncio
async def test_ask_ends_with_input() -> None:
    shell = make_shell(["seventeen"])
    shell.ask_for_int("how old are you?", "age").then_display("unreachable")
    output = await run_session(shell)
    assert shell.get_int_value("age") == (0, False)
    assert not output.contains("unreachable")
    assert output.lines[-1] == EXIT_MESSAGE


@pytest.mark.asyncio
async def test_missing_values_are_empty() -> None:
    shell = yes_no_shell(["yes"])
    await run_session(shell)
    assert shell.get_value("nothing") == ""
    assert shell.get_int_value("nothing") == (0, False)


@pytest.mark.asyncio
async def test_small_buffer_keeps_latest_display() -> None:
    shell = make_shell(buffer_size=1)
    shell.then_display("first").then_display("second")
    output = await run_session(shell)
    assert history_outputs(shell) == ["> second"]
    assert output.lines == ["> first", "> second", EXIT_MESSAGE]


@pytest.mark.asyncio
async def test_back_returns_to_parent_and_runs_exec_once() -> None:
    shell = make_shell(["install", "back", "install", "finish"], tick_ms=10)
    runs = {"count": 0}

    async def work(ctx: ExecContext) -> None:
        runs["count"] += 1

    (
        shell.first_instruction("what now?")
        .if_user_inputs("install")
        .then_run(work, "installing", 1000)
        .then_branch("installed. next?", lambda flow: flow.if_user_inputs("finish").then_quit("done"))
    )
    output = await run_session(shell)
    assert runs["count"] == 1
    assert output.lines.count("> what now? [options: install]") == 2
    assert output.contains("> done")
    assert ("back", "back") in [(record.input, record.output) for record in shell.history]


@pytest.mark.asyncio
async def test_back_at_root() -> None:
    shell = yes_no_shell(["back", "no"])
    output = await run_session(shell)
    assert output.contains("> nothing to go back to")
    assert output.contains("> maybe later")


@pytest.mark.asyncio
async def test_end_of_input_terminates() -> None:
    shell = yes_no_shell([])
    output = await run_session(shell)
    assert shell.terminated
    assert output.lines == [PROMPT, EXIT_MESSAGE]


@pytest.mark.asyncio
async def test_partial_last_line_is_end_of_input() -> None:
    source = MemoryLineSource(close=False)
    source.feed_raw(b"yes")
    source.close()
    config = SessionConfig(
        io_mode=IOMode.BUFFER,
        input_source=source,
        output=BufferedOutput(),
        handle_interrupts=False,
    )
    shell = Shell(config)
    shell.if_user_inputs("yes").then_quit("thank you")
    output = await run_session(shell)
    assert not output.contains("> thank you")
    assert output.lines[-1] == EXIT_MESSAGE


@pytest.mark.asyncio
async def test_session_runs_once() -> None:
    shell = yes_no_shell(["yes"])
    await run_session(shell)
    with pytest.raises(RuntimeError):
        await shell.run()
    with pytest.raises(ConfigError):
        shell.set_buffer_size(5)


@pytest.mark.asyncio
async def test_interrupt_while_waiting_for_input() -> None:
    shell = _idle_shell()
    shell.first_instruction("run programme?").if_user_inputs("yes").then_quit("thank you")
    session = asyncio.create_task(shell.run())
    await asyncio.sleep(0.05)
    shell.interrupt()
    await asyncio.wait_for(session, 5)
    output = shell.output
    assert isinstance(output, BufferedOutput)
    assert shell.terminated
    assert output.lines[-1] == EXIT_MESSAGE
    assert count_containing(output, "exiting...") == 1
    assert not output.contains("thank you")


@pytest.mark.asyncio
async def test_interrupt_cancels_running_exec() -> None:
    shell = _idle_shell()
    contexts: list[ExecContext] = []
    state = {"finished": False}

    async def work(ctx: ExecContext) -> None:
        contexts.append(ctx)
        if await ctx.sleep(10):
            state["finished"] = True

    shell.then_run(work, "long task", 60_000).then_quit("thank you")
    session = asyncio.create_task(shell.run())
    await asyncio.sleep(0.1)
    shell.interrupt()
    await asyncio.wait_for(session, 5)
    output = shell.output
    assert isinstance(output, BufferedOutput)
    assert contexts and contexts[0].cancelled
    assert not state["finished"]
    assert not output.contains("> thank you")
    assert count_containing(output, "exiting...") == 1
    assert not any(task.get_name().startswith("shellflow-") for task in asyncio.all_tasks())


@pytest.mark.asyncio
async def test_interrupt_waits_for_threaded_exec() -> None:
    shell = _idle_shell()
    steps: list[str] = []

    def work(ctx: ExecContext) -> None:
        steps.append("started")
        if ctx.wait(10):
            time.sleep(0.3)
            steps.append("cleaned up")
            ctx.display("> cleaned up")

    shell.then_run(work, "long task", 60_000).then_quit("thank you")
    session = asyncio.create_task(shell.run())
    await asyncio.sleep(0.1)
    shell.interrupt()
    await asyncio.wait_for(session, 5)
    output = shell.output
    assert isinstance(output, BufferedOutput)
    assert steps == ["started", "cleaned up"]
    assert output.lines.index("> cleaned up") < output.lines.index(EXIT_MESSAGE)
    assert count_containing(output, "exiting...") == 1
    assert not output.contains("> thank you")


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signal delivery")
@pytest.mark.asyncio
async def test_sigint_behaves_like_quit() -> None:
    previous = signal.getsignal(signal.SIGINT)
    shell = _idle_shell(handle_interrupts=True)
    shell.first_instruction("run programme?").if_user_inputs("yes").then_quit("thank you")
    try:
        session = asyncio.create_task(shell.run())
        await asyncio.sleep(0.05)
        os.kill(os.getpid(), signal.SIGINT)
        await asyncio.wait_for(session, 5)
        # The handler was removed when the session ended.
        assert not asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
    finally:
        signal.signal(signal.SIGINT, previous)
    output = shell.output
    assert isinstance(output, BufferedOutput)
    assert shell.terminated
    assert output.lines[-1] == EXIT_MESSAGE
    assert count_containing(output, "exiting...") == 1
    assert not output.contains("thank you")


@pytest.mark.asyncio
async def test_shell_display_from_worker_thread() -> None:
    shell = make_shell(["go"], tick_ms=10)

    def work(ctx: ExecContext) -> None:
        shell.display("> from the worker")

    shell.if_user_inputs("go").then_run(work, "working", 1000).then_quit("done")
    output = await run_session(shell)
    assert "> from the worker" in history_outputs(shell)
    assert output.lines.index("> from the worker") < output.lines.index("> done")


@pytest.mark.asyncio
async def test_ask_for_int_rejects_digit_separators() -> None:
    shell = make_shell(["1_000", "١٧", "34"])
    shell.ask_for_int("how many?", "count")
    output = await run_session(shell)
    assert shell.get_int_value("count") == (34, True)
    assert output.lines.count("> Please enter an integer e.g. 34") == 2
