from __future__ import annotations

import asyncio
from typing import Iterable

from shellflow import SessionConfig, Shell
from shellflow.ui.output import BufferedOutput

SESSION_TIMEOUT_S = 10.0

RECALL = b"\x1b[A\n"


def make_shell(lines: Iterable[str | bytes] = (), **overrides: object) -> Shell:
    return Shell(SessionConfig.for_testing(list(lines), **overrides))


def yes_no_shell(lines: Iterable[str | bytes] = (), **overrides: object) -> Shell:
    overrides.setdefault("buffer_size", 100)
    shell = make_shell(lines, **overrides)
    (
        shell.first_instruction("run programme?")
        .if_user_inputs("yes", "y", "Yes", "YES", "Y")
        .default("yes")
        .then_quit("thank you")
        .if_user_inputs("no", "n")
        .then_quit("maybe later")
    )
    return shell


async def run_session(shell: Shell, timeout: float = SESSION_TIMEOUT_S) -> BufferedOutput:
    await asyncio.wait_for(shell.run(), timeout)
    output = shell.output
    assert isinstance(output, BufferedOutput)
    return output


def count_containing(output: BufferedOutput, fragment: str) -> int:
    return sum(1 for line in output.lines if fragment in line)


def history_outputs(shell: Shell) -> list[str]:
    return [record.output for record in shell.history]
