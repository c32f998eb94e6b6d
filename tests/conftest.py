from __future__ import annotations

import pytest_asyncio

from tests.utils import run_session, yes_no_shell


@pytest_asyncio.fixture
async def defaulted_session():
    shell = yes_no_shell([""])
    output = await run_session(shell)
    return shell, output


@pytest_asyncio.fixture
async def typed_session():
    shell = yes_no_shell(["yes"])
    output = await run_session(shell)
    return shell, output
