"""Timed executor with an animated progress line.

``Jitter.run`` races a caller-supplied function against a ticking animation.
The animation overwrites one line with a rotating glyph every tick and, once
the accumulated tick time passes the deadline, fires the cancellation token
and reports a timeout. The function is cooperative: it must watch its
``ExecContext`` and return on its own. ``run`` never returns before both the
function and the animation have finished, including when ``run`` itself is
cancelled.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from typing import Any, Callable

from shellflow.config import JITTER_TIME_MS
from shellflow.errors import ExecTimeoutError
from shellflow.flow.events import ExecFunc
from shellflow.ui.output import ShellOutput
from shellflow.ui.render import format_outcome, format_progress

logger = logging.getLogger(__name__)

GLYPHS = ("/", "-", "\\", "|")


class CancelToken:
    """One-shot cancellation flag usable from the loop and from worker threads."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._flag = threading.Event()
        self._event = asyncio.Event()
        self._lock = threading.Lock()

    @property
    def is_set(self) -> bool:
        return self._flag.is_set()

    def fire(self) -> bool:
        """Set the token. Returns True only for the call that actually set it."""
        with self._lock:
            if self._flag.is_set():
                return False
            self._flag.set()
        if running_on(self._loop):
            self._event.set()
        else:
            self._loop.call_soon_threadsafe(self._event.set)
        return True

    async def wait(self, timeout: float | None = None) -> bool:
        if self._event.is_set():
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def wait_blocking(self, timeout: float | None = None) -> bool:
        return self._flag.wait(timeout)


class ExecContext:
    """Handle given to exec callbacks.

    ``cancelled`` turns true when the deadline passes (or the session shuts
    down). Calling ``cancel()`` tells the executor the work is done early.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        display: Callable[[str], Any] | None = None,
    ) -> None:
        self._loop = loop
        self._token = CancelToken(loop)
        self._display = display

    @property
    def token(self) -> CancelToken:
        return self._token

    @property
    def cancelled(self) -> bool:
        return self._token.is_set

    def cancel(self) -> None:
        self._token.fire()

    async def wait_cancelled(self, timeout: float | None = None) -> bool:
        return await self._token.wait(timeout)

    async def sleep(self, seconds: float) -> bool:
        """Sleep unless cancelled first. Returns False when cut short."""
        return not await self._token.wait(seconds)

    def wait(self, seconds: float | None = None) -> bool:
        """Blocking variant for callbacks running in a worker thread. Returns True when cancelled."""
        return self._token.wait_blocking(seconds)

    def display(self, message: str) -> None:
        if self._display is None:
            return
        if running_on(self._loop):
            self._display(message)
        else:
            self._loop.call_soon_threadsafe(self._display, message)


class Jitter:
    def __init__(self, output: ShellOutput, tick_ms: int = JITTER_TIME_MS) -> None:
        self._output = output
        self._tick_ms = tick_ms

    async def run(
        self,
        deadline_ms: int,
        label: str,
        fn: ExecFunc,
        display: Callable[[str], Any] | None = None,
    ) -> None:
        ctx = ExecContext(asyncio.get_running_loop(), display=display)
        animation = asyncio.create_task(self._animate(deadline_ms, label, ctx), name="shellflow-jitter")
        work = asyncio.create_task(_call(fn, ctx), name="shellflow-exec")
        try:
            await asyncio.wait({work})
        except asyncio.CancelledError:
            # The callback must finish before the cancellation propagates.
            ctx.cancel()
            work.cancel()
            animation.cancel()
            await _drain(work)
            await _drain(animation)
            self._output.commit()
            raise

        ctx.cancel()
        timed_out = await animation
        self._output.commit()
        error = None if work.cancelled() else work.exception()
        if timed_out:
            logger.debug("Exec %r timed out after %sms", label, deadline_ms)
            raise ExecTimeoutError(label, deadline_ms, str(error) if error else None) from error
        if error is not None:
            logger.debug("Exec %r failed: %s", label, error)
            raise error

    async def _animate(self, deadline_ms: int, label: str, ctx: ExecContext) -> bool:
        elapsed = 0
        position = 0
        while True:
            if await ctx.wait_cancelled(self._tick_ms / 1000):
                self._output.overwrite(format_outcome(label, "done"), style="done")
                return False
            elapsed += self._tick_ms
            self._output.overwrite(format_progress(label, GLYPHS[position]))
            position = (position + 1) % len(GLYPHS)
            if elapsed > deadline_ms and ctx.token.fire():
                self._output.overwrite(format_outcome(label, "error"), style="error")
                return True


async def _call(fn: ExecFunc, ctx: ExecContext) -> None:
    if inspect.iscoroutinefunction(fn):
        await fn(ctx)
        return
    # Plain callables may block, so they run off the loop. A worker thread
    # cannot be cancelled, so cancellation waits for it to return.
    thread = asyncio.ensure_future(asyncio.to_thread(fn, ctx))
    try:
        result = await asyncio.shield(thread)
    except asyncio.CancelledError:
        ctx.cancel()
        await _drain(thread)
        raise
    if inspect.isawaitable(result):
        await result


async def _drain(task: asyncio.Future[Any]) -> None:
    """Wait for ``task`` to finish, ignoring repeated cancellation of the caller."""
    while not task.done():
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            continue
    if not task.cancelled() and task.exception() is not None:
        logger.debug("Exec finished after cancellation with %r", task.exception())


def running_on(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False
