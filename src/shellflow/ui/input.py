"""Line sources the input reader pulls raw bytes from."""

from __future__ import annotations

import asyncio
import sys
import threading
from typing import BinaryIO, Iterable, Protocol, runtime_checkable


@runtime_checkable
class LineSource(Protocol):
    async def readline(self) -> bytes:
        """Return the next line including its newline, or the trailing partial line / b"" at end-of-stream."""

    def close(self) -> None:
        """Stop producing lines."""


class StreamLineSource:
    """Reads a binary stream (stdin by default) one line per request.

    Each read runs on a daemon thread so an outstanding read never blocks
    interpreter shutdown. Only one read may be in flight at a time.
    """

    def __init__(self, stream: BinaryIO | None = None) -> None:
        if stream is None:
            stream = getattr(sys.stdin, "buffer", sys.stdin)
        self._stream = stream
        self._pending: asyncio.Future[bytes] | None = None
        self._closed = False

    async def readline(self) -> bytes:
        if self._closed:
            return b""
        if self._pending is not None:
            raise RuntimeError("A line read is already in flight.")
        loop = asyncio.get_running_loop()
        future: asyncio.Future[bytes] = loop.create_future()
        self._pending = future
        thread = threading.Thread(
            target=self._read_into,
            args=(loop, future),
            name="shellflow-reader",
            daemon=True,
        )
        thread.start()
        try:
            return await future
        finally:
            self._pending = None

    def close(self) -> None:
        self._closed = True
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()

    def _read_into(self, loop: asyncio.AbstractEventLoop, future: asyncio.Future[bytes]) -> None:
        try:
            line = self._stream.readline()
        except (OSError, ValueError) as exc:
            outcome: bytes | BaseException = exc
        else:
            outcome = line.encode("utf-8") if isinstance(line, str) else line
        try:
            loop.call_soon_threadsafe(_settle, future, outcome)
        except RuntimeError:
            # The loop closed while this read was blocked; nobody is waiting.
            return


def _settle(future: asyncio.Future[bytes], outcome: bytes | BaseException) -> None:
    if future.done():
        return
    if isinstance(outcome, BaseException):
        future.set_exception(outcome)
    else:
        future.set_result(outcome)


class MemoryLineSource:
    """Injected input buffer for tests and scripted sessions."""

    def __init__(self, lines: Iterable[str | bytes] = (), *, close: bool = True) -> None:
        self._queue: asyncio.Queue[bytes] = asyncio.Queue()
        self._closed = False
        for line in lines:
            self.feed(line)
        if close:
            self.close()

    def feed(self, line: str | bytes) -> None:
        data = line.encode("utf-8") if isinstance(line, str) else line
        if not data.endswith(b"\n"):
            data += b"\n"
        self.feed_raw(data)

    def feed_raw(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("Cannot feed a closed line source.")
        self._queue.put_nowait(data)

    async def readline(self) -> bytes:
        if self._closed and self._queue.empty():
            return b""
        data = await self._queue.get()
        if not data:
            # Keep reporting end-of-stream to every later read.
            self._queue.put_nowait(b"")
        return data

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(b"")
