"""Input reader: raw lines in, sanitized command tokens out."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
import logging

from shellflow.ui.input import LineSource

logger = logging.getLogger(__name__)

ESCAPE_PREFIX = "\x1b["
RECALL_SUFFIX = "A"


class TokenKind(Enum):
    TYPED = "typed"
    RECALLED = "recalled"
    DEFAULTED = "defaulted"
    EMPTY = "empty"
    END = "end"


@dataclass(frozen=True)
class ReadRequest:
    """Snapshot of what the reader needs from the session for one read."""

    default: str | None = None
    answer_mode: bool = False
    recall: str = ""


@dataclass(frozen=True)
class Token:
    text: str
    kind: TokenKind

    @property
    def is_end(self) -> bool:
        return self.kind is TokenKind.END

    @property
    def is_empty(self) -> bool:
        return self.kind is TokenKind.EMPTY

    @property
    def defaulted(self) -> bool:
        return self.kind is TokenKind.DEFAULTED


def sanitize(text: str) -> str:
    for char in ("\n", "\r", "\t"):
        text = text.replace(char, "")
    return text.strip(" ")


class InputReader:
    def __init__(self, source: LineSource) -> None:
        self._source = source
        self._task: asyncio.Task[None] | None = None

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    async def read(self, request: ReadRequest) -> Token:
        try:
            raw = await self._source.readline()
        except (OSError, ValueError) as exc:
            logger.debug("Read failed, treating as end of input: %s", exc)
            return Token("", TokenKind.END)
        return self.interpret(raw, request)

    def interpret(self, raw: bytes, request: ReadRequest) -> Token:
        # A final line without its newline counts as end-of-stream.
        if not raw.endswith(b"\n"):
            return Token("", TokenKind.END)
        text = sanitize(raw.decode("utf-8", errors="replace"))
        kind = TokenKind.TYPED
        if len(text) >= 3 and text.startswith(ESCAPE_PREFIX):
            if text[2] == RECALL_SUFFIX:
                text = request.recall
                kind = TokenKind.RECALLED
            else:
                text = ""
        if text:
            return Token(text, kind)
        if request.default and not request.answer_mode:
            return Token(request.default, TokenKind.DEFAULTED)
        return Token("", TokenKind.EMPTY)

    def spawn(self, request: ReadRequest, inbox: asyncio.Queue[Token]) -> asyncio.Task[None]:
        if self.in_flight:
            raise RuntimeError("An input read is already in flight.")
        self._task = asyncio.create_task(self._publish(request, inbox), name="shellflow-read")
        return self._task

    async def _publish(self, request: ReadRequest, inbox: asyncio.Queue[Token]) -> None:
        token = await self.read(request)
        logger.debug("Read token %r (%s)", token.text, token.kind.value)
        await inbox.put(token)

    async def cancel(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def close(self) -> None:
        await self.cancel()
        self._source.close()
