"""Bounded most-recent-first record of shell input and output."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator

DEFAULT_CAPACITY = 10


@dataclass(frozen=True)
class HistoryRecord:
    input: str
    output: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    hidden: bool = False


class HistoryBuffer:
    """Append/evict ring of records, front is the most recent.

    Only the session loop writes to the buffer.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"History capacity must be >= 1, got {capacity}.")
        self._records: deque[HistoryRecord] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._records.maxlen or 0

    def record(self, input: str, output: str, hidden: bool = False) -> HistoryRecord:
        entry = HistoryRecord(input=input, output=output, hidden=hidden)
        # appendleft on a full deque drops the oldest record from the right.
        self._records.appendleft(entry)
        return entry

    def recall(self) -> str:
        for entry in self._records:
            if entry.hidden or not entry.input:
                continue
            return entry.input
        return ""

    def records(self) -> list[HistoryRecord]:
        return list(self._records)

    def outputs(self) -> list[str]:
        return [entry.output for entry in self._records]

    def transcript(self) -> list[str]:
        lines = []
        for entry in reversed(self._records):
            if entry.hidden:
                continue
            lines.append(entry.output)
        return lines

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[HistoryRecord]:
        return iter(list(self._records))
