"""Fixed-capacity, FIFO-eviction append log.

Backs the two log views kept by the client: decoded transport traffic
from the event stream and raw command channel traffic.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LogCategory(StrEnum):
    # transport log
    IN = "in"
    OUT = "out"
    POWER = "power"
    ERROR = "error"
    INFO = "info"
    # channel log
    SENT = "sent"
    RECEIVED = "received"
    MALFORMED = "malformed"


class LogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=_utcnow)
    category: LogCategory
    text: str

    def format(self) -> str:
        return f"{self.timestamp.astimezone().strftime('%H:%M:%S')} [{self.category}] {self.text}"


class BoundedLogBuffer:
    """Append-only log holding at most ``capacity`` entries.

    Appending past capacity evicts from the head, so the buffer always
    holds the most recent entries in insertion order.
    """

    def __init__(self, capacity: int, *, clock: Callable[[], datetime] = _utcnow) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._clock = clock
        self._entries: deque[LogEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, entry: LogEntry) -> None:
        self._entries.append(entry)

    def add(self, category: LogCategory, text: str) -> LogEntry:
        """Build a timestamped entry and append it."""
        entry = LogEntry(timestamp=self._clock(), category=category, text=text)
        self.append(entry)
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(list(self._entries))
