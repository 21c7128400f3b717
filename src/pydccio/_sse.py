"""Minimal server-sent events framing.

Only the ``data:`` field matters for the daemon's event stream; ``event``,
``id`` and ``retry`` are accepted and ignored, comment lines (``:``) are
skipped. A blank line dispatches the buffered data.
"""

from __future__ import annotations


class SseDecoder:
    def __init__(self) -> None:
        self._data: list[str] = []

    def feed_line(self, line: str | bytes) -> str | None:
        """Feed one line; returns the event data when a frame completes."""
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        line = line.rstrip("\r\n")
        if not line:
            return self.flush()
        if line.startswith(":"):
            return None
        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if field == "data":
            self._data.append(value)
        return None

    def flush(self) -> str | None:
        if not self._data:
            return None
        data = "\n".join(self._data)
        self._data.clear()
        return data

    def reset(self) -> None:
        self._data.clear()
