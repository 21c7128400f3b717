from __future__ import annotations

from pydccio._sse import SseDecoder


def test_blank_line_dispatches_data() -> None:
    decoder = SseDecoder()
    assert decoder.feed_line(b"data: {\"type\":\"connected\"}\n") is None
    assert decoder.feed_line(b"\n") == '{"type":"connected"}'


def test_multiline_data_is_joined() -> None:
    decoder = SseDecoder()
    decoder.feed_line("data: first\r\n")
    decoder.feed_line("data:second")
    assert decoder.feed_line("\r\n") == "first\nsecond"


def test_comments_and_other_fields_are_ignored() -> None:
    decoder = SseDecoder()
    for line in (": ping", "event: update", "id: 7", "retry: 1000"):
        assert decoder.feed_line(line) is None
    assert decoder.feed_line("") is None


def test_flush_and_reset() -> None:
    decoder = SseDecoder()
    decoder.feed_line("data: partial")
    assert decoder.flush() == "partial"
    assert decoder.flush() is None

    decoder.feed_line("data: dropped")
    decoder.reset()
    assert decoder.feed_line("") is None
