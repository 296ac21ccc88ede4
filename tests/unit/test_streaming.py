"""Tests for SSE frame decoding and stream accumulation."""

from journey_engine.llm.streaming import (
    StreamAccumulator,
    is_done_line,
    iter_sse_frames,
    parse_sse_line,
)
from journey_engine.llm.types import StreamChunk


async def _lines(*lines):
    for line in lines:
        yield line


class TestParseSseLine:
    def test_data_frame(self):
        assert parse_sse_line('data: {"a": 1}') == {"a": 1}

    def test_no_space_after_prefix(self):
        assert parse_sse_line('data:{"a": 1}') == {"a": 1}

    def test_ignores_non_data_lines(self):
        assert parse_sse_line("") is None
        assert parse_sse_line(": keep-alive") is None
        assert parse_sse_line("event: message_start") is None

    def test_malformed_json_skipped(self):
        assert parse_sse_line("data: {not json") is None

    def test_non_object_skipped(self):
        assert parse_sse_line("data: [1, 2]") is None

    def test_done_sentinel(self):
        assert parse_sse_line("data: [DONE]") is None
        assert is_done_line("data: [DONE]")
        assert not is_done_line('data: {"a": 1}')


class TestIterSseFrames:
    async def test_stops_at_done(self):
        frames = [
            f
            async for f in iter_sse_frames(
                _lines('data: {"n": 1}', "", "data: garbage", 'data: {"n": 2}', "data: [DONE]", 'data: {"n": 3}')
            )
        ]
        assert frames == [{"n": 1}, {"n": 2}]


class TestStreamAccumulator:
    def test_collects_content_and_thinking(self):
        acc = StreamAccumulator()
        acc.add(StreamChunk(type="thinking", content="hmm "))
        acc.add(StreamChunk(type="content", content="Hello "))
        acc.add(StreamChunk(type="content", content="world"))
        acc.add(StreamChunk(type="tool_use", content="search"))
        acc.add(StreamChunk(type="content", content="", is_complete=True))

        assert acc.content == "Hello world"
        assert acc.thinking == "hmm "
        assert acc.chunk_count == 4

    def test_empty_thinking_is_none(self):
        assert StreamAccumulator().thinking is None
        assert StreamAccumulator().content == ""
