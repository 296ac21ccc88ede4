"""
Server-sent-event stream handling shared by provider clients.

Providers stream newline-delimited `data: {...}` frames. Frames are decoded
into dicts here; provider clients turn them into StreamChunks, and
StreamAccumulator folds the chunks back into a complete response.
"""

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

import structlog

from journey_engine.llm.types import StreamChunk, TokenUsage, ToolInvocation

log = structlog.get_logger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


def parse_sse_line(line: str) -> Optional[Dict[str, Any]]:
    """
    Decode one SSE line into a frame dict.

    Returns None for blank lines, comments, non-data fields, the [DONE]
    sentinel, and frames whose payload is not a JSON object.
    """
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return None

    payload = line[len(DATA_PREFIX):].strip()
    if not payload or payload == DONE_SENTINEL:
        return None

    try:
        frame = json.loads(payload)
    except json.JSONDecodeError:
        log.debug("stream_frame_malformed", payload_preview=payload[:80])
        return None

    if not isinstance(frame, dict):
        log.debug("stream_frame_not_object", payload_preview=payload[:80])
        return None
    return frame


def is_done_line(line: str) -> bool:
    """True for the `data: [DONE]` end-of-stream sentinel."""
    line = line.strip()
    return line.startswith(DATA_PREFIX) and line[len(DATA_PREFIX):].strip() == DONE_SENTINEL


async def iter_sse_frames(lines: AsyncIterator[str]) -> AsyncIterator[Dict[str, Any]]:
    """
    Yield decoded frames from an async iterator of SSE lines.

    Stops at the `data: [DONE]` sentinel; malformed frames are skipped.
    """
    async for line in lines:
        if is_done_line(line):
            return
        frame = parse_sse_line(line)
        if frame is not None:
            yield frame


@dataclass
class StreamAccumulator:
    """Assembles the full completion from a sequence of stream chunks."""

    content_parts: List[str] = field(default_factory=list)
    thinking_parts: List[str] = field(default_factory=list)
    tool_invocations: List[ToolInvocation] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    chunk_count: int = 0
    # partially streamed tool calls keyed by block index
    pending_tools: Dict[int, Dict[str, str]] = field(default_factory=dict)

    def add(self, chunk: StreamChunk) -> None:
        if chunk.is_complete:
            return
        self.chunk_count += 1
        if chunk.type == "content":
            self.content_parts.append(chunk.content)
        elif chunk.type == "thinking":
            self.thinking_parts.append(chunk.content)

    @property
    def content(self) -> str:
        return "".join(self.content_parts)

    @property
    def thinking(self) -> Optional[str]:
        return "".join(self.thinking_parts) or None
