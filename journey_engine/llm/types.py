"""
Provider-agnostic request and response types.

Every provider client produces these exact shapes so that the retry
wrapper, stage executor and synthesis service never branch on provider.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Union

from journey_engine.domain.models.artifact import Artifact
from journey_engine.services.artifact_extractor import DEFAULT_MIN_LENGTH

ChunkType = Literal["content", "thinking", "tool_use", "reset"]


@dataclass(frozen=True)
class StreamChunk:
    """One incremental fragment of a streamed completion.

    The final chunk of a stream has is_complete=True and empty content.
    A "reset" chunk means everything streamed since the last reset belongs
    to a failed attempt and is about to be replaced.
    """

    type: ChunkType
    content: str
    is_complete: bool = False


# Observers may be plain callables or coroutine functions.
ChunkCallback = Callable[[StreamChunk], Union[None, Awaitable[None]]]


@dataclass
class TokenUsage:
    """Token counts reported by the provider."""

    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def as_dict(self) -> Dict[str, int]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "reasoning_tokens": self.reasoning_tokens,
        }


@dataclass(frozen=True)
class ToolDefinition:
    """A tool the model may call, described by a JSON schema."""

    name: str
    description: str
    input_schema: Dict[str, Any]


@dataclass(frozen=True)
class ToolInvocation:
    """A tool call requested by the model."""

    name: str
    input: Dict[str, Any]

    def as_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "input": dict(self.input)}


@dataclass
class ProviderRequest:
    """Everything needed to issue one logical completion request.

    `reasoning_budget` is only sent when `extended_reasoning` is true.
    Fenced blocks shorter than `min_artifact_length` are not returned as
    artifacts; None skips artifact extraction altogether.
    """

    prompt: str
    model_id: str
    max_tokens: int
    extended_reasoning: bool = False
    reasoning_budget: Optional[int] = None
    streaming: bool = False
    tools: Optional[List[ToolDefinition]] = None
    system_prompt: Optional[str] = None
    temperature: Optional[float] = None
    min_artifact_length: Optional[int] = DEFAULT_MIN_LENGTH

    def __post_init__(self) -> None:
        if not self.prompt or not self.prompt.strip():
            raise ValueError("prompt must be non-empty")
        if self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {self.max_tokens}")


@dataclass
class ProviderResponse:
    """Standardized provider response."""

    content: str
    provider_id: str
    model_id: str
    reasoning_trace: Optional[str] = None
    artifacts: List[Artifact] = field(default_factory=list)
    tool_invocations: List[ToolInvocation] = field(default_factory=list)
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    latency_ms: float = 0.0
