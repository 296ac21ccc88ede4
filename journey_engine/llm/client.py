"""
Provider client abstraction for language-model backends.

Provides an async interface for completions with:
- Structured logging of requests/responses
- Typed error mapping (timeouts, transport errors, HTTP status, bad bodies)
- Streaming consumed as an async iterator of StreamChunks
- Usage tracking (tokens)

Supported providers:
- azure: cloud inference gateway speaking the OpenAI chat-completions dialect
- anthropic: direct Anthropic Messages API

Both return ProviderResponse objects of identical shape. Retries and
failover live in journey_engine.llm.retry, not here.
"""

import inspect
import json
import time
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
import structlog

from journey_engine.core.config import settings
from journey_engine.core.exceptions import (
    ConfigurationError,
    MalformedResponseError,
    ProviderConnectionError,
    ProviderError,
    ProviderHTTPError,
    ProviderTimeoutError,
)
from journey_engine.llm.model_map import available_models
from journey_engine.llm.streaming import StreamAccumulator, iter_sse_frames
from journey_engine.llm.types import (
    ChunkCallback,
    ProviderRequest,
    ProviderResponse,
    StreamChunk,
    TokenUsage,
    ToolDefinition,
    ToolInvocation,
)
from journey_engine.services.artifact_extractor import extract_artifacts

log = structlog.get_logger(__name__)

CONNECTION_TEST_PROMPT = 'Reply with exactly "CONNECTION_OK"'
CONNECTION_TEST_TOKEN = "CONNECTION_OK"


async def notify_chunk(on_chunk: Optional[ChunkCallback], chunk: StreamChunk) -> None:
    """Deliver a chunk to a sync or async observer callback."""
    if on_chunk is None:
        return
    result = on_chunk(chunk)
    if inspect.isawaitable(result):
        await result


# =============================================================================
# Base Class
# =============================================================================


class ProviderClient(ABC):
    """Abstract base for language-model providers.

    Subclasses implement the wire format: request body construction,
    non-streaming response parsing and stream frame decoding. This base class
    owns the HTTP plumbing, error mapping, chunk forwarding and logging.
    """

    provider_id: str = "unknown"
    default_model: str = ""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize provider client.

        Args:
            api_key: Credential for the provider
            base_url: API base URL (trailing slash removed)
            timeout: Request timeout in seconds (defaults to settings.request_timeout)
            transport: Optional httpx transport (tests inject httpx.MockTransport)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.transport = transport

        log.info(
            "provider_client_initialized",
            provider=self.provider_id,
            base_url=self.base_url,
            timeout=self.timeout,
        )

    # -------------------------------------------------------------------------
    # Public interface
    # -------------------------------------------------------------------------

    async def execute(
        self,
        prompt: str,
        model_id: Optional[str] = None,
        max_tokens: int = 8000,
        extended_reasoning: bool = False,
        reasoning_budget: Optional[int] = None,
        streaming: bool = False,
        tools: Optional[List[ToolDefinition]] = None,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> ProviderResponse:
        """
        Generate a completion.

        Args:
            prompt: User message (non-empty)
            model_id: Provider-specific model id (defaults to default_model)
            max_tokens: Maximum completion tokens (positive)
            extended_reasoning: Request a reasoning trace
            reasoning_budget: Reasoning token budget (only sent with extended_reasoning)
            streaming: Stream the completion, forwarding chunks to on_chunk
            tools: Tool definitions the model may call
            system_prompt: Optional system instructions
            temperature: Sampling temperature
            on_chunk: Observer for incremental fragments (streaming only)

        Returns:
            ProviderResponse with content, reasoning trace, artifacts, usage

        Raises:
            ValueError: If prompt is empty or max_tokens is not positive
            ProviderError: On transport, HTTP or parse failure
        """
        request = ProviderRequest(
            prompt=prompt,
            model_id=model_id or self.default_model,
            max_tokens=max_tokens,
            extended_reasoning=extended_reasoning,
            reasoning_budget=reasoning_budget,
            streaming=streaming,
            tools=tools,
            system_prompt=system_prompt,
            temperature=temperature,
        )
        return await self.execute_request(request, on_chunk=on_chunk)

    async def execute_request(
        self,
        request: ProviderRequest,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> ProviderResponse:
        """Execute a prepared request (used by the retry/failover wrapper)."""
        start = time.perf_counter()

        log.debug(
            "llm_call_start",
            provider=self.provider_id,
            model=request.model_id,
            prompt_length=len(request.prompt),
            system_length=len(request.system_prompt) if request.system_prompt else 0,
            max_tokens=request.max_tokens,
            extended_reasoning=request.extended_reasoning,
            streaming=request.streaming,
        )

        if request.streaming:
            response = await self._collect_stream(request, on_chunk)
        else:
            response = await self._complete(request)

        response.latency_ms = (time.perf_counter() - start) * 1000
        if request.min_artifact_length is not None:
            response.artifacts = extract_artifacts(
                response.content, min_length=request.min_artifact_length
            )

        log.info(
            "llm_call_complete",
            provider=self.provider_id,
            model=response.model_id,
            latency_ms=round(response.latency_ms, 2),
            input_tokens=response.token_usage.input_tokens,
            output_tokens=response.token_usage.output_tokens,
            content_length=len(response.content),
            has_reasoning=response.reasoning_trace is not None,
            tool_invocations=len(response.tool_invocations),
        )
        return response

    async def stream(self, request: ProviderRequest) -> AsyncIterator[StreamChunk]:
        """Yield the completion as incremental chunks (no final marker chunk)."""
        async for chunk in self._iter_stream(request, StreamAccumulator()):
            yield chunk

    async def test_connection(self, model_id: Optional[str] = None) -> bool:
        """
        Check that the provider answers a trivial prompt.

        Returns:
            True if the reply contains CONNECTION_OK; False on any provider
            error or unexpected content.
        """
        log.info("connection_test_start", provider=self.provider_id)
        try:
            response = await self.execute(
                prompt=CONNECTION_TEST_PROMPT,
                model_id=model_id,
                max_tokens=50,
            )
        except ProviderError as e:
            log.error(
                "connection_test_failed",
                provider=self.provider_id,
                error=str(e),
                status_code=e.status_code,
            )
            return False

        is_ok = CONNECTION_TEST_TOKEN in response.content
        if is_ok:
            log.info("connection_test_succeeded", provider=self.provider_id)
        else:
            log.warning(
                "connection_test_unexpected_content",
                provider=self.provider_id,
                content_preview=response.content[:80],
            )
        return is_ok

    def available_models(self) -> List[str]:
        return available_models(self.provider_id)

    # -------------------------------------------------------------------------
    # Wire format (implemented per provider)
    # -------------------------------------------------------------------------

    @abstractmethod
    def _endpoint(self) -> str:
        """Full URL for completion requests."""

    @abstractmethod
    def _headers(self) -> Dict[str, str]:
        """Request headers including credentials."""

    def _params(self) -> Dict[str, str]:
        """Query parameters for completion requests."""
        return {}

    @abstractmethod
    def build_payload(self, request: ProviderRequest) -> Dict[str, Any]:
        """Build the JSON request body."""

    @abstractmethod
    def parse_response(
        self, data: Dict[str, Any], request: ProviderRequest
    ) -> ProviderResponse:
        """Parse a non-streaming response body.

        Raises:
            MalformedResponseError: If required fields are missing
        """

    @abstractmethod
    def parse_frame(
        self, frame: Dict[str, Any], acc: StreamAccumulator
    ) -> List[StreamChunk]:
        """Turn one decoded stream frame into chunks, updating usage on acc."""

    def finish_stream(self, acc: StreamAccumulator) -> None:
        """Hook run after the last frame (e.g. to assemble tool calls)."""

    # -------------------------------------------------------------------------
    # HTTP plumbing
    # -------------------------------------------------------------------------

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def _http_error(self, status_code: int, body: str) -> ProviderHTTPError:
        log.error(
            "llm_http_error",
            provider=self.provider_id,
            status_code=status_code,
            body_preview=body[:200],
        )
        return ProviderHTTPError(
            f"{self.provider_id} error: {status_code} - {body[:500]}",
            provider=self.provider_id,
            status_code=status_code,
        )

    def _transport_error(self, exc: httpx.HTTPError) -> ProviderError:
        if isinstance(exc, httpx.TimeoutException):
            log.warning("llm_timeout", provider=self.provider_id, timeout_seconds=self.timeout)
            return ProviderTimeoutError(
                f"{self.provider_id} request timed out after {self.timeout}s",
                provider=self.provider_id,
            )
        log.warning("llm_connection_error", provider=self.provider_id, error=str(exc))
        return ProviderConnectionError(
            f"{self.provider_id} connection error: {exc}",
            provider=self.provider_id,
        )

    async def _complete(self, request: ProviderRequest) -> ProviderResponse:
        payload = self.build_payload(request)
        try:
            async with self._http_client() as client:
                response = await client.post(
                    self._endpoint(),
                    headers=self._headers(),
                    params=self._params(),
                    json=payload,
                )
                if response.is_error:
                    raise self._http_error(response.status_code, response.text)
                data = response.json()
        except httpx.HTTPError as e:
            raise self._transport_error(e) from e
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            raise MalformedResponseError(
                f"{self.provider_id} returned a non-JSON body: {e}",
                provider=self.provider_id,
            ) from e

        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"{self.provider_id} response is not a JSON object",
                provider=self.provider_id,
            )
        return self.parse_response(data, request)

    async def _iter_stream(
        self, request: ProviderRequest, acc: StreamAccumulator
    ) -> AsyncIterator[StreamChunk]:
        payload = self.build_payload(request)
        payload["stream"] = True
        try:
            async with self._http_client() as client:
                async with client.stream(
                    "POST",
                    self._endpoint(),
                    headers=self._headers(),
                    params=self._params(),
                    json=payload,
                ) as response:
                    if response.is_error:
                        body = (await response.aread()).decode("utf-8", "replace")
                        raise self._http_error(response.status_code, body)
                    async for frame in iter_sse_frames(response.aiter_lines()):
                        try:
                            chunks = self.parse_frame(frame, acc)
                        except MalformedResponseError as e:
                            log.debug(
                                "stream_frame_malformed",
                                provider=self.provider_id,
                                error=e.message,
                            )
                            continue
                        for chunk in chunks:
                            yield chunk
        except httpx.HTTPError as e:
            raise self._transport_error(e) from e
        self.finish_stream(acc)

    async def _collect_stream(
        self, request: ProviderRequest, on_chunk: Optional[ChunkCallback]
    ) -> ProviderResponse:
        acc = StreamAccumulator()
        async for chunk in self._iter_stream(request, acc):
            acc.add(chunk)
            await notify_chunk(on_chunk, chunk)
        await notify_chunk(on_chunk, StreamChunk(type="content", content="", is_complete=True))

        log.debug(
            "llm_stream_completed",
            provider=self.provider_id,
            chunk_count=acc.chunk_count,
        )
        return ProviderResponse(
            content=acc.content,
            provider_id=self.provider_id,
            model_id=request.model_id,
            reasoning_trace=acc.thinking,
            tool_invocations=list(acc.tool_invocations),
            token_usage=acc.usage,
        )


def _mapping(provider: str, value: Any, what: str) -> Dict[str, Any]:
    """Return a nested JSON object; a missing one reads as empty.

    Raises:
        MalformedResponseError: If the value is present but not an object
    """
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MalformedResponseError(
            f"{provider} response has a malformed {what}", provider=provider
        )
    return value


def _sequence(provider: str, value: Any, what: str) -> List[Any]:
    """Return a nested JSON array; a missing one reads as empty."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedResponseError(
            f"{provider} response has a malformed {what}", provider=provider
        )
    return value


def _parse_tool_arguments(provider: str, name: str, raw: Any) -> Optional[Dict[str, Any]]:
    """Decode tool-call arguments; None (logged) when they are malformed."""
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        log.warning("tool_call_arguments_malformed", provider=provider, tool=name)
        return None
    if not isinstance(parsed, dict):
        log.warning("tool_call_arguments_not_object", provider=provider, tool=name)
        return None
    return parsed


# =============================================================================
# Azure AI Inference Client
# =============================================================================


class AzureInferenceClient(ProviderClient):
    """
    Azure AI inference gateway client (OpenAI chat-completions dialect).

    Endpoint: {endpoint}/chat/completions?api-version=...
    Extended reasoning is passed through extra_body.thinking for Claude models.
    """

    provider_id = "azure"
    default_model = "claude-3-5-sonnet-20241022"

    def __init__(
        self,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Azure client.

        Raises:
            ConfigurationError: If endpoint or API key is not configured
        """
        endpoint = endpoint or settings.azure_endpoint
        api_key = api_key or settings.azure_api_key
        if not endpoint or not api_key:
            raise ConfigurationError(
                "Azure AI endpoint and API key are required "
                "(AZURE_ENDPOINT, AZURE_API_KEY)."
            )
        self.api_version = api_version or settings.azure_api_version
        super().__init__(
            api_key=api_key, base_url=endpoint, timeout=timeout, transport=transport
        )

    def _endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _params(self) -> Dict[str, str]:
        return {"api-version": self.api_version} if self.api_version else {}

    def build_payload(self, request: ProviderRequest) -> Dict[str, Any]:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        payload: Dict[str, Any] = {
            "model": request.model_id,
            "messages": messages,
            "max_tokens": request.max_tokens,
            "temperature": 0.7 if request.temperature is None else request.temperature,
        }

        if request.extended_reasoning and request.model_id.startswith("claude"):
            payload["extra_body"] = {
                "thinking": {
                    "type": "enabled",
                    "budget_tokens": request.reasoning_budget or 5000,
                }
            }

        if request.tools:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.input_schema,
                    },
                }
                for tool in request.tools
            ]

        return payload

    def parse_response(
        self, data: Dict[str, Any], request: ProviderRequest
    ) -> ProviderResponse:
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise MalformedResponseError(
                "azure response has no choices", provider=self.provider_id
            )
        choice = _mapping(self.provider_id, choices[0], "choice")
        message = choice.get("message")
        if not isinstance(message, dict):
            raise MalformedResponseError(
                "azure response choice has no message", provider=self.provider_id
            )

        tool_invocations = []
        for call in _sequence(self.provider_id, message.get("tool_calls"), "tool_calls"):
            call = _mapping(self.provider_id, call, "tool call")
            function = _mapping(self.provider_id, call.get("function"), "tool call function")
            name = function.get("name", "")
            arguments = _parse_tool_arguments(
                self.provider_id, name, function.get("arguments")
            )
            if name and arguments is not None:
                tool_invocations.append(ToolInvocation(name=name, input=arguments))

        content = message.get("content") or ""
        if not isinstance(content, str):
            raise MalformedResponseError(
                "azure response content is not text", provider=self.provider_id
            )

        usage = _mapping(self.provider_id, data.get("usage"), "usage")
        return ProviderResponse(
            content=content,
            provider_id=self.provider_id,
            model_id=request.model_id,
            reasoning_trace=message.get("thinking") or message.get("reasoning_content"),
            tool_invocations=tool_invocations,
            token_usage=TokenUsage(
                input_tokens=usage.get("prompt_tokens", 0) or 0,
                output_tokens=usage.get("completion_tokens", 0) or 0,
            ),
        )

    def parse_frame(
        self, frame: Dict[str, Any], acc: StreamAccumulator
    ) -> List[StreamChunk]:
        chunks: List[StreamChunk] = []

        usage = frame.get("usage")
        if isinstance(usage, dict):
            acc.usage.input_tokens = usage.get("prompt_tokens", 0) or 0
            acc.usage.output_tokens = usage.get("completion_tokens", 0) or 0

        choices = _sequence(self.provider_id, frame.get("choices"), "choices")
        if not choices:
            return chunks
        choice = _mapping(self.provider_id, choices[0], "choice")
        delta = _mapping(self.provider_id, choice.get("delta"), "delta")

        if delta.get("content"):
            chunks.append(StreamChunk(type="content", content=str(delta["content"])))
        if delta.get("thinking"):
            chunks.append(StreamChunk(type="thinking", content=str(delta["thinking"])))

        for call in _sequence(self.provider_id, delta.get("tool_calls"), "tool_calls"):
            call = _mapping(self.provider_id, call, "tool call")
            index = call.get("index", 0)
            pending = acc.pending_tools.setdefault(index, {"name": "", "json": ""})
            function = _mapping(self.provider_id, call.get("function"), "tool call function")
            if function.get("name"):
                pending["name"] = function["name"]
                chunks.append(StreamChunk(type="tool_use", content=function["name"]))
            pending["json"] += str(function.get("arguments") or "")

        return chunks

    def finish_stream(self, acc: StreamAccumulator) -> None:
        for _, pending in sorted(acc.pending_tools.items()):
            arguments = _parse_tool_arguments(
                self.provider_id, pending["name"], pending["json"]
            )
            if pending["name"] and arguments is not None:
                acc.tool_invocations.append(
                    ToolInvocation(name=pending["name"], input=arguments)
                )


# =============================================================================
# Anthropic Client
# =============================================================================

# Stream error types reported in-band, mapped to HTTP-like codes so the
# retry wrapper can classify them.
ANTHROPIC_STREAM_ERROR_CODES = {
    "overloaded_error": 503,
    "rate_limit_error": 429,
    "api_error": 500,
    "invalid_request_error": 400,
    "authentication_error": 401,
    "permission_error": 403,
}


class AnthropicClient(ProviderClient):
    """Anthropic Messages API client.

    Uses httpx for async HTTP calls; thinking is requested with the
    top-level `thinking` parameter and returned as `thinking` content blocks.
    """

    provider_id = "anthropic"
    default_model = "claude-sonnet-4-5-20250929"
    api_version_header = "2023-06-01"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Anthropic client.

        Raises:
            ConfigurationError: If API key is not configured
        """
        api_key = api_key or settings.anthropic_api_key
        if not api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY not configured. Set it in .env.")
        super().__init__(
            api_key=api_key,
            base_url=base_url or settings.anthropic_base_url,
            timeout=timeout,
            transport=transport,
        )

    def _endpoint(self) -> str:
        return f"{self.base_url}/messages"

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "content-type": "application/json",
            "anthropic-version": self.api_version_header,
        }

    def build_payload(self, request: ProviderRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model_id,
            "max_tokens": request.max_tokens,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt

        if request.extended_reasoning:
            # Anthropic rejects a custom temperature while thinking is enabled
            payload["thinking"] = {
                "type": "enabled",
                "budget_tokens": request.reasoning_budget or 5000,
            }
        elif request.temperature is not None:
            payload["temperature"] = request.temperature

        if request.tools:
            payload["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.input_schema,
                }
                for tool in request.tools
            ]
        return payload

    def parse_response(
        self, data: Dict[str, Any], request: ProviderRequest
    ) -> ProviderResponse:
        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise MalformedResponseError(
                "anthropic response has no content blocks", provider=self.provider_id
            )

        text_blocks: List[str] = []
        thinking_blocks: List[str] = []
        tool_invocations: List[ToolInvocation] = []
        for block in blocks:
            block = _mapping(self.provider_id, block, "content block")
            block_type = block.get("type")
            if block_type == "text":
                text_blocks.append(str(block.get("text") or ""))
            elif block_type == "thinking":
                thinking_blocks.append(str(block.get("thinking") or ""))
            elif block_type == "tool_use":
                arguments = _parse_tool_arguments(
                    self.provider_id, block.get("name", ""), block.get("input")
                )
                if arguments is not None:
                    tool_invocations.append(
                        ToolInvocation(name=block.get("name", ""), input=arguments)
                    )

        usage = _mapping(self.provider_id, data.get("usage"), "usage")
        return ProviderResponse(
            content="\n\n".join(text_blocks),
            provider_id=self.provider_id,
            model_id=request.model_id,
            reasoning_trace="\n".join(thinking_blocks) or None,
            tool_invocations=tool_invocations,
            token_usage=TokenUsage(
                input_tokens=usage.get("input_tokens", 0) or 0,
                output_tokens=usage.get("output_tokens", 0) or 0,
            ),
        )

    def parse_frame(
        self, frame: Dict[str, Any], acc: StreamAccumulator
    ) -> List[StreamChunk]:
        event_type = frame.get("type")
        tool_blocks = acc.pending_tools

        if event_type == "content_block_delta":
            delta = _mapping(self.provider_id, frame.get("delta"), "delta")
            delta_type = delta.get("type")
            if delta_type == "text_delta" and delta.get("text"):
                return [StreamChunk(type="content", content=delta["text"])]
            if delta_type == "thinking_delta" and delta.get("thinking"):
                return [StreamChunk(type="thinking", content=delta["thinking"])]
            if delta_type == "input_json_delta":
                block = tool_blocks.get(frame.get("index", 0))
                if block is not None:
                    block["json"] += str(delta.get("partial_json") or "")
            return []

        if event_type == "content_block_start":
            block = _mapping(self.provider_id, frame.get("content_block"), "content block")
            if block.get("type") == "tool_use":
                tool_blocks[frame.get("index", 0)] = {
                    "name": block.get("name", ""),
                    "json": "",
                }
                return [StreamChunk(type="tool_use", content=block.get("name", ""))]
            return []

        if event_type == "content_block_stop":
            block = tool_blocks.pop(frame.get("index", 0), None)
            if block is not None:
                arguments = _parse_tool_arguments(
                    self.provider_id, block["name"], block["json"]
                )
                if arguments is not None:
                    acc.tool_invocations.append(
                        ToolInvocation(name=block["name"], input=arguments)
                    )
            return []

        if event_type == "message_start":
            message = _mapping(self.provider_id, frame.get("message"), "message")
            usage = _mapping(self.provider_id, message.get("usage"), "usage")
            acc.usage.input_tokens = usage.get("input_tokens", 0) or 0
            acc.usage.output_tokens = usage.get("output_tokens", 0) or 0
            return []

        if event_type == "message_delta":
            usage = _mapping(self.provider_id, frame.get("usage"), "usage")
            if "output_tokens" in usage:
                acc.usage.output_tokens = usage["output_tokens"] or 0
            return []

        if event_type == "error":
            error = _mapping(self.provider_id, frame.get("error"), "error")
            status_code = ANTHROPIC_STREAM_ERROR_CODES.get(error.get("type", ""), 500)
            raise self._http_error(status_code, error.get("message", "stream error"))

        return []
