"""
Retry and failover around provider calls.

Transient errors (timeouts, dropped connections, HTTP 429/502/503) are
retried against the same provider with exponential backoff. Once the
primary is given up on, a configured fallback provider is called exactly
once with the model id translated through the model map. If that also
fails, the primary's error is surfaced inside ProviderExhaustedError.
"""

import asyncio
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional, Tuple, TypeVar, Union

import structlog

from journey_engine.core.exceptions import (
    MalformedResponseError,
    ProviderError,
    ProviderExhaustedError,
)
from journey_engine.llm.client import ProviderClient, notify_chunk
from journey_engine.llm.model_map import translate_model
from journey_engine.llm.types import (
    ChunkCallback,
    ProviderRequest,
    ProviderResponse,
    StreamChunk,
)

log = structlog.get_logger(__name__)

T = TypeVar("T")
SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff.

    max_attempts counts every call to the same provider, the first included.
    The wait before retry N (1-based) is base_delay * multiplier ** (N - 1).
    """

    max_attempts: int = 3
    base_delay: float = 2.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")


def compute_backoff_delay(retry_number: int, policy: RetryPolicy) -> float:
    """Return the delay in seconds before retry N (1-based)."""
    if retry_number <= 0:
        raise ValueError("retry_number must be > 0")
    return policy.base_delay * (policy.multiplier ** (retry_number - 1))


def is_retryable(error: BaseException) -> bool:
    """Only transient provider errors are worth another attempt."""
    if isinstance(error, MalformedResponseError):
        return False
    return isinstance(error, ProviderError) and error.transient


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: SleepFn = asyncio.sleep,
    provider: str = "unknown",
) -> Tuple[T, int]:
    """
    Run an async operation, retrying transient provider errors.

    Returns:
        Tuple of (result, attempts used)

    Raises:
        ProviderError: The last error, tagged with `attempts` so callers
            can report how many calls were made
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation(), attempt
        except ProviderError as e:
            e.attempts = attempt
            if not is_retryable(e) or attempt >= policy.max_attempts:
                log.warning(
                    "provider_call_giving_up",
                    provider=provider,
                    attempts=attempt,
                    error_type=type(e).__name__,
                    status_code=e.status_code,
                    retryable=is_retryable(e),
                )
                raise

            delay = compute_backoff_delay(attempt, policy)
            log.info(
                "provider_call_retry",
                provider=provider,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay_seconds=delay,
                error_type=type(e).__name__,
                status_code=e.status_code,
            )
            await sleep(delay)


class AttemptStream:
    """Forwards chunks to an observer, one provider attempt at a time.

    Before a new attempt starts, a "reset" chunk is sent if the previous
    attempt streamed anything, so observers can drop the partial text.
    """

    def __init__(self, on_chunk: ChunkCallback):
        self.on_chunk = on_chunk
        self.delivered = False

    def __call__(self, chunk: StreamChunk) -> Union[None, Awaitable[None]]:
        self.delivered = True
        return self.on_chunk(chunk)

    async def begin_attempt(self) -> None:
        if not self.delivered:
            return
        self.delivered = False
        log.debug("stream_reset_sent")
        await notify_chunk(self.on_chunk, StreamChunk(type="reset", content=""))


class ResilientExecutor:
    """
    Primary provider with retries plus an optional one-shot fallback.

    The fallback is used for any primary failure, retryable or not, but is
    itself never retried.
    """

    def __init__(
        self,
        primary: ProviderClient,
        fallback: Optional[ProviderClient] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.primary = primary
        self.fallback = fallback
        self.policy = policy or RetryPolicy()
        self.sleep = sleep

    async def execute(
        self,
        request: ProviderRequest,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> ProviderResponse:
        """
        Execute a request with retry and failover.

        Raises:
            ProviderExhaustedError: If the primary (after retries) and the
                fallback (if configured) both failed
        """
        stream = AttemptStream(on_chunk) if on_chunk is not None else None

        async def attempt() -> ProviderResponse:
            if stream is not None:
                await stream.begin_attempt()
            return await self.primary.execute_request(request, on_chunk=stream)

        try:
            response, attempts = await call_with_retry(
                attempt,
                self.policy,
                sleep=self.sleep,
                provider=self.primary.provider_id,
            )
            if attempts > 1:
                log.info(
                    "provider_call_recovered",
                    provider=self.primary.provider_id,
                    attempts=attempts,
                )
            return response
        except ProviderError as primary_error:
            attempts = getattr(primary_error, "attempts", 1)
            if self.fallback is None:
                raise ProviderExhaustedError(primary_error, attempts=attempts) from primary_error
            return await self._failover(request, stream, primary_error, attempts)

    async def _failover(
        self,
        request: ProviderRequest,
        stream: Optional[AttemptStream],
        primary_error: ProviderError,
        attempts: int,
    ) -> ProviderResponse:
        fallback = self.fallback
        model_id = translate_model(request.model_id, fallback.provider_id)

        log.warning(
            "provider_failover",
            from_provider=self.primary.provider_id,
            to_provider=fallback.provider_id,
            from_model=request.model_id,
            to_model=model_id,
            primary_error=primary_error.message,
        )

        fallback_request = replace(request, model_id=model_id)
        if stream is not None:
            await stream.begin_attempt()
        try:
            return await fallback.execute_request(fallback_request, on_chunk=stream)
        except ProviderError as fallback_error:
            log.error(
                "provider_failover_failed",
                provider=fallback.provider_id,
                error=fallback_error.message,
                status_code=fallback_error.status_code,
            )
            raise ProviderExhaustedError(
                primary_error, fallback_error=fallback_error, attempts=attempts + 1
            ) from primary_error
