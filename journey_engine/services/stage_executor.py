"""
Executes exactly one exploration stage.

Pipeline per stage:
1. Build the rolling context and the stage-type prompt
2. Pick the reasoning budget (configured, else the stage type's default)
3. Call the provider through the retry/failover executor, streaming chunks
   to the observer
4. Complete the stage with output, reasoning trace, usage and artifacts,
   or fail it with the provider error

Provider failures never escape: the stage comes back `failed` and the
controller decides what happens to the journey.
"""

from typing import Optional

import structlog

from journey_engine.core.config import ExplorationConfig
from journey_engine.core.exceptions import ProviderError
from journey_engine.domain.models.journey import Journey
from journey_engine.domain.models.stage import DEFAULT_REASONING_BUDGETS, Stage
from journey_engine.llm.prompts.stage import get_stage_system_prompt, get_stage_user_prompt
from journey_engine.llm.retry import ResilientExecutor
from journey_engine.llm.types import ProviderRequest
from journey_engine.services.context_service import ContextService
from journey_engine.services.protocols import JourneyObserver, NullObserver
from journey_engine.services.token_usage_service import STAGE_CALL, TokenUsageService

log = structlog.get_logger(__name__)


class StageExecutor:
    """Runs one stage against the configured providers."""

    def __init__(
        self,
        executor: ResilientExecutor,
        config: ExplorationConfig,
        context_service: Optional[ContextService] = None,
        usage: Optional[TokenUsageService] = None,
    ):
        self.executor = executor
        self.config = config
        self.context_service = context_service or ContextService()
        self.usage = usage

    def reasoning_budget_for(self, stage: Stage) -> Optional[int]:
        """Reasoning budget for a stage, or None when extended reasoning is off."""
        if not self.config.extended_reasoning:
            return None
        return self.config.reasoning_budget or DEFAULT_REASONING_BUDGETS[stage.stage_type]

    def build_request(self, journey: Journey, stage: Stage) -> ProviderRequest:
        """Build the provider request for a stage from the journey so far."""
        context = self.context_service.build(journey)
        prompt = get_stage_user_prompt(
            question=journey.question,
            stage_type=stage.stage_type,
            sequence=stage.sequence,
            context=context.render(),
        )

        budget = self.reasoning_budget_for(stage)
        # reasoning tokens count against max_tokens
        max_tokens = self.config.max_tokens + (budget or 0)

        return ProviderRequest(
            prompt=prompt,
            model_id=self.config.model,
            max_tokens=max_tokens,
            extended_reasoning=budget is not None,
            reasoning_budget=budget,
            streaming=self.config.streaming,
            system_prompt=get_stage_system_prompt(),
            temperature=self.config.temperature,
            min_artifact_length=(
                self.config.min_artifact_length if self.config.save_artifacts else None
            ),
        )

    async def execute(
        self,
        journey: Journey,
        stage: Stage,
        observer: Optional[JourneyObserver] = None,
    ) -> Stage:
        """
        Execute a pending stage to completion or failure.

        Args:
            journey: Journey the stage belongs to (not yet containing it)
            stage: Pending stage with its sequence number and type
            observer: Receives streamed chunks

        Returns:
            The same stage, now complete or failed (and frozen)
        """
        observer = observer or NullObserver()
        request = self.build_request(journey, stage)
        stage.mark_running()

        log.info(
            "stage_started",
            journey_id=journey.id,
            sequence=stage.sequence,
            stage_type=stage.stage_type.value,
            model=request.model_id,
            extended_reasoning=request.extended_reasoning,
            reasoning_budget=request.reasoning_budget,
            streaming=request.streaming,
        )

        try:
            response = await self.executor.execute(
                request,
                on_chunk=observer.on_chunk if request.streaming else None,
            )
        except ProviderError as e:
            stage.fail(e.message)
            log.error(
                "stage_failed",
                journey_id=journey.id,
                sequence=stage.sequence,
                stage_type=stage.stage_type.value,
                error=e.message,
                error_type=type(e).__name__,
                status_code=e.status_code,
            )
            return stage

        artifacts = []
        if self.config.save_artifacts:
            artifacts = [
                artifact.model_copy(update={"stage_sequence": stage.sequence})
                for artifact in response.artifacts
            ]

        stage.complete(
            output=response.content,
            reasoning_trace=response.reasoning_trace,
            artifacts=artifacts,
            provider_id=response.provider_id,
            model_id=response.model_id,
            token_usage=response.token_usage.as_dict(),
            tool_invocations=[t.as_dict() for t in response.tool_invocations],
        )

        if self.usage is not None:
            self.usage.record_call(
                journey.id, response.model_id, response.token_usage, call_kind=STAGE_CALL
            )

        log.info(
            "stage_completed",
            journey_id=journey.id,
            sequence=stage.sequence,
            stage_type=stage.stage_type.value,
            provider=response.provider_id,
            output_length=len(response.content),
            artifacts=len(artifacts),
            has_reasoning=response.reasoning_trace is not None,
        )
        return stage
