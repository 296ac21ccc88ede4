"""
Periodic synthesis of journey progress.

Every `synthesis_interval` stages, the latest window of stages and all
insights are compressed into a SynthesisReport by one non-streaming
provider call. The report is folded back into the journey as a
"Synthesis" insight so later stage prompts see it.

Synthesis is best-effort: `run()` logs and swallows every failure, and the
journey carries on without the report.
"""

from typing import Callable, List, Optional, Sequence

import structlog

from journey_engine.core.config import ExplorationConfig
from journey_engine.core.exceptions import SynthesisError
from journey_engine.domain.models.insight import Insight
from journey_engine.domain.models.journey import Journey
from journey_engine.domain.models.stage import Stage, StageStatus
from journey_engine.domain.models.synthesis import SynthesisReport
from journey_engine.llm.prompts.synthesis import (
    get_synthesis_system_prompt,
    get_synthesis_user_prompt,
    parse_synthesis_response,
)
from journey_engine.llm.retry import ResilientExecutor
from journey_engine.llm.types import ProviderRequest
from journey_engine.services.token_usage_service import SYNTHESIS_CALL, TokenUsageService

log = structlog.get_logger(__name__)

SummaryStagePredicate = Callable[[Stage], bool]

SYNTHESIS_MAX_TOKENS = 2000
SYNTHESIS_TEMPERATURE = 0.3


def is_flagged_summary(stage: Stage) -> bool:
    """Default summary predicate: the stage's own is_summary flag."""
    return stage.is_summary


def should_synthesize(
    stage_count: int,
    interval: int,
    stage: Optional[Stage] = None,
    is_summary_stage: SummaryStagePredicate = is_flagged_summary,
) -> bool:
    """
    Decide whether a synthesis is due after the stage just finished.

    True exactly when stage_count is a positive multiple of interval, the
    triggering stage (if given) completed, and it is not a summary stage.

    Raises:
        ValueError: If interval is not positive
    """
    if interval <= 0:
        raise ValueError(f"synthesis interval must be positive, got {interval}")
    if stage_count < interval or stage_count % interval != 0:
        return False
    if stage is None:
        return True
    return stage.status == StageStatus.COMPLETE and not is_summary_stage(stage)


class SynthesisService:
    """Generates synthesis reports and folds them into journeys."""

    def __init__(
        self,
        executor: ResilientExecutor,
        config: ExplorationConfig,
        usage: Optional[TokenUsageService] = None,
        is_summary_stage: SummaryStagePredicate = is_flagged_summary,
    ):
        self.executor = executor
        self.config = config
        self.usage = usage
        self.is_summary_stage = is_summary_stage

    async def synthesize(
        self,
        stages: Sequence[Stage],
        insights: Sequence[Insight],
        question: str = "",
        synthesis_number: int = 1,
        journey_id: Optional[str] = None,
    ) -> SynthesisReport:
        """
        Synthesize a window of stages.

        Args:
            stages: Stages in the window, oldest first (failed ones are skipped)
            insights: All insights so far
            question: The journey's question, for framing
            synthesis_number: 1-based number of this report within the journey
            journey_id: Used for usage accounting only

        Returns:
            SynthesisReport

        Raises:
            SynthesisError: If there is nothing to synthesize
            SynthesisParseError: If the response lacks a summary
            ProviderExhaustedError: If the provider call failed
        """
        completed = [s for s in stages if s.status == StageStatus.COMPLETE]
        if not completed:
            raise SynthesisError("No completed stages to synthesize")

        request = ProviderRequest(
            prompt=get_synthesis_user_prompt(question or "(unspecified)", completed, insights),
            model_id=self.config.model,
            max_tokens=SYNTHESIS_MAX_TOKENS,
            system_prompt=get_synthesis_system_prompt(),
            temperature=SYNTHESIS_TEMPERATURE,
            streaming=False,
            min_artifact_length=None,
        )
        response = await self.executor.execute(request)

        if self.usage is not None and journey_id is not None:
            self.usage.record_call(
                journey_id, response.model_id, response.token_usage, call_kind=SYNTHESIS_CALL
            )

        fields = parse_synthesis_response(response.content)
        report = SynthesisReport(
            **fields,
            synthesis_number=synthesis_number,
            stage_range=(completed[0].sequence, completed[-1].sequence),
        )

        log.info(
            "synthesis_generated",
            journey_id=journey_id,
            synthesis_number=synthesis_number,
            stage_range=report.stage_range,
            quality_score=report.quality_score,
            key_insights=len(report.key_insights),
        )
        return report

    async def run(self, journey: Journey, stage: Stage) -> Optional[SynthesisReport]:
        """
        Synthesize if due after `stage`, folding the result into the journey.

        On success the Synthesis insight is appended and synthesis_count
        incremented on the journey object; persisting them is the caller's job.

        Returns:
            The report, or None when synthesis was not due or failed
        """
        if not self.config.enable_synthesis:
            return None

        interval = self.config.synthesis_interval
        if not should_synthesize(journey.stage_count, interval, stage, self.is_summary_stage):
            return None

        window: List[Stage] = journey.stages[-interval:]
        try:
            report = await self.synthesize(
                window,
                journey.insights,
                question=journey.question,
                synthesis_number=journey.synthesis_count + 1,
                journey_id=journey.id,
            )
        except Exception as e:
            log.warning(
                "synthesis_failed",
                journey_id=journey.id,
                stage_count=journey.stage_count,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        journey.append_insight(report.to_insight(order=len(journey.insights)))
        journey.synthesis_count += 1
        return report
