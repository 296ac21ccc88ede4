"""
Exploration controller: the journey state machine.

Drives one journey through its stages:

    idle -> running -> {paused, complete, failed, stopped}
    paused -> running | stopped

Per stage:
1. Create the pending stage (next sequence number, rotating stage type)
2. Execute it (StageExecutor)
3. Persist it and append it to the journey
4. Emit on_stage_complete; run synthesis if due (persist, emit)
5. Check termination: failure, depth limit, stop request, pause request

pause() and stop() only set flags. They take effect at the next stage
boundary; an in-flight provider call always finishes first.
"""

import asyncio
from typing import Optional

import structlog

from journey_engine.core.config import ExplorationConfig
from journey_engine.core.exceptions import InvalidTransitionError, StageFailedError
from journey_engine.core.logging import bind_context, unbind_context
from journey_engine.domain.models.journey import Journey, JourneyStatus
from journey_engine.domain.models.stage import Stage, StageStatus, StageType
from journey_engine.llm.registry import ProviderRegistry
from journey_engine.llm.retry import RetryPolicy, SleepFn
from journey_engine.services.context_service import ContextService
from journey_engine.services.protocols import JourneyObserver, JourneyStore, NullObserver
from journey_engine.services.stage_executor import StageExecutor
from journey_engine.services.synthesis_service import (
    SummaryStagePredicate,
    SynthesisService,
    is_flagged_summary,
)
from journey_engine.services.token_usage_service import TokenUsageService

log = structlog.get_logger(__name__)


class ExplorationController:
    """
    Runs a single journey.

    Construction resolves the providers for the configuration, so a missing
    primary credential raises ConfigurationError before any stage starts.
    Independent journeys use independent controllers.
    """

    def __init__(
        self,
        journey: Journey,
        registry: ProviderRegistry,
        store: JourneyStore,
        config: ExplorationConfig,
        observer: Optional[JourneyObserver] = None,
        policy: Optional[RetryPolicy] = None,
        usage: Optional[TokenUsageService] = None,
        context_service: Optional[ContextService] = None,
        is_summary_stage: SummaryStagePredicate = is_flagged_summary,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.journey = journey
        self.store = store
        self.config = config
        self.observer = observer or NullObserver()
        self.usage = usage or TokenUsageService()

        if journey.max_depth is None and config.max_depth is not None:
            journey.max_depth = config.max_depth

        executor = registry.executor_for(config, policy=policy, sleep=sleep)
        self.stage_executor = StageExecutor(
            executor, config, context_service=context_service, usage=self.usage
        )
        self.synthesis_service = SynthesisService(
            executor, config, usage=self.usage, is_summary_stage=is_summary_stage
        )

        self._pause_requested = False
        self._stop_requested = False

    @property
    def status(self) -> JourneyStatus:
        return self.journey.status

    # -------------------------------------------------------------------------
    # Control surface
    # -------------------------------------------------------------------------

    async def start(self) -> Journey:
        """
        Persist the journey, move it to running and run it.

        Returns:
            The journey once it is paused or has reached a terminal status

        Raises:
            InvalidTransitionError: If the journey is not idle
        """
        if self.journey.status != JourneyStatus.IDLE:
            raise InvalidTransitionError(
                f"Journey {self.journey.id} cannot start from {self.journey.status.value}"
            )
        await self.store.create_journey(self.journey)
        log.info(
            "journey_started",
            journey_id=self.journey.id,
            max_depth=self.journey.max_depth,
            provider=self.config.provider,
            fallback_provider=self.config.fallback_provider,
            model=self.config.model,
        )
        await self._set_status(JourneyStatus.RUNNING)
        return await self._run_loop()

    async def resume(self) -> Journey:
        """
        Continue a paused journey from its next sequence number.

        Raises:
            InvalidTransitionError: If the journey is not paused
        """
        if self.journey.status != JourneyStatus.PAUSED:
            raise InvalidTransitionError(
                f"Journey {self.journey.id} cannot resume from {self.journey.status.value}"
            )
        self._pause_requested = False
        log.info(
            "journey_resumed",
            journey_id=self.journey.id,
            next_sequence=self.journey.next_sequence,
        )
        await self._set_status(JourneyStatus.RUNNING)
        return await self._run_loop()

    async def run(self) -> Journey:
        """Start an idle journey or resume a paused one."""
        if self.journey.status == JourneyStatus.PAUSED:
            return await self.resume()
        return await self.start()

    async def pause(self) -> None:
        """Request a pause at the next stage boundary.

        Raises:
            InvalidTransitionError: If the journey is not running
        """
        if self.journey.status == JourneyStatus.PAUSED:
            return
        if self.journey.status != JourneyStatus.RUNNING:
            raise InvalidTransitionError(
                f"Journey {self.journey.id} cannot pause from {self.journey.status.value}"
            )
        self._pause_requested = True
        log.info("journey_pause_requested", journey_id=self.journey.id)

    async def stop(self) -> None:
        """
        Stop the journey for good.

        A running journey stops at the next stage boundary; an idle or paused
        one stops immediately.

        Raises:
            InvalidTransitionError: If the journey already completed or failed
        """
        status = self.journey.status
        if status == JourneyStatus.STOPPED:
            return
        if status == JourneyStatus.IDLE:
            # never persisted, nothing to write
            self.journey.transition_to(JourneyStatus.STOPPED)
            log.info("journey_stopped", journey_id=self.journey.id, from_status=status.value)
            self.observer.on_journey_status_change(JourneyStatus.STOPPED)
            return
        if status == JourneyStatus.PAUSED:
            log.info("journey_stopped", journey_id=self.journey.id, from_status=status.value)
            await self._set_status(JourneyStatus.STOPPED)
            return
        if status != JourneyStatus.RUNNING:
            raise InvalidTransitionError(
                f"Journey {self.journey.id} cannot stop from {status.value}"
            )
        self._stop_requested = True
        log.info("journey_stop_requested", journey_id=self.journey.id)

    # -------------------------------------------------------------------------
    # Stage loop
    # -------------------------------------------------------------------------

    async def _run_loop(self) -> Journey:
        bind_context(journey_id=self.journey.id)
        try:
            while True:
                stage = await self._run_stage()
                outcome = self._termination_status(stage)
                if outcome is not None:
                    await self._finish(outcome)
                    break
        except Exception as e:
            await self._abort(e)
            raise
        finally:
            unbind_context("journey_id")
        return self.journey

    async def _run_stage(self) -> Stage:
        sequence = self.journey.next_sequence
        stage = Stage(sequence=sequence, stage_type=StageType.for_sequence(sequence))

        stage = await self.stage_executor.execute(self.journey, stage, self.observer)

        await self.store.append_stage(self.journey.id, stage)
        self.journey.append_stage(stage)
        self.observer.on_stage_complete(stage)

        if stage.status == StageStatus.FAILED:
            error = StageFailedError(
                f"Stage {stage.sequence} ({stage.stage_type.value}) failed: {stage.error}",
                sequence=stage.sequence,
            )
            is_fatal = not self.config.continue_on_failure
            if not is_fatal:
                log.warning(
                    "stage_failure_skipped",
                    journey_id=self.journey.id,
                    sequence=stage.sequence,
                    error=stage.error,
                )
            self.observer.on_error(error, is_fatal)
            return stage

        report = await self.synthesis_service.run(self.journey, stage)
        if report is not None:
            await self.store.append_insight(self.journey.id, self.journey.insights[-1])
            await self.store.update_synthesis_count(
                self.journey.id, self.journey.synthesis_count
            )
            self.observer.on_synthesis_complete(report)

        return stage

    def _termination_status(self, stage: Stage) -> Optional[JourneyStatus]:
        """Status the journey should move to after `stage`, or None to continue."""
        if stage.status == StageStatus.FAILED and not self.config.continue_on_failure:
            self.journey.error = stage.error
            return JourneyStatus.FAILED
        if self.journey.depth_reached:
            return JourneyStatus.COMPLETE
        if self._stop_requested:
            return JourneyStatus.STOPPED
        if self._pause_requested:
            return JourneyStatus.PAUSED
        return None

    async def _finish(self, status: JourneyStatus) -> None:
        log.info(
            "journey_finished" if status.is_terminal else "journey_paused",
            journey_id=self.journey.id,
            status=status.value,
            stages=self.journey.stage_count,
            syntheses=self.journey.synthesis_count,
            usage=self.usage.get_journey_usage(self.journey.id),
        )
        await self._set_status(status)

    async def _abort(self, error: Exception) -> None:
        """Fail the journey after an unexpected error (store or invariant)."""
        log.error(
            "journey_aborted",
            journey_id=self.journey.id,
            error=str(error),
            error_type=type(error).__name__,
        )
        self.observer.on_error(error, True)
        if not self.journey.can_transition_to(JourneyStatus.FAILED):
            return
        self.journey.error = str(error)
        try:
            await self._set_status(JourneyStatus.FAILED)
        except Exception as persist_error:
            log.error(
                "journey_status_persist_failed",
                journey_id=self.journey.id,
                error=str(persist_error),
            )

    async def _set_status(self, status: JourneyStatus) -> None:
        """Apply, persist and announce a status transition."""
        previous = self.journey.status
        self.journey.transition_to(status)
        await self.store.update_journey_status(
            self.journey.id, status, error=self.journey.error
        )
        log.info(
            "journey_status_changed",
            journey_id=self.journey.id,
            from_status=previous.value,
            to_status=status.value,
        )
        self.observer.on_journey_status_change(status)
