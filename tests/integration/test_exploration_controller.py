"""
Integration tests for the exploration controller.

Runs whole journeys against a scripted provider and a real store, checking
stage numbering, synthesis cadence, pause/resume/stop and failure handling.
"""

import pytest

from journey_engine.core.exceptions import (
    ConfigurationError,
    InvalidTransitionError,
    ProviderHTTPError,
    StageFailedError,
)
from journey_engine.domain.models import (
    Journey,
    JourneyStatus,
    SYNTHESIS_CATEGORY,
    StageStatus,
)
from journey_engine.llm.prompts.synthesis import get_synthesis_system_prompt
from journey_engine.llm.registry import ProviderRegistry
from journey_engine.persistence.repositories import InMemoryJourneyStore
from journey_engine.services.exploration_controller import ExplorationController

STAGE_REPLY = "## Findings\nSomething learned.\n\nNext: go deeper"


@pytest.fixture
def controller_for(registry, memory_store, exploration_config, observer, sleep_recorder):
    def build(journey, store=None, **config_updates):
        config = exploration_config.model_copy(update=config_updates)
        return ExplorationController(
            journey,
            registry,
            store or memory_store,
            config,
            observer=observer,
            sleep=sleep_recorder,
        )

    return build


@pytest.fixture
def reply_with(synthesis_json):
    """Build a responder that runs `hooks[n]` before answering stage n."""

    def build(hooks):
        def responder(request):
            if request.system_prompt == get_synthesis_system_prompt():
                return synthesis_json
            for sequence, hook in hooks.items():
                if f"## Stage {sequence}:" in request.prompt:
                    return _after(hook, STAGE_REPLY)
            return STAGE_REPLY

        return responder

    return build


async def _after(hook, reply):
    await hook()
    return reply


class TestRunToDepth:
    async def test_completes_at_max_depth(self, controller_for, fake_provider, observer, memory_store):
        journey = Journey(question="How do heat batteries work?", max_depth=2)
        controller = controller_for(journey)

        result = await controller.start()

        assert result.status == JourneyStatus.COMPLETE
        assert [s.sequence for s in result.stages] == [1, 2]
        assert all(s.status == StageStatus.COMPLETE for s in result.stages)
        assert observer.statuses == [JourneyStatus.RUNNING, JourneyStatus.COMPLETE]
        assert [s.sequence for s in observer.stages] == [1, 2]

        stored = await memory_store.get_journey(journey.id)
        assert stored.status == JourneyStatus.COMPLETE
        assert [s.sequence for s in stored.stages] == [1, 2]

    async def test_stage_types_rotate(self, controller_for):
        journey = Journey(question="Q", max_depth=3)
        await controller_for(journey, enable_synthesis=False).start()
        assert [s.stage_type.value for s in journey.stages] == [
            "discovering",
            "chasing",
            "solving",
        ]

    async def test_depth_taken_from_config(self, controller_for):
        journey = Journey(question="Q")
        controller = controller_for(journey, max_depth=2)

        await controller.start()

        assert journey.max_depth == 2
        assert journey.stage_count == 2

    async def test_later_prompts_carry_context(self, controller_for, fake_provider):
        await controller_for(Journey(question="Q", max_depth=2)).start()

        second = fake_provider.stage_requests[1].prompt
        assert "Exploration So Far" in second
        assert "#### Stage 1 (discovering)" in second

    async def test_streaming_chunks_reach_observer(self, controller_for, observer):
        await controller_for(Journey(question="Q", max_depth=1), streaming=True).start()

        assert observer.chunks
        assert observer.chunks[-1].is_complete

    async def test_cannot_start_twice(self, controller_for):
        controller = controller_for(Journey(question="Q", max_depth=1))
        await controller.start()
        with pytest.raises(InvalidTransitionError):
            await controller.start()

    async def test_missing_primary_fails_before_any_stage(self, memory_store, exploration_config):
        with pytest.raises(ConfigurationError):
            ExplorationController(
                Journey(question="Q"), ProviderRegistry(), memory_store, exploration_config
            )


class TestSynthesis:
    async def test_synthesis_every_interval(self, controller_for, fake_provider, observer, memory_store):
        journey = Journey(question="Q", max_depth=7)

        await controller_for(journey).start()

        assert journey.synthesis_count == 2
        assert len(fake_provider.synthesis_requests) == 2
        assert [r.stage_range for r in observer.reports] == [(1, 3), (4, 6)]
        assert [i.category for i in journey.insights] == [SYNTHESIS_CATEGORY] * 2
        assert [i.stage_sequence for i in journey.insights] == [3, 6]

        stored = await memory_store.get_journey(journey.id)
        assert stored.synthesis_count == 2
        assert [i.order for i in stored.insights] == [0, 1]

    async def test_synthesis_folded_into_next_prompt(self, controller_for, fake_provider):
        await controller_for(Journey(question="Q", max_depth=4)).start()

        fourth = fake_provider.stage_requests[3].prompt
        assert "### Synthesis 1 (stages 1-3)" in fourth
        assert "#### Stage 2" not in fourth

    async def test_synthesis_failure_does_not_stop_journey(self, controller_for, make_provider, memory_store, exploration_config, observer, sleep_recorder):
        def responder(request):
            if request.system_prompt == get_synthesis_system_prompt():
                return ProviderHTTPError("down", provider="azure", status_code=500)
            return STAGE_REPLY

        registry = ProviderRegistry()
        registry.register(make_provider("azure", responder=responder))
        journey = Journey(question="Q", max_depth=4)
        controller = ExplorationController(
            journey, registry, memory_store, exploration_config, observer=observer, sleep=sleep_recorder
        )

        await controller.start()

        assert journey.status == JourneyStatus.COMPLETE
        assert journey.stage_count == 4
        assert journey.synthesis_count == 0
        assert observer.reports == []

    async def test_synthesis_disabled(self, controller_for, fake_provider):
        journey = Journey(question="Q", max_depth=3)
        await controller_for(journey, enable_synthesis=False).start()
        assert fake_provider.synthesis_requests == []


class TestPauseResume:
    async def test_pause_takes_effect_after_current_stage(self, controller_for, fake_provider, reply_with, memory_store):
        journey = Journey(question="Q", max_depth=5)
        controller = controller_for(journey)
        fake_provider.responder = reply_with({2: controller.pause})

        result = await controller.start()

        assert result.status == JourneyStatus.PAUSED
        assert journey.stage_count == 2
        assert len(fake_provider.stage_requests) == 2
        assert (await memory_store.get_journey(journey.id)).status == JourneyStatus.PAUSED

    async def test_resume_continues_numbering(self, controller_for, fake_provider, reply_with, observer):
        journey = Journey(question="Q", max_depth=5)
        controller = controller_for(journey)
        fake_provider.responder = reply_with({2: controller.pause})
        await controller.start()

        result = await controller.resume()

        assert result.status == JourneyStatus.COMPLETE
        assert [s.sequence for s in journey.stages] == [1, 2, 3, 4, 5]
        assert "## Stage 3:" in fake_provider.stage_requests[2].prompt
        assert observer.statuses == [
            JourneyStatus.RUNNING,
            JourneyStatus.PAUSED,
            JourneyStatus.RUNNING,
            JourneyStatus.COMPLETE,
        ]

    async def test_run_resumes_paused_journey(self, controller_for, fake_provider, reply_with):
        journey = Journey(question="Q", max_depth=3)
        controller = controller_for(journey)
        fake_provider.responder = reply_with({1: controller.pause})
        await controller.run()
        assert journey.status == JourneyStatus.PAUSED

        await controller.run()

        assert journey.status == JourneyStatus.COMPLETE

    async def test_resume_requires_paused(self, controller_for):
        controller = controller_for(Journey(question="Q", max_depth=1))
        with pytest.raises(InvalidTransitionError):
            await controller.resume()

    async def test_pause_requires_running(self, controller_for):
        controller = controller_for(Journey(question="Q", max_depth=1))
        with pytest.raises(InvalidTransitionError):
            await controller.pause()


class TestStop:
    async def test_stop_while_running(self, controller_for, fake_provider, reply_with, memory_store):
        journey = Journey(question="Q", max_depth=5)
        controller = controller_for(journey)
        fake_provider.responder = reply_with({2: controller.stop})

        result = await controller.start()

        assert result.status == JourneyStatus.STOPPED
        assert journey.stage_count == 2
        assert (await memory_store.get_journey(journey.id)).status == JourneyStatus.STOPPED

    async def test_depth_reached_wins_over_stop(self, controller_for, fake_provider, reply_with):
        journey = Journey(question="Q", max_depth=2)
        controller = controller_for(journey)
        fake_provider.responder = reply_with({2: controller.stop})

        await controller.start()

        assert journey.status == JourneyStatus.COMPLETE

    async def test_stop_while_paused(self, controller_for, fake_provider, reply_with, memory_store):
        journey = Journey(question="Q", max_depth=5)
        controller = controller_for(journey)
        fake_provider.responder = reply_with({1: controller.pause})
        await controller.start()

        await controller.stop()

        assert journey.status == JourneyStatus.STOPPED
        assert (await memory_store.get_journey(journey.id)).status == JourneyStatus.STOPPED
        with pytest.raises(InvalidTransitionError):
            await controller.resume()

    async def test_stop_idle_journey(self, controller_for, observer, memory_store):
        journey = Journey(question="Q", max_depth=5)
        controller = controller_for(journey)

        await controller.stop()

        assert journey.status == JourneyStatus.STOPPED
        assert observer.statuses == [JourneyStatus.STOPPED]
        assert await memory_store.get_journey(journey.id) is None

    async def test_stop_after_complete_rejected(self, controller_for):
        controller = controller_for(Journey(question="Q", max_depth=1))
        await controller.start()
        with pytest.raises(InvalidTransitionError):
            await controller.stop()


class TestFailure:
    async def test_stage_failure_fails_journey(self, controller_for, fake_provider, observer, memory_store):
        fake_provider.script = [STAGE_REPLY, ProviderHTTPError("azure error: 401 - denied", provider="azure", status_code=401)]
        journey = Journey(question="Q", max_depth=5)

        result = await controller_for(journey).start()

        assert result.status == JourneyStatus.FAILED
        assert journey.stage_count == 2
        assert journey.stages[1].status == StageStatus.FAILED
        assert journey.error == "azure error: 401 - denied"

        error, is_fatal = observer.errors[0]
        assert isinstance(error, StageFailedError)
        assert error.sequence == 2
        assert is_fatal is True
        assert observer.stages[-1].status == StageStatus.FAILED

        stored = await memory_store.get_journey(journey.id)
        assert stored.status == JourneyStatus.FAILED
        assert stored.error == "azure error: 401 - denied"
        assert stored.stages[1].status == StageStatus.FAILED

    async def test_transient_errors_retried_before_failing(self, controller_for, fake_provider, sleep_recorder):
        busy = [ProviderHTTPError("busy", provider="azure", status_code=503) for _ in range(3)]
        fake_provider.script = busy
        journey = Journey(question="Q", max_depth=2)

        await controller_for(journey).start()

        assert journey.status == JourneyStatus.FAILED
        assert sleep_recorder.delays == [2.0, 4.0]

    async def test_continue_on_failure(self, controller_for, fake_provider, observer, synthesis_json):
        fake_provider.script = [
            STAGE_REPLY,
            ProviderHTTPError("denied", provider="azure", status_code=401),
            STAGE_REPLY,
            synthesis_json,
        ]
        journey = Journey(question="Q", max_depth=3)

        await controller_for(journey, continue_on_failure=True).start()

        assert journey.status == JourneyStatus.COMPLETE
        assert [s.sequence for s in journey.stages] == [1, 2, 3]
        assert [s.status for s in journey.stages] == [
            StageStatus.COMPLETE,
            StageStatus.FAILED,
            StageStatus.COMPLETE,
        ]
        assert observer.errors[0][1] is False
        assert observer.reports[0].stage_range == (1, 3)

    async def test_store_error_aborts_journey(self, controller_for, observer):
        class FailingStore(InMemoryJourneyStore):
            async def append_stage(self, journey_id, stage):
                raise RuntimeError("disk full")

        store = FailingStore()
        journey = Journey(question="Q", max_depth=3)

        with pytest.raises(RuntimeError, match="disk full"):
            await controller_for(journey, store=store).start()

        assert journey.status == JourneyStatus.FAILED
        assert journey.error == "disk full"
        assert (await store.get_journey(journey.id)).status == JourneyStatus.FAILED
        assert observer.errors[-1][1] is True


class TestWithSqlite:
    async def test_journey_round_trips_through_repository(self, controller_for, journey_repo, fake_provider):
        code_reply = "## Build\n```python\ndef storage(kg):\n    return kg * 4186\n```\nNext: measure"
        fake_provider.script = [code_reply]
        journey = Journey(question="Q", max_depth=3)

        await controller_for(journey, store=journey_repo).start()

        stored = await journey_repo.get_journey(journey.id)
        assert stored.status == JourneyStatus.COMPLETE
        assert [s.sequence for s in stored.stages] == [1, 2, 3]
        assert len(stored.stages[0].artifacts) == 1
        assert stored.synthesis_count == 1
        assert stored.insights[0].category == SYNTHESIS_CATEGORY
