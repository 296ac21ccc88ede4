"""Tests for StageExecutor."""

import pytest

from journey_engine.core.exceptions import ProviderHTTPError
from journey_engine.domain.models import (
    DEFAULT_REASONING_BUDGETS,
    ArtifactType,
    Journey,
    Stage,
    StageStatus,
    StageType,
)
from journey_engine.llm.retry import ResilientExecutor, RetryPolicy
from journey_engine.llm.types import ProviderResponse, TokenUsage, ToolInvocation
from journey_engine.services.stage_executor import StageExecutor
from journey_engine.services.token_usage_service import STAGE_CALL, TokenUsageService

CODE_REPLY = "## Design\nA tiny model.\n\n```python\ndef capacity(mass, dt):\n    return mass * 4.186 * dt\n```\n\nNext: test it"


@pytest.fixture
def executor_for(exploration_config, sleep_recorder):
    def build(provider, **config_updates):
        config = exploration_config.model_copy(update=config_updates)
        executor = ResilientExecutor(provider, policy=RetryPolicy(max_attempts=2), sleep=sleep_recorder)
        return StageExecutor(executor, config, usage=TokenUsageService())

    return build


def pending(sequence=1):
    return Stage(sequence=sequence, stage_type=StageType.for_sequence(sequence))


class TestBuildRequest:
    def test_first_stage_prompt(self, executor_for, fake_provider):
        journey = Journey(question="How do heat batteries work?")

        request = executor_for(fake_provider).build_request(journey, pending())

        assert "How do heat batteries work?" in request.prompt
        assert "## Stage 1: Discovering" in request.prompt
        assert "Exploration So Far" not in request.prompt
        assert request.extended_reasoning is False
        assert request.reasoning_budget is None
        assert request.max_tokens == 8000
        assert request.model_id == "claude-3-5-sonnet-20241022"

    def test_default_budget_per_stage_type(self, executor_for, fake_provider):
        stage_executor = executor_for(fake_provider, extended_reasoning=True)

        request = stage_executor.build_request(Journey(question="Q"), pending(3))

        assert request.extended_reasoning is True
        assert request.reasoning_budget == DEFAULT_REASONING_BUDGETS[StageType.SOLVING]
        assert request.max_tokens == 8000 + DEFAULT_REASONING_BUDGETS[StageType.SOLVING]

    def test_configured_budget_wins(self, executor_for, fake_provider):
        stage_executor = executor_for(fake_provider, extended_reasoning=True, reasoning_budget=2048)
        assert stage_executor.reasoning_budget_for(pending(1)) == 2048

    def test_budget_ignored_without_extended_reasoning(self, executor_for, fake_provider):
        stage_executor = executor_for(fake_provider, reasoning_budget=2048)
        assert stage_executor.reasoning_budget_for(pending(1)) is None


class TestExecute:
    async def test_completes_stage_with_artifacts(self, executor_for, make_provider):
        provider = make_provider(script=[CODE_REPLY])
        stage_executor = executor_for(provider)
        journey = Journey(question="Q")

        stage = await stage_executor.execute(journey, pending())

        assert stage.status == StageStatus.COMPLETE
        assert stage.is_finalized
        assert stage.output == CODE_REPLY
        assert stage.provider_id == "azure"
        assert stage.token_usage["input_tokens"] == 10
        assert len(stage.artifacts) == 1
        assert stage.artifacts[0].type == ArtifactType.CODE
        assert stage.artifacts[0].stage_sequence == 1
        usage = stage_executor.usage.get_journey_usage(journey.id)
        assert usage["claude-3-5-sonnet-20241022"][STAGE_CALL]["calls"] == 1

    async def test_artifacts_not_saved_when_disabled(self, executor_for, make_provider):
        stage_executor = executor_for(make_provider(script=[CODE_REPLY]), save_artifacts=False)
        stage = await stage_executor.execute(Journey(question="Q"), pending())
        assert stage.artifacts == []

    async def test_reasoning_and_tools_recorded(self, executor_for, make_provider):
        reply = ProviderResponse(
            content="Answer",
            provider_id="azure",
            model_id="m",
            reasoning_trace="thought about it",
            tool_invocations=[ToolInvocation(name="search", input={"q": "x"})],
            token_usage=TokenUsage(input_tokens=1, output_tokens=2),
        )
        stage = await executor_for(make_provider(script=[reply])).execute(Journey(question="Q"), pending())

        assert stage.reasoning_trace == "thought about it"
        assert stage.tool_invocations == [{"name": "search", "input": {"q": "x"}}]

    async def test_provider_failure_fails_stage(self, executor_for, make_provider):
        provider = make_provider(script=[ProviderHTTPError("azure error: 401 - denied", status_code=401)])
        stage_executor = executor_for(provider)
        journey = Journey(question="Q")

        stage = await stage_executor.execute(journey, pending())

        assert stage.status == StageStatus.FAILED
        assert stage.error == "azure error: 401 - denied"
        assert stage.is_finalized
        assert stage_executor.usage.get_journey_usage(journey.id) is None

    async def test_streaming_forwards_chunks(self, executor_for, fake_provider, observer):
        stage_executor = executor_for(fake_provider, streaming=True)

        await stage_executor.execute(Journey(question="Q"), pending(), observer=observer)

        assert fake_provider.requests[0].streaming is True
        assert observer.chunks
        assert observer.chunks[-1].is_complete

    async def test_no_chunks_without_streaming(self, executor_for, fake_provider, observer):
        await executor_for(fake_provider).execute(Journey(question="Q"), pending(), observer=observer)
        assert observer.chunks == []


class TestArtifactThreshold:
    def test_request_carries_configured_threshold(self, executor_for, fake_provider):
        stage_executor = executor_for(fake_provider, min_artifact_length=25)
        request = stage_executor.build_request(Journey(question="Q"), pending())
        assert request.min_artifact_length == 25

    def test_no_extraction_when_artifacts_disabled(self, executor_for, fake_provider):
        stage_executor = executor_for(fake_provider, save_artifacts=False)
        request = stage_executor.build_request(Journey(question="Q"), pending())
        assert request.min_artifact_length is None

    async def test_threshold_filters_short_blocks(self, executor_for, make_provider):
        provider = make_provider(script=[CODE_REPLY])
        stage_executor = executor_for(provider, min_artifact_length=500)

        stage = await stage_executor.execute(Journey(question="Q"), pending())

        assert stage.status == StageStatus.COMPLETE
        assert stage.artifacts == []
