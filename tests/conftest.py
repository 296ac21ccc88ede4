"""
Shared test fixtures.

Provides a scripted fake provider (no network), stores, and a temp SQLite
database.
"""

import inspect
import json
import tempfile
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

import pytest

from journey_engine.core.config import ExplorationConfig
from journey_engine.llm.prompts.synthesis import get_synthesis_system_prompt
from journey_engine.llm.registry import ProviderRegistry
from journey_engine.llm.types import (
    ProviderRequest,
    ProviderResponse,
    StreamChunk,
    TokenUsage,
)
from journey_engine.persistence.database import init_database
from journey_engine.persistence.repositories import InMemoryJourneyStore, JourneyRepository
from journey_engine.services.artifact_extractor import extract_artifacts

SYNTHESIS_JSON = json.dumps(
    {
        "summary": "The stages converged on thermal storage.",
        "connections": "Stage 2 built on stage 1.",
        "patterns": "Cost keeps coming up.",
        "contradictions": "",
        "forward_look": "Prototype a small tank.",
        "quality_score": 7,
        "key_insights": ["Water is cheap", "Insulation dominates cost"],
    }
)

Reply = Union[str, ProviderResponse, Exception]


def is_synthesis_request(request: ProviderRequest) -> bool:
    return request.system_prompt == get_synthesis_system_prompt()


def default_reply(request: ProviderRequest) -> str:
    if is_synthesis_request(request):
        return SYNTHESIS_JSON
    return "## Findings\nSome exploration output.\n\nNext: keep going"


class FakeProvider:
    """
    Scripted stand-in for a ProviderClient.

    Replies come from `script` in order (str, ProviderResponse or exception),
    then from `responder(request)` once the script runs out.
    """

    def __init__(
        self,
        provider_id: str = "azure",
        script: Optional[List[Reply]] = None,
        responder: Optional[Callable[[ProviderRequest], Any]] = None,
    ):
        self.provider_id = provider_id
        self.default_model = "fake-model"
        self.script = list(script or [])
        self.responder = responder or default_reply
        self.requests: List[ProviderRequest] = []

    @property
    def stage_requests(self) -> List[ProviderRequest]:
        return [r for r in self.requests if not is_synthesis_request(r)]

    @property
    def synthesis_requests(self) -> List[ProviderRequest]:
        return [r for r in self.requests if is_synthesis_request(r)]

    async def execute_request(self, request, on_chunk=None):
        self.requests.append(request)
        reply = self.script.pop(0) if self.script else self.responder(request)
        if inspect.isawaitable(reply):
            reply = await reply
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, ProviderResponse):
            return reply

        if request.streaming and on_chunk is not None:
            for piece in reply.split(" "):
                on_chunk(StreamChunk(type="content", content=piece + " "))
            on_chunk(StreamChunk(type="content", content="", is_complete=True))

        return ProviderResponse(
            content=reply,
            provider_id=self.provider_id,
            model_id=request.model_id,
            token_usage=TokenUsage(input_tokens=10, output_tokens=20),
            artifacts=(
                extract_artifacts(reply, min_length=request.min_artifact_length)
                if request.min_artifact_length is not None
                else []
            ),
        )


class RecordingObserver:
    """Observer that records every event it receives."""

    def __init__(self):
        self.chunks = []
        self.stages = []
        self.reports = []
        self.statuses = []
        self.errors = []

    def on_chunk(self, chunk):
        self.chunks.append(chunk)

    def on_stage_complete(self, stage):
        self.stages.append(stage)

    def on_synthesis_complete(self, report):
        self.reports.append(report)

    def on_journey_status_change(self, status):
        self.statuses.append(status)

    def on_error(self, error, is_fatal):
        self.errors.append((error, is_fatal))


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def exploration_config():
    """Config with no fallback, non-streaming, synthesis every 3 stages."""
    return ExplorationConfig(
        provider="azure",
        fallback_provider=None,
        model="claude-3-5-sonnet-20241022",
        streaming=False,
        synthesis_interval=3,
    )


@pytest.fixture
def make_provider():
    """Factory for scripted fake providers."""
    return FakeProvider


@pytest.fixture
def fake_provider():
    return FakeProvider("azure")


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def synthesis_json():
    return SYNTHESIS_JSON


@pytest.fixture
def registry(fake_provider):
    registry = ProviderRegistry()
    registry.register(fake_provider)
    return registry


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def memory_store():
    return InMemoryJourneyStore()


@pytest.fixture
async def test_db():
    """Create and initialize a temp database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        await init_database(db_path)
        yield db_path


@pytest.fixture
async def journey_repo(test_db):
    return JourneyRepository(str(test_db))
