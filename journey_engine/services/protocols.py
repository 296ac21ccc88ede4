"""
Collaborator protocol definitions (interfaces).

The engine depends on two collaborators through these protocols:
- JourneyStore: durable storage, awaited at every write
- JourneyObserver: UI-side listener that receives progress events

Implementations need not inherit from these classes; structural typing
is enough.
"""

from typing import List, Optional, Protocol

from journey_engine.domain.models.insight import Insight
from journey_engine.domain.models.journey import Journey, JourneyStatus
from journey_engine.domain.models.stage import Stage
from journey_engine.domain.models.synthesis import SynthesisReport
from journey_engine.llm.types import StreamChunk


class JourneyStore(Protocol):
    """
    Protocol for journey persistence.

    Writes for one journey are serialized by the store; the engine awaits
    each write before continuing.
    """

    async def create_journey(self, journey: Journey) -> Journey:
        """Persist a new journey (with no stages yet)."""
        ...

    async def append_stage(self, journey_id: str, stage: Stage) -> None:
        """Persist a finished stage and its artifacts."""
        ...

    async def append_insight(self, journey_id: str, insight: Insight) -> None:
        """Persist an insight at the end of the journey's insight list."""
        ...

    async def update_journey_status(
        self,
        journey_id: str,
        status: JourneyStatus,
        error: Optional[str] = None,
    ) -> None:
        """Persist a status change (and the failure reason, if any)."""
        ...

    async def update_synthesis_count(self, journey_id: str, count: int) -> None:
        ...

    async def get_journey(self, journey_id: str) -> Optional[Journey]:
        """Load a journey with its stages, artifacts and insights."""
        ...

    async def list_journeys(self) -> List[Journey]:
        """List journeys newest first (without stages)."""
        ...


class JourneyObserver(Protocol):
    """
    Protocol for progress listeners.

    Observers never feed decisions back into the engine except through the
    controller's pause/resume/stop calls.
    """

    def on_chunk(self, chunk: StreamChunk) -> None:
        ...

    def on_stage_complete(self, stage: Stage) -> None:
        ...

    def on_synthesis_complete(self, report: SynthesisReport) -> None:
        ...

    def on_journey_status_change(self, status: JourneyStatus) -> None:
        ...

    def on_error(self, error: Exception, is_fatal: bool) -> None:
        ...


class NullObserver:
    """Observer that ignores every event."""

    def on_chunk(self, chunk: StreamChunk) -> None:
        pass

    def on_stage_complete(self, stage: Stage) -> None:
        pass

    def on_synthesis_complete(self, report: SynthesisReport) -> None:
        pass

    def on_journey_status_change(self, status: JourneyStatus) -> None:
        pass

    def on_error(self, error: Exception, is_fatal: bool) -> None:
        pass
