"""In-memory journey store for tests and embedding."""

import asyncio
from typing import Dict, List, Optional

import structlog

from journey_engine.core.exceptions import JourneyError, JourneyNotFoundError
from journey_engine.domain.models.insight import Insight
from journey_engine.domain.models.journey import Journey, JourneyStatus
from journey_engine.domain.models.stage import Stage

log = structlog.get_logger(__name__)


class InMemoryJourneyStore:
    """
    Dict-backed journey store.

    Holds deep copies, so callers mutating their own Journey objects never
    change what was stored. Writes for one journey are serialized with a
    per-journey asyncio.Lock, like JourneyRepository.
    """

    def __init__(self) -> None:
        self._journeys: Dict[str, Journey] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, journey_id: str) -> asyncio.Lock:
        if journey_id not in self._locks:
            self._locks[journey_id] = asyncio.Lock()
        return self._locks[journey_id]

    def _require(self, journey_id: str) -> Journey:
        try:
            return self._journeys[journey_id]
        except KeyError:
            raise JourneyNotFoundError(f"Journey {journey_id} not found") from None

    async def create_journey(self, journey: Journey) -> Journey:
        async with self._lock(journey.id):
            if journey.id in self._journeys:
                raise JourneyError(f"Journey {journey.id} already exists")
            self._journeys[journey.id] = journey.model_copy(
                update={"stages": [], "insights": []}, deep=True
            )
        log.debug("journey_created", journey_id=journey.id)
        return journey

    async def append_stage(self, journey_id: str, stage: Stage) -> None:
        async with self._lock(journey_id):
            self._require(journey_id).append_stage(stage.model_copy(deep=True))

    async def append_insight(self, journey_id: str, insight: Insight) -> None:
        async with self._lock(journey_id):
            self._require(journey_id).append_insight(insight)

    async def update_journey_status(
        self,
        journey_id: str,
        status: JourneyStatus,
        error: Optional[str] = None,
    ) -> None:
        async with self._lock(journey_id):
            stored = self._require(journey_id)
            stored.status = status
            stored.error = error

    async def update_synthesis_count(self, journey_id: str, count: int) -> None:
        async with self._lock(journey_id):
            self._require(journey_id).synthesis_count = count

    async def get_journey(self, journey_id: str) -> Optional[Journey]:
        stored = self._journeys.get(journey_id)
        return stored.model_copy(deep=True) if stored else None

    async def list_journeys(self) -> List[Journey]:
        journeys = sorted(self._journeys.values(), key=lambda j: j.created_at, reverse=True)
        return [j.model_copy(update={"stages": [], "insights": []}) for j in journeys]
