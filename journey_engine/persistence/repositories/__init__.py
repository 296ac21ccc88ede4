"""Repository implementations."""

from journey_engine.persistence.repositories.journey_repo import JourneyRepository
from journey_engine.persistence.repositories.memory_store import InMemoryJourneyStore

__all__ = [
    "JourneyRepository",
    "InMemoryJourneyStore",
]
