"""Domain models package."""

from .artifact import Artifact, ArtifactType
from .insight import Insight, SYNTHESIS_CATEGORY
from .journey import Journey, JourneyStatus
from .stage import DEFAULT_REASONING_BUDGETS, Stage, StageStatus, StageType
from .synthesis import SynthesisReport

__all__ = [
    "Artifact",
    "ArtifactType",
    "Insight",
    "SYNTHESIS_CATEGORY",
    "Journey",
    "JourneyStatus",
    "DEFAULT_REASONING_BUDGETS",
    "Stage",
    "StageStatus",
    "StageType",
    "SynthesisReport",
]
