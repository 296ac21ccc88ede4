"""Journey domain model for exploration lifecycle management.

A journey is one user-initiated exploration run. It owns its ordered stages
and its append-only insight list, and its status only moves forward.

Journey Lifecycle:
    1. Created idle with the user's question and a depth ceiling
    2. Controller starts it (running) and appends stages as they finish
    3. Synthesis reports are folded in as "Synthesis" insights
    4. Ends complete (depth reached), stopped (user) or failed (stage error)
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from journey_engine.core.exceptions import InvalidTransitionError, JourneyError
from journey_engine.domain.models.insight import Insight, SYNTHESIS_CATEGORY
from journey_engine.domain.models.stage import Stage, StageStatus


class JourneyStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[JourneyStatus] = frozenset(
    {JourneyStatus.STOPPED, JourneyStatus.COMPLETE, JourneyStatus.FAILED}
)

ALLOWED_TRANSITIONS: Dict[JourneyStatus, FrozenSet[JourneyStatus]] = {
    JourneyStatus.IDLE: frozenset({JourneyStatus.RUNNING, JourneyStatus.STOPPED}),
    JourneyStatus.RUNNING: frozenset(
        {
            JourneyStatus.PAUSED,
            JourneyStatus.STOPPED,
            JourneyStatus.COMPLETE,
            JourneyStatus.FAILED,
        }
    ),
    JourneyStatus.PAUSED: frozenset({JourneyStatus.RUNNING, JourneyStatus.STOPPED}),
    JourneyStatus.STOPPED: frozenset(),
    JourneyStatus.COMPLETE: frozenset(),
    JourneyStatus.FAILED: frozenset(),
}


class Journey(BaseModel):
    """Top-level exploration entity.

    Attributes:
        - question: The originating question or topic
        - max_depth: Stage-count ceiling, None for unbounded
        - status: Lifecycle state (see ALLOWED_TRANSITIONS)
        - stages: Ordered stages, sequence numbers contiguous from 1
        - insights: Append-only observations, including synthesis entries
        - synthesis_count: Number of synthesis reports folded in so far
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    question: str = Field(min_length=1)
    max_depth: Optional[int] = Field(default=None, ge=1)
    status: JourneyStatus = JourneyStatus.IDLE
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    stages: List[Stage] = Field(default_factory=list)
    insights: List[Insight] = Field(default_factory=list)
    synthesis_count: int = Field(default=0, ge=0)
    error: Optional[str] = None

    @property
    def stage_count(self) -> int:
        return len(self.stages)

    @property
    def next_sequence(self) -> int:
        return len(self.stages) + 1

    @property
    def completed_stages(self) -> List[Stage]:
        return [s for s in self.stages if s.status == StageStatus.COMPLETE]

    @property
    def depth_reached(self) -> bool:
        return self.max_depth is not None and self.stage_count >= self.max_depth

    @property
    def synthesis_insights(self) -> List[Insight]:
        return [i for i in self.insights if i.category == SYNTHESIS_CATEGORY]

    def can_transition_to(self, status: JourneyStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[self.status]

    def transition_to(self, status: JourneyStatus) -> None:
        """Move to a new status, enforcing forward-only transitions.

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        if not self.can_transition_to(status):
            raise InvalidTransitionError(
                f"Journey {self.id}: cannot transition "
                f"{self.status.value} -> {status.value}"
            )
        self.status = status

    def append_stage(self, stage: Stage) -> None:
        """Append a finished stage, enforcing contiguous numbering.

        Raises:
            JourneyError: If the stage's sequence number is not next in line
                or the stage has not finished
        """
        if stage.sequence != self.next_sequence:
            raise JourneyError(
                f"Journey {self.id}: expected stage {self.next_sequence}, "
                f"got {stage.sequence}"
            )
        if not stage.is_finalized:
            raise JourneyError(
                f"Journey {self.id}: stage {stage.sequence} is still {stage.status.value}"
            )
        self.stages.append(stage)

    def append_insight(self, insight: Insight) -> None:
        if insight.order != len(self.insights):
            raise JourneyError(
                f"Journey {self.id}: expected insight order {len(self.insights)}, "
                f"got {insight.order}"
            )
        self.insights.append(insight)
