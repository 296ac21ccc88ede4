"""Stage domain model.

A stage is one step of a journey. The controller creates it as `pending`,
the stage executor moves it through `running` to `complete` or `failed`, and
from then on it is frozen. Stages are appended to their journey in strict
sequence-number order because later prompts depend on earlier outputs.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, PrivateAttr

from journey_engine.core.exceptions import StageFinalizedError
from journey_engine.domain.models.artifact import Artifact


class StageType(str, Enum):
    """The fixed set of exploration stage types, in rotation order."""

    DISCOVERING = "discovering"
    CHASING = "chasing"
    SOLVING = "solving"
    CHALLENGING = "challenging"
    QUESTIONING = "questioning"
    SEARCHING = "searching"
    IMAGINING = "imagining"
    BUILDING = "building"

    @classmethod
    def for_sequence(cls, sequence: int) -> "StageType":
        """Stage type for a 1-based sequence number (cycles through all types)."""
        if sequence < 1:
            raise ValueError(f"Stage sequence must be >= 1, got {sequence}")
        members = list(cls)
        return members[(sequence - 1) % len(members)]


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"


# Reasoning token budgets used when extended reasoning is on and no explicit
# budget is configured.
DEFAULT_REASONING_BUDGETS: Dict[StageType, int] = {
    StageType.DISCOVERING: 12000,
    StageType.CHASING: 8000,
    StageType.SOLVING: 15000,
    StageType.CHALLENGING: 14000,
    StageType.QUESTIONING: 6000,
    StageType.SEARCHING: 8000,
    StageType.IMAGINING: 12000,
    StageType.BUILDING: 15000,
}


class Stage(BaseModel):
    """One exploration step and its outcome.

    Status Transitions:
        - pending -> running: executor begins the provider call
        - running -> complete: output stored, artifacts attached
        - running -> failed: error recorded
        - pending -> failed: allowed when the call could not start

    Once complete or failed, any attribute assignment raises
    StageFinalizedError.
    """

    sequence: int = Field(ge=1, description="1-based position in the journey")
    stage_type: StageType
    status: StageStatus = StageStatus.PENDING
    output: str = ""
    reasoning_trace: Optional[str] = None
    artifacts: List[Artifact] = Field(default_factory=list)
    error: Optional[str] = None
    is_summary: bool = Field(
        default=False, description="Terminal summary stage (never triggers synthesis)"
    )
    provider_id: Optional[str] = None
    model_id: Optional[str] = None
    token_usage: Dict[str, int] = Field(default_factory=dict)
    tool_invocations: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    _finalized: bool = PrivateAttr(default=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if not name.startswith("_") and self._finalized:
            raise StageFinalizedError(
                f"Stage {self.sequence} is {self.status.value} and cannot be modified"
            )
        super().__setattr__(name, value)

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    @property
    def succeeded(self) -> bool:
        return self.status == StageStatus.COMPLETE

    def mark_running(self) -> None:
        self.status = StageStatus.RUNNING
        self.started_at = datetime.now(timezone.utc)

    def complete(
        self,
        output: str,
        reasoning_trace: Optional[str] = None,
        artifacts: Optional[List[Artifact]] = None,
        provider_id: Optional[str] = None,
        model_id: Optional[str] = None,
        token_usage: Optional[Dict[str, int]] = None,
        tool_invocations: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        """Record a successful outcome and freeze the stage."""
        self.output = output
        self.reasoning_trace = reasoning_trace
        self.artifacts = list(artifacts or [])
        self.provider_id = provider_id
        self.model_id = model_id
        self.token_usage = dict(token_usage or {})
        self.tool_invocations = list(tool_invocations or [])
        self.status = StageStatus.COMPLETE
        self.completed_at = datetime.now(timezone.utc)
        self._finalized = True

    def fail(self, error: str) -> None:
        """Record a terminal failure and freeze the stage."""
        self.error = error
        self.status = StageStatus.FAILED
        self.completed_at = datetime.now(timezone.utc)
        self._finalized = True

    @classmethod
    def restore(cls, **data: Any) -> "Stage":
        """Rebuild a stage loaded from storage, re-applying the freeze."""
        stage = cls(**data)
        if stage.status in (StageStatus.COMPLETE, StageStatus.FAILED):
            stage._finalized = True
        return stage
