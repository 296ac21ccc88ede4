"""Insight domain model.

Insights are short derived observations attached to a journey, either
extracted per stage or produced by synthesis. The journey's insight list is
append-only.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

SYNTHESIS_CATEGORY = "Synthesis"


class Insight(BaseModel):
    """A single observation in a journey's insight list."""

    model_config = ConfigDict(frozen=True)

    category: str = Field(description="Free-form category, e.g. 'Synthesis'")
    text: str
    score: Optional[float] = Field(
        default=None, ge=0.0, le=10.0, description="Quality score on a 0-10 scale"
    )
    order: int = Field(ge=0, description="Creation order within the journey")
    stage_sequence: Optional[int] = Field(
        default=None, description="Stage that produced or triggered this insight"
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
