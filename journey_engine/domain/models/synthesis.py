"""Synthesis report domain model.

A synthesis report compresses the most recent window of stages plus the
accumulated insights into five semantic fields. Each report is folded back
into the journey as one Insight of category "Synthesis".
"""

from datetime import datetime, timezone
from typing import List, Tuple

from pydantic import BaseModel, Field

from journey_engine.domain.models.insight import Insight, SYNTHESIS_CATEGORY


class SynthesisReport(BaseModel):
    """Condensed summary of a window of stages.

    Fields:
        - summary: What the window established (required)
        - connections: Links between findings across stages
        - patterns: Recurring themes
        - contradictions: Tensions or conflicting findings
        - forward_look: Where the exploration should head next
        - quality_score: 0-10 self-assessment of the window's progress
        - key_insights: Short standalone statements worth carrying forward
    """

    summary: str
    connections: str = ""
    patterns: str = ""
    contradictions: str = ""
    forward_look: str = ""
    quality_score: float = Field(default=5.0, ge=0.0, le=10.0)
    key_insights: List[str] = Field(default_factory=list)
    synthesis_number: int = Field(default=1, ge=1)
    stage_range: Tuple[int, int] = (0, 0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_insight(self, order: int) -> Insight:
        """Convert this report into the journey's Synthesis insight entry."""
        parts = [self.summary]
        if self.key_insights:
            parts.append("Key insights: " + "; ".join(self.key_insights))
        return Insight(
            category=SYNTHESIS_CATEGORY,
            text="\n".join(parts),
            score=self.quality_score,
            order=order,
            stage_sequence=self.stage_range[1] or None,
            created_at=self.created_at,
        )
