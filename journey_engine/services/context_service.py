"""
Rolling context for stage prompts.

Keeps the prompt bounded as a journey grows:
- Stages already covered by a synthesis are folded into that synthesis
- Uncovered stages appear as truncated excerpts, most recent last
- Beyond `max_recent_stages`, older uncovered stages shrink to a headline
- Non-synthesis insights are listed; only the latest synthesis is included
"""

from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from journey_engine.domain.models.insight import SYNTHESIS_CATEGORY
from journey_engine.domain.models.journey import Journey
from journey_engine.domain.models.stage import Stage

log = structlog.get_logger(__name__)


@dataclass
class StageSummary:
    """Condensed view of one completed stage."""

    sequence: int
    stage_type: str
    text: str


@dataclass
class ExplorationContext:
    """Everything a stage prompt needs to know about the journey so far."""

    question: str
    stage_summaries: List[StageSummary] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)
    latest_synthesis: Optional[str] = None
    synthesis_count: int = 0
    covered_through: int = 0

    @property
    def is_empty(self) -> bool:
        return not (self.stage_summaries or self.insights or self.latest_synthesis)

    def render(self) -> str:
        """Render the context as markdown for inclusion in a prompt."""
        sections = []

        if self.latest_synthesis:
            sections.append(
                f"### Synthesis {self.synthesis_count} "
                f"(stages 1-{self.covered_through}):\n{self.latest_synthesis}"
            )

        if self.stage_summaries:
            lines = [
                f"#### Stage {s.sequence} ({s.stage_type})\n{s.text}"
                for s in self.stage_summaries
            ]
            sections.append("### Recent Stages:\n" + "\n\n".join(lines))

        if self.insights:
            sections.append(
                "### Insights:\n" + "\n".join(f"- {text}" for text in self.insights)
            )

        return "\n\n".join(sections)


class ContextService:
    """Builds the bounded rolling context for a journey."""

    def __init__(
        self,
        max_recent_stages: int = 4,
        excerpt_chars: int = 1500,
        headline_chars: int = 160,
    ):
        if max_recent_stages < 1:
            raise ValueError("max_recent_stages must be >= 1")
        self.max_recent_stages = max_recent_stages
        self.excerpt_chars = excerpt_chars
        self.headline_chars = headline_chars

    def build(self, journey: Journey) -> ExplorationContext:
        """
        Build the context for the journey's next stage.

        Args:
            journey: Journey with its stages and insights so far

        Returns:
            ExplorationContext (empty apart from the question before stage 1)
        """
        syntheses = journey.synthesis_insights
        latest = syntheses[-1] if syntheses else None
        covered_through = (latest.stage_sequence or 0) if latest else 0

        uncovered = [s for s in journey.completed_stages if s.sequence > covered_through]
        split = max(0, len(uncovered) - self.max_recent_stages)

        summaries = [self._headline(s) for s in uncovered[:split]]
        summaries += [self._excerpt(s) for s in uncovered[split:]]

        context = ExplorationContext(
            question=journey.question,
            stage_summaries=summaries,
            insights=[i.text for i in journey.insights if i.category != SYNTHESIS_CATEGORY],
            latest_synthesis=latest.text if latest else None,
            synthesis_count=journey.synthesis_count,
            covered_through=covered_through,
        )

        log.debug(
            "context_built",
            journey_id=journey.id,
            stages=len(summaries),
            headlined=split,
            covered_through=covered_through,
            insights=len(context.insights),
        )
        return context

    def _excerpt(self, stage: Stage) -> StageSummary:
        return StageSummary(
            sequence=stage.sequence,
            stage_type=stage.stage_type.value,
            text=_truncate(stage.output.strip(), self.excerpt_chars),
        )

    def _headline(self, stage: Stage) -> StageSummary:
        first_line = next(
            (line.strip("# ").strip() for line in stage.output.splitlines() if line.strip()),
            "",
        )
        return StageSummary(
            sequence=stage.sequence,
            stage_type=stage.stage_type.value,
            text=_truncate(first_line, self.headline_chars),
        )


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."
