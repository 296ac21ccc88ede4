"""Artifact domain model.

Artifacts are structured units of content (code, documents, diagrams, data)
pulled out of a stage's raw output by the artifact extractor. Each artifact
is owned by exactly one stage and is immutable once extracted.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ArtifactType(str, Enum):
    """Artifact classification derived from a fenced block's language tag."""

    CODE = "code"
    DOCUMENT = "document"
    VISUALIZATION = "visualization"
    DATA = "data"


class Artifact(BaseModel):
    """Immutable content block extracted from a stage's output."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: ArtifactType
    title: str
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    stage_sequence: Optional[int] = Field(
        default=None, description="Sequence number of the owning stage"
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def language(self) -> str:
        return self.metadata.get("language", "text")

    @property
    def line_count(self) -> int:
        return self.metadata.get("line_count", 0)
