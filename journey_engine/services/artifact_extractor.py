"""
Artifact extraction from completion text.

Scans model output for fenced blocks (```tag ... ```) and promotes each one
to a typed Artifact using a fixed language-tag taxonomy. Extraction is a
pure function of the input text apart from generated identifiers, which are
time-based.
"""

import re
import time
from typing import FrozenSet, List, Optional

from journey_engine.domain.models.artifact import Artifact, ArtifactType

DEFAULT_MIN_LENGTH = 10

FENCED_BLOCK_PATTERN = re.compile(r"```([\w+#.-]+)?[ \t]*\n(.*?)```", re.DOTALL)

CODE_LANGUAGES: FrozenSet[str] = frozenset(
    {
        "javascript", "typescript", "python", "java", "rust", "go", "cpp", "c",
        "html", "css", "jsx", "tsx", "ruby", "php", "swift", "kotlin", "scala",
    }
)
VISUALIZATION_LANGUAGES: FrozenSet[str] = frozenset(
    {"mermaid", "graphviz", "dot", "plantuml"}
)
DATA_LANGUAGES: FrozenSet[str] = frozenset({"json", "yaml", "toml", "xml", "csv"})

_TITLE_SUFFIX = {
    ArtifactType.CODE: "Code",
    ArtifactType.VISUALIZATION: "Diagram",
    ArtifactType.DATA: "Data",
    ArtifactType.DOCUMENT: "Document",
}


def classify_language(language: str) -> ArtifactType:
    """Map a fenced block's language tag to an artifact type."""
    lang = language.lower()
    if lang in CODE_LANGUAGES:
        return ArtifactType.CODE
    if lang in VISUALIZATION_LANGUAGES:
        return ArtifactType.VISUALIZATION
    if lang in DATA_LANGUAGES:
        return ArtifactType.DATA
    return ArtifactType.DOCUMENT


def extract_artifacts(
    text: str,
    min_length: int = DEFAULT_MIN_LENGTH,
    stage_sequence: Optional[int] = None,
) -> List[Artifact]:
    """
    Extract typed artifacts from fenced blocks in `text`.

    Args:
        text: Completion text to scan
        min_length: Blocks whose trimmed content is shorter than this are
            discarded as noise
        stage_sequence: Owning stage, recorded on each artifact

    Returns:
        Artifacts in order of appearance. Untagged blocks are treated as
        "text" and classified as documents.
    """
    artifacts: List[Artifact] = []
    if not text:
        return artifacts

    timestamp_ms = int(time.time() * 1000)

    for match in FENCED_BLOCK_PATTERN.finditer(text):
        language = match.group(1) or "text"
        content = match.group(2).strip()

        if len(content) < min_length:
            continue

        artifact_type = classify_language(language)
        artifacts.append(
            Artifact(
                id=f"artifact-{timestamp_ms}-{len(artifacts)}",
                type=artifact_type,
                title=f"{language[:1].upper()}{language[1:]} {_TITLE_SUFFIX[artifact_type]}",
                content=content,
                metadata={
                    "language": language,
                    "line_count": len(content.split("\n")),
                },
                stage_sequence=stage_sequence,
            )
        )

    return artifacts
