"""Tests for artifact extraction from completion text."""

import re

import pytest

from journey_engine.domain.models.artifact import ArtifactType
from journey_engine.services.artifact_extractor import classify_language, extract_artifacts

PYTHON_40 = "def add(a, b):\n    return a + b  # sum!!"
JSON_5 = '[1,2]'


def fenced(tag: str, body: str) -> str:
    return f"```{tag}\n{body}\n```"


class TestExtractArtifacts:
    """Tests for extract_artifacts()."""

    def test_short_block_dropped_long_block_kept(self):
        """A 40-char python block survives; a 5-char json block is dropped."""
        assert len(PYTHON_40) == 40
        assert len(JSON_5) == 5
        text = f"Intro\n\n{fenced('python', PYTHON_40)}\n\nThen\n{fenced('json', JSON_5)}\n"

        artifacts = extract_artifacts(text)

        assert len(artifacts) == 1
        assert artifacts[0].type == ArtifactType.CODE
        assert artifacts[0].content == PYTHON_40

    def test_idempotent_modulo_ids(self):
        """Re-running extraction yields structurally identical artifacts."""
        text = (
            fenced("python", PYTHON_40)
            + "\n"
            + fenced("mermaid", "graph TD; A-->B; B-->C")
            + "\n"
            + fenced("", "plain notes that are long enough")
        )

        first = extract_artifacts(text)
        second = extract_artifacts(text)

        def shape(artifacts):
            return [(a.type, a.title, a.content, a.metadata) for a in artifacts]

        assert shape(first) == shape(second)
        assert len(first) == 3

    def test_classification_and_titles(self):
        text = "\n".join(
            [
                fenced("typescript", "const x: number = 42;"),
                fenced("mermaid", "graph TD; A-->B"),
                fenced("yaml", "key: value\nother: 2"),
                fenced("markdown", "# A heading with text"),
            ]
        )

        artifacts = extract_artifacts(text)

        assert [a.type for a in artifacts] == [
            ArtifactType.CODE,
            ArtifactType.VISUALIZATION,
            ArtifactType.DATA,
            ArtifactType.DOCUMENT,
        ]
        assert artifacts[0].title == "Typescript Code"
        assert artifacts[1].title == "Mermaid Diagram"
        assert artifacts[2].title == "Yaml Data"
        assert artifacts[3].title == "Markdown Document"

    def test_untagged_block_is_text_document(self):
        artifacts = extract_artifacts(fenced("", "just some prose in a fence"))

        assert len(artifacts) == 1
        assert artifacts[0].type == ArtifactType.DOCUMENT
        assert artifacts[0].language == "text"

    def test_metadata_and_ids(self):
        body = "line one\nline two\nline three"
        artifacts = extract_artifacts(
            fenced("python", body) + fenced("go", "package main\nfunc main() {}"),
            stage_sequence=4,
        )

        assert artifacts[0].metadata == {"language": "python", "line_count": 3}
        assert artifacts[0].line_count == 3
        assert all(a.stage_sequence == 4 for a in artifacts)
        assert re.fullmatch(r"artifact-\d+-0", artifacts[0].id)
        assert re.fullmatch(r"artifact-\d+-1", artifacts[1].id)

    def test_content_is_trimmed_before_length_check(self):
        """Whitespace padding does not count toward the minimum length."""
        assert extract_artifacts(fenced("python", "   x = 1   \n\n")) == []

    def test_custom_min_length(self):
        assert len(extract_artifacts(fenced("json", JSON_5), min_length=5)) == 1
        assert extract_artifacts(fenced("python", PYTHON_40), min_length=41) == []

    def test_empty_and_fenceless_text(self):
        assert extract_artifacts("") == []
        assert extract_artifacts("No code here at all.") == []

    def test_artifacts_are_frozen(self):
        artifact = extract_artifacts(fenced("python", PYTHON_40))[0]
        with pytest.raises(Exception):
            artifact.content = "changed"


class TestClassifyLanguage:
    @pytest.mark.parametrize(
        "tag,expected",
        [
            ("python", ArtifactType.CODE),
            ("Rust", ArtifactType.CODE),
            ("dot", ArtifactType.VISUALIZATION),
            ("plantuml", ArtifactType.VISUALIZATION),
            ("csv", ArtifactType.DATA),
            ("xml", ArtifactType.DATA),
            ("bash", ArtifactType.DOCUMENT),
            ("text", ArtifactType.DOCUMENT),
        ],
    )
    def test_tag_mapping(self, tag, expected):
        assert classify_language(tag) == expected
