"""
Prompts for periodic synthesis.

Synthesis compresses the latest window of stages and the accumulated
insights into a JSON object with five semantic fields plus a quality score
and a list of key insights. The parser is tolerant of markdown fences and
common JSON slips, defaults every optional field, and only fails when the
summary is missing.
"""

import json
import re
from typing import Any, Dict, List, Sequence

import structlog

from journey_engine.core.exceptions import SynthesisParseError
from journey_engine.domain.models.insight import Insight
from journey_engine.domain.models.stage import Stage

log = structlog.get_logger(__name__)

# Per-stage output excerpt included in the synthesis prompt
STAGE_EXCERPT_CHARS = 2000
OPTIONAL_TEXT_FIELDS = ("connections", "patterns", "contradictions", "forward_look")


def get_synthesis_system_prompt() -> str:
    """Get system prompt for synthesis."""
    return """You are an analyst condensing a multi-stage exploration into a compact synthesis.

Respond with a single JSON object and nothing else:
{
  "summary": "What this window of stages established (required)",
  "connections": "Links between findings across stages",
  "patterns": "Recurring themes or approaches",
  "contradictions": "Tensions, conflicts or unresolved disagreements",
  "forward_look": "Where the exploration should head next",
  "quality_score": 0-10 number rating the depth and rigor of the window,
  "key_insights": ["Short standalone statements worth carrying forward"]
}"""


def get_synthesis_user_prompt(
    question: str,
    stages: Sequence[Stage],
    insights: Sequence[Insight],
) -> str:
    """
    Get user prompt for synthesis.

    Args:
        question: The journey's originating question
        stages: The window of stages to synthesize (oldest first)
        insights: All insights accumulated so far

    Returns:
        User prompt string
    """
    stage_blocks = []
    for stage in stages:
        excerpt = stage.output.strip()
        if len(excerpt) > STAGE_EXCERPT_CHARS:
            excerpt = excerpt[:STAGE_EXCERPT_CHARS].rstrip() + " ..."
        stage_blocks.append(
            f"### Stage {stage.sequence} ({stage.stage_type.value})\n{excerpt}"
        )

    insight_lines = [f"- [{i.category}] {i.text}" for i in insights]
    insights_section = "\n".join(insight_lines) if insight_lines else "(none yet)"

    return f"""## Question:
{question.strip()}

## Stages To Synthesize:
{chr(10).join(stage_blocks)}

## Insights So Far:
{insights_section}

Synthesize these stages as JSON."""


def _strip_markdown_fences(text: str) -> str:
    """Strip markdown code fences around a JSON payload."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def _extract_json_object(text: str) -> str:
    """Cut any prose before the first '{' and after the last '}'."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1:
        return text
    if end < start:
        return text[start:]
    return text[start : end + 1]


def _repair_json(text: str) -> str:
    """Repair the JSON mistakes models make most often.

    1. Missing commas between properties on separate lines
    2. Trailing commas before closing brackets
    3. Truncated output with unclosed brackets/braces
    """
    text = re.sub(r"(\"|\d|true|false|null|\]|\})\s*\n\s*(\")", r"\1,\n\2", text)
    text = re.sub(r",\s*\]", "]", text)
    text = re.sub(r",\s*\}", "}", text)

    open_braces = text.count("{") - text.count("}")
    open_brackets = text.count("[") - text.count("]")
    if open_braces > 0 or open_brackets > 0:
        text = text.rstrip().rstrip(",")
        if text.count('"') % 2 == 1:
            text += '"'
        text += "]" * open_brackets + "}" * open_braces
    return text


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "\n".join(str(v) for v in value)
    return str(value).strip()


def _as_score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 5.0
    return min(10.0, max(0.0, score))


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    return []


def parse_synthesis_response(response_text: str) -> Dict[str, Any]:
    """
    Parse a synthesis response into SynthesisReport fields.

    Args:
        response_text: Raw model output (JSON, possibly fenced or slightly broken)

    Returns:
        Dict with summary, connections, patterns, contradictions,
        forward_look, quality_score and key_insights

    Raises:
        SynthesisParseError: If the text is not a JSON object even after
            repair, or the summary is missing or empty
    """
    text = _extract_json_object(_strip_markdown_fences(response_text))

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        repaired = _repair_json(text)
        try:
            data = json.loads(repaired)
        except json.JSONDecodeError as e:
            raise SynthesisParseError(f"Invalid JSON in synthesis response: {e}") from e
        log.warning(
            "synthesis_json_repaired",
            original_length=len(text),
            repaired_length=len(repaired),
        )

    if not isinstance(data, dict):
        raise SynthesisParseError("Synthesis response must be a JSON object")

    summary = _as_text(data.get("summary"))
    if not summary:
        raise SynthesisParseError("Synthesis response is missing 'summary'")

    fields: Dict[str, Any] = {"summary": summary}
    for name in OPTIONAL_TEXT_FIELDS:
        fields[name] = _as_text(data.get(name))
    fields["quality_score"] = _as_score(data.get("quality_score", 5.0))
    fields["key_insights"] = _as_list(data.get("key_insights"))
    return fields
