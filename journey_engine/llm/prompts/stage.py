"""
Prompts for exploration stages.

Each stage type has its own instruction block; the shared system prompt
sets the explorer persona. The user prompt combines:
- The originating question
- The rolling context (prior stage summaries, insights, latest synthesis)
- The stage-type instruction for this step

Prompts ask for free-form markdown. Fenced code blocks in the answer are
picked up by the artifact extractor afterwards.
"""

from typing import Dict

from journey_engine.domain.models.stage import StageType

STAGE_INSTRUCTIONS: Dict[StageType, str] = {
    StageType.DISCOVERING: (
        "Survey the territory. Identify the key concepts, actors and open "
        "threads around the question. Favour breadth over depth and note "
        "which threads look most promising to chase next."
    ),
    StageType.CHASING: (
        "Pick the most promising thread from the exploration so far and follow "
        "it deeper. Trace causes, mechanisms and consequences; say explicitly "
        "which thread you chose and why it matters."
    ),
    StageType.SOLVING: (
        "Work toward a concrete answer or design. Lay out an approach step by "
        "step and produce working material (code, schemas, diagrams) where "
        "it helps, using fenced code blocks tagged with their language."
    ),
    StageType.CHALLENGING: (
        "Argue against the exploration so far. Find weak assumptions, missing "
        "evidence and failure modes in the current direction, and say which "
        "conclusions survive the critique."
    ),
    StageType.QUESTIONING: (
        "Step back and list the sharpest unanswered questions the exploration "
        "has raised. Rank them by how much answering them would change the "
        "overall picture."
    ),
    StageType.SEARCHING: (
        "Look sideways for analogies, prior art and adjacent fields that bear "
        "on the question. Explain what each one transfers and where the "
        "analogy breaks."
    ),
    StageType.IMAGINING: (
        "Think speculatively. Propose unconventional possibilities, "
        "second-order effects and futures the exploration has not considered, "
        "then pick the one most worth testing."
    ),
    StageType.BUILDING: (
        "Consolidate what has been learned into something usable: a plan, a "
        "framework, a prototype or a structured reference. Produce concrete "
        "artifacts in fenced code blocks tagged with their language."
    ),
}


def get_stage_system_prompt() -> str:
    """
    Get system prompt shared by all stage types.

    Returns:
        System prompt string
    """
    return """You are a rigorous, curious explorer working through a question over many stages.

Each stage has a specific role in the exploration. Build on earlier stages rather than repeating them.

## Output Guidelines:
1. Write in markdown with short headed sections
2. Be specific: name mechanisms, numbers, examples and sources of uncertainty
3. Put code, diagrams (mermaid, graphviz) and data (json, yaml, csv) in fenced blocks tagged with their language
4. End with one line starting "Next:" that names the most valuable direction to explore"""


def get_stage_user_prompt(
    question: str,
    stage_type: StageType,
    sequence: int,
    context: str = "",
) -> str:
    """
    Get user prompt for one exploration stage.

    Args:
        question: The journey's originating question
        stage_type: Type of this stage (selects the instruction block)
        sequence: 1-based stage number
        context: Rendered rolling context (empty for the first stage)

    Returns:
        User prompt string
    """
    instruction = STAGE_INSTRUCTIONS[stage_type]
    stage_name = stage_type.value.title()

    context_section = ""
    if context.strip():
        context_section = f"""
## Exploration So Far:
{context.strip()}
"""

    return f"""## Question:
{question.strip()}
{context_section}
## Stage {sequence}: {stage_name}
{instruction}"""
