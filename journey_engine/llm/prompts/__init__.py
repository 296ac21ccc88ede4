# noqa
from journey_engine.llm.prompts.stage import (
    STAGE_INSTRUCTIONS,
    get_stage_system_prompt,
    get_stage_user_prompt,
)
from journey_engine.llm.prompts.synthesis import (
    get_synthesis_system_prompt,
    get_synthesis_user_prompt,
    parse_synthesis_response,
)

__all__ = [
    "STAGE_INSTRUCTIONS",
    "get_stage_system_prompt",
    "get_stage_user_prompt",
    "get_synthesis_system_prompt",
    "get_synthesis_user_prompt",
    "parse_synthesis_response",
]
