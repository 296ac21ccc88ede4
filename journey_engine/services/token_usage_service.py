"""
Token usage aggregation per journey.

Collects provider token counts per journey, organized by model and call
kind (stage/synthesis). Data lives in memory; the controller hands the
aggregate to callers once a journey ends.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

import structlog

from journey_engine.llm.types import TokenUsage

log = structlog.get_logger(__name__)

STAGE_CALL = "stage"
SYNTHESIS_CALL = "synthesis"


@dataclass
class CallKindUsage:
    """Token totals for one call kind within a model."""

    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class ModelUsage:
    """Token usage for one model, split by call kind."""

    call_kinds: Dict[str, CallKindUsage] = field(default_factory=dict)

    def record_usage(self, call_kind: str, usage: TokenUsage) -> None:
        if call_kind not in self.call_kinds:
            self.call_kinds[call_kind] = CallKindUsage()

        totals = self.call_kinds[call_kind]
        totals.calls += 1
        totals.input_tokens += usage.input_tokens
        totals.output_tokens += usage.output_tokens
        totals.reasoning_tokens += usage.reasoning_tokens


class TokenUsageService:
    """
    In-memory aggregation of provider token usage.

    Usage:
        service = TokenUsageService()
        service.record_call(journey_id, model, usage, call_kind="stage")
        aggregated = service.get_journey_usage(journey_id)
    """

    def __init__(self):
        # journey_id -> model_id -> ModelUsage
        self._journey_usage: Dict[str, Dict[str, ModelUsage]] = {}

    def record_call(
        self,
        journey_id: str,
        model: str,
        usage: TokenUsage,
        call_kind: str = STAGE_CALL,
    ) -> None:
        """
        Record one provider call's token usage.

        Args:
            journey_id: Journey identifier
            model: Model id that served the call (after any failover)
            usage: Token counts reported by the provider
            call_kind: "stage" or "synthesis"
        """
        models = self._journey_usage.setdefault(journey_id, {})
        if model not in models:
            models[model] = ModelUsage()
        models[model].record_usage(call_kind, usage)

        log.debug(
            "llm_usage_recorded",
            journey_id=journey_id,
            model=model,
            call_kind=call_kind,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )

    def get_journey_usage(self, journey_id: str) -> Optional[Dict[str, Dict]]:
        """
        Get aggregated usage for a journey.

        Format:
        {
            "model_id": {
                "stage": {"calls": 3, "input_tokens": 123, "output_tokens": 456, ...},
                "synthesis": {...}
            }
        }

        Returns:
            Nested dict of usage data, or None if nothing was recorded
        """
        if journey_id not in self._journey_usage:
            return None

        result = {}
        for model, model_usage in self._journey_usage[journey_id].items():
            result[model] = {
                call_kind: {
                    "calls": totals.calls,
                    "input_tokens": totals.input_tokens,
                    "output_tokens": totals.output_tokens,
                    "reasoning_tokens": totals.reasoning_tokens,
                    "total_tokens": totals.total_tokens,
                }
                for call_kind, totals in model_usage.call_kinds.items()
            }
        return result

    def get_journey_totals(self, journey_id: str) -> TokenUsage:
        """Sum usage across every model and call kind for a journey."""
        total = TokenUsage()
        for model_usage in self._journey_usage.get(journey_id, {}).values():
            for totals in model_usage.call_kinds.values():
                total.input_tokens += totals.input_tokens
                total.output_tokens += totals.output_tokens
                total.reasoning_tokens += totals.reasoning_tokens
        return total

    def clear_journey(self, journey_id: str) -> None:
        if journey_id in self._journey_usage:
            del self._journey_usage[journey_id]
            log.debug("llm_usage_cleared", journey_id=journey_id)
