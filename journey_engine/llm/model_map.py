"""
Model identifier mapping between providers.

Each model family has one identifier per provider. Failover translates the
model id through this table; ids with no entry pass through unchanged. New
providers are added by extending the table, not by branching on names.
"""

from typing import Dict, List, Optional

MODEL_MAPPING: Dict[str, Dict[str, str]] = {
    "sonnet": {
        "azure": "claude-3-5-sonnet-20241022",
        "anthropic": "claude-sonnet-4-5-20250929",
    },
    "haiku": {
        "azure": "claude-3-5-haiku-20241022",
        "anthropic": "claude-haiku-4-5",
    },
    "opus": {
        "azure": "claude-3-opus-20240229",
        "anthropic": "claude-opus-4-20250514",
    },
}

# Models offered per provider (azure also fronts OpenAI deployments)
AVAILABLE_MODELS: Dict[str, List[str]] = {
    "azure": [
        "claude-3-5-sonnet-20241022",
        "claude-3-5-haiku-20241022",
        "claude-3-opus-20240229",
        "gpt-4o",
        "gpt-4o-mini",
    ],
    "anthropic": [
        "claude-sonnet-4-5-20250929",
        "claude-opus-4-20250514",
        "claude-haiku-4-5",
    ],
}


def model_family(model_id: str) -> Optional[str]:
    """Return the family name for a provider-specific or family model id."""
    if model_id in MODEL_MAPPING:
        return model_id
    for family, ids in MODEL_MAPPING.items():
        if model_id in ids.values():
            return family
    return None


def translate_model(model_id: str, target_provider: str) -> str:
    """
    Translate a model id to the target provider's equivalent.

    Accepts either a provider-specific id or a family name ("sonnet").
    Unknown ids, and families without an entry for the target provider,
    are returned unchanged.
    """
    family = model_family(model_id)
    if family is None:
        return model_id
    return MODEL_MAPPING[family].get(target_provider, model_id)


def available_models(provider_id: str) -> List[str]:
    """List the models offered by a provider (empty for unknown providers)."""
    return list(AVAILABLE_MODELS.get(provider_id, []))
