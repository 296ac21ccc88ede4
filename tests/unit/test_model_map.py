"""Tests for cross-provider model id translation."""

from journey_engine.llm.model_map import (
    MODEL_MAPPING,
    available_models,
    model_family,
    translate_model,
)


class TestTranslateModel:
    def test_azure_to_anthropic(self):
        assert translate_model("claude-3-5-sonnet-20241022", "anthropic") == (
            MODEL_MAPPING["sonnet"]["anthropic"]
        )

    def test_anthropic_to_azure(self):
        assert translate_model("claude-opus-4-20250514", "azure") == (
            "claude-3-opus-20240229"
        )

    def test_family_name_accepted(self):
        assert translate_model("haiku", "azure") == "claude-3-5-haiku-20241022"

    def test_unknown_model_passes_through(self):
        assert translate_model("gpt-4o", "anthropic") == "gpt-4o"

    def test_unknown_provider_passes_through(self):
        assert translate_model("claude-3-5-sonnet-20241022", "other") == (
            "claude-3-5-sonnet-20241022"
        )

    def test_translation_is_bidirectional(self):
        for ids in MODEL_MAPPING.values():
            assert translate_model(translate_model(ids["azure"], "anthropic"), "azure") == (
                ids["azure"]
            )


class TestModelFamily:
    def test_known_and_unknown(self):
        assert model_family("claude-haiku-4-5") == "haiku"
        assert model_family("sonnet") == "sonnet"
        assert model_family("mystery-model") is None


class TestAvailableModels:
    def test_lists_per_provider(self):
        assert "gpt-4o" in available_models("azure")
        assert "claude-sonnet-4-5-20250929" in available_models("anthropic")
        assert available_models("nope") == []

    def test_returns_copy(self):
        available_models("azure").append("junk")
        assert "junk" not in available_models("azure")
