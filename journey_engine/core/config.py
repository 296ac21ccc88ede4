"""
Application settings management.

Settings are loaded from environment variables with .env file support.
All configuration is validated using Pydantic.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================

    config_dir: Path = Field(
        default=Path("config"),
        description="Directory containing YAML configuration files",
    )
    database_path: Path = Field(
        default=Path("data/journeys.db"), description="Path to SQLite database file"
    )
    log_dir: Path = Field(default=Path("logs"), description="Directory for log files")
    log_sessions_to_keep: int = Field(
        default=5, ge=1, description="Number of per-run log files to retain"
    )

    # ==========================================================================
    # Provider Configuration
    # ==========================================================================
    #
    # Two backends are supported: a cloud inference gateway (azure) speaking the
    # OpenAI chat-completions dialect, and the direct Anthropic Messages API.
    # Credentials for a provider are only required when that provider is used.

    ai_provider: str = Field(
        default="azure", description="Primary provider id (azure or anthropic)"
    )
    azure_endpoint: Optional[str] = Field(
        default=None, description="Azure AI inference endpoint base URL"
    )
    azure_api_key: Optional[str] = Field(default=None, description="Azure AI API key")
    azure_api_version: str = Field(
        default="2024-05-01-preview", description="Azure AI inference API version"
    )
    anthropic_api_key: Optional[str] = Field(
        default=None, description="Anthropic API key"
    )
    anthropic_base_url: str = Field(
        default="https://api.anthropic.com/v1", description="Anthropic API base URL"
    )
    request_timeout: float = Field(
        default=600.0, gt=0, description="Provider request timeout in seconds"
    )

    debug: bool = Field(default=False, description="Enable debug mode")


# ============================================================================
# Exploration Configuration (from YAML)
# ============================================================================


class ExplorationConfig(BaseModel):
    """
    Options recognized by the exploration engine for a single journey.

    Loaded from config/exploration_config.yaml when present; callers may
    override any field per journey with model_copy(update=...).
    """

    max_depth: Optional[int] = Field(
        default=None, ge=1, description="Stage-count ceiling (null = unbounded)"
    )
    extended_reasoning: bool = Field(
        default=False, description="Request a reasoning trace from the provider"
    )
    reasoning_budget: Optional[int] = Field(
        default=None,
        ge=1024,
        description="Reasoning token budget (null = per-stage default)",
    )
    save_artifacts: bool = Field(
        default=True, description="Attach extracted artifacts to stages"
    )
    enable_synthesis: bool = Field(default=True, description="Run periodic synthesis")
    synthesis_interval: int = Field(
        default=3, ge=1, description="Synthesize after every N stages"
    )
    provider: str = Field(default="azure", description="Primary provider id")
    fallback_provider: Optional[str] = Field(
        default=None, description="Secondary provider id for one-shot failover"
    )
    model: str = Field(
        default="claude-3-5-sonnet-20241022", description="Model id for the primary"
    )
    max_tokens: int = Field(default=8000, ge=1, description="Max completion tokens")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    streaming: bool = Field(default=True, description="Stream stage completions")
    continue_on_failure: bool = Field(
        default=False, description="Keep exploring after a stage fails"
    )
    min_artifact_length: int = Field(
        default=10, ge=0, description="Minimum trimmed length of an artifact block"
    )

    @field_validator("provider", "fallback_provider")
    @classmethod
    def normalize_provider(cls, v: Optional[str]) -> Optional[str]:
        """Provider ids are compared case-insensitively."""
        return v.strip().lower() if v else v

    @model_validator(mode="after")
    def check_fallback_differs(self) -> "ExplorationConfig":
        """A fallback identical to the primary would retry the same provider."""
        if self.fallback_provider and self.fallback_provider == self.provider:
            raise ValueError("fallback_provider must differ from provider")
        return self


def load_exploration_config(config_path: Optional[Path] = None) -> ExplorationConfig:
    """
    Load exploration configuration from YAML file.

    Args:
        config_path: Path to exploration_config.yaml. If None, looks in the
            project config directory and then the working directory.

    Returns:
        ExplorationConfig with validated settings (defaults if no file found)

    Raises:
        pydantic.ValidationError: If config validation fails
    """
    if config_path is None:
        project_root = Path(__file__).resolve().parent.parent.parent
        candidates = [
            project_root / "config" / "exploration_config.yaml",
            Path.cwd() / "config" / "exploration_config.yaml",
        ]
        config_path = next((p for p in candidates if p.exists()), None)
        if config_path is None:
            return ExplorationConfig()

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        return ExplorationConfig()

    with open(str(config_path)) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        return ExplorationConfig()

    return ExplorationConfig(**config_data)


# Global settings instance
settings = Settings()
