"""
Explicitly constructed provider registry.

A registry is built once from settings and handed to each controller; there
are no module-level client singletons. Adding a provider means adding a
ProviderClient subclass and an entry in PROVIDER_FACTORIES.
"""

from typing import Callable, Dict, List, Optional, Tuple

import httpx
import structlog

from journey_engine.core.config import ExplorationConfig, Settings
from journey_engine.core.exceptions import ConfigurationError
from journey_engine.llm.client import AnthropicClient, AzureInferenceClient, ProviderClient
from journey_engine.llm.retry import ResilientExecutor, RetryPolicy

log = structlog.get_logger(__name__)

# Public inference endpoint used by the single-key setup
DEFAULT_AZURE_ENDPOINT = "https://models.inference.ai.azure.com"
ANTHROPIC_KEY_PREFIX = "sk-ant-"


class ProviderRegistry:
    """Maps provider ids to configured clients."""

    def __init__(self) -> None:
        self._providers: Dict[str, ProviderClient] = {}

    def register(self, client: ProviderClient) -> None:
        self._providers[client.provider_id] = client
        log.debug("provider_registered", provider=client.provider_id)

    def get(self, provider_id: str) -> ProviderClient:
        """
        Look up a configured provider.

        Raises:
            ConfigurationError: If the provider is not registered
        """
        try:
            return self._providers[provider_id]
        except KeyError:
            raise ConfigurationError(
                f"Provider '{provider_id}' is not configured. "
                f"Available: {sorted(self._providers)}"
            ) from None

    def has(self, provider_id: str) -> bool:
        return provider_id in self._providers

    @property
    def providers(self) -> List[str]:
        return sorted(self._providers)

    def executor_for(
        self,
        config: ExplorationConfig,
        policy: Optional[RetryPolicy] = None,
        **kwargs,
    ) -> ResilientExecutor:
        """
        Build the retry/failover executor for a journey's configuration.

        An unconfigured fallback is logged and skipped rather than failing
        the journey; an unconfigured primary raises ConfigurationError.
        """
        primary = self.get(config.provider)
        fallback = None
        if config.fallback_provider:
            if self.has(config.fallback_provider):
                fallback = self.get(config.fallback_provider)
            else:
                log.warning(
                    "fallback_provider_not_configured",
                    provider=config.fallback_provider,
                )
        return ResilientExecutor(primary, fallback=fallback, policy=policy, **kwargs)


def _build_azure(
    settings: Settings, transport: Optional[httpx.AsyncBaseTransport]
) -> Optional[ProviderClient]:
    if not (settings.azure_endpoint and settings.azure_api_key):
        return None
    return AzureInferenceClient(
        endpoint=settings.azure_endpoint,
        api_key=settings.azure_api_key,
        api_version=settings.azure_api_version,
        timeout=settings.request_timeout,
        transport=transport,
    )


def _build_anthropic(
    settings: Settings, transport: Optional[httpx.AsyncBaseTransport]
) -> Optional[ProviderClient]:
    if not settings.anthropic_api_key:
        return None
    return AnthropicClient(
        api_key=settings.anthropic_api_key,
        base_url=settings.anthropic_base_url,
        timeout=settings.request_timeout,
        transport=transport,
    )


ProviderFactory = Callable[
    [Settings, Optional[httpx.AsyncBaseTransport]], Optional[ProviderClient]
]

PROVIDER_FACTORIES: Dict[str, ProviderFactory] = {
    "azure": _build_azure,
    "anthropic": _build_anthropic,
}


def build_provider_registry(
    settings: Settings,
    primary: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProviderRegistry:
    """
    Construct clients for every provider with credentials in settings.

    Args:
        settings: Application settings
        primary: Provider that must be available (defaults to settings.ai_provider)
        transport: Optional httpx transport shared by all clients (tests)

    Returns:
        ProviderRegistry with all configured providers

    Raises:
        ConfigurationError: If the primary provider is unknown or has no
            credentials
    """
    primary = (primary or settings.ai_provider).strip().lower()
    if primary not in PROVIDER_FACTORIES:
        raise ConfigurationError(
            f"Unknown provider: {primary}. Supported: {sorted(PROVIDER_FACTORIES)}"
        )

    registry = ProviderRegistry()
    for provider_id, factory in PROVIDER_FACTORIES.items():
        client = factory(settings, transport)
        if client is not None:
            registry.register(client)

    if not registry.has(primary):
        raise ConfigurationError(
            f"Primary provider '{primary}' has no credentials configured"
        )

    log.info(
        "provider_registry_built",
        primary=primary,
        providers=registry.providers,
    )
    return registry


def detect_provider_from_key(api_key: str) -> Tuple[str, Dict[str, str]]:
    """
    Infer provider settings from a single legacy API key.

    Keys starting with "sk-ant-" are Anthropic keys; anything else is
    treated as an Azure key for the public inference endpoint.

    Returns:
        Tuple of (provider_id, settings overrides)
    """
    if api_key.startswith(ANTHROPIC_KEY_PREFIX):
        return "anthropic", {"ai_provider": "anthropic", "anthropic_api_key": api_key}
    return "azure", {
        "ai_provider": "azure",
        "azure_endpoint": DEFAULT_AZURE_ENDPOINT,
        "azure_api_key": api_key,
    }
