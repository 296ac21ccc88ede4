"""
Custom exception hierarchy for the journey engine.

All application exceptions inherit from JourneyEngineError.
"""

from typing import Optional


class JourneyEngineError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(JourneyEngineError):
    """Invalid or missing configuration."""

    pass


# =============================================================================
# Provider Errors
# =============================================================================


class ProviderError(JourneyEngineError):
    """Base for provider call errors.

    Carries the provider id and an HTTP-like status code when one exists.
    `transient` tells the retry wrapper whether another attempt may succeed.
    """

    transient: bool = False

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        status_code: Optional[int] = None,
    ):
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class ProviderTimeoutError(ProviderError):
    """Provider call timed out."""

    transient = True


class ProviderConnectionError(ProviderError):
    """Connection reset, refused or dropped mid-response."""

    transient = True


class ProviderHTTPError(ProviderError):
    """Provider answered with a non-2xx status."""

    TRANSIENT_STATUS_CODES = frozenset({429, 502, 503})

    def __init__(self, message: str, provider: str = "unknown", status_code: int = 0):
        super().__init__(message, provider=provider, status_code=status_code)
        self.transient = status_code in self.TRANSIENT_STATUS_CODES


class MalformedResponseError(ProviderError):
    """Provider response body could not be parsed. Never retried."""

    pass


class ProviderExhaustedError(ProviderError):
    """All retries and the one-shot failover attempt failed.

    The message and status code are those of the primary provider's error;
    the fallback's error (if a fallback was tried) is kept alongside.
    """

    def __init__(
        self,
        original_error: ProviderError,
        fallback_error: Optional[ProviderError] = None,
        attempts: int = 0,
    ):
        self.original_error = original_error
        self.fallback_error = fallback_error
        self.attempts = attempts
        super().__init__(
            original_error.message,
            provider=original_error.provider,
            status_code=original_error.status_code,
        )


# =============================================================================
# Journey Errors
# =============================================================================


class JourneyError(JourneyEngineError):
    """Journey-related error."""

    pass


class JourneyNotFoundError(JourneyError):
    """Journey does not exist."""

    pass


class InvalidTransitionError(JourneyError):
    """Attempted a journey status transition that is not allowed."""

    pass


class StageFinalizedError(JourneyError):
    """Attempted to mutate a stage that is already complete or failed."""

    pass


class StageFailedError(JourneyError):
    """A stage ended in failure; reported to observers via on_error."""

    def __init__(self, message: str, sequence: int):
        self.sequence = sequence
        super().__init__(message)


# =============================================================================
# Synthesis Errors
# =============================================================================


class SynthesisError(JourneyEngineError):
    """Synthesis generation failed."""

    pass


class SynthesisParseError(SynthesisError):
    """Synthesis response was missing required fields or was not JSON."""

    pass
