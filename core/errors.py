"""
Error taxonomy for the resilient call gateway.

Only ``RateLimitExceeded``, ``ServiceUnavailable`` and ``AllModelsUnavailable``
ever cross the gateway boundary. ``ProviderError`` is raised by the provider
client and is absorbed by the retry/fallback logic.
"""

from typing import Optional

__all__ = [
    "GatewayError",
    "RateLimitExceeded",
    "ServiceUnavailable",
    "AllModelsUnavailable",
    "ProviderError",
    "SynthesisError",
]


class GatewayError(Exception):
    """Base class for failures surfaced by the gateway."""


class RateLimitExceeded(GatewayError):
    """Local call quota exhausted; the caller should retry later."""

    def __init__(self, retry_after_seconds: float, message: Optional[str] = None):
        self.retry_after_seconds = max(retry_after_seconds, 0.0)
        super().__init__(
            message or f"Rate limit exceeded, retry after {self.retry_after_seconds:.1f}s"
        )


class ServiceUnavailable(GatewayError):
    """Circuit breaker is open; no downstream call was made."""

    def __init__(self, message: str = "Service temporarily unavailable (circuit open)"):
        super().__init__(message)


class AllModelsUnavailable(GatewayError):
    """Every model in the ladder failed every attempt."""

    def __init__(self, attempts: int = 0, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {type(last_error).__name__}: {last_error}" if last_error else ""
        super().__init__(f"All models unavailable after {attempts} attempts{detail}")


class ProviderError(Exception):
    """Raised by the text-generation provider client."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SynthesisError(Exception):
    """The model answered, but not in a shape the feature can use."""
