"""
Core utilities for the Research Assistant MCP.

Every call to the text-generation service passes through the resilient
gateway:

    Rate Limiter       Sliding-window quota shared by all models
    Circuit Breaker    Fail fast while the service is known to be down
    Fallback Ladder    Ordered models, each retried with exponential backoff
    Metrics            Attempt, retry and fallback accounting

Research features live in ``core.synthesis`` and gateway assembly in
``core.orchestrator``.
"""

from core.errors import (
    AllModelsUnavailable,
    GatewayError,
    ProviderError,
    RateLimitExceeded,
    ServiceUnavailable,
    SynthesisError,
)
from core.gateway import (
    CallAttempt,
    ModelLadder,
    ModelSpec,
    ResilientGateway,
    make_ladder,
)
from core.metrics import (
    APIMetrics,
    format_metrics_report,
    get_api_metrics,
)
from core.rate_limit import SlidingWindowRateLimiter
from core.reliability import (
    CircuitBreaker,
    CircuitState,
    ErrorClassification,
    ErrorType,
    classify_error,
    compute_backoff,
)

__all__ = [
    # Errors
    "GatewayError",
    "RateLimitExceeded",
    "ServiceUnavailable",
    "AllModelsUnavailable",
    "ProviderError",
    "SynthesisError",
    # Reliability
    "CircuitBreaker",
    "CircuitState",
    "ErrorClassification",
    "ErrorType",
    "classify_error",
    "compute_backoff",
    "SlidingWindowRateLimiter",
    # Gateway
    "CallAttempt",
    "ModelLadder",
    "ModelSpec",
    "ResilientGateway",
    "make_ladder",
    # Metrics
    "APIMetrics",
    "get_api_metrics",
    "format_metrics_report",
]
