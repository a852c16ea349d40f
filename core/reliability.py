"""
Reliability utilities: Circuit breaker, backoff and error classification.

The circuit breaker stops calling a failing text-generation service for a
cooldown period. Backoff and classification feed the gateway's retry loop.
"""

import asyncio
import logging
import random
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from core.errors import ProviderError, ServiceUnavailable

__all__ = [
    "CircuitState",
    "CircuitBreaker",
    "ErrorType",
    "ErrorClassification",
    "classify_error",
    "compute_backoff",
]

logger = logging.getLogger(__name__)

# ══════════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════════


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Single trial call in flight


class CircuitBreaker:
    """
    Stops sending requests to a failing dependency for a cooldown period.

    After ``failure_threshold`` consecutive failures the circuit opens and
    every call fails fast with ``ServiceUnavailable`` until the cooldown
    expires. The next call is then admitted as a single half-open trial:
    success closes the circuit, failure re-opens it with a fresh cooldown.

    State transitions happen under a lock; the wrapped operation is awaited
    outside of it.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        name: str = "gemini",
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_until: Optional[float] = None
        self._trial_in_flight = False

    def _effective_state(self) -> CircuitState:
        # Caller holds the lock. An expired cooldown reads as half-open even
        # though the transition itself happens on the next admitted call.
        if (
            self._state == CircuitState.OPEN
            and self._opened_until is not None
            and self._clock() >= self._opened_until
        ):
            return CircuitState.HALF_OPEN
        return self._state

    @property
    def state(self) -> CircuitState:
        """Current state, reporting ``HALF_OPEN`` once the cooldown has expired."""
        with self._lock:
            return self._effective_state()

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    @property
    def opened_until(self) -> Optional[float]:
        with self._lock:
            return self._opened_until if self._state == CircuitState.OPEN else None

    async def execute(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        """Run ``operation`` through the breaker and return its result."""
        is_trial = self._before_call()
        try:
            result = await operation()
        except Exception:
            self._on_failure(is_trial)
            raise
        except BaseException:
            # Cancellation and interpreter exit are not a verdict on the dependency
            self._release_trial(is_trial)
            raise
        self._on_success(is_trial)
        return result

    def _before_call(self) -> bool:
        """Admit or reject a call. Returns True for a half-open trial."""
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return False

            if self._state == CircuitState.OPEN:
                if self._clock() < (self._opened_until or 0.0):
                    raise ServiceUnavailable(
                        f"Circuit '{self.name}' is open; retry later"
                    )
                self._state = CircuitState.HALF_OPEN
                self._opened_until = None
                self._trial_in_flight = False
                logger.info(f"Circuit '{self.name}' half-open, admitting trial call")

            if self._trial_in_flight:
                raise ServiceUnavailable(
                    f"Circuit '{self.name}' is half-open with a trial in flight"
                )
            self._trial_in_flight = True
            return True

    def _on_success(self, is_trial: bool) -> None:
        with self._lock:
            if is_trial:
                self._trial_in_flight = False
                logger.info(f"Circuit '{self.name}' closed after successful trial")
            elif self._state != CircuitState.CLOSED:
                # Only the half-open trial may close an open circuit
                return
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._opened_until = None

    def _on_failure(self, is_trial: bool) -> None:
        with self._lock:
            if is_trial:
                self._trial_in_flight = False
                self._trip()
                return

            if self._state != CircuitState.CLOSED:
                # Late result from a call admitted before the circuit opened
                return

            self._failure_count += 1
            if self._failure_count >= self.failure_threshold:
                self._trip()

    def _release_trial(self, is_trial: bool) -> None:
        if not is_trial:
            return
        with self._lock:
            self._trial_in_flight = False

    def _trip(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_until = self._clock() + self.cooldown_seconds
        self._failure_count = 0
        logger.warning(
            f"Circuit '{self.name}' opened for {self.cooldown_seconds:.0f}s"
        )

    def reset(self) -> None:
        """Force the circuit closed."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._opened_until = None
            self._trial_in_flight = False

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            reopens_in = None
            if self._state == CircuitState.OPEN and self._opened_until is not None:
                reopens_in = round(max(self._opened_until - self._clock(), 0.0), 1)
            return {
                "name": self.name,
                "state": self._effective_state().value,
                "failure_count": self._failure_count,
                "failure_threshold": self.failure_threshold,
                "reopens_in_seconds": reopens_in,
            }


# ══════════════════════════════════════════════════════════════════════════════
# Retry Logic
# ══════════════════════════════════════════════════════════════════════════════


def compute_backoff(
    attempt: int, base_delay: float, max_delay: float, jitter: float = 0.0
) -> float:
    """
    Delay before retrying after ``attempt`` (1-based) failed.

    ``min(base * 2**(attempt-1), max_delay)``: 1s, 2s, 4s, 8s with base 1.
    ``jitter`` adds up to that fraction of the delay on top.
    """
    delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
    if jitter > 0:
        delay += random.uniform(0, jitter * delay)
    return delay


class ErrorType(str, Enum):
    """Classification of provider errors for retry decisions."""

    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    NETWORK = "network"
    INVALID_REQUEST = "invalid_request"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ErrorClassification:
    retryable: bool
    error_type: ErrorType = ErrorType.UNKNOWN


# Client errors that may clear up on their own
_RETRYABLE_STATUS = {408, 409, 425, 429}


def classify_error(exc: BaseException) -> ErrorClassification:
    """
    Decide whether another attempt against the same model is worthwhile.

    4xx responses (other than 408/409/425/429) are not retried: the same
    request would fail the same way. Server errors, timeouts and network
    errors are retried. Anything unrecognised is treated as transient.
    """
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return ErrorClassification(True, ErrorType.TIMEOUT)

    status: Optional[int] = None
    if isinstance(exc, ProviderError):
        status = exc.status_code
    elif isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code

    if status is not None:
        if status == 429:
            return ErrorClassification(True, ErrorType.RATE_LIMIT)
        if status >= 500:
            return ErrorClassification(True, ErrorType.SERVER_ERROR)
        if 400 <= status < 500:
            return ErrorClassification(
                status in _RETRYABLE_STATUS, ErrorType.INVALID_REQUEST
            )

    if isinstance(exc, httpx.TransportError):
        return ErrorClassification(True, ErrorType.NETWORK)

    return ErrorClassification(True, ErrorType.UNKNOWN)
