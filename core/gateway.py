"""
Resilient call gateway for the text-generation service.

Every prompt goes through three gates:

    SlidingWindowRateLimiter   account-level quota, shared by all models
    CircuitBreaker             per model, skip a model known to be failing
    ModelLadder                ordered models, each retried with backoff

Only ``RateLimitExceeded``, ``ServiceUnavailable`` and
``AllModelsUnavailable`` leave ``ResilientGateway.generate``.
"""

import asyncio
import functools
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Tuple

from core.errors import (
    AllModelsUnavailable,
    RateLimitExceeded,
    ServiceUnavailable,
)
from core.metrics import APIMetrics
from core.rate_limit import SlidingWindowRateLimiter
from core.reliability import CircuitBreaker, classify_error, compute_backoff

__all__ = [
    "ModelSpec",
    "ModelLadder",
    "BreakerFactory",
    "CallAttempt",
    "ResilientGateway",
    "make_ladder",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelSpec:
    """A candidate model and its generation parameters."""

    name: str
    max_tokens: int = 4096
    temperature: float = 0.3
    response_mime_type: Optional[str] = None


ModelLadder = Tuple[ModelSpec, ...]


def make_ladder(models: Iterable[Any]) -> ModelLadder:
    """Build an immutable ladder from ``ModelSpec``s or bare model names."""
    ladder = tuple(m if isinstance(m, ModelSpec) else ModelSpec(str(m)) for m in models)
    if not ladder:
        raise ValueError("Model ladder must contain at least one model")
    return ladder


@dataclass(frozen=True)
class CallAttempt:
    """One attempt against one model within a single ``generate`` call."""

    model_index: int
    attempt: int
    delay: float = 0.0


InvokeModel = Callable[[ModelSpec, str], Awaitable[str]]
SleepFunc = Callable[[float], Awaitable[None]]
BreakerFactory = Callable[[str], CircuitBreaker]


class ResilientGateway:
    """
    Calls the text-generation service through limiter, breakers and ladder.

    The limiter is shared by every model: the quota belongs to the account.
    Each model gets its own circuit breaker from ``breaker_factory``, so a
    failing model is isolated without blocking the fallbacks behind it.
    Both are owned by the gateway instance and shared by all concurrent
    ``generate`` calls made through it.
    """

    def __init__(
        self,
        invoke_model: InvokeModel,
        ladder: Iterable[Any],
        rate_limiter: SlidingWindowRateLimiter,
        breaker_factory: BreakerFactory,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 8.0,
        attempt_timeout: Optional[float] = 60.0,
        jitter: float = 0.0,
        sleep: SleepFunc = asyncio.sleep,
        metrics: Optional[APIMetrics] = None,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.invoke_model = invoke_model
        self.ladder = make_ladder(ladder)
        self.rate_limiter = rate_limiter
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.attempt_timeout = attempt_timeout
        self.jitter = jitter
        self._sleep = sleep
        self.metrics = metrics if metrics is not None else APIMetrics()

        self._breaker_factory = breaker_factory
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._breakers_lock = threading.Lock()
        for model in self.ladder:
            self.breaker_for(model.name)

    def breaker_for(self, model_name: str) -> CircuitBreaker:
        """Get or create the circuit breaker guarding ``model_name``."""
        with self._breakers_lock:
            breaker = self._breakers.get(model_name)
            if breaker is None:
                breaker = self._breaker_factory(model_name)
                self._breakers[model_name] = breaker
            return breaker

    async def generate(self, prompt: str, ladder: Optional[Iterable[Any]] = None) -> str:
        """
        Return the first successful completion for ``prompt``.

        A model whose breaker is open is skipped without being called.

        Args:
            prompt: Prompt text sent to each model
            ladder: Optional per-call ladder overriding the gateway default

        Raises:
            RateLimitExceeded: local quota exhausted (no further model is tried)
            ServiceUnavailable: every model's circuit breaker is open
            AllModelsUnavailable: every model failed or was skipped
        """
        models = make_ladder(ladder) if ladder is not None else self.ladder
        started = time.perf_counter()
        attempts = 0
        rejected = 0
        last_error: Optional[BaseException] = None

        try:
            for index, model in enumerate(models):
                if index > 0:
                    self.metrics.record_fallback()
                    logger.warning(
                        f"Falling back to model '{model.name}' ({index + 1}/{len(models)})"
                    )
                breaker = self.breaker_for(model.name)

                for attempt in range(1, self.max_retries + 1):
                    self.rate_limiter.admit()
                    attempts += 1
                    self.metrics.record_attempt()

                    try:
                        text = await breaker.execute(
                            functools.partial(self._invoke, model, prompt)
                        )
                    except ServiceUnavailable as e:
                        last_error = e
                        self.metrics.record_circuit_rejection()
                        if attempt == 1:
                            rejected += 1
                        logger.warning(f"Skipping model '{model.name}': {e}")
                        break
                    except Exception as e:
                        last_error = e
                        verdict = classify_error(e)
                        self.metrics.record_attempt_error(verdict.error_type.value)

                        if not verdict.retryable:
                            logger.warning(
                                f"Model '{model.name}' rejected request "
                                f"({type(e).__name__}: {e}); not retrying"
                            )
                            break
                        if attempt == self.max_retries:
                            logger.warning(
                                f"Model '{model.name}' failed {attempt} attempts: "
                                f"{type(e).__name__}: {e}"
                            )
                            break

                        step = CallAttempt(
                            model_index=index,
                            attempt=attempt,
                            delay=compute_backoff(
                                attempt, self.base_delay, self.max_delay, self.jitter
                            ),
                        )
                        logger.warning(
                            f"Retry {attempt}/{self.max_retries - 1} for '{model.name}': "
                            f"{type(e).__name__}. Waiting {step.delay:.1f}s..."
                        )
                        self.metrics.record_retry()
                        await self._sleep(step.delay)
                        continue

                    elapsed_ms = (time.perf_counter() - started) * 1000
                    self.metrics.record_success(elapsed_ms, model.name)
                    logger.info(
                        f"Model '{model.name}' answered in {elapsed_ms:.0f}ms "
                        f"after {attempts} attempt(s)"
                    )
                    return text
        except RateLimitExceeded as e:
            self.metrics.record_failure(type(e).__name__)
            logger.warning(f"Gateway call rejected: {e}")
            raise

        if rejected == len(models):
            self.metrics.record_failure("ServiceUnavailable")
            logger.warning(f"All {len(models)} model circuits are open")
            raise ServiceUnavailable(
                f"All {len(models)} model circuits are open; retry later"
            )

        self.metrics.record_failure("AllModelsUnavailable")
        logger.error(f"All {len(models)} models failed after {attempts} attempts")
        raise AllModelsUnavailable(attempts, last_error)

    async def _invoke(self, model: ModelSpec, prompt: str) -> str:
        call = self.invoke_model(model, prompt)
        if self.attempt_timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self.attempt_timeout)

    def status(self) -> Dict[str, Any]:
        """Snapshot of breakers, limiter and metrics for observability."""
        with self._breakers_lock:
            breakers = dict(self._breakers)
        return {
            "circuit_breakers": {
                name: breaker.snapshot() for name, breaker in breakers.items()
            },
            "rate_limiter": {
                "max_calls": self.rate_limiter.max_calls,
                "window_seconds": self.rate_limiter.window_seconds,
                "remaining": self.rate_limiter.remaining(),
                "retry_after_seconds": round(self.rate_limiter.retry_after(), 1),
            },
            "ladder": [m.name for m in self.ladder],
            "max_retries": self.max_retries,
            "metrics": self.metrics.summary(),
        }
