"""Model ladder selection and gateway assembly."""

import logging
from dataclasses import replace
from typing import Dict, Optional

from core.gateway import ModelLadder, ModelSpec, ResilientGateway, make_ladder
from core.llm_clients import make_gemini_invoker
from core.metrics import get_api_metrics
from core.rate_limit import SlidingWindowRateLimiter
from core.reliability import CircuitBreaker
from models.config import GatewaySettings, TaskType, load_settings

logger = logging.getLogger(__name__)

PRO_MODEL = "gemini-1.5-pro-latest"
FLASH_MODEL = "gemini-1.5-flash-latest"
JSON_MIME_TYPE = "application/json"

# Default ladders per task; JSON tasks ask Gemini for JSON output
TASK_LADDERS: Dict[TaskType, ModelLadder] = {
    TaskType.RESEARCH: (
        ModelSpec(FLASH_MODEL, 4096, 0.3, JSON_MIME_TYPE),
        ModelSpec(PRO_MODEL, 4096, 0.3, JSON_MIME_TYPE),
    ),
    TaskType.QUIZ: (
        ModelSpec(PRO_MODEL, 4096, 0.7, JSON_MIME_TYPE),
        ModelSpec(FLASH_MODEL, 4096, 0.7, JSON_MIME_TYPE),
    ),
    TaskType.RECOMMENDATIONS: (
        ModelSpec(FLASH_MODEL, 2048, 0.7, JSON_MIME_TYPE),
    ),
    TaskType.PODCAST: (
        ModelSpec(FLASH_MODEL, 4096, 0.9),
    ),
    TaskType.DOCUMENT: (
        ModelSpec(FLASH_MODEL, 4096, 0.3, JSON_MIME_TYPE),
    ),
}


class ModelOrchestrator:
    """Pick the model ladder for a task, honouring a configured override."""

    def __init__(self, settings: Optional[GatewaySettings] = None):
        self.settings = settings or load_settings()

    def ladder_for(self, task: TaskType) -> ModelLadder:
        """
        Ladder for ``task``.

        When ``GATEWAY_MODELS`` is set its order replaces the task's models,
        keeping the task's generation parameters and output mode.
        """
        default = TASK_LADDERS[task]
        if not self.settings.models:
            return default

        template = default[0]
        return make_ladder(replace(template, name=name) for name in self.settings.models)


def build_gateway(
    settings: Optional[GatewaySettings] = None,
    invoke_model=None,
) -> ResilientGateway:
    """Wire limiter, per-model breakers, provider invoker and metrics into a gateway."""
    settings = settings or load_settings()

    if invoke_model is None:
        if not settings.api_key:
            raise ValueError(
                "GEMINI_API_KEY is not set. Add it to your environment or .env file."
            )
        invoke_model = make_gemini_invoker(settings.api_key)

    orchestrator = ModelOrchestrator(settings)
    gateway = ResilientGateway(
        invoke_model=invoke_model,
        ladder=orchestrator.ladder_for(TaskType.RESEARCH),
        rate_limiter=SlidingWindowRateLimiter(
            settings.rate_limit_calls, settings.rate_limit_window
        ),
        breaker_factory=lambda name: CircuitBreaker(
            failure_threshold=settings.failure_threshold,
            cooldown_seconds=settings.cooldown_seconds,
            name=name,
        ),
        max_retries=settings.max_retries,
        base_delay=settings.base_delay,
        max_delay=settings.max_delay,
        attempt_timeout=settings.attempt_timeout,
        metrics=get_api_metrics(),
    )
    logger.info(
        f"Gateway ready: {settings.rate_limit_calls} calls/{settings.rate_limit_window:.0f}s, "
        f"per-model breaker threshold {settings.failure_threshold}, "
        f"{settings.max_retries} attempts per model"
    )
    return gateway


_gateway: Optional[ResilientGateway] = None
_orchestrator: Optional[ModelOrchestrator] = None


def get_orchestrator() -> ModelOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ModelOrchestrator()
    return _orchestrator


def get_gateway() -> ResilientGateway:
    """Get or lazily build the server's gateway."""
    global _gateway
    if _gateway is None:
        _gateway = build_gateway(get_orchestrator().settings)
    return _gateway


def set_gateway(gateway: Optional[ResilientGateway]) -> None:
    """Replace the server's gateway (``None`` rebuilds it on next use)."""
    global _gateway
    _gateway = gateway
