"""Configuration enums and settings for Research Assistant MCP."""

import os
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class QuizLevel(str, Enum):
    """Quiz difficulty levels."""

    BASIC = "Basic"  # Direct, factual questions
    INTERMEDIATE = "Intermediate"  # Some inference required
    HARD = "Hard"  # Synthesis and deeper analysis


class TaskType(str, Enum):
    """Generation tasks, each with its own model ladder."""

    RESEARCH = "research"
    QUIZ = "quiz"
    RECOMMENDATIONS = "recommendations"
    PODCAST = "podcast"
    DOCUMENT = "document"


class GatewaySettings(BaseModel):
    """Resilient gateway settings, usually read from the environment."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    api_key: Optional[str] = Field(default=None, description="Gemini API key")
    models: List[str] = Field(
        default_factory=list,
        description="Model order overriding every task ladder (empty = task defaults)",
    )
    rate_limit_calls: int = Field(default=15, ge=1)
    rate_limit_window: float = Field(default=60.0, gt=0)
    failure_threshold: int = Field(default=5, ge=1)
    cooldown_seconds: float = Field(default=30.0, ge=0)
    max_retries: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=8.0, ge=0)
    attempt_timeout: float = Field(default=60.0, gt=0)

    @field_validator("models", mode="before")
    @classmethod
    def split_models(cls, v):
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            return [m.strip() for m in v.split(",") if m.strip()]
        return v


_ENV_KEYS = {
    "api_key": "GEMINI_API_KEY",
    "models": "GATEWAY_MODELS",
    "rate_limit_calls": "GATEWAY_RATE_LIMIT_CALLS",
    "rate_limit_window": "GATEWAY_RATE_LIMIT_WINDOW",
    "failure_threshold": "GATEWAY_FAILURE_THRESHOLD",
    "cooldown_seconds": "GATEWAY_COOLDOWN_SECONDS",
    "max_retries": "GATEWAY_MAX_RETRIES",
    "base_delay": "GATEWAY_BASE_DELAY",
    "max_delay": "GATEWAY_MAX_DELAY",
    "attempt_timeout": "GATEWAY_ATTEMPT_TIMEOUT",
}


def load_settings() -> GatewaySettings:
    """Build settings from environment variables, falling back to defaults."""
    values = {}
    for field_name, env_key in _ENV_KEYS.items():
        raw = os.getenv(env_key, "").strip()
        if raw:
            values[field_name] = raw
    return GatewaySettings(**values)
