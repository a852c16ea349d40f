"""
Data models for the Research Assistant MCP.

Provides Pydantic models for tool input validation and
gateway configuration.
"""

from models.config import GatewaySettings, QuizLevel, TaskType, load_settings
from models.research import (
    DocumentInput,
    IncorrectQuestion,
    PodcastInput,
    QuizInput,
    RecommendationInput,
    ResearchInput,
    SourceDocument,
)

__all__ = [
    # Configuration
    "GatewaySettings",
    "QuizLevel",
    "TaskType",
    "load_settings",
    # Tool inputs
    "DocumentInput",
    "IncorrectQuestion",
    "PodcastInput",
    "QuizInput",
    "RecommendationInput",
    "ResearchInput",
    "SourceDocument",
]
