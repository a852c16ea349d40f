"""Validation tests for tool inputs and gateway settings."""

import pytest
from pydantic import ValidationError

from models import (
    DocumentInput,
    GatewaySettings,
    PodcastInput,
    QuizInput,
    QuizLevel,
    RecommendationInput,
    ResearchInput,
    SourceDocument,
    load_settings,
)


class TestToolInputs:
    def test_research_input_defaults(self):
        params = ResearchInput(query="  what is rust  ")
        assert params.query == "what is rust"
        assert params.sources == []
        assert params.search_results == []

    def test_research_query_too_short(self):
        with pytest.raises(ValidationError):
            ResearchInput(query="a")

    def test_research_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            ResearchInput(query="valid query", language="python")

    def test_source_requires_link(self):
        with pytest.raises(ValidationError):
            SourceDocument(title="No link")

    def test_source_ignores_extra_fields(self):
        doc = SourceDocument(link="https://a.example", title="A", score=0.9)
        assert doc.text_content == ""
        assert doc.snippet is None

    def test_quiz_level_values(self):
        assert QuizInput(text="t", level="Intermediate").level == QuizLevel.INTERMEDIATE
        with pytest.raises(ValidationError):
            QuizInput(text="t", level="Impossible")

    def test_recommendations_need_incorrect_questions(self):
        with pytest.raises(ValidationError, match="At least one incorrect question"):
            RecommendationInput(text="t", incorrect_questions=[])

        params = RecommendationInput(text="t", incorrect_questions=[{"question": "Q1"}])
        assert params.level == QuizLevel.BASIC
        assert params.incorrect_questions[0].question == "Q1"

    def test_podcast_topic_length(self):
        with pytest.raises(ValidationError):
            PodcastInput(topic="x")
        assert PodcastInput(topic="black holes").topic == "black holes"

    def test_document_without_text(self):
        with pytest.raises(ValidationError, match="Could not extract any text"):
            DocumentInput(text="   \n ")


class TestGatewaySettings:
    """Test suite for environment-driven gateway settings."""

    @pytest.fixture
    def clean_env(self, monkeypatch):
        for key in (
            "GEMINI_API_KEY",
            "GATEWAY_MODELS",
            "GATEWAY_RATE_LIMIT_CALLS",
            "GATEWAY_RATE_LIMIT_WINDOW",
            "GATEWAY_FAILURE_THRESHOLD",
            "GATEWAY_COOLDOWN_SECONDS",
            "GATEWAY_MAX_RETRIES",
            "GATEWAY_BASE_DELAY",
            "GATEWAY_MAX_DELAY",
            "GATEWAY_ATTEMPT_TIMEOUT",
        ):
            monkeypatch.delenv(key, raising=False)

    def test_defaults(self, clean_env):
        settings = load_settings()
        assert settings.api_key is None
        assert settings.models == []
        assert settings.rate_limit_calls == 15
        assert settings.rate_limit_window == 60.0
        assert settings.failure_threshold == 5
        assert settings.cooldown_seconds == 30.0
        assert settings.max_retries == 3

    def test_environment_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "secret")
        monkeypatch.setenv("GATEWAY_MODELS", "gemini-a, gemini-b,,")
        monkeypatch.setenv("GATEWAY_RATE_LIMIT_CALLS", "4")
        monkeypatch.setenv("GATEWAY_COOLDOWN_SECONDS", "2.5")

        settings = load_settings()
        assert settings.api_key == "secret"
        assert settings.models == ["gemini-a", "gemini-b"]
        assert settings.rate_limit_calls == 4
        assert settings.cooldown_seconds == 2.5

    def test_blank_values_use_defaults(self, clean_env, monkeypatch):
        monkeypatch.setenv("GATEWAY_MAX_RETRIES", "   ")
        assert load_settings().max_retries == 3

    def test_invalid_values_rejected(self, clean_env, monkeypatch):
        monkeypatch.setenv("GATEWAY_FAILURE_THRESHOLD", "0")
        with pytest.raises(ValidationError):
            load_settings()

    def test_models_accepts_list(self):
        assert GatewaySettings(models=["x", "y"]).models == ["x", "y"]
