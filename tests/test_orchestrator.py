"""Tests for model ladder selection and gateway assembly."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.errors import ProviderError
from core.gateway import ModelSpec
from core.orchestrator import (
    FLASH_MODEL,
    JSON_MIME_TYPE,
    PRO_MODEL,
    TASK_LADDERS,
    ModelOrchestrator,
    build_gateway,
    get_gateway,
    set_gateway,
)
from models import GatewaySettings, TaskType
from tests.fakes import ScriptedModels


class TestModelOrchestrator:
    def test_default_ladders(self):
        orchestrator = ModelOrchestrator(GatewaySettings())
        research = orchestrator.ladder_for(TaskType.RESEARCH)
        quiz = orchestrator.ladder_for(TaskType.QUIZ)

        assert [m.name for m in research] == [FLASH_MODEL, PRO_MODEL]
        assert [m.name for m in quiz] == [PRO_MODEL, FLASH_MODEL]
        assert orchestrator.ladder_for(TaskType.PODCAST)[0].temperature == 0.9

    def test_every_task_has_a_ladder(self):
        orchestrator = ModelOrchestrator(GatewaySettings())
        for task in TaskType:
            assert orchestrator.ladder_for(task) == TASK_LADDERS[task]

    def test_configured_models_override_order(self):
        """The override swaps models but keeps the task's generation parameters."""
        orchestrator = ModelOrchestrator(GatewaySettings(models="m1,m2,m3"))

        ladder = orchestrator.ladder_for(TaskType.RECOMMENDATIONS)

        assert ladder == (
            ModelSpec("m1", 2048, 0.7, JSON_MIME_TYPE),
            ModelSpec("m2", 2048, 0.7, JSON_MIME_TYPE),
            ModelSpec("m3", 2048, 0.7, JSON_MIME_TYPE),
        )


class TestBuildGateway:
    def test_requires_api_key(self):
        with pytest.raises(ValueError, match="GEMINI_API_KEY"):
            build_gateway(GatewaySettings(api_key=None))

    def test_settings_reach_components(self):
        settings = GatewaySettings(
            rate_limit_calls=4,
            rate_limit_window=30,
            failure_threshold=2,
            cooldown_seconds=5,
            max_retries=2,
        )
        gateway = build_gateway(settings, invoke_model=ScriptedModels({}))

        status = gateway.status()
        assert status["rate_limiter"]["max_calls"] == 4
        assert status["rate_limiter"]["window_seconds"] == 30
        assert status["circuit_breakers"][FLASH_MODEL]["failure_threshold"] == 2
        assert status["max_retries"] == 2
        assert status["ladder"] == [FLASH_MODEL, PRO_MODEL]

    @pytest.mark.asyncio
    async def test_built_gateway_generates(self):
        models = ScriptedModels({FLASH_MODEL: lambda p: "answer"})
        gateway = build_gateway(GatewaySettings(), invoke_model=models)
        assert await gateway.generate("prompt") == "answer"

    def test_set_gateway_replaces_server_gateway(self):
        gateway = build_gateway(GatewaySettings(), invoke_model=ScriptedModels({}))
        set_gateway(gateway)
        assert get_gateway() is gateway


class TestDefaultGatewayFallback:
    """The gateway as built from default breaker and retry settings."""

    @pytest.mark.asyncio
    async def test_three_model_ladder_reaches_last_model(self):
        def overloaded(prompt):
            return ProviderError("overloaded", status_code=503)

        models = ScriptedModels({"m1": overloaded, "m2": overloaded, "m3": lambda p: "ok"})
        # Breaker defaults; more quota so three calls fit in one window
        settings = GatewaySettings(
            api_key="k", models=["m1", "m2", "m3"], base_delay=0, rate_limit_calls=50
        )
        gateway = build_gateway(settings, invoke_model=models)

        assert await gateway.generate("prompt") == "ok"
        assert models.calls == ["m1"] * 3 + ["m2"] * 3 + ["m3"]

        # Failing models trip their own circuits; the working model is unaffected
        models.calls.clear()
        assert await gateway.generate("prompt") == "ok"
        assert models.calls == ["m1", "m1", "m2", "m2", "m3"]

        models.calls.clear()
        assert await gateway.generate("prompt") == "ok"
        assert models.calls == ["m3"]

    @pytest.mark.asyncio
    async def test_json_tasks_request_json_output(self):
        mock_response = MagicMock()
        mock_response.json.return_value = {
            "candidates": [{"content": {"parts": [{"text": "{}"}]}}]
        }
        mock_response.raise_for_status = MagicMock()
        orchestrator = ModelOrchestrator(GatewaySettings(api_key="k"))
        gateway = build_gateway(orchestrator.settings)

        with patch("httpx.AsyncClient") as mock_client:
            mock_post = AsyncMock(return_value=mock_response)
            mock_client.return_value.__aenter__.return_value.post = mock_post
            await gateway.generate("p", ladder=orchestrator.ladder_for(TaskType.RESEARCH))
            await gateway.generate("p", ladder=orchestrator.ladder_for(TaskType.PODCAST))

        research_config = mock_post.call_args_list[0][1]["json"]["generationConfig"]
        podcast_config = mock_post.call_args_list[1][1]["json"]["generationConfig"]
        assert research_config == {
            "temperature": 0.3,
            "maxOutputTokens": 4096,
            "responseMimeType": "application/json",
        }
        assert "responseMimeType" not in podcast_config
