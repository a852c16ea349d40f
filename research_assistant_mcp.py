#!/usr/bin/env python3
"""
Research Assistant MCP Server

An MCP server that turns extracted web sources and documents into research
answers, quizzes, study recommendations and podcast scripts using Google
Gemini. Every model call goes through a resilient gateway.

Features:
- Research synthesis with summary, key points, cited sources and follow-ups
- Quiz generation (Basic / Intermediate / Hard) and post-quiz recommendations
- Podcast narration scripts split into speakable segments
- Document analysis of already-extracted text
- Sliding-window rate limiting, per-model circuit breakers and model fallback ladder
"""

import json
import logging
import os
import sys
from typing import Any, Awaitable, Callable, Dict

from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP

from core.errors import (
    AllModelsUnavailable,
    RateLimitExceeded,
    ServiceUnavailable,
    SynthesisError,
)
from core.metrics import format_metrics_report
from core.orchestrator import get_gateway, get_orchestrator
from core.synthesis import (
    analyze_document as run_document_analysis,
    explain_topic as run_topic_explanation,
    generate_quiz as run_quiz_generation,
    generate_recommendations as run_recommendations,
    synthesize_research,
)
from models import (
    DocumentInput,
    PodcastInput,
    QuizInput,
    RecommendationInput,
    ResearchInput,
    TaskType,
)
from utils import check_rate_limit, get_rate_limiter, sanitize_query

# Load environment variables from .env file
load_dotenv()

# Set up logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "WARNING").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize MCP server
mcp = FastMCP("research_assistant_mcp")

# ============================================================================
# Error Handling
# ============================================================================


def error_payload(exc: Exception) -> Dict[str, Any]:
    """Map gateway and feature errors to a client-facing payload."""
    if isinstance(exc, RateLimitExceeded):
        return {
            "error": "Too many requests to the AI service. Please wait and try again.",
            "code": "rate_limited",
            "retry_after_seconds": round(exc.retry_after_seconds, 1),
        }
    if isinstance(exc, ServiceUnavailable):
        return {
            "error": "The AI service is temporarily degraded. Please try again shortly.",
            "code": "service_unavailable",
        }
    if isinstance(exc, AllModelsUnavailable):
        return {
            "error": (
                "All AI models failed to respond. Please check your Google Cloud "
                "project billing or quota."
            ),
            "code": "all_models_unavailable",
        }
    if isinstance(exc, SynthesisError):
        return {"error": str(exc), "code": "invalid_model_response"}
    if isinstance(exc, ValueError):
        return {"error": str(exc), "code": "invalid_request"}
    return {"error": "An unexpected internal error occurred.", "code": "internal_error"}


async def run_tool(tool_name: str, work: Callable[[], Awaitable[Dict[str, Any]]]) -> str:
    """Apply the per-tool rate limit, run ``work`` and serialize the result."""
    if not check_rate_limit(tool_name):
        retry_after = get_rate_limiter(tool_name).retry_after()
        return json.dumps(error_payload(RateLimitExceeded(retry_after)), indent=2)

    try:
        result = await work()
    except (RateLimitExceeded, ServiceUnavailable, AllModelsUnavailable) as e:
        logger.warning(f"[{tool_name}] gateway error: {e}")
        return json.dumps(error_payload(e), indent=2)
    except (SynthesisError, ValueError) as e:
        logger.error(f"[{tool_name}] {type(e).__name__}: {e}")
        return json.dumps(error_payload(e), indent=2)
    except Exception as e:
        logger.exception(f"[{tool_name}] unexpected error: {e}")
        return json.dumps(error_payload(e), indent=2)

    return json.dumps(result, indent=2, ensure_ascii=False)


# ============================================================================
# Research Tools
# ============================================================================


@mcp.tool(
    name="research_synthesis",
    annotations={
        "title": "Synthesize Research From Sources",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True,
    },
)
async def research_synthesis(params: ResearchInput) -> str:
    """
    Answer a research question from already-extracted web sources.

    Args:
        params: The query, extracted sources (title, link, text_content) and
            optionally every search result to echo back

    Returns:
        str: JSON with summary, key_points, sources, follow_up_questions and
        all_search_results, or an error payload
    """

    async def work() -> Dict[str, Any]:
        logger.info(f"Research query: {params.query!r} (topic: {sanitize_query(params.query)!r})")
        return await synthesize_research(
            get_gateway(),
            params.query,
            params.sources,
            search_results=params.search_results or None,
            ladder=get_orchestrator().ladder_for(TaskType.RESEARCH),
        )

    return await run_tool("research_synthesis", work)


@mcp.tool(
    name="generate_quiz",
    annotations={
        "title": "Generate Multiple-Choice Quiz",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True,
    },
)
async def generate_quiz(params: QuizInput) -> str:
    """
    Create a 5-question multiple-choice quiz from text.

    Args:
        params: Source text and difficulty level ('Basic', 'Intermediate', 'Hard')

    Returns:
        str: JSON ``{"quiz": [{question, options, correctAnswerIndex, explanation}]}``
    """

    async def work() -> Dict[str, Any]:
        return await run_quiz_generation(
            get_gateway(),
            params.text,
            params.level,
            ladder=get_orchestrator().ladder_for(TaskType.QUIZ),
        )

    return await run_tool("generate_quiz", work)


@mcp.tool(
    name="generate_recommendations",
    annotations={
        "title": "Recommend Study Topics After a Quiz",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True,
    },
)
async def generate_recommendations(params: RecommendationInput) -> str:
    """
    Suggest concepts to review and courses after a failed quiz.

    Returns:
        str: JSON with message, conceptsToReview and suggestedCourses
    """

    async def work() -> Dict[str, Any]:
        return await run_recommendations(
            get_gateway(),
            params.text,
            params.level,
            params.incorrect_questions,
            ladder=get_orchestrator().ladder_for(TaskType.RECOMMENDATIONS),
        )

    return await run_tool("generate_recommendations", work)


@mcp.tool(
    name="explain_topic",
    annotations={
        "title": "Write a Podcast Explanation",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True,
    },
)
async def explain_topic(params: PodcastInput) -> str:
    """
    Write an engaging spoken explanation of a topic.

    The script is also returned as sentence segments, ready for a
    text-to-speech service.
    """

    async def work() -> Dict[str, Any]:
        return await run_topic_explanation(
            get_gateway(),
            params.topic,
            ladder=get_orchestrator().ladder_for(TaskType.PODCAST),
        )

    return await run_tool("explain_topic", work)


@mcp.tool(
    name="analyze_document",
    annotations={
        "title": "Analyze Document Text",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True,
    },
)
async def analyze_document(params: DocumentInput) -> str:
    """
    Summarize a document and list its key takeaways.

    Only the first 15000 characters are analyzed.
    """

    async def work() -> Dict[str, Any]:
        if params.filename:
            logger.info(f"Analyzing {params.filename} ({len(params.text)} characters)")
        return await run_document_analysis(
            get_gateway(),
            params.text,
            ladder=get_orchestrator().ladder_for(TaskType.DOCUMENT),
        )

    return await run_tool("analyze_document", work)


# ============================================================================
# Observability Tools
# ============================================================================


@mcp.tool(
    name="get_gateway_status",
    annotations={
        "title": "Get AI Gateway Status",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False,
    },
)
async def get_gateway_status() -> str:
    """
    Report per-model circuit breaker state, rate limiter headroom and call metrics.

    Returns:
        str: JSON status snapshot
    """
    try:
        return json.dumps(get_gateway().status(), indent=2)
    except ValueError as e:
        return json.dumps(error_payload(e), indent=2)


@mcp.tool(
    name="get_performance_metrics",
    annotations={
        "title": "Get Gateway Performance Metrics",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False,
    },
)
async def get_performance_metrics() -> str:
    """
    Get a human-readable report of gateway calls, retries and fallbacks.

    Returns:
        str: Markdown metrics report
    """
    return format_metrics_report()


def validate_environment():
    """Validate environment configuration on startup."""
    print("\nValidating environment...", file=sys.stderr)

    settings = get_orchestrator().settings
    if not settings.api_key:
        print("Warning: GEMINI_API_KEY is not set; AI tools will return errors", file=sys.stderr)
    else:
        print("Gemini API key configured", file=sys.stderr)

    ladder = get_orchestrator().ladder_for(TaskType.RESEARCH)
    print(f"Research models: {', '.join(m.name for m in ladder)}", file=sys.stderr)
    print(
        f"Gateway: {settings.rate_limit_calls} calls/{settings.rate_limit_window:.0f}s, "
        f"per-model breaker after {settings.failure_threshold} failures "
        f"({settings.cooldown_seconds:.0f}s cooldown)",
        file=sys.stderr,
    )

    print("Ready\n", file=sys.stderr)


# ============================================================================
# Main Entry Point
# ============================================================================


def main():
    # Validate environment
    validate_environment()

    # Run the MCP server
    mcp.run()


if __name__ == "__main__":
    main()
