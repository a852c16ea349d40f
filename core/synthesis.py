"""
Research features built on the resilient gateway.

Each feature builds a prompt, sends it through ``ResilientGateway.generate``
and shapes the model's answer for the client:

    synthesize_research       summary, key points, sources, follow-ups
    generate_quiz             multiple-choice quiz at a difficulty level
    generate_recommendations  study advice after a failed quiz
    explain_topic             podcast narration script
    analyze_document          summary and key points of uploaded text

Gateway errors are not caught here; the server maps them to responses.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from core.errors import SynthesisError
from core.gateway import ResilientGateway
from core.llm_clients import parse_json_text
from models.config import QuizLevel
from models.research import IncorrectQuestion, SourceDocument
from utils.helpers import split_sentences, truncate, unique_by_link

__all__ = [
    "NO_SOURCES_SUMMARY",
    "build_research_prompt",
    "synthesize_research",
    "build_quiz_prompt",
    "generate_quiz",
    "build_recommendation_prompt",
    "generate_recommendations",
    "explain_topic",
    "build_document_prompt",
    "analyze_document",
]

logger = logging.getLogger(__name__)

NO_SOURCES_SUMMARY = (
    "I couldn't find any relevant sources online to answer your question. "
    "Please try a different query."
)
MAX_SOURCES = 5
MAX_DOCUMENT_CHARS = 15000
QUIZ_QUESTIONS = 5
QUIZ_OPTIONS = 4

# ══════════════════════════════════════════════════════════════════════════════
# Research Synthesis
# ══════════════════════════════════════════════════════════════════════════════


def _source_text(source: SourceDocument) -> str:
    return source.text_content or source.snippet or ""


def build_research_prompt(query: str, sources: Sequence[SourceDocument]) -> str:
    """Prompt asking for a JSON synthesis grounded only in ``sources``."""
    combined = "".join(
        f"--- Source {i}: {s.title} ---\n{_source_text(s)}\n\n"
        for i, s in enumerate(sources, start=1)
    )
    return f"""You are an expert research analyst. Your task is to synthesize information to answer the user's query based ONLY on the provided web sources.

USER'S QUERY: "{query}"

Analyze the following sources and generate a response in a single, valid JSON object format. The JSON object MUST have this exact structure:

{{
    "summary": "A comprehensive summary that directly answers the user's query. Make it informative and well-structured.",
    "key_points": ["An array of 4-6 crucial bullet points that highlight the most important information"],
    "sources_used": [1, 2, 3],
    "follow_up_questions": ["An array of 3 insightful follow-up questions related to the topic"]
}}

IMPORTANT RULES:
- You MUST include all keys in the JSON response
- If you cannot generate content for a key, return an empty array [] for arrays or empty string "" for strings
- Your entire response must be ONLY the JSON object - no additional text
- Base your answer ONLY on the provided sources
- Make the summary comprehensive but concise
- Ensure key_points are actionable and informative
- sources_used should reference the source numbers (1-based indexing)

--- SOURCES ---
{combined}--- END SOURCES ---"""


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


def _map_sources_used(
    sources_used: Any, sources: Sequence[SourceDocument]
) -> List[Dict[str, str]]:
    """Resolve 1-based source numbers, skipping invalid and repeated ones."""
    if not isinstance(sources_used, list):
        return []

    mapped: List[Dict[str, str]] = []
    seen = set()
    for num in sources_used:
        if isinstance(num, bool) or not isinstance(num, (int, float, str)):
            continue
        try:
            index = int(num)
        except ValueError:
            continue
        if not 1 <= index <= len(sources) or index in seen:
            continue
        seen.add(index)
        source = sources[index - 1]
        mapped.append({"title": source.title, "link": source.link})
    return mapped


def _search_result_dicts(results: Iterable[SourceDocument]) -> List[Dict[str, Any]]:
    return unique_by_link(
        {"title": r.title, "link": r.link, "snippet": r.snippet or ""} for r in results
    )


async def synthesize_research(
    gateway: ResilientGateway,
    query: str,
    sources: Sequence[SourceDocument],
    search_results: Optional[Sequence[SourceDocument]] = None,
    ladder=None,
) -> Dict[str, Any]:
    """
    Answer ``query`` from already-extracted sources.

    Returns:
        Dict with summary, key_points, sources, follow_up_questions and
        all_search_results.

    Raises:
        SynthesisError: no source had readable text, or the model's JSON
            was invalid
    """
    all_results = _search_result_dicts(search_results or sources)

    if not sources:
        logger.info(f"No sources for query: {query!r}")
        return {
            "summary": NO_SOURCES_SUMMARY,
            "key_points": [],
            "sources": [],
            "follow_up_questions": [],
            "all_search_results": all_results,
        }

    readable = [s for s in sources if _source_text(s).strip()][:MAX_SOURCES]
    if not readable:
        raise SynthesisError(
            "I found sources, but was unable to read their content. This can "
            "happen with complex websites or network issues."
        )

    logger.info(f"Synthesizing {len(readable)} sources for query: {query!r}")
    text = await gateway.generate(build_research_prompt(query, readable), ladder=ladder)

    try:
        parsed = parse_json_text(text)
    except ValueError as e:
        logger.error(f"AI returned invalid JSON. Raw response: {text[:500]}...")
        raise SynthesisError(
            "The AI analyst returned an invalidly formatted response. "
            "This may be a temporary issue."
        ) from e
    if not isinstance(parsed, dict):
        raise SynthesisError("The AI analyst returned an unexpected response shape.")

    return {
        "summary": str(parsed.get("summary") or "The AI did not provide a summary."),
        "key_points": _string_list(parsed.get("key_points")),
        "sources": _map_sources_used(parsed.get("sources_used"), readable),
        "follow_up_questions": _string_list(parsed.get("follow_up_questions")),
        "all_search_results": all_results,
    }


# ══════════════════════════════════════════════════════════════════════════════
# Quiz & Recommendations
# ══════════════════════════════════════════════════════════════════════════════


def build_quiz_prompt(text: str, level: QuizLevel) -> str:
    return f"""Based on the following text, create a {QUIZ_QUESTIONS}-question multiple-choice quiz. The difficulty of the questions should be '{level.value}'.
For a 'Basic' level, ask direct, factual questions.
For 'Intermediate', ask questions that require some inference.
For 'Hard', ask questions that require synthesizing information or deeper analysis.
The provided text is: "{text}".
Return ONLY a valid JSON object with a key "quiz" which is an array of objects. Each object must have these exact keys: "question" (string), "options" (array of {QUIZ_OPTIONS} strings), "correctAnswerIndex" (number), and "explanation" (string)."""


def _valid_question(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    options = item.get("options")
    index = item.get("correctAnswerIndex")
    return (
        isinstance(item.get("question"), str)
        and bool(item["question"].strip())
        and isinstance(options, list)
        and len(options) == QUIZ_OPTIONS
        and all(isinstance(o, str) for o in options)
        and isinstance(index, int)
        and not isinstance(index, bool)
        and 0 <= index < QUIZ_OPTIONS
    )


async def generate_quiz(
    gateway: ResilientGateway, text: str, level: QuizLevel, ladder=None
) -> Dict[str, Any]:
    """Generate a quiz; malformed questions are dropped."""
    raw = await gateway.generate(build_quiz_prompt(text, level), ladder=ladder)
    try:
        parsed = parse_json_text(raw)
    except ValueError as e:
        raise SynthesisError("The quiz response was not valid JSON.") from e

    items = parsed.get("quiz") if isinstance(parsed, dict) else None
    if not isinstance(items, list):
        raise SynthesisError("The quiz response has no 'quiz' array.")

    quiz = []
    for item in items:
        if not _valid_question(item):
            logger.warning(f"Dropping malformed quiz question: {str(item)[:200]}")
            continue
        quiz.append(
            {
                "question": item["question"].strip(),
                "options": item["options"],
                "correctAnswerIndex": item["correctAnswerIndex"],
                "explanation": str(item.get("explanation", "")),
            }
        )

    if not quiz:
        raise SynthesisError("The quiz response contained no usable questions.")
    logger.info(f"Generated {level.value} quiz with {len(quiz)} questions")
    return {"quiz": quiz}


def build_recommendation_prompt(
    text: str, level: QuizLevel, incorrect_questions: Sequence[IncorrectQuestion]
) -> str:
    missed = "\n".join(f"{i}. {q.question}" for i, q in enumerate(incorrect_questions, 1))
    return f"""You are a friendly and encouraging tutor. A student has just taken a {level.value}-level quiz based on a specific text and did not pass.

The source text is: \"\"\"{text}\"\"\"

The student struggled with these specific questions:
\"\"\"{missed}\"\"\"

Your task is to provide helpful feedback. Return ONLY a valid JSON object with the following three keys:
1. "message": A short, encouraging message (2-3 sentences) acknowledging their effort and motivating them to review.
2. "conceptsToReview": An array of 3-4 key concepts or topics from the source text that they should focus on, based on the questions they got wrong.
3. "suggestedCourses": An array of 3 generic, real-world search terms for online courses or YouTube playlists that would help them understand the broader subject.

Example JSON structure:
{{
  "message": "You're on the right track!...",
  "conceptsToReview": ["The definition of a hash function", "Collision handling methods"],
  "suggestedCourses": ["Data Structures 101", "Beginner's Guide to Algorithms", "Computer Science Fundamentals"]
}}"""


async def generate_recommendations(
    gateway: ResilientGateway,
    text: str,
    level: QuizLevel,
    incorrect_questions: Sequence[IncorrectQuestion],
    ladder=None,
) -> Dict[str, Any]:
    prompt = build_recommendation_prompt(text, level, incorrect_questions)
    raw = await gateway.generate(prompt, ladder=ladder)
    try:
        parsed = parse_json_text(raw)
    except ValueError as e:
        raise SynthesisError("The recommendation response was not valid JSON.") from e
    if not isinstance(parsed, dict):
        raise SynthesisError("The recommendation response has an unexpected shape.")

    return {
        "message": str(parsed.get("message", "")).strip(),
        "conceptsToReview": _string_list(parsed.get("conceptsToReview")),
        "suggestedCourses": _string_list(parsed.get("suggestedCourses")),
    }


# ══════════════════════════════════════════════════════════════════════════════
# Podcast & Documents
# ══════════════════════════════════════════════════════════════════════════════


async def explain_topic(
    gateway: ResilientGateway, topic: str, ladder=None
) -> Dict[str, Any]:
    """
    Narration script for a spoken explanation of ``topic``.

    ``segments`` splits the script into sentences for a speech service that
    synthesizes short chunks.
    """
    prompt = (
        f'You\'re an expert podcast narrator. Explain the topic "{topic}" in a way '
        "that is engaging, easy to understand, and ideal for listening. Do not just "
        "summarize; explain with examples, analogies, and a friendly tone."
    )
    script = (await gateway.generate(prompt, ladder=ladder)).strip()
    if not script:
        raise SynthesisError("Failed to get an explanation from the AI model.")
    return {"topic": topic, "script": script, "segments": split_sentences(script)}


def build_document_prompt(text: str) -> str:
    return f"""Analyze the following document and provide a concise summary and a list of key takeaways.

Document Content:
---
{truncate(text, MAX_DOCUMENT_CHARS)}
---

Format your response strictly as a JSON object with two keys: "summary" and "key_points" (which must be an array of strings).
Do not include any other text or markdown formatting outside of the JSON object."""


async def analyze_document(
    gateway: ResilientGateway, text: str, ladder=None
) -> Dict[str, Any]:
    """Summarize document text; non-JSON answers become a raw-text summary."""
    raw = await gateway.generate(build_document_prompt(text), ladder=ladder)

    try:
        parsed = parse_json_text(raw)
        if not isinstance(parsed, dict):
            raise ValueError("expected a JSON object")
        analysis = {
            "summary": str(parsed.get("summary", "")),
            "key_points": _string_list(parsed.get("key_points")),
        }
    except ValueError as e:
        logger.error(f"Failed to parse document analysis JSON: {e}")
        analysis = {
            "summary": (
                "The AI returned a response, but it was not in the expected JSON "
                "format. Here is the raw response: " + raw
            ),
            "key_points": [],
        }

    return {
        **analysis,
        "sources": [],
        "all_search_results": [],
        "follow_up_questions": [],
    }
