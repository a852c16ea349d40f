"""Helper utilities for Research Assistant MCP."""

import re
from typing import Any, Dict, Iterable, List

# Leading phrases that describe the request rather than the topic
INSTRUCTIONAL_PREFIXES = [
    "explain about",
    "explain",
    "what is",
    "what are",
    "who is",
    "who are",
    "tell me about",
    "give me information on",
    "define",
    "definition of",
]

# Sentence splitter for narration text
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+")


def normalize_query(query: str) -> str:
    """Normalize query whitespace."""
    return " ".join(query.split()).strip()


def sanitize_query(query: str) -> str:
    """
    Turn a conversational question into a search-friendly topic.

    "explain about quantum computing" -> "Quantum computing"
    """
    sanitized = normalize_query(query).lower()
    for prefix in INSTRUCTIONAL_PREFIXES:
        if sanitized.startswith(prefix + " "):
            sanitized = sanitized[len(prefix):].strip()
            break
    return sanitized[:1].upper() + sanitized[1:]


def unique_by_link(items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop later items whose ``link`` repeats an earlier one, keeping order."""
    seen: Dict[str, Dict[str, Any]] = {}
    for item in items:
        link = item.get("link")
        if link and link not in seen:
            seen[link] = item
    return list(seen.values())


def split_sentences(text: str) -> List[str]:
    """Split prose into sentences; text without terminators is one sentence."""
    sentences = [s.strip() for s in _SENTENCE_RE.findall(text) if s.strip()]
    return sentences or ([text.strip()] if text.strip() else [])


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit]
