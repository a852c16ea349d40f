"""
LLM API client functions.

Google Gemini ``generateContent`` over httpx, plus helpers for decoding the
JSON answers the research prompts ask for.
"""

import json
from typing import Any, Dict, Optional, Sequence, Union

import httpx

from core.errors import ProviderError
from core.gateway import InvokeModel, ModelSpec

DEFAULT_TIMEOUT = 60.0
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


def clean_json_text(raw_text: str) -> str:
    """Remove common markdown fences and whitespace from model output."""

    cleaned = raw_text
    for fence in ("```json\n", "```json", "```"):
        cleaned = cleaned.replace(fence, "")
    return cleaned.strip()


def parse_json_text(raw_text: str, provider: str = "gemini") -> Any:
    """Convert provider text content into a JSON payload with clear errors."""

    cleaned = clean_json_text(raw_text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        message = f"Provider {provider} returned invalid JSON: {exc.msg}"
        raise ValueError(message) from exc


def _extract_text_field(
    data: Dict[str, Any], path: Sequence[Union[str, int]], provider: str
) -> str:
    """Safely walk a nested provider response and return a text field."""

    current: Any = data
    for key in path:
        try:
            current = current[key]
        except (KeyError, IndexError, TypeError) as exc:
            message = f"Unexpected {provider} response structure; missing {key!r}"
            raise ProviderError(message) from exc

    if not isinstance(current, str):
        message = (
            f"Expected {provider} response text at {list(path)} "
            f"but received {type(current).__name__}"
        )
        raise ProviderError(message)

    return current


async def _post_json(url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Execute a JSON POST request and return the decoded body."""

    async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
        response = await client.post(url, json=payload)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ProviderError(
                f"Gemini HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        return response.json()


def _build_payload(
    prompt: str,
    max_tokens: int,
    temperature: float,
    response_mime_type: Optional[str] = None,
) -> Dict[str, Any]:
    generation_config: Dict[str, Any] = {
        "temperature": temperature,
        "maxOutputTokens": max_tokens,
    }
    if response_mime_type:
        generation_config["responseMimeType"] = response_mime_type
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": generation_config,
    }


async def call_gemini(
    api_key: str,
    model: str,
    prompt: str,
    max_tokens: int = 4096,
    temperature: float = 0.3,
    response_mime_type: Optional[str] = None,
) -> str:
    """Call Google Gemini API and return the generated text."""
    url = f"{GEMINI_BASE_URL}/{model}:generateContent?key={api_key}"
    payload = _build_payload(prompt, max_tokens, temperature, response_mime_type)

    data = await _post_json(url, payload)
    return _extract_text_field(
        data, ("candidates", 0, "content", "parts", 0, "text"), "gemini"
    )


def make_gemini_invoker(api_key: str) -> InvokeModel:
    """Bind an API key into the ``invoke_model`` callable the gateway expects.

    Generation parameters, including JSON output mode, come from each
    ``ModelSpec`` so every task ladder decides its own.
    """

    async def invoke(spec: ModelSpec, prompt: str) -> str:
        return await call_gemini(
            api_key,
            spec.name,
            prompt,
            max_tokens=spec.max_tokens,
            temperature=spec.temperature,
            response_mime_type=spec.response_mime_type,
        )

    return invoke
