"""Rate limiting utilities for Research Assistant MCP tools."""

import threading
from typing import Dict

from core.rate_limit import SlidingWindowRateLimiter

# Rate limit configuration
RATE_LIMIT_WINDOW = 60  # seconds
RATE_LIMIT_MAX_CALLS = 10  # max calls per window

# Rate limit tracker (tool_name -> limiter)
_rate_limiters: Dict[str, SlidingWindowRateLimiter] = {}
_registry_lock = threading.Lock()


def get_rate_limiter(tool_name: str) -> SlidingWindowRateLimiter:
    """Get or create the limiter for a tool."""
    with _registry_lock:
        if tool_name not in _rate_limiters:
            _rate_limiters[tool_name] = SlidingWindowRateLimiter(
                RATE_LIMIT_MAX_CALLS, RATE_LIMIT_WINDOW
            )
        return _rate_limiters[tool_name]


def check_rate_limit(tool_name: str) -> bool:
    """
    Check if tool call is within rate limit.
    Returns True if allowed, False if rate limited.
    """
    return get_rate_limiter(tool_name).try_admit()


def reset_rate_limits() -> None:
    """Forget all per-tool limiters."""
    with _registry_lock:
        _rate_limiters.clear()
