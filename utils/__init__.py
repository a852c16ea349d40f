"""
Utility functions for rate limiting and text helpers.

All utilities are stateless and lightweight, apart from the per-tool
rate limiter registry.
"""

from utils.helpers import (
    INSTRUCTIONAL_PREFIXES,
    normalize_query,
    sanitize_query,
    split_sentences,
    truncate,
    unique_by_link,
)
from utils.rate_limit import (
    RATE_LIMIT_MAX_CALLS,
    RATE_LIMIT_WINDOW,
    check_rate_limit,
    get_rate_limiter,
    reset_rate_limits,
)

__all__ = [
    # Rate limiting
    "check_rate_limit",
    "get_rate_limiter",
    "reset_rate_limits",
    "RATE_LIMIT_WINDOW",
    "RATE_LIMIT_MAX_CALLS",
    # Helpers
    "INSTRUCTIONAL_PREFIXES",
    "normalize_query",
    "sanitize_query",
    "split_sentences",
    "truncate",
    "unique_by_link",
]
