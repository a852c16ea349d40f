"""
Performance monitoring and metrics.

Track gateway call outcomes, retries, model fallbacks and latency.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Optional

__all__ = [
    "APIMetrics",
    "get_api_metrics",
    "format_metrics_report",
]

# ══════════════════════════════════════════════════════════════════════════════
# Metrics Classes
# ══════════════════════════════════════════════════════════════════════════════


@dataclass
class APIMetrics:
    """Track gateway call statistics."""

    start_time: float = field(default_factory=time.time)
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    attempts: int = 0
    retry_count: int = 0
    fallback_count: int = 0
    rate_limited: int = 0
    circuit_rejections: int = 0
    total_latency_ms: float = 0.0
    error_types: dict[str, int] = field(default_factory=dict)
    model_successes: dict[str, int] = field(default_factory=dict)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    @property
    def success_rate(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return (self.successful_calls / self.total_calls) * 100

    @property
    def avg_latency_ms(self) -> float:
        if self.successful_calls == 0:
            return 0.0
        return self.total_latency_ms / self.successful_calls

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self.start_time

    def record_attempt(self):
        with self._lock:
            self.attempts += 1

    def record_retry(self):
        with self._lock:
            self.retry_count += 1

    def record_fallback(self):
        with self._lock:
            self.fallback_count += 1

    def record_attempt_error(self, error_type: str):
        with self._lock:
            self.error_types[error_type] = self.error_types.get(error_type, 0) + 1

    def record_success(self, latency_ms: float, model: Optional[str] = None):
        with self._lock:
            self.total_calls += 1
            self.successful_calls += 1
            self.total_latency_ms += latency_ms
            if model:
                self.model_successes[model] = self.model_successes.get(model, 0) + 1

    def record_failure(self, error_type: str):
        with self._lock:
            self.total_calls += 1
            self.failed_calls += 1
            if error_type == "RateLimitExceeded":
                self.rate_limited += 1

    def record_circuit_rejection(self):
        with self._lock:
            self.circuit_rejections += 1

    def summary(self) -> dict[str, Any]:
        return {
            "uptime_seconds": round(self.uptime_seconds, 1),
            "total_calls": self.total_calls,
            "success_rate": round(self.success_rate, 1),
            "attempts": self.attempts,
            "retries": self.retry_count,
            "fallbacks": self.fallback_count,
            "rate_limited": self.rate_limited,
            "circuit_rejections": self.circuit_rejections,
            "avg_latency_ms": round(self.avg_latency_ms, 0),
        }


# ══════════════════════════════════════════════════════════════════════════════
# Global Instances
# ══════════════════════════════════════════════════════════════════════════════

_api_metrics = APIMetrics()


def get_api_metrics() -> APIMetrics:
    return _api_metrics


def format_metrics_report(api: Optional[APIMetrics] = None) -> str:
    """Generate human-readable metrics report."""
    api = api or _api_metrics

    lines = [
        "# Performance Metrics",
        "",
        "## Gateway",
        f"- Uptime: {api.uptime_seconds:.0f}s",
        f"- Total Calls: {api.total_calls}",
        f"- Success Rate: {api.success_rate:.1f}%",
        f"- Failed: {api.failed_calls}",
        f"- Attempts: {api.attempts}",
        f"- Retries: {api.retry_count}",
        f"- Model Fallbacks: {api.fallback_count}",
        f"- Rate Limited: {api.rate_limited}",
        f"- Circuit Rejections: {api.circuit_rejections}",
        f"- Avg Latency: {api.avg_latency_ms:.0f}ms",
    ]

    if api.model_successes:
        lines.append("")
        lines.append("## Models")
        for model, count in sorted(api.model_successes.items(), key=lambda x: -x[1]):
            lines.append(f"- {model}: {count}")

    if api.error_types:
        lines.append("")
        lines.append("## Errors")
        for err, count in sorted(api.error_types.items(), key=lambda x: -x[1]):
            lines.append(f"- {err}: {count}")

    return "\n".join(lines)
