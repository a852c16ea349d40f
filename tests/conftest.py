"""Pytest configuration, lightweight asyncio support and gateway fixtures.

Coroutine tests run on a fresh event loop through ``pytest_pyfunc_call`` so
the suite does not need ``pytest-asyncio``. Time never really passes in these
tests: limiters and breakers read a ``FakeClock`` and the gateway sleeps
through a ``RecordingSleep`` that advances it.
"""

from __future__ import annotations

import asyncio
import inspect

import pytest

from core.gateway import ResilientGateway
from core.metrics import APIMetrics
from core.orchestrator import set_gateway
from core.rate_limit import SlidingWindowRateLimiter
from core.reliability import CircuitBreaker
from tests.fakes import FakeClock, RecordingSleep
from utils.rate_limit import reset_rate_limits


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: run the coroutine test on an event loop")


def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute coroutine test functions on an event loop.

    When a collected test function is a coroutine, run it to completion on a
    dedicated event loop. Returning ``True`` tells pytest the call was handled,
    preventing the default (which would error on an un-awaited coroutine).
    """

    test_obj = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_obj):
        return None

    bound_args = {
        name: value
        for name, value in pyfuncitem.funcargs.items()
        if name in inspect.signature(test_obj).parameters
    }

    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        loop.run_until_complete(test_obj(**bound_args))
    finally:
        loop.close()
        asyncio.set_event_loop(None)

    return True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def make_gateway(clock: FakeClock, sleep: RecordingSleep):
    """Factory for a gateway wired to the fake clock and sleep."""

    def factory(
        invoke_model,
        ladder=("model-a",),
        max_calls: int = 100,
        window_seconds: float = 60.0,
        failure_threshold: int = 100,
        cooldown_seconds: float = 30.0,
        **kwargs,
    ) -> ResilientGateway:
        kwargs.setdefault("base_delay", 1.0)
        kwargs.setdefault("max_delay", 8.0)
        kwargs.setdefault("attempt_timeout", None)
        return ResilientGateway(
            invoke_model=invoke_model,
            ladder=ladder,
            rate_limiter=SlidingWindowRateLimiter(max_calls, window_seconds, clock=clock),
            breaker_factory=lambda name: CircuitBreaker(
                failure_threshold=failure_threshold,
                cooldown_seconds=cooldown_seconds,
                clock=clock,
                name=name,
            ),
            sleep=sleep,
            metrics=APIMetrics(),
            **kwargs,
        )

    return factory


@pytest.fixture(autouse=True)
def isolated_server_state():
    """Reset per-tool limiters and the server gateway between tests."""
    reset_rate_limits()
    set_gateway(None)
    yield
    reset_rate_limits()
    set_gateway(None)
