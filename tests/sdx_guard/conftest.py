from __future__ import annotations

import pytest

import sdx_guard.circuit_breaker.circuit as circuit_mod
from sdx_guard.circuit_breaker import CircuitRegistry, EnvOverrideResolver
from sdx_guard.settings import CircuitBreakerSettings
from tests.sdx_guard.support.fakes import FakeClock, FakeLogger, RecordingStatsStorage


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Provide a fresh structured logger test double per test."""
    return FakeLogger()


@pytest.fixture
def fake_clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Drive circuit time from a manually advanced clock."""
    clock = FakeClock()
    monkeypatch.setattr(circuit_mod, "_utcnow", clock.now)
    return clock


@pytest.fixture
def environ() -> dict[str, str]:
    """Mutable override namespace read by the registry under test."""
    return {}


@pytest.fixture
def storage() -> RecordingStatsStorage:
    return RecordingStatsStorage()


@pytest.fixture
def registry(environ: dict[str, str], storage: RecordingStatsStorage) -> CircuitRegistry:
    """Provide an isolated registry per test."""
    return CircuitRegistry(storage=storage, overrides=EnvOverrideResolver(environ))


@pytest.fixture
def settings() -> CircuitBreakerSettings:
    return CircuitBreakerSettings(
        timeout_milliseconds=1000,
        request_volume_threshold=20,
        error_threshold_percentage=50,
        sleep_window_milliseconds=5000,
    )
