"""Framework-agnostic async circuit breaker commands.

A ``Command`` wraps a risky call. Once the call's recent error rate crosses a
threshold, the command stops invoking it, and after a sleep window it lets a
probe through to test for recovery.

Key behavior notes:
  - Circuits are owned by an explicit ``CircuitRegistry``; commands sharing a
    key on one registry share one circuit.
  - Every execution commits the circuit stats exactly once, including
    executions rejected at the admission check.
  - Counters are not reset when a circuit starts probing. A failed probe is
    judged against the accumulated error ratio and usually reopens the
    circuit straight away.
  - A timed-out action is abandoned, not cancelled. Its eventual outcome is
    discarded.
"""

from sdx_guard.circuit_breaker.circuit import Circuit
from sdx_guard.circuit_breaker.command import Command, CommandConfig
from sdx_guard.circuit_breaker.exceptions import (
    CircuitBreakerError,
    CircuitOpenError,
    CommandConfigurationError,
    CommandTimeoutError,
    DeadlineExceeded,
)
from sdx_guard.circuit_breaker.overrides import EnvOverrideResolver, OverrideResolver
from sdx_guard.circuit_breaker.registry import CircuitRegistry
from sdx_guard.circuit_breaker.state import (
    CircuitState,
    CircuitStats,
    CircuitThresholds,
    StatsSnapshot,
)
from sdx_guard.circuit_breaker.storage import (
    AbstractStatsStorage,
    InMemoryStatsStorage,
)

__all__ = [
    "AbstractStatsStorage",
    "Circuit",
    "CircuitBreakerError",
    "CircuitOpenError",
    "CircuitRegistry",
    "CircuitState",
    "CircuitStats",
    "CircuitThresholds",
    "Command",
    "CommandConfig",
    "CommandConfigurationError",
    "CommandTimeoutError",
    "DeadlineExceeded",
    "EnvOverrideResolver",
    "InMemoryStatsStorage",
    "OverrideResolver",
    "StatsSnapshot",
]
