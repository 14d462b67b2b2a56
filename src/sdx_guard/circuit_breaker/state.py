"""Circuit breaker state primitives and pure transitions.

The transition functions take and return immutable ``CircuitStats`` values so
the breaker rules can be exercised without a registry, a store or a clock.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import StrEnum


class CircuitState(StrEnum):
    """Circuit breaker state values."""

    # Calls are admitted; only outcome bookkeeping happens.
    CLOSED = "closed"
    # Calls are skipped and the fallback runs with no error.
    OPEN = "open"
    # Calls are admitted as recovery probes.
    HALF_OPEN = "half_open"


@dataclass(frozen=True, slots=True)
class CircuitThresholds:
    """Health thresholds resolved once per circuit.

    Attributes:
        request_volume_threshold: Calls required before health is evaluated.
        error_threshold_percentage: Error rate (0-100) that opens the circuit.
        sleep_window: Seconds to stay ``OPEN`` before a probe is allowed.
    """

    request_volume_threshold: int
    error_threshold_percentage: float
    sleep_window: float


@dataclass(frozen=True, slots=True)
class CircuitStats:
    """Counters and state of one circuit.

    Attributes:
        state: Current breaker state.
        total_calls: Calls registered since the last reset.
        error_calls: Failed calls registered since the last reset.
        sleep_window_expiry: UTC instant after which an ``OPEN`` circuit probes.
    """

    state: CircuitState = CircuitState.CLOSED
    total_calls: int = 0
    error_calls: int = 0
    sleep_window_expiry: datetime | None = None


@dataclass(frozen=True, slots=True)
class StatsSnapshot:
    """Persisted view of a circuit, written once per execution.

    Attributes:
        command_key: Key of the circuit the stats belong to.
        stats: Counters and state at commit time.
        version: Opaque token unique to the commit that produced this snapshot.
    """

    command_key: str
    stats: CircuitStats
    version: str


def register_call(stats: CircuitStats) -> CircuitStats:
    return replace(stats, total_calls=stats.total_calls + 1)


def register_success(stats: CircuitStats) -> CircuitStats:
    """Close a probing circuit and reset its counters."""
    if stats.state != CircuitState.HALF_OPEN:
        return stats
    return CircuitStats(state=CircuitState.CLOSED)


def register_failure(
    stats: CircuitStats, thresholds: CircuitThresholds, now: datetime
) -> CircuitStats:
    """Count a failure and open the circuit when it is unhealthy.

    Health is only evaluated once ``total_calls`` reaches the request volume
    threshold. Counters are not reset when probing, so a failed probe is
    judged against the ratio accumulated before the circuit opened.
    """
    error_calls = stats.error_calls + 1
    total_calls = max(stats.total_calls, error_calls)
    updated = replace(stats, total_calls=total_calls, error_calls=error_calls)

    should_check_health = total_calls >= thresholds.request_volume_threshold
    error_percentage = error_calls / total_calls * 100
    if should_check_health and error_percentage >= thresholds.error_threshold_percentage:
        return replace(
            updated,
            state=CircuitState.OPEN,
            sleep_window_expiry=now + timedelta(seconds=thresholds.sleep_window),
        )
    return updated


def is_sleep_window_over(stats: CircuitStats, now: datetime) -> bool:
    expiry = stats.sleep_window_expiry
    return expiry is not None and expiry < now


def expire_sleep_window(stats: CircuitStats, now: datetime) -> CircuitStats:
    """Move an expired ``OPEN`` window to ``HALF_OPEN``."""
    if not is_sleep_window_over(stats, now):
        return stats
    return replace(stats, state=CircuitState.HALF_OPEN, sleep_window_expiry=None)
