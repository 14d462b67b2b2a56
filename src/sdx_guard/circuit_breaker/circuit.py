"""Per-key circuit state machine."""

from __future__ import annotations

import threading
import uuid
from datetime import UTC, datetime

from sdx_guard.circuit_breaker.state import (
    CircuitState,
    CircuitStats,
    CircuitThresholds,
    StatsSnapshot,
    expire_sleep_window,
    register_call,
    register_failure,
    register_success,
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Circuit:
    """Live breaker state for one command key.

    A circuit is shared by every execution under its key. Each mutation runs
    under a lock, and ``snapshot`` hands out a fresh version token so that
    ``reload`` can tell its own commits apart from another writer's.
    """

    def __init__(
        self,
        command_key: str,
        thresholds: CircuitThresholds,
        *,
        force_open: bool = False,
    ) -> None:
        """Build a closed circuit with zeroed counters.

        Args:
            command_key: Key identifying the circuit.
            thresholds: Health thresholds, fixed for the circuit lifetime.
            force_open: Reject every call regardless of state.
        """
        self.command_key = command_key
        self.thresholds = thresholds
        self.force_open = force_open
        self._stats = CircuitStats()
        self._version: str | None = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        stats = self._stats
        return (
            f"Circuit({self.command_key!r}, state={stats.state.value}, "
            f"total_calls={stats.total_calls}, error_calls={stats.error_calls}, "
            f"force_open={self.force_open})"
        )

    @property
    def stats(self) -> CircuitStats:
        return self._stats

    @property
    def state(self) -> CircuitState:
        return self._stats.state

    @property
    def total_calls(self) -> int:
        return self._stats.total_calls

    @property
    def error_calls(self) -> int:
        return self._stats.error_calls

    @property
    def sleep_window_expiry(self) -> datetime | None:
        return self._stats.sleep_window_expiry

    def admits(self) -> bool:
        """Return whether a call may run the action."""
        return not self.force_open and self._stats.state in (
            CircuitState.CLOSED,
            CircuitState.HALF_OPEN,
        )

    def is_probing(self) -> bool:
        return self._stats.state == CircuitState.HALF_OPEN

    def record_call(self) -> None:
        """Count an execution, including ones the admission check rejects."""
        with self._lock:
            self._stats = register_call(self._stats)

    def record_success(self) -> None:
        """Close the circuit and reset counters if the call was a probe."""
        with self._lock:
            self._stats = register_success(self._stats)

    def record_failure(self) -> None:
        """Count a failure and open the circuit if it is unhealthy."""
        with self._lock:
            self._stats = register_failure(self._stats, self.thresholds, _utcnow())

    def reload(self, snapshot: StatsSnapshot) -> None:
        """Refresh working stats from a stored snapshot.

        A snapshot carrying this circuit's own last version is already
        reflected in memory, and counters recorded since then are kept. Either
        way an expired sleep window moves the circuit to ``HALF_OPEN``.
        """
        with self._lock:
            if snapshot.version != self._version:
                self._stats = snapshot.stats
                self._version = snapshot.version
            self._stats = expire_sleep_window(self._stats, _utcnow())

    def snapshot(self) -> StatsSnapshot:
        """Return the stats to commit, stamped with a new version."""
        with self._lock:
            self._version = uuid.uuid4().hex
            return StatsSnapshot(
                command_key=self.command_key,
                stats=self._stats,
                version=self._version,
            )
