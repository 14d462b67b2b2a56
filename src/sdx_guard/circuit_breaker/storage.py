"""Stats storage for circuit breakers.

Storage is intentionally decoupled from breaker logic. Custom backends (for
example a shared cache) can implement the interface without touching the
circuit state machine.

Snapshots are written once per execution and read back every time the circuit
for a key is looked up. Lookups and writes are synchronous and must stay cheap.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

from sdx_guard.circuit_breaker.state import StatsSnapshot


class AbstractStatsStorage(ABC):
    """Abstract stats storage interface."""

    @abstractmethod
    def get(self, command_key: str) -> StatsSnapshot | None:
        """Return the last committed snapshot for ``command_key``, if any."""

    @abstractmethod
    def put(self, snapshot: StatsSnapshot) -> None:
        """Store ``snapshot``, overwriting any previous one for its key."""


class InMemoryStatsStorage(AbstractStatsStorage):
    """Process-local storage backed by a dictionary."""

    def __init__(self) -> None:
        self._snapshots: dict[str, StatsSnapshot] = {}
        self._lock = threading.Lock()

    def get(self, command_key: str) -> StatsSnapshot | None:
        with self._lock:
            return self._snapshots.get(command_key)

    def put(self, snapshot: StatsSnapshot) -> None:
        with self._lock:
            self._snapshots[snapshot.command_key] = snapshot

    def clear(self) -> None:
        """Drop every stored snapshot."""
        with self._lock:
            self._snapshots.clear()
