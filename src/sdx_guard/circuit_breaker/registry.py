"""Registry mapping command keys to their circuits."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from sdx_guard.circuit_breaker.circuit import Circuit
from sdx_guard.circuit_breaker.overrides import EnvOverrideResolver, OverrideResolver
from sdx_guard.circuit_breaker.state import CircuitThresholds
from sdx_guard.circuit_breaker.storage import AbstractStatsStorage, InMemoryStatsStorage

if TYPE_CHECKING:
    from sdx_guard.circuit_breaker.command import Command
    from sdx_guard.logging import StructuredLogger
    from sdx_guard.settings import CircuitBreakerSettings


class CircuitRegistry:
    """Owns one ``Circuit`` per command key plus the stats store behind them.

    Circuits are created lazily on first lookup and live as long as the
    registry. Their counters are refreshed from the stats store on every
    subsequent lookup.
    """

    def __init__(
        self,
        *,
        storage: AbstractStatsStorage | None = None,
        overrides: OverrideResolver | None = None,
    ) -> None:
        """Build a registry with optional custom dependencies.

        Args:
            storage: Stats store. Defaults to in-memory storage.
            overrides: Per-key override lookup. Defaults to the process
                environment.
        """
        self.storage = InMemoryStatsStorage() if storage is None else storage
        self.overrides = EnvOverrideResolver() if overrides is None else overrides
        self._circuits: dict[str, Circuit] = {}
        self._lock = threading.Lock()

    def __contains__(self, command_key: object) -> bool:
        return command_key in self._circuits

    def __len__(self) -> int:
        return len(self._circuits)

    def get(self, command_key: str) -> Circuit | None:
        return self._circuits.get(command_key)

    def resolve(
        self,
        command_key: str,
        request_volume_threshold: int,
        error_threshold_percentage: float,
        sleep_window: float,
    ) -> Circuit:
        """Return the circuit for ``command_key``, creating it when missing.

        Thresholds only apply when the circuit is created, and per-key
        overrides take precedence over them. An existing circuit refreshes its
        forced-open flag and reloads its stats from the store.

        Args:
            command_key: Command key identifying the circuit.
            request_volume_threshold: Default minimum call volume.
            error_threshold_percentage: Default error rate cutoff.
            sleep_window: Default seconds to stay open.

        Returns:
            The circuit shared by every command using ``command_key``.
        """
        force_open = self.overrides.force_open(command_key)

        with self._lock:
            circuit = self._circuits.get(command_key)
            if circuit is None:
                circuit = Circuit(
                    command_key,
                    self._resolve_thresholds(
                        command_key,
                        request_volume_threshold,
                        error_threshold_percentage,
                        sleep_window,
                    ),
                    force_open=force_open,
                )
                self._circuits[command_key] = circuit
                return circuit

        circuit.force_open = force_open
        snapshot = self.storage.get(command_key)
        if snapshot is not None:
            circuit.reload(snapshot)
        return circuit

    def commit(self, circuit: Circuit) -> None:
        """Persist the circuit stats. Called exactly once per execution."""
        self.storage.put(circuit.snapshot())

    def command(
        self,
        command_key: str,
        *,
        settings: CircuitBreakerSettings | None = None,
        logger: StructuredLogger | None = None,
    ) -> Command:
        """Build a command bound to this registry."""
        from sdx_guard.circuit_breaker.command import Command

        return Command(command_key, self, settings=settings, logger=logger)

    def _resolve_thresholds(
        self,
        command_key: str,
        request_volume_threshold: int,
        error_threshold_percentage: float,
        sleep_window: float,
    ) -> CircuitThresholds:
        volume = self.overrides.request_volume_threshold(command_key)
        percentage = self.overrides.error_threshold_percentage(command_key)
        window = self.overrides.sleep_window(command_key)
        return CircuitThresholds(
            request_volume_threshold=(
                request_volume_threshold if volume is None else volume
            ),
            error_threshold_percentage=(
                error_threshold_percentage if percentage is None else percentage
            ),
            sleep_window=sleep_window if window is None else window,
        )
