"""Circuit breaker command.

A command wraps potentially risky functionality, like a remote service call,
with fault and latency tolerance using a circuit breaker. It is configured
through fluent setters and run with ``await command.execute(*args)``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sdx_guard.circuit_breaker.circuit import Circuit
from sdx_guard.circuit_breaker.deadline import maybe_await, run_with_deadline
from sdx_guard.circuit_breaker.exceptions import (
    CircuitOpenError,
    CommandConfigurationError,
    CommandTimeoutError,
    DeadlineExceeded,
)
from sdx_guard.circuit_breaker.state import CircuitState
from sdx_guard.logging import StructuredLogger, get_logger, log_info, log_warning
from sdx_guard.settings import CircuitBreakerSettings

if TYPE_CHECKING:
    from sdx_guard.circuit_breaker.registry import CircuitRegistry

T = TypeVar("T")

TAG = "circuit-breaker"
LOGGER_NAME = "sdx_guard.circuit_breaker"

Action = Callable[..., T | Awaitable[T]]
Fallback = Callable[..., T | Awaitable[T]]
ErrorFilter = Callable[..., bool]
ErrorHandler = Callable[[Exception], Exception | None]


@dataclass(frozen=True, slots=True)
class CommandConfig(Generic[T]):
    """Immutable configuration captured at the start of every execution.

    Attributes:
        key: Command key naming the circuit. Required and non-empty.
        trace_id: Correlation id attached to fallback log entries.
        timeout: Action deadline in seconds. ``None`` disables it.
        request_volume_threshold: Calls required before health is checked.
        error_threshold_percentage: Error rate (0-100) that opens the circuit.
        sleep_window: Seconds to stay open before probing.
        fallback: Called with ``(error, *args, **kwargs)`` when the action is
            skipped or fails.
        error_filter: Called with ``(error, *args, **kwargs)``; ``True`` hands
            the error straight to the caller without breaker accounting.
        error_handler: Called with the error; a returned error replaces it,
            ``None`` keeps the error unchanged.
        action: The protected callable.
        logging_enabled: Log a warning when the fallback path handles an error
            and an info event when an execution changes the circuit state.
    """

    key: str
    trace_id: str | None = None
    timeout: float | None = 1.0
    request_volume_threshold: int = 20
    error_threshold_percentage: float = 50
    sleep_window: float = 5.0
    fallback: Fallback[T] | None = None
    error_filter: ErrorFilter | None = None
    error_handler: ErrorHandler | None = None
    action: Action[T] | None = None
    logging_enabled: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.key, str) or not self.key.strip():
            raise CommandConfigurationError("command key is required")
        if self.timeout is not None and self.timeout <= 0:
            raise CommandConfigurationError("timeout must be > 0")
        if self.request_volume_threshold < 0:
            raise CommandConfigurationError("request_volume_threshold must be >= 0")
        if not 0 <= self.error_threshold_percentage <= 100:
            raise CommandConfigurationError(
                "error_threshold_percentage must be between 0 and 100"
            )
        if self.sleep_window < 0:
            raise CommandConfigurationError("sleep_window must be >= 0")


class Command(Generic[T]):
    """Fluent builder and executor for one protected call site."""

    def __init__(
        self,
        key: str,
        registry: CircuitRegistry,
        *,
        settings: CircuitBreakerSettings | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        """Create a command using process defaults for unset values.

        Args:
            key: Command key. Commands sharing a key share one circuit.
            registry: Registry owning the circuit for ``key``.
            settings: Default thresholds and timeout. Defaults to
                ``CircuitBreakerSettings()``.
            logger: Logger for fallback warnings. Defaults to a structlog
                logger.

        Raises:
            CommandConfigurationError: If ``key`` is missing or blank.
        """
        if not key:
            raise CommandConfigurationError("command key is required")

        settings = CircuitBreakerSettings() if settings is None else settings
        timeout_override = registry.overrides.timeout(key)

        self._registry = registry
        self._logger = get_logger(LOGGER_NAME) if logger is None else logger
        self._config: CommandConfig[T] = CommandConfig(
            key=key,
            timeout=settings.timeout if timeout_override is None else timeout_override,
            request_volume_threshold=settings.request_volume_threshold,
            error_threshold_percentage=settings.error_threshold_percentage,
            sleep_window=settings.sleep_window,
        )

    def __repr__(self) -> str:
        return f"Command({self._config.key!r})"

    @property
    def key(self) -> str:
        return self._config.key

    @property
    def config(self) -> CommandConfig[T]:
        return self._config

    def _update(self, **changes: Any) -> Command[T]:
        self._config = replace(self._config, **changes)
        return self

    def with_trace_id(self, trace_id: str | None) -> Command[T]:
        """Set the trace id logged alongside fallback warnings."""
        return self._update(trace_id=trace_id)

    def timeout(self, timeout: float | None) -> Command[T]:
        """Set the action deadline in seconds; a per-key override wins."""
        override = self._registry.overrides.timeout(self._config.key)
        return self._update(timeout=timeout if override is None else override)

    def error_threshold_percentage(self, threshold: float) -> Command[T]:
        return self._update(error_threshold_percentage=threshold)

    def sleep_window(self, seconds: float) -> Command[T]:
        """Set how long the circuit stays open before probing the action."""
        return self._update(sleep_window=seconds)

    def request_volume_threshold(self, volume: int) -> Command[T]:
        """Set how many calls run before the circuit health is checked."""
        return self._update(request_volume_threshold=volume)

    def fallback_to(self, fallback: Fallback[T] | None) -> Command[T]:
        return self._update(fallback=fallback)

    def action(self, action: Action[T]) -> Command[T]:
        return self._update(action=action)

    def filter_when(self, error_filter: ErrorFilter | None) -> Command[T]:
        """Set a predicate selecting errors that skip breaker accounting.

        Filtered errors reach the caller directly; the fallback is not called.
        """
        return self._update(error_filter=error_filter)

    def error_handler(self, handler: ErrorHandler | None) -> Command[T]:
        """Set a function mapping action errors to the error used downstream.

        The handler receives the action error, with deadline expiry already
        mapped to ``CommandTimeoutError``. A returned exception replaces the
        error entirely for the filter, the fallback and the caller. Returning
        ``None`` keeps the error it was given.
        """
        return self._update(error_handler=handler)

    def enable_log(self) -> Command[T]:
        return self._update(logging_enabled=True)

    async def execute(self, *args: Any, **kwargs: Any) -> T:
        """Run the action under circuit breaker protection.

        Args:
            *args: Positional arguments forwarded to the action, fallback and
                error filter.
            **kwargs: Keyword arguments forwarded the same way.

        Returns:
            The action result, or the fallback result when the action is
            skipped or fails.

        Raises:
            CommandConfigurationError: When no action is configured.
            CircuitOpenError: When the call is rejected without a fallback.
            CommandTimeoutError: When the action times out without a fallback.
            Exception: A filtered error, an error with no fallback configured,
                or whatever the fallback raises.
        """
        config = self._config
        if config.action is None:
            raise CommandConfigurationError(f"command {config.key!r} has no action")

        circuit = self._registry.resolve(
            config.key,
            config.request_volume_threshold,
            config.error_threshold_percentage,
            config.sleep_window,
        )
        circuit.record_call()

        if not circuit.admits():
            self._registry.commit(circuit)
            return await self._resume_with_fallback(config, None, args, kwargs)

        previous_state = circuit.state
        try:
            result = await run_with_deadline(
                config.action, args, kwargs, timeout=config.timeout
            )
        except Exception as error:
            try:
                exception = self._classify(config, error)
                filtered = config.error_filter is not None and bool(
                    config.error_filter(exception, *args, **kwargs)
                )
            except BaseException:
                self._registry.commit(circuit)
                raise

            if filtered:
                self._registry.commit(circuit)
                raise exception

            circuit.record_failure()
            self._registry.commit(circuit)
            self._log_transition(config, circuit, previous_state)
            return await self._resume_with_fallback(config, exception, args, kwargs)
        except BaseException:
            self._registry.commit(circuit)
            raise

        circuit.record_success()
        self._registry.commit(circuit)
        self._log_transition(config, circuit, previous_state)
        return result

    @staticmethod
    def _classify(config: CommandConfig[T], error: Exception) -> Exception:
        exception: Exception = error
        if isinstance(error, DeadlineExceeded):
            exception = CommandTimeoutError(config.key, error.timeout)
            exception.__cause__ = error

        if config.error_handler is not None:
            handled = config.error_handler(exception)
            if handled is not None:
                exception = handled
        return exception

    async def _resume_with_fallback(
        self,
        config: CommandConfig[T],
        error: Exception | None,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
    ) -> T:
        if config.logging_enabled and error is not None:
            log_warning(
                self._logger,
                "circuit_breaker.fallback",
                tags=[TAG, config.key],
                trace_id=config.trace_id,
                error=error,
            )

        if config.fallback is not None:
            return await maybe_await(config.fallback(error, *args, **kwargs))

        if error is not None:
            raise error
        raise CircuitOpenError(config.key)

    def _log_transition(
        self,
        config: CommandConfig[T],
        circuit: Circuit,
        previous_state: CircuitState,
    ) -> None:
        if not config.logging_enabled or circuit.state == previous_state:
            return
        log_info(
            self._logger,
            "circuit_breaker.state_changed",
            tags=[TAG, config.key],
            trace_id=config.trace_id,
            old_state=str(previous_state),
            new_state=str(circuit.state),
        )
