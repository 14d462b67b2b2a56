"""Per-key overrides for circuit and command settings.

Overrides always win over values supplied programmatically. The default
resolver reads a flat key-value namespace shaped like
``app_circuit_<key>_<setting>``, for example
``app_circuit_payments_force_open=true``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Annotated, Protocol, TypeVar

from pydantic import Field, TypeAdapter, ValidationError

from sdx_guard.circuit_breaker.exceptions import CommandConfigurationError

T = TypeVar("T")

DEFAULT_PREFIX = "app_circuit_"

_BOOL = TypeAdapter(bool)
_VOLUME = TypeAdapter(Annotated[int, Field(ge=0)])
_PERCENTAGE = TypeAdapter(Annotated[float, Field(ge=0, le=100)])
_NON_NEGATIVE_MS = TypeAdapter(Annotated[float, Field(ge=0)])
_POSITIVE_MS = TypeAdapter(Annotated[float, Field(gt=0)])


class OverrideResolver(Protocol):
    """Lookup service for per-key overrides.

    ``None`` means "no override, use the caller-supplied value". Durations are
    returned in seconds.
    """

    def force_open(self, command_key: str) -> bool:
        """Return whether the circuit for ``command_key`` is forced open."""

    def error_threshold_percentage(self, command_key: str) -> float | None:
        """Return the error percentage override, if any."""

    def request_volume_threshold(self, command_key: str) -> int | None:
        """Return the request volume override, if any."""

    def sleep_window(self, command_key: str) -> float | None:
        """Return the sleep window override in seconds, if any."""

    def timeout(self, command_key: str) -> float | None:
        """Return the timeout override in seconds, if any."""


class EnvOverrideResolver:
    """Resolve overrides from environment-style variables.

    The mapping is read on every lookup, so changing a variable affects the
    next ``resolve`` for that key.
    """

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        *,
        prefix: str = DEFAULT_PREFIX,
    ) -> None:
        """Create a resolver over ``environ``.

        Args:
            environ: Variables to read. Defaults to ``os.environ``.
            prefix: Namespace prefix preceding the command key.
        """
        self._environ = os.environ if environ is None else environ
        self._prefix = prefix

    def variable_name(self, command_key: str, setting: str) -> str:
        return f"{self._prefix}{command_key}_{setting}"

    def _lookup(
        self, command_key: str, setting: str, adapter: TypeAdapter[T]
    ) -> T | None:
        name = self.variable_name(command_key, setting)
        raw = self._environ.get(name)
        if raw is None or not raw.strip():
            return None
        try:
            return adapter.validate_python(raw.strip())
        except ValidationError as error:
            raise CommandConfigurationError(
                f"{name} has an invalid value: {raw!r}"
            ) from error

    def force_open(self, command_key: str) -> bool:
        value = self._lookup(command_key, "force_open", _BOOL)
        return bool(value)

    def error_threshold_percentage(self, command_key: str) -> float | None:
        return self._lookup(command_key, "error_percentage_threshold", _PERCENTAGE)

    def request_volume_threshold(self, command_key: str) -> int | None:
        return self._lookup(command_key, "request_volume_threshold", _VOLUME)

    def sleep_window(self, command_key: str) -> float | None:
        value = self._lookup(command_key, "sleep_window_milliseconds", _NON_NEGATIVE_MS)
        return None if value is None else value / 1000

    def timeout(self, command_key: str) -> float | None:
        value = self._lookup(command_key, "timeout", _POSITIVE_MS)
        return None if value is None else value / 1000
