"""Circuit breaker exceptions.

Callers can distinguish between:
  - A command that was configured incorrectly and can never execute.
  - A call being rejected because the circuit is open and no fallback exists.
  - A call that outlived its deadline.
"""


class CircuitBreakerError(Exception):
    """Base exception for the circuit breaker package."""


class CommandConfigurationError(CircuitBreakerError, ValueError):
    """Raised when a command is built or executed with invalid configuration."""


class CircuitOpenError(CircuitBreakerError):
    """Raised when a call is rejected and the command has no fallback.

    Attributes:
        command_key: Key of the command whose circuit rejected the call.
    """

    def __init__(self, command_key: str) -> None:
        self.command_key = command_key
        super().__init__(f"circuit_open: {command_key}")


class DeadlineExceeded(TimeoutError):
    """Raised by the deadline race when the action does not settle in time."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"deadline exceeded after {timeout:g}s")


class CommandTimeoutError(CircuitBreakerError, TimeoutError):
    """Gateway-timeout error handed to error handlers, filters and fallbacks.

    Attributes:
        command_key: Key of the command that timed out.
        timeout: Deadline in seconds that was exceeded.
        status_code: HTTP status equivalent for callers surfacing the error.
    """

    status_code = 504

    def __init__(self, command_key: str, timeout: float) -> None:
        """Initialize a timeout payload.

        Args:
            command_key: Command whose action timed out.
            timeout: Deadline in seconds.
        """
        self.command_key = command_key
        self.timeout = timeout
        super().__init__(f"gateway_timeout: {command_key} timeout={timeout:g}s")
