"""
Exception classes for ephemeral runners.
"""


class ConfigError(Exception):
    pass


class AggregateError(Exception):
    """Error that collects the failures of the individual items
    of an operation that was attempted for all of them."""

    def __init__(self, message: str, errors: list = None):
        self.errors = list(errors or [])
        if self.errors:
            message += ": " + "; ".join(
                f"{type(error).__name__} {error}" for error in self.errors
            )
        super().__init__(message)


class WaitRunningError(AggregateError):
    """Exception to indicate that one or more instances
    never reached the running state."""

    pass


class TerminateError(AggregateError):
    """Exception to indicate that one or more instances
    could not be terminated."""

    pass


class RunnerRemovalError(AggregateError):
    """Exception to indicate that one or more self-hosted
    runners could not be removed."""

    pass


class RegistrationTimeoutError(TimeoutError):
    """Exception to indicate that runners did not register
    and come online within the allowed time."""

    pass
