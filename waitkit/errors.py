"""
Error classes for waitkit.

Every wait ends in a response or exactly one terminal error:
- WaitFailure: a failure acceptor fired, an unmatched error was returned
  by the operation, or a hook aborted the wait
- AttemptsExhausted: max attempts reached while still retrying
- Cancelled: the caller's token or deadline stopped the wait

ConfigurationError is raised at load time, never at wait time.

Error handling contract:
- Invokers raise errors, the Poller captures them as outcomes
- Only the Waiter converts verdicts back into exceptions
"""

from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from waitkit.schemas import Acceptor, AttemptRecord, Outcome


class WaitkitError(Exception):
    """Base exception for waitkit."""
    pass


class ConfigurationError(WaitkitError):
    """
    Malformed waiter configuration.

    Examples:
    - Unknown matcher or state
    - Path matcher without an argument
    - max_attempts < 1 or negative delay

    Raised while loading definitions. Never retried.
    """
    pass


class WaiterNotFoundError(ConfigurationError):
    """Raised when a waiter name is not present in a registry."""
    pass


class OperationError(WaitkitError):
    """
    Typed error raised by an operation invoker.

    The code is what `error` acceptors compare against.
    """

    def __init__(self, code: str, message: str = "", status_code: Optional[int] = None):
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(f"{code}: {message}" if message else code)


class AbortWait(WaitkitError):
    """Raised from a before_attempt/before_wait hook to stop waiting."""

    def __init__(self, reason: str = "waiter aborted by user"):
        self.reason = reason
        super().__init__(reason)


class WaiterError(WaitkitError):
    """Base for the terminal errors a wait can end with."""

    def __init__(
        self,
        message: str,
        last_outcome: Optional["Outcome"] = None,
        attempts: tuple["AttemptRecord", ...] = (),
    ):
        self.last_outcome = last_outcome
        self.attempts = attempts
        super().__init__(message)

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def last_response(self) -> Any:
        """Value of the last Response outcome, if the last outcome was one."""
        return getattr(self.last_outcome, "value", None)


class WaitFailure(WaiterError):
    """
    Wait ended in the failure state.

    `acceptor` is the rule that fired, or None when the failure came from
    the default-deny path or a user abort.
    """

    def __init__(
        self,
        message: str,
        acceptor: Optional["Acceptor"] = None,
        last_outcome: Optional["Outcome"] = None,
        attempts: tuple["AttemptRecord", ...] = (),
    ):
        self.acceptor = acceptor
        super().__init__(message, last_outcome=last_outcome, attempts=attempts)


class UnexpectedError(WaitFailure):
    """The operation raised an error that no acceptor matched."""
    pass


class AttemptsExhausted(WaiterError):
    """Max attempts reached while the verdict was still retry."""
    pass


class Cancelled(WaiterError):
    """Wait stopped by a cancellation token or deadline."""
    pass
