"""
Waiter - the attempt loop built on top of the Poller.

The Waiter implements:
- Option resolution (call-site override > waiter options > definition default)
- The attempt ceiling
- Fixed delay between attempts
- before_attempt / before_wait hooks
- Cancellation via token or deadline
- Attempt tracking

Execution flow, per attempt:
1. Check cancellation, call before_attempt(attempt_n)
2. Poll: invoke the operation once, evaluate acceptors
3. SUCCESS -> return the response
4. FAILURE -> raise WaitFailure (UnexpectedError for an unmatched error)
5. RETRY   -> raise AttemptsExhausted on the last attempt, otherwise
              call before_wait(attempt_n, delay), sleep, repeat

A Waiter holds no per-wait state, so one instance can serve concurrent
waits from several threads.
"""

import logging
import threading
import time
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union, TYPE_CHECKING

from waitkit.cancellation import CancellationToken
from waitkit.errors import (
    AbortWait,
    AttemptsExhausted,
    Cancelled,
    ConfigurationError,
    UnexpectedError,
    WaitFailure,
)
from waitkit.invoker import OperationInvoker, as_invoker
from waitkit.poller import Poller, PollResult
from waitkit.schemas import AttemptRecord, Outcome, Verdict, WaiterDef

if TYPE_CHECKING:
    from waitkit.registry import WaiterRegistry

logger = logging.getLogger(__name__)

BeforeAttemptHook = Callable[[int], Any]
BeforeWaitHook = Callable[[int, float], Any]


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class WaitOptions:
    """
    Optional overrides for a wait.

    Any field left as None falls through to the next level:
    call-site options > waiter options > waiter definition.

    Attributes:
        max_attempts: Attempt ceiling (> 0)
        delay: Seconds between attempts (>= 0)
        before_attempt: Called with the attempt number before each attempt
        before_wait: Called with (attempt number, delay) before each sleep
        deadline: Seconds from the start of the wait before it is cancelled
        token: Caller-owned cancellation token
    """
    max_attempts: Optional[int] = None
    delay: Optional[float] = None
    before_attempt: Optional[BeforeAttemptHook] = None
    before_wait: Optional[BeforeWaitHook] = None
    deadline: Optional[float] = None
    token: Optional[CancellationToken] = None

    def __post_init__(self):
        if self.max_attempts is not None and (
            not isinstance(self.max_attempts, int) or isinstance(self.max_attempts, bool)
            or self.max_attempts < 1
        ):
            raise ConfigurationError(f"max_attempts must be a positive integer, got {self.max_attempts!r}")
        if self.delay is not None and (isinstance(self.delay, bool) or self.delay < 0):
            raise ConfigurationError(f"delay must be a non-negative number, got {self.delay!r}")
        if self.deadline is not None and self.deadline < 0:
            raise ConfigurationError(f"deadline must be non-negative, got {self.deadline!r}")

    def merged(self, overrides: "WaitOptions") -> "WaitOptions":
        """Return a copy with every non-None field of overrides applied."""
        changes = {
            f.name: getattr(overrides, f.name)
            for f in fields(overrides)
            if getattr(overrides, f.name) is not None
        }
        return replace(self, **changes)


@dataclass(frozen=True)
class WaitConfig:
    """Fully resolved configuration for one wait session."""
    max_attempts: int
    delay: float
    before_attempt: Optional[BeforeAttemptHook] = None
    before_wait: Optional[BeforeWaitHook] = None
    deadline: Optional[float] = None
    token: Optional[CancellationToken] = None


@dataclass(frozen=True)
class WaitResult:
    """
    Result of a successful wait.

    Attributes:
        response: Value of the response that matched a success acceptor
                  (None when an error acceptor resolved to success)
        attempts: Records of every attempt, in order
    """
    response: Any
    attempts: tuple[AttemptRecord, ...]

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def last_outcome(self) -> Outcome:
        return self.attempts[-1].outcome


class WaitSession:
    """
    Bookkeeping for a single wait.

    Owns the attempt counter, the attempt history and the deadline. Created
    per call to Waiter.run() and discarded when the loop ends.
    """

    def __init__(
        self,
        waiter: "Waiter",
        params: dict[str, Any],
        config: WaitConfig,
    ):
        self.waiter = waiter
        self.params = params
        self.config = config
        self.attempt_n = 1
        self.attempts: list[AttemptRecord] = []
        self._token = config.token
        self._deadline_at = (
            time.monotonic() + config.deadline if config.deadline is not None else None
        )

    @property
    def name(self) -> str:
        return self.waiter.name

    def _remaining(self) -> Optional[float]:
        if self._deadline_at is None:
            return None
        return max(0.0, self._deadline_at - time.monotonic())

    def _last_outcome(self) -> Optional[Outcome]:
        return self.attempts[-1].outcome if self.attempts else None

    def _cancelled(self, detail: str) -> Cancelled:
        if self._token is not None and self._token.cancelled:
            reason = self._token.reason
        else:
            reason = f"deadline of {self.config.deadline}s exceeded"
        logger.warning(f"Waiter {self.name} cancelled {detail}: {reason}")
        return Cancelled(
            f"Waiter {self.name} cancelled {detail}: {reason}",
            last_outcome=self._last_outcome(),
            attempts=tuple(self.attempts),
        )

    def _check_cancelled(self, detail: str) -> None:
        if self._token is not None and self._token.cancelled:
            raise self._cancelled(detail)
        remaining = self._remaining()
        if remaining is not None and remaining <= 0:
            raise self._cancelled(detail)

    def _sleep(self, delay: float) -> None:
        """Sleep between attempts, waking early on cancellation."""
        remaining = self._remaining()
        timeout = delay if remaining is None else min(delay, remaining)

        if self._token is not None:
            self._token.wait(timeout)
        elif timeout > 0:
            time.sleep(timeout)

        self._check_cancelled(f"while sleeping before attempt {self.attempt_n + 1}")

    def _call(self, invoke: Callable[[], Any]) -> Any:
        """
        Run one invocation.

        Without a token or deadline the call runs inline. Otherwise it runs
        on a daemon thread so the session can stop waiting on it as soon as
        the token is cancelled or the deadline passes. An abandoned call
        never keeps the interpreter from exiting.
        """
        if self._token is None and self._deadline_at is None:
            return invoke()

        done = threading.Event()
        slot: dict[str, Any] = {}

        def _worker() -> None:
            try:
                slot["result"] = invoke()
            except BaseException as e:
                slot["error"] = e
            finally:
                done.set()

        worker = threading.Thread(
            target=_worker, name=f"waitkit-{self.name}-{self.attempt_n}", daemon=True,
        )
        if self._token is not None:
            self._token.add_callback(done.set)
        try:
            worker.start()
            done.wait(self._remaining())
        finally:
            if self._token is not None:
                self._token.remove_callback(done.set)

        if worker.is_alive() and not slot:
            # The worker is abandoned; its result is discarded
            raise self._cancelled(f"during attempt {self.attempt_n}")
        if "error" in slot:
            raise slot["error"]
        return slot["result"]

    def _run_hook(self, hook: Callable[..., Any], *args: Any) -> None:
        try:
            hook(*args)
        except AbortWait as e:
            logger.info(f"Waiter {self.name} aborted by hook: {e.reason}")
            raise WaitFailure(
                f"Waiter {self.name} failed: {e.reason}",
                last_outcome=self._last_outcome(),
                attempts=tuple(self.attempts),
            ) from e

    def _record(self, started_at: datetime, result: PollResult) -> AttemptRecord:
        record = AttemptRecord(
            attempt_n=self.attempt_n,
            started_at=started_at,
            completed_at=_utcnow(),
            verdict=result.verdict,
            outcome=result.outcome,
            acceptor=result.acceptor,
        )
        self.attempts.append(record)
        return record

    def run(self) -> WaitResult:
        """Run the attempt loop until a terminal state."""
        config = self.config
        poller = self.waiter.poller

        logger.debug(
            f"Waiter {self.name} starting (operation={poller.operation}, "
            f"max_attempts={config.max_attempts}, delay={config.delay})"
        )

        while True:
            self._check_cancelled(f"before attempt {self.attempt_n}")
            if config.before_attempt is not None:
                self._run_hook(config.before_attempt, self.attempt_n)

            started_at = _utcnow()
            result = poller.poll(self.waiter.invoker, self.params, call=self._call)
            self._record(started_at, result)

            logger.debug(
                f"Waiter {self.name} attempt {self.attempt_n}/{config.max_attempts}: "
                f"{result.verdict.value}"
                + (f" (matched {result.acceptor.matcher.value}={result.acceptor.expected!r})"
                   if result.acceptor is not None else ""),
                extra={"waiter": self.name, "attempt": self.attempt_n},
            )

            if result.verdict == Verdict.SUCCESS:
                logger.info(f"Waiter {self.name} succeeded after {self.attempt_n} attempt(s)")
                response = None if result.outcome.is_error else result.outcome.value
                return WaitResult(response=response, attempts=tuple(self.attempts))

            if result.verdict == Verdict.FAILURE:
                raise self._failure(result)

            # RETRY
            if self.attempt_n >= config.max_attempts:
                logger.warning(
                    f"Waiter {self.name} exhausted {config.max_attempts} attempt(s)"
                )
                raise AttemptsExhausted(
                    f"Waiter {self.name} stopped after {self.attempt_n} attempt(s): max attempts exceeded",
                    last_outcome=result.outcome,
                    attempts=tuple(self.attempts),
                )

            if config.before_wait is not None:
                self._run_hook(config.before_wait, self.attempt_n, config.delay)
            self._sleep(config.delay)
            self.attempt_n += 1

    def _failure(self, result: PollResult) -> WaitFailure:
        outcome = result.outcome
        if result.acceptor is None and outcome.is_error:
            logger.warning(f"Waiter {self.name} hit unexpected error: {outcome.code}")
            return UnexpectedError(
                f"Waiter {self.name} failed: unexpected error {outcome.code}"
                + (f": {outcome.message}" if outcome.message else ""),
                last_outcome=outcome,
                attempts=tuple(self.attempts),
            )

        logger.warning(
            f"Waiter {self.name} reached failure state on attempt {self.attempt_n} "
            f"({result.acceptor.matcher.value}={result.acceptor.expected!r})"
        )
        return WaitFailure(
            f"Waiter {self.name} encountered a terminal failure state: "
            f"{result.acceptor.matcher.value} matched {result.acceptor.expected!r}",
            acceptor=result.acceptor,
            last_outcome=outcome,
            attempts=tuple(self.attempts),
        )


class Waiter:
    """
    Waits for a resource to reach a state described by a WaiterDef.

    Usage:
        waiter = Waiter(registry.get("StackCreateComplete"), invoker)
        stack = waiter.wait({"StackName": "web"}, max_attempts=10, delay=5)

    The definition is shared read-only; every wait gets its own WaitSession.
    """

    def __init__(
        self,
        definition: WaiterDef,
        invoker: Union[OperationInvoker, Callable[[str, dict[str, Any]], Any]],
        options: Optional[WaitOptions] = None,
    ):
        """
        Initialize the waiter.

        Args:
            definition: The waiter definition
            invoker: Invoker for the definition's operation
            options: Defaults applied to every wait of this waiter

        Raises:
            ConfigurationError: If the invoker can't perform the operation
        """
        self.definition = definition
        self.invoker = as_invoker(invoker)
        if not self.invoker.supports(definition.operation):
            raise ConfigurationError(
                f"Waiter {definition.name}: invoker does not support operation {definition.operation}"
            )
        self.poller = Poller(definition.operation, definition.acceptors)
        self.options = options or WaitOptions()

    @property
    def name(self) -> str:
        return self.definition.name

    def resolve(self, overrides: Optional[WaitOptions] = None) -> WaitConfig:
        """Resolve the configuration for one wait."""
        options = self.options.merged(overrides) if overrides is not None else self.options
        return WaitConfig(
            max_attempts=options.max_attempts if options.max_attempts is not None
            else self.definition.max_attempts,
            delay=options.delay if options.delay is not None else self.definition.delay,
            before_attempt=options.before_attempt,
            before_wait=options.before_wait,
            deadline=options.deadline,
            token=options.token,
        )

    def run(
        self,
        params: Optional[dict[str, Any]] = None,
        *,
        max_attempts: Optional[int] = None,
        delay: Optional[float] = None,
        before_attempt: Optional[BeforeAttemptHook] = None,
        before_wait: Optional[BeforeWaitHook] = None,
        deadline: Optional[float] = None,
        token: Optional[CancellationToken] = None,
    ) -> WaitResult:
        """
        Wait and return the full result including the attempt history.

        Raises:
            WaitFailure: A failure acceptor fired, an unexpected error
                         occurred, or a hook aborted the wait
            AttemptsExhausted: max_attempts reached while still retrying
            Cancelled: The token was cancelled or the deadline passed
        """
        overrides = WaitOptions(
            max_attempts=max_attempts,
            delay=delay,
            before_attempt=before_attempt,
            before_wait=before_wait,
            deadline=deadline,
            token=token,
        )
        session = WaitSession(self, dict(params or {}), self.resolve(overrides))
        return session.run()

    def wait(
        self,
        params: Optional[dict[str, Any]] = None,
        **overrides: Any,
    ) -> Any:
        """
        Wait until the resource reaches a terminal state.

        Takes the same keyword overrides as run().

        Returns:
            The response that matched a success acceptor
        """
        return self.run(params, **overrides).response

    def __repr__(self) -> str:
        return f"Waiter(name={self.name}, operation={self.definition.operation})"


def wait_until(
    registry: "WaiterRegistry",
    invoker: Union[OperationInvoker, Callable[[str, dict[str, Any]], Any]],
    waiter_name: str,
    params: Optional[dict[str, Any]] = None,
    **overrides: Any,
) -> Any:
    """
    Look up a waiter by name and wait on it.

    Args:
        registry: Registry holding the waiter definition
        invoker: Invoker for the waiter's operation
        waiter_name: Name of the waiter (e.g. StackCreateComplete)
        params: Request parameters
        **overrides: max_attempts, delay, before_attempt, before_wait,
                     deadline, token

    Returns:
        The response that matched a success acceptor

    Raises:
        WaiterNotFoundError: If the registry has no such waiter
    """
    definition = registry.get(waiter_name)
    return Waiter(definition, invoker).wait(params, **overrides)
