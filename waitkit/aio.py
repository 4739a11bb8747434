"""
AsyncWaiter - the attempt loop for asyncio applications.

Same semantics as Waiter, but the invoker may return an awaitable and the
delay between attempts is an asyncio sleep, so a wait never blocks the
event loop. A CancellationToken or deadline interrupts both the sleep and an
in-flight invocation and surfaces Cancelled. Cancelling the surrounding task
still raises asyncio.CancelledError as usual.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional

from waitkit.errors import AttemptsExhausted
from waitkit.invoker import OperationInvoker
from waitkit.schemas import Outcome, Verdict
from waitkit.waiter import Waiter, WaitOptions, WaitResult, WaitSession, _utcnow

logger = logging.getLogger(__name__)


class AsyncWaitSession(WaitSession):
    """WaitSession whose invocations and sleeps are awaited."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._cancel_event: Optional[asyncio.Event] = None
        self._token_callback: Optional[Callable[[], None]] = None

    def _watch_token(self) -> None:
        loop = asyncio.get_running_loop()
        self._cancel_event = asyncio.Event()
        if self._token is not None:
            event = self._cancel_event
            self._token_callback = lambda: loop.call_soon_threadsafe(event.set)
            self._token.add_callback(self._token_callback)

    def _unwatch_token(self) -> None:
        if self._token is not None and self._token_callback is not None:
            self._token.remove_callback(self._token_callback)

    async def _race(self, awaitable: Awaitable[Any], timeout: Optional[float]) -> tuple[bool, Any]:
        """
        Await `awaitable` unless cancellation or timeout comes first.

        Returns:
            (finished, result)
        """
        task = asyncio.ensure_future(awaitable)
        cancel_wait = asyncio.ensure_future(self._cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, cancel_wait},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            cancel_wait.cancel()
        if task in done:
            return True, task.result()
        task.cancel()
        return False, None

    async def _async_sleep(self, delay: float) -> None:
        remaining = self._remaining()
        timeout = delay if remaining is None else min(delay, remaining)
        await self._race(asyncio.sleep(timeout), None)
        self._check_cancelled(f"while sleeping before attempt {self.attempt_n + 1}")

    async def _async_invoke(self) -> Outcome:
        poller = self.waiter.poller

        async def _call() -> Any:
            result = self.waiter.invoker.invoke(poller.operation, self.params)
            if inspect.isawaitable(result):
                result = await result
            return result

        try:
            finished, result = await self._race(_call(), self._remaining())
        except Exception as e:
            # The invocation itself raised; let the poller capture it
            return poller.invoke(_Raising(e), self.params)

        if not finished:
            raise self._cancelled(f"during attempt {self.attempt_n}")
        return poller.invoke(_Returning(result), self.params)

    async def run_async(self) -> WaitResult:
        """Run the attempt loop until a terminal state."""
        self._watch_token()
        try:
            return await self._loop()
        finally:
            self._unwatch_token()

    async def _loop(self) -> WaitResult:
        config = self.config
        poller = self.waiter.poller

        while True:
            self._check_cancelled(f"before attempt {self.attempt_n}")
            if config.before_attempt is not None:
                self._run_hook(config.before_attempt, self.attempt_n)

            started_at = _utcnow()
            outcome = await self._async_invoke()
            result = poller.evaluate(outcome)
            self._record(started_at, result)
            logger.debug(
                f"Waiter {self.name} attempt {self.attempt_n}/{config.max_attempts}: "
                f"{result.verdict.value}",
                extra={"waiter": self.name, "attempt": self.attempt_n},
            )

            if result.verdict == Verdict.SUCCESS:
                logger.info(f"Waiter {self.name} succeeded after {self.attempt_n} attempt(s)")
                response = None if outcome.is_error else outcome.value
                return WaitResult(response=response, attempts=tuple(self.attempts))

            if result.verdict == Verdict.FAILURE:
                raise self._failure(result)

            if self.attempt_n >= config.max_attempts:
                logger.warning(f"Waiter {self.name} exhausted {config.max_attempts} attempt(s)")
                raise AttemptsExhausted(
                    f"Waiter {self.name} stopped after {self.attempt_n} attempt(s): max attempts exceeded",
                    last_outcome=outcome,
                    attempts=tuple(self.attempts),
                )

            if config.before_wait is not None:
                self._run_hook(config.before_wait, self.attempt_n, config.delay)
            await self._async_sleep(config.delay)
            self.attempt_n += 1


class _Returning(OperationInvoker):
    """Hands an already-awaited result to Poller.invoke."""

    def __init__(self, result: Any):
        self._result = result

    def invoke(self, operation: str, params: dict[str, Any]) -> Any:
        return self._result


class _Raising(OperationInvoker):
    """Hands an already-raised error to Poller.invoke."""

    def __init__(self, error: Exception):
        self._error = error

    def invoke(self, operation: str, params: dict[str, Any]) -> Any:
        raise self._error


class AsyncWaiter(Waiter):
    """
    Waiter for coroutine invokers.

    Usage:
        waiter = AsyncWaiter(definition, invoker)
        stack = await waiter.wait({"StackName": "web"})

    The invoker's invoke() may be a coroutine function or return a value
    directly; a plain `async def fn(operation, params)` works as well.
    """

    async def run(self, params: Optional[dict[str, Any]] = None, **overrides: Any) -> WaitResult:
        """Async counterpart of Waiter.run()."""
        session = AsyncWaitSession(self, dict(params or {}), self.resolve(WaitOptions(**overrides)))
        return await session.run_async()

    async def wait(self, params: Optional[dict[str, Any]] = None, **overrides: Any) -> Any:
        """Async counterpart of Waiter.wait()."""
        result = await self.run(params, **overrides)
        return result.response
