"""Tests for waitkit.aio module.

Coroutines are driven with asyncio.run() so no asyncio pytest plugin is needed.
"""

import asyncio
import threading
import time
import pytest

from waitkit.aio import AsyncWaiter
from waitkit.cancellation import CancellationToken
from waitkit.errors import (
    AbortWait,
    AttemptsExhausted,
    Cancelled,
    OperationError,
    UnexpectedError,
    WaitFailure,
)
from waitkit.invoker import OperationInvoker, ScriptedInvoker
from waitkit.schemas import ErrorOutcome, Response


def status(value: str) -> Response:
    return Response({"status": value})


class AsyncScripted(OperationInvoker):
    """Coroutine invoker replaying a list of outcomes."""

    def __init__(self, outcomes):
        self._sync = ScriptedInvoker(outcomes)
        self.calls = self._sync.calls

    async def invoke(self, operation, params):
        await asyncio.sleep(0)
        return self._sync.invoke(operation, params)


class TestAsyncWaiter:
    """AsyncWaiter runs the same loop without blocking the event loop."""

    def test_success_with_coroutine_invoker(self, create_complete_def):
        invoker = AsyncScripted([status("CREATE_IN_PROGRESS"), status("CREATE_COMPLETE")])
        result = asyncio.run(AsyncWaiter(create_complete_def, invoker).run({"Id": "x"}))

        assert result.response == {"status": "CREATE_COMPLETE"}
        assert result.attempt_count == 2
        assert invoker.calls == [("DescribeThing", {"Id": "x"})] * 2

    def test_sync_invoker_works(self, create_complete_def):
        invoker = ScriptedInvoker([status("CREATE_COMPLETE")])
        assert asyncio.run(AsyncWaiter(create_complete_def, invoker).wait()) == {"status": "CREATE_COMPLETE"}

    def test_async_function_invoker(self, create_complete_def):
        async def invoke(operation, params):
            return {"status": "CREATE_COMPLETE"}

        assert asyncio.run(AsyncWaiter(create_complete_def, invoke).wait()) == {"status": "CREATE_COMPLETE"}

    def test_failure(self, create_complete_def):
        invoker = AsyncScripted([status("CREATE_FAILED")])
        with pytest.raises(WaitFailure) as exc_info:
            asyncio.run(AsyncWaiter(create_complete_def, invoker).wait())
        assert exc_info.value.acceptor.expected == "CREATE_FAILED"

    def test_retry_on_error_then_success(self, retry_on_validation_def):
        invoker = AsyncScripted([
            ErrorOutcome("ValidationError"),
            ErrorOutcome("ValidationError"),
            status("CREATE_COMPLETE"),
        ])
        result = asyncio.run(AsyncWaiter(retry_on_validation_def, invoker).run())
        assert result.attempt_count == 3

    def test_unmatched_error(self, create_complete_def):
        async def invoke(operation, params):
            raise OperationError("AccessDenied", "no")

        with pytest.raises(UnexpectedError, match="AccessDenied"):
            asyncio.run(AsyncWaiter(create_complete_def, invoke).wait())

    def test_attempts_exhausted(self, create_complete_def):
        invoker = AsyncScripted([status("CREATE_IN_PROGRESS")])
        with pytest.raises(AttemptsExhausted):
            asyncio.run(AsyncWaiter(create_complete_def, invoker).wait(max_attempts=2))
        assert len(invoker.calls) == 2

    def test_hooks(self, create_complete_def):
        seen = []
        invoker = AsyncScripted([status("CREATE_IN_PROGRESS")])

        def before_attempt(n):
            seen.append(n)
            if n == 3:
                raise AbortWait("enough")

        with pytest.raises(WaitFailure, match="enough"):
            asyncio.run(AsyncWaiter(create_complete_def, invoker).wait(
                max_attempts=5, before_attempt=before_attempt,
            ))
        assert seen == [1, 2, 3]

    def test_token_cancels_sleep(self, create_complete_def):
        token = CancellationToken()
        invoker = AsyncScripted([status("CREATE_IN_PROGRESS")])
        threading.Timer(0.05, token.cancel).start()

        start = time.monotonic()
        with pytest.raises(Cancelled) as exc_info:
            asyncio.run(AsyncWaiter(create_complete_def, invoker).wait(delay=30, token=token))
        assert time.monotonic() - start < 5
        assert exc_info.value.attempt_count == 1

    def test_deadline_cancels_invocation(self, create_complete_def):
        async def invoke(operation, params):
            await asyncio.sleep(30)

        start = time.monotonic()
        with pytest.raises(Cancelled, match="during attempt 1"):
            asyncio.run(AsyncWaiter(create_complete_def, invoke).wait(deadline=0.1))
        assert time.monotonic() - start < 5

    def test_concurrent_waits(self, create_complete_def):
        async def invoke(operation, params):
            await asyncio.sleep(0)
            return {"status": "CREATE_COMPLETE" if params["Id"] == "done" else "CREATE_IN_PROGRESS"}

        waiter = AsyncWaiter(create_complete_def, invoke)

        async def main():
            return await asyncio.gather(
                waiter.wait({"Id": "done"}),
                waiter.wait({"Id": "pending"}),
                return_exceptions=True,
            )

        done, pending = asyncio.run(main())
        assert done == {"status": "CREATE_COMPLETE"}
        assert isinstance(pending, AttemptsExhausted)
