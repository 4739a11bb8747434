"""
Poller - one invocation plus one pass over the acceptors.

The poller invokes the bound operation once, captures any raised error as
an ErrorOutcome and evaluates the acceptors in declaration order. The first
acceptor that fires decides the verdict. When none fires:
- a Response resolves to RETRY (the resource is assumed to be in progress)
- an ErrorOutcome resolves to FAILURE (unexpected errors are never retried)
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from waitkit import matcher
from waitkit.errors import Cancelled
from waitkit.invoker import OperationInvoker, to_error_outcome, to_response
from waitkit.schemas import Acceptor, Outcome, Verdict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollResult:
    """
    Result of one poll.

    Attributes:
        verdict: SUCCESS, FAILURE or RETRY
        outcome: What the operation produced
        acceptor: The acceptor that fired, None for default verdicts
    """
    verdict: Verdict
    outcome: Outcome
    acceptor: Optional[Acceptor] = None

    @property
    def matched(self) -> bool:
        return self.acceptor is not None


class Poller:
    """
    Binds an operation name to an ordered list of acceptors.

    Usage:
        poller = Poller("DescribeStacks", waiter_def.acceptors)
        result = poller.poll(invoker, {"StackName": "web"})
    """

    def __init__(self, operation: str, acceptors: Sequence[Acceptor]):
        self.operation = operation
        self.acceptors = tuple(acceptors)

    def invoke(
        self,
        invoker: OperationInvoker,
        params: dict[str, Any],
        call: Optional[Callable[[Callable[[], Any]], Any]] = None,
    ) -> Outcome:
        """
        Invoke the operation once and capture the outcome.

        Args:
            invoker: Invoker performing the operation
            params: Request parameters
            call: Optional runner for the invocation (used to make an
                  in-flight call cancellable); defaults to a direct call

        Returns:
            Response or ErrorOutcome
        """
        def _call() -> Any:
            return invoker.invoke(self.operation, params)

        try:
            result = call(_call) if call is not None else _call()
        except Cancelled:
            raise
        except Exception as e:
            outcome = to_error_outcome(e)
            logger.debug(f"{self.operation} raised {outcome.code}: {outcome.message}")
            return outcome
        return to_response(result)

    def evaluate(self, outcome: Outcome) -> PollResult:
        """Run the acceptors over an outcome, first firing acceptor wins."""
        for acceptor in self.acceptors:
            verdict = matcher.evaluate(acceptor, outcome)
            if verdict != Verdict.NO_MATCH:
                return PollResult(verdict=verdict, outcome=outcome, acceptor=acceptor)

        if outcome.is_error:
            return PollResult(verdict=Verdict.FAILURE, outcome=outcome)
        return PollResult(verdict=Verdict.RETRY, outcome=outcome)

    def poll(
        self,
        invoker: OperationInvoker,
        params: dict[str, Any],
        call: Optional[Callable[[Callable[[], Any]], Any]] = None,
    ) -> PollResult:
        """
        Invoke the operation once and resolve the verdict.

        Args:
            invoker: Invoker performing the operation
            params: Request parameters
            call: Optional runner for the invocation

        Returns:
            PollResult with the verdict, outcome and firing acceptor
        """
        return self.evaluate(self.invoke(invoker, params, call=call))
