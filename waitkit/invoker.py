"""
Operation invokers - the capability a waiter uses to call the watched operation.

The engine never talks to a transport. It is given an invoker that, for an
operation name and request parameters, returns a response or raises.

Implementations:
- CallableInvoker: operation name -> plain function (wraps any client)
- ScriptedInvoker: replays recorded outcomes (simulation and tests)

Helpers convert what an invoker produced into an Outcome:
- to_response(): return value -> Response
- to_error_outcome(): raised exception -> ErrorOutcome with a stable code
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Callable, Iterable, Optional, Union

from waitkit.errors import OperationError
from waitkit.schemas import ErrorOutcome, Outcome, Response, outcome_from_dict


class OperationInvoker(ABC):
    """
    Abstract base class for operation invokers.

    Invokers receive an operation name and parameters and perform one call,
    returning the response or raising an error.
    """

    @abstractmethod
    def invoke(self, operation: str, params: dict[str, Any]) -> Any:
        """
        Invoke an operation once.

        Args:
            operation: Operation name from the waiter definition
            params: Request parameters supplied by the caller

        Returns:
            The response (a Response, or any structured value)

        Raises:
            Exception: Any error; the poller turns it into an ErrorOutcome
        """
        pass

    def supports(self, operation: str) -> bool:
        """Whether this invoker can perform the operation."""
        return True


class CallableInvoker(OperationInvoker):
    """
    Invoker backed by a mapping of operation names to functions.

    Each function is called with the request parameters as keyword arguments.

    Usage:
        invoker = CallableInvoker()
        invoker.register("DescribeStacks", client.describe_stacks)
    """

    def __init__(self, operations: Optional[dict[str, Callable[..., Any]]] = None) -> None:
        self._operations: dict[str, Callable[..., Any]] = dict(operations or {})

    def register(self, operation: str, func: Callable[..., Any]) -> None:
        """Register the function that performs an operation."""
        self._operations[operation] = func

    def get(self, operation: str) -> Callable[..., Any]:
        """
        Get the function for an operation.

        Raises:
            KeyError: If no function is registered for the operation
        """
        if operation not in self._operations:
            registered = list(self._operations.keys())
            raise KeyError(
                f"No function registered for operation: {operation}. "
                f"Registered: {registered}"
            )
        return self._operations[operation]

    def supports(self, operation: str) -> bool:
        return operation in self._operations

    def list_operations(self) -> list[str]:
        return list(self._operations.keys())

    def invoke(self, operation: str, params: dict[str, Any]) -> Any:
        return self.get(operation)(**params)


class ScriptedInvoker(OperationInvoker):
    """
    Invoker that replays a fixed sequence of outcomes.

    Response outcomes are returned as-is; ErrorOutcomes are raised as
    OperationError. Once the script is used up the last outcome repeats,
    unless repeat_last is False, in which case an IndexError is raised.

    Every call is recorded in `calls` as (operation, params).
    """

    def __init__(
        self,
        outcomes: Iterable[Union[Outcome, dict[str, Any]]],
        operation: Optional[str] = None,
        repeat_last: bool = True,
    ) -> None:
        self._outcomes = [
            o if isinstance(o, (Response, ErrorOutcome)) else outcome_from_dict(o)
            for o in outcomes
        ]
        if not self._outcomes:
            raise ValueError("ScriptedInvoker needs at least one outcome")
        self._operation = operation
        self._repeat_last = repeat_last
        self._position = 0
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def supports(self, operation: str) -> bool:
        return self._operation is None or operation == self._operation

    def invoke(self, operation: str, params: dict[str, Any]) -> Any:
        self.calls.append((operation, dict(params)))

        if self._position < len(self._outcomes):
            outcome = self._outcomes[self._position]
            self._position += 1
        elif self._repeat_last:
            outcome = self._outcomes[-1]
        else:
            raise IndexError(f"Scripted outcomes exhausted after {len(self._outcomes)} calls")

        if outcome.is_error:
            raise OperationError(outcome.code, outcome.message, status_code=outcome.status_code)
        return outcome


class _FunctionInvoker(OperationInvoker):
    """Adapter for a bare `(operation, params) -> response` function."""

    def __init__(self, func: Callable[[str, dict[str, Any]], Any]) -> None:
        self._func = func

    def invoke(self, operation: str, params: dict[str, Any]) -> Any:
        return self._func(operation, params)


def as_invoker(invoker: Union[OperationInvoker, Callable[[str, dict[str, Any]], Any]]) -> OperationInvoker:
    """Accept either an OperationInvoker or a plain `(operation, params)` function."""
    if isinstance(invoker, OperationInvoker):
        return invoker
    if callable(invoker):
        return _FunctionInvoker(invoker)
    raise TypeError(f"Expected an OperationInvoker or callable, got {type(invoker).__name__}")


def _metadata_status(value: Any) -> Optional[int]:
    """Status code from botocore-style ResponseMetadata, if present."""
    if isinstance(value, Mapping):
        metadata = value.get("ResponseMetadata")
        if isinstance(metadata, Mapping):
            status = metadata.get("HTTPStatusCode")
            if isinstance(status, int) and not isinstance(status, bool):
                return status
    return None


def to_response(result: Any) -> Response:
    """Wrap an invoker return value as a Response."""
    if isinstance(result, Response):
        return result
    return Response(value=result, status_code=_metadata_status(result))


def to_error_outcome(exc: BaseException) -> ErrorOutcome:
    """
    Convert a raised exception into an ErrorOutcome.

    Code resolution order:
    1. OperationError.code
    2. botocore-style `exc.response["Error"]["Code"]`
    3. a string `code` attribute on the exception
    4. the exception class name
    """
    if isinstance(exc, OperationError):
        return ErrorOutcome(
            code=exc.code,
            message=exc.message,
            status_code=exc.status_code,
            exception=exc,
        )

    response = getattr(exc, "response", None)
    if isinstance(response, Mapping):
        error = response.get("Error")
        if isinstance(error, Mapping) and error.get("Code"):
            return ErrorOutcome(
                code=str(error["Code"]),
                message=str(error.get("Message", "")),
                status_code=_metadata_status(response),
                exception=exc,
            )

    code = getattr(exc, "code", None)
    if isinstance(code, str) and code:
        status = getattr(exc, "status_code", None)
        return ErrorOutcome(
            code=code,
            message=str(exc),
            status_code=status if isinstance(status, int) else None,
            exception=exc,
        )

    return ErrorOutcome(code=type(exc).__name__, message=str(exc), exception=exc)
