"""
Outcome schemas - what one invocation of the watched operation produced.

An Outcome is either a Response (the operation returned) or an ErrorOutcome
(the operation raised). It is produced by the Poller, consumed by the
acceptor matcher, and kept on the AttemptRecord for reporting.
"""

from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class Response:
    """
    A successful operation result.

    Attributes:
        value: Structured response data
        status_code: HTTP-style status code, if the invoker reported one
    """
    value: Any
    status_code: Optional[int] = None

    is_error = False

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result: dict[str, Any] = {"response": self.value}
        if self.status_code is not None:
            result["status_code"] = self.status_code
        return result


@dataclass(frozen=True)
class ErrorOutcome:
    """
    An error raised by the operation.

    Attributes:
        code: Stable error code/name (what `error` acceptors compare)
        message: Human readable message
        status_code: HTTP-style status code, if known
        exception: The original exception, if one was captured
    """
    code: str
    message: str = ""
    status_code: Optional[int] = None
    exception: Optional[BaseException] = None

    is_error = True

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result: dict[str, Any] = {"error": self.code}
        if self.message:
            result["message"] = self.message
        if self.status_code is not None:
            result["status_code"] = self.status_code
        return result


Outcome = Union[Response, ErrorOutcome]


def outcome_from_dict(data: dict[str, Any]) -> Outcome:
    """
    Build an Outcome from a recorded dictionary.

    Recorded form (as written by to_dict):
        {"response": {...}, "status_code": 200}
        {"error": "ValidationError", "message": "...", "status_code": 400}
    """
    if not isinstance(data, dict):
        raise ValueError(f"Recorded outcome must be a mapping, got {type(data).__name__}: {data!r}")
    if "error" in data:
        return ErrorOutcome(
            code=data["error"],
            message=data.get("message", ""),
            status_code=data.get("status_code"),
        )
    if "response" in data:
        return Response(value=data["response"], status_code=data.get("status_code"))
    raise ValueError(f"Recorded outcome needs 'response' or 'error': {data}")
