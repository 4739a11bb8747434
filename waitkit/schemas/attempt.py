"""
Attempt schemas - per-attempt bookkeeping for a wait session.

Verdict is the resolution of one attempt.
AttemptRecord tracks what one attempt invoked, what came back and which
acceptor (if any) decided the verdict.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .acceptor import Acceptor
from .outcome import Outcome


class Verdict(str, Enum):
    """Resolution of evaluating acceptors against one outcome."""
    SUCCESS = "success"
    FAILURE = "failure"
    RETRY = "retry"
    NO_MATCH = "no-match"

    @property
    def is_terminal(self) -> bool:
        return self in (Verdict.SUCCESS, Verdict.FAILURE)


@dataclass(frozen=True)
class AttemptRecord:
    """
    A record of a single attempt within a wait session.

    Attributes:
        attempt_n: Attempt number (1-indexed)
        started_at: When the invocation started
        completed_at: When acceptor evaluation finished
        verdict: Resolution of the attempt (never NO_MATCH)
        outcome: What the operation produced
        acceptor: The acceptor that fired, None for default verdicts
    """
    attempt_n: int
    started_at: datetime
    completed_at: datetime
    verdict: Verdict
    outcome: Outcome
    acceptor: Optional[Acceptor] = None

    def __post_init__(self):
        if self.attempt_n < 1:
            raise ValueError("attempt_n must be >= 1")
        if self.verdict == Verdict.NO_MATCH:
            raise ValueError("an attempt always resolves to success, failure or retry")

    @property
    def duration_ms(self) -> int:
        """Attempt duration in milliseconds."""
        delta = self.completed_at - self.started_at
        return int(delta.total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result: dict[str, Any] = {
            "attempt_n": self.attempt_n,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "verdict": self.verdict.value,
            "outcome": self.outcome.to_dict(),
        }
        if self.acceptor is not None:
            result["acceptor"] = self.acceptor.to_dict()
        return result
