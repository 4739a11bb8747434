"""
waitkit.schemas - Schema definitions for the waiter engine.

WaiterModel -> WaiterDef -> Acceptor -> Outcome -> AttemptRecord

Lifecycle:
1. WaiterModel: Versioned file of waiter definitions, loaded once
2. WaiterDef: Immutable per-waiter definition (operation, acceptors, defaults)
3. Acceptor: One declarative rule, validated at load time
4. Outcome: Response or ErrorOutcome produced by one invocation
5. AttemptRecord: What one attempt saw and how it was resolved
"""

from .acceptor import (
    Acceptor,
    AcceptorState,
    ErrorAcceptor,
    Matcher,
    PathAcceptor,
    PathAllAcceptor,
    PathAnyAcceptor,
    StatusAcceptor,
    parse_acceptor,
)
from .outcome import (
    ErrorOutcome,
    Outcome,
    Response,
    outcome_from_dict,
)
from .attempt import (
    AttemptRecord,
    Verdict,
)
from .waiter_def import (
    WaiterDef,
    WaiterModel,
)

__all__ = [
    # Acceptors
    "Acceptor",
    "AcceptorState",
    "Matcher",
    "PathAcceptor",
    "PathAllAcceptor",
    "PathAnyAcceptor",
    "StatusAcceptor",
    "ErrorAcceptor",
    "parse_acceptor",
    # Outcomes
    "Outcome",
    "Response",
    "ErrorOutcome",
    "outcome_from_dict",
    # Attempts
    "AttemptRecord",
    "Verdict",
    # Definitions
    "WaiterDef",
    "WaiterModel",
]
