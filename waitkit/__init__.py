"""
waitkit - Acceptor-driven waiters

Polls a read operation until declarative acceptor rules decide that the
watched resource reached success or failure, or attempts run out.
"""

__version__ = "0.1.0"
__author__ = "waitkit developers"


__all__ = [
    "Waiter",
    "WaitOptions",
    "WaitResult",
    "wait_until",
    "AsyncWaiter",
    "Poller",
    "WaiterRegistry",
    "CancellationToken",
    "CallableInvoker",
    "OperationInvoker",
    "ScriptedInvoker",
    "ConfigurationError",
    "WaitFailure",
    "AttemptsExhausted",
    "Cancelled",
]

from .errors import (
    AttemptsExhausted,
    Cancelled,
    ConfigurationError,
    WaitFailure,
)
from .cancellation import CancellationToken
from .invoker import CallableInvoker, OperationInvoker, ScriptedInvoker
from .poller import Poller
from .registry import WaiterRegistry
from .waiter import Waiter, WaitOptions, WaitResult, wait_until
from .aio import AsyncWaiter
