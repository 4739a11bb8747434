"""
Acceptor schemas - the declarative rules a waiter evaluates.

Wire format (one entry of a waiter's "acceptors" list):

    {"matcher": "pathAll", "argument": "stacks[].stack_status",
     "expected": "CREATE_COMPLETE", "state": "success"}

Each matcher maps to its own frozen dataclass. parse_acceptor() validates the
entry once, at load time, and compiles path arguments.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from waitkit.errors import ConfigurationError
from waitkit.path import Path, compile_path


class Matcher(str, Enum):
    """Kinds of comparison an acceptor can perform."""
    PATH = "path"
    PATH_ALL = "pathAll"
    PATH_ANY = "pathAny"
    STATUS = "status"
    ERROR = "error"

    @property
    def requires_argument(self) -> bool:
        """Path matchers need an argument, status/error must not have one."""
        return self in (Matcher.PATH, Matcher.PATH_ALL, Matcher.PATH_ANY)

    @classmethod
    def from_string(cls, value: str) -> "Matcher":
        """Parse a Matcher from its string value."""
        for matcher in cls:
            if matcher.value == value:
                return matcher
        raise ConfigurationError(f"Unknown matcher: {value!r}")


class AcceptorState(str, Enum):
    """State a waiter moves to when an acceptor fires."""
    SUCCESS = "success"
    FAILURE = "failure"
    RETRY = "retry"

    @classmethod
    def from_string(cls, value: str) -> "AcceptorState":
        """Parse an AcceptorState from its string value."""
        for state in cls:
            if state.value == value:
                return state
        raise ConfigurationError(f"Unknown acceptor state: {value!r}")


def _coerce_state(acceptor: Any) -> None:
    if not isinstance(acceptor.state, AcceptorState):
        object.__setattr__(acceptor, "state", AcceptorState.from_string(acceptor.state))


@dataclass(frozen=True)
class _PathAcceptorBase:
    argument: str
    expected: Any
    state: AcceptorState
    path: Path = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        _coerce_state(self)
        if not isinstance(self.argument, str):
            raise ConfigurationError(f"Acceptor argument must be a string, got {self.argument!r}")
        # Compiling here surfaces malformed paths at load time
        object.__setattr__(self, "path", compile_path(self.argument))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire format."""
        return {
            "matcher": self.matcher.value,
            "argument": self.argument,
            "expected": self.expected,
            "state": self.state.value,
        }


@dataclass(frozen=True)
class PathAcceptor(_PathAcceptorBase):
    """Fires when the path yields exactly one value equal to expected."""
    matcher = Matcher.PATH


@dataclass(frozen=True)
class PathAllAcceptor(_PathAcceptorBase):
    """Fires when the path yields a non-empty list whose values all equal expected."""
    matcher = Matcher.PATH_ALL


@dataclass(frozen=True)
class PathAnyAcceptor(_PathAcceptorBase):
    """Fires when at least one value yielded by the path equals expected."""
    matcher = Matcher.PATH_ANY


@dataclass(frozen=True)
class StatusAcceptor:
    """Fires when a response carries the expected HTTP status code."""
    expected: int
    state: AcceptorState
    matcher = Matcher.STATUS

    def __post_init__(self):
        _coerce_state(self)
        if isinstance(self.expected, bool) or not isinstance(self.expected, int):
            raise ConfigurationError(
                f"status acceptor expects an integer status code, got {self.expected!r}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire format."""
        return {
            "matcher": self.matcher.value,
            "expected": self.expected,
            "state": self.state.value,
        }


@dataclass(frozen=True)
class ErrorAcceptor:
    """Fires when the operation raised an error with the expected code."""
    expected: str
    state: AcceptorState
    matcher = Matcher.ERROR

    def __post_init__(self):
        _coerce_state(self)
        if not isinstance(self.expected, str) or not self.expected:
            raise ConfigurationError(
                f"error acceptor expects a non-empty error code, got {self.expected!r}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire format."""
        return {
            "matcher": self.matcher.value,
            "expected": self.expected,
            "state": self.state.value,
        }


Acceptor = Union[PathAcceptor, PathAllAcceptor, PathAnyAcceptor, StatusAcceptor, ErrorAcceptor]

_PATH_TYPES = {
    Matcher.PATH: PathAcceptor,
    Matcher.PATH_ALL: PathAllAcceptor,
    Matcher.PATH_ANY: PathAnyAcceptor,
}

KNOWN_KEYS = {"matcher", "argument", "expected", "state"}


def parse_acceptor(data: dict[str, Any]) -> Acceptor:
    """
    Build an Acceptor from its wire-format dictionary.

    Args:
        data: Mapping with matcher, expected, state and optional argument

    Returns:
        The matching Acceptor variant

    Raises:
        ConfigurationError: If the entry is malformed
    """
    if not isinstance(data, dict):
        raise ConfigurationError(f"Acceptor must be a mapping, got {type(data).__name__}")

    unknown = set(data) - KNOWN_KEYS
    if unknown:
        raise ConfigurationError(f"Unknown acceptor fields: {sorted(unknown)}")

    for key in ("matcher", "state"):
        if key not in data:
            raise ConfigurationError(f"Acceptor is missing '{key}': {data}")
    if "expected" not in data:
        raise ConfigurationError(f"Acceptor is missing 'expected': {data}")

    matcher = Matcher.from_string(data["matcher"])
    state = AcceptorState.from_string(data["state"])
    argument = data.get("argument")

    if matcher.requires_argument:
        if not argument:
            raise ConfigurationError(f"{matcher.value} acceptor requires an 'argument'")
        return _PATH_TYPES[matcher](argument=argument, expected=data["expected"], state=state)

    if argument is not None:
        raise ConfigurationError(f"{matcher.value} acceptor must not have an 'argument'")

    if matcher == Matcher.STATUS:
        return StatusAcceptor(expected=data["expected"], state=state)
    return ErrorAcceptor(expected=data["expected"], state=state)
