"""
WaiterDef schema - the declarative waiter definition.

A WaiterDef is the static definition of one resource-state waiter:
which operation to poll, which acceptors decide the state, and the default
attempt/delay budget. Definitions are grouped into a WaiterModel, which is
the file format the registry loads:

    {
      "version": 2,
      "waiters": {
        "StackCreateComplete": {
          "operation": "DescribeStacks",
          "delay": 30,
          "maxAttempts": 120,
          "acceptors": [...]
        }
      }
    }
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from waitkit.errors import ConfigurationError, WaiterNotFoundError

from .acceptor import Acceptor, parse_acceptor

SUPPORTED_VERSIONS = (2,)

KNOWN_KEYS = {"operation", "delay", "maxAttempts", "acceptors", "description"}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class WaiterDef:
    """
    A waiter definition.

    Attributes:
        name: Waiter name (e.g. StackCreateComplete)
        operation: Name of the read operation to poll
        acceptors: Ordered acceptors, first firing one wins
        max_attempts: Default attempt ceiling (> 0)
        delay: Default seconds between attempts (>= 0)
        description: Optional human description
    """
    name: str
    operation: str
    acceptors: tuple[Acceptor, ...]
    max_attempts: int
    delay: float
    description: Optional[str] = None

    def __post_init__(self):
        if not self.operation or not isinstance(self.operation, str):
            raise ConfigurationError(f"Waiter '{self.name}': operation is required")
        if not self.acceptors:
            raise ConfigurationError(f"Waiter '{self.name}': at least one acceptor is required")
        if not isinstance(self.acceptors, tuple):
            object.__setattr__(self, "acceptors", tuple(self.acceptors))
        if not isinstance(self.max_attempts, int) or isinstance(self.max_attempts, bool) \
                or self.max_attempts < 1:
            raise ConfigurationError(
                f"Waiter '{self.name}': maxAttempts must be a positive integer, got {self.max_attempts!r}"
            )
        if not _is_number(self.delay) or self.delay < 0:
            raise ConfigurationError(
                f"Waiter '{self.name}': delay must be a non-negative number, got {self.delay!r}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire format (without the name)."""
        result: dict[str, Any] = {
            "operation": self.operation,
            "delay": self.delay,
            "maxAttempts": self.max_attempts,
            "acceptors": [a.to_dict() for a in self.acceptors],
        }
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "WaiterDef":
        """
        Deserialize from the wire format.

        Raises:
            ConfigurationError: If the definition is malformed
        """
        if not isinstance(data, dict):
            raise ConfigurationError(f"Waiter '{name}' must be a mapping")

        unknown = set(data) - KNOWN_KEYS
        if unknown:
            raise ConfigurationError(f"Waiter '{name}': unknown fields {sorted(unknown)}")

        for key in ("operation", "delay", "maxAttempts", "acceptors"):
            if key not in data:
                raise ConfigurationError(f"Waiter '{name}': missing '{key}'")

        raw_acceptors = data["acceptors"]
        if not isinstance(raw_acceptors, list):
            raise ConfigurationError(f"Waiter '{name}': acceptors must be a list")

        acceptors = []
        for i, acceptor_data in enumerate(raw_acceptors):
            try:
                acceptors.append(parse_acceptor(acceptor_data))
            except ConfigurationError as e:
                raise ConfigurationError(f"Waiter '{name}', acceptor {i}: {e}") from e

        return cls(
            name=name,
            operation=data["operation"],
            acceptors=tuple(acceptors),
            max_attempts=data["maxAttempts"],
            delay=data["delay"],
            description=data.get("description"),
        )


@dataclass(frozen=True)
class WaiterModel:
    """
    A versioned collection of waiter definitions.

    Attributes:
        version: Format version (only 2 is supported)
        waiters: Waiter definitions by name, in file order
    """
    version: int
    waiters: dict[str, WaiterDef] = field(default_factory=dict)

    def __post_init__(self):
        if self.version not in SUPPORTED_VERSIONS:
            raise ConfigurationError(
                f"Unsupported waiter model version: {self.version!r} "
                f"(supported: {list(SUPPORTED_VERSIONS)})"
            )

    @property
    def waiter_names(self) -> list[str]:
        return list(self.waiters.keys())

    def get_waiter(self, name: str) -> WaiterDef:
        """
        Get a waiter definition by name.

        Raises:
            WaiterNotFoundError: If no waiter has this name
        """
        if name not in self.waiters:
            raise WaiterNotFoundError(
                f"Waiter does not exist: {name}. Available: {self.waiter_names}"
            )
        return self.waiters[name]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire format."""
        return {
            "version": self.version,
            "waiters": {name: w.to_dict() for name, w in self.waiters.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WaiterModel":
        """
        Deserialize from the wire format.

        Raises:
            ConfigurationError: If the model or any waiter is malformed
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Waiter model must be a mapping")
        if "version" not in data:
            raise ConfigurationError("Waiter model is missing 'version'")

        raw_waiters = data.get("waiters", {})
        if not isinstance(raw_waiters, dict):
            raise ConfigurationError("Waiter model 'waiters' must be a mapping")

        waiters = {
            name: WaiterDef.from_dict(name, waiter_data)
            for name, waiter_data in raw_waiters.items()
        }
        return cls(version=data["version"], waiters=waiters)
