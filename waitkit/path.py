"""
Path evaluator - extract values from structured responses.

Supported grammar:
    status                  field access
    stacks.0 / stacks[0]    indexed access (negative indexes count from the end)
    stacks[].stack_status   flatten a list and continue into each element
    a[].b[].c               nested flattening

Evaluation always returns a list. A missing field or out-of-range index
contributes nothing, so absence never raises; it just can't satisfy a
comparison.
"""

import re
from functools import lru_cache
from typing import Any, Mapping, Sequence

from waitkit.errors import ConfigurationError


# Either ".name" / "name" or "[n]" / "[]"
_TOKEN = re.compile(r"(?P<dot>\.)?(?P<field>[^.\[\]\s]+)|\[(?P<index>-?\d*)\]")

FIELD = "field"
INDEX = "index"
FLATTEN = "flatten"


class Path:
    """
    A compiled path expression.

    Compile once (at configuration load time) and evaluate many times.
    """

    def __init__(self, expression: str):
        if not isinstance(expression, str) or not expression.strip():
            raise ConfigurationError(f"Path expression must be a non-empty string, got {expression!r}")
        self.expression = expression
        self.steps = _compile(expression)

    @property
    def is_projection(self) -> bool:
        """True if the path can yield more than one value."""
        return any(kind == FLATTEN for kind, _ in self.steps)

    def evaluate(self, value: Any) -> list[Any]:
        """
        Evaluate the path against a structured value.

        Args:
            value: Response data (mappings, lists, scalars)

        Returns:
            List of matched values (empty if the chain is missing)
        """
        current = [value]
        for kind, arg in self.steps:
            nxt: list[Any] = []
            for item in current:
                if kind == FIELD:
                    if isinstance(item, Mapping) and arg in item:
                        nxt.append(item[arg])
                elif kind == INDEX:
                    if _is_list(item) and -len(item) <= arg < len(item):
                        nxt.append(item[arg])
                else:  # FLATTEN
                    if _is_list(item):
                        nxt.extend(item)
            current = nxt
            if not current:
                break
        return current

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Path) and other.expression == self.expression

    def __hash__(self) -> int:
        return hash(self.expression)

    def __repr__(self) -> str:
        return f"Path({self.expression!r})"


def _is_list(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _compile(expression: str) -> tuple[tuple[str, Any], ...]:
    """Tokenize an expression into (kind, arg) steps."""
    steps: list[tuple[str, Any]] = []
    pos = 0
    while pos < len(expression):
        match = _TOKEN.match(expression, pos)
        if match is None:
            raise ConfigurationError(
                f"Invalid path expression {expression!r} at position {pos}"
            )

        field = match.group("field")
        if field is not None:
            has_dot = match.group("dot") is not None
            # First token must not start with a dot, later ones must
            if has_dot == (not steps):
                raise ConfigurationError(
                    f"Invalid path expression {expression!r} at position {pos}"
                )
            if field.lstrip("-").isdigit() and has_dot:
                # "stacks.0" is indexed access
                steps.append((INDEX, int(field)))
            else:
                steps.append((FIELD, field))
        else:
            index = match.group("index")
            if index == "":
                steps.append((FLATTEN, None))
            elif index == "-":
                raise ConfigurationError(f"Invalid index in path expression {expression!r}")
            else:
                steps.append((INDEX, int(index)))

        pos = match.end()

    return tuple(steps)


@lru_cache(maxsize=256)
def compile_path(expression: str) -> Path:
    """Compile and cache a path expression."""
    return Path(expression)


def evaluate(path: str, value: Any) -> list[Any]:
    """Evaluate a path expression string against a value."""
    return compile_path(path).evaluate(value)
