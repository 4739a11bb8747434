"""
Acceptor matcher - evaluate one acceptor against one outcome.

Matching rules:
- path:    the path yields exactly one value and it equals expected
- pathAll: the path yields at least one value and every value equals expected
- pathAny: at least one yielded value equals expected
- status:  a Response carrying a status code equal to expected
- error:   an ErrorOutcome whose code equals expected

Path and status matchers never fire on an ErrorOutcome; the error matcher
never fires on a Response.
"""

from typing import Any

from waitkit.schemas import Acceptor, Matcher, Outcome, Verdict


def values_equal(actual: Any, expected: Any) -> bool:
    """
    Strict equality used for every comparison with `expected`.

    No string/number coercion, and booleans never equal numbers
    (Python would otherwise treat True == 1). Dicts and lists are compared
    element by element under the same rules.
    """
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    if isinstance(actual, (int, float)) and isinstance(expected, (int, float)):
        return actual == expected
    if isinstance(actual, dict) and isinstance(expected, dict):
        if actual.keys() != expected.keys():
            return False
        return all(values_equal(actual[k], expected[k]) for k in expected)
    if isinstance(actual, list) and isinstance(expected, list):
        if len(actual) != len(expected):
            return False
        return all(values_equal(a, e) for a, e in zip(actual, expected))
    if type(actual) is not type(expected):
        return False
    return actual == expected


def matches(acceptor: Acceptor, outcome: Outcome) -> bool:
    """Return True if the acceptor fires on the outcome."""
    matcher = acceptor.matcher

    if matcher == Matcher.ERROR:
        return outcome.is_error and outcome.code == acceptor.expected

    if outcome.is_error:
        return False

    if matcher == Matcher.STATUS:
        return outcome.status_code is not None and values_equal(outcome.status_code, acceptor.expected)

    values = acceptor.path.evaluate(outcome.value)

    if matcher == Matcher.PATH:
        return len(values) == 1 and values_equal(values[0], acceptor.expected)
    elif matcher == Matcher.PATH_ALL:
        return len(values) > 0 and all(values_equal(v, acceptor.expected) for v in values)
    elif matcher == Matcher.PATH_ANY:
        return any(values_equal(v, acceptor.expected) for v in values)

    raise ValueError(f"Unknown matcher: {matcher}")


def evaluate(acceptor: Acceptor, outcome: Outcome) -> Verdict:
    """
    Evaluate an acceptor against an outcome.

    Args:
        acceptor: The rule to evaluate
        outcome: Response or ErrorOutcome from one invocation

    Returns:
        The acceptor's state as a Verdict if it fires, otherwise Verdict.NO_MATCH
    """
    if matches(acceptor, outcome):
        return Verdict(acceptor.state.value)
    return Verdict.NO_MATCH
