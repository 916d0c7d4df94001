"""jest-style assertions for harness test bodies.

Every predicate raises ExpectationError on failure so the runner records the
case as FAILED. Nothing here returns a boolean.
"""

from __future__ import annotations

import inspect
import re
from collections.abc import Mapping, Sequence
from typing import Any, Awaitable, Callable

from pydantic import BaseModel

from .exceptions import ExpectationError


def _as_mapping(value: Any) -> Mapping[str, Any] | None:
    if isinstance(value, BaseModel):
        return {name: getattr(value, name) for name in type(value).model_fields}
    if isinstance(value, Mapping):
        return value
    return None


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _where(path: str) -> str:
    return f" at {path}" if path else ""


def assert_equal(actual: Any, expected: Any, path: str = "") -> None:
    """Recursively compare actual against expected, raising on the first mismatch."""
    if _is_sequence(expected):
        if not _is_sequence(actual):
            raise ExpectationError(
                f"Expected a sequence{_where(path)}, got {actual!r}"
            )
        if len(actual) != len(expected):
            raise ExpectationError(
                f"Expected length {len(expected)}{_where(path)}, got {len(actual)}"
            )
        for i, item in enumerate(expected):
            assert_equal(actual[i], item, f"{path}[{i}]")
        return

    expected_map = _as_mapping(expected)
    if expected_map is not None:
        actual_map = _as_mapping(actual)
        if actual_map is None:
            raise ExpectationError(
                f"Expected a mapping{_where(path)}, got {actual!r}"
            )
        if set(actual_map) != set(expected_map):
            raise ExpectationError(
                f"Expected keys {sorted(expected_map)}{_where(path)}, "
                f"got {sorted(actual_map)}"
            )
        for key, item in expected_map.items():
            assert_equal(actual_map[key], item, f"{path}.{key}" if path else key)
        return

    if actual != expected:
        raise ExpectationError(
            f"Expected {expected!r}{_where(path)}, got {actual!r}"
        )


def _check_match(error: BaseException, match: str | re.Pattern | None) -> None:
    if match is None:
        return
    if not re.search(match, str(error)):
        raise ExpectationError(
            f"Expected error matching {getattr(match, 'pattern', match)!r}, "
            f"got {error!r}"
        )


class Rejects:
    """Assertions about an async callable (or awaitable) that should raise."""

    def __init__(self, value: Callable[[], Awaitable[Any]] | Awaitable[Any]):
        self._value = value

    async def to_throw(self, match: str | re.Pattern | None = None) -> None:
        try:
            pending = self._value() if callable(self._value) else self._value
            if inspect.isawaitable(pending):
                await pending
        except Exception as e:
            _check_match(e, match)
            return
        raise ExpectationError("Expected an error to be raised")


class Expectation:
    def __init__(self, value: Any, negated: bool = False):
        self._value = value
        self._negated = negated

    @property
    def not_(self) -> "Expectation":
        return Expectation(self._value, negated=not self._negated)

    @property
    def rejects(self) -> Rejects:
        return Rejects(self._value)

    def _holds(self, ok: bool, message: str) -> None:
        if ok == self._negated:
            prefix = "Did not expect " if self._negated else "Expected "
            raise ExpectationError(prefix + message)

    def to_equal(self, expected: Any) -> None:
        if not self._negated:
            assert_equal(self._value, expected)
            return
        try:
            assert_equal(self._value, expected)
        except ExpectationError:
            return
        raise ExpectationError(f"Did not expect {self._value!r} to equal {expected!r}")

    def to_be(self, expected: Any) -> None:
        if isinstance(expected, (bool, type(None))):
            ok = self._value is expected
        else:
            ok = self._value == expected
        self._holds(ok, f"{self._value!r} to be {expected!r}")

    def to_be_defined(self) -> None:
        self._holds(self._value is not None, f"{self._value!r} to be defined")

    def to_be_falsy(self) -> None:
        self._holds(not self._value, f"{self._value!r} to be falsy")

    def to_be_truthy(self) -> None:
        self._holds(bool(self._value), f"{self._value!r} to be truthy")

    def to_be_greater_than_or_equal(self, expected: Any) -> None:
        self._holds(
            self._value >= expected, f"{self._value!r} to be >= {expected!r}"
        )

    def to_throw(self, match: str | re.Pattern | None = None) -> None:
        try:
            self._value()
        except Exception as e:
            _check_match(e, match)
            return
        raise ExpectationError("Expected an error to be raised")


def expect(value: Any) -> Expectation:
    return Expectation(value)
