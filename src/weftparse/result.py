"""The outcome of applying one parser to a stream."""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

from weftparse.errors import LocatedParserError


class ResultStatus(enum.Enum):
    OK = "ok"
    ERROR = "error"
    FATAL = "fatal"


class _Nothing(enum.Enum):
    NOTHING = "NOTHING"

    def __repr__(self) -> str:
        return "NOTHING"


NOTHING = _Nothing.NOTHING
"""Marks a result with no value, so that ``None`` stays a valid parse value."""


@dataclass(frozen=True)
class ParseResult:
    """A value (or ``NOTHING``), the latest error, and the consumed index range.

    A successful result may still carry an error: the diagnostic an optional
    or repeating parser swallowed, reported if the next parser fails.
    """

    value: Any
    error: LocatedParserError | None
    start: int
    end: int

    @property
    def ok(self) -> bool:
        return self.value is not NOTHING

    @property
    def consumed(self) -> bool:
        return self.end > self.start

    @property
    def status(self) -> ResultStatus:
        if self.value is not NOTHING:
            return ResultStatus.OK
        if self.end > self.start:
            return ResultStatus.FATAL
        return ResultStatus.ERROR

    @staticmethod
    def success(
        value: Any, start: int, end: int, error: LocatedParserError | None = None,
    ) -> ParseResult:
        return ParseResult(value, error, start, end)

    @staticmethod
    def failure(error: LocatedParserError | None, start: int, end: int) -> ParseResult:
        return ParseResult(NOTHING, error, start, end)

    def cast_failure(self) -> ParseResult:
        """Drop the value; used to propagate a failure through a combinator."""
        return ParseResult(NOTHING, self.error, self.start, self.end)

    def with_value(self, value: Any) -> ParseResult:
        return replace(self, value=value)

    def with_error(self, error: LocatedParserError | None) -> ParseResult:
        return replace(self, error=error)

    def as_error(self) -> ParseResult:
        """A failure that consumed nothing, reported at this result's start."""
        return ParseResult(NOTHING, self.error, self.start, self.start)

    def with_preceding(self, previous: ParseResult) -> ParseResult:
        """Extend the range back to the start of ``previous`` and fold in its error."""
        return ParseResult(self.value, merge_errors(previous, self), previous.start, self.end)

    def map(self, fn: Callable[[Any], Any]) -> ParseResult:
        if self.value is NOTHING:
            return self
        return replace(self, value=fn(self.value))


def merge_errors(first: LocatedParserError | ParseResult | None, second: ParseResult) -> LocatedParserError | None:
    """Error of ``second`` run after ``first``.

    An error from a parser that consumed input replaces anything earlier;
    otherwise the two errors become alternatives.
    """
    first_error = first.error if isinstance(first, ParseResult) else first
    if second.consumed:
        return second.error
    return LocatedParserError.merge(first_error, second.error)
