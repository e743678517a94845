"""Parser error model and diagnostic rendering.

Errors are plain values. Structural variants (``Expected``, ``Unexpected``,
``Failure``, ``IncorrectNumber``) describe one failure point; compositional
variants (``Labelled``, ``EitherOf``, ``OneOf``) describe how several of them
relate. ``EitherOf`` is transient and is always flattened into ``OneOf``
before it is shown.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from weftparse.source import Position
    from weftparse.stream import InputStream


@dataclass(frozen=True)
class Failure:
    message: str


@dataclass(frozen=True)
class ExpectedChar:
    char: str


@dataclass(frozen=True)
class Expected:
    description: str


@dataclass(frozen=True)
class UnexpectedChar:
    char: str


@dataclass(frozen=True)
class Unexpected:
    description: str


@dataclass(frozen=True)
class IncorrectNumber:
    """Fewer repetitions than required were parsed."""

    required: int
    received: int
    description: str | None = None
    inner: ParserError | None = None


@dataclass(frozen=True)
class Labelled:
    """Human-readable context around a lower-level failure."""

    label: str
    inner: ParserError | str | None = None


@dataclass(frozen=True)
class EitherOf:
    option_a: ParserError
    option_b: ParserError


@dataclass
class OneOf:
    """A flat set of errors, any of which would allow parsing to continue."""

    errors: list[ParserError] = field(default_factory=list)


@dataclass(frozen=True)
class AmbiguousAssociativity:
    """Two operators of the same priority whose associativities conflict."""

    current: str
    current_associativity: str
    current_position: Position
    unexpected: str
    unexpected_associativity: str
    unexpected_position: Position


ParserError = Union[
    Failure, ExpectedChar, Expected, UnexpectedChar, Unexpected,
    IncorrectNumber, Labelled, EitherOf, OneOf, AmbiguousAssociativity,
]


def join_with(first: ParserError, second: ParserError) -> ParserError:
    """Combine two alternative errors.

    A ``OneOf`` absorbs ``second`` in place so that long alternation chains
    stay one level deep.
    """
    if isinstance(first, OneOf):
        first.errors.append(second)
        return first
    return EitherOf(first, second)


def _enumerate(error: ParserError) -> Iterator[ParserError]:
    if isinstance(error, EitherOf):
        yield from _enumerate(error.option_a)
        yield from _enumerate(error.option_b)
    elif isinstance(error, OneOf):
        for inner in error.errors:
            yield from _enumerate(inner)
    else:
        yield error


def flatten(error: ParserError) -> ParserError:
    """Collapse nested ``EitherOf``/``OneOf`` into a single ``OneOf``.

    Repeated alternatives are kept once, at their first occurrence.
    """
    if isinstance(error, (EitherOf, OneOf)):
        unique: list[ParserError] = []
        for inner in _enumerate(error):
            # OneOf is unhashable
            if inner not in unique:
                unique.append(inner)
        return OneOf(unique)
    return error


def _indent(text: str) -> str:
    return text.replace("\n", "\n\t")


def show_error(error: ParserError) -> str:
    """Render the message of a single error (no location header)."""
    match error:
        case Failure(message):
            return f"Failure: {message}"
        case ExpectedChar(char):
            return f"Expected '{char}'"
        case Expected(description):
            return f"Expected {description}"
        case UnexpectedChar(char):
            return f"Did not expect '{char}'"
        case Unexpected(description):
            return f"Did not expect {description}"
        case IncorrectNumber(required, received, description, inner):
            of = "" if description is None else f" of {description}"
            text = f"Required {required} values{of}, but only received {received}."
            if inner is not None:
                text += "\n\t" + _indent(show_error(flatten(inner)))
            return text
        case Labelled(label, str() as inner):
            return f"Failed in parsing {label}: {inner}"
        case Labelled(label, None):
            return f"Failed in parsing {label}"
        case Labelled(label, inner):
            return f"Failed in parsing {label}:\n\t" + _indent(show_error(flatten(inner)))
        case EitherOf():
            return show_error(flatten(error))
        case OneOf(errors):
            if len(errors) == 1:
                return show_error(errors[0])
            return (
                "Parsing failed. Resolve any of the following errors to continue.\n\t"
                + _indent("\n".join(show_error(e) for e in errors))
            )
        case AmbiguousAssociativity(
            current, cur_assoc, cur_pos, unexpected, unexp_assoc, unexp_pos,
        ):
            if cur_assoc == "non" and unexp_assoc == "non":
                return (
                    "Found multiple non-associative operators of the same priority: "
                    f"{current} ({cur_pos}) and {unexpected} ({unexp_pos})"
                )
            return (
                f"Found ambiguous {unexp_assoc}-associative operator {unexpected} "
                f"when parsing the {cur_assoc}-associative operator {current} ({cur_pos})"
            )
    raise TypeError(f"not a parser error: {error!r}")


@dataclass(frozen=True)
class LocatedParserError:
    """An error anchored to the stream.

    ``start`` is the token index the error is reported at and ``end`` the
    index the stream had reached when the failure was recorded.
    """

    start: int
    end: int
    error: ParserError

    @property
    def consumed(self) -> bool:
        return self.end > self.start

    @staticmethod
    def merge(
        first: LocatedParserError | None, second: LocatedParserError | None,
    ) -> LocatedParserError | None:
        """Combine the error of a parser with the error of the one after it.

        If the second error consumed input it is strictly more informative
        and replaces the first.
        """
        if first is None:
            return second
        if second is None:
            return first
        if second.consumed:
            return second
        return LocatedParserError(second.start, second.end, join_with(first.error, second.error))


# ANSI color codes
_RED = "\033[1;31m"
_BOLD = "\033[1m"
_BLUE = "\033[1;34m"
_RESET = "\033[0m"

BACKTRACK_HEADER = "The parser backtracked after the following error:"


class ErrorRenderer:
    """Renders located errors against the stream they were raised on."""

    def __init__(self, stream: InputStream, *, color: bool = False) -> None:
        self.stream = stream
        self.color = color

    def _c(self, code: str) -> str:
        return code if self.color else ""

    def render(self, located: LocatedParserError) -> str:
        position = self.stream.position_at(located.start)
        lines = [f"{self._c(_RED)}Error at {position}:{self._c(_RESET)}"]
        source_line = self.stream.witness.source_line(position)
        if source_line is not None:
            source, marker = source_line
            lines.append(source)
            lines.append(f"{self._c(_BLUE)}{marker}{self._c(_RESET)}")
        lines.append(f"{self._c(_BOLD)}{show_error(flatten(located.error))}{self._c(_RESET)}")
        return "\n".join(lines)

    def render_report(self, located: LocatedParserError) -> str:
        """Render ``located`` followed by every error the stream backtracked past."""
        parts = [self.render(located)]
        for backtracked in self.stream.backtracked:
            parts.append(f"\n{BACKTRACK_HEADER}\n{self.render(backtracked)}")
        return "\n".join(parts)


class ParseFailure(Exception):
    """Top-level parse failure carrying the located error and its rendered report."""

    def __init__(self, error: LocatedParserError | None, report: str) -> None:
        self.error = error
        self.report = report
        super().__init__(report)


class StreamOverrunError(Exception):
    """A parser stepped past the end of its stream. This is a bug in the parser."""
