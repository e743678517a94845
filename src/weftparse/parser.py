"""Parser values and the generic combinators that build them.

A parser is a function from an ``InputStream`` to a ``ParseResult``. Every
combinator follows one rule: a failure that consumed input (``FATAL``) is
final, a failure that did not (``ERROR``) may be recovered by an alternative.
Only ``attempt`` and the ``*_try`` lookaheads turn the former into the latter.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from weftparse.errors import (
    ErrorRenderer,
    Expected,
    Failure,
    IncorrectNumber,
    Labelled,
    LocatedParserError,
    OneOf,
    ParseFailure,
    ParserError,
    Unexpected,
)
from weftparse.result import ParseResult, ResultStatus, merge_errors
from weftparse.source import PositionRange
from weftparse.stream import InputStream

logger = logging.getLogger(__name__)

FATAL = ResultStatus.FATAL
ERROR = ResultStatus.ERROR


def _inner(located: LocatedParserError | None) -> ParserError | None:
    return None if located is None else located.error


def _no_progress(name: str, start: int, index: int) -> ParseResult:
    error = LocatedParserError(
        index, index, Failure(f"{name} parser parsed an object without consuming text."),
    )
    return ParseResult.failure(error, start, index + 1)


def _as_stream(tokens: Any, user_state: Any = None) -> InputStream:
    if isinstance(tokens, InputStream):
        return tokens
    return InputStream(tokens, user_state=user_state)


class Parser:
    """A composable parser.

    Combinators are available as methods, so grammars read left to right::

        pair = char("(").ig_then(parse_int).then_ig(char(")"))
    """

    def __init__(self, fn: Callable[[InputStream], ParseResult], name: str | None = None) -> None:
        self.fn = fn
        self.name = name

    def __call__(self, stream: InputStream) -> ParseResult:
        return self.fn(stream)

    def __repr__(self) -> str:
        return f"<Parser {self.name or self.fn.__name__}>"

    # ── Execution ────────────────────────────────────────────────

    def run(self, tokens: Any, user_state: Any = None) -> ParseResult:
        """Apply this parser to ``tokens`` (a sequence or an ``InputStream``)."""
        return self(_as_stream(tokens, user_state))

    def parse(self, tokens: Any, user_state: Any = None, *, color: bool = False) -> Any:
        """Return the parsed value, or raise ``ParseFailure`` with a rendered report."""
        stream = _as_stream(tokens, user_state)
        result = self(stream)
        if result.ok:
            return result.value
        if result.error is None:
            report = f"Parsing {stream.description} failed at index {result.start}."
        else:
            report = ErrorRenderer(stream, color=color).render_report(result.error)
        logger.debug("parse of %s failed: %s", stream.description, result.error)
        raise ParseFailure(result.error, report)

    # ── Sequencing ───────────────────────────────────────────────

    def pipe(self, other: Parser, project: Callable[[Any, Any], Any]) -> Parser:
        """Parse ``self`` then ``other`` and combine both values with ``project``."""
        first = self

        def fn(stream: InputStream) -> ParseResult:
            rx = first(stream)
            if not rx.ok:
                return rx
            ry = other(stream).with_preceding(rx)
            if not ry.ok:
                return ry
            return ry.with_value(project(rx.value, ry.value))

        return Parser(fn)

    def then(self, other: Parser) -> Parser:
        return self.pipe(other, lambda a, b: (a, b))

    def then_ig(self, other: Parser) -> Parser:
        return self.pipe(other, lambda a, _: a)

    def ig_then(self, other: Parser) -> Parser:
        return self.pipe(other, lambda _, b: b)

    __rshift__ = ig_then
    __lshift__ = then_ig

    def between(self, left: Parser, right: Parser | None = None) -> Parser:
        """Parse ``left``, this parser, then ``right`` (default ``left``)."""
        return left.ig_then(self).then_ig(right if right is not None else left)

    def then_eof(self) -> Parser:
        return self.then_ig(eof())

    # ── Alternatives ─────────────────────────────────────────────

    def or_(self, other: Parser) -> Parser:
        first = self

        def fn(stream: InputStream) -> ParseResult:
            r1 = first(stream)
            if r1.status is not ERROR:
                return r1
            r2 = other(stream)
            return ParseResult(r2.value, merge_errors(r1, r2), r2.start, r2.end)

        return Parser(fn)

    __or__ = or_

    def attempt(self) -> Parser:
        """Turn a fatal failure into a recoverable one by rewinding the stream."""
        p = self

        def fn(stream: InputStream) -> ParseResult:
            state = stream.state
            r = p(stream)
            if r.status is FATAL:
                stream.rollback(state, r.error)
                return r.as_error()
            return r

        return Parser(fn)

    def label(self, text: str) -> Parser:
        p = self

        def fn(stream: InputStream) -> ParseResult:
            r = p(stream)
            if r.ok:
                return r
            return r.with_error(LocatedParserError(r.start, r.end, Labelled(text, _inner(r.error))))

        return Parser(fn, text)

    # ── Optional values ──────────────────────────────────────────

    def _recover(self, on_ok: Callable[[Any], Any], default: Any) -> Parser:
        p = self

        def fn(stream: InputStream) -> ParseResult:
            r = p(stream)
            if r.ok:
                return r.with_value(on_ok(r.value))
            if r.status is ERROR:
                return ParseResult.success(default, r.start, r.end, r.error)
            return r

        return Parser(fn)

    def opt(self) -> Parser:
        """The parsed value, or ``None`` if the parser failed without consuming."""
        return self._recover(lambda v: v, None)

    optional_or_none = opt

    def optional(self) -> Parser:
        return self._recover(lambda _: None, None)

    def optional_or(self, default: Any) -> Parser:
        return self._recover(lambda v: v, default)

    def not_empty(self) -> Parser:
        p = self

        def fn(stream: InputStream) -> ParseResult:
            r = p(stream)
            if r.ok and not r.consumed:
                error = LocatedParserError(r.start, r.start, Expected("non-empty parse result"))
                return ParseResult.failure(error, r.start, r.end)
            return r

        return Parser(fn)

    # ── Repetition ───────────────────────────────────────────────

    def _many(self, at_least_one: bool, collect: bool, name: str) -> Parser:
        p = self

        def fn(stream: InputStream) -> ParseResult:
            start = stream.index
            results: list = []
            while True:
                r = p(stream)
                if r.status is FATAL:
                    return ParseResult.failure(r.error, start, r.end)
                if r.status is ERROR:
                    if at_least_one and not results:
                        error = IncorrectNumber(1, 0, None, _inner(r.error))
                        return ParseResult.failure(LocatedParserError(start, start, error), start, start)
                    return ParseResult.success(results if collect else None, start, r.end, r.error)
                if not r.consumed:
                    return _no_progress(name, start, r.start)
                results.append(r.value)

        return Parser(fn)

    def many(self) -> Parser:
        return self._many(False, True, "Many")

    def many1(self) -> Parser:
        return self._many(True, True, "Many")

    def skip_many(self) -> Parser:
        return self._many(False, False, "SkipMany")

    def skip_many1(self) -> Parser:
        return self._many(True, False, "SkipMany")

    def sep_by(self, sep: Parser, at_least_one: bool = False) -> Parser:
        """Parse ``self (sep self)*``, returning the element values."""
        ele = self

        def fn(stream: InputStream) -> ParseResult:
            start = stream.index
            r = ele(stream)
            if r.status is FATAL:
                return r
            if r.status is ERROR:
                if at_least_one:
                    error = IncorrectNumber(1, 0, None, _inner(r.error))
                    return ParseResult.failure(LocatedParserError(start, start, error), start, start)
                return ParseResult.success([], start, r.end, r.error)
            results = [r.value]
            while True:
                before = stream.index
                rs = sep(stream)
                if rs.status is FATAL:
                    return ParseResult.failure(rs.error, start, rs.end)
                if rs.status is ERROR:
                    return ParseResult.success(results, start, r.end, r.error)
                re = ele(stream)
                if not re.ok:
                    return ParseResult.failure(merge_errors(rs, re), start, re.end)
                if re.end == before:
                    return _no_progress("SepBy", start, before)
                results.append(re.value)
                r = re

        return Parser(fn)

    def sep_by1(self, sep: Parser) -> Parser:
        return self.sep_by(sep, True)

    def sep_by_all(self, sep: Parser, min_elements: int = 0) -> Parser:
        """Parse ``self (sep self)*`` keeping separators in the result list.

        Fails with ``IncorrectNumber`` if fewer than ``min_elements`` elements
        were parsed.
        """
        ele = self

        def fn(stream: InputStream) -> ParseResult:
            start = stream.index
            results: list = []
            count = 0
            r = ele(stream)
            while True:
                if r.status is FATAL:
                    return ParseResult.failure(r.error, start, r.end)
                if r.status is ERROR:
                    break
                results.append(r.value)
                count += 1
                before = stream.index
                rs = sep(stream)
                if rs.status is FATAL:
                    return ParseResult.failure(rs.error, start, rs.end)
                if rs.status is ERROR:
                    break
                re = ele(stream)
                if not re.ok:
                    return ParseResult.failure(merge_errors(rs, re), start, re.end)
                if re.end == before:
                    return _no_progress("SepByAll", start, before)
                results.append(rs.value)
                r = re
            if count < min_elements:
                error = IncorrectNumber(min_elements, count, None, _inner(r.error))
                return ParseResult.failure(LocatedParserError(start, start, error), start, stream.index)
            return ParseResult.success(results, start, stream.index, r.error)

        return Parser(fn)

    def repeat(self, times: int) -> Parser:
        """Apply the parser exactly ``times`` times."""
        if times == 0:
            return pure([])
        p = self

        def fn(stream: InputStream) -> ParseResult:
            start = stream.index
            results: list = []
            r = None
            for _ in range(times):
                r = p(stream)
                if r.status is FATAL:
                    return ParseResult.failure(r.error, start, r.end)
                if r.status is ERROR:
                    error = IncorrectNumber(times, len(results), None, _inner(r.error))
                    return ParseResult.failure(LocatedParserError(r.start, r.start, error), start, r.end)
                if not r.consumed:
                    return _no_progress("Repeat", start, r.start)
                results.append(r.value)
            return ParseResult.success(results, start, r.end, r.error)

        return Parser(fn)

    # ── Lookahead ────────────────────────────────────────────────

    def _try(self, second: Parser, combine: Callable[[Any, Any], Any]) -> Parser:
        first = self

        def fn(stream: InputStream) -> ParseResult:
            state = stream.state
            rx = first(stream)
            if not rx.ok:
                return rx
            ry = second(stream)
            if ry.status is ERROR:
                stream.rollback(state, ry.error)
                return ParseResult.failure(merge_errors(rx, ry), state.index, state.index)
            ry = ry.with_preceding(rx)
            if not ry.ok:
                return ry
            return ry.with_value(combine(rx.value, ry.value))

        return Parser(fn)

    def then_try(self, second: Parser) -> Parser:
        """Like ``then``, but backtrack to the start if ``second`` fails without consuming."""
        return self._try(second, lambda a, b: (a, b))

    def then_try_ig(self, second: Parser) -> Parser:
        return self._try(second, lambda a, _: a)

    def ig_then_try(self, second: Parser) -> Parser:
        return self._try(second, lambda _, b: b)

    def is_present(self) -> Parser:
        """Succeed with the parsed value if the parser would succeed, without consuming."""
        p = self

        def fn(stream: InputStream) -> ParseResult:
            state = stream.state
            r = p(stream)
            stream.rollback_fast(state)
            return ParseResult(r.value, r.error, r.start, r.start)

        return Parser(fn)

    def is_not_present(self, expected: str | None = None) -> Parser:
        """Succeed without consuming if the parser would fail here."""
        p = self
        unexpected = Unexpected(expected or "(No description provided)")

        def fn(stream: InputStream) -> ParseResult:
            state = stream.state
            r = p(stream)
            stream.rollback_fast(state)
            if r.ok:
                return ParseResult.failure(
                    LocatedParserError(state.index, state.index, unexpected), state.index, state.index,
                )
            return ParseResult.success(None, state.index, state.index)

        return Parser(fn)

    # ── Values and positions ─────────────────────────────────────

    def map(self, fn: Callable[[Any], Any]) -> Parser:
        p = self
        return Parser(lambda stream: p(stream).map(fn))

    def apply(self, arg: Parser) -> Parser:
        """Parse a function, then its argument, and apply one to the other."""
        return self.pipe(arg, lambda f, a: f(a))

    def bind(self, fn: Callable[[Any], Parser]) -> Parser:
        """Choose the next parser from the value of this one."""
        p = self

        def run_bound(stream: InputStream) -> ParseResult:
            rx = p(stream)
            if not rx.ok:
                return rx
            return fn(rx.value)(stream).with_preceding(rx)

        return Parser(run_bound)

    def wrap_position(self, condense: Callable[[Any, PositionRange], Any]) -> Parser:
        """Combine the value with the ``PositionRange`` it was parsed from."""
        p = self

        def fn(stream: InputStream) -> ParseResult:
            start = stream.position
            r = p(stream)
            if not r.ok:
                return r
            return r.with_value(condense(r.value, PositionRange(start, stream.position)))

        return Parser(fn)

    def wrap_position_i(self, condense: Callable[[int, Any, int], Any]) -> Parser:
        """Combine the value with the start and (exclusive) end token indices."""
        p = self

        def fn(stream: InputStream) -> ParseResult:
            r = p(stream)
            if not r.ok:
                return r
            return r.with_value(condense(r.start, r.value, r.end))

        return Parser(fn)


class Forward(Parser):
    """A parser defined after it is referenced, for recursive grammars.

    ::

        expr = Forward("expression")
        term = parse_int | expr.between(char("("), char(")"))
        expr.define(term.sep_by1(char("+")))
    """

    def __init__(self, name: str | None = None) -> None:
        self._target: Parser | None = None
        super().__init__(self._call, name)

    def _call(self, stream: InputStream) -> ParseResult:
        if self._target is None:
            raise RuntimeError(f"forward parser {self.name or ''} was used before it was defined")
        return self._target(stream)

    def define(self, parser: Parser) -> Forward:
        if self._target is not None:
            raise RuntimeError(f"forward parser {self.name or ''} is already defined")
        self._target = parser
        return self


# ── Primitive parsers ────────────────────────────────────────────


def run(parser: Parser, stream: InputStream) -> ParseResult:
    return parser(stream)


def pure(value: Any) -> Parser:
    """Succeed with ``value`` without consuming anything."""
    return Parser(lambda stream: ParseResult.success(value, stream.index, stream.index))


def ignore() -> Parser:
    return pure(None)


def fail(message: str) -> Parser:
    """Fail fatally with ``message``. The stream itself is not advanced."""

    def fn(stream: InputStream) -> ParseResult:
        index = stream.index
        return ParseResult.failure(LocatedParserError(index, index, Failure(message)), index, index + 1)

    return Parser(fn)


def error(err: ParserError) -> Parser:
    """Fail recoverably with ``err``."""

    def fn(stream: InputStream) -> ParseResult:
        return ParseResult.failure(stream.make_error(err), stream.index, stream.index)

    return Parser(fn)


def eof() -> Parser:
    """Succeed only at the end of the stream."""
    expected = Expected("end of file")

    def fn(stream: InputStream) -> ParseResult:
        if stream.empty:
            return ParseResult.success(None, stream.index, stream.index)
        return ParseResult.failure(stream.make_error(expected), stream.index, stream.index)

    return Parser(fn, "eof")


def choice(*parsers: Parser) -> Parser:
    """Try each parser in order; collect the errors of the ones that failed without consuming."""
    if not parsers:
        raise ValueError("choice requires at least one parser")

    def fn(stream: InputStream) -> ParseResult:
        start = stream.index
        errors: list[ParserError] = []
        r = None
        for p in parsers:
            r = p(stream)
            if r.consumed:
                return r
            if r.error is not None:
                errors.append(r.error.error)
            if r.ok:
                break
        located = LocatedParserError(start, start, OneOf(errors)) if errors else None
        return r.with_error(located)

    return Parser(fn)


def choice_l(label: str, *parsers: Parser) -> Parser:
    """Like ``choice``, but report a single labelled error instead of every branch's."""
    if not parsers:
        raise ValueError("choice_l requires at least one parser")
    labelled = Labelled(label, "Couldn't parse any of the arms.")

    def fn(stream: InputStream) -> ParseResult:
        start = stream.index
        r = None
        for p in parsers:
            r = p(stream)
            if r.status is FATAL:
                return r
            if r.ok:
                return r if r.consumed else r.with_error(LocatedParserError(start, start, labelled))
        return r.with_error(LocatedParserError(start, start, labelled))

    return Parser(fn, label)


def sequential(*parsers: Parser, project: Callable[..., Any] | None = None) -> Parser:
    """Parse each parser in turn and pass all values to ``project`` (default: a tuple)."""
    if not parsers:
        raise ValueError("sequential requires at least one parser")

    def fn(stream: InputStream) -> ParseResult:
        values = []
        previous = None
        for p in parsers:
            r = p(stream)
            if previous is not None:
                r = r.with_preceding(previous)
            if not r.ok:
                return r
            values.append(r.value)
            previous = r
        return previous.with_value(project(*values) if project else tuple(values))

    return Parser(fn)


# ── User state ───────────────────────────────────────────────────


def get_state(expected_type: type | None = None) -> Parser:
    """Return the user state, failing if it is not an instance of ``expected_type``."""

    def fn(stream: InputStream) -> ParseResult:
        state = stream.user_state
        if expected_type is not None and not isinstance(state, expected_type):
            err = Failure(
                f"Expected state variable of type {expected_type.__name__}, "
                f"but received {type(state).__name__}"
            )
            return ParseResult.failure(stream.make_error(err), stream.index, stream.index)
        return ParseResult.success(state, stream.index, stream.index)

    return Parser(fn)


def set_state(value: Any) -> Parser:
    def fn(stream: InputStream) -> ParseResult:
        stream.update_state(value)
        return ParseResult.success(value, stream.index, stream.index)

    return Parser(fn)


def update_state(updater: Callable[[Any], Any]) -> Parser:
    def fn(stream: InputStream) -> ParseResult:
        value = updater(stream.user_state)
        stream.update_state(value)
        return ParseResult.success(value, stream.index, stream.index)

    return Parser(fn)


def get_position() -> Parser:
    return Parser(lambda stream: ParseResult.success(stream.position, stream.index, stream.index))

