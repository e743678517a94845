"""Character-level parsers.

``satisfy``, ``dont_satisfy`` and ``eof`` work on streams of any token type;
the rest expect a ``str`` stream.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from typing import Any

from weftparse.errors import Expected, ExpectedChar, Labelled, ParserError, Unexpected
from weftparse.parser import Parser, eof
from weftparse.result import ParseResult
from weftparse.stream import InputStream

__all__ = [
    "any_char", "any_of", "ascii_letter", "ascii_lower", "ascii_upper", "char",
    "digit", "dont_satisfy", "eof", "hex_digit", "inline_whitespace",
    "inline_whitespace1", "letter", "letter_or_digit", "lower", "many1_satisfy",
    "many_satisfy", "newline", "none_of", "not_char", "octal_digit", "parse_int",
    "regex", "satisfy", "skip_many1_satisfy", "skip_many_satisfy", "string",
    "string_ci", "string_ig", "tab", "upper", "whitespace", "whitespace1",
]

UNEXPECTED_EOF = Unexpected("end of file")
EXPECTED_NEWLINE = Expected("newline")
PARTIAL_CRLF = Labelled("newline", "Expected \\r to be followed by \\n.")
AT_LEAST_ONE_WHITESPACE = Expected("at least one whitespace")


def _fail(stream: InputStream, error: ParserError) -> ParseResult:
    return ParseResult.failure(stream.make_error(error), stream.index, stream.index)


def _take(stream: InputStream, count: int, value: Any) -> ParseResult:
    start = stream.index
    return ParseResult.success(value, start, stream.step(count))


# ── Single tokens ────────────────────────────────────────────────


def satisfy(pred: Callable[[Any], bool], expected: str | None = None) -> Parser:
    """Parse one token for which ``pred`` holds."""
    err = None if expected is None else Expected(expected)

    def fn(stream: InputStream) -> ParseResult:
        if stream.empty:
            return _fail(stream, err or UNEXPECTED_EOF)
        token = stream.next
        if not pred(token):
            return _fail(stream, err or stream.witness.unexpected(token))
        return _take(stream, 1, token)

    return Parser(fn, expected)


def dont_satisfy(pred: Callable[[Any], bool], unexpected: str | None = None) -> Parser:
    """Parse one token for which ``pred`` does not hold."""
    err = None if unexpected is None else Unexpected(unexpected)

    def fn(stream: InputStream) -> ParseResult:
        if stream.empty:
            return _fail(stream, err or UNEXPECTED_EOF)
        token = stream.next
        if pred(token):
            return _fail(stream, err or stream.witness.unexpected(token))
        return _take(stream, 1, token)

    return Parser(fn, unexpected)


def char(c: str, expected: str | None = None) -> Parser:
    """Parse the character ``c``. ``expected`` names characters that print badly."""
    err = ExpectedChar(c) if expected is None else Expected(expected)

    def fn(stream: InputStream) -> ParseResult:
        if stream.maybe_next == c:
            return _take(stream, 1, c)
        return _fail(stream, err)

    return Parser(fn, repr(c))


def not_char(c: str, expected: str | None = None) -> Parser:
    err = Unexpected(repr(c)) if expected is None else Expected(expected)

    def fn(stream: InputStream) -> ParseResult:
        if stream.empty or stream.next == c:
            return _fail(stream, err)
        return _take(stream, 1, stream.next)

    return Parser(fn)


def any_char() -> Parser:
    err = Expected("any character")

    def fn(stream: InputStream) -> ParseResult:
        if stream.empty:
            return _fail(stream, err)
        return _take(stream, 1, stream.next)

    return Parser(fn)


def any_of(chars: Iterable[str]) -> Parser:
    chars = list(chars)
    return satisfy(set(chars).__contains__, f"any of {', '.join(chars)}")


def none_of(chars: Iterable[str]) -> Parser:
    chars = list(chars)
    members = set(chars)
    return satisfy(lambda c: c not in members, f"any except {', '.join(chars)}")


# ── Runs of characters ───────────────────────────────────────────


def _run_length(stream: InputStream, pred: Callable[[str], bool]) -> int:
    tokens = stream.tokens
    start = stream.index
    end = start
    while end < len(tokens) and pred(tokens[end]):
        end += 1
    return end - start


def _many_satisfy(
    pred: Callable[[str], bool], at_least_one: bool, expected: str | None, keep: bool,
) -> Parser:
    at_least = Expected(f"at least one {expected}")
    latent = None if expected is None else Expected(expected)

    def fn(stream: InputStream) -> ParseResult:
        length = _run_length(stream, pred)
        if length == 0:
            if at_least_one:
                return _fail(stream, at_least)
            return ParseResult.success("" if keep else None, stream.index, stream.index, stream.make_error(latent))
        start = stream.index
        value = stream.tokens[start:start + length] if keep else None
        return _take(stream, length, value)

    return Parser(fn, expected)


def many_satisfy(pred: Callable[[str], bool], expected: str | None = None) -> Parser:
    """Parse the longest run of characters satisfying ``pred`` as a string."""
    return _many_satisfy(pred, False, expected, True)


def many1_satisfy(pred: Callable[[str], bool], expected: str | None = None) -> Parser:
    return _many_satisfy(pred, True, expected, True)


def skip_many_satisfy(pred: Callable[[str], bool], expected: str | None = None) -> Parser:
    return _many_satisfy(pred, False, expected, False)


def skip_many1_satisfy(pred: Callable[[str], bool], expected: str | None = None) -> Parser:
    return _many_satisfy(pred, True, expected, False)


def _whitespace(allow_newline: bool, at_least_one: bool) -> Parser:
    def is_space(c: str) -> bool:
        return c.isspace() and (allow_newline or c != "\n")

    def fn(stream: InputStream) -> ParseResult:
        length = _run_length(stream, is_space)
        if length == 0 and at_least_one:
            return _fail(stream, AT_LEAST_ONE_WHITESPACE)
        return _take(stream, length, None)

    return Parser(fn, "whitespace")


whitespace = _whitespace(True, False)
"""Zero or more whitespace characters, newlines included. Never fails."""
whitespace1 = _whitespace(True, True)
inline_whitespace = _whitespace(False, False)
"""Zero or more whitespace characters other than ``\\n``. Never fails."""
inline_whitespace1 = _whitespace(False, True)


def _newline(stream: InputStream) -> ParseResult:
    nxt = stream.maybe_next
    if nxt == "\n":
        return _take(stream, 1, "\n")
    if nxt == "\r":
        if stream.peek(1) == "\n":
            return _take(stream, 2, "\n")
        return _fail(stream, PARTIAL_CRLF)
    return _fail(stream, EXPECTED_NEWLINE)


newline = Parser(_newline, "newline")
"""``\\n`` or ``\\r\\n``, returned as ``\\n``."""


def tab() -> Parser:
    return char("\t", "Tab")


# ── Strings ──────────────────────────────────────────────────────


def regex(pattern: str, flags: int = 0) -> Parser:
    """Match ``pattern`` at the current position and return the ``re.Match``."""
    compiled = re.compile(pattern, flags)
    err = Expected(f"regex match for pattern /{pattern}/")

    def fn(stream: InputStream) -> ParseResult:
        m = compiled.match(stream.tokens, stream.index)
        if m is None:
            return _fail(stream, err)
        return _take(stream, m.end() - m.start(), m)

    return Parser(fn, pattern)


def _string(s: str, fold: bool, value: Callable[[str], Any]) -> Parser:
    err = Expected(f'"{s}"')
    target = s.lower() if fold else s

    def fn(stream: InputStream) -> ParseResult:
        start = stream.index
        found = stream.tokens[start:start + len(s)]
        if (found.lower() if fold else found) != target:
            return _fail(stream, err)
        return _take(stream, len(s), value(found))

    return Parser(fn, repr(s))


def string(s: str) -> Parser:
    return _string(s, False, lambda found: found)


def string_ig(s: str) -> Parser:
    """Match ``s`` and discard it."""
    return _string(s, False, lambda _: None)


def string_ci(s: str) -> Parser:
    """Match ``s`` case-insensitively and return the text as written in the input."""
    return _string(s, True, lambda found: found)


# ── Character classes ────────────────────────────────────────────


def _is_ascii_letter(c: str) -> bool:
    return "a" <= c <= "z" or "A" <= c <= "Z"


ascii_lower = satisfy(lambda c: "a" <= c <= "z", "lowercase ASCII")
ascii_upper = satisfy(lambda c: "A" <= c <= "Z", "uppercase ASCII")
ascii_letter = satisfy(_is_ascii_letter, "ASCII")
lower = satisfy(str.islower, "lowercase character")
upper = satisfy(str.isupper, "uppercase character")
letter = satisfy(str.isalpha, "letter")
letter_or_digit = satisfy(str.isalnum, "letter or digit")
digit = satisfy(str.isdigit, "digit")
hex_digit = satisfy(lambda c: c in "0123456789abcdefABCDEF", "hex")
octal_digit = satisfy(lambda c: c in "01234567", "octal")

parse_int = many1_satisfy(str.isdigit, "digit").map(int)
"""One or more digits as an ``int``."""

