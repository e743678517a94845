"""Shared test helpers for the weftparse test suite."""

from __future__ import annotations

from typing import Any

from weftparse.errors import LocatedParserError, ParserError, flatten
from weftparse.parser import Parser
from weftparse.result import ParseResult
from weftparse.stream import InputStream


def run(parser: Parser, text: str) -> tuple[ParseResult, InputStream]:
    """Run parser over text, returning the result and the stream it used."""
    stream = InputStream(text, "test parser")
    return parser(stream), stream


def assert_success(parser: Parser, text: str, expected: Any) -> ParseResult:
    result, _ = run(parser, text)
    assert result.ok, f"expected success on {text!r}, got {result.error}"
    assert result.value == expected
    return result


def assert_fail(
    parser: Parser, text: str, error: ParserError, index: int | None = None,
) -> LocatedParserError:
    """Assert parser fails on text with the (flattened) error, optionally at index."""
    result, _ = run(parser, text)
    assert not result.ok, f"expected failure on {text!r}, got {result.value!r}"
    assert result.error is not None, "failure carried no error"
    if index is None:
        assert result.error.error == error
    else:
        assert flatten(result.error.error) == flatten(error)
        assert result.error.start == index
    return result.error
