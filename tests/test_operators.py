"""Tests for operator-precedence parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass

import pytest

from weftparse.errors import AmbiguousAssociativity, LocatedParserError, Unexpected, show_error
from weftparse.operators import Associativity, Infix, Postfix, Prefix, parse_operators
from weftparse.parser import Parser
from weftparse.result import ParseResult, ResultStatus
from weftparse.text import ascii_letter, parse_int, string, whitespace

from tests.helpers import run

OP_CHARS = set(":!#$%&*+./<=>?@\\^|-~")


@dataclass(frozen=True)
class Leaf:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class PrefixNode:
    op: str
    operand: object

    def __str__(self) -> str:
        return f"({self.op}{self.operand})"


@dataclass(frozen=True)
class PostfixNode:
    op: str
    operand: object

    def __str__(self) -> str:
        return f"({self.operand}{self.op})"


@dataclass(frozen=True)
class InfixNode:
    op: str
    left: object
    right: object

    def __str__(self) -> str:
        return f"({self.left}{self.op}{self.right})"


def reserved_op(op: str) -> Parser:
    """Helper: parse ``op`` between optional whitespace, unless more operator characters follow it."""
    text = string(op)
    continued = Unexpected(f"more operator characters after '{op}'")

    def fn(stream):
        start = stream.state
        whitespace(stream)
        r = text(stream)
        if not r.ok:
            stream.rollback_fast(start)
            return ParseResult.failure(r.error, start.index, start.index)
        if stream.maybe_next in OP_CHARS:
            stream.rollback_fast(start)
            error = LocatedParserError(start.index, start.index, continued)
            return ParseResult.failure(error, start.index, start.index)
        whitespace(stream)
        return ParseResult.success(r.value, start.index, stream.index)

    return Parser(fn, op)


def prefix(op: str, priority: int) -> Prefix:
    return Prefix(reserved_op(op), PrefixNode, priority)


def postfix(op: str, priority: int) -> Postfix:
    return Postfix(reserved_op(op), lambda x, s: PostfixNode(s, x), priority)


def infix(op: str, priority: int, assoc: Associativity) -> Infix:
    return Infix(reserved_op(op), lambda x, s, y: InfixNode(s, x, y), assoc, priority)


OPERATORS = [
    prefix("-", 10), postfix("++", 10),
    infix("+++", 9, Associativity.RIGHT),
    infix("*", 8, Associativity.LEFT), infix("#", 8, Associativity.NONE),
    infix("+", 6, Associativity.LEFT), infix("~", 6, Associativity.RIGHT),
    infix("=", 6, Associativity.NONE),
]

expression = parse_operators(OPERATORS, ascii_letter.map(Leaf))


def assert_tree(text: str, expected: str) -> None:
    result, _ = run(expression, text)
    assert result.ok, show_error(result.error.error)
    assert str(result.value) == expected


def assert_fail_regex(text: str, pattern: str) -> AmbiguousAssociativity:
    result, _ = run(expression, text)
    assert not result.ok
    assert re.search(pattern, show_error(result.error.error))
    return result.error.error


class TestAssociativity:
    def test_prefix_binds_tighter_than_unspaced_postfix(self):
        # "++*" is not a reserved operator, so parsing stops after "- x"
        assert_tree("- x++*y", "(-x)")

    def test_postfix_then_infix(self):
        assert_tree("-x++ *y", "(((-x)++)*y)")

    def test_left(self):
        assert_tree("x*y*z*a", "(((x*y)*z)*a)")

    def test_priorities(self):
        assert_tree("x*y+z*a", "((x*y)+(z*a))")

    def test_right(self):
        assert_tree("x~y~z~a", "(x~(y~(z~a)))")

    def test_non_associative_alone(self):
        assert_tree("x#y", "(x#y)")

    def test_mixed(self):
        assert_tree("x+++y~z*a++ +++ -b*c++", "((x+++y)~((z*((a++)+++(-b)))*(c++)))")

    def test_left_then_non(self):
        err = assert_fail_regex(
            "x*y#z",
            r"Found ambiguous non-associative operator # when parsing the left-associative operator \*",
        )
        assert isinstance(err, AmbiguousAssociativity)

    def test_multiple_non(self):
        assert_fail_regex("x#y#z", "multiple non-associative operators of the same priority")

    def test_left_then_right(self):
        assert_fail_regex(
            "x+y~z",
            r"Found ambiguous right-associative operator ~ when parsing the left-associative operator \+",
        )

    def test_right_then_left(self):
        assert_fail_regex(
            "x~y+z",
            r"Found ambiguous left-associative operator \+ when parsing the right-associative operator ~",
        )

    def test_equal_priorities_around_a_tighter_operator(self):
        assert_fail_regex(
            "x~y*z+w",
            r"Found ambiguous left-associative operator \+ when parsing the right-associative operator ~",
        )
        assert_fail_regex(
            "x~y*z=w",
            r"Found ambiguous non-associative operator = when parsing the right-associative operator ~",
        )

    def test_closed_operator_does_not_conflict(self):
        assert_tree("x*y+z#w", "((x*y)+(z#w))")
        assert_tree("x+y*z+w", "((x+(y*z))+w)")

    def test_ambiguity_is_fatal_at_operator(self):
        result, _ = run(expression, "x*y#z")
        assert result.status is ResultStatus.FATAL
        assert result.error.start == 3


class TestReservedOp:
    def test_longest_operator_wins(self):
        assert_tree("x+++y", "(x+++y)")

    def test_spaced_postfix(self):
        assert_tree("x++ +y", "((x++)+y)")


class TestOperatorTable:
    def test_missing_right_operand_is_fatal(self):
        result, _ = run(expression, "x+")
        assert result.status is ResultStatus.FATAL

    def test_term_only(self):
        assert_tree("x", "x")

    def test_prefix_only_table(self):
        negate = parse_operators([Prefix(string("-"), lambda _, x: -x, 1)], parse_int)
        assert run(negate, "--5")[0].value == 5

    def test_evaluating_builders(self):
        arithmetic = parse_operators(
            [
                Infix(string("+"), lambda a, _, b: a + b, Associativity.LEFT, 1),
                Infix(string("*"), lambda a, _, b: a * b, Associativity.LEFT, 2),
                Infix(string("^"), lambda a, _, b: a ** b, Associativity.RIGHT, 3),
            ],
            parse_int,
        )
        assert run(arithmetic, "1+2*3")[0].value == 7
        assert run(arithmetic, "2^3^2")[0].value == 512

    def test_rejects_non_operators(self):
        with pytest.raises(TypeError):
            parse_operators([object()], parse_int)
