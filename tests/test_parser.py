"""Tests for the parser combinators."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from weftparse.errors import (
    Expected,
    ExpectedChar,
    Failure,
    IncorrectNumber,
    Labelled,
    OneOf,
    ParseFailure,
)
from weftparse.parser import (
    Forward,
    choice,
    choice_l,
    eof,
    error,
    fail,
    get_position,
    get_state,
    pure,
    sequential,
    set_state,
    update_state,
)
from weftparse.result import NOTHING, ResultStatus
from weftparse.source import Position, PositionRange
from weftparse.stream import InputStream
from weftparse.text import (
    any_char,
    char,
    digit,
    letter,
    letter_or_digit,
    lower,
    many1_satisfy,
    many_satisfy,
    newline,
    parse_int,
    string,
    whitespace,
)

from tests.helpers import assert_fail, assert_success, run


@dataclass(frozen=True)
class Email:
    name: str
    domain: str
    tld: str


parse_email = sequential(
    many1_satisfy(str.isalnum, "letter or digit").label("Email name"),
    char("@"),
    many1_satisfy(str.isalpha, "letterA").label("Email domain"),
    char("."),
    many1_satisfy(str.isalpha, "letterB").label("Email TLD"),
    project=lambda name, _at, domain, _dot, tld: Email(name, domain, tld),
)


class TestBasics:
    def test_lower(self):
        assert_success(lower, "hello", "h")
        assert_fail(lower, "Hello", Expected("lowercase character"), 0)

    def test_pure_consumes_nothing(self):
        result = assert_success(pure(42), "abc", 42)
        assert not result.consumed

    def test_fail_is_fatal_without_stepping(self):
        result, stream = run(fail("boom"), "abc")
        assert result.status is ResultStatus.FATAL
        assert result.error.error == Failure("boom")
        assert stream.index == 0

    def test_error_is_recoverable(self):
        result, _ = run(error(Expected("thing")), "abc")
        assert result.status is ResultStatus.ERROR
        assert result.error.error == Expected("thing")

    def test_eof(self):
        assert_success(eof(), "", None)
        assert_fail(eof(), "x", Expected("end of file"), 0)

    def test_parse_returns_value(self):
        assert parse_int.parse("42") == 42

    def test_parse_raises_with_report(self):
        with pytest.raises(ParseFailure) as info:
            lower.then_eof().parse("hello")
        assert info.value.report == (
            "Error at Line 1, Col 2:\n"
            "hello\n"
            "h| <- at this location\n"
            "Expected end of file"
        )
        assert info.value.error.start == 1


class TestSequencing:
    def test_then_variants(self):
        assert_success(char("a").then_ig(char("b")), "ab", "a")
        assert_success(char("a").ig_then(char("b")), "ab", "b")
        assert_success(char("a").then(char("b")), "ab", ("a", "b"))

    def test_operator_aliases(self):
        assert_success(char("a") >> char("b"), "ab", "b")
        assert_success(char("a") << char("b"), "ab", "a")

    def test_then_error(self):
        assert_fail(char("a").then_ig(char("b")), "ac", ExpectedChar("b"))

    def test_failure_after_consumption_is_fatal(self):
        result, _ = run(char("a").then(char("b")), "ac")
        assert result.status is ResultStatus.FATAL
        assert (result.start, result.end) == (0, 1)

    def test_between(self):
        assert_success(parse_int.between(char("("), char(")")), "(12)", 12)
        assert_success(letter.between(char("|")), "|x|", "x")

    def test_success_error_is_reported_later(self):
        one_or_two = (
            char("(")
            .ig_then(parse_int.then(char(",").ig_then(whitespace).ig_then(parse_int).opt()))
            .then_ig(char(")"))
        )
        assert_success(one_or_two, "(1)", (1, None))
        assert_success(one_or_two, "(1, 6)", (1, 6))
        assert_fail(one_or_two, "(1 6)", OneOf([ExpectedChar(","), ExpectedChar(")")]), 2)

    def test_sequential_default_tuple(self):
        assert_success(sequential(char("a"), char("b"), char("c")), "abc", ("a", "b", "c"))


class TestSepBy:
    int_list = parse_int.sep_by(char(","))
    int_list1 = parse_int.sep_by1(char(","))

    def test_empty(self):
        assert_success(self.int_list, "abc", [])
        assert_success(self.int_list, "", [])

    def test_at_least_one(self):
        assert_fail(
            self.int_list1, "",
            IncorrectNumber(1, 0, None, Expected("at least one digit")), 0,
        )

    def test_values(self):
        assert_success(self.int_list, "2,366,41abc", [2, 366, 41])

    def test_latent_error_joins_eof(self):
        assert_fail(
            self.int_list.then_eof(), "abc",
            OneOf([Expected("at least one digit"), Expected("end of file")]), 0,
        )

    def test_separator_error_is_not_latent(self):
        assert_fail(self.int_list.then_eof(), "1,1a", Expected("end of file"), 3)

    def test_element_after_separator_is_required(self):
        assert_fail(self.int_list, "1,1,a", Expected("at least one digit"), 4)

    def test_sep_by_all_keeps_separators(self):
        p = parse_int.sep_by_all(char("+"))
        assert_success(p, "1+2+3", [1, "+", 2, "+", 3])

    def test_sep_by_all_minimum(self):
        p = parse_int.sep_by_all(char("+"), 3)
        err = assert_fail(p, "1+2", IncorrectNumber(3, 2, None, None), 0)
        assert err.start == 0

    def test_no_progress(self):
        assert_fail(
            pure(1).sep_by(pure(None)), "x",
            Failure("SepBy parser parsed an object without consuming text."),
        )


class TestLabel:
    def test_email_name(self):
        assert_fail(parse_email, "!!", Labelled("Email name", Expected("at least one letter or digit")))

    def test_unlabelled_parts(self):
        assert_fail(parse_email, "name!!", ExpectedChar("@"), 4)
        assert_fail(parse_email, "name@site!!", ExpectedChar("."), 9)

    def test_labelled_parts(self):
        assert_fail(parse_email, "name@!!", Labelled("Email domain", Expected("at least one letterA")), 5)
        assert_fail(parse_email, "name@site.!", Labelled("Email TLD", Expected("at least one letterB")), 10)

    def test_success(self):
        assert_success(parse_email, "name@site.com", Email("name", "site", "com"))

    def test_nested_labels(self):
        p = char("x").label("A").label("B")
        assert_fail(p, "y", Labelled("B", Labelled("A", ExpectedChar("x"))))

    def test_label_leaves_success_untouched(self):
        result = assert_success(char("x").label("A"), "x", "x")
        assert result.error is None


class TestRepetition:
    emails = parse_email.then_ig(newline).many()
    emails1 = parse_email.then_ig(newline).many1()
    three_emails = parse_email.then_ig(newline).repeat(3)
    two_lines = "a@b.net\nb@c.com\n"

    def test_many_empty(self):
        assert_success(self.emails, "!!!", [])

    def test_many1_requires_one(self):
        assert_fail(self.emails1, "!!!", IncorrectNumber(
            1, 0, None, Labelled("Email name", Expected("at least one letter or digit")),
        ))

    def test_many_fails_on_partial_item(self):
        assert_fail(self.emails, "a@b.net\nb@c.com", Expected("newline"), 15)

    def test_many_values(self):
        expected = [Email("a", "b", "net"), Email("b", "c", "com")]
        assert_success(self.emails, self.two_lines, expected)
        assert_success(self.emails1, self.two_lines, expected)

    def test_repeat_too_few(self):
        assert_fail(self.three_emails, self.two_lines, IncorrectNumber(
            3, 2, None, Labelled("Email name", Expected("at least one letter or digit")),
        ), 16)

    def test_repeat_exact(self):
        assert_success(self.three_emails, self.two_lines + "c@d.com\n", [
            Email("a", "b", "net"), Email("b", "c", "com"), Email("c", "d", "com"),
        ])

    def test_repeat_zero(self):
        assert_success(char("a").repeat(0), "", [])

    def test_skip_many(self):
        result = assert_success(char("a").skip_many(), "aaab", None)
        assert result.end == 3

    def test_skip_many1(self):
        assert_fail(char("a").skip_many1(), "b", IncorrectNumber(1, 0, None, ExpectedChar("a")))

    def test_many_without_progress_is_fatal(self):
        result, _ = run(many_satisfy(str.isdigit).many(), "abc")
        assert result.status is ResultStatus.FATAL
        assert result.error.error == Failure("Many parser parsed an object without consuming text.")


class TestAlternatives:
    ab = char("a").then(char("b"))
    ac = char("a").then(char("c"))
    bracketed = char("b").between(char("["), char("]"))

    def test_or_does_not_backtrack(self):
        assert_fail(self.ab | self.ac, "ac", ExpectedChar("b"), 1)

    def test_attempt_backtracks(self):
        result, stream = run(self.ab.attempt().or_(self.ac), "ac")
        assert result.value == ("a", "c")
        assert [e.error for e in stream.backtracked] == [ExpectedChar("b")]

    def test_consumed_prefix_blocks_second_branch(self):
        assert_fail(char("a").then(self.bracketed) | self.ac, "ac", ExpectedChar("["), 1)

    def test_backtracked_error_keeps_its_alternatives(self):
        p = char("a").then(choice(char("b"), char("c"))).attempt() | char("d")
        result, stream = run(p, "az")
        assert not result.ok
        assert stream.backtracked[0].error == OneOf([ExpectedChar("b"), ExpectedChar("c")])

    def test_or_joins_errors(self):
        assert_fail(char("a") | char("b"), "c", OneOf([ExpectedChar("a"), ExpectedChar("b")]), 0)

    def test_choice(self):
        p = choice(char("a"), char("b"), char("c"))
        assert_success(p, "b", "b")
        assert_fail(p, "d", OneOf([ExpectedChar("a"), ExpectedChar("b"), ExpectedChar("c")]), 0)

    def test_choice_returns_consumed_failure(self):
        assert_fail(choice(self.ac, char("a")), "ab", ExpectedChar("c"), 1)

    def test_choice_l(self):
        p = choice_l("ab letter", char("a"), char("b"))
        assert_success(p, "b", "b")
        assert_fail(p, "z", Labelled("ab letter", "Couldn't parse any of the arms."))

    def test_choice_needs_parsers(self):
        with pytest.raises(ValueError):
            choice()


class TestOptional:
    def test_opt(self):
        result = assert_success(char("a").opt(), "b", None)
        assert not result.consumed
        assert_success(char("a").opt(), "a", "a")

    def test_optional_discards(self):
        assert_success(char("a").optional(), "a", None)

    def test_optional_or(self):
        assert_success(char("a").optional_or("z"), "b", "z")

    def test_opt_keeps_fatal(self):
        result, _ = run(char("a").then(char("b")).opt(), "ac")
        assert result.status is ResultStatus.FATAL

    def test_not_empty(self):
        assert_fail(many_satisfy(str.isdigit).not_empty(), "abc", Expected("non-empty parse result"), 0)
        assert_success(many_satisfy(str.isdigit).not_empty(), "12a", "12")


class TestForward:
    def test_recursive_grammar(self):
        expr = Forward("expression")
        term = parse_int | expr.between(char("("), char(")"))
        expr.define(term.sep_by1(char("+")).map(sum))
        assert_success(expr, "(1+2)+3", 6)

    def test_undefined(self):
        with pytest.raises(RuntimeError):
            Forward("x").run("abc")

    def test_defined_twice(self):
        fwd = Forward("x").define(char("a"))
        with pytest.raises(RuntimeError):
            fwd.define(char("b"))


class TestValues:
    def test_map(self):
        assert_success(digit.map(int), "7", 7)

    def test_map_on_failure(self):
        result, _ = run(digit.map(int), "x")
        assert result.value is NOTHING

    def test_apply(self):
        assert_success(pure(str.upper).apply(string("ab")), "ab", "AB")

    def test_bind(self):
        p = digit.map(int).bind(lambda n: any_char().repeat(n))
        assert_success(p, "3abcd", ["a", "b", "c"])

    def test_wrap_position(self):
        p = string("ab").wrap_position(lambda v, rng: (v, rng))
        assert_success(p, "ab", ("ab", PositionRange(Position(0, 1, 0), Position(2, 1, 0))))

    def test_wrap_position_i(self):
        p = char("x").ig_then(letter_or_digit.many1()).wrap_position_i(lambda s, v, e: (s, v, e))
        assert_success(p, "xa1", (0, ["a", "1"], 3))

    def test_get_position(self):
        p = char("\n").ig_then(get_position())
        assert_success(p, "\nz", Position(1, 2, 1))


class TestUserState:
    def test_get_state(self):
        assert get_state(int).run("", user_state=3).value == 3

    def test_get_state_wrong_type(self):
        result = get_state(int).run("", user_state="x")
        assert result.error.error == Failure("Expected state variable of type int, but received str")

    def test_set_and_update(self):
        p = sequential(set_state(5), update_state(lambda s: s + 1), get_state(int))
        assert p.run("", user_state=0).value == (5, 6, 6)

    def test_backtracking_restores_state(self):
        branch = set_state(9).ig_then(char("x")).ig_then(char("y")).attempt()
        p = branch | get_state()
        stream = InputStream("xz", user_state=0)
        assert p(stream).value == 0
        assert stream.user_state == 0
