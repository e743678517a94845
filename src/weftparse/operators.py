"""Operator-precedence expressions by precedence climbing.

A table of prefix, postfix and infix operators plus a term parser yields one
expression parser. Higher priorities bind tighter. Operators of equal
priority in one chain must agree on associativity; if they do not, parsing
fails with ``AmbiguousAssociativity`` rather than picking a grouping.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from weftparse.errors import AmbiguousAssociativity, LocatedParserError
from weftparse.parser import Parser, choice
from weftparse.result import ParseResult, ResultStatus, merge_errors
from weftparse.source import Position
from weftparse.stream import InputStream


class Associativity(enum.Enum):
    LEFT = "left"
    """``x~y~z`` is ``(x~y)~z``."""
    RIGHT = "right"
    """``x~y~z`` is ``x~(y~z)``."""
    NONE = "non"
    """``x~y~z`` is an error."""


@dataclass(frozen=True, eq=False)
class Prefix:
    parser: Parser
    build: Callable[[Any, Any], Any]
    """``build(operator_value, operand)``"""
    priority: int


@dataclass(frozen=True, eq=False)
class Postfix:
    parser: Parser
    build: Callable[[Any, Any], Any]
    """``build(operand, operator_value)``"""
    priority: int


@dataclass(frozen=True, eq=False)
class Infix:
    parser: Parser
    build: Callable[[Any, Any, Any], Any]
    """``build(left, operator_value, right)``"""
    associativity: Associativity
    priority: int


Operator = Prefix | Postfix | Infix


@dataclass(frozen=True)
class _Seen:
    """An infix operator already parsed in the current chain."""

    op: Infix
    text: str
    position: Position


def _tagged(ops: list) -> Parser | None:
    if not ops:
        return None
    return choice(*(op.parser.map(lambda value, op=op: (value, op)) for op in ops))


def _conflicts(seen: _Seen | None, op: Infix) -> bool:
    if seen is None:
        return False
    if seen.op.associativity is Associativity.NONE and op.associativity is Associativity.NONE:
        return True
    return seen.op.associativity is not op.associativity


class _Climber:
    def __init__(self, operators: Iterable[Operator], term: Parser) -> None:
        prefix, postfix, infix = [], [], []
        for op in operators:
            if isinstance(op, Prefix):
                prefix.append(op)
            elif isinstance(op, Postfix):
                postfix.append(op)
            elif isinstance(op, Infix):
                infix.append(op)
            else:
                raise TypeError(f"not an operator: {op!r}")
        self.prefix = _tagged(prefix)
        self.postfix = _tagged(postfix)
        self.infix = _tagged(infix)
        self.term = term

    def operand(self, stream: InputStream) -> ParseResult:
        """An optional prefix operator applied to its operand, or a bare term."""
        error = None
        if self.prefix is not None:
            rp = self.prefix(stream)
            if rp.ok:
                value, op = rp.value
                rr = self.climb(stream, op.priority + 1, {}).with_preceding(rp)
                if not rr.ok:
                    return rr
                return rr.with_value(op.build(value, rr.value))
            if rp.status is ResultStatus.FATAL:
                return rp
            error = rp.error
        rt = self.term(stream)
        return ParseResult(rt.value, merge_errors(error, rt), rt.start, rt.end)

    def climb(self, stream: InputStream, min_priority: int, chain: dict[int, _Seen]) -> ParseResult:
        """Operators of at least ``min_priority``.

        ``chain`` holds, per priority, the last infix operator still open in
        the enclosing levels. A new operator is checked against the entry of
        its own priority and closes every entry of a higher one.
        """
        start = stream.index
        r = self.operand(stream)
        if not r.ok:
            return r
        value = r.value
        error = r.error
        seen = dict(chain)
        while True:
            state = stream.state
            if self.postfix is not None:
                rp = self.postfix(stream)
                if rp.ok and rp.value[1].priority >= min_priority:
                    op_value, op = rp.value
                    value = op.build(value, op_value)
                    error = merge_errors(error, rp)
                    continue
                if rp.ok:
                    stream.rollback_fast(state)
                elif rp.status is ResultStatus.FATAL:
                    return ParseResult.failure(rp.error, start, rp.end)
                else:
                    error = merge_errors(error, rp)
            if self.infix is None:
                break
            ri = self.infix(stream)
            if ri.status is ResultStatus.FATAL:
                return ParseResult.failure(ri.error, start, ri.end)
            if not ri.ok:
                error = merge_errors(error, ri)
                break
            op_value, op = ri.value
            if op.priority < min_priority:
                stream.rollback_fast(state)
                break
            current = _Seen(op, stream.show_range(ri.start, ri.end).strip(), stream.position_at(ri.start))
            last = seen.get(op.priority)
            if _conflicts(last, op):
                ambiguous = AmbiguousAssociativity(
                    last.text, last.op.associativity.value, last.position,
                    current.text, op.associativity.value, current.position,
                )
                return ParseResult.failure(LocatedParserError(ri.start, ri.end, ambiguous), start, ri.end)
            seen = {p: s for p, s in seen.items() if p < op.priority}
            seen[op.priority] = current
            next_min = op.priority if op.associativity is Associativity.RIGHT else op.priority + 1
            rr = self.climb(stream, next_min, seen)
            if not rr.ok:
                return ParseResult.failure(merge_errors(ri, rr), start, rr.end)
            value = op.build(value, op_value, rr.value)
            error = rr.error
        return ParseResult.success(value, start, stream.index, error)


def parse_operators(operators: Iterable[Operator], term: Parser) -> Parser:
    """Build an expression parser from an operator table and a term parser.

    Each prefix operator takes an operand parsed at one above its own
    priority. After an operand come postfix operators, then infix operators,
    as long as their priority is at least the current minimum. The right-hand
    side of a ``LEFT`` or ``NONE`` infix operator is parsed at one above its
    priority, that of a ``RIGHT`` operator at its own priority.
    """
    operators = list(operators)
    climber = _Climber(operators, term)
    floor = min((op.priority for op in operators), default=0)
    return Parser(lambda stream: climber.climb(stream, floor, {}), "operators")
