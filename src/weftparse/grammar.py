"""Expression grammar assembled from a WeftConfig.

Source text is lexed with the configured rules, skipped tokens are dropped,
and the remaining tokens are parsed with the configured operator table.
Terms are any non-operator token, or a parenthesised expression.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Union

from weftparse.config import OPERATOR_RULE, OperatorConfig, WeftConfig
from weftparse.lexer import OperatorSet, RegexLexer, TokenRule
from weftparse.operators import Associativity, Infix, Postfix, Prefix, parse_operators
from weftparse.parser import Forward, Parser
from weftparse.source import Position
from weftparse.stream import InputStream
from weftparse.text import satisfy
from weftparse.tokens import Token, token_rule

logger = logging.getLogger(__name__)

_ASSOCIATIVITY = {
    "left": Associativity.LEFT,
    "right": Associativity.RIGHT,
    "none": Associativity.NONE,
}
_PARENS = ("(", ")")


@dataclass(frozen=True)
class Atom:
    token: Token

    def __str__(self) -> str:
        return self.token.content


@dataclass(frozen=True)
class PrefixExpr:
    op: str
    operand: Expr

    def __str__(self) -> str:
        return f"({self.op}{self.operand})"


@dataclass(frozen=True)
class PostfixExpr:
    operand: Expr
    op: str

    def __str__(self) -> str:
        return f"({self.operand}{self.op})"


@dataclass(frozen=True)
class BinaryExpr:
    op: str
    left: Expr
    right: Expr

    def __str__(self) -> str:
        return f"({self.left}{self.op}{self.right})"


Expr = Union[Atom, PrefixExpr, PostfixExpr, BinaryExpr]


def _operator_rule(symbols: OperatorSet) -> TokenRule[Token]:
    chars = "".join(sorted({c for s in symbols.symbols for c in s}))
    pattern = f"[{re.escape(chars)}]+"

    def action(position: Position, match: re.Match[str]) -> tuple[Token, int] | None:
        symbol = symbols.longest_match(match.group(0))
        if symbol is None:
            return None
        return Token.at(OPERATOR_RULE, position, symbol), len(symbol)

    return TokenRule.partial(pattern, action, "operator")


def build_lexer(config: WeftConfig) -> RegexLexer[Token]:
    """A lexer over the configured rules, in declaration order."""
    symbols = OperatorSet(op.symbol for op in config.operators)
    rules = []
    for rule in config.rules:
        if rule.pattern is None:
            if symbols:
                rules.append(_operator_rule(symbols))
        else:
            rules.append(token_rule(rule.pattern, rule.name))
    return RegexLexer(*rules)


def _operator_token(symbol: str) -> Parser:
    return satisfy(
        lambda t: t.kind == OPERATOR_RULE and t.content == symbol, f"operator {symbol}",
    ).map(lambda t: t.content)


def _paren(text: str) -> Parser:
    return satisfy(lambda t: t.content == text and t.kind != OPERATOR_RULE, f"'{text}'")


def _table_entry(op: OperatorConfig) -> Prefix | Postfix | Infix:
    parser = _operator_token(op.symbol)
    if op.fixity == "prefix":
        return Prefix(parser, PrefixExpr, op.priority)
    if op.fixity == "postfix":
        return Postfix(parser, lambda operand, sym: PostfixExpr(operand, sym), op.priority)
    return Infix(
        parser, lambda left, sym, right: BinaryExpr(sym, left, right),
        _ASSOCIATIVITY[op.associativity], op.priority,
    )


def build_parser(config: WeftConfig) -> Parser:
    """A token-level parser for one complete expression."""
    expr = Forward("expression")
    atom = satisfy(
        lambda t: t.kind != OPERATOR_RULE and t.content not in _PARENS, "operand",
    ).map(Atom)
    term = atom | expr.between(_paren("("), _paren(")"))
    expr.define(parse_operators([_table_entry(op) for op in config.operators], term))
    return expr.then_eof()


class ExpressionGrammar:
    """Lexer and parser for the grammar described by ``config``."""

    def __init__(self, config: WeftConfig) -> None:
        self.config = config
        self.skip = {rule.name for rule in config.rules if rule.skip}
        self.lexer = build_lexer(config)
        self.parser = build_parser(config)
        logger.debug(
            "built grammar %s: %d lexer rules, %d operators",
            config.grammar.name, len(self.lexer.rules), len(config.operators),
        )

    def tokenize(self, source: str, *, keep_skipped: bool = False) -> list[Token]:
        """Lex ``source``. Raises ``LexError`` on untokenizable input."""
        tokens = self.lexer.tokenize(source)
        if keep_skipped:
            return tokens
        return [t for t in tokens if t.kind not in self.skip]

    def parse(self, source: str, description: str = "input", *, color: bool = False) -> Expr:
        """Parse one expression. Raises ``LexError`` or ``ParseFailure``."""
        stream = InputStream.lexed(self.tokenize(source), source, description)
        return self.parser.parse(stream, color=color)
