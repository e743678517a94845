"""Parser combinators with source-located, backtracking-aware diagnostics."""

from weftparse.errors import LocatedParserError, ParseFailure
from weftparse.lexer import LexError, OperatorSet, RegexLexer, TokenRule
from weftparse.operators import Associativity, Infix, Postfix, Prefix, parse_operators
from weftparse.parser import (
    Forward,
    Parser,
    choice,
    choice_l,
    error,
    fail,
    ignore,
    pure,
    run,
    sequential,
)
from weftparse.result import NOTHING, ParseResult, ResultStatus
from weftparse.source import Position, PositionRange
from weftparse.stream import InputStream

__version__ = "0.1.0"

__all__ = [
    "NOTHING", "Associativity", "Forward", "Infix", "InputStream", "LexError",
    "LocatedParserError", "OperatorSet", "ParseFailure", "ParseResult", "Parser",
    "Position", "PositionRange", "Postfix", "Prefix", "RegexLexer", "ResultStatus",
    "TokenRule", "choice", "choice_l", "error", "fail", "ignore", "parse_operators",
    "pure", "run", "sequential",
]
