"""Regular-expression lexer.

Rules are tried in declaration order at each position and the first rule
whose action accepts the match wins. Order therefore matters: list
whitespace before identifiers, keywords before the identifier rule, and so
on. Each rule's pattern is compiled on its own and matched at the current
index; rules are never merged into one alternation, so a rule that matches
but rejects falls through to the next one.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from weftparse.source import Position, PositionRange, pretty_print_location

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LexError(Exception):
    """The source could not be tokenized at some position."""

    def __init__(self, message: str, position: Position, last_token: Any = None) -> None:
        super().__init__(message)
        self.position = position
        self.last_token = last_token


@dataclass(frozen=True)
class TokenRule(Generic[T]):
    """A pattern and the action that turns its match into a token.

    ``action(position, match)`` returns a token consuming the whole match,
    or ``None`` to reject the match and let the next rule try. Rules built
    with ``TokenRule.partial`` return ``(token, consumed)`` instead.
    """

    pattern: str
    action: Callable[[Position, re.Match[str]], Any]
    description: str | None = None
    flags: int = 0
    sized: bool = False
    regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "regex", re.compile(self.pattern, self.flags))

    @classmethod
    def partial(
        cls, pattern: str, action: Callable[[Position, re.Match[str]], tuple[T, int] | None],
        description: str | None = None, flags: int = 0,
    ) -> TokenRule[T]:
        """A rule whose action decides how much of the match to consume."""
        return cls(pattern, action, description, flags, sized=True)

    def apply(self, position: Position, match: re.Match[str]) -> tuple[T, int] | None:
        result = self.action(position, match)
        if result is None or self.sized:
            return result
        return result, len(match.group(0))


class RegexLexer(Generic[T]):
    """Convert a source string into a list of contiguous tokens."""

    def __init__(self, *rules: TokenRule[T]) -> None:
        if not rules:
            raise ValueError("a lexer needs at least one rule")
        self.rules = rules
        self.unconsumed: int | None = None

    def _match_at(self, source: str, index: int, position: Position) -> tuple[T, int] | None:
        for rule in self.rules:
            match = rule.regex.match(source, index)
            if match is None:
                continue
            accepted = rule.apply(position, match)
            if accepted is None:
                continue
            token, consumed = accepted
            if consumed <= 0:
                raise ValueError(
                    f"lexer rule /{rule.pattern}/ produced a token without consuming text at {position}"
                )
            return token, consumed
        return None

    def iter_tokens(self, source: str, strict: bool = True) -> Iterator[T]:
        """Lazily yield tokens from ``source``.

        With ``strict``, an untokenizable position raises ``LexError``.
        Otherwise iteration stops there and ``unconsumed`` holds its index.
        """
        self.unconsumed = None
        index = 0
        prev_index = 0
        position = Position()
        last: T | None = None
        while index < len(source):
            found = self._match_at(source, index, position)
            if found is None:
                if strict:
                    raise self._error(source, index, prev_index, last)
                self.unconsumed = index
                return
            token, consumed = found
            prev_index = index
            position = position.step(source[index:index + consumed])
            index += consumed
            last = token
            yield token

    def tokenize(self, source: str, strict: bool = True) -> list[T]:
        tokens = list(self.iter_tokens(source, strict))
        logger.debug(
            "lexed %d tokens from %d characters%s", len(tokens), len(source),
            "" if self.unconsumed is None else f", stopped at index {self.unconsumed}",
        )
        return tokens

    @staticmethod
    def _error(source: str, index: int, prev_index: int, last: Any) -> LexError:
        position = Position.at(source, index)
        message = (
            f"Failed to tokenize the source data at {position}:\n"
            f"{pretty_print_location(source, position)}"
        )
        if last is not None:
            span = PositionRange(Position.at(source, prev_index), position)
            message += f"\nThe most recently parsed token was {last} at {span}."
        return LexError(message, position, last)


class OperatorSet:
    """A set of operator symbols supporting longest-prefix lookup."""

    def __init__(self, symbols: Iterable[str]) -> None:
        self.symbols = frozenset(s for s in symbols if s)
        self._lengths = sorted({len(s) for s in self.symbols}, reverse=True)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self.symbols

    def __len__(self) -> int:
        return len(self.symbols)

    def longest_match(self, text: str, start: int = 0) -> str | None:
        """Return the longest symbol that ``text`` starts with at ``start``."""
        for length in self._lengths:
            candidate = text[start:start + length]
            if len(candidate) == length and candidate in self.symbols:
                return candidate
        return None
