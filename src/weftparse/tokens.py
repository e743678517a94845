"""Default token type produced by the lexer and consumed by token-level parsers."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from weftparse.lexer import TokenRule
from weftparse.source import Position, PositionRange


@dataclass(frozen=True)
class Token:
    """A lexed token: its kind, its text and where it came from."""

    kind: str
    content: str
    position: PositionRange

    @classmethod
    def at(cls, kind: str, position: Position, content: str) -> Token:
        return cls(kind, content, position.create_range(content))

    def __str__(self) -> str:
        if not self.content.strip():
            return f"({self.kind})"
        return f'"{self.content}" ({self.kind})'


def token_rule(
    pattern: str, kind: str | Callable[[re.Match[str]], str], flags: int = 0,
) -> TokenRule[Token]:
    """A rule producing a ``Token`` for the whole match.

    ``kind`` may be a function of the match, for rules such as identifiers
    that also recognize keywords.
    """

    def action(position: Position, match: re.Match[str]) -> Token:
        content = match.group(0)
        name = kind(match) if callable(kind) else kind
        return Token.at(name, position, content)

    return TokenRule(pattern, action, kind if isinstance(kind, str) else None, flags)
