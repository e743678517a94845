"""The mutable input cursor threaded through every parser."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Any, Generic, TypeVar

from weftparse.errors import (
    LocatedParserError,
    ParserError,
    StreamOverrunError,
    Unexpected,
    UnexpectedChar,
    flatten,
)
from weftparse.source import Position, line_at

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class InputStreamState:
    """Everything needed to rewind a stream."""

    index: int
    position: Position
    user_state: Any = None


# ── Token witnesses ──────────────────────────────────────────────


class TokenWitness:
    """Maps tokens of a stream onto source locations and display text.

    The generic witness has no source text: a token's column is its index.
    """

    source: str | None = None

    def initial_position(self, tokens: Sequence) -> Position:
        return Position()

    def step(self, position: Position, tokens: Sequence, start: int, end: int) -> Position:
        """The position after consuming ``tokens[start:end]`` from ``position``."""
        return Position(
            position.index + end - start, position.line, position.index_of_line_start,
        )

    def position_at(self, tokens: Sequence, index: int) -> Position:
        return Position(index, 1, 0)

    def source_line(self, position: Position) -> tuple[str, str] | None:
        """Return the source line at ``position`` and its location marker line."""
        if self.source is None:
            return None
        prefix = self.source[position.index_of_line_start:position.index]
        return line_at(self.source, position), f"{prefix}| <- at this location"

    def show_token(self, token: Any) -> str:
        return str(token)

    def show_tokens(self, tokens: Sequence) -> str:
        return " ".join(self.show_token(t) for t in tokens)

    def unexpected(self, token: Any) -> ParserError:
        return Unexpected(self.show_token(token))


class CharWitness(TokenWitness):
    """Witness for character streams; lines are found by scanning for ``\\n``."""

    def __init__(self, source: str) -> None:
        self.source = source

    def step(self, position: Position, tokens: Sequence, start: int, end: int) -> Position:
        return position.step(tokens[start:end])

    def position_at(self, tokens: Sequence, index: int) -> Position:
        return Position.at(tokens, index)

    def show_tokens(self, tokens: Sequence) -> str:
        return "".join(tokens)

    def unexpected(self, token: Any) -> ParserError:
        return UnexpectedChar(token)


class LexedWitness(TokenWitness):
    """Witness for lexer output: each token carries a ``position`` range."""

    def __init__(self, source: str | None = None) -> None:
        self.source = source

    def initial_position(self, tokens: Sequence) -> Position:
        return tokens[0].position.start if tokens else Position()

    def step(self, position: Position, tokens: Sequence, start: int, end: int) -> Position:
        # skipped text between tokens belongs to no token; stand on the next one
        return self.position_at(tokens, end)

    def position_at(self, tokens: Sequence, index: int) -> Position:
        if index < len(tokens):
            return tokens[index].position.start
        if tokens:
            return tokens[-1].position.end
        return Position()

    def show_token(self, token: Any) -> str:
        return getattr(token, "content", str(token))


# ── Stream ───────────────────────────────────────────────────────


class InputStream(Generic[T]):
    """A single cursor over a token sequence, mutated in place while parsing.

    Backtracking restores a previously captured ``InputStreamState``; errors
    discarded by backtracking are kept in ``backtracked`` for diagnostics.
    """

    def __init__(
        self,
        tokens: Sequence[T],
        description: str = "input",
        user_state: Any = None,
        witness: TokenWitness | None = None,
    ) -> None:
        if witness is None:
            witness = CharWitness(tokens) if isinstance(tokens, str) else TokenWitness()
        self.tokens = tokens
        self.description = description
        self.witness = witness
        self.state = InputStreamState(0, witness.initial_position(tokens), user_state)
        self.backtracked: list[LocatedParserError] = []

    @classmethod
    def lexed(
        cls, tokens: Sequence[T], source: str | None = None,
        description: str = "input", user_state: Any = None,
    ) -> InputStream[T]:
        """Build a stream over lexer output whose tokens carry position ranges."""
        return cls(tokens, description, user_state, LexedWitness(source))

    @property
    def index(self) -> int:
        return self.state.index

    @property
    def position(self) -> Position:
        return self.state.position

    @property
    def user_state(self) -> Any:
        return self.state.user_state

    @property
    def remaining(self) -> int:
        return len(self.tokens) - self.state.index

    @property
    def empty(self) -> bool:
        return self.remaining <= 0

    @property
    def next(self) -> T:
        return self.tokens[self.state.index]

    @property
    def maybe_next(self) -> T | None:
        return None if self.empty else self.tokens[self.state.index]

    def peek(self, offset: int) -> T | None:
        idx = self.state.index + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return None

    def slice(self, start: int, end: int) -> Sequence[T]:
        return self.tokens[start:end]

    def step(self, count: int = 1) -> int:
        """Advance by ``count`` tokens and return the new index."""
        index = self.state.index
        if index + count > len(self.tokens):
            raise StreamOverrunError(
                f"step({count}) was called on {self.description} at index {index} "
                f"with only {self.remaining} tokens left. "
                "The caller provided an incorrect step value."
            )
        if count:
            self.state = replace(
                self.state,
                index=index + count,
                position=self.witness.step(self.state.position, self.tokens, index, index + count),
            )
        return self.state.index

    def rollback(self, state: InputStreamState, error: LocatedParserError | None = None) -> None:
        """Restore ``state``, recording ``error`` as a backtracked failure."""
        if error is not None:
            logger.debug(
                "%s: backtracking from index %d to %d",
                self.description, self.state.index, state.index,
            )
            self.backtracked.append(LocatedParserError(error.start, error.end, flatten(error.error)))
        self.state = state

    def rollback_fast(self, state: InputStreamState) -> None:
        self.state = state

    def update_state(self, user_state: Any) -> None:
        self.state = replace(self.state, user_state=user_state)

    def make_error(self, error: ParserError | None) -> LocatedParserError | None:
        """Anchor ``error`` at the current index."""
        if error is None:
            return None
        return LocatedParserError(self.state.index, self.state.index, error)

    def position_at(self, index: int) -> Position:
        if index == self.state.index:
            return self.state.position
        return self.witness.position_at(self.tokens, index)

    def show_range(self, start: int, end: int) -> str:
        return self.witness.show_tokens(self.tokens[start:end])
