"""Source positions and ranges for diagnostics."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class Position:
    """A location in a source sequence.

    ``index`` is the 0-based index of the next element, ``line`` is 1-based,
    and ``index_of_line_start`` is the index of the first element of the
    current line. A newline belongs to the end of the line it terminates.
    """

    index: int = 0
    line: int = 1
    index_of_line_start: int = 0

    @property
    def column(self) -> int:
        """1-indexed column of the next element. Tabs count as one column."""
        return self.index - self.index_of_line_start + 1

    def __str__(self) -> str:
        return f"Line {self.line}, Col {self.column}"

    def step(self, consumed: Sequence, count: int | None = None) -> Position:
        """Advance past the first ``count`` elements of ``consumed``.

        Only the consumed slice is scanned for line breaks.
        """
        if count is None:
            count = len(consumed)
        line = self.line
        line_start = self.index_of_line_start
        for offset in range(count):
            if consumed[offset] == "\n":
                line += 1
                line_start = self.index + offset + 1
        return Position(self.index + count, line, line_start)

    def create_range(self, consumed: Sequence, count: int | None = None) -> PositionRange:
        return PositionRange(self, self.step(consumed, count))

    @classmethod
    def at(cls, source: Sequence, index: int) -> Position:
        """Compute the position of ``index`` by scanning ``source`` from the start."""
        return cls().step(source, index)


@dataclass(frozen=True)
class PositionRange:
    """A range between two positions. ``end`` is exclusive."""

    start: Position
    end: Position

    @property
    def empty(self) -> bool:
        return self.end.index <= self.start.index

    def merge(self, other: PositionRange) -> PositionRange:
        """Span from the start of this range to the end of ``other``."""
        return PositionRange(self.start, other.end)

    def __str__(self) -> str:
        return f"{self.start} to {self.end}"


def line_at(source: str, position: Position) -> str:
    """Return the full line of ``source`` containing ``position``."""
    end = source.find("\n", position.index_of_line_start)
    if end < 0:
        end = len(source)
    return source[position.index_of_line_start:end]


def pretty_print_location(source: str, position: Position) -> str:
    """Render the source line and a marker after the text preceding ``position``."""
    prefix = source[position.index_of_line_start:position.index]
    return f"{line_at(source, position)}\n{prefix}| <- at this location"
