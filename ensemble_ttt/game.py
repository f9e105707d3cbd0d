"""Core game logic for classic 3x3 Tic-Tac-Toe shared by every strategy.

The representation is independent from any UI and from the learning agents.
A :class:`BoardState` is an immutable tuple of nine :class:`Mark` values in
row-major order.  Applying a move returns a new board; nothing mutates a board
that another component may be reading.

Search and learning code works on a numeric view of the board produced by
:meth:`BoardState.to_numeric`: ``+1`` for the perspective side, ``-1`` for its
opponent and ``0`` for empty cells.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

BOARD_CELLS = 9
CENTER = 4
CORNERS: Tuple[int, ...] = (0, 2, 6, 8)
EDGES: Tuple[int, ...] = (1, 3, 5, 7)

# Scan order matters: rows, then columns, then diagonals.
WIN_LINES: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)

NumericBoard = Tuple[int, ...]


class IllegalMoveError(RuntimeError):
    """Raised when a move targets an occupied cell or a finished game."""


class EmptyCandidateError(RuntimeError):
    """Raised when a move is requested but the position has no legal move."""


class InvalidStateError(ValueError):
    """Raised for malformed boards, vectors or out-of-range indices."""


class Mark(str, Enum):
    EMPTY = "_"
    X = "X"
    O = "O"

    def opponent(self) -> "Mark":
        if self is Mark.X:
            return Mark.O
        if self is Mark.O:
            return Mark.X
        raise InvalidStateError("EMPTY has no opponent")


_SYMBOLS = {
    None: Mark.EMPTY,
    "": Mark.EMPTY,
    " ": Mark.EMPTY,
    "_": Mark.EMPTY,
    ".": Mark.EMPTY,
    "X": Mark.X,
    "x": Mark.X,
    "O": Mark.O,
    "o": Mark.O,
}


def parse_mark(value: object) -> Mark:
    if isinstance(value, Mark):
        return value
    try:
        return _SYMBOLS[value]  # type: ignore[index]
    except (KeyError, TypeError):
        raise InvalidStateError(f"Unknown cell value: {value!r}") from None


def check_index(index: int) -> int:
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < BOARD_CELLS:
        raise InvalidStateError(f"cell index must be an int in range 0..8, got {index!r}")
    return index


def numeric_winner(board: Sequence[int]) -> int:
    """Return +1/-1 for the first completed line in ``board``, else 0."""

    for a, b, c in WIN_LINES:
        if board[a] != 0 and board[a] == board[b] == board[c]:
            return board[a]
    return 0


def numeric_legal_moves(board: Sequence[int]) -> List[int]:
    return [i for i, v in enumerate(board) if v == 0]


def numeric_is_terminal(board: Sequence[int]) -> bool:
    return numeric_winner(board) != 0 or all(v != 0 for v in board)


@dataclass(frozen=True)
class BoardState:
    """Immutable Tic-Tac-Toe position."""

    cells: Tuple[Mark, ...] = (Mark.EMPTY,) * BOARD_CELLS

    def __post_init__(self) -> None:
        cells = tuple(parse_mark(cell) for cell in self.cells)
        if len(cells) != BOARD_CELLS:
            raise InvalidStateError(f"board must have 9 cells, got {len(cells)}")
        x_count = cells.count(Mark.X)
        o_count = cells.count(Mark.O)
        if not (x_count == o_count or x_count == o_count + 1):
            raise InvalidStateError(
                f"mark counts violate turn order (X={x_count}, O={o_count})"
            )
        object.__setattr__(self, "cells", cells)

    # ------------------------------------------------------------------
    @classmethod
    def empty(cls) -> "BoardState":
        return cls()

    @classmethod
    def from_cells(cls, cells: Iterable[object]) -> "BoardState":
        return cls(tuple(parse_mark(cell) for cell in cells))

    @classmethod
    def from_key(cls, key: str) -> "BoardState":
        return cls.from_cells(key)

    @classmethod
    def from_numeric(cls, values: Sequence[int], perspective: Mark) -> "BoardState":
        """Inverse of :meth:`to_numeric`."""

        if len(values) != BOARD_CELLS:
            raise InvalidStateError(f"numeric board must have 9 values, got {len(values)}")
        other = perspective.opponent()
        cells: List[Mark] = []
        for value in values:
            if value == 1:
                cells.append(perspective)
            elif value == -1:
                cells.append(other)
            elif value == 0:
                cells.append(Mark.EMPTY)
            else:
                raise InvalidStateError(f"numeric cell must be -1, 0 or 1, got {value!r}")
        return cls(tuple(cells))

    # ------------------------------------------------------------------
    @property
    def to_move(self) -> Mark:
        """Side to move, inferred from the mark counts (X plays first)."""

        return Mark.X if self.cells.count(Mark.X) == self.cells.count(Mark.O) else Mark.O

    def winner(self) -> Optional[Mark]:
        line = self.winning_line()
        return None if line is None else self.cells[line[0]]

    def winning_line(self) -> Optional[Tuple[int, int, int]]:
        for line in WIN_LINES:
            a, b, c = line
            if self.cells[a] is not Mark.EMPTY and self.cells[a] == self.cells[b] == self.cells[c]:
                return line
        return None

    def is_terminal(self) -> bool:
        return self.winner() is not None or Mark.EMPTY not in self.cells

    def is_draw(self) -> bool:
        return Mark.EMPTY not in self.cells and self.winner() is None

    def legal_moves(self) -> List[int]:
        if self.winner() is not None:
            return []
        return [i for i, cell in enumerate(self.cells) if cell is Mark.EMPTY]

    def apply_move(self, index: int, mark: Optional[Mark] = None) -> "BoardState":
        check_index(index)
        if self.is_terminal():
            raise IllegalMoveError("Game has already finished")
        if self.cells[index] is not Mark.EMPTY:
            raise IllegalMoveError(f"Cell {index} is already occupied")
        mover = self.to_move
        if mark is not None and parse_mark(mark) is not mover:
            raise IllegalMoveError(f"It is {mover.value}'s turn, not {parse_mark(mark).value}'s")
        cells = list(self.cells)
        cells[index] = mover
        return BoardState(tuple(cells))

    def to_key(self) -> str:
        return "".join(cell.value for cell in self.cells)

    def to_numeric(self, perspective: Optional[Mark] = None) -> NumericBoard:
        side = perspective or self.to_move
        other = side.opponent()
        return tuple(
            1 if cell is side else -1 if cell is other else 0 for cell in self.cells
        )

    def render(self) -> str:
        rows = []
        for start in (0, 3, 6):
            row = self.cells[start : start + 3]
            rows.append(" ".join("." if cell is Mark.EMPTY else cell.value for cell in row))
        return "\n".join(rows)

    def __str__(self) -> str:
        return self.to_key()


def as_board(board: object) -> BoardState:
    """Accept a BoardState or any 9-cell sequence from the presentation layer."""

    if isinstance(board, BoardState):
        return board
    if isinstance(board, str):
        return BoardState.from_key(board)
    if isinstance(board, Sequence):
        return BoardState.from_cells(board)
    raise InvalidStateError(f"Cannot interpret {type(board).__name__} as a board")


__all__ = [
    "BOARD_CELLS",
    "CENTER",
    "CORNERS",
    "EDGES",
    "WIN_LINES",
    "BoardState",
    "EmptyCandidateError",
    "IllegalMoveError",
    "InvalidStateError",
    "Mark",
    "NumericBoard",
    "as_board",
    "check_index",
    "numeric_is_terminal",
    "numeric_legal_moves",
    "numeric_winner",
    "parse_mark",
]
