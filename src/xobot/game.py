"""Board value type and the pure rules of 3x3 tic-tac-toe."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

Player = str  # "X" or "O"
Move = Tuple[int, int]

EMPTY = " "
MARKS: Tuple[Player, ...] = ("X", "O")
SIZE = 3

# Rows, then columns, then the two diagonals.
WINNING_LINES: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


class InvalidMove(ValueError):
    """A move that cannot be applied to the current position or session."""


class NoLegalMoves(RuntimeError):
    """The AI was asked to move on a board that has no move to make."""


def other(mark: Player) -> Player:
    return "O" if mark == "X" else "X"


def _index(row: int, col: int) -> int:
    if not (0 <= row < SIZE and 0 <= col < SIZE):
        raise InvalidMove(f"Cell ({row}, {col}) is off the board")
    return row * SIZE + col


# ---------- Board ----------


@dataclass(frozen=True)
class Board:
    # 'X', 'O', or ' ' (space) for empty, row-major
    cells: Tuple[str, ...] = (EMPTY,) * 9

    def __post_init__(self) -> None:
        if len(self.cells) != SIZE * SIZE:
            raise ValueError("A board has exactly 9 cells")
        for c in self.cells:
            if c != EMPTY and c not in MARKS:
                raise ValueError(f"Unknown cell value {c!r}")

    @classmethod
    def empty(cls) -> "Board":
        return cls()

    def get(self, row: int, col: int) -> str:
        return self.cells[_index(row, col)]

    def place(self, row: int, col: int, mark: Player) -> "Board":
        """Return a copy of the board with ``mark`` written at (row, col)."""
        if mark not in MARKS:
            raise InvalidMove(f"Unknown mark {mark!r}")
        idx = _index(row, col)
        if self.cells[idx] != EMPTY:
            raise InvalidMove("Cell already occupied")
        cells = list(self.cells)
        cells[idx] = mark
        return Board(tuple(cells))

    def count(self, mark: Player) -> int:
        return self.cells.count(mark)

    # ---- serialization ----

    def to_rows(self) -> List[List[Optional[str]]]:
        """3x3 nested lists with ``None`` for empty cells."""
        return [
            [c if c != EMPTY else None for c in self.cells[r * SIZE : (r + 1) * SIZE]]
            for r in range(SIZE)
        ]

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[Optional[str]]]) -> "Board":
        if len(rows) != SIZE or any(len(r) != SIZE for r in rows):
            raise ValueError("Expected a 3x3 grid")
        cells: List[str] = []
        for row in rows:
            for c in row:
                cells.append(EMPTY if c in (None, "", EMPTY) else str(c))
        return cls(tuple(cells))


# ---------- Rules ----------


def winner(board: Board) -> Optional[Player]:
    cells = board.cells
    for a, b, c in WINNING_LINES:
        v = cells[a]
        if v != EMPTY and v == cells[b] == cells[c]:
            return v
    return None


def is_full(board: Board) -> bool:
    return all(c != EMPTY for c in board.cells)


def legal_moves(board: Board) -> List[Move]:
    """All empty cells as (row, col), row-major."""
    return [divmod(i, SIZE) for i, c in enumerate(board.cells) if c == EMPTY]


def is_terminal(board: Board) -> bool:
    return winner(board) is not None or is_full(board)
