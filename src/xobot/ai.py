"""Full-depth minimax with alpha-beta pruning and the difficulty tiers built on it."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import logging
import math
import random

from .game import Board, Move, NoLegalMoves, is_full, is_terminal, legal_moves, winner

logger = logging.getLogger(__name__)

AI_PLAYER = "O"
HUMAN_PLAYER = "X"
WIN_SCORE = 10
MEDIUM_OPTIMAL_RATE = 0.7


class Difficulty(str, Enum):
    EASY = "ai_easy"
    MEDIUM = "ai_medium"
    HARD = "ai_hard"


# ---- core search ----


def best_score(
    board: Board,
    depth: int,
    maximizing: bool,
    alpha: float = -math.inf,
    beta: float = math.inf,
) -> int:
    """Minimax value of ``board`` from O's point of view.

    A win for O scores ``10 - depth`` and a win for X ``depth - 10``, so
    quicker wins and slower losses rank higher. A full board is 0.
    """
    w = winner(board)
    if w == AI_PLAYER:
        return WIN_SCORE - depth
    if w == HUMAN_PLAYER:
        return depth - WIN_SCORE
    if is_full(board):
        return 0

    if maximizing:
        value = -math.inf
        for row, col in legal_moves(board):
            child = board.place(row, col, AI_PLAYER)
            value = max(value, best_score(child, depth + 1, False, alpha, beta))
            alpha = max(alpha, value)
            if beta <= alpha:
                break
    else:
        value = math.inf
        for row, col in legal_moves(board):
            child = board.place(row, col, HUMAN_PLAYER)
            value = min(value, best_score(child, depth + 1, True, alpha, beta))
            beta = min(beta, value)
            if beta <= alpha:
                break
    return int(value)


def best_move(board: Board) -> Move:
    """Optimal O move; ties go to the earliest cell in row-major order."""
    moves = legal_moves(board)
    if is_terminal(board):
        raise NoLegalMoves("No valid moves available")

    best: Optional[Move] = None
    best_value = -math.inf
    for row, col in moves:
        value = best_score(board.place(row, col, AI_PLAYER), 0, False)
        if value > best_value:
            best, best_value = (row, col), value
    assert best is not None
    return best


# ---- difficulty policy ----


@dataclass
class MinimaxAI:
    """O-side player whose strength depends on ``difficulty``.

    - ai_easy: uniform random legal move
    - ai_medium: optimal move with probability 0.7, otherwise random
    - ai_hard: always optimal
    """

    difficulty: Difficulty = Difficulty.HARD
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def __post_init__(self) -> None:
        self.difficulty = Difficulty(self.difficulty)

    def choose(self, board: Board) -> Move:
        moves = legal_moves(board)
        if is_terminal(board):
            raise NoLegalMoves("No valid moves available")

        if self.difficulty is Difficulty.HARD:
            return best_move(board)
        if self.difficulty is Difficulty.MEDIUM and self.rng.random() < MEDIUM_OPTIMAL_RATE:
            return best_move(board)

        move = self.rng.choice(moves)
        logger.debug("%s picked random move %s", self.difficulty.value, move)
        return move


def choose_move(
    board: Board, difficulty: Difficulty | str, rng: Optional[random.Random] = None
) -> Move:
    ai = MinimaxAI(Difficulty(difficulty), rng or random.Random())
    return ai.choose(board)
