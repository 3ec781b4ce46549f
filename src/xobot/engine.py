"""Game session state machine: creation, invitations, and one ply at a time."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple
import logging
import random
import string
import uuid

from .ai import AI_PLAYER, HUMAN_PLAYER, Difficulty, MinimaxAI
from .game import Board, InvalidMove, Player, is_full, other, winner

logger = logging.getLogger(__name__)

INVITE_CODE_LENGTH = 6
INVITE_ALPHABET = string.ascii_uppercase + string.digits


class GameMode(str, Enum):
    AI_EASY = "ai_easy"
    AI_MEDIUM = "ai_medium"
    AI_HARD = "ai_hard"
    MULTIPLAYER = "multiplayer"

    @property
    def is_ai(self) -> bool:
        return self is not GameMode.MULTIPLAYER


class GameStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    FINISHED = "finished"


class Outcome(str, Enum):
    NONE = "none"
    X = "X"
    O = "O"
    DRAW = "draw"


@dataclass(frozen=True)
class MoveRecord:
    number: int
    row: int
    col: int
    mark: Player
    # None for moves made by the AI
    player_id: Optional[str] = None


@dataclass(frozen=True)
class StatUpdate:
    player_id: str
    field: str  # "wins", "losses" or "draws"


@dataclass
class GameSession:
    """One game. Treated as a value: the engine returns new sessions."""

    id: str
    mode: GameMode
    board: Board = field(default_factory=Board)
    status: GameStatus = GameStatus.ACTIVE
    current_turn: Player = "X"
    outcome: Outcome = Outcome.NONE
    player_x: Optional[str] = None
    player_o: Optional[str] = None
    invite_code: Optional[str] = None
    moves: Tuple[MoveRecord, ...] = ()
    # Bumped by the store on every successful save
    version: int = 0

    @property
    def is_finished(self) -> bool:
        return self.status is GameStatus.FINISHED

    @property
    def next_turn(self) -> Optional[Player]:
        return self.current_turn if self.status is GameStatus.ACTIVE else None

    def mark_of(self, player_id: Optional[str]) -> Optional[Player]:
        if player_id is None:
            return None
        if player_id == self.player_x:
            return "X"
        if player_id == self.player_o:
            return "O"
        return None

    def owner_of(self, mark: Player) -> Optional[str]:
        return self.player_x if mark == "X" else self.player_o

    def humans(self) -> Tuple[str, ...]:
        return tuple(p for p in (self.player_x, self.player_o) if p is not None)


@dataclass(frozen=True)
class MoveResult:
    session: GameSession
    applied: bool
    reason: Optional[str] = None
    stats: Tuple[StatUpdate, ...] = ()


@dataclass
class GameEngine:
    """Creates sessions and applies moves; never touches storage."""

    rng: random.Random = field(default_factory=random.Random, repr=False)

    # ---- creation ----

    def create_ai_game(self, mode: GameMode | str, player_id: str) -> GameSession:
        mode = GameMode(mode)
        if not mode.is_ai:
            raise ValueError(f"{mode.value} is not an AI mode")
        session = GameSession(
            id=uuid.uuid4().hex,
            mode=mode,
            status=GameStatus.ACTIVE,
            current_turn=HUMAN_PLAYER,
            player_x=player_id,
        )
        logger.info("Created %s game %s for %s", mode.value, session.id, player_id)
        return session

    def create_invite_game(self, player_id: str) -> GameSession:
        session = GameSession(
            id=uuid.uuid4().hex,
            mode=GameMode.MULTIPLAYER,
            status=GameStatus.WAITING,
            player_x=player_id,
            invite_code=self._invite_code(),
        )
        logger.info("Created invite %s (game %s)", session.invite_code, session.id)
        return session

    def accept_invite(self, session: GameSession, player_id: str) -> GameSession:
        if session.mode is not GameMode.MULTIPLAYER:
            raise InvalidMove("Only peer games take invitations")
        if session.status is not GameStatus.WAITING:
            raise InvalidMove("Invitation already used")
        if player_id == session.player_x:
            raise InvalidMove("Cannot accept your own invitation")
        return replace(
            session,
            status=GameStatus.ACTIVE,
            player_o=player_id,
            current_turn="X",
        )

    # ---- moves ----

    def validate_move(
        self,
        session: GameSession,
        row: int,
        col: int,
        mark: Player,
        player_id: Optional[str] = None,
    ) -> None:
        """Raise ``InvalidMove`` unless the move may be applied."""
        if session.status is not GameStatus.ACTIVE:
            raise InvalidMove("Game is not active")
        if mark != session.current_turn:
            raise InvalidMove(f"It is not {mark}'s turn")
        owner = session.owner_of(mark)
        if session.mode.is_ai and mark == AI_PLAYER and player_id is not None:
            raise InvalidMove("The AI plays O in this game")
        if player_id is not None and owner != player_id:
            raise InvalidMove(f"{player_id} does not play {mark}")
        if not (0 <= row < 3 and 0 <= col < 3):
            raise InvalidMove(f"Cell ({row}, {col}) is off the board")
        if session.board.get(row, col) != " ":
            raise InvalidMove("Cell already occupied")

    def apply_move(
        self,
        session: GameSession,
        row: int,
        col: int,
        mark: Player,
        player_id: Optional[str] = None,
    ) -> MoveResult:
        """Apply one ply and, in AI games, the AI's reply.

        Rejected moves leave the session untouched and come back with
        ``applied=False``.
        """
        try:
            self.validate_move(session, row, col, mark, player_id)
        except InvalidMove as exc:
            logger.debug("Ignoring move on %s: %s", session.id, exc)
            return MoveResult(session=session, applied=False, reason=str(exc))

        updated, stats = self._play(session, row, col, mark, player_id)

        if (
            updated.status is GameStatus.ACTIVE
            and updated.mode.is_ai
            and updated.current_turn == AI_PLAYER
        ):
            ai = MinimaxAI(Difficulty(updated.mode.value), self.rng)
            ai_row, ai_col = ai.choose(updated.board)
            updated, stats = self._play(updated, ai_row, ai_col, AI_PLAYER, None)

        return MoveResult(session=updated, applied=True, stats=stats)

    # ---- helpers ----

    def _play(
        self,
        session: GameSession,
        row: int,
        col: int,
        mark: Player,
        player_id: Optional[str],
    ) -> Tuple[GameSession, Tuple[StatUpdate, ...]]:
        board = session.board.place(row, col, mark)
        record = MoveRecord(len(session.moves) + 1, row, col, mark, player_id)
        moves = session.moves + (record,)

        w = winner(board)
        if w is not None:
            stats = []
            winner_id, loser_id = session.owner_of(w), session.owner_of(other(w))
            if winner_id is not None:
                stats.append(StatUpdate(winner_id, "wins"))
            if loser_id is not None:
                stats.append(StatUpdate(loser_id, "losses"))
            logger.info("Game %s won by %s", session.id, w)
            finished = replace(
                session,
                board=board,
                moves=moves,
                status=GameStatus.FINISHED,
                outcome=Outcome(w),
            )
            return finished, tuple(stats)

        if is_full(board):
            logger.info("Game %s drawn", session.id)
            finished = replace(
                session,
                board=board,
                moves=moves,
                status=GameStatus.FINISHED,
                outcome=Outcome.DRAW,
            )
            return finished, tuple(StatUpdate(p, "draws") for p in session.humans())

        return replace(session, board=board, moves=moves, current_turn=other(mark)), ()

    def _invite_code(self) -> str:
        return "".join(self.rng.choice(INVITE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))
