"""In-memory game and player stores with session-level atomicity."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Protocol
import logging
import threading
import uuid

from .engine import GameSession, GameStatus

logger = logging.getLogger(__name__)

STAT_FIELDS = ("wins", "losses", "draws")


class PersistenceConflict(RuntimeError):
    """A save raced with another writer and lost."""


class GameStore(Protocol):
    def load(self, session_id: str) -> Optional[GameSession]: ...

    def save(self, session: GameSession) -> GameSession: ...

    def find_by_invite_code(self, code: str) -> Optional[GameSession]: ...


@dataclass
class PlayerProfile:
    id: str
    telegram_id: int
    first_name: str
    username: Optional[str] = None
    last_name: Optional[str] = None
    wins: int = 0
    losses: int = 0
    draws: int = 0

    @property
    def total(self) -> int:
        return self.wins + self.losses + self.draws

    @property
    def win_rate(self) -> int:
        """Wins as a rounded percentage of games played."""
        return round(self.wins / self.total * 100) if self.total else 0


class UserStore(Protocol):
    def get_or_create(
        self,
        telegram_id: int,
        first_name: str,
        username: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> PlayerProfile: ...

    def get(self, player_id: str) -> Optional[PlayerProfile]: ...

    def increment(self, player_id: str, field: str) -> PlayerProfile: ...

    def leaderboard(self, limit: int = 10) -> List[PlayerProfile]: ...


class InMemoryGameStore:
    """Sessions keyed by id; saves are compare-and-swap on ``version``."""

    def __init__(self) -> None:
        self._games: Dict[str, GameSession] = {}
        self._lock = threading.Lock()

    def load(self, session_id: str) -> Optional[GameSession]:
        with self._lock:
            return self._games.get(session_id)

    def save(self, session: GameSession) -> GameSession:
        with self._lock:
            current = self._games.get(session.id)
            stored_version = current.version if current is not None else 0
            if stored_version != session.version:
                raise PersistenceConflict(
                    f"Game {session.id} changed since it was loaded "
                    f"(stored v{stored_version}, saving v{session.version})"
                )
            saved = replace(session, version=session.version + 1)
            self._games[session.id] = saved
            return saved

    def find_by_invite_code(self, code: str) -> Optional[GameSession]:
        normalized = code.strip().upper()
        with self._lock:
            for session in self._games.values():
                if (
                    session.invite_code == normalized
                    and session.status is GameStatus.WAITING
                ):
                    return session
        return None

    def __len__(self) -> int:
        return len(self._games)


class InMemoryUserStore:
    def __init__(self) -> None:
        self._users: Dict[str, PlayerProfile] = {}
        self._by_telegram: Dict[int, str] = {}
        self._lock = threading.Lock()

    def get_or_create(
        self,
        telegram_id: int,
        first_name: str,
        username: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> PlayerProfile:
        with self._lock:
            player_id = self._by_telegram.get(telegram_id)
            if player_id is not None:
                return replace(self._users[player_id])
            profile = PlayerProfile(
                id=uuid.uuid4().hex,
                telegram_id=telegram_id,
                first_name=first_name,
                username=username,
                last_name=last_name,
            )
            self._users[profile.id] = profile
            self._by_telegram[telegram_id] = profile.id
            logger.info("Registered player %s (telegram %s)", profile.id, telegram_id)
            return replace(profile)

    def get(self, player_id: str) -> Optional[PlayerProfile]:
        with self._lock:
            profile = self._users.get(player_id)
            return replace(profile) if profile is not None else None

    def increment(self, player_id: str, field: str) -> PlayerProfile:
        if field not in STAT_FIELDS:
            raise ValueError(f"Unknown statistic {field!r}")
        with self._lock:
            try:
                profile = self._users[player_id]
            except KeyError as exc:
                raise KeyError(f"Unknown player {player_id}") from exc
            setattr(profile, field, getattr(profile, field) + 1)
            return replace(profile)

    def leaderboard(self, limit: int = 10) -> List[PlayerProfile]:
        with self._lock:
            ranked = sorted(self._users.values(), key=lambda p: p.wins, reverse=True)
            return [replace(p) for p in ranked[:limit]]
