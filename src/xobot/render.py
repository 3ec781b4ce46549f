"""Chat rendering of sessions and menus, plus the outbound notifier."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Protocol, Sequence, Tuple
import logging

from .engine import GameSession, Outcome
from .game import Player
from .store import PlayerProfile

logger = logging.getLogger(__name__)

EMPTY_CELL = "⬜"
OUTBOX_LIMIT = 100

Keyboard = Dict[str, List[List[Dict[str, str]]]]


@dataclass(frozen=True)
class RenderedMessage:
    text: str
    reply_markup: Optional[Keyboard] = None


def menu_button() -> Dict[str, str]:
    return {"text": "🏠 Main menu", "callback_data": "main_menu"}


def back_to_menu() -> Keyboard:
    return {"inline_keyboard": [[menu_button()]]}


def main_menu(first_name: str) -> RenderedMessage:
    keyboard: Keyboard = {
        "inline_keyboard": [
            [
                {"text": "🤖 Play AI (Easy)", "callback_data": "play_ai_easy"},
                {"text": "🧠 Play AI (Medium)", "callback_data": "play_ai_medium"},
            ],
            [{"text": "🔥 Play AI (Hard)", "callback_data": "play_ai_hard"}],
            [
                {"text": "👥 Play a friend", "callback_data": "play_multiplayer"},
                {"text": "📊 Statistics", "callback_data": "stats"},
            ],
            [{"text": "🏆 Leaderboard", "callback_data": "leaderboard"}],
        ]
    }
    return RenderedMessage(
        f"🎮 <b>Welcome to TicTacToe Bot!</b>\n\nHi, {first_name}! Pick a game mode:",
        keyboard,
    )


def multiplayer_help() -> RenderedMessage:
    return RenderedMessage(
        "👥 <b>Play a friend</b>\n\n"
        "• <code>/invite</code> - create an invitation\n"
        "• <code>/accept CODE</code> - accept an invitation",
        back_to_menu(),
    )


def invite_message(code: str) -> RenderedMessage:
    return RenderedMessage(
        "🎯 <b>Invitation created!</b>\n\n"
        f"Invite code: <code>{code}</code>\n\n"
        "Send it to a friend so they can join with:\n"
        f"<code>/accept {code}</code>",
        back_to_menu(),
    )


def stats_message(profile: PlayerProfile) -> RenderedMessage:
    return RenderedMessage(
        "📊 <b>Your statistics:</b>\n\n"
        f"🏆 Wins: {profile.wins}\n"
        f"❌ Losses: {profile.losses}\n"
        f"🤝 Draws: {profile.draws}\n"
        f"📈 Games played: {profile.total}",
        back_to_menu(),
    )


def leaderboard_message(profiles: Sequence[PlayerProfile]) -> RenderedMessage:
    lines = ["🏆 <b>Leaderboard:</b>", ""]
    if not profiles:
        lines.append("No games played yet")
    for rank, p in enumerate(profiles, start=1):
        lines.append(f"{rank}. {p.first_name}")
        lines.append(f"   🏆 {p.wins} wins ({p.win_rate}%)")
        lines.append("")
    return RenderedMessage("\n".join(lines).rstrip(), back_to_menu())


def board_keyboard(session: GameSession) -> Keyboard:
    rows: List[List[Dict[str, str]]] = []
    for r, row in enumerate(session.board.to_rows()):
        rows.append(
            [
                {
                    "text": cell or EMPTY_CELL,
                    "callback_data": f"move_{session.id}_{r}_{c}",
                }
                for c, cell in enumerate(row)
            ]
        )
    rows.append([menu_button()])
    return {"inline_keyboard": rows}


def _outcome_line(session: GameSession, viewer: Optional[Player]) -> str:
    if session.outcome is Outcome.DRAW:
        return "🤝 <b>Draw!</b>\n\nGame over."
    won = session.outcome.value
    if session.mode.is_ai:
        if won == "X":
            return "🎉 <b>Congratulations! You won!</b>\n\nGame over."
        return "😔 <b>The AI won!</b>\n\nTry again!"
    if viewer is not None:
        verdict = "You won!" if viewer == won else "You lost."
        return f"🎉 <b>Game over!</b>\n\nPlayer {won} wins. {verdict}"
    return f"🎉 <b>Game over!</b>\n\nPlayer {won} wins!"


def render(session: GameSession, viewer: Optional[Player] = None) -> RenderedMessage:
    """Text and inline keyboard for ``session`` as seen by ``viewer``."""
    if session.is_finished:
        return RenderedMessage(
            _outcome_line(session, viewer) + "\n\n" + _grid_text(session),
            back_to_menu(),
        )
    if session.mode.is_ai:
        prompt = "You play X, your move!" if not session.moves else "Your move!"
        text = f"🎮 <b>Game vs AI</b>\n\n{prompt}"
    else:
        text = f"🎮 <b>Multiplayer game</b>\n\nPlayer {session.current_turn} to move"
        if viewer is not None:
            text += " (you)" if viewer == session.current_turn else ""
    return RenderedMessage(text, board_keyboard(session))


def _grid_text(session: GameSession) -> str:
    return "\n".join(
        "".join(cell or EMPTY_CELL for cell in row) for row in session.board.to_rows()
    )


# ---------- Notifier ----------


class Notifier(Protocol):
    def notify(self, chat_id: int, message: RenderedMessage) -> None: ...


@dataclass
class OutboxNotifier:
    """Keeps the most recent outbound messages in order; older ones are dropped.

    Delivery is someone else's job.
    """

    limit: int = OUTBOX_LIMIT
    sent: Deque[Tuple[int, RenderedMessage]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.sent = deque(maxlen=self.limit)

    def notify(self, chat_id: int, message: RenderedMessage) -> None:
        logger.info("Queued message for chat %s", chat_id)
        self.sent.append((chat_id, message))
