"""FastAPI webhook that drives tic-tac-toe games from Telegram updates."""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from .engine import GameEngine, GameMode, GameSession
from .game import InvalidMove, Player
from .render import (
    OutboxNotifier,
    RenderedMessage,
    invite_message,
    leaderboard_message,
    main_menu,
    multiplayer_help,
    render,
    stats_message,
)
from .store import (
    InMemoryGameStore,
    InMemoryUserStore,
    PersistenceConflict,
    PlayerProfile,
)

logger = logging.getLogger(__name__)

GAMES = InMemoryGameStore()
USERS = InMemoryUserStore()
NOTIFIER = OutboxNotifier()
ENGINE = GameEngine()

MOVE_CALLBACK = re.compile(r"^move_([0-9a-f]+)_([0-2])_([0-2])$")

app = FastAPI(title="xobot", description="Tic-tac-toe Telegram bot webhook")


# ---------- Telegram payloads ----------


class TelegramUser(BaseModel):
    id: int
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None
    is_bot: bool = False


class Chat(BaseModel):
    id: int
    type: str = "private"


class Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: int
    from_user: TelegramUser = Field(alias="from")
    chat: Chat
    text: Optional[str] = None


class CallbackMessage(BaseModel):
    message_id: int
    chat: Chat


class CallbackQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    from_user: TelegramUser = Field(alias="from")
    message: CallbackMessage
    data: str = ""


class TelegramUpdate(BaseModel):
    update_id: int
    message: Optional[Message] = None
    callback_query: Optional[CallbackQuery] = None


# ---------- replies ----------


def _send(chat_id: int, message: RenderedMessage) -> Dict[str, object]:
    reply: Dict[str, object] = {
        "method": "sendMessage",
        "chat_id": chat_id,
        "text": message.text,
        "parse_mode": "HTML",
    }
    if message.reply_markup is not None:
        reply["reply_markup"] = message.reply_markup
    return reply


def _edit(chat_id: int, message_id: int, message: RenderedMessage) -> Dict[str, object]:
    reply = _send(chat_id, message)
    reply["method"] = "editMessageText"
    reply["message_id"] = message_id
    return reply


def _ok() -> Dict[str, object]:
    return {"ok": True}


def _register(user: TelegramUser) -> PlayerProfile:
    return USERS.get_or_create(
        user.id, user.first_name, username=user.username, last_name=user.last_name
    )


def _notify_opponent(
    session: GameSession,
    actor_id: str,
    message_for: Callable[[Optional[Player]], RenderedMessage],
) -> None:
    for player_id in session.humans():
        if player_id == actor_id:
            continue
        profile = USERS.get(player_id)
        if profile is None:
            logger.warning("Unknown player %s in game %s", player_id, session.id)
            continue
        # Private chat ids equal the Telegram user id
        NOTIFIER.notify(profile.telegram_id, message_for(session.mark_of(player_id)))


def _save(session: GameSession) -> GameSession:
    try:
        return GAMES.save(session)
    except PersistenceConflict as exc:
        logger.warning("Discarding update to game %s: %s", session.id, exc)
        raise HTTPException(status_code=409, detail=str(exc)) from exc


# ---------- commands ----------


def _handle_command(message: Message, user: PlayerProfile) -> Dict[str, object]:
    chat_id = message.chat.id
    text = (message.text or "").strip()
    command, _, argument = text.partition(" ")
    # Group chats address commands as /start@BotName
    command = command.split("@", 1)[0]

    if command in ("/start", "/menu"):
        return _send(chat_id, main_menu(user.first_name))

    if command == "/stats":
        return _send(chat_id, stats_message(user))

    if command == "/leaderboard":
        return _send(chat_id, leaderboard_message(USERS.leaderboard()))

    if command == "/invite":
        session = _save(ENGINE.create_invite_game(user.id))
        return _send(chat_id, invite_message(session.invite_code or ""))

    if command == "/accept":
        code = argument.strip()
        if not code:
            return _send(chat_id, RenderedMessage("❌ Usage: /accept CODE"))
        session = GAMES.find_by_invite_code(code)
        if session is None:
            return _send(
                chat_id, RenderedMessage("❌ Invitation not found or already used")
            )
        try:
            started = ENGINE.accept_invite(session, user.id)
        except InvalidMove as exc:
            return _send(chat_id, RenderedMessage(f"❌ {exc}"))
        started = _save(started)
        _notify_opponent(started, user.id, lambda mark: render(started, mark))
        return _send(chat_id, render(started, started.mark_of(user.id)))

    return _send(chat_id, RenderedMessage("Send /start to open the menu."))


# ---------- callbacks ----------


def _handle_move(
    query: CallbackQuery, user: PlayerProfile, match: re.Match
) -> Dict[str, object]:
    chat_id = query.message.chat.id
    message_id = query.message.message_id
    game_id, row, col = match.group(1), int(match.group(2)), int(match.group(3))

    session = GAMES.load(game_id)
    if session is None or session.is_finished:
        return _edit(
            chat_id, message_id, RenderedMessage("❌ Game not found or already finished")
        )

    mark = session.mark_of(user.id)
    if mark is None:
        return _ok()

    result = ENGINE.apply_move(session, row, col, mark, player_id=user.id)
    if not result.applied:
        return _ok()

    saved = _save(result.session)
    for update in result.stats:
        USERS.increment(update.player_id, update.field)

    if not saved.mode.is_ai:
        _notify_opponent(saved, user.id, lambda m: render(saved, m))
    return _edit(chat_id, message_id, render(saved, mark))


def _handle_callback(query: CallbackQuery, user: PlayerProfile) -> Dict[str, object]:
    chat_id = query.message.chat.id
    message_id = query.message.message_id
    data = query.data

    if data == "main_menu":
        return _edit(chat_id, message_id, main_menu(user.first_name))

    if data == "stats":
        return _edit(chat_id, message_id, stats_message(user))

    if data == "leaderboard":
        return _edit(chat_id, message_id, leaderboard_message(USERS.leaderboard()))

    if data == "play_multiplayer":
        return _edit(chat_id, message_id, multiplayer_help())

    if data.startswith("play_ai_"):
        try:
            mode = GameMode(data[len("play_") :])
        except ValueError:
            return _ok()
        session = _save(ENGINE.create_ai_game(mode, user.id))
        return _edit(chat_id, message_id, render(session, "X"))

    match = MOVE_CALLBACK.match(data)
    if match:
        return _handle_move(query, user, match)

    logger.debug("Ignoring callback data %r", data)
    return _ok()


# ---------- routes ----------


@app.post("/telegram/webhook")
def telegram_webhook(update: TelegramUpdate) -> Dict[str, object]:
    if update.message is not None and update.message.text:
        user = _register(update.message.from_user)
        return _handle_command(update.message, user)

    if update.callback_query is not None:
        query = update.callback_query
        user = _register(query.from_user)
        return _handle_callback(query, user)

    return _ok()


def serialize_session(session: GameSession) -> Dict[str, object]:
    state: Dict[str, object] = {
        "id": session.id,
        "mode": session.mode.value,
        "status": session.status.value,
        "outcome": session.outcome.value,
        "board": session.board.to_rows(),
        "nextTurn": session.next_turn,
        "inviteCode": session.invite_code,
        "moves": [
            {"number": m.number, "row": m.row, "col": m.col, "mark": m.mark}
            for m in session.moves
        ],
    }
    if session.moves:
        state["lastMove"] = state["moves"][-1]  # type: ignore[index]
    return state


@app.get("/api/game/{game_id}")
def get_game(game_id: str) -> Dict[str, object]:
    session = GAMES.load(game_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return serialize_session(session)


@app.get("/")
def index() -> Dict[str, object]:
    return {"name": "xobot", "games": len(GAMES)}
