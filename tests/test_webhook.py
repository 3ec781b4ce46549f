"""Tests for the FastAPI Telegram webhook."""

from __future__ import annotations

import random

import pytest
from fastapi.testclient import TestClient

from xobot import webhook
from xobot.engine import GameEngine
from xobot.render import OUTBOX_LIMIT, OutboxNotifier, RenderedMessage
from xobot.store import InMemoryGameStore, InMemoryUserStore, PersistenceConflict


client = TestClient(webhook.app)

ALICE = {"id": 100, "first_name": "Alice", "username": "alice"}
BOB = {"id": 200, "first_name": "Bob"}
_update_ids = iter(range(1, 10_000))


@pytest.fixture(autouse=True)
def fresh_state(monkeypatch):
    monkeypatch.setattr(webhook, "GAMES", InMemoryGameStore())
    monkeypatch.setattr(webhook, "USERS", InMemoryUserStore())
    monkeypatch.setattr(webhook, "NOTIFIER", OutboxNotifier())
    monkeypatch.setattr(webhook, "ENGINE", GameEngine(rng=random.Random(7)))


def command(user, text, chat=None):
    payload = {
        "update_id": next(_update_ids),
        "message": {
            "message_id": 1,
            "from": user,
            "chat": chat or {"id": user["id"], "type": "private"},
            "text": text,
        },
    }
    response = client.post("/telegram/webhook", json=payload)
    assert response.status_code == 200
    return response.json()


def callback(user, data, expected_status=200):
    payload = {
        "update_id": next(_update_ids),
        "callback_query": {
            "id": "cb",
            "from": user,
            "message": {"message_id": 5, "chat": {"id": user["id"]}},
            "data": data,
        },
    }
    response = client.post("/telegram/webhook", json=payload)
    assert response.status_code == expected_status
    return response.json()


def game_id_from(reply):
    first_button = reply["reply_markup"]["inline_keyboard"][0][0]["callback_data"]
    return first_button.split("_")[1]


def test_start_shows_menu():
    reply = command(ALICE, "/start")
    assert reply["method"] == "sendMessage"
    assert reply["chat_id"] == 100
    assert "Alice" in reply["text"]
    buttons = [b["callback_data"] for row in reply["reply_markup"]["inline_keyboard"] for b in row]
    assert "play_ai_hard" in buttons


def test_ai_game_move_includes_ai_reply():
    reply = callback(ALICE, "play_ai_hard")
    assert reply["method"] == "editMessageText"
    game_id = game_id_from(reply)

    reply = callback(ALICE, f"move_{game_id}_0_0")
    cells = [b["text"] for row in reply["reply_markup"]["inline_keyboard"][:3] for b in row]
    assert cells[0] == "X"
    assert cells[4] == "O"

    state = client.get(f"/api/game/{game_id}").json()
    assert state["status"] == "active"
    assert state["nextTurn"] == "X"
    assert [m["mark"] for m in state["moves"]] == ["X", "O"]
    assert state["lastMove"] == {"number": 2, "row": 1, "col": 1, "mark": "O"}


def test_occupied_cell_is_ignored():
    game_id = game_id_from(callback(ALICE, "play_ai_hard"))
    callback(ALICE, f"move_{game_id}_0_0")
    before = client.get(f"/api/game/{game_id}").json()
    assert callback(ALICE, f"move_{game_id}_1_1") == {"ok": True}
    assert client.get(f"/api/game/{game_id}").json() == before


def test_stranger_cannot_move():
    game_id = game_id_from(callback(ALICE, "play_ai_easy"))
    assert callback(BOB, f"move_{game_id}_0_0") == {"ok": True}
    assert client.get(f"/api/game/{game_id}").json()["moves"] == []


def test_unknown_game_reports_not_found():
    reply = callback(ALICE, "move_deadbeef_0_0")
    assert "not found" in reply["text"]
    assert client.get("/api/game/deadbeef").status_code == 404


def test_malformed_callback_is_ignored():
    assert callback(ALICE, "move_zz_9_9") == {"ok": True}
    assert callback(ALICE, "play_ai_impossible") == {"ok": True}


def test_invite_accept_and_peer_game_to_win():
    reply = command(ALICE, "/invite")
    code = reply["text"].split("<code>")[1].split("</code>")[0]
    assert len(code) == 6

    reply = command(BOB, f"/accept {code}")
    game_id = game_id_from(reply)
    # Alice hears that the game started
    assert [chat for chat, _ in webhook.NOTIFIER.sent] == [100]

    for user, cell in ((ALICE, "0_0"), (BOB, "1_0"), (ALICE, "0_1"), (BOB, "1_1")):
        callback(user, f"move_{game_id}_{cell}")
    # Bob trying to move out of turn changes nothing
    assert callback(BOB, f"move_{game_id}_2_2") == {"ok": True}

    reply = callback(ALICE, f"move_{game_id}_0_2")
    assert "You won" in reply["text"]
    last_chat, last_message = webhook.NOTIFIER.sent[-1]
    assert last_chat == 200
    assert "You lost" in last_message.text

    state = client.get(f"/api/game/{game_id}").json()
    assert state["status"] == "finished"
    assert state["outcome"] == "X"

    alice_stats = command(ALICE, "/stats")["text"]
    bob_stats = command(BOB, "/stats")["text"]
    assert "Wins: 1" in alice_stats
    assert "Losses: 1" in bob_stats

    leaders = command(ALICE, "/leaderboard")["text"]
    assert leaders.index("Alice") < leaders.index("Bob")

    reply = callback(BOB, f"move_{game_id}_2_2")
    assert "not found" in reply["text"]


def test_accept_rejects_unknown_code_and_own_invite():
    assert "not found" in command(BOB, "/accept NOPE42")["text"]
    assert "Usage" in command(BOB, "/accept")["text"]
    code = command(ALICE, "/invite")["text"].split("<code>")[1].split("</code>")[0]
    assert "own invitation" in command(ALICE, f"/accept {code}")["text"]


def test_persistence_conflict_reports_nothing(monkeypatch):
    game_id = game_id_from(callback(ALICE, "play_ai_hard"))

    def refuse(session):
        raise PersistenceConflict("stale")

    monkeypatch.setattr(webhook.GAMES, "save", refuse)
    reply = callback(ALICE, f"move_{game_id}_0_0", expected_status=409)
    assert reply["detail"] == "stale"
    assert webhook.GAMES.load(game_id).moves == ()
    assert len(webhook.NOTIFIER.sent) == 0


def test_group_chat_command_form_is_recognised():
    group = {"id": -500, "type": "group"}
    reply = command(ALICE, "/start@XoBot", chat=group)
    assert reply["chat_id"] == -500
    assert "Pick a game mode" in reply["text"]
    code = command(ALICE, "/invite@XoBot", chat=group)["text"]
    assert "Invitation created" in code


def test_opponent_is_notified_in_private_chat():
    group = {"id": -500, "type": "group"}
    reply = command(ALICE, "/invite", chat=group)
    code = reply["text"].split("<code>")[1].split("</code>")[0]
    command(BOB, f"/accept {code}")
    assert [chat for chat, _ in webhook.NOTIFIER.sent] == [ALICE["id"]]


def test_outbox_keeps_a_bounded_history(monkeypatch):
    monkeypatch.setattr(webhook, "NOTIFIER", OutboxNotifier(limit=10))
    for i in range(50):
        code = command(ALICE, "/invite")["text"].split("<code>")[1].split("</code>")[0]
        command({"id": 1000 + i, "first_name": f"Guest{i}"}, f"/accept {code}")
    assert len(webhook.NOTIFIER.sent) == 10
    assert all(chat == ALICE["id"] for chat, _ in webhook.NOTIFIER.sent)


def test_outbox_default_limit():
    notifier = OutboxNotifier()
    for i in range(OUTBOX_LIMIT + 25):
        notifier.notify(i, RenderedMessage("hi"))
    assert len(notifier.sent) == OUTBOX_LIMIT
    assert notifier.sent[0][0] == 25
