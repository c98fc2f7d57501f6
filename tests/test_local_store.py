import asyncio

import pytest

from golf_buddies.data.store import LocalBackend
from golf_buddies.errors import AuthError


def run(coro):
    """Run an async coroutine synchronously for tests."""
    return asyncio.run(coro)


def test_insert_applies_defaults_and_persists(tmp_path):
    path = str(tmp_path / "data.json")
    store = LocalBackend(path=path)
    row = run(store.insert("games", {"name": "Skins", "max_players": 4, "host_id": "h", "invite_code": "ABC123"}))
    assert row["status"] == "open"
    assert row["current_players"] == 0
    assert row["id"] and row["created_at"]

    store2 = LocalBackend(path=path)
    assert run(store2.select("games", {"id": row["id"]}))[0]["name"] == "Skins"


def test_select_filters_orders_and_limits(backend):
    for i, ts in enumerate(["2026-01-03", "2026-01-01", "2026-01-02"]):
        run(backend.insert("chat_messages", {"game_id": "g", "user_id": "u", "message": str(i), "user_name": "u", "created_at": ts}))
    run(backend.insert("chat_messages", {"game_id": "other", "user_id": "u", "message": "x", "user_name": "u"}))

    rows = run(backend.select("chat_messages", {"game_id": "g"}, order=("created_at", False)))
    assert [r["message"] for r in rows] == ["1", "2", "0"]
    rows = run(backend.select("chat_messages", {"game_id": "g"}, order=("created_at", True), limit=1))
    assert [r["message"] for r in rows] == ["0"]
    assert run(backend.select_one("chat_messages", {"game_id": "missing"})) is None


def test_membership_trigger_keeps_player_count(backend):
    game = run(backend.insert("games", {"name": "G", "max_players": 4, "host_id": "h", "invite_code": "ABC123"}))
    run(backend.insert("game_members", {"game_id": game["id"], "user_id": "a"}))
    run(backend.insert("game_members", {"game_id": game["id"], "user_id": "b"}))
    assert run(backend.select_one("games", {"id": game["id"]}))["current_players"] == 2
    assert run(backend.delete("game_members", {"game_id": game["id"], "user_id": "a"})) == 1
    assert run(backend.select_one("games", {"id": game["id"]}))["current_players"] == 1
    assert run(backend.delete("game_members", {"game_id": game["id"], "user_id": "zzz"})) == 0


def test_change_subscriptions(backend):
    events = []

    async def scenario():
        sub = await backend.subscribe_changes("games", events.append)
        await backend.insert("games", {"name": "G", "max_players": 4, "host_id": "h", "invite_code": "ABC123"})
        await sub.close()
        await sub.close()
        await backend.insert("games", {"name": "H", "max_players": 4, "host_id": "h", "invite_code": "ABC124"})

    run(scenario())
    assert [(e["table"], e["type"], e["record"]["name"]) for e in events] == [("games", "INSERT", "G")]


def test_failing_callback_does_not_break_writes(backend):
    def boom(payload):
        raise RuntimeError("listener bug")

    async def scenario():
        await backend.subscribe_changes("games", boom)
        return await backend.insert("games", {"name": "G", "max_players": 4, "host_id": "h", "invite_code": "ABC123"})

    assert run(scenario())["name"] == "G"


def test_upsert_replaces_on_conflict(backend):
    run(backend.upsert("profiles", {"user_id": "u", "name": "A"}, on_conflict="user_id"))
    run(backend.upsert("profiles", {"user_id": "u", "name": "B"}, on_conflict="user_id"))
    rows = run(backend.select("profiles"))
    assert len(rows) == 1 and rows[0]["name"] == "B"


def test_password_auth_flow(backend):
    response = run(backend.sign_up("Pat@Example.com", "hunter22"))
    user_id = response["user"]["id"]
    assert response["user"]["email"] == "pat@example.com"

    with pytest.raises(AuthError, match="already registered"):
        run(backend.sign_up("pat@example.com", "other"))
    with pytest.raises(AuthError, match="Invalid login credentials"):
        run(backend.sign_in_with_password("pat@example.com", "wrong"))

    session = run(backend.sign_in_with_password("pat@example.com", "hunter22"))
    assert run(backend.get_user(session["access_token"]))["id"] == user_id

    refreshed = run(backend.refresh(session["refresh_token"]))
    assert refreshed["access_token"] != session["access_token"]
    with pytest.raises(AuthError):
        run(backend.refresh(session["refresh_token"]))  # single use

    run(backend.sign_out(refreshed["access_token"]))
    with pytest.raises(AuthError):
        run(backend.get_user(refreshed["access_token"]))


def test_oauth_not_available_offline(backend):
    with pytest.raises(AuthError):
        backend.authorize_url("google", "golfbuddies://auth/callback")
