import asyncio
from pathlib import Path

import pytest

from golf_buddies.auth import AuthManager, friendly_auth_message, tokens_from_redirect
from golf_buddies.core.session_store import SessionStore
from golf_buddies.errors import AuthError, ValidationError


def run(coro):
    """Run an async coroutine synchronously for tests."""
    return asyncio.run(coro)


@pytest.fixture()
def store(tmp_path: Path) -> SessionStore:
    return SessionStore(tmp_path / "session.json")


@pytest.fixture()
def manager(backend, store) -> AuthManager:
    return AuthManager(backend, backend, store)


def test_sign_up_sign_in_and_persist(manager, backend, store):
    events = []
    manager.on_change(lambda event, session: events.append(event))

    session = run(manager.sign_up("pat@example.com", "hunter22"))
    assert session is not None and manager.user.email == "pat@example.com"
    assert store.load().access_token == session.access_token

    run(manager.sign_out())
    assert manager.session is None
    assert store.load() is None

    run(manager.sign_in("pat@example.com", "hunter22"))
    assert events == ["SIGNED_IN", "SIGNED_OUT", "SIGNED_IN"]


def test_sign_in_requires_fields(manager):
    with pytest.raises(ValidationError, match="Please fill in all fields"):
        run(manager.sign_in("", "x"))
    with pytest.raises(ValidationError):
        run(manager.sign_up("pat@example.com", ""))


def test_sign_in_errors_are_friendly(manager):
    run(manager.sign_up("pat@example.com", "hunter22"))
    run(manager.sign_out())
    with pytest.raises(AuthError) as info:
        run(manager.sign_in("pat@example.com", "nope"))
    assert info.value.message == "Invalid email or password. Please try again."
    assert info.value.title == "Login Failed"


def test_friendly_messages():
    assert "verify your email" in friendly_auth_message("Email not confirmed")
    assert friendly_auth_message("") == "An error occurred during login"
    assert friendly_auth_message("Rate limited") == "Rate limited"


def test_restore_uses_stored_session(backend, store):
    first = AuthManager(backend, backend, store)
    run(first.sign_up("pat@example.com", "hunter22"))

    second = AuthManager(backend, backend, store)
    restored = run(second.restore())
    assert restored is not None
    assert second.user.email == "pat@example.com"


def test_restore_refreshes_expired_session(backend, store):
    manager = AuthManager(backend, backend, store)
    session = run(manager.sign_up("pat@example.com", "hunter22"))
    store.save(session.model_copy(update={"expires_at": 0.0}))

    fresh = AuthManager(backend, backend, store)
    restored = run(fresh.restore())
    assert restored is not None
    assert restored.access_token != session.access_token
    assert not restored.is_expired()


def test_restore_drops_unrefreshable_session(backend, store):
    manager = AuthManager(backend, backend, store)
    session = run(manager.sign_up("pat@example.com", "hunter22"))
    store.save(session.model_copy(update={"expires_at": 0.0, "refresh_token": "bogus"}))

    assert run(AuthManager(backend, backend, store).restore()) is None
    assert store.load() is None


def test_tokens_from_redirect():
    url = "golfbuddies://auth/callback#access_token=AAA&refresh_token=RRR&token_type=bearer"
    assert tokens_from_redirect(url) == ("AAA", "RRR")
    assert tokens_from_redirect("golfbuddies://auth/callback") is None
    assert tokens_from_redirect("golfbuddies://auth/callback#access_token=AAA") is None


def test_complete_oauth_sets_session(manager, backend):
    tokens = run(backend.sign_up("pat@example.com", "hunter22"))
    url = (
        "golfbuddies://auth/callback#access_token="
        f"{tokens['access_token']}&refresh_token={tokens['refresh_token']}"
    )
    session = run(manager.complete_oauth(url))
    assert session.user.email == "pat@example.com"
    with pytest.raises(AuthError):
        run(manager.complete_oauth("golfbuddies://auth/callback"))


def test_oauth_url_rejects_unknown_provider(manager):
    with pytest.raises(ValidationError):
        manager.oauth_url("myspace")
    with pytest.raises(AuthError):
        manager.oauth_url("google")  # not available on the local backend


def test_require_user(manager):
    with pytest.raises(AuthError):
        manager.require_user()


def test_restore_clears_session_when_refresh_is_empty(backend, store, monkeypatch):
    manager = AuthManager(backend, backend, store)
    session = run(manager.sign_up("pat@example.com", "hunter22"))
    store.save(session.model_copy(update={"expires_at": 0.0}))

    async def empty_refresh(refresh_token):
        return {}

    monkeypatch.setattr(backend, "refresh", empty_refresh)
    events = []
    fresh = AuthManager(backend, backend, store)
    fresh.on_change(lambda event, s: events.append(event))
    assert run(fresh.restore()) is None
    assert store.load() is None
    assert events == ["SIGNED_OUT"]


def test_ensure_fresh_refreshes_expired_session(manager):
    session = run(manager.sign_up("pat@example.com", "hunter22"))
    assert run(manager.ensure_fresh()) is session

    manager.session = session.model_copy(update={"expires_at": 0.0})
    refreshed = run(manager.ensure_fresh())
    assert refreshed.access_token != session.access_token
    assert manager.session is refreshed


def test_keep_fresh_refreshes_during_long_feeds(manager):
    events = []
    session = run(manager.sign_up("pat@example.com", "hunter22"))
    manager.on_change(lambda event, s: events.append(event))
    manager.session = session.model_copy(update={"expires_at": 0.0})

    async def scenario():
        task = asyncio.create_task(manager.keep_fresh(check_every=0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    run(scenario())
    assert events == ["TOKEN_REFRESHED"]
    assert not manager.session.is_expired()


def test_keep_fresh_signs_out_when_refresh_fails(manager, store):
    session = run(manager.sign_up("pat@example.com", "hunter22"))
    manager.session = session.model_copy(update={"expires_at": 0.0, "refresh_token": "bogus"})
    run(manager.keep_fresh(check_every=0.01))
    assert manager.session is None
    assert store.load() is None
