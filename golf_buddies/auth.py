"""Session management on top of an :class:`AuthProvider`.

``AuthManager`` owns the current :class:`Session`, persists it between runs,
refreshes it when it has expired and tells listeners whenever the signed-in
user changes.  The data backend is handed the access token so row requests
and realtime channels run as the signed-in user.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any
from urllib.parse import parse_qs, urlparse

from .adapters.base import AuthProvider, Backend
from .core.models import Session, User
from .core.session_store import SessionStore
from .errors import AuthError, ValidationError

log = logging.getLogger("golf_buddies.auth")

OAUTH_PROVIDERS = ("google", "apple")

AuthListener = Callable[[str, Session | None], None]


def friendly_auth_message(message: str) -> str:
    """Translate backend sign-in errors into something a golfer can act on."""
    if "Email not confirmed" in message:
        return (
            "Please verify your email address before logging in. "
            "Check your inbox for the verification link."
        )
    if "Invalid login credentials" in message:
        return "Invalid email or password. Please try again."
    return message or "An error occurred during login"


def tokens_from_redirect(url: str) -> tuple[str, str] | None:
    """Pull ``access_token`` and ``refresh_token`` out of an OAuth redirect.

    The tokens arrive in the URL fragment (``...#access_token=...``).
    Returns ``None`` when either token is missing.
    """
    fragment = urlparse(url).fragment
    if not fragment:
        return None
    params = parse_qs(fragment)
    access = params.get("access_token", [""])[0]
    refresh = params.get("refresh_token", [""])[0]
    if not access or not refresh:
        return None
    return access, refresh


class AuthManager:
    def __init__(
        self,
        provider: AuthProvider,
        backend: Backend,
        store: SessionStore | None = None,
        redirect_url: str = "golfbuddies://auth/callback",
    ) -> None:
        self.provider = provider
        self.backend = backend
        self.store = store
        self.redirect_url = redirect_url
        self.session: Session | None = None
        self._listeners: list[AuthListener] = []

    @property
    def user(self) -> User | None:
        return self.session.user if self.session else None

    def require_user(self) -> User:
        if self.session is None:
            raise AuthError("You need to sign in first")
        return self.session.user

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def on_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register ``listener``; the returned function unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_session(self, event: str, session: Session | None) -> None:
        self.session = session
        self.backend.set_access_token(session.access_token if session else None)
        if self.store is not None:
            if session is None:
                self.store.clear()
            else:
                self.store.save(session)
        log.info("Auth state changed: %s", event)
        for listener in list(self._listeners):
            listener(event, session)

    @staticmethod
    def _session_from(response: dict[str, Any]) -> Session | None:
        if not response.get("access_token"):
            return None
        return Session.model_validate(response)

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------
    async def restore(self) -> Session | None:
        """Load the persisted session, refreshing it if it has expired."""
        if self.store is None:
            return None
        session = self.store.load()
        if session is None:
            return None
        if session.is_expired():
            try:
                session = self._session_from(await self.provider.refresh(session.refresh_token))
            except AuthError:
                log.warning("Stored session could not be refreshed")
                self._set_session("SIGNED_OUT", None)
                return None
            if session is None:
                log.warning("Refresh returned no session")
                self._set_session("SIGNED_OUT", None)
                return None
            self._set_session("TOKEN_REFRESHED", session)
        else:
            self._set_session("INITIAL_SESSION", session)
        return session

    async def ensure_fresh(self) -> Session:
        """Return the current session, refreshing it first if it has expired."""
        session = self.session
        if session is None:
            raise AuthError("You need to sign in first")
        if session.is_expired():
            refreshed = self._session_from(await self.provider.refresh(session.refresh_token))
            if refreshed is None:
                raise AuthError("Session expired, please sign in again")
            self._set_session("TOKEN_REFRESHED", refreshed)
            session = refreshed
        return session

    async def keep_fresh(self, check_every: float = 60.0) -> None:
        """Refresh the session whenever it expires until signed out or cancelled."""
        while self.session is not None:
            try:
                await self.ensure_fresh()
            except AuthError as exc:
                log.warning("Session could not be refreshed: %s", exc.message)
                self._set_session("SIGNED_OUT", None)
                return
            await asyncio.sleep(check_every)

    async def sign_up(self, email: str, password: str) -> Session | None:
        """Create an account.

        Returns the new session, or ``None`` when the backend wants the email
        confirmed first.
        """
        if not email or not password:
            raise ValidationError("Please fill in all fields")
        response = await self.provider.sign_up(email, password, redirect_to=self.redirect_url)
        session = self._session_from(response)
        if session is not None:
            self._set_session("SIGNED_IN", session)
        return session

    async def sign_in(self, email: str, password: str) -> Session:
        if not email or not password:
            raise ValidationError("Please fill in all fields")
        try:
            response = await self.provider.sign_in_with_password(email, password)
        except AuthError as exc:
            log.info("Login error: %s", exc.message)
            err = AuthError(friendly_auth_message(exc.message))
            err.title = "Login Failed"
            raise err from exc
        session = self._session_from(response)
        if session is None:
            raise AuthError("An error occurred during login")
        self._set_session("SIGNED_IN", session)
        return session

    def oauth_url(self, provider: str) -> str:
        if provider not in OAUTH_PROVIDERS:
            raise ValidationError(f"Unsupported sign in provider: {provider}")
        return self.provider.authorize_url(provider, self.redirect_url)

    async def complete_oauth(self, redirect_url: str) -> Session:
        """Finish a delegated login from the redirect the browser landed on."""
        tokens = tokens_from_redirect(redirect_url)
        if tokens is None:
            raise AuthError("An error occurred during sign in")
        access, refresh = tokens
        user = User.model_validate(await self.provider.get_user(access))
        session = Session(access_token=access, refresh_token=refresh, user=user)
        self._set_session("SIGNED_IN", session)
        return session

    async def sign_out(self) -> None:
        session = self.session
        if session is not None:
            try:
                await self.provider.sign_out(session.access_token)
            except AuthError:
                log.warning("Sign out request rejected; clearing local session anyway")
        self._set_session("SIGNED_OUT", None)
