"""Application container.

Everything that talks to the backend receives its collaborators from a
:class:`GolfBuddiesApp` instance created at start-up and closed on exit;
there is no module-level client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .adapters.base import AuthProvider, Backend
from .adapters.supabase import SupabaseAuth, SupabaseBackend
from .auth import AuthManager
from .config import Settings
from .core.models import Golfer
from .core.session_store import SessionStore
from .data.store import LocalBackend
from .discovery.deck import DiscoveryController, MatchCollection
from .errors import GolfBuddiesError
from .games.chat import ChatSynchronizer
from .games.service import GameService
from .profiles import ProfileService

log = logging.getLogger("golf_buddies.app")


@dataclass
class GolfBuddiesApp:
    settings: Settings
    backend: Backend
    auth_provider: AuthProvider
    auth: AuthManager
    games: GameService
    profiles: ProfileService
    # right swipes survive switching screens but not a restart
    matches: MatchCollection = field(default_factory=MatchCollection)

    @classmethod
    def create(
        cls,
        settings: Settings,
        backend: Backend | None = None,
        auth_provider: AuthProvider | None = None,
    ) -> GolfBuddiesApp:
        if backend is None or auth_provider is None:
            backend, auth_provider = build_backend(settings)
        store = SessionStore(Path(settings.session_path))
        auth = AuthManager(auth_provider, backend, store, redirect_url=settings.redirect_url)
        return cls(
            settings=settings,
            backend=backend,
            auth_provider=auth_provider,
            auth=auth,
            games=GameService(backend),
            profiles=ProfileService(backend),
        )

    def discovery(self, candidates: list[Golfer]) -> DiscoveryController:
        return DiscoveryController(
            candidates,
            viewport_width=self.settings.viewport_width,
            matches=self.matches,
        )

    def chat(self, game_id: str) -> ChatSynchronizer:
        return ChatSynchronizer(self.backend, self.auth.require_user(), game_id)

    async def aclose(self) -> None:
        await self.backend.aclose()
        if isinstance(self.auth_provider, SupabaseAuth):
            await self.auth_provider.close()


def build_backend(settings: Settings) -> tuple[Backend, AuthProvider]:
    if settings.backend == "local":
        local = LocalBackend(path=settings.data_path)
        return local, local
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise GolfBuddiesError(
            "SUPABASE_URL and SUPABASE_ANON_KEY must be set, "
            "or use GOLF_BUDDIES_BACKEND=local."
        )
    backend = SupabaseBackend(settings.supabase_url, settings.supabase_anon_key)
    auth = SupabaseAuth(settings.supabase_url, settings.supabase_anon_key)
    return backend, auth
