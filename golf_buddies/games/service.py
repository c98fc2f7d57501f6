"""Hosted games: listing, creating, joining and leaving.

The backend is the single source of truth; nothing here caches game state.
Capacity is checked by reading the counters before inserting a membership,
which is not atomic, so two concurrent joins can both get in.
"""

from __future__ import annotations

import contextlib
import datetime
import logging
import secrets
import string
from collections.abc import Awaitable, Callable, Iterator
from typing import Any

import pydantic

from ..adapters.base import Backend, Subscription, deliver
from ..core.models import MAX_PLAYERS, MIN_PLAYERS, Game, GameMember, User
from ..errors import BackendError, GameFullError, NotFoundError, ValidationError

log = logging.getLogger("golf_buddies.games")

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITE_CODE_LENGTH = 6

GAMES = "games"
MEMBERS = "game_members"

GamesCallback = Callable[[list[Game]], Awaitable[None] | None]


def generate_invite_code() -> str:
    """Six random characters from ``A-Z0-9``; uniqueness is not checked."""
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def parse_max_players(value: int | str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Max players must be between {MIN_PLAYERS} and {MAX_PLAYERS}")
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            value = -1
    if not isinstance(value, int) or not MIN_PLAYERS <= value <= MAX_PLAYERS:
        raise ValidationError(f"Max players must be between {MIN_PLAYERS} and {MAX_PLAYERS}")
    return value


def _game_from(row: dict[str, Any]) -> Game:
    try:
        return Game.model_validate(row)
    except pydantic.ValidationError as exc:
        log.error("Invalid game row %s: %s", row.get("id"), exc)
        raise BackendError("Received an invalid game from the server") from exc


def invite_message(game: Game | None, code: str | None = None) -> str:
    """Share text for an invite."""
    if game is not None and game.name:
        return f'Join my golf game "{game.name}"! Use invite code: {game.invite_code}'
    return f"Join my golf game! Use invite code: {code or (game.invite_code if game else '')}"


class GameService:
    def __init__(self, backend: Backend) -> None:
        self.backend = backend
        self._in_flight: set[str] = set()

    @contextlib.contextmanager
    def _busy(self, action: str) -> Iterator[None]:
        # one submission per action at a time
        if action in self._in_flight:
            raise ValidationError(f"{action.capitalize()} already in progress")
        self._in_flight.add(action)
        try:
            yield
        finally:
            self._in_flight.discard(action)

    def is_busy(self, action: str) -> bool:
        return action in self._in_flight

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def list_open_games(self) -> list[Game]:
        rows = await self.backend.select(GAMES, {"status": "open"}, order=("created_at", True))
        games = []
        for row in rows:
            try:
                games.append(_game_from(row))
            except BackendError:
                log.warning("Skipping invalid game row %s", row.get("id"))
        return games

    async def watch_open_games(self, callback: GamesCallback) -> Subscription:
        """Reload the open games and pass them to ``callback`` on every change."""

        async def on_change(payload: dict[str, Any]) -> None:
            log.debug("Games changed, reloading...")
            try:
                games = await self.list_open_games()
            except BackendError:
                log.exception("Error loading games")
                return
            await deliver(callback, games)

        return await self.backend.subscribe_changes(GAMES, on_change)

    async def get_game(self, game_id: str) -> Game:
        row = await self.backend.select_one(GAMES, {"id": game_id})
        if row is None:
            raise NotFoundError("Game not found")
        return _game_from(row)

    async def list_members(self, game_id: str) -> list[GameMember]:
        rows = await self.backend.select(MEMBERS, {"game_id": game_id})
        return [GameMember.model_validate(r) for r in rows]

    async def membership(self, user: User, game_id: str) -> GameMember | None:
        row = await self.backend.select_one(MEMBERS, {"game_id": game_id, "user_id": user.id})
        return GameMember.model_validate(row) if row else None

    async def is_member(self, user: User, game_id: str) -> bool:
        return await self.membership(user, game_id) is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def create_game(
        self,
        host: User,
        name: str,
        description: str = "",
        max_players: int | str = MAX_PLAYERS,
        location: str | None = None,
        scheduled_date: datetime.datetime | None = None,
    ) -> Game:
        """Validate, insert the game, then add the host as its first member.

        A failure adding the host is logged and the game is kept.
        """
        if not name or not name.strip():
            raise ValidationError("Please enter a game name")
        players = parse_max_players(max_players)

        with self._busy("create"):
            row = {
                "name": name,
                "description": description,
                "max_players": players,
                "host_id": host.id,
                "invite_code": generate_invite_code(),
                "location": location or None,
                "scheduled_date": scheduled_date.isoformat() if scheduled_date else None,
            }
            game = _game_from(await self.backend.insert(GAMES, row))
            log.info("Created game %s with invite code %s", game.id, game.invite_code)

            try:
                await self.backend.insert(MEMBERS, {"game_id": game.id, "user_id": host.id})
            except BackendError:
                log.exception("Error adding host as member")
            return game

    async def join_game(self, user: User, game_id: str) -> GameMember:
        """Join ``game_id``; joining a game you are already in is a no-op."""
        with self._busy("join"):
            existing = await self.membership(user, game_id)
            if existing is not None:
                return existing

            game = await self.get_game(game_id)
            if game.is_full:
                raise GameFullError()

            row = await self.backend.insert(MEMBERS, {"game_id": game_id, "user_id": user.id})
            log.info("User %s joined game %s", user.id, game_id)
            return GameMember.model_validate(row)

    async def join_with_code(self, user: User, code: str) -> GameMember:
        normalized = (code or "").strip().upper()
        if not normalized:
            raise ValidationError("Please enter an invite code")
        row = await self.backend.select_one(GAMES, {"invite_code": normalized, "status": "open"})
        if row is None:
            raise NotFoundError("Invalid invite code")
        return await self.join_game(user, row["id"])

    async def leave_game(self, user: User, game_id: str) -> None:
        # hosts are not special-cased here; see can_leave
        with self._busy("leave"):
            await self.backend.delete(MEMBERS, {"game_id": game_id, "user_id": user.id})
            log.info("User %s left game %s", user.id, game_id)

    @staticmethod
    def can_leave(user: User, game: Game) -> bool:
        """Whether the game screen offers "Leave" to ``user``."""
        return game.host_id != user.id
