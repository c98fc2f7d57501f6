"""JSON file backend for offline use and local development.

``LocalBackend`` stands in for the hosted database.  It keeps every table as
a list of rows in one JSON file and reproduces the server-side behaviour the
app relies on: column defaults, the ``current_players`` counter maintained by
membership triggers, chat inserts broadcast on ``game:<id>:chat`` and change
notifications for table subscribers.
"""

from __future__ import annotations

import datetime
import hashlib
import json
import logging
import os
import secrets
import uuid
from collections.abc import Callable, Mapping
from datetime import UTC
from typing import Any

from ..adapters.base import (
    AuthProvider,
    Backend,
    EventCallback,
    Row,
    Subscription,
    deliver,
)
from ..errors import AuthError

log = logging.getLogger("golf_buddies.local")

TOKEN_TTL = 3600


def _now_iso() -> str:
    return datetime.datetime.now(tz=UTC).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


# Column defaults applied on insert, mirroring the hosted schema.
TABLE_DEFAULTS: dict[str, dict[str, Callable[[], Any]]] = {
    "games": {
        "id": _new_id,
        "status": lambda: "open",
        "current_players": lambda: 0,
        "description": lambda: "",
        "created_at": _now_iso,
    },
    "game_members": {"id": _new_id, "joined_at": _now_iso},
    "chat_messages": {"id": _new_id, "created_at": _now_iso},
    "profiles": {"updated_at": _now_iso},
}


def _matches(row: Row, filters: Mapping[str, Any] | None) -> bool:
    return all(row.get(col) == value for col, value in (filters or {}).items())


class LocalSubscription(Subscription):
    def __init__(self, registry: list[LocalSubscription], key: str, callback: EventCallback) -> None:
        self._registry = registry
        self.key = key
        self.callback = callback
        self.closed = False
        registry.append(self)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._registry.remove(self)


class LocalBackend(Backend, AuthProvider):
    """Simple JSON based backend."""

    def __init__(self, path: str = "golf_buddies_data.json") -> None:
        self.path = path
        self.tables: dict[str, list[Row]] = {}
        self._users: dict[str, dict[str, Any]] = {}
        self._tokens: dict[str, dict[str, Any]] = {}
        self._change_subs: list[LocalSubscription] = []
        self._broadcast_subs: list[LocalSubscription] = []
        self._load()

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def _load(self) -> None:
        """Load store contents from ``self.path`` if it exists."""
        if not os.path.exists(self.path):
            return

        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)

        self.tables = {name: list(rows) for name, rows in data.get("tables", {}).items()}
        self._users = dict(data.get("users", {}))
        self._tokens = dict(data.get("tokens", {}))

    def save(self) -> None:
        """Persist the current state atomically."""
        tmp = self.path + ".tmp"
        data = {"tables": self.tables, "users": self._users, "tokens": self._tokens}
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp, self.path)

    def _table(self, name: str) -> list[Row]:
        return self.tables.setdefault(name, [])

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    async def _notify_change(self, table: str, kind: str, record: Row, old: Row | None = None) -> None:
        payload = {
            "schema": "public",
            "table": table,
            "type": kind,
            "record": dict(record) if kind != "DELETE" else {},
            "old_record": dict(old or {}),
        }
        for sub in list(self._change_subs):
            if sub.key == table and not sub.closed:
                try:
                    await deliver(sub.callback, payload)
                except Exception:
                    log.exception("Change callback for %s failed", table)

    async def broadcast(self, topic: str, event: str, payload: dict[str, Any]) -> None:
        key = f"{topic}:{event}"
        for sub in list(self._broadcast_subs):
            if sub.key == key and not sub.closed:
                try:
                    await deliver(sub.callback, payload)
                except Exception:
                    log.exception("Broadcast callback for %s failed", topic)

    async def _after_insert(self, table: str, row: Row) -> None:
        await self._notify_change(table, "INSERT", row)
        if table == "game_members":
            await self._adjust_players(row["game_id"], +1)
        elif table == "chat_messages":
            await self.broadcast(
                f"game:{row['game_id']}:chat",
                "INSERT",
                {"record": dict(row), "operation": "INSERT", "table": table},
            )

    async def _after_delete(self, table: str, row: Row) -> None:
        await self._notify_change(table, "DELETE", row, old=row)
        if table == "game_members":
            await self._adjust_players(row["game_id"], -1)

    async def _adjust_players(self, game_id: str, delta: int) -> None:
        for game in self._table("games"):
            if game.get("id") == game_id:
                old = dict(game)
                game["current_players"] = max(0, int(game.get("current_players", 0)) + delta)
                self.save()
                await self._notify_change("games", "UPDATE", game, old=old)
                return

    # ------------------------------------------------------------------
    # Row operations
    # ------------------------------------------------------------------
    async def select(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        order: tuple[str, bool] | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        rows = [dict(r) for r in self._table(table) if _matches(r, filters)]
        if order:
            column, descending = order
            rows.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    async def insert(self, table: str, row: Row) -> Row:
        stored = dict(row)
        for column, default in TABLE_DEFAULTS.get(table, {}).items():
            if stored.get(column) is None:
                stored[column] = default()
        self._table(table).append(stored)
        self.save()
        await self._after_insert(table, stored)
        return dict(stored)

    async def upsert(self, table: str, row: Row, on_conflict: str) -> Row:
        rows = self._table(table)
        for existing in rows:
            if existing.get(on_conflict) == row.get(on_conflict):
                old = dict(existing)
                existing.update(row)
                self.save()
                await self._notify_change(table, "UPDATE", existing, old=old)
                return dict(existing)
        return await self.insert(table, row)

    async def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        rows = self._table(table)
        removed = [r for r in rows if _matches(r, filters)]
        if not removed:
            return 0
        self.tables[table] = [r for r in rows if not _matches(r, filters)]
        self.save()
        for row in removed:
            await self._after_delete(table, row)
        return len(removed)

    async def subscribe_changes(
        self, table: str, callback: EventCallback
    ) -> Subscription:
        return LocalSubscription(self._change_subs, table, callback)

    async def subscribe_broadcast(
        self, topic: str, event: str, callback: EventCallback, private: bool = True
    ) -> Subscription:
        return LocalSubscription(self._broadcast_subs, f"{topic}:{event}", callback)

    # ------------------------------------------------------------------
    # Auth operations
    # ------------------------------------------------------------------
    @staticmethod
    def _hash(password: str, salt: str) -> str:
        return hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), 100_000).hex()

    def _issue(self, user: dict[str, Any]) -> dict[str, Any]:
        access = secrets.token_urlsafe(24)
        refresh = secrets.token_urlsafe(24)
        expires_at = datetime.datetime.now(tz=UTC).timestamp() + TOKEN_TTL
        public = {"id": user["id"], "email": user["email"]}
        self._tokens[access] = {"kind": "access", "user_id": user["id"], "expires_at": expires_at}
        self._tokens[refresh] = {"kind": "refresh", "user_id": user["id"]}
        self.save()
        return {
            "access_token": access,
            "refresh_token": refresh,
            "token_type": "bearer",
            "expires_in": TOKEN_TTL,
            "expires_at": expires_at,
            "user": public,
        }

    def _user_by_id(self, user_id: str) -> dict[str, Any] | None:
        return next((u for u in self._users.values() if u["id"] == user_id), None)

    async def sign_up(
        self, email: str, password: str, redirect_to: str | None = None
    ) -> dict[str, Any]:
        key = email.strip().lower()
        if key in self._users:
            raise AuthError("User already registered")
        salt = secrets.token_hex(16)
        user = {
            "id": _new_id(),
            "email": key,
            "salt": salt,
            "password_hash": self._hash(password, salt),
        }
        self._users[key] = user
        return self._issue(user)

    async def sign_in_with_password(self, email: str, password: str) -> dict[str, Any]:
        user = self._users.get(email.strip().lower())
        if not user or not secrets.compare_digest(
            user["password_hash"], self._hash(password, user["salt"])
        ):
            raise AuthError("Invalid login credentials")
        return self._issue(user)

    async def refresh(self, refresh_token: str) -> dict[str, Any]:
        token = self._tokens.pop(refresh_token, None)
        if not token or token["kind"] != "refresh":
            raise AuthError("Invalid Refresh Token")
        user = self._user_by_id(token["user_id"])
        if not user:
            raise AuthError("User not found")
        return self._issue(user)

    async def get_user(self, access_token: str) -> dict[str, Any]:
        token = self._tokens.get(access_token)
        if not token or token["kind"] != "access":
            raise AuthError("Invalid JWT")
        user = self._user_by_id(token["user_id"])
        if not user:
            raise AuthError("User not found")
        return {"id": user["id"], "email": user["email"]}

    async def sign_out(self, access_token: str) -> None:
        token = self._tokens.pop(access_token, None)
        if token:
            user_id = token["user_id"]
            self._tokens = {k: v for k, v in self._tokens.items() if v["user_id"] != user_id}
        self.save()

    def authorize_url(self, provider: str, redirect_to: str) -> str:
        raise AuthError(f"Sign in with {provider.title()} is not available offline")
