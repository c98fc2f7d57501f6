"""Base adapter interfaces for the hosted data, realtime and auth backend."""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

Row = dict[str, Any]
# Called with the raw event payload; may be a plain function or a coroutine.
EventCallback = Callable[[dict[str, Any]], Awaitable[None] | None]


async def deliver(callback: EventCallback, payload: dict[str, Any]) -> None:
    """Invoke ``callback`` and await its result when it returns an awaitable."""
    result = callback(payload)
    if inspect.isawaitable(result):
        await result


class Subscription(ABC):
    """Handle to a standing push channel."""

    @abstractmethod
    async def close(self) -> None:
        """Stop delivering events.  Closing twice is a no-op."""


class Backend(ABC):
    """Row-level access to named collections plus push subscriptions."""

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        order: tuple[str, bool] | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        """Return rows matching every equality filter.

        ``order`` is a ``(column, descending)`` pair.
        """

    @abstractmethod
    async def insert(self, table: str, row: Row) -> Row:
        """Insert ``row`` and return it as stored."""

    @abstractmethod
    async def upsert(self, table: str, row: Row, on_conflict: str) -> Row:
        """Insert ``row`` or replace the one sharing ``on_conflict``."""

    @abstractmethod
    async def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        """Delete matching rows and return how many were removed."""

    @abstractmethod
    async def subscribe_changes(
        self, table: str, callback: EventCallback
    ) -> Subscription:
        """Deliver insert/update/delete events for ``table`` to ``callback``."""

    @abstractmethod
    async def subscribe_broadcast(
        self, topic: str, event: str, callback: EventCallback, private: bool = True
    ) -> Subscription:
        """Deliver application broadcasts sent on ``topic`` to ``callback``."""

    async def select_one(
        self, table: str, filters: Mapping[str, Any]
    ) -> Row | None:
        rows = await self.select(table, filters, limit=1)
        return rows[0] if rows else None

    def set_access_token(self, access_token: str | None) -> None:
        """Use ``access_token`` for subsequent requests and subscriptions."""

    async def aclose(self) -> None:
        """Release network resources held by the backend."""


class AuthProvider(ABC):
    """Issues and refreshes sessions."""

    @abstractmethod
    async def sign_up(
        self, email: str, password: str, redirect_to: str | None = None
    ) -> dict[str, Any]:
        """Register a new account; returns the raw auth response."""

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> dict[str, Any]:
        """Return a token response for valid credentials."""

    @abstractmethod
    async def refresh(self, refresh_token: str) -> dict[str, Any]:
        """Exchange a refresh token for a new token response."""

    @abstractmethod
    async def get_user(self, access_token: str) -> dict[str, Any]:
        """Return the user owning ``access_token``."""

    @abstractmethod
    async def sign_out(self, access_token: str) -> None:
        """Revoke the session behind ``access_token``."""

    @abstractmethod
    def authorize_url(self, provider: str, redirect_to: str) -> str:
        """Return the URL that starts a delegated third-party login."""
