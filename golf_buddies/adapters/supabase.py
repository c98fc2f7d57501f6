"""Supabase adapter implementing :class:`~golf_buddies.adapters.base.Backend`.

Data calls go to the PostgREST endpoint (``/rest/v1``) and auth calls to the
GoTrue endpoint (``/auth/v1``).  Both use :mod:`httpx` so every request is
asynchronous; push subscriptions are delegated to
:class:`~golf_buddies.adapters.realtime.RealtimeClient`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

import httpx

from ..errors import AuthError, BackendError
from .base import AuthProvider, Backend, EventCallback, Row, Subscription
from .realtime import RealtimeClient

log = logging.getLogger("golf_buddies.supabase")


def _filter_value(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


def _error_text(response: httpx.Response) -> str:
    try:
        data: dict[str, Any] = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    for key in ("msg", "message", "error_description", "error"):
        if data.get(key):
            return str(data[key])
    return response.reason_phrase


class SupabaseBackend(Backend):
    """Backend that sends requests directly to a Supabase project."""

    def __init__(
        self,
        url: str,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        realtime: RealtimeClient | None = None,
    ) -> None:
        """Store project ``url`` and anon ``api_key`` and optional HTTP ``client``."""
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.client = client or httpx.AsyncClient()
        self.access_token: str | None = None
        self._realtime = realtime

    # ------------------------------------------------------------------
    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
        }
        headers.update(extra)
        return headers

    def _table_url(self, table: str) -> str:
        return f"{self.url}/rest/v1/{table}"

    async def _request(self, method: str, table: str, **kwargs: Any) -> Any:
        try:
            response = await self.client.request(method, self._table_url(table), **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            text = _error_text(exc.response)
            log.error("%s %s failed: %s", method, table, text)
            raise BackendError(text) from exc
        except httpx.HTTPError as exc:
            log.error("%s %s failed: %s", method, table, exc)
            raise BackendError("Network request failed") from exc
        if not response.content:
            return []
        return response.json()

    @property
    def realtime(self) -> RealtimeClient:
        if self._realtime is None:
            self._realtime = RealtimeClient.for_project(self.url, self.api_key)
        self._realtime.access_token = self.access_token
        return self._realtime

    def set_access_token(self, access_token: str | None) -> None:
        self.access_token = access_token
        if self._realtime is not None:
            self._realtime.access_token = access_token

    # ------------------------------------------------------------------
    async def select(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        order: tuple[str, bool] | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        """Read rows from ``table``.

        Parameters
        ----------
        table:
            Name of the collection.
        filters:
            Column equality filters, combined with AND.
        order:
            ``(column, descending)`` sort, if any.
        limit:
            Maximum number of rows to return.

        """
        params: dict[str, str] = {"select": "*"}
        for column, value in (filters or {}).items():
            params[column] = _filter_value(value)
        if order:
            column, descending = order
            params["order"] = f"{column}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(limit)
        return await self._request("GET", table, params=params, headers=self._headers())

    async def insert(self, table: str, row: Row) -> Row:
        headers = self._headers(Prefer="return=representation")
        data = await self._request("POST", table, json=row, headers=headers)
        return data[0] if data else dict(row)

    async def upsert(self, table: str, row: Row, on_conflict: str) -> Row:
        headers = self._headers(Prefer="resolution=merge-duplicates,return=representation")
        data = await self._request(
            "POST", table, json=row, params={"on_conflict": on_conflict}, headers=headers
        )
        return data[0] if data else dict(row)

    async def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        params = {column: _filter_value(value) for column, value in filters.items()}
        headers = self._headers(Prefer="return=representation")
        data = await self._request("DELETE", table, params=params, headers=headers)
        return len(data)

    async def subscribe_changes(
        self, table: str, callback: EventCallback
    ) -> Subscription:
        return await self.realtime.channel(
            f"{table}_changes",
            postgres_changes=[{"event": "*", "schema": "public", "table": table}],
            on_change=callback,
        )

    async def subscribe_broadcast(
        self, topic: str, event: str, callback: EventCallback, private: bool = True
    ) -> Subscription:
        return await self.realtime.channel(
            topic, broadcast_event=event, on_broadcast=callback, private=private
        )

    async def aclose(self) -> None:
        """Close the realtime socket and the underlying :class:`httpx.AsyncClient`."""
        try:
            if self._realtime is not None:
                await self._realtime.close()
        finally:
            await self.client.aclose()


class SupabaseAuth(AuthProvider):
    """Talks to the GoTrue auth endpoints of a Supabase project."""

    def __init__(self, url: str, api_key: str, client: httpx.AsyncClient | None = None) -> None:
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.client = client or httpx.AsyncClient()

    async def _call(
        self,
        method: str,
        path: str,
        access_token: str | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        headers = {"apikey": self.api_key}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        try:
            response = await self.client.request(
                method, f"{self.url}/auth/v1/{path}", headers=headers, **kwargs
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise AuthError(_error_text(exc.response)) from exc
        except httpx.HTTPError as exc:
            log.error("auth %s failed: %s", path, exc)
            raise BackendError("Network request failed") from exc
        if not response.content:
            return {}
        return response.json()

    async def sign_up(
        self, email: str, password: str, redirect_to: str | None = None
    ) -> dict[str, Any]:
        params = {"redirect_to": redirect_to} if redirect_to else None
        return await self._call(
            "POST", "signup", json={"email": email, "password": password}, params=params
        )

    async def sign_in_with_password(self, email: str, password: str) -> dict[str, Any]:
        return await self._call(
            "POST",
            "token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )

    async def refresh(self, refresh_token: str) -> dict[str, Any]:
        return await self._call(
            "POST",
            "token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )

    async def get_user(self, access_token: str) -> dict[str, Any]:
        return await self._call("GET", "user", access_token=access_token)

    async def sign_out(self, access_token: str) -> None:
        await self._call("POST", "logout", access_token=access_token)

    def authorize_url(self, provider: str, redirect_to: str) -> str:
        query = urlencode({"provider": provider, "redirect_to": redirect_to})
        return f"{self.url}/auth/v1/authorize?{query}"

    async def close(self) -> None:
        await self.client.aclose()
