"""Realtime push client speaking the Phoenix channel protocol.

Supabase delivers row-change notifications and application broadcasts over
a single websocket.  Each subscription is a *channel* joined with a
``phx_join`` frame; events are dispatched to callbacks on the event loop the
client was connected from, so no locking is needed for state they touch.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any
from urllib.parse import urlencode, urlparse

import websockets

from .base import EventCallback, Subscription, deliver

log = logging.getLogger("golf_buddies.realtime")

Connect = Callable[[str], Awaitable[Any]]


class RealtimeChannel(Subscription):
    """A joined channel; closing it sends ``phx_leave``."""

    def __init__(
        self,
        client: RealtimeClient,
        topic: str,
        postgres_changes: list[dict[str, str]],
        on_change: EventCallback | None,
        broadcast_event: str | None,
        on_broadcast: EventCallback | None,
        private: bool,
    ) -> None:
        self.client = client
        self.topic = topic
        self.postgres_changes = postgres_changes
        self.on_change = on_change
        self.broadcast_event = broadcast_event
        self.on_broadcast = on_broadcast
        self.private = private
        self.joined = False
        self.closed = False

    def join_payload(self, access_token: str | None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "config": {
                "broadcast": {"ack": False, "self": False},
                "presence": {"key": ""},
                "postgres_changes": self.postgres_changes,
                "private": self.private,
            }
        }
        if access_token:
            payload["access_token"] = access_token
        return payload

    async def handle(self, event: str, payload: dict[str, Any]) -> None:
        if self.closed:
            return
        if event == "phx_reply":
            status = payload.get("status")
            if status == "ok":
                self.joined = True
            else:
                log.error("Channel %s replied %s: %s", self.topic, status, payload.get("response"))
        elif event == "postgres_changes" and self.on_change is not None:
            await deliver(self.on_change, payload.get("data", payload))
        elif event == "broadcast" and self.on_broadcast is not None:
            if payload.get("event") == self.broadcast_event:
                await deliver(self.on_broadcast, payload.get("payload", {}))
        elif event in {"phx_error", "phx_close"}:
            log.warning("Channel %s received %s", self.topic, event)
            self.joined = False

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.client.remove_channel(self)


class RealtimeClient:
    """Single websocket shared by every channel of one backend.

    When the server drops the socket the client reconnects after a backoff
    and rejoins every open channel with the current access token.
    """

    def __init__(
        self,
        endpoint: str,
        heartbeat_interval: float = 25.0,
        connect: Connect | None = None,
        reconnect_delays: Sequence[float] = (1.0, 2.0, 5.0, 10.0),
    ) -> None:
        self.endpoint = endpoint
        self.heartbeat_interval = heartbeat_interval
        self.reconnect_delays = tuple(reconnect_delays) or (1.0,)
        self.access_token: str | None = None
        self._connect = connect or websockets.connect
        self._ws: Any = None
        self._ref = 0
        self._channels: dict[str, RealtimeChannel] = {}
        self._reader: asyncio.Task | None = None
        self._heartbeat: asyncio.Task | None = None
        self._reconnecting: asyncio.Task | None = None
        self._closing = False

    @classmethod
    def for_project(cls, url: str, api_key: str, **kwargs: Any) -> RealtimeClient:
        parsed = urlparse(url)
        scheme = "wss" if parsed.scheme == "https" else "ws"
        query = urlencode({"apikey": api_key, "vsn": "1.0.0"})
        return cls(f"{scheme}://{parsed.netloc}/realtime/v1/websocket?{query}", **kwargs)

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------
    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> None:
        if self._ws is not None:
            return
        self._closing = False
        self._ws = await self._connect(self.endpoint)
        self._reader = asyncio.create_task(self._read_loop())
        self._heartbeat = asyncio.create_task(self._heartbeat_loop())
        log.debug("Realtime connected to %s", self.endpoint.split("?")[0])
        for channel in list(self._channels.values()):
            channel.joined = False
            await self._send(channel.topic, "phx_join", channel.join_payload(self.access_token))

    async def close(self) -> None:
        self._closing = True
        tasks = [t for t in (self._reader, self._heartbeat, self._reconnecting) if t is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as exc:
                log.warning("Realtime task ended with an error: %r", exc)
        self._reader = self._heartbeat = self._reconnecting = None
        for channel in list(self._channels.values()):
            channel.closed = True
        self._channels.clear()
        if self._ws is not None:
            ws, self._ws = self._ws, None
            try:
                await ws.close()
            except (OSError, websockets.WebSocketException) as exc:
                log.warning("Error closing realtime socket: %r", exc)

    def _disconnected(self) -> None:
        self._ws = None
        if self._heartbeat is not None:
            self._heartbeat.cancel()
        for channel in self._channels.values():
            channel.joined = False
        pending = self._reconnecting is not None and not self._reconnecting.done()
        if self._channels and not self._closing and not pending:
            self._reconnecting = asyncio.create_task(self._reconnect())

    async def _reconnect(self) -> None:
        attempt = 0
        while not self._closing and self._ws is None:
            delay = self.reconnect_delays[min(attempt, len(self.reconnect_delays) - 1)]
            attempt += 1
            await asyncio.sleep(delay)
            if self._closing or self._ws is not None:
                return
            try:
                await self.connect()
            except (OSError, TimeoutError, websockets.WebSocketException) as exc:
                log.warning("Realtime reconnect attempt %d failed: %r", attempt, exc)
                self._ws = None
            else:
                log.info("Realtime reconnected, rejoined %d channel(s)", len(self._channels))

    def _next_ref(self) -> str:
        self._ref += 1
        return str(self._ref)

    async def _send(self, topic: str, event: str, payload: dict[str, Any]) -> str:
        ref = self._next_ref()
        frame = {"topic": topic, "event": event, "payload": payload, "ref": ref}
        await self._ws.send(json.dumps(frame))
        return ref

    async def _heartbeat_loop(self) -> None:
        while self._ws is not None:
            await asyncio.sleep(self.heartbeat_interval)
            if self._ws is None:
                return
            try:
                await self._send("phoenix", "heartbeat", {})
            except websockets.ConnectionClosed:
                log.debug("Heartbeat stopped, connection closed")
                return

    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                try:
                    message = json.loads(raw)
                except ValueError:
                    log.warning("Ignoring malformed realtime frame")
                    continue
                await self.dispatch(message)
        except websockets.ConnectionClosed as exc:
            log.warning("Realtime connection closed: %s", exc)
        else:
            log.warning("Realtime connection ended")
        self._disconnected()

    async def dispatch(self, message: Any) -> None:
        if not isinstance(message, dict):
            log.warning("Ignoring realtime frame that is not an object")
            return
        channel = self._channels.get(message.get("topic", ""))
        if channel is None:
            return
        payload = message.get("payload")
        try:
            await channel.handle(message.get("event", ""), payload if isinstance(payload, dict) else {})
        except Exception:
            log.exception("Realtime callback for %s failed", channel.topic)

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------
    async def channel(
        self,
        name: str,
        postgres_changes: list[dict[str, str]] | None = None,
        on_change: EventCallback | None = None,
        broadcast_event: str | None = None,
        on_broadcast: EventCallback | None = None,
        private: bool = False,
    ) -> RealtimeChannel:
        """Join ``realtime:<name>`` and return the channel handle."""
        await self.connect()
        topic = f"realtime:{name}"
        existing = self._channels.get(topic)
        if existing is not None:
            await existing.close()
        channel = RealtimeChannel(
            self,
            topic,
            postgres_changes or [],
            on_change,
            broadcast_event,
            on_broadcast,
            private,
        )
        self._channels[topic] = channel
        await self._send(topic, "phx_join", channel.join_payload(self.access_token))
        return channel
    async def remove_channel(self, channel: RealtimeChannel) -> None:
        if self._channels.get(channel.topic) is not channel:
            return
        del self._channels[channel.topic]
        if self._ws is not None:
            try:
                await self._send(channel.topic, "phx_leave", {})
            except websockets.ConnectionClosed:
                log.debug("Connection closed before leaving %s", channel.topic)
