"""Group chat for a joined game.

The message list is built from one bulk read followed by the realtime feed.
Messages sent from here are not shown until the feed echoes them back.
"""

from __future__ import annotations

import bisect
import logging
from collections.abc import Callable
from typing import Any

from ..adapters.base import Backend, Subscription
from ..core.models import ChatMessage, User
from ..errors import NotMemberError
from .service import MEMBERS

log = logging.getLogger("golf_buddies.chat")

MESSAGES = "chat_messages"
LOCKED_PLACEHOLDER = "Join this game to chat with other players"

# Called with the full message list and whether the view should scroll to
# the newest message.
ChatListener = Callable[[list[ChatMessage], bool], None]


def chat_topic(game_id: str) -> str:
    return f"game:{game_id}:chat"


class ChatSynchronizer:
    def __init__(self, backend: Backend, user: User, game_id: str) -> None:
        self.backend = backend
        self.user = user
        self.game_id = game_id
        self.messages: list[ChatMessage] = []
        self.is_member = False
        self._ids: set[str] = set()
        self._listeners: list[ChatListener] = []
        self._subscription: Subscription | None = None
        self._started = False

    @property
    def locked(self) -> bool:
        return not self.is_member

    @property
    def placeholder(self) -> str | None:
        return LOCKED_PLACEHOLDER if self.locked else None

    def add_listener(self, listener: ChatListener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(list(self.messages), True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> None:
        """Check membership, load the history and open the push feed."""
        if self._started:
            return
        self._started = True
        row = await self.backend.select_one(
            MEMBERS, {"game_id": self.game_id, "user_id": self.user.id}
        )
        self.is_member = row is not None
        if not self.is_member:
            return
        await self.load()
        self._subscription = await self.backend.subscribe_broadcast(
            chat_topic(self.game_id), "INSERT", self._on_broadcast, private=True
        )

    async def stop(self) -> None:
        self._started = False
        if self._subscription is not None:
            subscription, self._subscription = self._subscription, None
            await subscription.close()

    async def load(self) -> None:
        rows = await self.backend.select(
            MESSAGES, {"game_id": self.game_id}, order=("created_at", False)
        )
        self.messages = []
        self._ids = set()
        for row in rows:
            self._merge(ChatMessage.model_validate(row))
        self._notify()

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------
    def _merge(self, message: ChatMessage) -> bool:
        if message.id in self._ids:
            return False
        self._ids.add(message.id)
        # keep created_at order; equal timestamps stay in arrival order
        keys = [m.created_at for m in self.messages]
        self.messages.insert(bisect.bisect_right(keys, message.created_at), message)
        return True

    async def _on_broadcast(self, payload: dict[str, Any]) -> None:
        if not self._started:
            return
        record = payload.get("record")
        if not record:
            log.warning("Chat broadcast without a record: %s", payload)
            return
        message = ChatMessage.model_validate(record)
        if message.game_id != self.game_id:
            return
        log.debug("New message received: %s", message.id)
        if self._merge(message):
            self._notify()

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------
    async def send(self, text: str) -> None:
        """Post ``text`` to the game chat.  Blank messages are ignored."""
        body = (text or "").strip()
        if not body:
            return
        if not self.is_member:
            raise NotMemberError()
        await self.backend.insert(
            MESSAGES,
            {
                "game_id": self.game_id,
                "user_id": self.user.id,
                "message": body,
                "user_name": self.user.display_name,
            },
        )
