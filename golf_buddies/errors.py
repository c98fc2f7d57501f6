"""Error types surfaced to the user.

Every failure the app reports ends up as one of these.  The front end shows
``title`` and ``message`` as an alert; nothing is retried automatically.
"""

from __future__ import annotations


class GolfBuddiesError(Exception):
    """Base class for all user-facing errors."""

    title = "Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(GolfBuddiesError):
    """Input rejected on the client before any write happened."""


class NotFoundError(GolfBuddiesError):
    """A record the user asked for does not exist."""


class GameFullError(GolfBuddiesError):
    """The game already has ``max_players`` members."""

    def __init__(self, message: str = "This game is full") -> None:
        super().__init__(message)


class NotMemberError(GolfBuddiesError):
    """Chat access attempted by someone who has not joined the game."""

    def __init__(self, message: str = "Join this game to chat with other players") -> None:
        super().__init__(message)


class AuthError(GolfBuddiesError):
    title = "Sign In Failed"


class BackendError(GolfBuddiesError):
    """Transport or backend failure."""
