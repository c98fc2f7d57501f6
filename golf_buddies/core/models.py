"""Data models for Golf Buddies' core entities.

The models are implemented using :mod:`pydantic` so that rows coming back
from the backend (plain ``dict`` objects keyed by column name) are validated
on the way in and serialised with :meth:`~pydantic.BaseModel.model_dump` on
the way out.
"""

from __future__ import annotations

import datetime
import uuid
from datetime import UTC

from pydantic import BaseModel, ConfigDict, Field

PLAYING_STYLES = ("Competitive", "Casual", "Social", "Beginner-Friendly", "Relaxed")
INVITE_CODE_PATTERN = r"^[A-Z0-9]{6}$"
MIN_PLAYERS = 2
MAX_PLAYERS = 8


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(tz=UTC)


class Golfer(BaseModel):
    """A candidate profile shown in the discovery deck.

    Attributes
    ----------
    id:
        Identifier of the user behind the profile.
    name, age, bio:
        Basic profile information shown on the card.
    handicap:
        Numeric golf handicap.
    experience:
        Free text such as ``"5 years"``.
    typical_course, location:
        Where the golfer usually plays and lives.
    photo:
        URL of the profile photo.
    interests:
        Interest tags.
    playing_style, favorite_course:
        Optional extras; the card hides them when missing.

    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    age: int
    bio: str = ""
    handicap: float
    experience: str = ""
    typical_course: str = ""
    location: str = ""
    photo: str = ""
    interests: list[str] = Field(default_factory=list)
    playing_style: str | None = None
    favorite_course: str | None = None


class Match(BaseModel):
    """A golfer the user swiped right on during this session."""

    golfer: Golfer
    matched_at: datetime.datetime = Field(default_factory=utcnow)


class Game(BaseModel):
    """A hosted round other golfers can join."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    description: str = ""
    max_players: int = Field(ge=MIN_PLAYERS, le=MAX_PLAYERS)
    current_players: int = 0
    status: str = "open"
    invite_code: str = Field(pattern=INVITE_CODE_PATTERN)
    host_id: str
    scheduled_date: datetime.datetime | None = None
    location: str | None = None
    created_at: datetime.datetime = Field(default_factory=utcnow)

    @property
    def is_open(self) -> bool:
        return self.status == "open"

    @property
    def is_full(self) -> bool:
        return self.current_players >= self.max_players


class GameMember(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    game_id: str
    user_id: str
    joined_at: datetime.datetime = Field(default_factory=utcnow)


class ChatMessage(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    game_id: str
    user_id: str
    # snapshot of the author's display name at send time
    user_name: str
    message: str
    created_at: datetime.datetime = Field(default_factory=utcnow)


class User(BaseModel):
    id: str
    email: str | None = None

    @property
    def display_name(self) -> str:
        if self.email:
            local = self.email.split("@")[0]
            if local:
                return local
        return "Anonymous"


class Session(BaseModel):
    """Access/refresh token pair issued by the auth service."""

    access_token: str
    refresh_token: str
    expires_at: float | None = None
    user: User

    def is_expired(self, leeway: float = 30.0) -> bool:
        if self.expires_at is None:
            return False
        return utcnow().timestamp() + leeway >= self.expires_at


class UserProfile(BaseModel):
    """The signed-in user's own, editable profile."""

    user_id: str
    name: str = ""
    age: int = 18
    bio: str = ""
    handicap: float = 0.0
    experience: str = ""
    location: str = ""
    typical_course: str = ""
    favorite_course: str | None = None
    playing_style: str = "Casual"
    photo: str = ""
    interests: list[str] = Field(default_factory=list)

    def to_golfer(self) -> Golfer:
        return Golfer(
            id=self.user_id,
            name=self.name,
            age=self.age,
            bio=self.bio,
            handicap=self.handicap,
            experience=self.experience,
            typical_course=self.typical_course,
            location=self.location,
            photo=self.photo,
            interests=list(self.interests),
            playing_style=self.playing_style or None,
            favorite_course=self.favorite_course or None,
        )
