"""Profile editing and the candidate list for discovery."""

from __future__ import annotations

import logging

from .adapters.base import Backend
from .core.models import PLAYING_STYLES, Golfer, User, UserProfile
from .errors import ValidationError

log = logging.getLogger("golf_buddies.profiles")

PROFILES = "profiles"


def validate_profile(profile: UserProfile) -> None:
    if not profile.name.strip():
        raise ValidationError("Please enter your name")
    if not 18 <= profile.age <= 120:
        raise ValidationError("Age must be between 18 and 120")
    if not -10 <= profile.handicap <= 54:
        raise ValidationError("Handicap must be between -10 and 54")
    if profile.playing_style not in PLAYING_STYLES:
        raise ValidationError(
            f"Playing style must be one of: {', '.join(PLAYING_STYLES)}"
        )


class ProfileService:
    def __init__(self, backend: Backend) -> None:
        self.backend = backend

    async def load(self, user: User) -> UserProfile:
        row = await self.backend.select_one(PROFILES, {"user_id": user.id})
        if row is None:
            return UserProfile(user_id=user.id, name=user.display_name)
        return UserProfile.model_validate(row)

    async def save(self, profile: UserProfile) -> UserProfile:
        validate_profile(profile)
        row = await self.backend.upsert(
            PROFILES, profile.model_dump(mode="json"), on_conflict="user_id"
        )
        log.info("Profile updated for %s", profile.user_id)
        return UserProfile.model_validate(row)

    async def list_candidates(self, user: User) -> list[Golfer]:
        """Everyone else's profile, in the order the backend returns them."""
        rows = await self.backend.select(PROFILES, order=("updated_at", True))
        candidates = []
        for row in rows:
            if row.get("user_id") == user.id:
                continue
            candidates.append(UserProfile.model_validate(row).to_golfer())
        return candidates
