"""Core package for Golf Buddies.

This module exposes the main data models and the discovery deck so that
consumers of the package can simply import them from ``golf_buddies``.
"""

from .core.models import ChatMessage, Game, GameMember, Golfer, Match, UserProfile
from .discovery import DiscoveryController, SwipeGesture, SwipeOutcome

__all__ = [
    "ChatMessage",
    "DiscoveryController",
    "Game",
    "GameMember",
    "Golfer",
    "Match",
    "SwipeGesture",
    "SwipeOutcome",
    "UserProfile",
]
