from .deck import CardStack, CardView, DeckState, DiscoveryController, MatchCollection
from .swipe import SwipeGesture, SwipeOutcome, interpolate

__all__ = [
    "CardStack",
    "CardView",
    "DeckState",
    "DiscoveryController",
    "MatchCollection",
    "SwipeGesture",
    "SwipeOutcome",
    "interpolate",
]
