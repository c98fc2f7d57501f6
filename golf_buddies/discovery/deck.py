"""The discovery deck: which golfer is on top and who got a right swipe."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ..core.models import Golfer, Match
from .swipe import SwipeGesture, SwipeOutcome

log = logging.getLogger("golf_buddies.discovery")


class DeckState(enum.Enum):
    BROWSING = "browsing"
    EXHAUSTED = "exhausted"


class CardStack:
    """Ordered candidates plus a cursor that only ever moves forward."""

    def __init__(self, candidates: Sequence[Golfer]) -> None:
        self.candidates: tuple[Golfer, ...] = tuple(candidates)
        self.cursor = 0

    def __len__(self) -> int:
        return len(self.candidates)

    @property
    def state(self) -> DeckState:
        return DeckState.BROWSING if self.cursor < len(self.candidates) else DeckState.EXHAUSTED

    @property
    def current(self) -> Golfer | None:
        if self.cursor < len(self.candidates):
            return self.candidates[self.cursor]
        return None

    @property
    def next(self) -> Golfer | None:
        if self.cursor + 1 < len(self.candidates):
            return self.candidates[self.cursor + 1]
        return None

    def advance(self) -> bool:
        """Move past the current golfer; ``False`` once exhausted."""
        if self.state is DeckState.EXHAUSTED:
            return False
        self.cursor += 1
        return True


class MatchCollection:
    """Golfers accepted this session.  Kept in memory only."""

    def __init__(self) -> None:
        self._entries: list[Match] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def add(self, golfer: Golfer) -> Match:
        match = Match(golfer=golfer)
        self._entries.append(match)
        return match

    @property
    def golfers(self) -> list[Golfer]:
        return [m.golfer for m in self._entries]

    def subtitle(self) -> str:
        n = len(self._entries)
        return f"{n} golf {'buddy' if n == 1 else 'buddies'}"


@dataclass
class CardView:
    golfer: Golfer
    gesture: SwipeGesture

    @property
    def interactive(self) -> bool:
        return self.gesture.is_top

    @property
    def opacity(self) -> float:
        return self.gesture.card_opacity


def match_summary(count: int) -> str:
    return f"You made {count} match{'' if count == 1 else 'es'}!"


class DiscoveryController:
    """Wires swipe outcomes to the card stack and the match collection."""

    def __init__(
        self,
        candidates: Sequence[Golfer],
        viewport_width: float = 390.0,
        matches: MatchCollection | None = None,
        on_open_profile: Callable[[Golfer], None] | None = None,
    ) -> None:
        self.stack = CardStack(candidates)
        self.matches = matches if matches is not None else MatchCollection()
        self.viewport_width = viewport_width
        self.on_open_profile = on_open_profile
        self._top_gesture = SwipeGesture(viewport_width, is_top=True)

    @property
    def exhausted(self) -> bool:
        return self.stack.state is DeckState.EXHAUSTED

    def visible_cards(self) -> list[CardView]:
        """Cards to draw, bottom first: the next golfer, then the top one."""
        current = self.stack.current
        if current is None:
            return []
        cards = []
        upcoming = self.stack.next
        if upcoming is not None:
            cards.append(CardView(upcoming, SwipeGesture(self.viewport_width, is_top=False)))
        cards.append(CardView(current, self._top_gesture))
        return cards

    @property
    def top_gesture(self) -> SwipeGesture:
        return self._top_gesture

    def golfer_by_id(self, golfer_id: str) -> Golfer | None:
        return next((g for g in self.stack.candidates if g.id == golfer_id), None)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------
    def decide(self, outcome: SwipeOutcome) -> Match | None:
        """Apply a gesture outcome to the deck.

        Accept records a match and advances, reject only advances, cancel
        does nothing and a tap opens the profile of the top golfer.  Any
        outcome on an exhausted deck is ignored.
        """
        golfer = self.stack.current
        if golfer is None:
            return None
        if outcome is SwipeOutcome.TAP:
            if self.on_open_profile is not None:
                log.debug("Opening profile for: %s", golfer.name)
                self.on_open_profile(golfer)
            return None
        if not outcome.is_decision:
            return None

        match = None
        if outcome is SwipeOutcome.ACCEPT:
            log.debug("Swiped right on: %s", golfer.name)
            match = self.matches.add(golfer)
        else:
            log.debug("Swiped left on: %s", golfer.name)
        self.stack.advance()
        self._top_gesture = SwipeGesture(self.viewport_width, is_top=True)
        return match

    def release(self) -> SwipeOutcome | None:
        """Finish the pointer gesture on the top card and apply the result."""
        outcome = self._top_gesture.release()
        if outcome is not None:
            self.decide(outcome)
        return outcome

    def like(self) -> Match | None:
        return self.decide(SwipeOutcome.ACCEPT)

    def pass_(self) -> None:
        self.decide(SwipeOutcome.REJECT)

    def empty_state(self) -> str | None:
        """Text for the "no more golfers" view, once the deck is exhausted."""
        if not self.exhausted:
            return None
        return (
            "No More Golfers!\n"
            "You've seen everyone in your area. Check back later for new golfers!\n"
            + match_summary(len(self.matches))
        )
