"""Gesture handling for a single swipe card.

A card follows the pointer while it is the top card of the deck.  When the
pointer is released the horizontal offset decides what happens: beyond 30%
of the viewport width the card flies off and the decision is reported,
otherwise it springs back to rest.  A press that never moves past a few
pixels is a tap and opens the golfer's profile instead.
"""

from __future__ import annotations

import enum
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

SWIPE_THRESHOLD_RATIO = 0.3
FLY_OUT_RATIO = 1.5
MAX_ROTATION = 15.0
TAP_SLOP = 10.0


class SwipeOutcome(enum.Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    CANCEL = "cancel"
    TAP = "tap"

    @property
    def is_decision(self) -> bool:
        return self in (SwipeOutcome.ACCEPT, SwipeOutcome.REJECT)


def interpolate(value: float, inputs: Sequence[float], outputs: Sequence[float]) -> float:
    """Piecewise-linear map of ``value`` from ``inputs`` onto ``outputs``.

    ``inputs`` must be increasing.  Values outside the input range clamp to
    the first or last output.
    """
    if len(inputs) != len(outputs) or len(inputs) < 2:
        raise ValueError("inputs and outputs need the same length, at least 2")
    if value <= inputs[0]:
        return float(outputs[0])
    if value >= inputs[-1]:
        return float(outputs[-1])
    for i in range(1, len(inputs)):
        lo, hi = inputs[i - 1], inputs[i]
        if value <= hi:
            t = (value - lo) / (hi - lo)
            return outputs[i - 1] + t * (outputs[i] - outputs[i - 1])
    return float(outputs[-1])  # pragma: no cover - loop always returns


@dataclass
class SwipeGesture:
    """Offsets and classification for one visible card."""

    viewport_width: float
    is_top: bool = True
    offset_x: float = 0.0
    offset_y: float = 0.0
    _active: bool = field(default=False, repr=False)
    _dragged: bool = field(default=False, repr=False)

    @property
    def threshold(self) -> float:
        return self.viewport_width * SWIPE_THRESHOLD_RATIO

    # ------------------------------------------------------------------
    # Pointer events
    # ------------------------------------------------------------------
    def press(self) -> None:
        if not self.is_top:
            return
        self._active = True
        self._dragged = False

    def move(self, translation_x: float, translation_y: float) -> None:
        """Track the pointer translation since :meth:`press`, 1:1."""
        if not self.is_top or not self._active:
            return
        self.offset_x = translation_x
        self.offset_y = translation_y
        if math.hypot(translation_x, translation_y) > TAP_SLOP:
            self._dragged = True

    def release(self) -> SwipeOutcome | None:
        """Classify the gesture.

        Returns ``None`` for cards that are not on top; such gestures are
        ignored entirely.
        """
        if not self.is_top or not self._active:
            return None
        self._active = False
        if not self._dragged:
            self.offset_x = self.offset_y = 0.0
            return SwipeOutcome.TAP
        if abs(self.offset_x) > self.threshold:
            direction = 1 if self.offset_x > 0 else -1
            # card leaves the screen before the decision is reported
            self.offset_x = direction * self.viewport_width * FLY_OUT_RATIO
            return SwipeOutcome.ACCEPT if direction > 0 else SwipeOutcome.REJECT
        self.offset_x = self.offset_y = 0.0
        return SwipeOutcome.CANCEL

    def reset(self) -> None:
        self.offset_x = self.offset_y = 0.0
        self._active = self._dragged = False

    # ------------------------------------------------------------------
    # Visuals
    # ------------------------------------------------------------------
    @property
    def rotation(self) -> float:
        """Card tilt in degrees."""
        half = self.viewport_width / 2
        return interpolate(self.offset_x, [-half, 0.0, half], [-MAX_ROTATION, 0.0, MAX_ROTATION])

    @property
    def accept_opacity(self) -> float:
        return interpolate(self.offset_x, [0.0, self.threshold], [0.0, 1.0])

    @property
    def reject_opacity(self) -> float:
        return interpolate(self.offset_x, [-self.threshold, 0.0], [1.0, 0.0])

    @property
    def card_opacity(self) -> float:
        return 1.0 if self.is_top else 0.5
