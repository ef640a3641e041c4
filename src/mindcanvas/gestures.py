"""Gesture definition system — define drawing gestures via finger states."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np


class GestureLabel(Enum):
    """Drawing gestures the classifier can emit."""
    NONE = "none"
    DRAW = "draw"
    UNDO = "undo"
    CLEAR = "clear"


class FingerState(Enum):
    """Binary finger state based on landmark positions."""
    EXTENDED = "extended"
    CURLED = "curled"
    ANY = "any"  # don't care


# Landmark indices for fingertip and PIP joints (index, middle, ring, pinky)
FINGER_TIPS = (8, 12, 16, 20)
FINGER_PIPS = (6, 10, 14, 18)
INDEX_TIP = 8
NUM_LANDMARKS = 21


def finger_states(landmarks: np.ndarray) -> list[FingerState]:
    """Extension state of index, middle, ring and pinky.

    A finger is extended when its tip sits above its PIP joint in image
    space (smaller y). The comparison is relative, so it holds regardless of
    hand scale or distance from the camera. The thumb is not evaluated.
    """
    states = []
    for tip_idx, pip_idx in zip(FINGER_TIPS, FINGER_PIPS):
        if landmarks[tip_idx, 1] < landmarks[pip_idx, 1]:
            states.append(FingerState.EXTENDED)
        else:
            states.append(FingerState.CURLED)
    return states


@dataclass(frozen=True)
class GestureDefinition:
    """A gesture defined by the states of the four non-thumb fingers."""

    label: GestureLabel
    index: FingerState = FingerState.ANY
    middle: FingerState = FingerState.ANY
    ring: FingerState = FingerState.ANY
    pinky: FingerState = FingerState.ANY

    def matches(self, states: list[FingerState]) -> bool:
        expected = (self.index, self.middle, self.ring, self.pinky)
        for actual, wanted in zip(states, expected):
            if wanted != FingerState.ANY and actual != wanted:
                return False
        return True

    def to_dict(self) -> dict:
        return {
            "label": self.label.value,
            "fingers": {
                "index": self.index.value,
                "middle": self.middle.value,
                "ring": self.ring.value,
                "pinky": self.pinky.value,
            },
        }


class GestureRegistry:
    """Ordered gesture table. The first matching definition wins."""

    def __init__(self):
        self._gestures: list[GestureDefinition] = []

    def register(self, gesture: GestureDefinition):
        """Append a gesture definition; earlier entries take precedence."""
        self._gestures.append(gesture)

    def match(self, states: list[FingerState]) -> Optional[GestureDefinition]:
        for gesture in self._gestures:
            if gesture.matches(states):
                return gesture
        return None

    @classmethod
    def with_defaults(cls) -> GestureRegistry:
        """Fist clears, index finger draws, index + middle undoes."""
        registry = cls()

        registry.register(GestureDefinition(
            label=GestureLabel.CLEAR,
            index=FingerState.CURLED,
            middle=FingerState.CURLED,
            ring=FingerState.CURLED,
            pinky=FingerState.CURLED,
        ))

        registry.register(GestureDefinition(
            label=GestureLabel.DRAW,
            index=FingerState.EXTENDED,
            middle=FingerState.CURLED,
            ring=FingerState.CURLED,
            pinky=FingerState.CURLED,
        ))

        registry.register(GestureDefinition(
            label=GestureLabel.UNDO,
            index=FingerState.EXTENDED,
            middle=FingerState.EXTENDED,
            ring=FingerState.CURLED,
            pinky=FingerState.CURLED,
        ))

        return registry

    def __len__(self) -> int:
        return len(self._gestures)

    def __iter__(self):
        return iter(self._gestures)
