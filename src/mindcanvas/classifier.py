"""Rule-based drawing gesture classification from hand landmarks."""

from __future__ import annotations

from typing import Optional, Sequence, Union

import numpy as np

from mindcanvas.gestures import (
    NUM_LANDMARKS,
    GestureLabel,
    GestureRegistry,
    finger_states,
)

LandmarkInput = Union[np.ndarray, Sequence[Sequence[float]], None]


def as_landmark_array(landmarks: LandmarkInput) -> Optional[np.ndarray]:
    """Coerce a landmark set to a float array of shape (21, 2+).

    Returns None for an absent or empty hand. Raises ValueError for a
    malformed one.
    """
    if landmarks is None:
        return None
    arr = np.asarray(landmarks, dtype=np.float32)
    if arr.size == 0:
        return None
    if arr.ndim != 2 or arr.shape[0] < NUM_LANDMARKS or arr.shape[1] < 2:
        raise ValueError(
            f"expected {NUM_LANDMARKS} landmarks with x, y; got shape {arr.shape}"
        )
    return arr


class GestureClassifier:
    """Classifies one frame's hand landmarks into a raw drawing gesture.

    Stateless: the same landmarks always produce the same label. No hand
    (None or an empty set) classifies as ``GestureLabel.NONE``.
    """

    def __init__(self, registry: Optional[GestureRegistry] = None):
        self._registry = registry or GestureRegistry.with_defaults()

    def classify(self, landmarks: LandmarkInput) -> GestureLabel:
        """Classify landmarks of shape (21, 2) or (21, 3), normalized."""
        arr = as_landmark_array(landmarks)
        if arr is None:
            return GestureLabel.NONE

        # Thumb position never affects the label.
        match = self._registry.match(finger_states(arr))
        if match is None:
            return GestureLabel.NONE
        return match.label

    @property
    def registry(self) -> GestureRegistry:
        return self._registry
