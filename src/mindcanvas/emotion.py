"""Emotion classification from facial expression scores.

The face model reports seven expression probabilities. Related expressions
are folded into four drawing emotions, each tied to a fixed stroke color:

    happy   = happy
    sad     = sad + fearful
    angry   = angry + disgusted
    neutral = neutral + 0.5 * surprised

Unlike gestures and attention, emotion is not stabilized: every change of
the dominant emotion is reported immediately.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Callable, Optional


class EmotionLabel(Enum):
    # Declaration order is the tie-break order.
    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    NEUTRAL = "neutral"


EMOTION_COLORS: dict[EmotionLabel, str] = {
    EmotionLabel.HAPPY: "#ec4899",    # pink
    EmotionLabel.SAD: "#3b82f6",      # blue
    EmotionLabel.ANGRY: "#ef4444",    # red
    EmotionLabel.NEUTRAL: "#eab308",  # yellow
}

DEFAULT_EMOTION = EmotionLabel.NEUTRAL


@dataclass(frozen=True)
class ExpressionScores:
    """Per-frame expression probabilities, each in [0, 1]."""
    happy: float = 0.0
    sad: float = 0.0
    angry: float = 0.0
    neutral: float = 0.0
    surprised: float = 0.0
    fearful: float = 0.0
    disgusted: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> ExpressionScores:
        return cls(**{k: float(data.get(k, 0.0)) for k in cls.__dataclass_fields__})

    def to_dict(self) -> dict:
        return asdict(self)


def composite_scores(scores: ExpressionScores) -> dict[EmotionLabel, float]:
    """Fold the seven expressions into the four drawing emotions."""
    return {
        EmotionLabel.HAPPY: scores.happy,
        EmotionLabel.SAD: scores.sad + scores.fearful,
        EmotionLabel.ANGRY: scores.angry + scores.disgusted,
        EmotionLabel.NEUTRAL: scores.neutral + 0.5 * scores.surprised,
    }


@dataclass
class EmotionEvent:
    """The dominant emotion changed."""
    emotion: EmotionLabel
    color: str
    scores: ExpressionScores
    timestamp: float

    def to_dict(self) -> dict:
        return {
            "type": "emotion",
            "emotion": self.emotion.value,
            "color": self.color,
            "timestamp": self.timestamp,
        }


class EmotionClassifier:
    """Maps expression scores to the dominant emotion. Stateless."""

    def classify(self, scores: ExpressionScores) -> EmotionLabel:
        """Return the emotion with the highest composite score.

        Ties go to the emotion declared first in ``EmotionLabel``. If every
        composite is zero there is no dominant expression and the result is
        neutral.
        """
        best = DEFAULT_EMOTION
        best_value = 0.0
        for label, value in composite_scores(scores).items():
            if value > best_value:
                best, best_value = label, value
        return best

    @staticmethod
    def color_for(emotion: EmotionLabel) -> str:
        return EMOTION_COLORS[emotion]


class EmotionTracker:
    """Tracks the current emotion and reports every change right away."""

    def __init__(self, classifier: Optional[EmotionClassifier] = None):
        self.classifier = classifier or EmotionClassifier()
        self._emotion = DEFAULT_EMOTION
        self._callbacks: list[Callable[[EmotionEvent], None]] = []

    def on_emotion(self, callback: Callable[[EmotionEvent], None]):
        """Register a callback for emotion changes."""
        self._callbacks.append(callback)

    def update(self, scores: ExpressionScores, timestamp: Optional[float] = None) -> Optional[EmotionEvent]:
        """Classify one frame. Returns the change event, or None if unchanged."""
        emotion = self.classifier.classify(scores)
        if emotion == self._emotion:
            return None

        self._emotion = emotion
        event = EmotionEvent(
            emotion=emotion,
            color=EMOTION_COLORS[emotion],
            scores=scores,
            timestamp=timestamp if timestamp is not None else time.monotonic(),
        )
        for cb in self._callbacks:
            cb(event)
        return event

    def reset(self):
        self._emotion = DEFAULT_EMOTION

    @property
    def emotion(self) -> EmotionLabel:
        return self._emotion

    @property
    def color(self) -> str:
        return EMOTION_COLORS[self._emotion]
