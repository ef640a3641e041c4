"""Attention inference from face detections.

Each face detection is reduced to a few signals (is the face centered, how
open are the eyes, which expressions dominate) and classified into an
attention state. Raw states are buffered and only surface once they win a
majority of recent samples. Losing the face for long enough overrides the
vote and forces ``distracted``.

Usage:
    engine = AttentionEngine()
    engine.on_state_change(lambda e: print(e.state))
    # Every ~300ms:
    engine.update(detection_or_none)
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import numpy as np

from mindcanvas.emotion import EmotionLabel, ExpressionScores, composite_scores

logger = logging.getLogger("mindcanvas.attention")


class AttentionLabel(Enum):
    UNKNOWN = "unknown"
    FOCUSED = "focused"
    DISTRACTED = "distracted"
    RESTLESS = "restless"


@dataclass(frozen=True)
class Intervention:
    """What to offer the student for an attention state."""
    kind: str  # "praise", "quiz", "breathing", "break"
    title: str
    description: str
    icon: str

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "title": self.title,
            "description": self.description,
            "icon": self.icon,
        }


ATTENTION_INTERVENTIONS: dict[AttentionLabel, Optional[Intervention]] = {
    AttentionLabel.FOCUSED: Intervention(
        kind="praise",
        title="Great Focus! 🌟",
        description="You're doing amazing! Keep up the excellent concentration.",
        icon="⭐",
    ),
    AttentionLabel.DISTRACTED: Intervention(
        kind="quiz",
        title="Quick Quiz Time! 🧠",
        description="Let's do a quick quiz to refocus your attention.",
        icon="❓",
    ),
    AttentionLabel.RESTLESS: Intervention(
        kind="breathing",
        title="Deep Breathing 🧘",
        description="Let's take 3 deep breaths together to calm down.",
        icon="🌬️",
    ),
    AttentionLabel.UNKNOWN: None,
}

ATTENTION_COLORS: dict[AttentionLabel, str] = {
    AttentionLabel.FOCUSED: "hsl(142 76% 36%)",    # green
    AttentionLabel.DISTRACTED: "hsl(38 92% 50%)",  # orange
    AttentionLabel.RESTLESS: "hsl(0 84% 60%)",     # red
    AttentionLabel.UNKNOWN: "hsl(240 5% 60%)",     # gray
}

# 68-point face landmark indices (iBUG layout)
LEFT_EYE = slice(36, 42)
RIGHT_EYE = slice(42, 48)
NUM_FACE_LANDMARKS = 68


@dataclass(frozen=True)
class BoundingBox:
    """Face box in frame pixels."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2


@dataclass
class FaceDetection:
    """One face as reported by the face model."""
    box: BoundingBox
    landmarks: np.ndarray  # (68, 2) pixel coordinates
    expressions: ExpressionScores
    confidence: float
    frame_width: Optional[float] = None


@dataclass(frozen=True)
class AttentionSample:
    label: AttentionLabel
    confidence: float
    timestamp: float


@dataclass(frozen=True)
class FaceSignals:
    """Signals derived from a single detection."""
    centered: bool
    eye_openness: float
    scores: ExpressionScores
    composites: dict[EmotionLabel, float] = field(default_factory=dict)


@dataclass
class AttentionEvent:
    """The stable attention state changed."""
    state: AttentionLabel
    previous: AttentionLabel
    timestamp: float
    forced: bool = False  # face-loss override, not a majority vote

    @property
    def color(self) -> str:
        return ATTENTION_COLORS[self.state]

    @property
    def intervention(self) -> Optional[Intervention]:
        return ATTENTION_INTERVENTIONS[self.state]

    def to_dict(self) -> dict:
        intervention = self.intervention
        return {
            "type": "attention",
            "state": self.state.value,
            "previous": self.previous.value,
            "color": self.color,
            "intervention": intervention.to_dict() if intervention else None,
            "forced": self.forced,
            "timestamp": self.timestamp,
        }


def eye_openness(eye: np.ndarray) -> float:
    """Vertical eyelid gap over eye width for one 6-point eye contour.

    Points run corner, two upper lid, corner, two lower lid. A degenerate
    eye with zero width counts as closed.
    """
    height = abs(eye[1, 1] - eye[5, 1] + eye[2, 1] - eye[4, 1]) / 2
    width = abs(eye[3, 0] - eye[0, 0])
    if width == 0:
        return 0.0
    return float(height / width)


def mean_eye_openness(landmarks: np.ndarray) -> float:
    """Average openness of both eyes from a 68-point landmark set."""
    arr = np.asarray(landmarks, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[0] < NUM_FACE_LANDMARKS or arr.shape[1] < 2:
        raise ValueError(
            f"expected {NUM_FACE_LANDMARKS} face landmarks; got shape {arr.shape}"
        )
    return (eye_openness(arr[LEFT_EYE]) + eye_openness(arr[RIGHT_EYE])) / 2


class AttentionEngine:
    """Stabilized attention state machine.

    States: unknown (initial, and after reset) → focused / distracted /
    restless. There is no terminal state.

    Per detection the raw state is decided by, in order:
      1. face off-center                              → distracted
      2. eyes nearly closed or sad' high              → restless
      3. many blinks with enough recent samples       → restless (fatigue)
      4. calm expression, centered, eyes open         → focused
      5. surprised or off-center                      → distracted
      6. anything else                                → focused
    """

    def __init__(
        self,
        frame_width: float = 640.0,
        center_tolerance: float = 0.25,
        blink_open_threshold: float = 0.15,
        closed_eye_threshold: float = 0.12,
        open_eye_threshold: float = 0.18,
        sad_threshold: float = 0.3,
        neutral_threshold: float = 0.4,
        happy_threshold: float = 0.3,
        surprised_threshold: float = 0.3,
        fatigue_blinks: int = 30,
        fatigue_window_seconds: float = 60.0,
        fatigue_min_samples: int = 10,
        history_seconds: float = 30.0,
        vote_window: int = 5,
        vote_threshold: int = 3,
        face_loss_seconds: float = 3.0,
    ):
        self.frame_width = frame_width
        self.center_tolerance = center_tolerance
        self.blink_open_threshold = blink_open_threshold
        self.closed_eye_threshold = closed_eye_threshold
        self.open_eye_threshold = open_eye_threshold
        self.sad_threshold = sad_threshold
        self.neutral_threshold = neutral_threshold
        self.happy_threshold = happy_threshold
        self.surprised_threshold = surprised_threshold
        self.fatigue_blinks = fatigue_blinks
        self.fatigue_window_seconds = fatigue_window_seconds
        self.fatigue_min_samples = fatigue_min_samples
        self.history_seconds = history_seconds
        self.vote_window = vote_window
        self.vote_threshold = vote_threshold
        self.face_loss_seconds = face_loss_seconds

        self._state = AttentionLabel.UNKNOWN
        self._history: deque[AttentionSample] = deque()
        self._blink_count = 0
        self._eyes_were_open = True
        self._last_face_seen: Optional[float] = None
        self._last_signals: Optional[FaceSignals] = None
        self._callbacks: list[Callable[[AttentionEvent], None]] = []

    def on_state_change(self, callback: Callable[[AttentionEvent], None]):
        """Register a callback for stable state changes."""
        self._callbacks.append(callback)

    def update(
        self,
        detection: Optional[FaceDetection],
        timestamp: Optional[float] = None,
    ) -> Optional[AttentionEvent]:
        """Feed one inference result (None when no face was found).

        Returns the change event if the stable state changed.
        """
        now = timestamp if timestamp is not None else time.monotonic()
        if self._last_face_seen is None:
            self._last_face_seen = now

        if detection is None:
            if (
                now - self._last_face_seen > self.face_loss_seconds
                and self._state != AttentionLabel.DISTRACTED
            ):
                logger.debug("No face for %.1fs, forcing distracted", now - self._last_face_seen)
                return self._transition(AttentionLabel.DISTRACTED, now, forced=True)
            return None

        self._last_face_seen = now
        raw = self.classify(detection, now)

        self._history.append(AttentionSample(raw, float(detection.confidence), now))
        while self._history and now - self._history[0].timestamp >= self.history_seconds:
            self._history.popleft()

        recent = list(self._history)[-self.vote_window:]
        votes = sum(1 for s in recent if s.label == raw)
        if votes >= self.vote_threshold and raw != self._state:
            return self._transition(raw, now)
        return None

    def measure(self, detection: FaceDetection) -> FaceSignals:
        """Derive centering, eye openness and composite scores."""
        width = detection.frame_width or self.frame_width
        offset = abs(detection.box.center_x - width / 2)
        return FaceSignals(
            centered=offset < width * self.center_tolerance,
            eye_openness=mean_eye_openness(detection.landmarks),
            scores=detection.expressions,
            composites=composite_scores(detection.expressions),
        )

    def classify(self, detection: FaceDetection, timestamp: Optional[float] = None) -> AttentionLabel:
        """Raw attention state for one detection.

        Updates the blink counter as a side effect.
        """
        now = timestamp if timestamp is not None else time.monotonic()
        signals = self.measure(detection)
        self._last_signals = signals

        eyes_open = signals.eye_openness > self.blink_open_threshold
        if self._eyes_were_open and not eyes_open:
            self._blink_count += 1
        self._eyes_were_open = eyes_open

        scores = signals.scores
        sad = signals.composites[EmotionLabel.SAD]
        neutral = signals.composites[EmotionLabel.NEUTRAL]

        if not signals.centered:
            return AttentionLabel.DISTRACTED

        if signals.eye_openness < self.closed_eye_threshold or sad > self.sad_threshold:
            return AttentionLabel.RESTLESS

        recent_samples = sum(
            1 for s in self._history if now - s.timestamp < self.fatigue_window_seconds
        )
        if self._blink_count > self.fatigue_blinks and recent_samples > self.fatigue_min_samples:
            self._blink_count = 0
            return AttentionLabel.RESTLESS

        if (
            (neutral > self.neutral_threshold or scores.happy > self.happy_threshold)
            and signals.centered
            and signals.eye_openness > self.open_eye_threshold
        ):
            return AttentionLabel.FOCUSED

        if scores.surprised > self.surprised_threshold or not signals.centered:
            return AttentionLabel.DISTRACTED

        return AttentionLabel.FOCUSED

    def reset(self):
        """Forget history and blinks and go back to unknown. Emits nothing."""
        self._history.clear()
        self._blink_count = 0
        self._state = AttentionLabel.UNKNOWN

    def _transition(self, state: AttentionLabel, now: float, forced: bool = False) -> AttentionEvent:
        event = AttentionEvent(state=state, previous=self._state, timestamp=now, forced=forced)
        self._state = state
        for cb in self._callbacks:
            cb(event)
        return event

    @property
    def state(self) -> AttentionLabel:
        return self._state

    @property
    def blink_count(self) -> int:
        return self._blink_count

    @property
    def history(self) -> list[AttentionSample]:
        return list(self._history)

    @property
    def last_signals(self) -> Optional[FaceSignals]:
        return self._last_signals
