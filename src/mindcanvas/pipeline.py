"""Per-modality pipelines: model output → classifier → stabilized events.

Each pipeline splits one cycle into ``infer`` (runs the model on a frame,
off the event loop) and ``apply`` (feeds the result into the classifier and
stabilizer, on the event loop). ``InferenceLoop`` decides when cycles run.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

import numpy as np

from mindcanvas.attention import AttentionEngine, AttentionEvent, FaceDetection
from mindcanvas.classifier import GestureClassifier, LandmarkInput, as_landmark_array
from mindcanvas.detector import FaceModel, HandDetector, HandLandmarkModel
from mindcanvas.emotion import EmotionEvent, EmotionTracker
from mindcanvas.stabilizer import (
    ActionEvent,
    DrawPointEvent,
    GestureEvent,
    GestureStabilizer,
    StabilizerEvent,
)

FaceModelFactory = Callable[[], FaceModel]


class GesturePipeline:
    """Hand landmarks → raw gesture → stable gesture, draw points, actions.

    Features:
    - 3-frame stability window before a gesture change is reported
    - continuous mirrored draw points while drawing
    - debounced undo / clear actions
    - immediate release to ``none`` when the hand leaves the frame
    """

    name = "gesture"

    def __init__(
        self,
        detector: Optional[HandLandmarkModel] = None,
        classifier: Optional[GestureClassifier] = None,
        stabilizer: Optional[GestureStabilizer] = None,
        release_on_hand_loss: bool = True,
        min_detection_confidence: float = 0.7,
        min_tracking_confidence: float = 0.5,
    ):
        self.detector = detector
        self._owns_detector = False
        self.classifier = classifier or GestureClassifier()
        self.stabilizer = stabilizer or GestureStabilizer()
        self.release_on_hand_loss = release_on_hand_loss
        self._min_detection_confidence = min_detection_confidence
        self._min_tracking_confidence = min_tracking_confidence

    def on_gesture(self, callback: Callable[[GestureEvent], None]):
        self.stabilizer.on_gesture(callback)

    def on_draw_point(self, callback: Callable[[DrawPointEvent], None]):
        self.stabilizer.on_draw_point(callback)

    def on_action(self, callback: Callable[[ActionEvent], None]):
        self.stabilizer.on_action(callback)

    def load(self):
        """Create the MediaPipe detector unless one was injected."""
        if self.detector is None:
            self.detector = HandDetector(
                min_detection_confidence=self._min_detection_confidence,
                min_tracking_confidence=self._min_tracking_confidence,
            )
            self._owns_detector = True

    def infer(self, frame_rgb: np.ndarray) -> Optional[np.ndarray]:
        return self.detector.detect(frame_rgb)

    def apply(self, landmarks: LandmarkInput, timestamp: Optional[float] = None) -> list[StabilizerEvent]:
        return self.process_landmarks(landmarks, timestamp)

    def process_landmarks(
        self, landmarks: LandmarkInput, timestamp: Optional[float] = None
    ) -> list[StabilizerEvent]:
        """Run one frame's landmarks (or None) through classify + stabilize."""
        now = timestamp if timestamp is not None else time.monotonic()
        arr = as_landmark_array(landmarks)

        if arr is None and self.release_on_hand_loss:
            return self.stabilizer.release(now)

        raw = self.classifier.classify(arr)
        return self.stabilizer.update(raw, arr, now)

    def reset(self):
        self.stabilizer.reset()

    def close(self):
        """Release the detector if this pipeline created it.

        An injected detector belongs to the caller and survives a restart.
        """
        if self.detector is not None and self._owns_detector:
            self.detector.close()
            self.detector = None
            self._owns_detector = False


class _FacePipeline:
    """Shared model handling for the two face-driven pipelines."""

    name = "face"

    def __init__(
        self,
        model: Optional[FaceModel] = None,
        model_factory: Optional[FaceModelFactory] = None,
    ):
        self.model = model
        self._model_factory = model_factory
        self._owns_model = False

    def load(self):
        if self.model is not None:
            return
        if self._model_factory is None:
            raise RuntimeError(f"{self.name} pipeline has no face model configured")
        self.model = self._model_factory()
        self._owns_model = True

    def infer(self, frame_rgb: np.ndarray) -> Optional[FaceDetection]:
        detection = self.model.detect(frame_rgb)
        if detection is not None and detection.frame_width is None:
            detection.frame_width = float(frame_rgb.shape[1])
        return detection

    def close(self):
        # Only factory-built models are released; injected ones stay usable.
        if self.model is not None and self._owns_model:
            self.model.close()
            self.model = None
            self._owns_model = False


class EmotionPipeline(_FacePipeline):
    """Face expressions → dominant emotion, reported on every change."""

    name = "emotion"

    def __init__(
        self,
        model: Optional[FaceModel] = None,
        tracker: Optional[EmotionTracker] = None,
        model_factory: Optional[FaceModelFactory] = None,
    ):
        super().__init__(model, model_factory)
        self.tracker = tracker or EmotionTracker()

    def apply(self, detection: Optional[FaceDetection], timestamp: Optional[float] = None) -> list[EmotionEvent]:
        # No face keeps the current emotion.
        if detection is None:
            return []
        event = self.tracker.update(detection.expressions, timestamp)
        return [event] if event else []


class AttentionPipeline(_FacePipeline):
    """Face detections → stabilized attention state."""

    name = "attention"

    def __init__(
        self,
        model: Optional[FaceModel] = None,
        engine: Optional[AttentionEngine] = None,
        model_factory: Optional[FaceModelFactory] = None,
    ):
        super().__init__(model, model_factory)
        self.engine = engine or AttentionEngine()

    def apply(self, detection: Optional[FaceDetection], timestamp: Optional[float] = None) -> list[AttentionEvent]:
        event = self.engine.update(detection, timestamp)
        return [event] if event else []
