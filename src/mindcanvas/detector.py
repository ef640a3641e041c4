"""Inference collaborators: hand landmarks via MediaPipe, face model protocol."""

from __future__ import annotations

from typing import Optional, Protocol

import numpy as np

from mindcanvas.attention import FaceDetection

try:
    import mediapipe as mp
except ImportError:
    mp = None


class HandLandmarkModel(Protocol):
    """Returns zero or one set of 21 normalized hand landmarks per frame."""

    def detect(self, frame_rgb: np.ndarray) -> Optional[np.ndarray]: ...

    def close(self) -> None: ...


class FaceModel(Protocol):
    """Returns zero or one face detection per frame.

    Detections carry a pixel bounding box, 68 landmarks, the seven
    expression scores and the detector confidence.
    """

    def detect(self, frame_rgb: np.ndarray) -> Optional[FaceDetection]: ...

    def close(self) -> None: ...


class HandDetector:
    """Extracts 21 hand landmarks for the dominant hand using MediaPipe Hands.

    Each landmark is (x, y, z) with x, y normalized to [0, 1] relative to
    image dimensions. Only the most confident hand is returned; landmark
    indices follow ``mindcanvas.gestures``.
    """

    def __init__(
        self,
        min_detection_confidence: float = 0.7,
        min_tracking_confidence: float = 0.5,
        model_complexity: int = 1,
    ):
        if mp is None:
            raise ImportError(
                "mediapipe is required. Install with: pip install mindcanvas[vision]"
            )

        self._hands = mp.solutions.hands.Hands(
            static_image_mode=False,
            max_num_hands=1,
            model_complexity=model_complexity,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

    def detect(self, frame_rgb: np.ndarray) -> Optional[np.ndarray]:
        """Detect the dominant hand.

        Args:
            frame_rgb: RGB image as numpy array (H, W, 3), uint8.

        Returns:
            Landmark array of shape (21, 3), or None if no hand is visible.
        """
        results = self._hands.process(frame_rgb)

        if not results.multi_hand_landmarks:
            return None

        best = 0
        if results.multi_handedness:
            scores = [h.classification[0].score for h in results.multi_handedness]
            best = int(np.argmax(scores))

        hand = results.multi_hand_landmarks[best]
        return np.array(
            [[lm.x, lm.y, lm.z] for lm in hand.landmark],
            dtype=np.float32,
        )

    def close(self):
        """Release MediaPipe resources."""
        self._hands.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
