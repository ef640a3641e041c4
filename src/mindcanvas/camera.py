"""Frame sources for the inference pipelines."""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional, Protocol

import numpy as np

try:
    import cv2
except ImportError:
    cv2 = None

logger = logging.getLogger("mindcanvas.camera")


class FrameSource(Protocol):
    """Something that produces frames on its own schedule."""

    def frame_ready(self, consumer: str = "default") -> bool: ...

    def current_frame(self, consumer: str = "default") -> Optional[np.ndarray]: ...


class CameraFrameSource:
    """Reads an OpenCV camera on a background thread.

    Always holds the most recent RGB frame. ``frame_ready(consumer)`` reports
    whether a frame arrived since that consumer last called
    ``current_frame(consumer)``; each consumer keeps its own position.
    Frames that nobody picked up in time are simply replaced.
    """

    def __init__(self, camera_index: int = 0, width: int = 640, height: int = 480):
        if cv2 is None:
            raise ImportError(
                "opencv-python is required. Install with: pip install mindcanvas[vision]"
            )
        self.camera_index = camera_index
        self.width = width
        self.height = height

        self._capture = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._running = False
        self._frame: Optional[np.ndarray] = None
        self._frame_id = 0
        self._seen: dict[str, int] = {}

    def start(self):
        """Open the camera and start reading. Raises RuntimeError if it can't open."""
        self._capture = cv2.VideoCapture(self.camera_index)
        if not self._capture.isOpened():
            raise RuntimeError(f"Could not open camera {self.camera_index}")
        self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        self._running = True
        self._thread = threading.Thread(target=self._read_loop, name="camera", daemon=True)
        self._thread.start()
        logger.info("Camera %d started", self.camera_index)

    def _read_loop(self):
        while self._running:
            ret, frame = self._capture.read()
            if not ret:
                time.sleep(0.01)
                continue
            rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            with self._lock:
                self._frame = rgb
                self._frame_id += 1

    def frame_ready(self, consumer: str = "default") -> bool:
        with self._lock:
            return self._frame is not None and self._seen.get(consumer) != self._frame_id

    def current_frame(self, consumer: str = "default") -> Optional[np.ndarray]:
        with self._lock:
            self._seen[consumer] = self._frame_id
            return self._frame

    def stop(self):
        """Stop reading and release the camera."""
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        if self._capture is not None:
            self._capture.release()
            self._capture = None
        logger.info("Camera %d stopped", self.camera_index)

    @property
    def running(self) -> bool:
        return self._running
