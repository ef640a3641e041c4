"""Drawing session: gestures and emotions applied to the stroke history.

- the active stroke color follows the detected emotion
- draw points extend the in-progress stroke in the active color
- leaving the draw gesture finishes the stroke
- debounced undo / clear actions edit the history
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from mindcanvas.emotion import DEFAULT_EMOTION, EMOTION_COLORS, EmotionEvent, EmotionTracker
from mindcanvas.gestures import GestureLabel
from mindcanvas.stabilizer import ActionEvent, DrawPointEvent, GestureEvent, GestureStabilizer
from mindcanvas.strokes import DrawingHistory, StrokeAccumulator

logger = logging.getLogger("mindcanvas.session")


class DrawingSession:
    """Single writer of a ``StrokeAccumulator``, fed by stabilizer events."""

    def __init__(
        self,
        stabilizer: GestureStabilizer,
        emotions: Optional[EmotionTracker] = None,
        strokes: Optional[StrokeAccumulator] = None,
    ):
        self.strokes = strokes or StrokeAccumulator()
        self._color = EMOTION_COLORS[DEFAULT_EMOTION]
        self._callbacks: list[Callable[[DrawingHistory], None]] = []

        stabilizer.on_gesture(self.handle_gesture)
        stabilizer.on_draw_point(self.handle_draw_point)
        stabilizer.on_action(self.handle_action)
        if emotions is not None:
            self._color = emotions.color
            emotions.on_emotion(self.handle_emotion)

    def on_history_change(self, callback: Callable[[DrawingHistory], None]):
        """Called with a fresh snapshot whenever committed strokes change."""
        self._callbacks.append(callback)

    def handle_gesture(self, event: GestureEvent):
        if event.previous == GestureLabel.DRAW and event.gesture != GestureLabel.DRAW:
            if self.strokes.finish_stroke() is not None:
                self._notify()

    def handle_draw_point(self, event: DrawPointEvent):
        self.strokes.add_point(event.point, self._color)

    def handle_action(self, event: ActionEvent):
        if event.action == GestureLabel.UNDO:
            self.undo()
        elif event.action == GestureLabel.CLEAR:
            self.clear()

    def handle_emotion(self, event: EmotionEvent):
        self._color = event.color

    def undo(self):
        if self.strokes.undo() is not None:
            logger.debug("Undo, %d strokes left", self.strokes.stroke_count)
            self._notify()

    def clear(self):
        self.strokes.clear()
        logger.debug("Canvas cleared")
        self._notify()

    def snapshot(self) -> DrawingHistory:
        return self.strokes.snapshot()

    def _notify(self):
        if not self._callbacks:
            return
        history = self.strokes.snapshot()
        for cb in self._callbacks:
            cb(history)

    @property
    def color(self) -> str:
        return self._color
