"""MindCanvas engine: all pipelines, the drawing session and interventions.

Builds every component from an ``EngineConfig`` and runs the three
pipelines on independent cadences against one frame source:

    gesture    — every new frame
    emotion    — every ``emotion.interval`` seconds (0.2 by default)
    attention  — every ``attention.interval`` seconds (0.3 by default)

The face pipelines only run when a face model factory is supplied.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from mindcanvas.attention import ATTENTION_COLORS, AttentionEngine
from mindcanvas.camera import FrameSource
from mindcanvas.config import EngineConfig
from mindcanvas.detector import HandLandmarkModel
from mindcanvas.interventions import InterventionCoordinator
from mindcanvas.metrics import MetricsCollector
from mindcanvas.pipeline import (
    AttentionPipeline,
    EmotionPipeline,
    FaceModelFactory,
    GesturePipeline,
)
from mindcanvas.scheduler import InferenceLoop
from mindcanvas.session import DrawingSession
from mindcanvas.stabilizer import ActionDebouncer, GestureStabilizer
from mindcanvas.strokes import StrokeAccumulator

logger = logging.getLogger("mindcanvas.engine")

EventCallback = Callable[[object], None]


class MindCanvasEngine:
    """Owns every pipeline and the state they drive."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        hand_detector: Optional[HandLandmarkModel] = None,
        face_model_factory: Optional[FaceModelFactory] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or EngineConfig()
        self.config.validate()
        self.metrics = metrics or MetricsCollector()
        self._face_model_factory = face_model_factory

        g = self.config.gesture
        stabilizer = GestureStabilizer(
            stability_frames=g.stability_frames,
            debouncer=ActionDebouncer(g.action_cooldown),
            mirror_x=g.mirror_x,
        )
        self.gesture = GesturePipeline(
            detector=hand_detector,
            stabilizer=stabilizer,
            release_on_hand_loss=g.release_on_hand_loss,
            min_detection_confidence=g.min_detection_confidence,
            min_tracking_confidence=g.min_tracking_confidence,
        )
        self.emotion = EmotionPipeline(model_factory=face_model_factory)
        self.attention = AttentionPipeline(
            engine=AttentionEngine(**self.config.attention.engine_kwargs()),
            model_factory=face_model_factory,
        )

        self.drawing = DrawingSession(
            stabilizer,
            emotions=self.emotion.tracker,
            strokes=StrokeAccumulator(g.min_point_distance, g.min_stroke_points),
        )
        self.interventions = InterventionCoordinator(
            self.attention.engine,
            distraction_grace_seconds=self.config.attention.distraction_grace_seconds,
        )

        self._loops: dict[str, InferenceLoop] = {}
        self._running = False

    def subscribe(self, callback: EventCallback):
        """Receive every event the engine emits (anything with ``to_dict``)."""
        self.gesture.on_gesture(callback)
        self.gesture.on_draw_point(callback)
        self.gesture.on_action(callback)
        self.emotion.tracker.on_emotion(callback)
        self.attention.engine.on_state_change(callback)
        self.interventions.on_intervention(callback)

    async def start(self, source: FrameSource):
        """Start every configured pipeline against ``source``."""
        if self._running:
            return

        if self._loops:
            # Restarting: the same loops wait out any cycle still in flight
            # from the previous run before loading their models again.
            for loop in self._loops.values():
                loop.source = source
        else:
            self._build_loops(source)

        self._running = True
        self.interventions.begin()
        for loop in self._loops.values():
            await loop.start()

    def _build_loops(self, source: FrameSource):
        g = self.config.gesture
        self._loops["gesture"] = InferenceLoop(
            self.gesture, source, interval=None,
            poll_interval=g.poll_interval, metrics=self.metrics,
        )

        if self._face_model_factory is None:
            logger.info("No face model configured; emotion and attention tracking disabled")
            return
        if self.config.emotion.enabled:
            self._loops["emotion"] = InferenceLoop(
                self.emotion, source, interval=self.config.emotion.interval,
                metrics=self.metrics,
            )
        if self.config.attention.enabled:
            self._loops["attention"] = InferenceLoop(
                self.attention, source, interval=self.config.attention.interval,
                metrics=self.metrics,
            )

    async def stop(self):
        """Stop every pipeline. In-flight results are discarded."""
        for loop in self._loops.values():
            await loop.stop()
        self._running = False

    def reset_attention(self):
        """Conclude any open intervention and restart attention tracking."""
        return self.interventions.conclude()

    def status(self) -> dict:
        now = time.monotonic()
        state = self.attention.engine.state
        active = self.interventions.active
        return {
            "running": self._running,
            "pipelines": {
                name: {
                    "enabled": loop.enabled,
                    "loading": loop.loading,
                    "failed": loop.failed,
                }
                for name, loop in self._loops.items()
            },
            "gesture": self.gesture.stabilizer.stable_label.value,
            "emotion": {
                "label": self.emotion.tracker.emotion.value,
                "color": self.emotion.tracker.color,
            },
            "attention": {
                "state": state.value,
                "color": ATTENTION_COLORS[state],
            },
            "focus": {
                "streak": self.interventions.focus_streak,
                "seconds": round(self.interventions.focus_time(now), 1),
                "intervention": active.to_dict() if active else None,
            },
            "strokes": self.drawing.strokes.stroke_count,
        }

    @property
    def running(self) -> bool:
        return self._running

    def loop(self, name: str) -> Optional[InferenceLoop]:
        return self._loops.get(name)
