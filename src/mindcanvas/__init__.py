"""MindCanvas - gesture drawing, emotion colors and attention tracking."""

__version__ = "0.1.0"

from mindcanvas.gestures import GestureLabel, GestureDefinition, GestureRegistry
from mindcanvas.classifier import GestureClassifier
from mindcanvas.stabilizer import GestureStabilizer, ActionDebouncer, GestureEvent, DrawPointEvent, ActionEvent
from mindcanvas.strokes import Point, Stroke, DrawingHistory, StrokeAccumulator
from mindcanvas.emotion import EmotionLabel, EmotionClassifier, EmotionTracker, ExpressionScores, EMOTION_COLORS
from mindcanvas.attention import (
    AttentionLabel, AttentionEngine, AttentionEvent, FaceDetection, BoundingBox,
    ATTENTION_COLORS, ATTENTION_INTERVENTIONS,
)
from mindcanvas.interventions import InterventionCoordinator
from mindcanvas.pipeline import GesturePipeline, EmotionPipeline, AttentionPipeline
from mindcanvas.scheduler import InferenceLoop
from mindcanvas.session import DrawingSession
from mindcanvas.engine import MindCanvasEngine
from mindcanvas.config import EngineConfig
from mindcanvas.metrics import MetricsCollector
