"""End-to-end drawing behavior: gestures, emotions and the stroke history."""

import numpy as np
import pytest

from mindcanvas.emotion import EMOTION_COLORS, EmotionLabel, EmotionTracker, ExpressionScores
from mindcanvas.gestures import GestureLabel
from mindcanvas.pipeline import GesturePipeline
from mindcanvas.session import DrawingSession
from mindcanvas.stabilizer import GestureStabilizer

DRAW = GestureLabel.DRAW
UNDO = GestureLabel.UNDO
CLEAR = GestureLabel.CLEAR
NONE = GestureLabel.NONE

YELLOW = EMOTION_COLORS[EmotionLabel.NEUTRAL]
PINK = EMOTION_COLORS[EmotionLabel.HAPPY]


def tip(x, y=0.5):
    lm = np.zeros((21, 3), dtype=np.float32)
    lm[8] = [x, y, 0]
    return lm


def pointing_hand(x):
    """Index finger up, the rest curled, index tip at ``x``."""
    lm = np.full((21, 3), 0.8, dtype=np.float32)
    lm[[6, 10, 14, 18], 1] = 0.5
    lm[[12, 16, 20], 1] = 0.7
    lm[8] = [x, 0.3, 0]
    return lm


class Harness:
    def __init__(self):
        self.t = 0.0
        self.stabilizer = GestureStabilizer()
        self.emotions = EmotionTracker()
        self.session = DrawingSession(self.stabilizer, emotions=self.emotions)
        self.histories = []
        self.session.on_history_change(self.histories.append)

    def frames(self, label, count, x0=0.2, dx=0.05):
        for i in range(count):
            landmarks = None if label == NONE else tip(x0 + i * dx)
            self.stabilizer.update(label, landmarks, timestamp=self.t)
            self.t += 0.033

    def feel(self, **scores):
        self.emotions.update(ExpressionScores(**scores), timestamp=self.t)


@pytest.fixture
def harness():
    return Harness()


class TestDrawing:
    def test_draw_then_release_commits_stroke(self, harness):
        harness.frames(DRAW, 6)
        assert harness.session.snapshot().in_progress is not None

        harness.frames(NONE, 3)
        history = harness.session.snapshot()
        assert len(history.committed_strokes) == 1
        assert len(history.committed_strokes[0].points) == 4
        assert history.in_progress is None
        assert len(harness.histories) == 1

    def test_points_are_mirrored(self, harness):
        harness.frames(DRAW, 4, x0=0.2, dx=0.1)
        points = harness.session.snapshot().in_progress.points
        assert points[0].x == pytest.approx(0.6)
        assert points[1].x == pytest.approx(0.5)

    def test_draw_stroke_too_short_is_dropped(self, harness):
        harness.frames(DRAW, 3)
        harness.frames(NONE, 3)
        assert harness.session.snapshot().committed_strokes == ()

    def test_emotion_sets_stroke_color(self, harness):
        harness.feel(happy=0.9)
        harness.frames(DRAW, 5)
        harness.frames(NONE, 3)
        assert harness.session.snapshot().committed_strokes[0].color == PINK

    def test_color_fixed_mid_stroke(self, harness):
        harness.frames(DRAW, 4)
        harness.feel(happy=0.9)
        harness.frames(DRAW, 3, x0=0.6)
        harness.frames(NONE, 3)
        stroke = harness.session.snapshot().committed_strokes[0]
        assert stroke.color == YELLOW
        assert harness.session.color == PINK

    def test_undo_gesture_removes_just_drawn_stroke(self, harness):
        harness.frames(DRAW, 6)
        harness.frames(UNDO, 3)
        assert harness.session.snapshot().committed_strokes == ()

    def test_undo_gesture_removes_only_last_stroke(self, harness):
        harness.frames(DRAW, 5)
        harness.frames(NONE, 3)
        harness.frames(DRAW, 5, x0=0.5)
        harness.frames(NONE, 3)
        harness.t += 1.0
        harness.frames(UNDO, 3)
        history = harness.session.snapshot()
        assert len(history.committed_strokes) == 1
        assert history.committed_strokes[0].points[0].x == pytest.approx(0.7)

    def test_clear_gesture(self, harness):
        harness.frames(DRAW, 5)
        harness.frames(NONE, 3)
        harness.frames(CLEAR, 3)
        assert harness.session.snapshot().committed_strokes == ()
        assert len(harness.histories[-1].committed_strokes) == 0

    def test_direct_undo_and_clear(self, harness):
        harness.session.undo()
        assert harness.histories == []
        harness.session.clear()
        assert len(harness.histories) == 1


class TestHandLoss:
    def test_losing_hand_finishes_stroke(self):
        pipeline = GesturePipeline(detector=object())
        session = DrawingSession(pipeline.stabilizer)
        for i in range(5):
            pipeline.process_landmarks(pointing_hand(0.2 + i * 0.05), timestamp=i * 0.033)
        pipeline.process_landmarks(None, timestamp=0.2)
        assert len(session.snapshot().committed_strokes) == 1
        assert pipeline.stabilizer.stable_label == NONE

    def test_returning_hand_does_not_resume_instantly(self):
        pipeline = GesturePipeline(detector=object())
        session = DrawingSession(pipeline.stabilizer)
        for i in range(5):
            pipeline.process_landmarks(pointing_hand(0.2 + i * 0.05), timestamp=i * 0.033)
        pipeline.process_landmarks(None, timestamp=0.2)

        assert pipeline.process_landmarks(pointing_hand(0.5), timestamp=0.3) == []
        assert pipeline.stabilizer.stable_label == NONE
        assert not session.strokes.is_drawing

    def test_hand_loss_release_can_be_disabled(self):
        pipeline = GesturePipeline(detector=object(), release_on_hand_loss=False)
        session = DrawingSession(pipeline.stabilizer)
        for i in range(5):
            pipeline.process_landmarks(pointing_hand(0.2 + i * 0.05), timestamp=i * 0.033)
        pipeline.process_landmarks(None, timestamp=0.2)
        assert pipeline.stabilizer.stable_label == DRAW
        assert session.snapshot().committed_strokes == ()
