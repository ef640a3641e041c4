"""Tests for emotion classification and color tracking."""

import pytest

from mindcanvas.emotion import (
    EMOTION_COLORS,
    EmotionClassifier,
    EmotionLabel,
    EmotionTracker,
    ExpressionScores,
    composite_scores,
)


class TestCompositeScores:
    def test_folding(self):
        scores = ExpressionScores(
            happy=0.1, sad=0.2, fearful=0.05, angry=0.1,
            disgusted=0.15, neutral=0.2, surprised=0.2,
        )
        composites = composite_scores(scores)
        assert composites[EmotionLabel.HAPPY] == pytest.approx(0.1)
        assert composites[EmotionLabel.SAD] == pytest.approx(0.25)
        assert composites[EmotionLabel.ANGRY] == pytest.approx(0.25)
        assert composites[EmotionLabel.NEUTRAL] == pytest.approx(0.3)

    def test_from_dict_fills_missing(self):
        scores = ExpressionScores.from_dict({"happy": 0.9, "unknown": 1.0})
        assert scores.happy == 0.9
        assert scores.sad == 0.0


class TestEmotionClassifier:
    @pytest.mark.parametrize("scores,expected", [
        (ExpressionScores(happy=0.8, neutral=0.2), EmotionLabel.HAPPY),
        (ExpressionScores(sad=0.3, fearful=0.3, happy=0.5), EmotionLabel.SAD),
        (ExpressionScores(angry=0.2, disgusted=0.3, neutral=0.4), EmotionLabel.ANGRY),
        (ExpressionScores(neutral=0.3, surprised=0.4, happy=0.45), EmotionLabel.NEUTRAL),
    ])
    def test_dominant_emotion(self, scores, expected):
        assert EmotionClassifier().classify(scores) == expected

    def test_tie_goes_to_first_declared(self):
        scores = ExpressionScores(happy=0.5, sad=0.5)
        assert EmotionClassifier().classify(scores) == EmotionLabel.HAPPY

    def test_all_zero_is_neutral(self):
        assert EmotionClassifier().classify(ExpressionScores()) == EmotionLabel.NEUTRAL

    def test_colors(self):
        assert EmotionClassifier.color_for(EmotionLabel.HAPPY) == "#ec4899"
        assert EmotionClassifier.color_for(EmotionLabel.SAD) == "#3b82f6"
        assert EmotionClassifier.color_for(EmotionLabel.ANGRY) == "#ef4444"
        assert EmotionClassifier.color_for(EmotionLabel.NEUTRAL) == "#eab308"


class TestEmotionTracker:
    def test_starts_neutral(self):
        tracker = EmotionTracker()
        assert tracker.emotion == EmotionLabel.NEUTRAL
        assert tracker.color == EMOTION_COLORS[EmotionLabel.NEUTRAL]

    def test_change_reported_immediately(self):
        tracker = EmotionTracker()
        event = tracker.update(ExpressionScores(happy=0.9), timestamp=1.0)
        assert event is not None
        assert event.emotion == EmotionLabel.HAPPY
        assert event.color == "#ec4899"
        assert event.timestamp == 1.0

    def test_unchanged_emotion_is_silent(self):
        tracker = EmotionTracker()
        tracker.update(ExpressionScores(sad=0.9), timestamp=0.0)
        assert tracker.update(ExpressionScores(sad=0.7), timestamp=0.2) is None

    def test_neutral_frame_at_start_is_silent(self):
        tracker = EmotionTracker()
        assert tracker.update(ExpressionScores(neutral=0.9)) is None

    def test_callbacks(self):
        tracker = EmotionTracker()
        seen = []
        tracker.on_emotion(lambda e: seen.append(e.emotion))
        tracker.update(ExpressionScores(angry=0.9), timestamp=0.0)
        tracker.update(ExpressionScores(angry=0.8), timestamp=0.2)
        tracker.update(ExpressionScores(happy=0.8), timestamp=0.4)
        assert seen == [EmotionLabel.ANGRY, EmotionLabel.HAPPY]

    def test_to_dict(self):
        tracker = EmotionTracker()
        d = tracker.update(ExpressionScores(happy=1.0), timestamp=2.0).to_dict()
        assert d == {"type": "emotion", "emotion": "happy", "color": "#ec4899", "timestamp": 2.0}

    def test_reset(self):
        tracker = EmotionTracker()
        tracker.update(ExpressionScores(happy=1.0))
        tracker.reset()
        assert tracker.emotion == EmotionLabel.NEUTRAL
