"""MindCanvas configuration.

All tunables live in plain dataclasses grouped under ``EngineConfig`` and can
be loaded from / saved to YAML:

    gesture:
      stability_frames: 3
      action_cooldown: 0.5
    attention:
      interval: 0.3
      face_loss_seconds: 3.0

Unknown keys are ignored; missing keys keep their defaults.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml


@dataclass
class GestureConfig:
    stability_frames: int = 3
    action_cooldown: float = 0.5
    min_point_distance: float = 0.005
    min_stroke_points: int = 2
    mirror_x: bool = True
    release_on_hand_loss: bool = True
    min_detection_confidence: float = 0.7
    min_tracking_confidence: float = 0.5
    poll_interval: float = 0.005  # frame-ready polling when no frame is pending


@dataclass
class EmotionConfig:
    enabled: bool = True
    interval: float = 0.2


@dataclass
class AttentionConfig:
    enabled: bool = True
    interval: float = 0.3
    frame_width: float = 640.0
    center_tolerance: float = 0.25
    blink_open_threshold: float = 0.15
    closed_eye_threshold: float = 0.12
    open_eye_threshold: float = 0.18
    sad_threshold: float = 0.3
    neutral_threshold: float = 0.4
    happy_threshold: float = 0.3
    surprised_threshold: float = 0.3
    fatigue_blinks: int = 30
    fatigue_window_seconds: float = 60.0
    fatigue_min_samples: int = 10
    history_seconds: float = 30.0
    vote_window: int = 5
    vote_threshold: int = 3
    face_loss_seconds: float = 3.0
    distraction_grace_seconds: float = 5.0

    def engine_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``AttentionEngine``."""
        skip = {"enabled", "interval", "distraction_grace_seconds"}
        return {k: v for k, v in asdict(self).items() if k not in skip}


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8765
    camera_index: int = 0
    camera_width: int = 640
    camera_height: int = 480
    event_queue_size: int = 256  # pending broadcasts before draw points are dropped


@dataclass
class EngineConfig:
    gesture: GestureConfig = field(default_factory=GestureConfig)
    emotion: EmotionConfig = field(default_factory=EmotionConfig)
    attention: AttentionConfig = field(default_factory=AttentionConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    def validate(self):
        """Raise ValueError for values the engine can't run with."""
        if self.gesture.stability_frames < 1:
            raise ValueError("gesture.stability_frames must be >= 1")
        if self.gesture.action_cooldown < 0:
            raise ValueError("gesture.action_cooldown must be >= 0")
        if self.emotion.interval <= 0 or self.attention.interval <= 0:
            raise ValueError("pipeline intervals must be > 0")
        if not 0 < self.attention.vote_threshold <= self.attention.vote_window:
            raise ValueError("attention.vote_threshold must be in 1..vote_window")
        if self.attention.frame_width <= 0:
            raise ValueError("attention.frame_width must be > 0")
        if self.server.event_queue_size < 1:
            raise ValueError("server.event_queue_size must be >= 1")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> EngineConfig:
        data = data or {}
        config = cls(
            gesture=_section(GestureConfig, data.get("gesture")),
            emotion=_section(EmotionConfig, data.get("emotion")),
            attention=_section(AttentionConfig, data.get("attention")),
            server=_section(ServerConfig, data.get("server")),
        )
        config.validate()
        return config

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        """Load a config file."""
        with open(path) as f:
            return cls.from_dict(yaml.safe_load(f))

    def to_yaml(self, path: Optional[str | Path] = None) -> str:
        """Dump as YAML, optionally writing it to ``path``."""
        text = yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)
        if path is not None:
            with open(path, "w") as f:
                f.write(text)
        return text


def _section(kind, data: Optional[dict]):
    if data is None:
        return kind()
    if not isinstance(data, dict):
        raise ValueError(f"config section for {kind.__name__} must be a mapping")
    known = {f.name for f in fields(kind)}
    return kind(**{k: v for k, v in data.items() if k in known})
