"""Tests for configuration loading and validation."""

import pytest
import yaml

from mindcanvas.attention import AttentionEngine
from mindcanvas.config import AttentionConfig, EngineConfig


class TestEngineConfig:
    def test_defaults(self):
        config = EngineConfig()
        assert config.gesture.stability_frames == 3
        assert config.gesture.action_cooldown == 0.5
        assert config.emotion.interval == 0.2
        assert config.attention.interval == 0.3
        assert config.attention.face_loss_seconds == 3.0
        assert config.server.port == 8765
        config.validate()

    def test_from_dict_partial(self):
        config = EngineConfig.from_dict({"gesture": {"stability_frames": 5}})
        assert config.gesture.stability_frames == 5
        assert config.gesture.action_cooldown == 0.5

    def test_unknown_keys_ignored(self):
        config = EngineConfig.from_dict({"attention": {"bogus": 1, "vote_window": 7}})
        assert config.attention.vote_window == 7

    def test_empty(self):
        assert EngineConfig.from_dict(None) == EngineConfig()

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError):
            EngineConfig.from_dict({"gesture": [1, 2, 3]})

    @pytest.mark.parametrize("data", [
        {"gesture": {"stability_frames": 0}},
        {"gesture": {"action_cooldown": -1}},
        {"emotion": {"interval": 0}},
        {"attention": {"vote_threshold": 6}},
        {"attention": {"frame_width": 0}},
        {"server": {"event_queue_size": 0}},
    ])
    def test_invalid_values(self, data):
        with pytest.raises(ValueError):
            EngineConfig.from_dict(data)

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "mindcanvas.yaml"
        path.write_text(yaml.dump({
            "emotion": {"enabled": False},
            "server": {"port": 9000},
        }))
        config = EngineConfig.from_yaml(path)
        assert config.emotion.enabled is False
        assert config.server.port == 9000

    def test_to_yaml_writes_file(self, tmp_path):
        path = tmp_path / "out.yaml"
        text = EngineConfig().to_yaml(path)
        assert path.read_text() == text
        loaded = yaml.safe_load(text)
        assert loaded["gesture"]["stability_frames"] == 3
        assert EngineConfig.from_dict(loaded) == EngineConfig()


class TestAttentionConfig:
    def test_engine_kwargs(self):
        kwargs = AttentionConfig(face_loss_seconds=5.0).engine_kwargs()
        assert "interval" not in kwargs
        assert "enabled" not in kwargs
        engine = AttentionEngine(**kwargs)
        assert engine.face_loss_seconds == 5.0
