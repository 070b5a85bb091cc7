from __future__ import annotations

import json

import pytest

from gesture.api.config import AppConfig, load_config


def test_defaults_without_file_or_environment() -> None:
    cfg = load_config(None, environ={})

    assert cfg == AppConfig()
    assert cfg.translation.words == ["start", "stop"]
    assert cfg.translation.confidence_threshold == pytest.approx(0.98)
    assert cfg.translation.reset_previous_on_start is False


def test_file_values_then_environment_overrides(tmp_path) -> None:
    path = tmp_path / "translator.json"
    path.write_text(
        json.dumps(
            {
                "server": {"port": 9100},
                "camera": {"kind": "stub", "source": 2},
                "classifier": {"backend": "remote", "top_k": 5},
                "translation": {"words": ["yes", "no", "maybe"], "frame_rate": 24},
                "log_level": "DEBUG",
            }
        ),
        encoding="utf-8",
    )

    cfg = load_config(
        path,
        environ={
            "GESTURE_PORT": "9200",
            "GESTURE_CONFIDENCE_THRESHOLD": "0.9",
            "GESTURE_WORDS": "hello, bye",
        },
    )

    assert cfg.server.port == 9200
    assert cfg.camera.kind == "stub"
    assert cfg.camera.source == "2"
    assert cfg.classifier.backend == "remote"
    assert cfg.classifier.top_k == 5
    assert cfg.translation.frame_rate == pytest.approx(24.0)
    assert cfg.translation.confidence_threshold == pytest.approx(0.9)
    assert cfg.translation.words == ["hello", "bye"]
    assert cfg.log_level == "DEBUG"


def test_invalid_values_fall_back_to_defaults(tmp_path, caplog) -> None:
    path = tmp_path / "translator.json"
    path.write_text(
        json.dumps(
            {
                "server": {"port": "not-a-port"},
                "camera": {"kind": "kinect"},
                "classifier": {"backend": "svm", "top_k": 0},
                "translation": {"confidence_threshold": 1.5, "words": [], "bogus": 1},
            }
        ),
        encoding="utf-8",
    )

    cfg = load_config(path, environ={"GESTURE_FRAME_RATE": "fast"})

    defaults = AppConfig()
    assert cfg.server.port == defaults.server.port
    assert cfg.camera.kind == defaults.camera.kind
    assert cfg.classifier.backend == "knn"
    assert cfg.classifier.top_k == defaults.classifier.top_k
    assert cfg.translation.confidence_threshold == pytest.approx(0.98)
    assert cfg.translation.words == ["start", "stop"]
    assert cfg.translation.frame_rate == pytest.approx(60.0)
    assert "Unknown config key translation.bogus" in caplog.text
    assert "GESTURE_FRAME_RATE" in caplog.text


def test_missing_explicit_file_raises(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.json", environ={})


def test_camera_and_classifier_settings_are_sanitized(tmp_path, caplog) -> None:
    path = tmp_path / "translator.json"
    path.write_text(
        json.dumps(
            {
                "camera": {"image_size": 0, "warmup_frames": -1, "mirror": "yes?"},
                "classifier": {"timeout": "x", "remote_url": ""},
                "translation": {"reset_previous_on_start": "false"},
            }
        ),
        encoding="utf-8",
    )

    cfg = load_config(path, environ={})

    defaults = AppConfig()
    assert cfg.camera.image_size == defaults.camera.image_size
    assert cfg.camera.warmup_frames == defaults.camera.warmup_frames
    assert cfg.camera.mirror is True
    assert cfg.classifier.timeout == pytest.approx(defaults.classifier.timeout)
    assert cfg.classifier.remote_url == defaults.classifier.remote_url
    assert cfg.translation.reset_previous_on_start is False
    assert "Invalid camera image size 0" in caplog.text
    assert "Invalid camera.mirror 'yes?'" in caplog.text
    assert "Invalid classifier URL ''" in caplog.text


def test_flag_strings_and_numeric_strings_are_parsed(tmp_path) -> None:
    path = tmp_path / "translator.json"
    path.write_text(
        json.dumps(
            {
                "camera": {"image_size": "128", "warmup_frames": 0, "mirror": "off"},
                "classifier": {"timeout": "2.5", "remote_url": " https://knn.local "},
                "translation": {"reset_previous_on_start": "TRUE"},
            }
        ),
        encoding="utf-8",
    )

    cfg = load_config(path, environ={})

    assert cfg.camera.image_size == 128
    assert cfg.camera.warmup_frames == 0
    assert cfg.camera.mirror is False
    assert cfg.classifier.timeout == pytest.approx(2.5)
    assert cfg.classifier.remote_url == "https://knn.local"
    assert cfg.translation.reset_previous_on_start is True
