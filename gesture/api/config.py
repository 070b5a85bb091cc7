"""Configuration for the gesture translator service.

Values come from, in increasing priority:

- dataclass defaults
- an optional JSON file (``config/translator.json``)
- ``GESTURE_*`` environment variables (a ``.env`` file is honoured)

Invalid values never abort startup; they are logged and replaced by defaults.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Mapping

from ..ai.types import CONFIDENCE_THRESHOLD, DEFAULT_WORDS, IMAGE_SIZE, TOP_K

logger = logging.getLogger(__name__)

_CLASSIFIER_BACKENDS = {"knn", "remote"}
_CAMERA_KINDS = {"opencv", "stub"}
_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


@dataclass
class ServerSettings:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class CameraSettings:
    kind: str = "opencv"
    source: str = "0"
    resolution: str | None = None
    backend: str | None = None
    warmup_frames: int = 2
    mirror: bool = True
    image_size: int = IMAGE_SIZE


@dataclass
class ClassifierSettings:
    backend: str = "knn"
    top_k: int = TOP_K
    remote_url: str = "http://127.0.0.1:9000"
    timeout: float = 10.0


@dataclass
class TranslationSettings:
    words: list[str] = field(default_factory=lambda: list(DEFAULT_WORDS))
    confidence_threshold: float = CONFIDENCE_THRESHOLD
    frame_rate: float = 60.0
    reset_previous_on_start: bool = False


@dataclass
class AppConfig:
    server: ServerSettings = field(default_factory=ServerSettings)
    camera: CameraSettings = field(default_factory=CameraSettings)
    classifier: ClassifierSettings = field(default_factory=ClassifierSettings)
    translation: TranslationSettings = field(default_factory=TranslationSettings)
    log_level: str = "INFO"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def load_config(
    path: Path | None = None, environ: Mapping[str, str] | None = None
) -> AppConfig:
    """Build an :class:`AppConfig` from a JSON file and the environment.

    Raises:
        FileNotFoundError: ``path`` was given but does not exist.
    """
    cfg = AppConfig()
    if path is not None:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            logger.warning("Ignoring configuration in %s: expected a JSON object", path)
        else:
            _apply_file(cfg, data)
    _apply_env(cfg, os.environ if environ is None else environ)
    _sanitize(cfg)
    return cfg


def _apply_file(cfg: AppConfig, data: dict[str, Any]) -> None:
    sections = {
        "server": cfg.server,
        "camera": cfg.camera,
        "classifier": cfg.classifier,
        "translation": cfg.translation,
    }
    for name, target in sections.items():
        values = data.get(name)
        if values is None:
            continue
        if not isinstance(values, dict):
            logger.warning("Ignoring config section %r: expected an object", name)
            continue
        for key, value in values.items():
            if not hasattr(target, key):
                logger.warning("Unknown config key %s.%s", name, key)
                continue
            setattr(target, key, value)
    if "log_level" in data:
        cfg.log_level = str(data["log_level"])


def _apply_env(cfg: AppConfig, environ: Mapping[str, str]) -> None:
    overrides = {
        "GESTURE_HOST": (cfg.server, "host", str),
        "GESTURE_PORT": (cfg.server, "port", int),
        "GESTURE_CAMERA": (cfg.camera, "kind", str),
        "GESTURE_CAMERA_SOURCE": (cfg.camera, "source", str),
        "GESTURE_CLASSIFIER": (cfg.classifier, "backend", str),
        "GESTURE_CLASSIFIER_URL": (cfg.classifier, "remote_url", str),
        "GESTURE_CONFIDENCE_THRESHOLD": (cfg.translation, "confidence_threshold", float),
        "GESTURE_FRAME_RATE": (cfg.translation, "frame_rate", float),
    }
    for env_name, (target, attr, convert) in overrides.items():
        raw = environ.get(env_name)
        if raw is None or not raw.strip():
            continue
        try:
            setattr(target, attr, convert(raw.strip()))
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", env_name, raw)
    words = environ.get("GESTURE_WORDS")
    if words and words.strip():
        cfg.translation.words = [word.strip() for word in words.split(",") if word.strip()]
    level = environ.get("GESTURE_LOG_LEVEL")
    if level and level.strip():
        cfg.log_level = level.strip()


def _sanitize(cfg: AppConfig) -> None:
    defaults = AppConfig()

    try:
        cfg.server.port = int(cfg.server.port)
        if not 0 < cfg.server.port < 65536:
            raise ValueError
    except (TypeError, ValueError):
        logger.warning("Invalid server port %r; using %d", cfg.server.port, defaults.server.port)
        cfg.server.port = defaults.server.port

    if cfg.camera.kind not in _CAMERA_KINDS:
        logger.warning("Unknown camera kind %r; using %s", cfg.camera.kind, defaults.camera.kind)
        cfg.camera.kind = defaults.camera.kind
    cfg.camera.source = str(cfg.camera.source)
    try:
        cfg.camera.image_size = int(cfg.camera.image_size)
        if cfg.camera.image_size <= 0:
            raise ValueError
    except (TypeError, ValueError):
        logger.warning(
            "Invalid camera image size %r; using %d", cfg.camera.image_size, IMAGE_SIZE
        )
        cfg.camera.image_size = defaults.camera.image_size
    try:
        cfg.camera.warmup_frames = int(cfg.camera.warmup_frames)
        if cfg.camera.warmup_frames < 0:
            raise ValueError
    except (TypeError, ValueError):
        logger.warning(
            "Invalid camera warmup frames %r; using %d",
            cfg.camera.warmup_frames,
            defaults.camera.warmup_frames,
        )
        cfg.camera.warmup_frames = defaults.camera.warmup_frames
    cfg.camera.mirror = _sanitize_flag("camera.mirror", cfg.camera.mirror, defaults.camera.mirror)

    if cfg.classifier.backend not in _CLASSIFIER_BACKENDS:
        logger.warning(
            "Unknown classifier backend %r; using %s",
            cfg.classifier.backend,
            defaults.classifier.backend,
        )
        cfg.classifier.backend = defaults.classifier.backend
    try:
        cfg.classifier.top_k = int(cfg.classifier.top_k)
        if cfg.classifier.top_k <= 0:
            raise ValueError
    except (TypeError, ValueError):
        logger.warning("Invalid top_k %r; using %d", cfg.classifier.top_k, defaults.classifier.top_k)
        cfg.classifier.top_k = defaults.classifier.top_k
    try:
        cfg.classifier.timeout = float(cfg.classifier.timeout)
        if not cfg.classifier.timeout > 0:
            raise ValueError
    except (TypeError, ValueError):
        logger.warning(
            "Invalid classifier timeout %r; using %.1f",
            cfg.classifier.timeout,
            defaults.classifier.timeout,
        )
        cfg.classifier.timeout = defaults.classifier.timeout
    url = cfg.classifier.remote_url
    if not isinstance(url, str) or not url.strip().lower().startswith(("http://", "https://")):
        logger.warning(
            "Invalid classifier URL %r; using %s", url, defaults.classifier.remote_url
        )
        cfg.classifier.remote_url = defaults.classifier.remote_url
    else:
        cfg.classifier.remote_url = url.strip()

    translation = cfg.translation
    try:
        translation.confidence_threshold = float(translation.confidence_threshold)
        if not 0.0 <= translation.confidence_threshold < 1.0:
            raise ValueError
    except (TypeError, ValueError):
        logger.warning(
            "Invalid confidence threshold %r; using %.2f",
            translation.confidence_threshold,
            CONFIDENCE_THRESHOLD,
        )
        translation.confidence_threshold = CONFIDENCE_THRESHOLD
    try:
        translation.frame_rate = float(translation.frame_rate)
        if translation.frame_rate <= 0:
            raise ValueError
    except (TypeError, ValueError):
        logger.warning("Invalid frame rate %r; using 60", translation.frame_rate)
        translation.frame_rate = defaults.translation.frame_rate
    if (
        not isinstance(translation.words, list)
        or not translation.words
        or not all(isinstance(word, str) and word.strip() for word in translation.words)
    ):
        logger.warning("Invalid gesture words %r; using defaults", translation.words)
        translation.words = list(DEFAULT_WORDS)
    translation.reset_previous_on_start = _sanitize_flag(
        "translation.reset_previous_on_start",
        translation.reset_previous_on_start,
        defaults.translation.reset_previous_on_start,
    )


def _sanitize_flag(name: str, value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    logger.warning("Invalid %s %r; using %s", name, value, default)
    return default


__all__ = [
    "AppConfig",
    "CameraSettings",
    "ClassifierSettings",
    "ServerSettings",
    "TranslationSettings",
    "load_config",
]
