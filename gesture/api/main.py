from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

import uvicorn
from dotenv import load_dotenv

from webcam.capture import FrameSource, OpenCVFrameSource, StubFrameSource
from webcam.clock import RefreshClock
from webcam.display import RecordingDisplay
from webcam.loop import LoopConfig
from webcam.session import TranslatorSession

from ..ai import ClassifierService, GestureVocabulary, KNNImageClassifier, RemoteClassifierClient
from .config import AppConfig, CameraSettings, load_config
from .logging_utils import configure_logging, install_recent_log_buffer
from .server import create_app

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build argument parser with minimal CLI flags.

    Most configuration comes from config/translator.json and GESTURE_*
    environment variables; flags are quick overrides.
    """
    parser = argparse.ArgumentParser(
        description="Run the gesture translator API server",
        epilog="CLI arguments override the config file and environment.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config/translator.json",
        help="Path to JSON configuration file (default: config/translator.json)",
    )
    parser.add_argument("--host", type=str, default=None, help="Override server host")
    parser.add_argument("--port", type=int, default=None, help="Override server port")
    parser.add_argument(
        "--camera",
        choices=["stub", "opencv"],
        default=None,
        help="Override camera backend",
    )
    parser.add_argument(
        "--classifier",
        choices=["knn", "remote"],
        default=None,
        help="Override classifier backend",
    )
    return parser


def parse_resolution(value: str | None) -> tuple[int, int] | None:
    if value is None:
        return None
    parts = value.lower().split("x")
    if len(parts) != 2:
        raise ValueError("resolution must be WIDTHxHEIGHT")
    width, height = parts
    try:
        return int(width), int(height)
    except ValueError as exc:
        raise ValueError("resolution must be numeric") from exc


def build_source(settings: CameraSettings) -> FrameSource:
    if settings.kind == "opencv":
        try:
            source: int | str = int(settings.source)
        except ValueError:
            source = settings.source
        return OpenCVFrameSource(
            source=source,
            resolution=parse_resolution(settings.resolution),
            backend=settings.backend,
            warmup_frames=settings.warmup_frames,
            mirror=settings.mirror,
        )
    sample = Path(settings.source) if settings.source else None
    return StubFrameSource(
        sample_path=sample if sample and sample.exists() else None,
        size=settings.image_size,
    )


def build_classifier(cfg: AppConfig, vocabulary: GestureVocabulary) -> ClassifierService:
    if cfg.classifier.backend == "remote":
        return RemoteClassifierClient(
            base_url=cfg.classifier.remote_url,
            num_classes=len(vocabulary),
            timeout=cfg.classifier.timeout,
        )
    from ..ai.embedding import ThumbnailEmbedder

    return KNNImageClassifier(
        num_classes=len(vocabulary),
        top_k=cfg.classifier.top_k,
        embedder=ThumbnailEmbedder(size=cfg.camera.image_size),
    )


def build_session(cfg: AppConfig) -> TranslatorSession:
    vocabulary = GestureVocabulary(cfg.translation.words)
    return TranslatorSession(
        source=build_source(cfg.camera),
        classifier=build_classifier(cfg, vocabulary),
        vocabulary=vocabulary,
        display=RecordingDisplay(),
        clock=RefreshClock(frame_rate=cfg.translation.frame_rate),
        loop_config=LoopConfig(
            confidence_threshold=cfg.translation.confidence_threshold,
            reset_previous_on_start=cfg.translation.reset_previous_on_start,
        ),
    )


def main(argv: Sequence[str] | None = None) -> None:
    load_dotenv()
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)

    config_path = Path(args.config)
    try:
        cfg = load_config(config_path if config_path.exists() else None)
    except Exception as exc:
        logger.error("Failed to load configuration %s: %s", config_path, exc)
        sys.exit(1)

    if args.host:
        cfg.server.host = args.host
    if args.port:
        cfg.server.port = args.port
    if args.camera:
        cfg.camera.kind = args.camera
    if args.classifier:
        cfg.classifier.backend = args.classifier

    configure_logging(cfg.log_level)
    log_handler = install_recent_log_buffer()

    logger.info("Server configuration: %s:%d", cfg.server.host, cfg.server.port)
    logger.info(
        "Camera=%s source=%s classifier=%s words=%s threshold=%.3f",
        cfg.camera.kind,
        cfg.camera.source,
        cfg.classifier.backend,
        ",".join(cfg.translation.words),
        cfg.translation.confidence_threshold,
    )

    try:
        session = build_session(cfg)
    except ValueError as exc:
        logger.error("Invalid translator configuration: %s", exc)
        sys.exit(1)

    app = create_app(session, log_handler=log_handler)
    try:
        uvicorn.run(app, host=cfg.server.host, port=cfg.server.port, log_level="info")
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received during shutdown")


if __name__ == "__main__":
    main()
