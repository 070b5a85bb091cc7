from __future__ import annotations

import argparse
import asyncio
import logging
import platform
import time
from pathlib import Path
from typing import Sequence

from gesture.ai import GestureVocabulary, KNNImageClassifier
from gesture.ai.types import CONFIDENCE_THRESHOLD, DEFAULT_WORDS

from .capture import FrameSource, OpenCVFrameSource, StubFrameSource
from .clock import RefreshClock
from .display import RecordingDisplay
from .loop import LoopConfig, LoopState
from .session import CommandRejected, RecordingFailed, TranslatorSession


def parse_words(value: str) -> list[str]:
    words = [word.strip() for word in value.split(",") if word.strip()]
    if not words:
        raise argparse.ArgumentTypeError("at least one gesture word is required")
    return words


def parse_backend(value: str | None) -> str | int | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return value


def build_source(kind: str, source: str, backend: str | int | None, mirror: bool) -> FrameSource:
    if kind == "opencv":
        try:
            converted_source: int | str = int(source)
        except ValueError:
            converted_source = source
        if backend is None and platform.system().lower().startswith("win"):
            backend = "dshow"
        return OpenCVFrameSource(source=converted_source, backend=backend, mirror=mirror)
    sample = Path(source) if source else None
    return StubFrameSource(sample_path=sample if sample and sample.exists() else None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Record gesture examples from the webcam, then translate live"
    )
    parser.add_argument(
        "--camera",
        choices=["stub", "opencv"],
        default="opencv",
        help="frame source to use",
    )
    parser.add_argument(
        "--camera-source",
        default="0",
        help="camera index or URL (OpenCV) or sample image path (stub)",
    )
    parser.add_argument(
        "--camera-backend",
        default=None,
        help="preferred OpenCV backend (e.g. dshow, msmf, v4l2, 700)",
    )
    parser.add_argument(
        "--no-mirror", action="store_true", help="do not flip frames horizontally"
    )
    parser.add_argument(
        "--words",
        type=parse_words,
        default=list(DEFAULT_WORDS),
        help="comma separated gesture words (default: start,stop)",
    )
    parser.add_argument(
        "--examples", type=int, default=20, help="examples to record per gesture"
    )
    parser.add_argument(
        "--prepare-seconds",
        type=float,
        default=3.0,
        help="pause before recording each gesture",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=30.0,
        help="seconds to translate after training",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=CONFIDENCE_THRESHOLD,
        help="confidence required before a word is shown",
    )
    parser.add_argument(
        "--frame-rate", type=float, default=30.0, help="classification passes per second"
    )
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    return parser


async def record_examples(
    session: TranslatorSession, count: int, prepare_seconds: float
) -> None:
    for gesture in session.vocabulary:
        print(f"[translator] Show the '{gesture.label}' gesture in {prepare_seconds:.0f}s")
        await asyncio.sleep(prepare_seconds)
        recorded = 0
        for _ in range(count):
            recorded = await session.start_recording(gesture.index)
            await asyncio.sleep(0.05)
        print(f"[translator] Recorded {recorded} example(s) for '{gesture.label}'")


async def run_session(args: argparse.Namespace) -> list[str]:
    vocabulary = GestureVocabulary(args.words)
    display = RecordingDisplay()
    session = TranslatorSession(
        source=build_source(
            args.camera,
            args.camera_source,
            parse_backend(args.camera_backend),
            not args.no_mirror,
        ),
        classifier=KNNImageClassifier(num_classes=len(vocabulary)),
        vocabulary=vocabulary,
        display=display,
        clock=RefreshClock(frame_rate=args.frame_rate),
        loop_config=LoopConfig(confidence_threshold=args.threshold),
    )
    await session.initialize()
    try:
        await record_examples(session, max(1, args.examples), args.prepare_seconds)
        if session.toggle_classification() is not LoopState.PREDICTING:
            return []
        print(f"[translator] Translating for {args.duration:.0f}s. Press Ctrl+C to stop.")
        deadline = time.monotonic() + args.duration
        seen = 0
        while time.monotonic() < deadline:
            await asyncio.sleep(0.1)
            for word in display.words[seen:]:
                print(f"[translator] {word}")
            seen = len(display.words)
    except CommandRejected as exc:
        print(f"[translator] Command rejected: {exc}")
    except RecordingFailed as exc:
        print(f"[translator] Recording failed: {exc}")
    finally:
        await session.close()
    return display.words


def run_demo(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s [%(name)s] %(message)s",
    )
    try:
        words = asyncio.run(run_session(args))
    except KeyboardInterrupt:
        print("[translator] Stopped by user")
        return
    print(f"[translator] Translated {len(words)} word(s): {' '.join(words)}")


if __name__ == "__main__":
    run_demo()
