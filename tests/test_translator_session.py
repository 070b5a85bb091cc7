from __future__ import annotations

import asyncio
import logging

import numpy as np
import pytest

from gesture.ai.knn import KNNImageClassifier
from gesture.ai.types import ClassifierError, ClassifierNotReadyError, GestureVocabulary
from webcam.capture import Frame, FrameUnavailableError, StubFrameSource
from webcam.clock import ImmediateClock
from webcam.display import RecordingDisplay
from webcam.loop import LoopState
from webcam.recorder import ExampleRecorder
from webcam.session import CommandRejected, RecordingFailed, TranslatorSession


class _CountingSource(StubFrameSource):
    def __init__(self, *, attached: bool = True) -> None:
        super().__init__(attached=attached)
        self.frames: list[Frame] = []

    def current_frame(self) -> Frame | None:
        frame = super().current_frame()
        if frame is not None:
            self.frames.append(frame)
        return frame


class _DeniedSource(_CountingSource):
    def __init__(self) -> None:
        super().__init__(attached=False)

    def attach(self) -> bool:
        self.error = "permission denied"
        return False


class _FailingLoadClassifier(KNNImageClassifier):
    async def load(self) -> None:
        raise RuntimeError("weights missing")


class _ExplodingClassifier(KNNImageClassifier):
    async def add_example(self, frame: Frame, class_index: int) -> None:
        raise RuntimeError("embedding failed")


class _UnreachableClassifier(KNNImageClassifier):
    async def add_example(self, frame: Frame, class_index: int) -> None:
        raise ClassifierError("Failed to call classifier service: connection refused")


class _GatedClassifier(KNNImageClassifier):
    gate: "asyncio.Future[None] | None" = None

    async def add_example(self, frame: Frame, class_index: int) -> None:
        if self.gate is not None:
            await self.gate
        await super().add_example(frame, class_index)


def _vocabulary() -> GestureVocabulary:
    return GestureVocabulary(("start", "stop"))


def _loaded_knn(cls=KNNImageClassifier) -> KNNImageClassifier:
    classifier = cls(num_classes=2)
    asyncio.run(classifier.load())
    return classifier


def test_recorder_adds_example_and_reports_count() -> None:
    source = _CountingSource()
    display = RecordingDisplay()
    recorder = ExampleRecorder(source, _loaded_knn(), _vocabulary(), display)

    assert asyncio.run(recorder.record(1)) == 1
    assert asyncio.run(recorder.record(1)) == 2

    assert display.example_counts == {"stop": 2}
    assert all(frame.released for frame in source.frames)


def test_recorder_releases_frame_when_classifier_fails() -> None:
    source = _CountingSource()
    recorder = ExampleRecorder(source, _loaded_knn(_ExplodingClassifier), _vocabulary())

    with pytest.raises(RuntimeError):
        asyncio.run(recorder.record(0))

    assert len(source.frames) == 1
    assert source.frames[0].released


def test_recorder_preconditions() -> None:
    vocabulary = _vocabulary()
    not_loaded = ExampleRecorder(_CountingSource(), KNNImageClassifier(num_classes=2), vocabulary)
    no_camera = ExampleRecorder(_CountingSource(attached=False), _loaded_knn(), vocabulary)

    with pytest.raises(ClassifierNotReadyError):
        asyncio.run(not_loaded.record(0))
    with pytest.raises(FrameUnavailableError):
        asyncio.run(no_camera.record(0))
    with pytest.raises(ValueError):
        asyncio.run(no_camera.record(7))


def test_initialize_failures_are_logged_once_and_commands_rejected(caplog) -> None:
    session = TranslatorSession(
        source=_DeniedSource(),
        classifier=_FailingLoadClassifier(num_classes=2),
        vocabulary=_vocabulary(),
        clock=ImmediateClock(),
    )

    with caplog.at_level(logging.ERROR, logger="webcam.session"):
        asyncio.run(session.initialize())

    errors = [record.getMessage() for record in caplog.records if record.levelno >= logging.ERROR]
    assert any("permission denied" in message for message in errors)
    assert any("weights missing" in message for message in errors)

    snapshot = session.snapshot()
    assert snapshot["camera_available"] is False
    assert snapshot["classifier_ready"] is False
    assert snapshot["camera_error"] == "permission denied"
    assert snapshot["classifier_error"] == "weights missing"
    assert snapshot["example_counts"] == {"start": 0, "stop": 0}

    with pytest.raises(CommandRejected):
        asyncio.run(session.start_recording(0))
    with pytest.raises(CommandRejected):
        session.toggle_classification()
    assert session.stop_classification() is False


def test_toggle_rejected_without_camera_even_when_classifier_ready() -> None:
    session = TranslatorSession(
        source=_DeniedSource(),
        classifier=KNNImageClassifier(num_classes=2),
        vocabulary=_vocabulary(),
        clock=ImmediateClock(),
    )
    asyncio.run(session.initialize())

    with pytest.raises(CommandRejected, match="Webcam"):
        session.toggle_classification()
    with pytest.raises(CommandRejected, match="Webcam"):
        asyncio.run(session.start_recording(0))


def test_session_round_trip_through_commands() -> None:
    source = _CountingSource()
    session = TranslatorSession(
        source=source,
        classifier=KNNImageClassifier(num_classes=2),
        vocabulary=_vocabulary(),
        clock=ImmediateClock(),
    )

    async def scenario() -> dict:
        await session.initialize()
        assert await session.start_recording(0) == 1
        assert session.toggle_classification() is LoopState.PREDICTING
        for _ in range(5):
            await asyncio.sleep(0)
        assert session.stop_classification() is True
        assert session.stop_classification() is False
        await session.close()
        return session.snapshot()

    snapshot = asyncio.run(scenario())

    assert snapshot["state"] == "idle"
    assert snapshot["example_counts"] == {"start": 1, "stop": 0}
    assert snapshot["stats"]["iterations"] >= 1
    assert snapshot["camera_available"] is False
    assert all(frame.released for frame in source.frames)


def test_flat_frames_never_clear_threshold() -> None:
    display = RecordingDisplay()
    session = TranslatorSession(
        source=_CountingSource(),
        classifier=KNNImageClassifier(num_classes=2, top_k=4),
        vocabulary=_vocabulary(),
        display=display,
        clock=ImmediateClock(),
    )

    async def scenario() -> None:
        await session.initialize()
        await session.start_recording(0)
        await session.start_recording(1)
        session.toggle_classification()
        for _ in range(10):
            await asyncio.sleep(0)
        await session.close()

    asyncio.run(scenario())

    assert display.words == []
    assert np.isclose(session.loop.config.confidence_threshold, 0.98)


def test_classifier_failure_while_recording_is_logged_and_recoverable(caplog) -> None:
    source = _CountingSource()
    session = TranslatorSession(
        source=source,
        classifier=_UnreachableClassifier(num_classes=2),
        vocabulary=_vocabulary(),
        clock=ImmediateClock(),
    )
    asyncio.run(session.initialize())

    with caplog.at_level(logging.WARNING, logger="webcam.session"):
        with pytest.raises(RecordingFailed, match="connection refused"):
            asyncio.run(session.start_recording(0))

    warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert warnings == ["Recording example failed: Failed to call classifier service: connection refused"]
    assert source.frames[0].released
    assert session.snapshot()["state"] == "idle"


def test_loop_keeps_running_while_example_is_being_stored() -> None:
    classifier = _GatedClassifier(num_classes=2)
    session = TranslatorSession(
        source=_CountingSource(),
        classifier=classifier,
        vocabulary=_vocabulary(),
        clock=ImmediateClock(),
    )

    async def scenario() -> tuple[int, int, int]:
        await session.initialize()
        classifier.gate = asyncio.get_running_loop().create_future()
        session.toggle_classification()
        for _ in range(3):
            await asyncio.sleep(0)

        recording = asyncio.create_task(session.start_recording(0))
        await asyncio.sleep(0)
        before = session.loop.stats.iterations
        for _ in range(10):
            await asyncio.sleep(0)
        during = session.loop.stats.iterations
        assert not recording.done()

        classifier.gate.set_result(None)
        count = await recording
        await session.close()
        return before, during, count

    before, during, count = asyncio.run(scenario())

    assert during > before
    assert count == 1
