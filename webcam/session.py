from __future__ import annotations

import logging
from typing import Any

from gesture.ai.types import (
    ClassifierError,
    ClassifierNotReadyError,
    ClassifierService,
    GestureVocabulary,
)

from .capture import FrameSource, FrameUnavailableError
from .clock import FrameClock
from .display import RecordingDisplay, TranslationDisplay
from .loop import ClassificationLoop, LoopConfig, LoopState
from .recorder import ExampleRecorder

logger = logging.getLogger(__name__)


class CommandRejected(RuntimeError):
    """A command arrived while its preconditions were not met."""


class RecordingFailed(RuntimeError):
    """The classifier could not store a training example; the session stays usable."""


class TranslatorSession:
    """Command surface a presentation layer drives."""

    def __init__(
        self,
        source: FrameSource,
        classifier: ClassifierService,
        vocabulary: GestureVocabulary,
        display: TranslationDisplay | None = None,
        clock: FrameClock | None = None,
        loop_config: LoopConfig | None = None,
    ) -> None:
        self._source = source
        self._classifier = classifier
        self._vocabulary = vocabulary
        self._display: TranslationDisplay = display or RecordingDisplay()
        self._loop = ClassificationLoop(
            source,
            classifier,
            vocabulary,
            display=self._display,
            clock=clock,
            config=loop_config,
        )
        self._recorder = ExampleRecorder(source, classifier, vocabulary, self._display)
        self.camera_error: str | None = None
        self.classifier_error: str | None = None

    @property
    def loop(self) -> ClassificationLoop:
        return self._loop

    @property
    def vocabulary(self) -> GestureVocabulary:
        return self._vocabulary

    async def initialize(self) -> None:
        """Attach the webcam and load the classifier.

        Failures are logged once and leave the affected feature unavailable.
        """
        if self._source.attach():
            self.camera_error = None
        else:
            self.camera_error = getattr(self._source, "error", None) or "webcam unavailable"
            logger.error("Webcam unavailable for this session: %s", self.camera_error)

        try:
            await self._classifier.load()
        except Exception as exc:
            self.classifier_error = str(exc) or exc.__class__.__name__
            logger.error("Error loading KNN model: %s", exc)
        else:
            self.classifier_error = None
            logger.info("KNN model loaded successfully")

    async def start_recording(self, class_index: int) -> int:
        try:
            return await self._recorder.record(class_index)
        except ClassifierNotReadyError as exc:
            raise CommandRejected(str(exc)) from exc
        except FrameUnavailableError as exc:
            raise CommandRejected(str(exc)) from exc
        except ClassifierError as exc:
            logger.warning("Recording example failed: %s", exc)
            raise RecordingFailed(str(exc)) from exc

    def toggle_classification(self) -> LoopState:
        if self._loop.state is LoopState.IDLE:
            self._check_can_predict()
        return self._loop.toggle()

    def stop_classification(self) -> bool:
        return self._loop.stop()

    def snapshot(self) -> dict[str, Any]:
        stats = self._loop.stats
        return {
            "state": self._loop.state.value,
            "current_word": getattr(self._display, "current_word", None),
            "previous_prediction": self._loop.previous_prediction,
            "words": self._vocabulary.labels,
            "example_counts": self._example_counts(),
            "camera_available": self._source.available,
            "classifier_ready": self._classifier.ready,
            "camera_error": self.camera_error,
            "classifier_error": self.classifier_error,
            "stats": {
                "iterations": stats.iterations,
                "emissions": stats.emissions,
                "skipped_frames": stats.skipped_frames,
                "failures": stats.failures,
            },
        }

    async def close(self) -> None:
        self._loop.stop()
        await self._loop.wait_stopped()
        self._source.detach()

    def _check_can_predict(self) -> None:
        if not self._classifier.ready:
            logger.error("KNN model is not loaded.")
            raise CommandRejected("KNN model is not loaded")
        if not self._source.available:
            logger.error("Webcam stream not initialized.")
            raise CommandRejected("Webcam stream not initialized")

    def _example_counts(self) -> dict[str, int]:
        if not self._classifier.ready:
            return {gesture.label: 0 for gesture in self._vocabulary}
        return {
            gesture.label: self._classifier.example_count(gesture.index)
            for gesture in self._vocabulary
        }


__all__ = ["CommandRejected", "RecordingFailed", "TranslatorSession"]
