from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from gesture.ai.types import (
    CONFIDENCE_THRESHOLD,
    ClassifierService,
    GestureClass,
    GestureVocabulary,
    PredictionResult,
)

from .capture import FrameSource
from .clock import FrameClock, RefreshClock
from .display import LoggingDisplay, TranslationDisplay

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    IDLE = "idle"
    PREDICTING = "predicting"


@dataclass
class PredictionSession:
    """State shared across iterations of one controller.

    ``previous_prediction`` is ``None`` until the first emission and only
    changes when a word is emitted. ``generation`` identifies the current
    predicting session so a stale task can tell it has been superseded.
    """

    state: LoopState = LoopState.IDLE
    previous_prediction: int | None = None
    generation: int = 0

    def begin(self, *, reset_previous: bool = False) -> int:
        self.state = LoopState.PREDICTING
        self.generation += 1
        if reset_previous:
            self.previous_prediction = None
        return self.generation

    def end(self) -> bool:
        if self.state is LoopState.IDLE:
            return False
        self.state = LoopState.IDLE
        return True

    def is_current(self, generation: int) -> bool:
        return self.state is LoopState.PREDICTING and generation == self.generation

    def should_emit(self, result: PredictionResult, threshold: float) -> bool:
        return result.confidence > threshold and result.class_index != self.previous_prediction

    def record_emission(self, class_index: int) -> None:
        self.previous_prediction = class_index


@dataclass
class LoopStats:
    iterations: int = 0
    emissions: int = 0
    skipped_frames: int = 0
    failures: int = 0


@dataclass
class LoopConfig:
    confidence_threshold: float = CONFIDENCE_THRESHOLD
    reset_previous_on_start: bool = False


class ClassificationLoop:
    """Continuously classify frames while predicting; announce word changes."""

    def __init__(
        self,
        source: FrameSource,
        classifier: ClassifierService,
        vocabulary: GestureVocabulary,
        display: TranslationDisplay | None = None,
        clock: FrameClock | None = None,
        config: LoopConfig | None = None,
    ) -> None:
        self._source = source
        self._classifier = classifier
        self._vocabulary = vocabulary
        self._display: TranslationDisplay = display or LoggingDisplay()
        self._clock: FrameClock = clock or RefreshClock()
        self._config = config or LoopConfig()
        self._session = PredictionSession()
        self._stats = LoopStats()
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> LoopState:
        return self._session.state

    @property
    def previous_prediction(self) -> int | None:
        return self._session.previous_prediction

    @property
    def stats(self) -> LoopStats:
        return self._stats

    @property
    def config(self) -> LoopConfig:
        return self._config

    def start(self) -> bool:
        """Enter the predicting state and schedule the loop task.

        Must be called from inside a running event loop. Returns ``False`` if
        the controller was already predicting.
        """
        if self._session.state is LoopState.PREDICTING:
            return False
        generation = self._session.begin(
            reset_previous=self._config.reset_previous_on_start
        )
        previous = self._task
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(
            self._run(generation, previous), name=f"classification-loop-{generation}"
        )
        logger.info(
            "Classification started session=%d threshold=%.3f",
            generation,
            self._config.confidence_threshold,
        )
        return True

    def stop(self) -> bool:
        """Return to idle; an in-flight pass finishes and then exits."""
        if not self._session.end():
            return False
        logger.info("Classification stopped session=%d", self._session.generation)
        return True

    def toggle(self) -> LoopState:
        if self._session.state is LoopState.PREDICTING:
            self.stop()
        else:
            self.start()
        return self._session.state

    async def wait_stopped(self) -> None:
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait([task])

    async def run_iteration(self) -> GestureClass | None:
        """Run one acquire/classify/emit/release pass.

        Never raises; returns the emitted gesture, if any.
        """
        self._stats.iterations += 1
        try:
            frame = self._source.current_frame()
        except Exception as exc:
            self._stats.skipped_frames += 1
            logger.warning("Frame source failed; skipping pass: %s", exc)
            return None
        if frame is None:
            self._stats.skipped_frames += 1
            logger.debug("No frame available; skipping classification pass")
            return None

        emitted: GestureClass | None = None
        try:
            result = await self._classifier.predict(frame)
            emitted = self._apply_emission(result)
        except Exception as exc:
            self._stats.failures += 1
            logger.warning("Prediction failed: %s", exc)
        finally:
            frame.release()
        return emitted

    def _apply_emission(self, result: PredictionResult) -> GestureClass | None:
        if not self._session.should_emit(result, self._config.confidence_threshold):
            return None
        if result.class_index not in self._vocabulary:
            logger.warning(
                "Classifier returned unknown class index %d; ignoring", result.class_index
            )
            return None
        gesture = self._vocabulary.get(result.class_index)
        self._display.show_word(gesture)
        self._session.record_emission(gesture.index)
        self._stats.emissions += 1
        logger.info(
            "Predicted word: %s confidence=%.3f", gesture.label, result.confidence
        )
        return gesture

    async def _run(self, generation: int, previous: asyncio.Task[None] | None) -> None:
        if previous is not None and not previous.done():
            # the superseded session still owns its frame until its pass completes
            await asyncio.wait([previous])
        while self._session.is_current(generation):
            await self.run_iteration()
            if not self._session.is_current(generation):
                break
            await self._clock.next_frame()
        logger.debug("Classification loop exited session=%d", generation)


__all__ = [
    "ClassificationLoop",
    "LoopConfig",
    "LoopState",
    "LoopStats",
    "PredictionSession",
]
