from __future__ import annotations

import logging

from gesture.ai.types import ClassifierNotReadyError, ClassifierService, GestureVocabulary

from .capture import FrameSource, FrameUnavailableError
from .display import LoggingDisplay, TranslationDisplay

logger = logging.getLogger(__name__)


class ExampleRecorder:
    """Captures one training frame per request and hands it to the classifier."""

    def __init__(
        self,
        source: FrameSource,
        classifier: ClassifierService,
        vocabulary: GestureVocabulary,
        display: TranslationDisplay | None = None,
    ) -> None:
        self._source = source
        self._classifier = classifier
        self._vocabulary = vocabulary
        self._display: TranslationDisplay = display or LoggingDisplay()

    async def record(self, class_index: int) -> int:
        gesture = self._vocabulary.get(class_index)
        if not self._classifier.ready:
            raise ClassifierNotReadyError("KNN model is not loaded")

        frame = self._source.current_frame()
        if frame is None:
            raise FrameUnavailableError("Webcam stream not initialized")
        try:
            await self._classifier.add_example(frame, gesture.index)
        finally:
            frame.release()

        count = self._classifier.example_count(gesture.index)
        self._display.show_example_count(gesture, count)
        logger.info("Added example for %s. Total examples: %d", gesture.label, count)
        return count


__all__ = ["ExampleRecorder"]
