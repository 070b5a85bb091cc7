from __future__ import annotations

import logging
import time
from typing import Protocol

from gesture.ai.types import GestureClass

logger = logging.getLogger(__name__)


class TranslationDisplay(Protocol):
    def show_word(self, gesture: GestureClass) -> None:
        ...

    def show_example_count(self, gesture: GestureClass, count: int) -> None:
        ...


class LoggingDisplay:
    """Display sink that reports translations through the logger."""

    def __init__(self) -> None:
        self._current_word: str | None = None

    def show_word(self, gesture: GestureClass) -> None:
        self._current_word = gesture.label
        logger.info("Translation: %s", gesture.label)

    def show_example_count(self, gesture: GestureClass, count: int) -> None:
        logger.info("Examples for %s: %d", gesture.label, count)

    @property
    def current_word(self) -> str | None:
        return self._current_word


class RecordingDisplay:
    """
    In-memory display that keeps every update, used by the API and tests.
    """

    def __init__(self) -> None:
        self._words: list[tuple[float, str]] = []
        self._counts: dict[str, int] = {}

    def show_word(self, gesture: GestureClass) -> None:
        self._words.append((time.time(), gesture.label))

    def show_example_count(self, gesture: GestureClass, count: int) -> None:
        self._counts[gesture.label] = count

    @property
    def current_word(self) -> str | None:
        return self._words[-1][1] if self._words else None

    @property
    def words(self) -> list[str]:
        return [word for _, word in self._words]

    @property
    def word_log(self) -> list[tuple[float, str]]:
        return list(self._words)

    @property
    def example_counts(self) -> dict[str, int]:
        return dict(self._counts)


__all__ = ["LoggingDisplay", "RecordingDisplay", "TranslationDisplay"]
