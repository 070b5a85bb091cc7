from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Protocol, Sequence

if TYPE_CHECKING:  # pragma: no cover - typing only
    from webcam.capture import Frame

# Predictions must be strictly above this score to be announced.
CONFIDENCE_THRESHOLD: float = 0.98
IMAGE_SIZE: int = 227
TOP_K: int = 10
DEFAULT_WORDS: tuple[str, ...] = ("start", "stop")


class ClassifierError(RuntimeError):
    """Raised when the classifier service cannot fulfil a request."""


class ClassifierNotReadyError(ClassifierError):
    """Raised when the classifier is used before ``load()`` completed."""


@dataclass(frozen=True)
class GestureClass:
    index: int
    label: str


class GestureVocabulary:
    """Closed, ordered set of gesture classes known at startup."""

    def __init__(self, words: Sequence[str] = DEFAULT_WORDS) -> None:
        cleaned = [str(word).strip() for word in words]
        if not cleaned or any(not word for word in cleaned):
            raise ValueError("gesture vocabulary needs at least one non-empty word")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("gesture words must be unique")
        self._classes = tuple(
            GestureClass(index=idx, label=word) for idx, word in enumerate(cleaned)
        )

    def __len__(self) -> int:
        return len(self._classes)

    def __iter__(self) -> Iterator[GestureClass]:
        return iter(self._classes)

    def __contains__(self, index: object) -> bool:
        return isinstance(index, int) and 0 <= index < len(self._classes)

    def get(self, index: int) -> GestureClass:
        if index not in self:
            raise ValueError(f"unknown gesture class index {index!r}")
        return self._classes[index]

    @property
    def labels(self) -> list[str]:
        return [gesture.label for gesture in self._classes]


@dataclass(frozen=True)
class PredictionResult:
    class_index: int
    confidences: tuple[float, ...]

    @property
    def confidence(self) -> float:
        if 0 <= self.class_index < len(self.confidences):
            return float(self.confidences[self.class_index])
        return 0.0


class ClassifierService(Protocol):
    @property
    def ready(self) -> bool: ...

    async def load(self) -> None: ...

    async def add_example(self, frame: "Frame", class_index: int) -> None: ...

    def example_count(self, class_index: int) -> int: ...

    async def predict(self, frame: "Frame") -> PredictionResult: ...


__all__ = [
    "CONFIDENCE_THRESHOLD",
    "DEFAULT_WORDS",
    "IMAGE_SIZE",
    "TOP_K",
    "ClassifierError",
    "ClassifierNotReadyError",
    "ClassifierService",
    "GestureClass",
    "GestureVocabulary",
    "PredictionResult",
]
