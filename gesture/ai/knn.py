from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List

import numpy as np

from .embedding import ThumbnailEmbedder
from .types import (
    ClassifierNotReadyError,
    PredictionResult,
    TOP_K,
)

if TYPE_CHECKING:  # pragma: no cover - typing only
    from webcam.capture import Frame


logger = logging.getLogger(__name__)


@dataclass
class KNNImageClassifier:
    """In-memory k-nearest-neighbour classifier over frame embeddings.

    Confidence for a class is the share of the ``top_k`` most similar stored
    examples that belong to it.
    """

    num_classes: int
    top_k: int = TOP_K
    embedder: ThumbnailEmbedder | None = None
    _examples: Dict[int, List[np.ndarray]] = field(init=False, default_factory=dict)
    _ready: bool = field(init=False, default=False)

    def __post_init__(self) -> None:
        if self.num_classes <= 0:
            raise ValueError("num_classes must be positive")
        if self.top_k <= 0:
            raise ValueError("top_k must be positive")
        self._examples = {idx: [] for idx in range(self.num_classes)}

    @property
    def ready(self) -> bool:
        return self._ready

    async def load(self) -> None:
        if self.embedder is None:
            self.embedder = ThumbnailEmbedder()
        self._ready = True
        logger.info(
            "KNN classifier loaded classes=%d top_k=%d embedder=%s",
            self.num_classes,
            self.top_k,
            self.embedder.__class__.__name__,
        )

    async def add_example(self, frame: "Frame", class_index: int) -> None:
        embedder = self._require_ready()
        self._check_class(class_index)
        self._examples[class_index].append(embedder.embed(frame))

    def example_count(self, class_index: int) -> int:
        self._check_class(class_index)
        return len(self._examples[class_index])

    def example_counts(self) -> list[int]:
        return [len(self._examples[idx]) for idx in range(self.num_classes)]

    def clear_class(self, class_index: int) -> None:
        self._check_class(class_index)
        self._examples[class_index] = []

    async def predict(self, frame: "Frame") -> PredictionResult:
        query = self._require_ready().embed(frame)
        return self._vote(query)

    def _vote(self, query: np.ndarray) -> PredictionResult:
        vectors: list[np.ndarray] = []
        labels: list[int] = []
        for class_index, examples in self._examples.items():
            vectors.extend(examples)
            labels.extend([class_index] * len(examples))
        if not vectors:
            return PredictionResult(class_index=-1, confidences=(0.0,) * self.num_classes)

        similarities = np.stack(vectors) @ query
        k = min(self.top_k, len(vectors))
        # stable sort keeps insertion order among equal similarities
        nearest = np.argsort(-similarities, kind="stable")[:k]
        votes = np.zeros(self.num_classes, dtype=np.float64)
        for position in nearest:
            votes[labels[int(position)]] += 1.0
        confidences = tuple(float(v) for v in votes / k)
        return PredictionResult(class_index=int(np.argmax(votes)), confidences=confidences)

    def _require_ready(self) -> ThumbnailEmbedder:
        if not self._ready or self.embedder is None:
            raise ClassifierNotReadyError("KNN model is not loaded")
        return self.embedder

    def _check_class(self, class_index: int) -> None:
        if not 0 <= class_index < self.num_classes:
            raise ValueError(f"class index {class_index!r} out of range")


__all__ = ["KNNImageClassifier"]
