from __future__ import annotations

from .types import (
    ClassifierError,
    ClassifierNotReadyError,
    ClassifierService,
    GestureClass,
    GestureVocabulary,
    PredictionResult,
)

__all__ = [
    "ClassifierError",
    "ClassifierNotReadyError",
    "ClassifierService",
    "GestureClass",
    "GestureVocabulary",
    "PredictionResult",
    "KNNImageClassifier",
    "RemoteClassifierClient",
    "ThumbnailEmbedder",
]


def __getattr__(name: str):
    if name == "KNNImageClassifier":
        from .knn import KNNImageClassifier

        return KNNImageClassifier
    if name == "RemoteClassifierClient":
        from .remote import RemoteClassifierClient

        return RemoteClassifierClient
    if name == "ThumbnailEmbedder":
        from .embedding import ThumbnailEmbedder

        return ThumbnailEmbedder
    raise AttributeError(f"module 'gesture.ai' has no attribute {name!r}")
