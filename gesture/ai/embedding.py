from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image

try:
    _RESAMPLE = Image.Resampling.BILINEAR  # type: ignore[attr-defined]
except AttributeError:  # pragma: no cover - Pillow < 9 fallback
    _RESAMPLE = Image.BILINEAR  # type: ignore[attr-defined]

from .types import IMAGE_SIZE

if TYPE_CHECKING:  # pragma: no cover - typing only
    from webcam.capture import Frame


@dataclass
class ThumbnailEmbedder:
    """Cheap appearance embedding: a normalised grayscale thumbnail."""

    size: int = IMAGE_SIZE
    thumbnail: int = 24

    def embed(self, frame: "Frame") -> np.ndarray:
        image = Image.fromarray(np.ascontiguousarray(frame.rgb()).astype(np.uint8))
        image = _center_square(image).resize((self.size, self.size), _RESAMPLE)
        small = image.convert("L").resize((self.thumbnail, self.thumbnail), _RESAMPLE)
        vector = np.asarray(small, dtype=np.float32).reshape(-1) / 255.0
        vector -= vector.mean()
        norm = float(np.linalg.norm(vector))
        if norm == 0.0:
            return vector
        return vector / norm


def _center_square(image: Image.Image) -> Image.Image:
    width, height = image.size
    side = min(width, height)
    left = (width - side) // 2
    top = (height - side) // 2
    return image.crop((left, top, left + side, top + side))


__all__ = ["ThumbnailEmbedder"]
