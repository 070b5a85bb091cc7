from __future__ import annotations

import logging
import pathlib
import time
from dataclasses import dataclass, field
from typing import Protocol

import numpy as np

logger = logging.getLogger(__name__)


class FrameUnavailableError(RuntimeError):
    """Raised when a command needs a frame but the source has none."""


class FrameReleasedError(RuntimeError):
    """Raised when a released frame is read again."""


@dataclass
class Frame:
    """Single image sample owned by whoever acquired it.

    The owner must call :meth:`release` exactly once, on every exit path.
    """

    pixels: np.ndarray | None
    color_order: str = "bgr"
    captured_at: float = field(default_factory=time.monotonic)

    @property
    def released(self) -> bool:
        return self.pixels is None

    def rgb(self) -> np.ndarray:
        if self.pixels is None:
            raise FrameReleasedError("frame was already released")
        if self.color_order == "bgr" and self.pixels.ndim == 3:
            return self.pixels[..., ::-1]
        return self.pixels

    def release(self) -> None:
        self.pixels = None


class FrameSource(Protocol):
    @property
    def available(self) -> bool: ...

    def attach(self) -> bool: ...

    def detach(self) -> None: ...

    def current_frame(self) -> Frame | None: ...


class StubFrameSource:
    """Frame source backed by a still image or a flat placeholder."""

    def __init__(
        self,
        sample_path: pathlib.Path | None = None,
        *,
        size: int = 227,
        attached: bool = True,
    ) -> None:
        self._sample_path = sample_path
        self._size = size
        self._attached = attached
        self.error: str | None = None

    @property
    def available(self) -> bool:
        return self._attached

    def attach(self) -> bool:
        self._attached = True
        return True

    def detach(self) -> None:
        self._attached = False

    def current_frame(self) -> Frame | None:
        if not self._attached:
            return None
        if self._sample_path and self._sample_path.exists():
            from PIL import Image

            with Image.open(self._sample_path) as image:
                pixels = np.asarray(image.convert("RGB"))
            return Frame(pixels=pixels.copy(), color_order="rgb")
        pixels = np.full((self._size, self._size, 3), 127, dtype=np.uint8)
        return Frame(pixels=pixels, color_order="rgb")


class OpenCVFrameSource:
    """Live webcam frames from an OpenCV-compatible source (USB/RTSP)."""

    _BACKEND_ALIASES = {
        "any": "CAP_ANY",
        "auto": "CAP_ANY",
        "dshow": "CAP_DSHOW",
        "directshow": "CAP_DSHOW",
        "msmf": "CAP_MSMF",
        "mediafoundation": "CAP_MSMF",
        "v4l2": "CAP_V4L2",
        "avfoundation": "CAP_AVFOUNDATION",
    }

    def __init__(
        self,
        source: int | str = 0,
        *,
        resolution: tuple[int, int] | None = None,
        backend: str | int | None = None,
        warmup_frames: int = 2,
        mirror: bool = False,
    ) -> None:
        self._source = source
        self._resolution = resolution
        self._backend = backend
        self._warmup_frames = warmup_frames
        self._mirror = mirror
        self._cv2 = None
        self._cap = None
        self.error: str | None = None

    @property
    def available(self) -> bool:
        return self._cap is not None

    def attach(self) -> bool:
        """Open the camera; access failures are recorded, never raised."""
        if self._cap is not None:
            return True
        try:
            import cv2  # type: ignore
        except ImportError:  # pragma: no cover - depends on optional dep
            self.error = "opencv-python is required for OpenCVFrameSource"
            logger.error("Error accessing webcam: %s", self.error)
            return False

        try:
            cap = cv2.VideoCapture(self._source, self._resolve_backend(self._backend, cv2))
        except ValueError as exc:
            self.error = str(exc)
            logger.error("Error accessing webcam: %s", exc)
            return False
        if not cap.isOpened():
            cap.release()
            self.error = f"Unable to open camera source {self._source!r}"
            logger.error("Error accessing webcam: %s", self.error)
            return False

        if self._resolution:
            width, height = self._resolution
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, float(width))
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, float(height))
        for _ in range(max(0, self._warmup_frames)):
            ok, _ = cap.read()
            if not ok:
                break
        self._cv2 = cv2
        self._cap = cap
        self.error = None
        logger.info("Webcam attached source=%r", self._source)
        return True

    def _resolve_backend(self, backend: str | int | None, cv2_module) -> int:
        if backend is None:
            return cv2_module.CAP_ANY
        if isinstance(backend, int):
            return backend
        key = backend.strip().lower()
        attr_name = self._BACKEND_ALIASES.get(key)
        if attr_name is None:
            raise ValueError(f"Unknown OpenCV backend alias: {backend!r}")
        return getattr(cv2_module, attr_name, cv2_module.CAP_ANY)

    def current_frame(self) -> Frame | None:
        if self._cap is None:
            return None
        ok, pixels = self._cap.read()
        if not ok or pixels is None:
            logger.warning("Failed to read frame from camera source %r", self._source)
            return None
        if self._mirror:
            pixels = self._cv2.flip(pixels, 1)
        return Frame(pixels=pixels, color_order="bgr")

    def detach(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Webcam detached source=%r", self._source)

    def __del__(self) -> None:  # pragma: no cover - destructor best effort
        try:
            self.detach()
        except Exception:
            pass


__all__ = [
    "Frame",
    "FrameReleasedError",
    "FrameSource",
    "FrameUnavailableError",
    "OpenCVFrameSource",
    "StubFrameSource",
]
