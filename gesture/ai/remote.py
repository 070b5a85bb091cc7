from __future__ import annotations

import asyncio
import base64
import io
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict

import numpy as np
import requests
from PIL import Image

from .types import ClassifierError, ClassifierNotReadyError, PredictionResult

if TYPE_CHECKING:  # pragma: no cover - typing only
    from webcam.capture import Frame


def encode_frame(frame: "Frame", quality: int = 85) -> str:
    image = Image.fromarray(np.ascontiguousarray(frame.rgb()).astype(np.uint8))
    buf = io.BytesIO()
    image.convert("RGB").save(buf, format="JPEG", quality=quality)
    return base64.b64encode(buf.getvalue()).decode("ascii")


@dataclass
class RemoteClassifierClient:
    """Delegate embedding and nearest-neighbour search to an HTTP service."""

    base_url: str
    num_classes: int
    timeout: float = 10.0
    session: requests.Session = field(default_factory=requests.Session)
    _counts: Dict[int, int] = field(init=False, default_factory=dict)
    _ready: bool = field(init=False, default=False)

    @property
    def ready(self) -> bool:
        return self._ready

    async def load(self) -> None:
        data = await asyncio.to_thread(self._request, "get", "/health", None)
        if str(data.get("status", "")).lower() != "ok":
            raise ClassifierError(f"Classifier service is not healthy: {data!r}")
        self._counts = {idx: 0 for idx in range(self.num_classes)}
        self._ready = True

    async def add_example(self, frame: "Frame", class_index: int) -> None:
        self._require_ready()
        self._check_class(class_index)
        payload = {"class_index": class_index, "image_base64": encode_frame(frame)}
        data = await asyncio.to_thread(self._request, "post", "/v1/examples", payload)
        try:
            self._counts[class_index] = int(data["example_count"])
        except (KeyError, TypeError, ValueError):
            self._counts[class_index] = self._counts.get(class_index, 0) + 1

    def example_count(self, class_index: int) -> int:
        self._check_class(class_index)
        return self._counts.get(class_index, 0)

    async def predict(self, frame: "Frame") -> PredictionResult:
        self._require_ready()
        payload = {"image_base64": encode_frame(frame)}
        data = await asyncio.to_thread(self._request, "post", "/v1/predict", payload)
        return self._parse_prediction(data)

    def _parse_prediction(self, data: Dict[str, Any]) -> PredictionResult:
        try:
            class_index = int(data["class_index"])
            raw = data["confidences"]
        except (KeyError, TypeError, ValueError) as exc:
            raise ClassifierError("Unexpected response format from classifier service") from exc
        if isinstance(raw, dict):
            raw = [raw.get(str(idx), raw.get(idx, 0.0)) for idx in range(self.num_classes)]
        confidences: list[float] = []
        for value in raw:
            try:
                score = float(value)
            except (TypeError, ValueError):
                score = 0.0
            confidences.append(max(0.0, min(1.0, score)))
        return PredictionResult(class_index=class_index, confidences=tuple(confidences))

    def _request(
        self, method: str, path: str, payload: Dict[str, Any] | None
    ) -> Dict[str, Any]:
        url = f"{self.base_url.rstrip('/')}{path}"
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as exc:  # pragma: no cover - network conditions
            raise ClassifierError("Timed out waiting for classifier service") from exc
        except requests.RequestException as exc:
            raise ClassifierError(f"Failed to call classifier service: {exc}") from exc
        except ValueError as exc:
            raise ClassifierError("Classifier service returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise ClassifierError("Unexpected response format from classifier service")
        return data

    def _require_ready(self) -> None:
        if not self._ready:
            raise ClassifierNotReadyError("Remote classifier has not been loaded")

    def _check_class(self, class_index: int) -> None:
        if not 0 <= class_index < self.num_classes:
            raise ValueError(f"class index {class_index!r} out of range")


__all__ = ["RemoteClassifierClient", "encode_frame"]
