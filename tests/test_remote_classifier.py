import asyncio
import base64
import io
import threading
import unittest
from unittest.mock import Mock

import numpy as np
import requests
from PIL import Image

from gesture.ai.remote import RemoteClassifierClient
from gesture.ai.types import ClassifierError, ClassifierNotReadyError
from webcam.capture import Frame


def _response(payload) -> Mock:
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def _frame() -> Frame:
    pixels = np.zeros((32, 32, 3), dtype=np.uint8)
    pixels[:, :16] = 200
    return Frame(pixels=pixels)


class RemoteClassifierClientTests(unittest.TestCase):
    def _client(self, session: Mock) -> RemoteClassifierClient:
        return RemoteClassifierClient(
            base_url="http://classifier.local/", num_classes=2, session=session
        )

    def test_load_checks_health_and_predict_parses_response(self) -> None:
        session = Mock()
        session.request.side_effect = [
            _response({"status": "ok"}),
            _response({"class_index": 1, "confidences": [0.01, "0.99"]}),
        ]
        client = self._client(session)

        asyncio.run(client.load())
        result = asyncio.run(client.predict(_frame()))

        self.assertTrue(client.ready)
        self.assertEqual(result.class_index, 1)
        self.assertAlmostEqual(result.confidence, 0.99)

        method, url = session.request.call_args_list[0].args
        self.assertEqual((method, url), ("get", "http://classifier.local/health"))
        method, url = session.request.call_args_list[1].args
        self.assertEqual((method, url), ("post", "http://classifier.local/v1/predict"))
        payload = session.request.call_args_list[1].kwargs["json"]
        image = Image.open(io.BytesIO(base64.b64decode(payload["image_base64"])))
        self.assertEqual(image.format, "JPEG")
        self.assertEqual(image.size, (32, 32))

    def test_add_example_tracks_counts_reported_by_service(self) -> None:
        session = Mock()
        session.request.side_effect = [
            _response({"status": "ok"}),
            _response({"example_count": 4}),
            _response({}),
        ]
        client = self._client(session)
        asyncio.run(client.load())

        asyncio.run(client.add_example(_frame(), 0))
        asyncio.run(client.add_example(_frame(), 1))

        self.assertEqual(client.example_count(0), 4)
        self.assertEqual(client.example_count(1), 1)
        payload = session.request.call_args_list[1].kwargs["json"]
        self.assertEqual(payload["class_index"], 0)

    def test_add_example_request_runs_off_the_event_loop_thread(self) -> None:
        request_threads: list[threading.Thread] = []

        def _request(*args, **kwargs):
            request_threads.append(threading.current_thread())
            return _response({"status": "ok", "example_count": 1})

        session = Mock()
        session.request.side_effect = _request
        client = self._client(session)

        async def scenario() -> threading.Thread:
            await client.load()
            await client.add_example(_frame(), 1)
            return threading.current_thread()

        loop_thread = asyncio.run(scenario())

        self.assertEqual(len(request_threads), 2)
        self.assertTrue(all(thread is not loop_thread for thread in request_threads))
        self.assertEqual(client.example_count(1), 1)

    def test_confidence_mapping_is_normalized(self) -> None:
        session = Mock()
        session.request.side_effect = [
            _response({"status": "ok"}),
            _response({"class_index": 0, "confidences": {"0": 1.7, "1": "bad"}}),
        ]
        client = self._client(session)
        asyncio.run(client.load())

        result = asyncio.run(client.predict(_frame()))

        self.assertEqual(result.confidences, (1.0, 0.0))

    def test_transport_errors_become_classifier_errors(self) -> None:
        session = Mock()
        session.request.side_effect = requests.ConnectionError("refused")
        client = self._client(session)

        with self.assertRaises(ClassifierError):
            asyncio.run(client.load())
        self.assertFalse(client.ready)
        with self.assertRaises(ClassifierNotReadyError):
            asyncio.run(client.predict(_frame()))

    def test_unhealthy_service_fails_load(self) -> None:
        session = Mock()
        session.request.return_value = _response({"status": "starting"})
        client = self._client(session)

        with self.assertRaises(ClassifierError):
            asyncio.run(client.load())

    def test_malformed_prediction_is_rejected(self) -> None:
        session = Mock()
        session.request.side_effect = [_response({"status": "ok"}), _response({"label": "start"})]
        client = self._client(session)
        asyncio.run(client.load())

        with self.assertRaises(ClassifierError):
            asyncio.run(client.predict(_frame()))


if __name__ == "__main__":
    unittest.main()
