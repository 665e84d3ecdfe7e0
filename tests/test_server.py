"""Tests for the HTTP surface, driven through FastAPI's TestClient."""

from __future__ import annotations

import base64
import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

from flatsketch.errors import TransientInferenceError
from flatsketch.storage import ANALYSIS
from flatsketch.web import server
from tests.garment_fixtures import EXPANDED_REPLY, FakeVisionBackend, hoodie_reply, make_processor


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class _ServerCase(unittest.TestCase):

    backend_script: tuple = (hoodie_reply(0.82),)

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.backend = FakeVisionBackend(*self.backend_script)
        self.processor = make_processor(Path(self._tmp.name), self.backend)
        server.set_processor(self.processor)
        self.client = TestClient(server.app)

    def tearDown(self):
        server.set_processor(None)
        self._tmp.cleanup()


class TestProjectRoutes(_ServerCase):

    def _create(self, **overrides):
        body = {"image_base64": _b64(b"\x00" * 150_000), "category": "hoodie", "title": "Grey hoodie"}
        body.update(overrides)
        return self.client.post("/api/projects", json=body)

    def test_submit_run_status_svg(self):
        r = self._create()
        self.assertEqual(r.status_code, 200)
        project_id = r.json()["project"]["id"]
        self.assertEqual(r.json()["project"]["status"], "processing")

        r = self.client.get(f"/api/projects/{project_id}/svg")
        self.assertEqual(r.status_code, 404)

        r = self.client.post("/api/jobs/run")
        self.assertEqual(r.json()["job"]["status"], "done")

        status = self.client.get(f"/api/projects/{project_id}/status").json()
        self.assertEqual(status["project"]["status"], "ready")
        self.assertEqual(status["processingPath"], "photo")
        self.assertFalse(status["templateMode"])

        r = self.client.get(f"/api/projects/{project_id}/svg")
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.headers["content-type"].startswith("image/svg+xml"))
        self.assertIn('id="Outline"', r.text)

    def test_run_with_empty_queue(self):
        r = self.client.post("/api/jobs/run")
        self.assertEqual(r.status_code, 200)
        self.assertIsNone(r.json()["job"])

    def test_bad_submissions(self):
        self.assertEqual(self._create(category="jacket").status_code, 400)
        self.assertEqual(self._create(image_base64="***").status_code, 400)
        self.assertEqual(self._create(image_base64="").status_code, 400)

    def test_unknown_project(self):
        self.assertEqual(self.client.get("/api/projects/nope/status").status_code, 404)


class TestGarmentParamsRoute(_ServerCase):

    def _post(self, **overrides):
        body = {"image_base64": _b64(b"jpeg bytes"), "mime_type": "image/jpeg", "category": "hoodie"}
        body.update(overrides)
        return self.client.post("/api/vision/garment-params", json=body)

    def test_success(self):
        r = self._post()
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["category"], "hoodie")
        self.assertEqual(body["confidence"], 0.82)
        self.assertIn("bodyWidth", body["params"])

    def test_bad_input(self):
        self.assertEqual(self._post(category="jacket").status_code, 400)
        self.assertEqual(self._post(image_base64="%%%").status_code, 400)
        self.assertEqual(self.client.post("/api/vision/garment-params", json={}).status_code, 422)

    def test_malformed_output(self):
        self.backend.script = ['{"category": "coat", "params": {}}']
        self.assertEqual(self._post().status_code, 422)

    def test_transient_failure(self):
        self.backend.script = [TransientInferenceError("HTTP 503")]
        self.assertEqual(self._post().status_code, 503)
        self.assertEqual(len(self.backend.calls), 3)


class TestAnalyzeRoute(_ServerCase):

    backend_script = (EXPANDED_REPLY,)

    def test_analysis_stored(self):
        r = self.client.post("/api/projects", json={
            "image_base64": _b64(b"\xff\xd8photo"), "category": "hoodie", "mime_type": "image/jpeg"})
        project_id = r.json()["project"]["id"]

        r = self.client.post("/api/vision/analyze", json={
            "project_id": project_id,
            "additional_images": [{"image_base64": _b64(b"back"), "mime_type": "image/png"}],
        })
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["analysis"]["sub_type"], "zip_hoodie")
        self.assertEqual(len(self.backend.calls[0]["images"]), 2)
        stored = self.processor.storage.read_json(project_id, ANALYSIS)
        self.assertEqual(stored["fit"], "oversized")

    def test_unknown_project(self):
        r = self.client.post("/api/vision/analyze", json={"project_id": "nope"})
        self.assertEqual(r.status_code, 404)

    def test_blank_project_id(self):
        r = self.client.post("/api/vision/analyze", json={"project_id": "  "})
        self.assertEqual(r.status_code, 400)


if __name__ == "__main__":
    unittest.main()
