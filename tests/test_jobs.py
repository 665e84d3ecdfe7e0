"""Tests for routing, the record store, submission, status and the orchestrator.

The orchestrator runs end to end against a scripted vision backend; the
potrace stage is replaced with a stub that writes a canned raw SVG.
"""

from __future__ import annotations

import tempfile
import unittest
import xml.etree.ElementTree as ET
from pathlib import Path
from unittest import mock

from flatsketch.errors import ImageProcessingError, TransientInferenceError
from flatsketch.jobs import (
    FileJobStore, JobStatus, JobStep, PipelineStateError, ProcessingMeta, ProcessingPath,
    Project, ProjectStatus, detect_processing_path, next_sketch_step, project_status,
    run_next_job, run_until_idle, submit_project, vision_mime_type,
)
from flatsketch.render import GROUP_IDS, top_level_group_ids
from flatsketch.render.svg import find_group
from flatsketch.storage import NORMALIZED_VECTOR, PROCESSING_META, VISION_SIDECAR, ProjectStorage
from tests.garment_fixtures import (
    POTRACE_SVG, FakeVisionBackend, hoodie_reply, make_processor, png_bytes, sketch_png_bytes,
)


class _TempDirCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()


def _fake_vectorize(input_path, output_path, params=None, *, potrace_bin="potrace"):
    out = Path(output_path)
    out.write_text(POTRACE_SVG, encoding="utf-8")
    return out


# ── Routing ────────────────────────────────────────────────────────

class TestRouting(_TempDirCase):

    def _file(self, size: int) -> Path:
        p = self.dir / f"upload_{size}"
        p.write_bytes(b"\x00" * size)
        return p

    def test_svg_is_sketch_regardless_of_size(self):
        self.assertIs(detect_processing_path(self._file(500_000), "image/svg+xml"), ProcessingPath.SKETCH)

    def test_photo_mime_types(self):
        small = self._file(10)
        for mime in ("image/jpeg", "image/heic", "image/heif", "IMAGE/JPEG"):
            with self.subTest(mime=mime):
                self.assertIs(detect_processing_path(small, mime), ProcessingPath.PHOTO)

    def test_size_heuristic(self):
        self.assertIs(detect_processing_path(self._file(150_000), "image/png"), ProcessingPath.PHOTO)
        self.assertIs(detect_processing_path(self._file(50_000), "image/png"), ProcessingPath.SKETCH)
        self.assertIs(detect_processing_path(self._file(100_000), None), ProcessingPath.SKETCH)
        self.assertIs(detect_processing_path(self._file(100_001), None), ProcessingPath.PHOTO)

    def test_missing_file_defaults_to_sketch(self):
        self.assertIs(detect_processing_path(self.dir / "gone.png", "image/png"), ProcessingPath.SKETCH)


# ── Models & store ─────────────────────────────────────────────────

class TestModels(unittest.TestCase):

    def test_step_order(self):
        self.assertIs(next_sketch_step(JobStep.PREPROCESS), JobStep.LINEART)
        self.assertIs(next_sketch_step(JobStep.VECTORIZE), JobStep.NORMALIZE)
        self.assertIsNone(next_sketch_step(JobStep.NORMALIZE))

    def test_meta_defaults(self):
        meta = ProcessingMeta.from_dict(None)
        self.assertEqual((meta.processing_path, meta.vision_confidence, meta.template_mode),
                         (ProcessingPath.SKETCH, 1.0, False))
        self.assertIs(ProcessingMeta.from_dict({"processing_path": "laser"}).processing_path,
                      ProcessingPath.SKETCH)

    def test_meta_to_dict_plain(self):
        d = ProcessingMeta(ProcessingPath.PHOTO, 0.4, True).to_dict()
        self.assertEqual(d, {"processing_path": "photo", "vision_confidence": 0.4, "template_mode": True})


class TestFileJobStore(_TempDirCase):

    def setUp(self):
        super().setUp()
        self.store = FileJobStore(self.dir)
        self.store.create_project(Project(id="p1", title="t", category="hoodie"))

    def test_queue_is_fifo(self):
        first = self.store.create_job("p1", JobStep.PREPROCESS)
        second = self.store.create_job("p1", JobStep.LINEART)
        self.assertEqual(self.store.next_queued_job().id, first.id)
        self.store.update_job(first.id, status=JobStatus.DONE)
        self.assertEqual(self.store.next_queued_job().id, second.id)
        self.store.update_job(second.id, status="running")
        self.assertIsNone(self.store.next_queued_job())

    def test_jobs_newest_first(self):
        a = self.store.create_job("p1", JobStep.PREPROCESS)
        b = self.store.create_job("p1", JobStep.LINEART)
        self.assertEqual([j.id for j in self.store.jobs_for_project("p1")], [b.id, a.id])

    def test_update_job(self):
        job = self.store.create_job("p1", JobStep.PREPROCESS)
        updated = self.store.update_job(job.id, progress=40, error_message="x")
        self.assertEqual(self.store.get_job(job.id).progress, 40)
        self.assertEqual(updated.error_message, "x")
        with self.assertRaises(AttributeError):
            self.store.update_job(job.id, colour="red")
        with self.assertRaises(KeyError):
            self.store.update_job("missing", progress=1)

    def test_project_status(self):
        project = self.store.update_project_status("p1", ProjectStatus.ERROR, "boom")
        self.assertEqual(self.store.get_project("p1").error_message, "boom")
        self.assertIs(project.status, ProjectStatus.ERROR)
        with self.assertRaises(KeyError):
            self.store.update_project_status("nope", ProjectStatus.READY)

    def test_assets(self):
        self.store.create_asset("p1", "original", "original")
        self.store.create_asset("p1", "svg", "normalized.svg")
        self.assertEqual(self.store.get_asset("p1", "svg").path, "normalized.svg")
        self.assertIsNone(self.store.get_asset("p1", "lineart"))
        self.assertEqual(len(self.store.assets_for_project("p1")), 2)


# ── Submission & status ────────────────────────────────────────────

class TestSubmitAndStatus(_TempDirCase):

    def setUp(self):
        super().setUp()
        self.store = FileJobStore(self.dir / "_records")
        self.storage = ProjectStorage(self.dir)

    def test_submit_queues_preprocess(self):
        project = submit_project(self.store, self.storage, b"img", category=" Hoodie ")
        self.assertEqual(project.category, "hoodie")
        self.assertEqual(project.title, "Untitled hoodie")
        self.assertIs(project.status, ProjectStatus.PROCESSING)
        self.assertEqual(self.storage.read_bytes(project.id, "original"), b"img")
        job = self.store.next_queued_job()
        self.assertEqual((job.project_id, job.step, job.progress), (project.id, JobStep.PREPROCESS, 0))

    def test_submit_rejects_bad_input(self):
        with self.assertRaises(ValueError):
            submit_project(self.store, self.storage, b"img", category="jacket")
        with self.assertRaises(ValueError):
            submit_project(self.store, self.storage, b"", category="hoodie")
        self.assertEqual(self.store.list_projects(), [])

    def test_status_unknown_project(self):
        self.assertIsNone(project_status(self.store, self.storage, "nope"))

    def test_status_defaults_before_processing(self):
        project = submit_project(self.store, self.storage, b"img", category="sweatpants")
        status = project_status(self.store, self.storage, project.id)
        self.assertEqual(status["job"]["status"], "queued")
        self.assertEqual(status["hasAssets"], {"original": True, "svg": False})
        self.assertEqual(status["processingPath"], "sketch")
        self.assertEqual(status["visionConfidence"], 1.0)
        self.assertFalse(status["templateMode"])

    def test_status_survives_corrupt_meta(self):
        project = submit_project(self.store, self.storage, b"img", category="hoodie")
        self.storage.write_text(project.id, PROCESSING_META, "{not json")
        status = project_status(self.store, self.storage, project.id)
        self.assertEqual(status["processingPath"], "sketch")

    def test_status_prefers_unfinished_job(self):
        project = submit_project(self.store, self.storage, b"img", category="hoodie")
        first = self.store.next_queued_job()
        self.store.update_job(first.id, status=JobStatus.DONE, progress=25)
        queued = self.store.create_job(project.id, JobStep.LINEART, progress=25)
        self.store.update_job(queued.id, status=JobStatus.RUNNING)
        status = project_status(self.store, self.storage, project.id)
        self.assertEqual(status["job"]["id"], queued.id)


# ── Orchestrator: photo path ───────────────────────────────────────

class TestPhotoPath(_TempDirCase):

    PHOTO = b"\x00" * 150_000        # unknown type, above the size threshold

    def _run(self, backend, image=PHOTO, category="hoodie", mime=None):
        processor = make_processor(self.dir, backend)
        project = submit_project(processor.store, processor.storage, image,
                                 category=category, mime_type=mime)
        job = run_next_job(processor)
        return processor, project, job

    def test_confident_hoodie(self):
        backend = FakeVisionBackend(hoodie_reply(0.82, kangaroo=True))
        processor, project, job = self._run(backend)

        self.assertIs(job.status, JobStatus.DONE)
        self.assertEqual(job.progress, 100)
        self.assertIs(processor.store.get_project(project.id).status, ProjectStatus.READY)
        self.assertIsNone(processor.store.next_queued_job())

        status = project_status(processor.store, processor.storage, project.id)
        self.assertEqual(status["processingPath"], "photo")
        self.assertAlmostEqual(status["visionConfidence"], 0.82)
        self.assertFalse(status["templateMode"])
        self.assertTrue(status["hasAssets"]["svg"])

        svg = processor.storage.read_text(project.id, NORMALIZED_VECTOR)
        self.assertEqual(top_level_group_ids(svg), list(GROUP_IDS))
        classes = [el.get("class") for el in find_group(ET.fromstring(svg), "Details")]
        self.assertIn("pocket", classes)

        sidecar = processor.storage.read_json(project.id, VISION_SIDECAR)
        self.assertEqual(sidecar["category"], "hoodie")
        self.assertEqual(backend.calls[0]["images"][0].mime_type, "image/jpeg")

    def test_no_pocket_when_flag_off(self):
        processor, project, _ = self._run(FakeVisionBackend(hoodie_reply(0.9, kangaroo=False)))
        svg = processor.storage.read_text(project.id, NORMALIZED_VECTOR)
        classes = [el.get("class") for el in find_group(ET.fromstring(svg), "Details")]
        self.assertNotIn("pocket", classes)

    def test_low_confidence_flags_template_mode(self):
        processor, project, _ = self._run(FakeVisionBackend(hoodie_reply(0.59)))
        meta = processor.storage.read_json(project.id, PROCESSING_META)
        self.assertTrue(meta["template_mode"])

    def test_jpeg_mime_routes_small_file_to_photo(self):
        backend = FakeVisionBackend(hoodie_reply())
        processor, project, job = self._run(backend, image=b"\xff\xd8tiny", mime="image/jpeg")
        self.assertEqual(processor.storage.read_json(project.id, PROCESSING_META)["processing_path"], "photo")
        self.assertEqual(len(backend.calls), 1)

    def test_malformed_output_falls_back_to_defaults(self):
        backend = FakeVisionBackend('{"category": "jacket", "params": {}}')
        processor, project, job = self._run(backend)
        self.assertIs(job.status, JobStatus.DONE)
        self.assertEqual(len(backend.calls), 1)
        meta = processor.storage.read_json(project.id, PROCESSING_META)
        self.assertEqual(meta, {"processing_path": "photo", "vision_confidence": 0.0, "template_mode": True})
        self.assertFalse(processor.storage.exists(project.id, VISION_SIDECAR))
        self.assertTrue(processor.storage.exists(project.id, NORMALIZED_VECTOR))

    def test_transient_failures_fall_back_after_three_attempts(self):
        backend = FakeVisionBackend(TransientInferenceError("HTTP 503"))
        processor, project, job = self._run(backend)
        self.assertEqual(len(backend.calls), 3)
        self.assertIs(job.status, JobStatus.DONE)
        self.assertIs(processor.store.get_project(project.id).status, ProjectStatus.READY)

    def test_untagged_error_fails_job(self):
        processor = make_processor(self.dir, FakeVisionBackend(RuntimeError("ANTHROPIC_API_KEY must be set.")))
        project = submit_project(processor.store, processor.storage, self.PHOTO, category="hoodie")
        with self.assertRaises(RuntimeError):
            run_next_job(processor)
        job = processor.store.jobs_for_project(project.id)[0]
        self.assertIs(job.status, JobStatus.ERROR)
        self.assertEqual(job.error_message, "ANTHROPIC_API_KEY must be set.")
        self.assertIs(processor.store.get_project(project.id).status, ProjectStatus.ERROR)

    def test_later_step_on_photo_project_rejected(self):
        processor, project, _ = self._run(FakeVisionBackend(hoodie_reply()))
        stray = processor.store.create_job(project.id, JobStep.LINEART)
        with self.assertRaises(PipelineStateError):
            processor.process(stray)
        self.assertIs(processor.store.get_job(stray.id).status, JobStatus.ERROR)


# ── Orchestrator: sketch path ──────────────────────────────────────

class TestSketchPath(_TempDirCase):

    def setUp(self):
        super().setUp()
        self.backend = FakeVisionBackend(hoodie_reply())
        self.processor = make_processor(self.dir, self.backend)

    def _submit(self):
        return submit_project(self.processor.store, self.processor.storage, sketch_png_bytes(),
                              category="sweatshirt", mime_type="image/png")

    def test_each_step_queues_the_next(self):
        project = self._submit()
        first = run_next_job(self.processor)
        self.assertEqual((first.step, first.status, first.progress), (JobStep.PREPROCESS, JobStatus.DONE, 25))
        queued = self.processor.store.next_queued_job()
        self.assertEqual((queued.step, queued.progress), (JobStep.LINEART, 25))
        self.assertIs(self.processor.store.get_project(project.id).status, ProjectStatus.PROCESSING)

    def test_full_chain(self):
        project = self._submit()
        with mock.patch("flatsketch.jobs.processor.vectorize_to_svg", side_effect=_fake_vectorize):
            jobs = run_until_idle(self.processor)

        self.assertEqual([j.step for j in jobs],
                         [JobStep.PREPROCESS, JobStep.LINEART, JobStep.VECTORIZE, JobStep.NORMALIZE])
        self.assertTrue(all(j.status is JobStatus.DONE for j in jobs))
        self.assertEqual([j.progress for j in jobs], [25, 50, 75, 100])
        self.assertIs(self.processor.store.get_project(project.id).status, ProjectStatus.READY)
        self.assertEqual(self.backend.calls, [])

        asset_types = [a.type for a in self.processor.store.assets_for_project(project.id)]
        for expected in ("original", "preprocessed", "lineart", "raw_svg", "svg"):
            self.assertIn(expected, asset_types)

        status = project_status(self.processor.store, self.processor.storage, project.id)
        self.assertEqual((status["processingPath"], status["visionConfidence"], status["templateMode"]),
                         ("sketch", 1.0, False))
        svg = self.processor.storage.read_text(project.id, NORMALIZED_VECTOR)
        self.assertEqual(top_level_group_ids(svg), list(GROUP_IDS))

    def test_stage_failure_persists_error(self):
        project = self._submit()
        failure = ImageProcessingError("vectorize", "potrace produced no paths")
        with mock.patch("flatsketch.jobs.processor.vectorize_to_svg", side_effect=failure):
            jobs = run_until_idle(self.processor)

        self.assertEqual(len(jobs), 3)
        failed = jobs[-1]
        self.assertIs(failed.status, JobStatus.ERROR)
        self.assertEqual(failed.error_message, "vectorize: potrace produced no paths")
        project = self.processor.store.get_project(project.id)
        self.assertIs(project.status, ProjectStatus.ERROR)
        self.assertEqual(project.error_message, "vectorize: potrace produced no paths")
        self.assertIsNone(self.processor.store.next_queued_job())
        self.assertFalse(self.processor.storage.exists(project.id, NORMALIZED_VECTOR))

    def test_stop_on_error(self):
        self._submit()
        failure = ImageProcessingError("vectorize", "potrace not found")
        with mock.patch("flatsketch.jobs.processor.vectorize_to_svg", side_effect=failure):
            with self.assertRaises(ImageProcessingError):
                run_until_idle(self.processor, stop_on_error=True)

    def test_step_without_metadata_rejected(self):
        store = self.processor.store
        store.create_project(Project(id="bare", title="", category="hoodie"))
        job = store.create_job("bare", JobStep.LINEART)
        with self.assertRaises(PipelineStateError):
            self.processor.process(job)
        self.assertIs(store.get_job(job.id).status, JobStatus.ERROR)

    def test_empty_queue(self):
        self.assertIsNone(run_next_job(self.processor))
        self.assertEqual(run_until_idle(self.processor), [])


# ── Orchestrator: job lifecycle ────────────────────────────────────

class TestJobLifecycle(_TempDirCase):

    def setUp(self):
        super().setUp()
        self.processor = make_processor(self.dir, FakeVisionBackend(hoodie_reply()))
        self.store = self.processor.store

    def test_job_for_unknown_project_fails(self):
        orphan = self.store.create_job("ghost", JobStep.PREPROCESS)
        with self.assertRaises(KeyError):
            run_next_job(self.processor)
        job = self.store.get_job(orphan.id)
        self.assertIs(job.status, JobStatus.ERROR)
        self.assertEqual(job.error_message, "Unknown project: ghost")
        self.assertIsNone(self.store.next_queued_job())

    def test_orphan_does_not_block_the_queue(self):
        self.store.create_job("ghost", JobStep.PREPROCESS)
        project = submit_project(self.store, self.processor.storage, b"\x00" * 150_000,
                                 category="hoodie")
        jobs = run_until_idle(self.processor)
        self.assertEqual([j.status for j in jobs], [JobStatus.ERROR, JobStatus.DONE])
        self.assertIs(self.store.get_project(project.id).status, ProjectStatus.READY)

    def test_failed_job_is_not_rerun(self):
        project = submit_project(self.store, self.processor.storage, b"\x00" * 150_000,
                                 category="hoodie")
        job = self.store.jobs_for_project(project.id)[0]
        self.store.update_job(job.id, status=JobStatus.ERROR, error_message="earlier failure")
        with self.assertRaises(PipelineStateError):
            self.processor.process(job)
        job = self.store.get_job(job.id)
        self.assertIs(job.status, JobStatus.ERROR)
        self.assertEqual(job.error_message, "earlier failure")
        self.assertFalse(self.processor.storage.exists(project.id, NORMALIZED_VECTOR))

    def test_done_job_is_not_rerun(self):
        project = submit_project(self.store, self.processor.storage, b"\x00" * 150_000,
                                 category="hoodie")
        done = run_next_job(self.processor)
        with self.assertRaises(PipelineStateError):
            self.processor.process(done)
        self.assertEqual(len(self.processor.extractor.backend.calls), 1)
        self.assertIs(self.store.get_project(project.id).status, ProjectStatus.READY)

    def test_running_clears_stale_error(self):
        project = submit_project(self.store, self.processor.storage, b"\x00" * 150_000,
                                 category="hoodie")
        job = self.store.jobs_for_project(project.id)[0]
        self.store.update_job(job.id, error_message="stale")
        done = self.processor.process(job)
        self.assertIs(done.status, JobStatus.DONE)
        self.assertIsNone(done.error_message)


class TestVisionMime(unittest.TestCase):

    def test_declared_wins(self):
        self.assertEqual(vision_mime_type(b"", "image/heic"), "image/heic")

    def test_sniffed(self):
        self.assertEqual(vision_mime_type(png_bytes(), None), "image/png")
        self.assertEqual(vision_mime_type(png_bytes(), "application/octet-stream"), "image/png")

    def test_unknown_defaults_to_jpeg(self):
        self.assertEqual(vision_mime_type(b"\x00" * 32, None), "image/jpeg")


if __name__ == "__main__":
    unittest.main()
