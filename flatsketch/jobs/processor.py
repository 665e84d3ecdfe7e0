"""
Pipeline orchestrator — runs one job step and persists the outcome.

Two mutually exclusive paths, chosen on the ``preprocess`` step:

  photo   vision extraction → validation → confidence gate → render,
          all inside the single ``preprocess`` step (progress 10/50/90/100)
  sketch  preprocess → lineart → vectorize → normalize, one job per step;
          each successful non-final step queues the next one

Every step either fully succeeds (progress, asset record, job ``done``)
or fully fails (job ``error`` + project ``error``, exception re-raised).
"""

from __future__ import annotations

import io
import logging
from pathlib import Path

from PIL import Image

from flatsketch.errors import ErrorKind, FlatSketchError
from flatsketch.render import render_flat_svg
from flatsketch.storage import (
    FILES, ORIGINAL, PREPROCESSED, LINEART, RAW_VECTOR, NORMALIZED_VECTOR,
    VISION_SIDECAR, PROCESSING_META, ProjectStorage,
)
from flatsketch.vectorize import (
    PreprocessParams, LineArtParams, TraceParams, NormalizeParams,
    preprocess_image, generate_lineart, vectorize_to_svg, normalize_svg,
)
from flatsketch.vision import GarmentParamsResult, VisionExtractor, gate_confidence

from .models import (
    Job, JobStatus, JobStep, Project, ProjectStatus, ProcessingMeta, ProcessingPath,
    SKETCH_STEPS, next_sketch_step,
)
from .routing import detect_processing_path
from .store import JobStore

log = logging.getLogger(__name__)

# Vision failures that degrade to a template render instead of failing the job.
_FALLBACK_KINDS = (ErrorKind.TRANSIENT_INFERENCE, ErrorKind.MALFORMED_OUTPUT)


class PipelineStateError(RuntimeError):
    """A step was dispatched for a project in the wrong state."""


def vision_mime_type(data: bytes, declared: str | None) -> str:
    """Declared MIME type, else sniffed by Pillow, else ``image/jpeg``."""
    if declared and declared != "application/octet-stream":
        return declared
    try:
        with Image.open(io.BytesIO(data)) as img:
            return Image.MIME.get(img.format or "", "image/jpeg")
    except OSError:
        return "image/jpeg"


class JobProcessor:
    """Drives a single job through its step."""

    _STEP_DISPATCH = {
        JobStep.PREPROCESS: "_step_preprocess",
        JobStep.LINEART: "_step_lineart",
        JobStep.VECTORIZE: "_step_vectorize",
        JobStep.NORMALIZE: "_step_normalize",
    }

    def __init__(
        self,
        store: JobStore,
        storage: ProjectStorage,
        extractor: VisionExtractor,
        *,
        template_dir: Path | None = None,
        potrace_bin: str = "potrace",
        preprocess_params: PreprocessParams = PreprocessParams(),
        lineart_params: LineArtParams = LineArtParams(),
        trace_params: TraceParams = TraceParams(),
        normalize_params: NormalizeParams = NormalizeParams(),
    ) -> None:
        self.store = store
        self.storage = storage
        self.extractor = extractor
        self.template_dir = template_dir
        self.potrace_bin = potrace_bin
        self.preprocess_params = preprocess_params
        self.lineart_params = lineart_params
        self.trace_params = trace_params
        self.normalize_params = normalize_params

    # ── Entry point ────────────────────────────────────────────────

    def process(self, job: Job) -> Job:
        """Run *job*'s step.  Returns the updated job; re-raises on failure.

        Only ``queued`` jobs are accepted: ``done`` and ``error`` are
        terminal and a failed step is never re-run in place.
        """
        current = self.store.get_job(job.id) or job
        if current.status is not JobStatus.QUEUED:
            raise PipelineStateError(
                f"Job {job.id} is {current.status.value}; only queued jobs can run")

        project: Project | None = None
        try:
            project = self.store.get_project(job.project_id)
            if project is None:
                raise KeyError(f"Unknown project: {job.project_id}")
            job = self.store.update_job(job.id, status=JobStatus.RUNNING, error_message=None)
            log.info("Job %s: project %s step %s", job.id, project.id, job.step.value)
            getattr(self, self._STEP_DISPATCH[job.step])(job, project)
        except Exception as e:
            log.exception("Job %s failed", job.id)
            message = str(e) or type(e).__name__
            if isinstance(e, KeyError) and project is None:
                message = f"Unknown project: {job.project_id}"
            self.store.update_job(job.id, status=JobStatus.ERROR, error_message=message)
            if project is not None:
                self.store.update_project_status(project.id, ProjectStatus.ERROR, message)
            raise
        return self.store.get_job(job.id)

    # ── Helpers ────────────────────────────────────────────────────

    def _path(self, project: Project, name: str) -> Path:
        return self.storage.path_for(project.id, name)

    def _progress(self, job: Job, progress: int) -> None:
        self.store.update_job(job.id, progress=progress)

    def _write_meta(self, project: Project, meta: ProcessingMeta) -> None:
        self.storage.write_json(project.id, PROCESSING_META, meta.to_dict())

    def _require_sketch(self, project: Project) -> None:
        raw = self.storage.read_json(project.id, PROCESSING_META)
        if raw is None:
            raise PipelineStateError(
                f"Project {project.id} has no processing metadata; run preprocess first")
        meta = ProcessingMeta.from_dict(raw)
        if meta.processing_path is not ProcessingPath.SKETCH:
            raise PipelineStateError(
                f"Project {project.id} is on the {meta.processing_path.value} path, not sketch")

    def _complete_sketch_step(self, job: Job, project: Project) -> None:
        _, end = SKETCH_STEPS[job.step]
        self.store.update_job(job.id, progress=end, status=JobStatus.DONE)
        following = next_sketch_step(job.step)
        if following is None:
            self.store.update_project_status(project.id, ProjectStatus.READY)
            log.info("Project %s sketch pipeline complete", project.id)
            return
        queued = self.store.create_job(project.id, following, progress=end)
        log.info("Job %s done; queued %s as %s", job.id, following.value, queued.id)

    # ── Steps ──────────────────────────────────────────────────────

    def _step_preprocess(self, job: Job, project: Project) -> None:
        self._progress(job, 0)
        original = self._path(project, ORIGINAL)
        path = detect_processing_path(original, project.mime_type)
        log.info("Project %s: %s pipeline", project.id, path.value)

        if path is ProcessingPath.PHOTO:
            self._write_meta(project, ProcessingMeta(ProcessingPath.PHOTO, 0.0, False))
            self._run_photo(job, project)
            return

        self._write_meta(project, ProcessingMeta(ProcessingPath.SKETCH, 1.0, False))
        preprocess_image(original, self._path(project, PREPROCESSED), self.preprocess_params)
        self.store.create_asset(project.id, "preprocessed", FILES[PREPROCESSED])
        self._complete_sketch_step(job, project)

    def _step_lineart(self, job: Job, project: Project) -> None:
        self._require_sketch(project)
        self._progress(job, SKETCH_STEPS[job.step][0])
        generate_lineart(self._path(project, PREPROCESSED), self._path(project, LINEART),
                         self.lineart_params)
        self.store.create_asset(project.id, "lineart", FILES[LINEART])
        self._complete_sketch_step(job, project)

    def _step_vectorize(self, job: Job, project: Project) -> None:
        self._require_sketch(project)
        self._progress(job, SKETCH_STEPS[job.step][0])
        vectorize_to_svg(self._path(project, LINEART), self._path(project, RAW_VECTOR),
                         self.trace_params, potrace_bin=self.potrace_bin)
        self.store.create_asset(project.id, "raw_svg", FILES[RAW_VECTOR])
        self._complete_sketch_step(job, project)

    def _step_normalize(self, job: Job, project: Project) -> None:
        self._require_sketch(project)
        self._progress(job, SKETCH_STEPS[job.step][0])
        normalize_svg(self._path(project, RAW_VECTOR), self._path(project, NORMALIZED_VECTOR),
                      self.normalize_params)
        self.store.create_asset(project.id, "svg", FILES[NORMALIZED_VECTOR])
        self._complete_sketch_step(job, project)

    # ── Photo path ─────────────────────────────────────────────────

    def _run_photo(self, job: Job, project: Project) -> None:
        self._progress(job, 10)
        image = self.storage.read_bytes(project.id, ORIGINAL)

        result: GarmentParamsResult | None = None
        try:
            result = self.extractor.extract_params(
                image, vision_mime_type(image, project.mime_type), category_hint=project.category)
        except FlatSketchError as e:
            if e.kind not in _FALLBACK_KINDS:
                raise
            log.warning("Vision failed for project %s (%s): %s; rendering %s defaults",
                        project.id, e.kind.value, e.message, project.category)
        self._progress(job, 50)

        gate = gate_confidence(ProcessingPath.PHOTO, result.confidence if result else 0.0)
        category = result.category if result else project.category
        svg = render_flat_svg(
            category,
            result.params if result else None,
            result.features if result else None,
            template_dir=self.template_dir,
        )
        self.storage.write_text(project.id, NORMALIZED_VECTOR, svg)
        self._progress(job, 90)

        if result is not None:
            self.storage.write_json(project.id, VISION_SIDECAR, result.to_dict())
        self._write_meta(project, ProcessingMeta(ProcessingPath.PHOTO, gate.confidence, gate.template_mode))
        self.store.create_asset(project.id, "svg", FILES[NORMALIZED_VECTOR])

        self.store.update_job(job.id, progress=100, status=JobStatus.DONE)
        self.store.update_project_status(project.id, ProjectStatus.READY)
        log.info("Project %s photo pipeline complete (confidence %.2f, template_mode=%s)",
                 project.id, gate.confidence, gate.template_mode)
