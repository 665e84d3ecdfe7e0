"""
FastAPI web server — project submission, job polling and direct vision calls.
"""

from __future__ import annotations

import base64
import binascii
import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

from flatsketch.config import Settings
from flatsketch.errors import MalformedOutputError, TransientInferenceError
from flatsketch.jobs import (
    JobProcessor, build_processor, project_status, submit_project, vision_mime_type,
)
from flatsketch.storage import ANALYSIS, NORMALIZED_VECTOR, ORIGINAL
from flatsketch.vision import GARMENT_CATEGORIES

log = logging.getLogger(__name__)

# ── App ────────────────────────────────────────────────────────────

app = FastAPI(title="flatsketch")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Process state ──────────────────────────────────────────────────

_processor: JobProcessor | None = None


def get_processor() -> JobProcessor:
    global _processor
    if _processor is None:
        _processor = build_processor(Settings.from_env())
    return _processor


def set_processor(processor: JobProcessor | None) -> None:
    """Swap the processor used by every route (``None`` rebuilds from env)."""
    global _processor
    _processor = processor


# ── Models ─────────────────────────────────────────────────────────

class SubmitRequest(BaseModel):
    image_base64: str
    category: str
    title: str = ""
    mime_type: str | None = None


class ImagePayload(BaseModel):
    image_base64: str
    mime_type: str


class GarmentParamsRequest(ImagePayload):
    category: str | None = None


class AnalyzeRequest(BaseModel):
    project_id: str
    additional_images: list[ImagePayload] = []


# ── Helpers ────────────────────────────────────────────────────────

def _decode(b64: str) -> bytes:
    try:
        data = base64.b64decode(b64, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(400, "image_base64 is not valid base64")
    if not data:
        raise HTTPException(400, "image_base64 is empty")
    return data


def _check_category(category: str | None) -> None:
    if category and category not in GARMENT_CATEGORIES:
        raise HTTPException(400, f"Invalid category. Allowed: {', '.join(GARMENT_CATEGORIES)}")


def _vision_error(e: Exception) -> HTTPException:
    if isinstance(e, MalformedOutputError):
        return HTTPException(422, f"Failed to parse garment from image: {e.message}")
    return HTTPException(503, f"Vision model unavailable: {e}")


# ── Projects & jobs ────────────────────────────────────────────────

@app.post("/api/projects")
def create_project(req: SubmitRequest):
    processor = get_processor()
    image = _decode(req.image_base64)
    try:
        project = submit_project(
            processor.store, processor.storage, image,
            category=req.category, title=req.title, mime_type=req.mime_type,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"project": project.to_dict()}


@app.post("/api/jobs/run")
def run_job():
    """Process the oldest queued job, if any."""
    processor = get_processor()
    job = processor.store.next_queued_job()
    if job is None:
        return {"job": None}
    try:
        done = processor.process(job)
    except Exception as e:
        raise HTTPException(500, f"Job {job.id} failed: {e}")
    return {"job": done.to_dict()}


@app.get("/api/projects/{project_id}/status")
def get_status(project_id: str):
    processor = get_processor()
    status = project_status(processor.store, processor.storage, project_id)
    if status is None:
        raise HTTPException(404, "Project not found")
    return status


@app.get("/api/projects/{project_id}/svg")
def get_svg(project_id: str):
    storage = get_processor().storage
    if not storage.exists(project_id, NORMALIZED_VECTOR):
        raise HTTPException(404, "No flat sketch yet for this project")
    return Response(
        content=storage.read_bytes(project_id, NORMALIZED_VECTOR),
        media_type="image/svg+xml",
    )


# ── Vision ─────────────────────────────────────────────────────────

@app.post("/api/vision/garment-params")
def garment_params(req: GarmentParamsRequest):
    """Single-image parameter extraction, without creating a project."""
    _check_category(req.category)
    image = _decode(req.image_base64)
    try:
        result = get_processor().extractor.extract_params(
            image, req.mime_type, category_hint=req.category)
    except (MalformedOutputError, TransientInferenceError) as e:
        raise _vision_error(e)
    return result.to_dict()


@app.post("/api/vision/analyze")
def analyze(req: AnalyzeRequest):
    """Expanded analysis of a project's original upload plus extra views.

    The result is stored as the project's ``analysis.json``.
    """
    project_id = req.project_id.strip()
    if not project_id:
        raise HTTPException(400, "project_id is required")

    processor = get_processor()
    project = processor.store.get_project(project_id)
    if project is None:
        raise HTTPException(404, "Project not found")
    if not processor.storage.exists(project_id, ORIGINAL):
        raise HTTPException(404, "No original image found for this project")

    image = processor.storage.read_bytes(project_id, ORIGINAL)
    extra = [(_decode(p.image_base64), p.mime_type) for p in req.additional_images]
    try:
        analysis = processor.extractor.analyze_expanded(
            image, vision_mime_type(image, project.mime_type),
            category_hint=project.category, additional_images=extra,
        )
    except (MalformedOutputError, TransientInferenceError) as e:
        raise _vision_error(e)

    processor.storage.write_json(project_id, ANALYSIS, analysis.to_dict())
    log.info("Stored expanded analysis for project %s (%s, fit %s)",
             project_id, analysis.sub_type, analysis.fit)
    return {"analysis": analysis.to_dict()}


# ── Entry point ────────────────────────────────────────────────────

def main(host: str = "127.0.0.1", port: int = 8000):
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("flatsketch.web.server:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
