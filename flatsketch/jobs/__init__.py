"""Jobs — routing, persistence, orchestration, submission and status."""

from .models import (
    Job, JobStatus, JobStep, Project, ProjectStatus, Asset,
    ProcessingPath, ProcessingMeta, SKETCH_STEPS, next_sketch_step,
)
from .routing import detect_processing_path
from .store import JobStore, FileJobStore
from .processor import JobProcessor, PipelineStateError, vision_mime_type
from .submit import submit_project
from .runner import build_processor, run_next_job, run_until_idle
from .status import project_status

__all__ = [
    # Models
    "Job", "JobStatus", "JobStep", "Project", "ProjectStatus", "Asset",
    "ProcessingPath", "ProcessingMeta", "SKETCH_STEPS", "next_sketch_step",
    # Routing / Store
    "detect_processing_path", "JobStore", "FileJobStore",
    # Orchestration
    "JobProcessor", "PipelineStateError", "vision_mime_type",
    "submit_project", "build_processor", "run_next_job", "run_until_idle",
    "project_status",
]
