"""Dequeue-and-process loop over the job store."""

from __future__ import annotations

import logging

from flatsketch.config import Settings
from flatsketch.storage import ProjectStorage
from flatsketch.vision import VisionExtractor, build_vision_backend

from .models import Job, JobStatus
from .processor import JobProcessor
from .store import FileJobStore

log = logging.getLogger(__name__)


def build_processor(settings: Settings) -> JobProcessor:
    """Wire a processor from deployment settings."""
    return JobProcessor(
        FileJobStore(settings.records_dir),
        ProjectStorage(settings.data_dir),
        VisionExtractor(build_vision_backend(settings)),
        template_dir=settings.template_dir,
        potrace_bin=settings.potrace_bin,
    )


def run_next_job(processor: JobProcessor) -> Job | None:
    """Process the oldest queued job.  Returns None when the queue is empty.

    A failing job is persisted as ``error`` by the processor and the
    exception propagates to the caller.
    """
    job = processor.store.next_queued_job()
    if job is None:
        return None
    return processor.process(job)


def run_until_idle(processor: JobProcessor, *, stop_on_error: bool = False) -> list[Job]:
    """Drain the queue, including the follow-up steps each job enqueues.

    Failed jobs are logged and skipped unless *stop_on_error* is set.
    """
    processed: list[Job] = []
    while True:
        job = processor.store.next_queued_job()
        if job is None:
            return processed
        try:
            processed.append(processor.process(job))
        except Exception:
            if stop_on_error:
                raise
            failed = processor.store.get_job(job.id)
            if failed is None or failed.status is JobStatus.QUEUED:
                # failure was not persisted; the same job would be picked again
                raise
            log.warning("Job %s failed; continuing with the next job", job.id)
            processed.append(failed)
