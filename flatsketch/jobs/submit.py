"""Create a project from an uploaded image and queue its first job."""

from __future__ import annotations

import logging

from flatsketch.storage import FILES, ORIGINAL, ProjectStorage
from flatsketch.vision.models import GARMENT_CATEGORIES

from .models import JobStep, Project, ProjectStatus
from .store import JobStore, new_id

log = logging.getLogger(__name__)


def submit_project(
    store: JobStore,
    storage: ProjectStorage,
    image: bytes,
    *,
    category: str,
    title: str = "",
    mime_type: str | None = None,
) -> Project:
    """Write ``original``, create the project + asset, and queue ``preprocess``.

    The path (photo / sketch) is decided later by the processor; later
    sketch steps are queued as each one completes.
    """
    category = category.strip().lower()
    if category not in GARMENT_CATEGORIES:
        raise ValueError(f"Invalid category '{category}', expected one of {', '.join(GARMENT_CATEGORIES)}")
    if not image:
        raise ValueError("Empty image upload")

    project = Project(id=new_id(), title=title or f"Untitled {category}",
                      category=category, mime_type=mime_type)
    storage.write_bytes(project.id, ORIGINAL, image)
    store.create_project(project)
    store.create_asset(project.id, "original", FILES[ORIGINAL])
    store.create_job(project.id, JobStep.PREPROCESS)
    project = store.update_project_status(project.id, ProjectStatus.PROCESSING)

    log.info("Submitted project %s (%s, %d bytes, %s)",
             project.id, category, len(image), mime_type or "unknown type")
    return project
