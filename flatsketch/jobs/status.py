"""Project status summary for polling clients."""

from __future__ import annotations

from typing import Any

from flatsketch.storage import PROCESSING_META, ProjectStorage

from .models import ProcessingMeta
from .store import JobStore


def project_status(store: JobStore, storage: ProjectStorage, project_id: str) -> dict[str, Any] | None:
    """Return the project, its current job, asset presence and processing metadata.

    The current job is the first unfinished one, else the newest.  Missing
    or unreadable metadata reports the sketch defaults.  Returns None for
    an unknown project.
    """
    project = store.get_project(project_id)
    if project is None:
        return None

    jobs = store.jobs_for_project(project_id)
    current = next((j for j in jobs if not j.finished), jobs[0] if jobs else None)

    try:
        raw_meta = storage.read_json(project_id, PROCESSING_META)
    except ValueError:      # corrupt JSON
        raw_meta = None
    meta = ProcessingMeta.from_dict(raw_meta if isinstance(raw_meta, dict) else None)

    asset_types = {a.type for a in store.assets_for_project(project_id)}
    return {
        "project": project.to_dict(),
        "job": current.to_dict() if current else None,
        "hasAssets": {
            "original": "original" in asset_types,
            "svg": "svg" in asset_types,
        },
        "processingPath": meta.processing_path.value,
        "visionConfidence": meta.vision_confidence,
        "templateMode": meta.template_mode,
    }
