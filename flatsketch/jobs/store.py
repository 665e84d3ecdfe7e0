"""
Job / project / asset persistence.

``JobStore`` is the interface the orchestrator depends on.
``FileJobStore`` keeps one JSON file per record:

  <root>/projects/<project_id>.json
  <root>/jobs/<job_id>.json
  <root>/assets/<asset_id>.json
  <root>/seq                      — last enqueue sequence number

Writes are plain overwrites with no locking; concurrent runners for the
same project can race.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import fields
from pathlib import Path
from typing import Any, Iterator, Protocol

from .models import (
    Asset, Job, JobStatus, JobStep, Project, ProjectStatus, utc_now,
)


def new_id(length: int = 12) -> str:
    return uuid.uuid4().hex[:length]


class JobStore(Protocol):
    def create_project(self, project: Project) -> Project: ...
    def get_project(self, project_id: str) -> Project | None: ...
    def list_projects(self) -> list[Project]: ...
    def update_project_status(
        self, project_id: str, status: ProjectStatus, error_message: str | None = None,
    ) -> Project: ...

    def create_job(self, project_id: str, step: JobStep, progress: int = 0) -> Job: ...
    def get_job(self, job_id: str) -> Job | None: ...
    def update_job(self, job_id: str, **changes: Any) -> Job: ...
    def next_queued_job(self) -> Job | None: ...
    def jobs_for_project(self, project_id: str) -> list[Job]: ...

    def create_asset(self, project_id: str, type: str, path: str) -> Asset: ...
    def get_asset(self, project_id: str, type: str) -> Asset | None: ...
    def assets_for_project(self, project_id: str) -> list[Asset]: ...


class FileJobStore:
    """JSON-file implementation of ``JobStore``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    # ── Low-level ──────────────────────────────────────────────────

    def _dir(self, kind: str) -> Path:
        d = self.root / kind
        d.mkdir(parents=True, exist_ok=True)
        return d

    def _write(self, kind: str, record_id: str, data: dict) -> None:
        (self._dir(kind) / f"{record_id}.json").write_text(
            json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    def _read(self, kind: str, record_id: str) -> dict | None:
        p = self._dir(kind) / f"{record_id}.json"
        if not p.exists():
            return None
        return json.loads(p.read_text(encoding="utf-8"))

    def _iter(self, kind: str) -> Iterator[dict]:
        for p in sorted(self._dir(kind).glob("*.json")):
            yield json.loads(p.read_text(encoding="utf-8"))

    def _next_seq(self) -> int:
        p = self.root / "seq"
        current = int(p.read_text(encoding="utf-8").strip() or 0) if p.exists() else 0
        self.root.mkdir(parents=True, exist_ok=True)
        p.write_text(str(current + 1), encoding="utf-8")
        return current + 1

    # ── Projects ───────────────────────────────────────────────────

    def create_project(self, project: Project) -> Project:
        self._write("projects", project.id, project.to_dict())
        return project

    def get_project(self, project_id: str) -> Project | None:
        d = self._read("projects", project_id)
        return Project.from_dict(d) if d else None

    def list_projects(self) -> list[Project]:
        projects = [Project.from_dict(d) for d in self._iter("projects")]
        return sorted(projects, key=lambda p: p.created_at, reverse=True)

    def update_project_status(
        self, project_id: str, status: ProjectStatus, error_message: str | None = None,
    ) -> Project:
        project = self.get_project(project_id)
        if project is None:
            raise KeyError(f"Unknown project: {project_id}")
        project.status = ProjectStatus(status)
        project.error_message = error_message
        project.updated_at = utc_now()
        self._write("projects", project.id, project.to_dict())
        return project

    # ── Jobs ───────────────────────────────────────────────────────

    def create_job(self, project_id: str, step: JobStep, progress: int = 0) -> Job:
        job = Job(id=new_id(16), project_id=project_id, step=JobStep(step),
                  progress=progress, seq=self._next_seq())
        self._write("jobs", job.id, job.to_dict())
        return job

    def get_job(self, job_id: str) -> Job | None:
        d = self._read("jobs", job_id)
        return Job.from_dict(d) if d else None

    def update_job(self, job_id: str, **changes: Any) -> Job:
        job = self.get_job(job_id)
        if job is None:
            raise KeyError(f"Unknown job: {job_id}")
        known = {f.name for f in fields(Job)}
        for key, value in changes.items():
            if key not in known:
                raise AttributeError(f"Job has no field '{key}'")
            setattr(job, key, value)
        job.status = JobStatus(job.status)
        job.updated_at = utc_now()
        self._write("jobs", job.id, job.to_dict())
        return job

    def next_queued_job(self) -> Job | None:
        queued = [j for j in self._all_jobs() if j.status is JobStatus.QUEUED]
        return min(queued, key=lambda j: j.seq) if queued else None

    def jobs_for_project(self, project_id: str) -> list[Job]:
        """Newest first."""
        jobs = [j for j in self._all_jobs() if j.project_id == project_id]
        return sorted(jobs, key=lambda j: j.seq, reverse=True)

    def _all_jobs(self) -> list[Job]:
        return [Job.from_dict(d) for d in self._iter("jobs")]

    # ── Assets ─────────────────────────────────────────────────────

    def create_asset(self, project_id: str, type: str, path: str) -> Asset:
        asset = Asset(id=new_id(16), project_id=project_id, type=type, path=path)
        self._write("assets", asset.id, asset.to_dict())
        return asset

    def get_asset(self, project_id: str, type: str) -> Asset | None:
        """Most recent asset of *type* for the project."""
        matches = [a for a in self.assets_for_project(project_id) if a.type == type]
        return matches[-1] if matches else None

    def assets_for_project(self, project_id: str) -> list[Asset]:
        assets = [Asset.from_dict(d) for d in self._iter("assets") if d["project_id"] == project_id]
        return sorted(assets, key=lambda a: a.created_at)
