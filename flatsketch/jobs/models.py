"""Project, job and asset records plus the sketch step table."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from flatsketch.vision.gate import ProcessingPath


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


class JobStep(str, Enum):
    PREPROCESS = "preprocess"
    LINEART = "lineart"
    VECTORIZE = "vectorize"
    NORMALIZE = "normalize"


class ProjectStatus(str, Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


# step -> (progress on entry, progress on success)
SKETCH_STEPS: dict[JobStep, tuple[int, int]] = {
    JobStep.PREPROCESS: (0, 25),
    JobStep.LINEART: (25, 50),
    JobStep.VECTORIZE: (50, 75),
    JobStep.NORMALIZE: (75, 100),
}
SKETCH_ORDER: tuple[JobStep, ...] = tuple(SKETCH_STEPS)


def next_sketch_step(step: JobStep) -> JobStep | None:
    i = SKETCH_ORDER.index(step)
    return SKETCH_ORDER[i + 1] if i + 1 < len(SKETCH_ORDER) else None


def _plain(d: dict[str, Any]) -> dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in d.items()}


@dataclass
class Project:
    id: str
    title: str
    category: str
    mime_type: str | None = None
    status: ProjectStatus = ProjectStatus.UPLOADED
    error_message: str | None = None
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return _plain(asdict(self))

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Project:
        return cls(
            id=d["id"],
            title=d.get("title", ""),
            category=d["category"],
            mime_type=d.get("mime_type"),
            status=ProjectStatus(d.get("status", "uploaded")),
            error_message=d.get("error_message"),
            created_at=d.get("created_at", ""),
            updated_at=d.get("updated_at", ""),
        )


@dataclass
class Job:
    id: str
    project_id: str
    step: JobStep
    status: JobStatus = JobStatus.QUEUED
    progress: int = 0
    error_message: str | None = None
    seq: int = 0                          # enqueue order, assigned by the store
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    @property
    def finished(self) -> bool:
        return self.status in (JobStatus.DONE, JobStatus.ERROR)

    def to_dict(self) -> dict[str, Any]:
        return _plain(asdict(self))

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Job:
        return cls(
            id=d["id"],
            project_id=d["project_id"],
            step=JobStep(d["step"]),
            status=JobStatus(d.get("status", "queued")),
            progress=int(d.get("progress", 0)),
            error_message=d.get("error_message"),
            seq=int(d.get("seq", 0)),
            created_at=d.get("created_at", ""),
            updated_at=d.get("updated_at", ""),
        )


@dataclass
class Asset:
    id: str
    project_id: str
    type: str                 # original | preprocessed | lineart | raw_svg | svg
    path: str                 # file name inside the project folder
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Asset:
        return cls(id=d["id"], project_id=d["project_id"], type=d["type"],
                   path=d["path"], created_at=d.get("created_at", ""))


@dataclass
class ProcessingMeta:
    processing_path: ProcessingPath = ProcessingPath.SKETCH
    vision_confidence: float = 1.0
    template_mode: bool = False

    def to_dict(self) -> dict[str, Any]:
        return _plain(asdict(self))

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None) -> ProcessingMeta:
        """Missing or partial metadata falls back to the sketch defaults."""
        d = d or {}
        try:
            path = ProcessingPath(d.get("processing_path", "sketch"))
        except ValueError:
            path = ProcessingPath.SKETCH
        return cls(
            processing_path=path,
            vision_confidence=float(d.get("vision_confidence", 1.0)),
            template_mode=bool(d.get("template_mode", False)),
        )
