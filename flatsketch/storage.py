"""
Project file storage — each project is a folder on disk holding the
artifacts the pipeline reads and writes.

Projects are stored under
  <data_dir>/<project_id>/

A project folder contains (logical name → file):
  original           — the uploaded image, bytes as received
  preprocessed       — preprocessed.png   (sketch path, step 1)
  lineart            — lineart.png        (sketch path, step 2)
  raw-vector         — raw.svg            (sketch path, step 3)
  normalized-vector  — normalized.svg     (final artifact, both paths)
  vision_params.json — last vision result sidecar (photo path)
  processing_meta.json — chosen path, confidence, template_mode
  analysis.json      — last expanded analysis (on demand)

The pipeline only needs read-one / write-one / exists, keyed by project
id + logical name.  Writes are plain overwrites; no locking and no
atomic rename.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


# ── Logical file names ─────────────────────────────────────────────

ORIGINAL = "original"
PREPROCESSED = "preprocessed"
LINEART = "lineart"
RAW_VECTOR = "raw-vector"
NORMALIZED_VECTOR = "normalized-vector"
VISION_SIDECAR = "vision_params.json"
PROCESSING_META = "processing_meta.json"
ANALYSIS = "analysis.json"

FILES: dict[str, str] = {
    ORIGINAL: "original",
    PREPROCESSED: "preprocessed.png",
    LINEART: "lineart.png",
    RAW_VECTOR: "raw.svg",
    NORMALIZED_VECTOR: "normalized.svg",
    VISION_SIDECAR: "vision_params.json",
    PROCESSING_META: "processing_meta.json",
    ANALYSIS: "analysis.json",
}


class ProjectStorage:
    """Per-project artifact folders under a single root directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def project_dir(self, project_id: str) -> Path:
        return self.root / project_id

    def path_for(self, project_id: str, name: str) -> Path:
        """Resolve a logical name (or plain filename) to its on-disk path."""
        return self.project_dir(project_id) / FILES.get(name, name)

    def exists(self, project_id: str, name: str) -> bool:
        return self.path_for(project_id, name).exists()

    def read_bytes(self, project_id: str, name: str) -> bytes:
        return self.path_for(project_id, name).read_bytes()

    def write_bytes(self, project_id: str, name: str, data: bytes) -> Path:
        p = self.path_for(project_id, name)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
        return p

    def read_text(self, project_id: str, name: str) -> str:
        return self.path_for(project_id, name).read_text(encoding="utf-8")

    def write_text(self, project_id: str, name: str, text: str) -> Path:
        p = self.path_for(project_id, name)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(text, encoding="utf-8")
        return p

    def read_json(self, project_id: str, name: str) -> Any | None:
        """Read a JSON artifact. Returns None if missing."""
        p = self.path_for(project_id, name)
        if not p.exists():
            return None
        return json.loads(p.read_text(encoding="utf-8"))

    def write_json(self, project_id: str, name: str, data: Any) -> Path:
        return self.write_text(
            project_id, name, json.dumps(data, indent=2, ensure_ascii=False))
