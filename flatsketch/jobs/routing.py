"""Decide which pipeline an upload goes through."""

from __future__ import annotations

import os
from pathlib import Path

from flatsketch.config import PHOTO_SIZE_THRESHOLD_BYTES

from .models import ProcessingPath

SKETCH_MIME_TYPES = frozenset({"image/svg+xml"})
PHOTO_MIME_TYPES = frozenset({"image/jpeg", "image/heic", "image/heif"})


def detect_processing_path(original_path: Path | str, mime_type: str | None = None) -> ProcessingPath:
    """Route by MIME type first, then by file size.

    Never raises: an unreadable file falls through to ``sketch``.  Large
    line-art scans with a generic MIME type will be routed as photos.
    """
    mime = (mime_type or "").strip().lower()
    if mime in SKETCH_MIME_TYPES:
        return ProcessingPath.SKETCH
    if mime in PHOTO_MIME_TYPES:
        return ProcessingPath.PHOTO
    try:
        if os.path.getsize(original_path) > PHOTO_SIZE_THRESHOLD_BYTES:
            return ProcessingPath.PHOTO
    except (OSError, TypeError, ValueError):
        pass
    return ProcessingPath.SKETCH
