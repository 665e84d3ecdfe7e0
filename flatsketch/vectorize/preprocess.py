"""Stage 1 — normalise an upload into a bounded, sharpened grayscale PNG."""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageFilter, ImageOps

from .config import PreprocessParams
from .imageio import flatten_alpha, open_image, save_png

log = logging.getLogger(__name__)


def preprocess_image(
    input_path: Path | str,
    output_path: Path | str,
    params: PreprocessParams = PreprocessParams(),
) -> Path:
    img = open_image(input_path, "preprocess")
    img = ImageOps.exif_transpose(img)
    img = flatten_alpha(img)

    # thumbnail() only ever shrinks and keeps the aspect ratio
    img.thumbnail((params.max_edge_px, params.max_edge_px), Image.Resampling.LANCZOS)

    gray = img.convert("L")
    gray = ImageOps.autocontrast(gray, cutoff=params.autocontrast_cutoff)
    gray = gray.filter(ImageFilter.UnsharpMask(
        radius=params.sharpen_radius,
        percent=params.sharpen_percent,
        threshold=params.sharpen_threshold,
    ))

    out = save_png(gray, output_path, "preprocess")
    log.info("Preprocessed %s -> %s (%dx%d)", Path(input_path).name, out.name, *gray.size)
    return out
