"""Stage 2 — turn a grayscale image into clean two-tone line art."""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageFilter

from .config import LineArtParams
from .imageio import open_image, save_png

log = logging.getLogger(__name__)


def _contrast_lut(contrast: float, brightness: float) -> list[int]:
    return [max(0, min(255, round(contrast * v + brightness))) for v in range(256)]


def _threshold_lut(threshold: int) -> list[int]:
    return [255 if v >= threshold else 0 for v in range(256)]


def to_lineart(img: Image.Image, params: LineArtParams = LineArtParams()) -> Image.Image:
    gray = img.convert("L")
    boosted = gray.point(_contrast_lut(params.contrast, params.brightness))
    binary = boosted.point(_threshold_lut(params.threshold))
    return binary.filter(ImageFilter.MedianFilter(params.median_size))


def generate_lineart(
    input_path: Path | str,
    output_path: Path | str,
    params: LineArtParams = LineArtParams(),
) -> Path:
    img = open_image(input_path, "lineart")
    out = save_png(to_lineart(img, params), output_path, "lineart")
    log.info("Line art written to %s", out.name)
    return out
