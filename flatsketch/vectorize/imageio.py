"""Bitmap read/write for the vectorization stages."""

from __future__ import annotations

import io
from pathlib import Path

from PIL import Image

from flatsketch.errors import ImageProcessingError


def is_svg(data: bytes) -> bool:
    head = data[:1024].lstrip().lower()
    return head.startswith(b"<") and b"<svg" in head


def _rasterize_svg(data: bytes, stage: str) -> Image.Image:
    import cairosvg

    try:
        png = cairosvg.svg2png(bytestring=data, background_color="white")
    except Exception as e:
        raise ImageProcessingError(stage, f"cannot rasterize SVG: {e}") from e
    return Image.open(io.BytesIO(png))


def open_image(path: Path | str, stage: str) -> Image.Image:
    """Open and fully decode *path*, mapping any failure to ``ImageProcessingError``.

    SVG uploads are rasterized first so the bitmap stages can treat every
    sketch the same way.
    """
    try:
        data = Path(path).read_bytes()
        img = _rasterize_svg(data, stage) if is_svg(data) else Image.open(io.BytesIO(data))
        img.load()
    except OSError as e:    # includes missing files and UnidentifiedImageError
        raise ImageProcessingError(stage, f"cannot read {path}: {e}") from e
    return img


def flatten_alpha(img: Image.Image) -> Image.Image:
    """Composite transparent images onto white so empty areas read as paper."""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        background.alpha_composite(rgba)
        return background.convert("RGB")
    return img


def save_png(img: Image.Image, path: Path | str, stage: str) -> Path:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        img.save(path, format="PNG")
    except OSError as e:
        raise ImageProcessingError(stage, f"cannot write {path}: {e}") from e
    return path
