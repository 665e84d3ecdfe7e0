"""
Stage 3 — potrace wrapper: bilevel line art in, raw SVG paths out.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
import xml.etree.ElementTree as ET
from pathlib import Path

from PIL import Image

from flatsketch.errors import ImageProcessingError
from flatsketch.render.svg import local_name

from .config import TraceParams
from .imageio import flatten_alpha, open_image

log = logging.getLogger(__name__)

STAGE = "vectorize"


def find_potrace(binary: str = "potrace") -> str | None:
    """Locate the potrace executable (a name on PATH or an explicit path)."""
    return shutil.which(binary)


def potrace_command(exe: str, bitmap: Path, svg_out: Path, params: TraceParams) -> list[str]:
    return [
        exe, str(bitmap),
        "-s",                                   # SVG backend
        "-o", str(svg_out),
        "-k", f"{params.blacklevel:g}",
        "-O", f"{params.opttolerance:g}",
        "-t", str(params.turdsize),
        "-a", f"{params.alphamax:g}",
        "-z", params.turnpolicy,
    ]


def count_paths(svg_text: str) -> int:
    try:
        root = ET.fromstring(svg_text)
    except ET.ParseError:
        return 0
    return sum(1 for el in root.iter() if local_name(el.tag) == "path")


def vectorize_to_svg(
    input_path: Path | str,
    output_path: Path | str,
    params: TraceParams = TraceParams(),
    *,
    potrace_bin: str = "potrace",
) -> Path:
    exe = find_potrace(potrace_bin)
    if not exe:
        raise ImageProcessingError(
            STAGE, f"potrace not found ('{potrace_bin}'). Install it or set POTRACE_BIN.")

    img = flatten_alpha(open_image(input_path, STAGE))
    cutoff = round(params.blacklevel * 255)
    bilevel = img.convert("L").point(lambda v: 255 if v >= cutoff else 0).convert("1", dither=Image.Dither.NONE)

    with tempfile.TemporaryDirectory(prefix="flatsketch_trace_") as tmp:
        bitmap = Path(tmp) / "lineart.bmp"
        svg_tmp = Path(tmp) / "raw.svg"
        bilevel.save(bitmap, format="BMP")

        cmd = potrace_command(exe, bitmap, svg_tmp, params)
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=params.timeout_s)
        except subprocess.TimeoutExpired as e:
            raise ImageProcessingError(STAGE, f"potrace timed out ({params.timeout_s:g}s)") from e
        except OSError as e:
            raise ImageProcessingError(STAGE, f"could not run potrace: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.strip()
            raise ImageProcessingError(
                STAGE, stderr or f"potrace exited with code {result.returncode}")
        if not svg_tmp.exists():
            raise ImageProcessingError(STAGE, "potrace did not produce an SVG")
        svg_text = svg_tmp.read_text(encoding="utf-8")

    n_paths = count_paths(svg_text)
    if n_paths == 0:
        raise ImageProcessingError(STAGE, "potrace produced no paths (is the line art blank?)")

    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(svg_text, encoding="utf-8")
    log.info("Traced %d paths -> %s", n_paths, out.name)
    return out
