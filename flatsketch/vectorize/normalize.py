"""Stage 4 — restyle traced paths and wrap them in the three-group contract.

potrace nests its paths under a flipped ``<g transform=...>``.  Each
path keeps the composed transforms of its ancestors on its own
``transform`` attribute, so geometry is unchanged once the wrapper
groups are dropped.  The output is canonical: normalizing it again
yields the same bytes.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path

from flatsketch.errors import ImageProcessingError
from flatsketch.render.svg import local_name, new_document, q, to_string

from .config import NormalizeParams

log = logging.getLogger(__name__)

STAGE = "normalize"

_NUMBER = re.compile(r"^\s*([0-9.]+)")


def _dimensions(root: ET.Element) -> tuple[float, float, str]:
    """Return ``(width, height, viewBox)`` in user units."""
    view_box = root.get("viewBox")
    if view_box:
        parts = view_box.replace(",", " ").split()
        if len(parts) == 4:
            return float(parts[2]), float(parts[3]), " ".join(parts)
    dims = []
    for attr in ("width", "height"):
        m = _NUMBER.match(root.get(attr, ""))
        dims.append(float(m.group(1)) if m else 0.0)
    w, h = dims
    return w, h, f"0 0 {w:g} {h:g}"


def _collect_paths(el: ET.Element, transforms: list[str], out: list[tuple[str, str]]) -> None:
    own = el.get("transform")
    chain = transforms + [own] if own else transforms
    if local_name(el.tag) == "path":
        d = " ".join(el.get("d", "").split())
        if d:
            out.append((d, " ".join(chain)))
        return
    for child in el:
        _collect_paths(child, chain, out)


def normalize_svg_text(svg_text: str, params: NormalizeParams = NormalizeParams()) -> str:
    try:
        source = ET.fromstring(svg_text)
    except ET.ParseError as e:
        raise ImageProcessingError(STAGE, f"unreadable SVG: {e}") from e

    paths: list[tuple[str, str]] = []
    for child in source:
        _collect_paths(child, [], paths)
    if not paths:
        raise ImageProcessingError(STAGE, "no paths to normalize")

    width, height, view_box = _dimensions(source)
    root, groups = new_document(width, height, view_box=view_box)
    for d, transform in paths:
        attrs = {"d": d}
        if transform:
            attrs["transform"] = transform
        attrs.update({
            "class": "detail",
            "fill": params.fill,
            "stroke": params.stroke,
            "stroke-width": f"{params.stroke_width:g}",
        })
        ET.SubElement(groups["Details"], q("path"), attrs)
    return to_string(root)


def normalize_svg(
    input_path: Path | str,
    output_path: Path | str,
    params: NormalizeParams = NormalizeParams(),
) -> Path:
    try:
        svg_text = Path(input_path).read_text(encoding="utf-8")
    except OSError as e:
        raise ImageProcessingError(STAGE, f"cannot read {input_path}: {e}") from e

    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(normalize_svg_text(svg_text, params), encoding="utf-8")
    log.info("Normalized vector written to %s", out.name)
    return out
