"""SVG document helpers shared by the renderers and the vector normalizer.

Every vector artifact the package emits has exactly three top-level
groups, in this order: ``Outline``, ``Details``, ``Callouts``.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"
ET.register_namespace("", SVG_NS)
ET.register_namespace("xlink", XLINK_NS)

GROUP_IDS = ("Outline", "Details", "Callouts")


def q(tag: str) -> str:
    """Qualify *tag* with the SVG namespace."""
    return f"{{{SVG_NS}}}{tag}"


def local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def fmt(value: float) -> str:
    """Compact, stable number formatting for coordinates."""
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def new_document(
    width: float, height: float, *, view_box: str | None = None,
) -> tuple[ET.Element, dict[str, ET.Element]]:
    """Create an ``<svg>`` root carrying the three empty contract groups."""
    root = ET.Element(q("svg"), {
        "viewBox": view_box or f"0 0 {fmt(width)} {fmt(height)}",
        "width": fmt(width),
        "height": fmt(height),
    })
    groups = {gid: ET.SubElement(root, q("g"), {"id": gid}) for gid in GROUP_IDS}
    return root, groups


def to_string(root: ET.Element) -> str:
    ET.indent(root, space="  ")
    return ET.tostring(root, encoding="unicode") + "\n"


def top_level_group_ids(svg_text: str) -> list[str]:
    """Ids of the direct ``<g>`` children of the root element."""
    root = ET.fromstring(svg_text)
    return [child.get("id", "") for child in root if local_name(child.tag) == "g"]


def find_group(root: ET.Element, group_id: str) -> ET.Element | None:
    for child in root:
        if local_name(child.tag) == "g" and child.get("id") == group_id:
            return child
    return None
