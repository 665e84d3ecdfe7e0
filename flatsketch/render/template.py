"""Template-based flat renderer.

A designer-drawn ``<category>.svg`` is scaled group by group: the
``Body``, ``Sleeves`` and ``Hood`` groups get ``scale(sx sy)`` where each
factor is ``actual / default`` for the ratio driving that axis.  The
result is then rewrapped into the Outline/Details/Callouts contract.
"""

from __future__ import annotations

import copy
import logging
import xml.etree.ElementTree as ET
from pathlib import Path

from flatsketch.vision.models import GarmentFeatures, GarmentParams
from flatsketch.vision.parsing import clamp01

from .defaults import DEFAULTS
from .svg import GROUP_IDS, local_name, q, to_string

log = logging.getLogger(__name__)

# group id -> (x-axis ratio, y-axis ratio)
SCALED_GROUPS: dict[str, dict[str, tuple[str, str]]] = {
    "hoodie": {
        "Body": ("bodyWidth", "bodyLength"),
        "Sleeves": ("sleeveLength", "sleeveWidth"),
        "Hood": ("hoodWidth", "hoodHeight"),
    },
    "sweatshirt": {
        "Body": ("bodyWidth", "bodyLength"),
        "Sleeves": ("sleeveLength", "sleeveWidth"),
    },
    "sweatpants": {},
}

# Non-drawing elements stay at the top level ahead of the groups.
_PASSTHROUGH = {"defs", "style", "title", "desc", "metadata"}


def _factor(params: GarmentParams, defaults: GarmentParams, key: str) -> float:
    default = defaults[key]
    actual = clamp01(params.get(key, default), default) or default
    return actual / default


def scale_factors(category: str, params: GarmentParams) -> dict[str, tuple[float, float]]:
    """Per-group ``(sx, sy)``.

    Ratios are clamped to [0, 1]; a zero, missing or non-numeric ratio
    keeps the default size.
    """
    defaults = DEFAULTS[category]
    return {
        group_id: (_factor(params, defaults, kx), _factor(params, defaults, ky))
        for group_id, (kx, ky) in SCALED_GROUPS[category].items()
    }


def _qualify(root: ET.Element) -> None:
    """Put un-namespaced elements into the SVG namespace."""
    for el in root.iter():
        if not el.tag.startswith("{"):
            el.tag = q(el.tag)


class TemplateRenderer:
    """Scales and rewraps an existing template SVG."""

    def __init__(self, template_path: Path):
        self.template_path = Path(template_path)

    def render(self, category: str, params: GarmentParams, features: GarmentFeatures) -> str:
        tree = ET.parse(self.template_path)
        source = tree.getroot()
        _qualify(source)

        factors = scale_factors(category, params)
        for el in source.iter(q("g")):
            group_id = el.get("id")
            if group_id not in factors:
                continue
            sx, sy = factors[group_id]
            scale = f"scale({sx:.3f} {sy:.3f})"
            existing = el.get("transform")
            el.set("transform", f"{scale} {existing}" if existing else scale)

        log.info("Rendering %s from template %s", category, self.template_path.name)
        return to_string(self._wrap(source))

    @staticmethod
    def _wrap(source: ET.Element) -> ET.Element:
        root = ET.Element(q("svg"), dict(source.attrib))
        passthrough: list[ET.Element] = []
        contract: dict[str, ET.Element] = {}
        stray: list[ET.Element] = []

        for child in source:
            name = local_name(child.tag)
            if name in _PASSTHROUGH:
                passthrough.append(child)
            elif name == "g" and child.get("id") in GROUP_IDS and child.get("id") not in contract:
                contract[child.get("id")] = child
            else:
                stray.append(child)

        root.extend(passthrough)
        for group_id in GROUP_IDS:
            group = contract.get(group_id)
            if group is None:
                group = ET.Element(q("g"), {"id": group_id})
            else:
                group = copy.deepcopy(group)
            if group_id == "Outline":
                group.extend(copy.deepcopy(el) for el in stray)
            elif group_id == "Callouts":
                for child in list(group):
                    group.remove(child)
                group.text = None
            root.append(group)
        return root

