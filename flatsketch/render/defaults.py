"""Per-category parameter defaults and the procedural canvas constants."""

from __future__ import annotations

from flatsketch.vision.models import GarmentFeatures, GarmentParams


DEFAULTS: dict[str, GarmentParams] = {
    "hoodie": {
        "bodyWidth": 0.6,
        "bodyLength": 0.65,
        "shoulderWidth": 0.55,
        "sleeveLength": 0.55,
        "sleeveWidth": 0.22,
        "hoodWidth": 0.35,
        "hoodHeight": 0.25,
        "pocketTopY": 0.6,
    },
    "sweatshirt": {
        "bodyWidth": 0.6,
        "bodyLength": 0.65,
        "shoulderWidth": 0.55,
        "sleeveLength": 0.55,
        "sleeveWidth": 0.22,
    },
    "sweatpants": {
        "bodyWidth": 0.45,
        "bodyLength": 0.95,
        "shoulderWidth": 0.0,
        "sleeveLength": 0.0,
        "sleeveWidth": 0.0,
        "legWidth": 0.25,
        "inseam": 0.55,
        "rise": 0.3,
    },
}

DEFAULT_FEATURES: dict[str, GarmentFeatures] = {
    "hoodie": {"zip": False, "kangarooPocket": True, "drawcord": True, "ribHem": True, "ribCuff": True},
    "sweatshirt": {"zip": False, "drawcord": False, "ribHem": True, "ribCuff": True},
    "sweatpants": {"drawcord": True},
}


# ── Canvas ─────────────────────────────────────────────────────────

CANVAS_W = 400
CANVAS_H = 500
CX = CANVAS_W / 2

STROKE = "#1a1a1a"
STROKE_WIDTH = 1.6
DASH = "4 3"
RIB_STROKE_WIDTH = 0.8
RIB_DASH = "2 2"
CORD_STROKE_WIDTH = 1.0

RIB_BAND = 12          # rib hem / cuff band depth
WAISTBAND = 16         # sweatpants waistband depth


def merge_params(category: str, params: GarmentParams | None) -> GarmentParams:
    """Overlay *params* on the category defaults."""
    return {**DEFAULTS[category], **(params or {})}


def merge_features(category: str, features: GarmentFeatures | None) -> GarmentFeatures:
    return {**DEFAULT_FEATURES[category], **(features or {})}
