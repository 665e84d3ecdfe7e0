"""Garment vision result dataclasses and enumerated value sets.

Params and features are plain mappings keyed by their wire names
(``bodyWidth``, ``kangarooPocket`` …) so the renderer can merge them
over per-category defaults without translation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union


GarmentCategory = Literal["hoodie", "sweatshirt", "sweatpants"]
GARMENT_CATEGORIES: tuple[str, ...] = ("hoodie", "sweatshirt", "sweatpants")

GarmentParams = dict[str, float]
GarmentFeatures = dict[str, Union[bool, str]]


# ── Param / feature keys ───────────────────────────────────────────

COMMON_PARAM_KEYS = ("bodyWidth", "bodyLength", "shoulderWidth", "sleeveLength", "sleeveWidth")
HOOD_PARAM_KEYS = ("hoodWidth", "hoodHeight", "pocketTopY")
LEG_PARAM_KEYS = ("legWidth", "inseam", "rise")

PARAM_KEYS_BY_CATEGORY: dict[str, tuple[str, ...]] = {
    "hoodie": COMMON_PARAM_KEYS + HOOD_PARAM_KEYS,
    "sweatshirt": COMMON_PARAM_KEYS,
    "sweatpants": COMMON_PARAM_KEYS + LEG_PARAM_KEYS,
}

FEATURE_FLAGS = ("zip", "kangarooPocket", "drawcord", "ribHem", "ribCuff")

ZIPPER_PULL_TYPES = frozenset({"metal_tab", "loop_pull", "none"})
POCKET_TYPES = frozenset({"split_kangaroo", "continuous_kangaroo", "none"})


# ── Expanded-analysis value sets ───────────────────────────────────

SUB_TYPES = frozenset({
    "oversized_hoodie", "pullover_hoodie", "zip_hoodie", "unisex_hoodie",
    "crewneck", "sweatpants",
})
DEFAULT_SUB_TYPE = {"hoodie": "pullover_hoodie", "sweatshirt": "crewneck", "sweatpants": "sweatpants"}

FITS = frozenset({"oversized", "regular", "slim"})

SHOULDER_TYPES = frozenset({"drop", "set-in", "raglan"})
SLEEVE_STYLES = frozenset({"regular", "balloon", "tapered"})
SEAM_TYPES = frozenset({"flatlock", "overlock", "coverstitch"})
HEM_STYLES = frozenset({"rib", "raw", "folded", "elastic"})
CUFF_STYLES = frozenset({"rib", "raw", "elastic", "open"})
SHOULDER_DROPS = frozenset({"none", "slight", "exaggerated"})
BODY_LENGTHS = frozenset({"cropped", "regular", "longline"})

SILHOUETTES = frozenset({"A-line", "rectangular", "trapezoid"})
WIDTH_TO_LENGTH = frozenset({"wider_than_tall", "square", "taller_than_wide"})
HOOD_SIZES = frozenset({"small", "standard", "large"})
POCKET_WIDTHS = frozenset({"narrow", "medium", "wide"})
SHOULDER_VS_HEM = frozenset({"shoulders_narrower", "same_width", "shoulders_wider"})


# ── Results ────────────────────────────────────────────────────────


@dataclass
class GarmentParamsResult:
    """Validated output of a basic garment-parameter extraction."""

    category: str
    params: GarmentParams
    features: GarmentFeatures
    confidence: float
    view: str = "front"

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "view": self.view,
            "params": dict(self.params),
            "features": dict(self.features),
            "confidence": self.confidence,
        }


@dataclass
class Material:
    primary: str = "French Terry"
    weight_estimate: str = "unknown"
    composition_guess: str = "80% Cotton / 20% Polyester"


@dataclass
class ColorInfo:
    primary_hex: str = "#808080"
    primary_name: str = "Gray"
    accent_hex: str | None = None


@dataclass
class Construction:
    shoulder_type: str = "set-in"
    sleeve_style: str = "regular"
    seam_type: str = "overlock"
    hem_style: str = "rib"
    cuff_style: str = "rib"
    shoulder_drop: str = "none"
    body_length: str = "regular"


@dataclass
class Branding:
    position: str = ""
    type: str = ""
    description: str = ""


@dataclass
class Proportions:
    """Only the fields the model returned valid values for are set."""

    silhouette: str | None = None
    widthToLength: str | None = None
    hoodSize: str | None = None
    pocketWidth: str | None = None
    shoulderVsHem: str | None = None


@dataclass
class ExpandedAnalysis(GarmentParamsResult):
    """Full tech-pack analysis: params + features plus descriptive blocks."""

    sub_type: str = "pullover_hoodie"
    fit: str = "regular"
    material: Material = field(default_factory=Material)
    color: ColorInfo = field(default_factory=ColorInfo)
    construction: Construction = field(default_factory=Construction)
    branding: Branding | None = None
    proportions: Proportions | None = None

    def to_dict(self) -> dict:
        out = super().to_dict()
        out["sub_type"] = self.sub_type
        out["fit"] = self.fit
        out["material"] = vars(self.material).copy()
        color = vars(self.color).copy()
        if color["accent_hex"] is None:
            del color["accent_hex"]
        out["color"] = color
        out["construction"] = vars(self.construction).copy()
        if self.branding is not None:
            out["branding"] = vars(self.branding).copy()
        if self.proportions is not None:
            out["proportions"] = {
                k: v for k, v in vars(self.proportions).items() if v is not None
            }
        return out
