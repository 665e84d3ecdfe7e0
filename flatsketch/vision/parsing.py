"""Vision response parsing — untyped model output into typed results.

The boundary is a single fallible step per result type: either a fully
populated ``GarmentParamsResult`` / ``ExpandedAnalysis`` comes back, or
``MalformedOutputError`` is raised.  Inside that contract the rules are
lenient on purpose: an unparsable ratio becomes ``0.5``, an invalid
enum falls back to its named default, and a broken optional block is
replaced by its defaults rather than failing the whole result.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

from flatsketch.errors import MalformedOutputError, TransientInferenceError

from .models import (
    GARMENT_CATEGORIES, PARAM_KEYS_BY_CATEGORY, FEATURE_FLAGS,
    ZIPPER_PULL_TYPES, POCKET_TYPES,
    SUB_TYPES, DEFAULT_SUB_TYPE, FITS,
    SHOULDER_TYPES, SLEEVE_STYLES, SEAM_TYPES, HEM_STYLES, CUFF_STYLES,
    SHOULDER_DROPS, BODY_LENGTHS,
    SILHOUETTES, WIDTH_TO_LENGTH, HOOD_SIZES, POCKET_WIDTHS, SHOULDER_VS_HEM,
    GarmentParams, GarmentFeatures, GarmentParamsResult, ExpandedAnalysis,
    Material, ColorInfo, Construction, Branding, Proportions,
)


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_HEX_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


# ── Text → JSON ────────────────────────────────────────────────────

def extract_json(text: str) -> Any:
    """Strip code fences / surrounding prose and decode the JSON object.

    A reply with no decodable object is treated as a transient failure:
    the model produced noise, not a wrong answer, so another attempt may
    succeed.
    """
    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass
    match = re.search(r"\{.*\}", cleaned, flags=re.DOTALL)
    if not match:
        raise TransientInferenceError("Model did not return JSON.")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise TransientInferenceError(f"Model returned invalid JSON: {e}") from e


# ── Coercion helpers ───────────────────────────────────────────────

def clamp01(value: Any, default: float = 0.5) -> float:
    """Coerce to float in [0, 1]; anything non-numeric becomes *default*."""
    if isinstance(value, (dict, list)):
        return default
    try:
        n = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(n):
        return default
    return max(0.0, min(1.0, n))


def _choice(value: Any, allowed: frozenset[str], default: Any) -> Any:
    return value if isinstance(value, str) and value in allowed else default


def _safe_str(value: Any, fallback: str) -> str:
    return value.strip() if isinstance(value, str) and value.strip() else fallback


def _block(obj: dict, key: str) -> dict:
    value = obj.get(key)
    return value if isinstance(value, dict) else {}


def _parse_category(obj: dict) -> str:
    raw = obj.get("category")
    cat = str(raw if raw is not None else "").strip().lower()
    if cat not in GARMENT_CATEGORIES:
        raise MalformedOutputError(f"Invalid category: {cat!r}")
    return cat


def _parse_params(raw: dict, category: str) -> GarmentParams:
    """Clamp every recognised ratio; drop keys irrelevant to *category*."""
    allowed = PARAM_KEYS_BY_CATEGORY[category]
    return {k: clamp01(raw[k]) for k in allowed if k in raw}


def _parse_features(raw: dict, *, fill_missing: bool) -> GarmentFeatures:
    features: GarmentFeatures = {}
    for key in FEATURE_FLAGS:
        if key in raw or fill_missing:
            features[key] = bool(raw.get(key))

    # Sub-choices only mean something when their parent flag is set.
    if "zip" in features or "zipperPullType" in raw:
        has_zip = bool(features.get("zip"))
        features["zipperPullType"] = _choice(
            raw.get("zipperPullType"), ZIPPER_PULL_TYPES,
            "metal_tab" if has_zip else "none")
    if "kangarooPocket" in features or "pocketType" in raw:
        has_pocket = bool(features.get("kangarooPocket"))
        features["pocketType"] = _choice(
            raw.get("pocketType"), POCKET_TYPES,
            "continuous_kangaroo" if has_pocket else "none")
    return features


def _resolve_category(obj: dict, category_hint: str | None) -> str:
    """The model's category must be valid; a known hint then wins."""
    category = _parse_category(obj)
    if category_hint in GARMENT_CATEGORIES:
        return category_hint
    return category


def _require_object(raw: Any) -> dict:
    if not isinstance(raw, dict):
        raise MalformedOutputError("Response is not an object")
    return raw


# ── Public parsers ─────────────────────────────────────────────────

def parse_params_result(raw: Any, category_hint: str | None = None) -> GarmentParamsResult:
    """Validate a basic extraction response (category, params, features)."""
    obj = _require_object(raw)
    category = _resolve_category(obj, category_hint)

    params = obj.get("params")
    if not isinstance(params, dict):
        raise MalformedOutputError("Missing params object")

    return GarmentParamsResult(
        category=category,
        params=_parse_params(params, category),
        features=_parse_features(_block(obj, "features"), fill_missing=False),
        confidence=clamp01(obj.get("confidence")),
    )


def parse_expanded_analysis(raw: Any, category_hint: str | None = None) -> ExpandedAnalysis:
    """Validate a full tech-pack analysis response."""
    obj = _require_object(raw)
    category = _resolve_category(obj, category_hint)

    sub_type = str(obj.get("sub_type") or "").strip().lower()
    if sub_type not in SUB_TYPES:
        sub_type = DEFAULT_SUB_TYPE[category]
    fit = str(obj.get("fit") or "regular").strip().lower()
    if fit not in FITS:
        fit = "regular"

    return ExpandedAnalysis(
        category=category,
        params=_parse_params(_block(obj, "params"), category),
        features=_parse_features(_block(obj, "features"), fill_missing=True),
        confidence=clamp01(obj.get("confidence")),
        sub_type=sub_type,
        fit=fit,
        material=_parse_material(_block(obj, "material")),
        color=_parse_color(_block(obj, "color")),
        construction=_parse_construction(_block(obj, "construction")),
        branding=_parse_branding(obj.get("branding")),
        proportions=_parse_proportions(obj.get("proportions")),
    )


# ── Expanded blocks ────────────────────────────────────────────────

def _parse_material(m: dict) -> Material:
    d = Material()
    return Material(
        primary=_safe_str(m.get("primary"), d.primary),
        weight_estimate=_safe_str(m.get("weight_estimate"), d.weight_estimate),
        composition_guess=_safe_str(m.get("composition_guess"), d.composition_guess),
    )


def _parse_color(c: dict) -> ColorInfo:
    d = ColorInfo()
    primary = c.get("primary_hex")
    accent = c.get("accent_hex")
    return ColorInfo(
        primary_hex=primary if isinstance(primary, str) and _HEX_RE.match(primary) else d.primary_hex,
        primary_name=_safe_str(c.get("primary_name"), d.primary_name),
        accent_hex=accent if isinstance(accent, str) and _HEX_RE.match(accent) else None,
    )


def _parse_construction(c: dict) -> Construction:
    d = Construction()
    return Construction(
        shoulder_type=_choice(c.get("shoulder_type"), SHOULDER_TYPES, d.shoulder_type),
        sleeve_style=_choice(c.get("sleeve_style"), SLEEVE_STYLES, d.sleeve_style),
        seam_type=_choice(c.get("seam_type"), SEAM_TYPES, d.seam_type),
        hem_style=_choice(c.get("hem_style"), HEM_STYLES, d.hem_style),
        cuff_style=_choice(c.get("cuff_style"), CUFF_STYLES, d.cuff_style),
        shoulder_drop=_choice(c.get("shoulder_drop"), SHOULDER_DROPS, d.shoulder_drop),
        body_length=_choice(c.get("body_length"), BODY_LENGTHS, d.body_length),
    )


def _parse_branding(raw: Any) -> Branding | None:
    if not isinstance(raw, dict):
        return None
    branding = Branding(
        position=_safe_str(raw.get("position"), ""),
        type=_safe_str(raw.get("type"), ""),
        description=_safe_str(raw.get("description"), ""),
    )
    if not (branding.position or branding.type or branding.description):
        return None
    return branding


def _parse_proportions(raw: Any) -> Proportions | None:
    if not isinstance(raw, dict):
        return None
    p = Proportions(
        silhouette=_choice(raw.get("silhouette"), SILHOUETTES, None),
        widthToLength=_choice(raw.get("widthToLength"), WIDTH_TO_LENGTH, None),
        hoodSize=_choice(raw.get("hoodSize"), HOOD_SIZES, None),
        pocketWidth=_choice(raw.get("pocketWidth"), POCKET_WIDTHS, None),
        shoulderVsHem=_choice(raw.get("shoulderVsHem"), SHOULDER_VS_HEM, None),
    )
    if all(v is None for v in vars(p).values()):
        return None
    return p
