"""Procedural flat-sketch renderer — ratios to a front-view line drawing.

Used whenever no template SVG exists for the category.  Each ratio is
mapped onto a fixed 400×500 canvas with ``lerp(min, max, t)``; every
detail mark is positioned from the body geometry and checked against the
garment footprint (body ∪ sleeves, or the legs for sweatpants) with
shapely before it is emitted.
"""

from __future__ import annotations

import logging
import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

from shapely import affinity
from shapely.geometry import LineString, Point, Polygon, box as shapely_box
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from flatsketch.vision.models import GarmentFeatures, GarmentParams
from flatsketch.vision.parsing import clamp01

from .defaults import (
    DEFAULTS, CANVAS_W, CANVAS_H, CX,
    STROKE, STROKE_WIDTH, DASH, RIB_STROKE_WIDTH, RIB_DASH, CORD_STROKE_WIDTH,
    RIB_BAND, WAISTBAND,
)
from .svg import fmt, new_document, q, to_string

log = logging.getLogger(__name__)

Pt = tuple[float, float]

BOUNDS_TOLERANCE = 1.0     # px of slack for stroke-on-edge marks

# Left sleeve runs down-and-out at 45°; the right one is mirrored.
SLEEVE_DIR: Pt = (-math.sqrt(0.5), math.sqrt(0.5))
SLEEVE_NORMAL: Pt = (math.sqrt(0.5), math.sqrt(0.5))

LEG_GAP = 10               # half the gap between the two hems


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


# ── Marks ──────────────────────────────────────────────────────────

@dataclass
class Mark:
    """One SVG element plus its footprint for bounds checks."""

    tag: str
    attrs: dict[str, str]
    geom: BaseGeometry


@dataclass
class FlatLayout:
    outline: list[Mark] = field(default_factory=list)
    details: list[Mark] = field(default_factory=list)
    bounds: BaseGeometry = field(default_factory=Polygon)


def _style(kind: str, width: float = STROKE_WIDTH, dash: str | None = None) -> dict[str, str]:
    style = {"class": kind, "fill": "none", "stroke": STROKE, "stroke-width": fmt(width)}
    if dash:
        style["stroke-dasharray"] = dash
    return style


def _pt(p: Pt) -> str:
    return f"{fmt(p[0])} {fmt(p[1])}"


def _quad_points(p0: Pt, c: Pt, p1: Pt, n: int = 12) -> list[Pt]:
    out = []
    for i in range(n + 1):
        t = i / n
        mt = 1 - t
        out.append((mt * mt * p0[0] + 2 * mt * t * c[0] + t * t * p1[0],
                    mt * mt * p0[1] + 2 * mt * t * c[1] + t * t * p1[1]))
    return out


def polyline_mark(kind: str, points: list[Pt], *, closed: bool = False,
                  width: float = STROKE_WIDTH, dash: str | None = None) -> Mark:
    d = "M " + " L ".join(_pt(p) for p in points) + (" Z" if closed else "")
    geom = Polygon(points) if closed else LineString(points)
    return Mark("path", {"d": d, **_style(kind, width, dash)}, geom)


def curve_mark(kind: str, segments: list[tuple[Pt, Pt, Pt]], *,
               width: float = STROKE_WIDTH, dash: str | None = None) -> Mark:
    """Chain of quadratic Béziers given as (start, control, end) triples."""
    start = segments[0][0]
    d = f"M {_pt(start)}" + "".join(f" Q {_pt(c)} {_pt(end)}" for _, c, end in segments)
    points: list[Pt] = []
    for p0, c, p1 in segments:
        points.extend(_quad_points(p0, c, p1))
    return Mark("path", {"d": d, **_style(kind, width, dash)}, LineString(points))


def rect_mark(kind: str, x: float, y: float, w: float, h: float, *, rx: float | None = None,
              width: float = STROKE_WIDTH, dash: str | None = None) -> Mark:
    attrs = {"x": fmt(x), "y": fmt(y), "width": fmt(w), "height": fmt(h)}
    if rx:
        attrs["rx"] = fmt(rx)
    return Mark("rect", {**attrs, **_style(kind, width, dash)}, shapely_box(x, y, x + w, y + h))


def ellipse_mark(kind: str, cx: float, cy: float, rx: float, ry: float, *,
                 width: float = STROKE_WIDTH) -> Mark:
    attrs = {"cx": fmt(cx), "cy": fmt(cy), "rx": fmt(rx), "ry": fmt(ry)}
    geom = affinity.scale(Point(cx, cy).buffer(1.0), rx, ry)
    return Mark("ellipse", {**attrs, **_style(kind, width)}, geom)


def _mirror(points: list[Pt]) -> list[Pt]:
    return [(2 * CX - x, y) for x, y in points]


def _ratio(params: GarmentParams, category: str, key: str, default: float = 0.5) -> float:
    fallback = DEFAULTS[category].get(key, default)
    return clamp01(params.get(key, fallback), fallback)


# ── Tops (hoodie / sweatshirt) ─────────────────────────────────────

@dataclass
class _TopFrame:
    top: float
    bottom: float
    left: float
    right: float
    bw: float
    bl: float
    sw: float
    left_sleeve: list[Pt]       # shoulder, cuff top, cuff bottom, underarm

    @property
    def right_sleeve(self) -> list[Pt]:
        return _mirror(self.left_sleeve)


def _top_frame(params: GarmentParams, category: str, top: float) -> _TopFrame:
    bw = lerp(120, 200, _ratio(params, category, "bodyWidth"))
    bl = lerp(180, 320, _ratio(params, category, "bodyLength"))
    sw = min(lerp(90, 180, _ratio(params, category, "shoulderWidth")), bw)
    sl = lerp(70, 140, _ratio(params, category, "sleeveLength"))
    slw = lerp(28, 64, _ratio(params, category, "sleeveWidth"))

    left = CX - bw / 2
    arm_y = top + 20
    ux, uy = SLEEVE_DIR
    nx, ny = SLEEVE_NORMAL
    a = (left, arm_y)
    b = (left + ux * sl, arm_y + uy * sl)
    c = (b[0] + nx * slw, b[1] + ny * slw)
    d = (left, arm_y + slw + 20)
    return _TopFrame(top=top, bottom=top + bl, left=left, right=CX + bw / 2,
                     bw=bw, bl=bl, sw=sw, left_sleeve=[a, b, c, d])


def _body_points(fr: _TopFrame) -> list[Pt]:
    arm_y = fr.top + 20
    return [
        (CX - fr.sw / 2, fr.top),
        (fr.left, arm_y),
        (fr.left, fr.bottom),
        (fr.right, fr.bottom),
        (fr.right, arm_y),
        (CX + fr.sw / 2, fr.top),
    ]


def _cuff_band(sleeve: list[Pt]) -> list[Pt]:
    a, b, c, d = sleeve
    ab = math.dist(a, b)
    dc = math.dist(d, c)
    tb = min(RIB_BAND / ab, 0.5) if ab else 0.0
    tc = min(RIB_BAND / dc, 0.5) if dc else 0.0
    b2 = (b[0] + (a[0] - b[0]) * tb, b[1] + (a[1] - b[1]) * tb)
    c2 = (c[0] + (d[0] - c[0]) * tc, c[1] + (d[1] - c[1]) * tc)
    return [b, c, c2, b2]


def _top_details(fr: _TopFrame, params: GarmentParams, features: GarmentFeatures,
                 category: str) -> list[Mark]:
    marks: list[Mark] = []

    if features.get("kangarooPocket"):
        py = lerp(fr.top + fr.bl * 0.4, fr.top + fr.bl * 0.7,
                  _ratio(params, category, "pocketTopY", 0.6))
        ph = fr.bl * 0.18
        pw = fr.bw * 0.55
        pocket_type = features.get("pocketType")
        split = pocket_type == "split_kangaroo" or (
            pocket_type in (None, "none") and bool(features.get("zip")))
        if split:
            gap = 10
            half = pw / 2 - gap / 2
            marks.append(rect_mark("pocket", CX - pw / 2, py, half, ph, rx=4, dash=DASH))
            marks.append(rect_mark("pocket", CX + gap / 2, py, half, ph, rx=4, dash=DASH))
        else:
            marks.append(rect_mark("pocket", CX - pw / 2, py, pw, ph, rx=4, dash=DASH))

    if features.get("zip"):
        marks.append(polyline_mark("zip", [(CX, fr.top), (CX, fr.bottom)], dash=DASH))
        pull = features.get("zipperPullType", "metal_tab")
        if pull == "metal_tab":
            marks.append(rect_mark("zip-pull", CX - 3, fr.top + 6, 6, 14, rx=1))
        elif pull == "loop_pull":
            marks.append(ellipse_mark("zip-pull", CX, fr.top + 14, 4, 8, width=CORD_STROKE_WIDTH))

    if features.get("drawcord"):
        dy = fr.top + 8
        marks.append(curve_mark("drawcord", [((CX - 12, dy), (CX - 8, dy + 15), (CX - 4, dy))],
                                width=CORD_STROKE_WIDTH))
        marks.append(curve_mark("drawcord", [((CX + 4, dy), (CX + 8, dy + 15), (CX + 12, dy))],
                                width=CORD_STROKE_WIDTH))

    if features.get("ribHem"):
        marks.append(rect_mark("rib-hem", fr.left, fr.bottom - RIB_BAND, fr.bw, RIB_BAND,
                               width=RIB_STROKE_WIDTH, dash=RIB_DASH))

    if features.get("ribCuff"):
        for sleeve in (fr.left_sleeve, fr.right_sleeve):
            marks.append(polyline_mark("rib-cuff", _cuff_band(sleeve), closed=True,
                                       width=RIB_STROKE_WIDTH, dash=RIB_DASH))
    return marks


def _top_layout(category: str, params: GarmentParams, features: GarmentFeatures) -> FlatLayout:
    hoodie = category == "hoodie"
    fr = _top_frame(params, category, top=120 if hoodie else 80)
    body = _body_points(fr)

    outline = [
        polyline_mark("body", body, closed=True),
        polyline_mark("sleeve", fr.left_sleeve),
        polyline_mark("sleeve", fr.right_sleeve),
    ]
    if hoodie:
        hw = min(lerp(60, 140, _ratio(params, category, "hoodWidth")), fr.bw)
        hh = lerp(40, 100, _ratio(params, category, "hoodHeight"))
        peak = (CX, fr.top - hh - 10)
        outline.append(curve_mark("hood", [
            ((CX - hw / 2, fr.top), (CX - hw / 2 - 10, fr.top - hh), peak),
            (peak, (CX + hw / 2 + 10, fr.top - hh), (CX + hw / 2, fr.top)),
        ]))
    else:
        nw = fr.sw * 0.45
        outline.append(curve_mark("neckline", [
            ((CX - nw / 2, fr.top), (CX, fr.top + 28), (CX + nw / 2, fr.top))]))
        outline.append(curve_mark("neckline", [
            ((CX - nw / 2 - 4, fr.top), (CX, fr.top + 36), (CX + nw / 2 + 4, fr.top))]))

    bounds = unary_union([Polygon(body), Polygon(fr.left_sleeve), Polygon(fr.right_sleeve)])
    return FlatLayout(outline=outline,
                      details=_top_details(fr, params, features, category),
                      bounds=bounds)


# ── Sweatpants ─────────────────────────────────────────────────────

def _sweatpants_layout(params: GarmentParams, features: GarmentFeatures) -> FlatLayout:
    category = "sweatpants"
    bw = lerp(100, 200, _ratio(params, category, "bodyWidth"))
    bl = lerp(300, 450, _ratio(params, category, "bodyLength"))
    lw = lerp(50, 120, _ratio(params, category, "legWidth"))
    inseam = lerp(0.4, 0.7, _ratio(params, category, "inseam"))
    rise = lerp(0.15, 0.35, _ratio(params, category, "rise"))

    top = 40
    bottom = top + bl
    waist_l = CX - bw / 2
    crotch_y = top + bl * rise
    knee_y = top + bl * inseam
    leg_center = CX - LEG_GAP - lw / 2
    knee_half = lw / 2 + 6

    left_leg = [
        (waist_l, top),
        (waist_l - 10, crotch_y),
        (leg_center - knee_half, knee_y),
        (CX - LEG_GAP - lw, bottom),
        (CX - LEG_GAP, bottom),
        (leg_center + knee_half, knee_y),
    ]
    points = left_leg + [(CX, crotch_y)] + _mirror(left_leg[::-1])

    details: list[Mark] = [
        rect_mark("waistband", waist_l, top, bw, WAISTBAND,
                  width=RIB_STROKE_WIDTH, dash=RIB_DASH),
    ]
    if features.get("drawcord"):
        details.append(curve_mark("drawcord", [((CX - 12, top + 10), (CX - 8, top + 25), (CX - 4, top + 10))],
                                  width=CORD_STROKE_WIDTH))
        details.append(curve_mark("drawcord", [((CX + 4, top + 10), (CX + 8, top + 25), (CX + 12, top + 10))],
                                  width=CORD_STROKE_WIDTH))
    if features.get("ribCuff"):
        details.append(rect_mark("rib-cuff", CX - LEG_GAP - lw, bottom - RIB_BAND, lw, RIB_BAND,
                                 width=RIB_STROKE_WIDTH, dash=RIB_DASH))
        details.append(rect_mark("rib-cuff", CX + LEG_GAP, bottom - RIB_BAND, lw, RIB_BAND,
                                 width=RIB_STROKE_WIDTH, dash=RIB_DASH))

    return FlatLayout(outline=[polyline_mark("legs", points, closed=True)],
                      details=details,
                      bounds=Polygon(points))


# ── Renderer ───────────────────────────────────────────────────────

def build_layout(category: str, params: GarmentParams, features: GarmentFeatures) -> FlatLayout:
    """Lay out the outline and feature marks for *category*."""
    if category == "sweatpants":
        return _sweatpants_layout(params, features)
    if category in ("hoodie", "sweatshirt"):
        return _top_layout(category, params, features)
    raise ValueError(f"Unknown garment category: {category!r}")


class ProceduralRenderer:
    """Draws the flat from scratch on a fixed canvas."""

    def render(self, category: str, params: GarmentParams, features: GarmentFeatures) -> str:
        layout = build_layout(category, params, features)
        root, groups = new_document(CANVAS_W, CANVAS_H)

        for mark in layout.outline:
            ET.SubElement(groups["Outline"], q(mark.tag), mark.attrs)

        allowed = layout.bounds.buffer(BOUNDS_TOLERANCE)
        for mark in layout.details:
            if not allowed.covers(mark.geom):
                log.warning("Dropping %s mark outside the %s footprint", mark.attrs.get("class"), category)
                continue
            ET.SubElement(groups["Details"], q(mark.tag), mark.attrs)

        return to_string(root)
