"""Parametric garment renderer — template and procedural flat sketches."""

from .defaults import DEFAULTS, DEFAULT_FEATURES, CANVAS_W, CANVAS_H, merge_params, merge_features
from .svg import GROUP_IDS, top_level_group_ids
from .procedural import ProceduralRenderer, build_layout
from .template import TemplateRenderer, scale_factors
from .factory import FlatRenderer, select_renderer, render_flat_svg

__all__ = [
    # Defaults
    "DEFAULTS", "DEFAULT_FEATURES", "CANVAS_W", "CANVAS_H",
    "merge_params", "merge_features",
    # SVG contract
    "GROUP_IDS", "top_level_group_ids",
    # Strategies
    "FlatRenderer", "ProceduralRenderer", "TemplateRenderer",
    "build_layout", "scale_factors",
    "select_renderer", "render_flat_svg",
]
