"""Renderer selection and the one-call ``render_flat_svg`` entry point."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from flatsketch.vision.models import GARMENT_CATEGORIES, GarmentFeatures, GarmentParams

from .defaults import merge_features, merge_params
from .procedural import ProceduralRenderer
from .template import TemplateRenderer

log = logging.getLogger(__name__)


class FlatRenderer(Protocol):
    def render(self, category: str, params: GarmentParams, features: GarmentFeatures) -> str:
        ...


def template_path(category: str, template_dir: Path | str | None) -> Path | None:
    if template_dir is None:
        return None
    path = Path(template_dir) / f"{category}.svg"
    return path if path.is_file() else None


def select_renderer(category: str, template_dir: Path | str | None = None) -> FlatRenderer:
    """Template strategy when ``<template_dir>/<category>.svg`` exists, else procedural."""
    path = template_path(category, template_dir)
    if path is not None:
        return TemplateRenderer(path)
    return ProceduralRenderer()


def render_flat_svg(
    category: str,
    params: GarmentParams | None = None,
    features: GarmentFeatures | None = None,
    template_dir: Path | str | None = None,
) -> str:
    """Render the front flat for *category* with params/features over its defaults."""
    if category not in GARMENT_CATEGORIES:
        raise ValueError(f"Unknown garment category: {category!r}")
    renderer = select_renderer(category, template_dir)
    log.debug("Rendering %s with %s", category, type(renderer).__name__)
    return renderer.render(category, merge_params(category, params), merge_features(category, features))
