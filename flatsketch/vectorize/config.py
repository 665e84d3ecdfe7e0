"""Knobs for the four bitmap-to-vector stages.

Each stage takes its own frozen parameter set so a caller can tune one
stage without touching the others.  The defaults reproduce the standard
sketch pipeline; the documented ranges are what has been observed to
give usable line art from phone photos of pencil and marker sketches.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PreprocessParams:
    """Fit-inside resize, grayscale, contrast stretch and light sharpen."""

    max_edge_px: int = 2000
    """Longest edge after resizing.  Images are never enlarged.
    Range 800-4000; larger values slow tracing quadratically."""

    autocontrast_cutoff: float = 0.0
    """Percent of darkest/lightest pixels clipped before stretching.
    Range 0-5; 0 stretches the full min/max range."""

    sharpen_radius: float = 0.5
    """Unsharp-mask radius (≈ Gaussian sigma).  Range 0.3-2.0."""

    sharpen_percent: int = 150
    """Unsharp-mask strength.  Range 50-300."""

    sharpen_threshold: int = 3
    """Minimum brightness change that gets sharpened.  Range 0-10."""


@dataclass(frozen=True)
class LineArtParams:
    """Linear contrast boost, binary threshold and despeckle."""

    contrast: float = 2.0
    """Multiplier *a* in ``a*v + b``.  Range 1.5-3.0."""

    brightness: float = -64
    """Offset *b* in ``a*v + b``.  Range -128 to 0."""

    threshold: int = 128
    """Pixels at or above become white, below become black.  Range 0-255."""

    median_size: int = 3
    """Median filter window (odd).  3 removes single-pixel noise."""


@dataclass(frozen=True)
class TraceParams:
    """potrace knobs, passed straight through as CLI flags."""

    blacklevel: float = 0.5
    """``-k``: grey level below which a pixel counts as black.  Range 0-1
    (0.5 ≙ 128 of 255)."""

    opttolerance: float = 0.2
    """``-O``: curve-optimization tolerance.  Range 0-1; 0 disables joining."""

    turdsize: int = 2
    """``-t``: speckles up to this many pixels are dropped.  Range 0-10."""

    alphamax: float = 1.0
    """``-a``: corner threshold.  0 = polygon, 1.334 = no corners."""

    turnpolicy: str = "black"
    """``-z``: ambiguity resolution (black, white, left, right, minority,
    majority, random)."""

    timeout_s: float = 120
    """Wall-clock limit for one potrace run."""


@dataclass(frozen=True)
class NormalizeParams:
    """Uniform stroke styling applied to every traced path."""

    stroke: str = "black"
    stroke_width: float = 2
    fill: str = "none"
