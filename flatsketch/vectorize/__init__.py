"""Bitmap vectorization chain — preprocess, lineart, trace, normalize.

Each stage reads the previous stage's file and writes its own:

  preprocess  — EXIF-upright, ≤2000 px, grayscale, auto-contrast, unsharp
  lineart     — linear contrast boost, threshold, 3×3 median
  vectorize   — potrace on the bilevel bitmap → raw SVG
  normalize   — uniform stroke styling inside Outline/Details/Callouts
"""

from .config import PreprocessParams, LineArtParams, TraceParams, NormalizeParams
from .preprocess import preprocess_image
from .lineart import generate_lineart, to_lineart
from .trace import vectorize_to_svg, find_potrace, potrace_command, count_paths
from .normalize import normalize_svg, normalize_svg_text

__all__ = [
    # Params
    "PreprocessParams", "LineArtParams", "TraceParams", "NormalizeParams",
    # Stages
    "preprocess_image", "generate_lineart", "vectorize_to_svg", "normalize_svg",
    # Helpers
    "to_lineart", "find_potrace", "potrace_command", "count_paths", "normalize_svg_text",
]
