"""Garment vision — backends, extraction, parsing, and the confidence gate."""

from .models import (
    GARMENT_CATEGORIES, PARAM_KEYS_BY_CATEGORY, FEATURE_FLAGS,
    GarmentParamsResult, ExpandedAnalysis,
    Material, ColorInfo, Construction, Branding, Proportions,
)
from .parsing import extract_json, clamp01, parse_params_result, parse_expanded_analysis
from .retry import RetryPolicy, linear_backoff, is_transient
from .backends import (
    ImageInput, VisionBackend,
    AnthropicVisionBackend, GeminiVisionBackend, OpenAICompatibleVisionBackend,
    build_vision_backend,
)
from .extraction import VisionExtractor
from .gate import GateDecision, ProcessingPath, gate_confidence

__all__ = [
    # Models
    "GARMENT_CATEGORIES", "PARAM_KEYS_BY_CATEGORY", "FEATURE_FLAGS",
    "GarmentParamsResult", "ExpandedAnalysis",
    "Material", "ColorInfo", "Construction", "Branding", "Proportions",
    # Parsing / Retry
    "extract_json", "clamp01", "parse_params_result", "parse_expanded_analysis",
    "RetryPolicy", "linear_backoff", "is_transient",
    # Backends / Extraction
    "ImageInput", "VisionBackend",
    "AnthropicVisionBackend", "GeminiVisionBackend", "OpenAICompatibleVisionBackend",
    "build_vision_backend", "VisionExtractor",
    # Gate
    "GateDecision", "ProcessingPath", "gate_confidence",
]
