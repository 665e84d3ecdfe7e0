"""Confidence gate: decides whether a render should be flagged as template-only."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from flatsketch.config import LOW_CONFIDENCE_THRESHOLD


class ProcessingPath(str, Enum):
    PHOTO = "photo"
    SKETCH = "sketch"


@dataclass(frozen=True)
class GateDecision:
    confidence: float
    template_mode: bool


def gate_confidence(path: ProcessingPath, confidence: float) -> GateDecision:
    """Advisory only; generation always proceeds.

    Sketch uploads are traced from the user's own drawing, so they are
    reported at full confidence.
    """
    if ProcessingPath(path) is ProcessingPath.SKETCH:
        return GateDecision(confidence=1.0, template_mode=False)
    return GateDecision(confidence=confidence, template_mode=confidence < LOW_CONFIDENCE_THRESHOLD)
