"""Garment vision extraction: backend request, JSON decode, validation.

One attempt is one backend request followed by one parse.  The attempt
is wrapped in a ``RetryPolicy`` so transient failures (empty reply,
network trouble, undecodable JSON) are retried while a schema failure
surfaces on the first attempt.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence, TypeVar

from flatsketch.errors import MalformedOutputError, TransientInferenceError

from .backends import ImageInput, VisionBackend
from .models import ExpandedAnalysis, GarmentParamsResult
from .parsing import extract_json, parse_expanded_analysis, parse_params_result
from .prompts import (
    PARAMS_SYSTEM_PROMPT, EXPANDED_SYSTEM_PROMPT,
    params_user_prompt, expanded_user_prompt,
)
from .retry import RetryPolicy

log = logging.getLogger(__name__)

T = TypeVar("T")

PARAMS_MAX_TOKENS = 800
EXPANDED_MAX_TOKENS = 1500


class VisionExtractor:
    """Extract garment parameters from images through a ``VisionBackend``."""

    def __init__(self, backend: VisionBackend, retry_policy: RetryPolicy | None = None):
        self.backend = backend
        self.retry_policy = retry_policy or RetryPolicy()

    def extract_params(
        self,
        image_bytes: bytes,
        mime_type: str,
        category_hint: str | None = None,
    ) -> GarmentParamsResult:
        images = [ImageInput(image_bytes, mime_type)]
        return self.retry_policy.run(
            lambda: self._attempt(
                PARAMS_SYSTEM_PROMPT,
                params_user_prompt(category_hint),
                images,
                PARAMS_MAX_TOKENS,
                lambda raw: parse_params_result(raw, category_hint),
            ),
            label="Vision extraction",
        )

    def analyze_expanded(
        self,
        image_bytes: bytes,
        mime_type: str,
        category_hint: str | None = None,
        additional_images: Sequence[tuple[bytes, str]] = (),
    ) -> ExpandedAnalysis:
        images = [ImageInput(image_bytes, mime_type)]
        images += [ImageInput(data, mime) for data, mime in additional_images]
        return self.retry_policy.run(
            lambda: self._attempt(
                EXPANDED_SYSTEM_PROMPT,
                expanded_user_prompt(category_hint, len(images)),
                images,
                EXPANDED_MAX_TOKENS,
                lambda raw: parse_expanded_analysis(raw, category_hint),
            ),
            label="Expanded analysis",
        )

    def _attempt(
        self,
        system: str,
        user: str,
        images: list[ImageInput],
        max_tokens: int,
        parse: Callable[[Any], T],
    ) -> T:
        text = self.backend.complete(system, user, images, max_tokens=max_tokens)
        if not text or not text.strip():
            raise TransientInferenceError("Empty response from vision model")

        raw = extract_json(text)
        try:
            return parse(raw)
        except MalformedOutputError as e:
            e.raw_output = text
            log.error("Vision output failed validation: %s", e.message)
            raise
