"""Vision inference backends — one request in, reply text out.

Every backend implements ``VisionBackend.complete``.  Network, timeout,
rate-limit and server-side failures are raised as
``TransientInferenceError``; anything else from the SDK (bad key, bad
request) propagates unchanged.  An empty reply is returned as ``""``
and left for the caller to classify.

Configure via environment variables (see ``flatsketch.config``):
  - VISION_PROVIDER            anthropic | gemini | openai
  - ANTHROPIC_API_KEY / ANTHROPIC_VISION_MODEL
  - GEMINI_API_KEY / GEMINI_VISION_MODEL
  - LLM_BASE_URL / LLM_API_KEY / LLM_MODEL   (OpenAI-compatible)
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

import requests

from flatsketch.config import (
    Settings, DEFAULT_ANTHROPIC_MODEL, DEFAULT_GEMINI_MODEL, DEFAULT_OPENAI_MODEL,
)
from flatsketch.errors import TransientInferenceError


@dataclass(frozen=True)
class ImageInput:
    data: bytes
    mime_type: str

    def b64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


class VisionBackend(Protocol):
    def complete(
        self, system: str, user: str, images: Sequence[ImageInput], *, max_tokens: int,
    ) -> str:
        ...


# ── Anthropic ──────────────────────────────────────────────────────

@dataclass
class AnthropicVisionBackend:
    """Claude messages API with base64 image blocks."""

    api_key: str = ""
    model: str = DEFAULT_ANTHROPIC_MODEL
    _client: Any = field(default=None, init=False, repr=False)

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise RuntimeError("ANTHROPIC_API_KEY must be set.")
            import anthropic
            self._client = anthropic.Anthropic(api_key=self.api_key)
        return self._client

    def complete(
        self, system: str, user: str, images: Sequence[ImageInput], *, max_tokens: int,
    ) -> str:
        import anthropic

        client = self._get_client()
        content: list[dict] = [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": img.mime_type, "data": img.b64()},
            }
            for img in images
        ]
        content.append({"type": "text", "text": user})

        try:
            response = client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=0,
                system=system,
                messages=[{"role": "user", "content": content}],
            )
        except (anthropic.APIConnectionError, anthropic.RateLimitError,
                anthropic.InternalServerError) as e:
            raise TransientInferenceError(f"Anthropic request failed: {e}") from e
        except anthropic.APIStatusError as e:
            if e.status_code == 529:    # overloaded
                raise TransientInferenceError(f"Anthropic overloaded: {e}") from e
            raise

        return "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        )


# ── Gemini ─────────────────────────────────────────────────────────

@dataclass
class GeminiVisionBackend:
    """Google AI Studio Gemini models with inline image parts."""

    api_key: str = ""
    model: str = DEFAULT_GEMINI_MODEL

    def complete(
        self, system: str, user: str, images: Sequence[ImageInput], *, max_tokens: int,
    ) -> str:
        if not self.api_key:
            raise RuntimeError("GEMINI_API_KEY must be set.")

        import google.generativeai as genai
        from google.api_core import exceptions as gexc

        genai.configure(api_key=self.api_key)
        model = genai.GenerativeModel(self.model, system_instruction=system)
        parts: list[Any] = [{"mime_type": img.mime_type, "data": img.data} for img in images]
        parts.append(user)

        try:
            response = model.generate_content(
                parts,
                generation_config={
                    "temperature": 0.0,
                    "max_output_tokens": max_tokens,
                    "response_mime_type": "application/json",
                },
            )
        except (gexc.ResourceExhausted, gexc.ServiceUnavailable,
                gexc.DeadlineExceeded, gexc.InternalServerError) as e:
            raise TransientInferenceError(f"Gemini request failed: {e}") from e

        try:
            return response.text or ""
        except ValueError:
            # .text raises when the candidate was blocked or is empty
            return ""


# ── OpenAI-compatible ──────────────────────────────────────────────

@dataclass
class OpenAICompatibleVisionBackend:
    """Chat-completions endpoint taking ``image_url`` data URLs.

    Works against OpenAI itself or any compatible gateway.
    """

    base_url: str = ""
    api_key: str = ""
    model: str = DEFAULT_OPENAI_MODEL
    detail: str = "low"
    timeout_s: float = 60

    def complete(
        self, system: str, user: str, images: Sequence[ImageInput], *, max_tokens: int,
    ) -> str:
        if not (self.base_url and self.api_key and self.model):
            raise RuntimeError("LLM_BASE_URL, LLM_API_KEY, and LLM_MODEL must be set.")

        url = f"{self.base_url}/chat/completions"
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        content: list[dict] = [{"type": "text", "text": user}]
        content += [
            {
                "type": "image_url",
                "image_url": {"url": f"data:{img.mime_type};base64,{img.b64()}", "detail": self.detail},
            }
            for img in images
        ]
        payload = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": 0,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": content},
            ],
        }

        try:
            r = requests.post(url, headers=headers, json=payload, timeout=self.timeout_s)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientInferenceError(f"Vision request failed: {e}") from e
        if r.status_code == 429 or r.status_code >= 500:
            raise TransientInferenceError(f"Vision service returned HTTP {r.status_code}")
        r.raise_for_status()

        choices = r.json().get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""


# ── Factory ────────────────────────────────────────────────────────

def build_vision_backend(settings: Settings) -> VisionBackend:
    """Construct the backend named by ``settings.vision_provider``."""
    provider = settings.vision_provider
    if provider == "anthropic":
        return AnthropicVisionBackend(api_key=settings.anthropic_api_key, model=settings.anthropic_model)
    if provider == "gemini":
        return GeminiVisionBackend(api_key=settings.gemini_api_key, model=settings.gemini_model)
    if provider == "openai":
        return OpenAICompatibleVisionBackend(
            base_url=settings.llm_base_url or "https://api.openai.com/v1",
            api_key=settings.llm_api_key,
            model=settings.llm_model,
        )
    raise ValueError(f"Unknown VISION_PROVIDER '{provider}', expected anthropic | gemini | openai")
