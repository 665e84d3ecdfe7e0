"""Runtime configuration — environment, paths, and pipeline constants.

Environment variables are read from the process environment, with
``.env`` / ``.env.local`` at the repository root loaded as a fallback
(existing variables are never overwritten).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


ROOT = Path(__file__).resolve().parent.parent


# ── .env loader ────────────────────────────────────────────────────

def _load_env() -> None:
    for name in (".env", ".env.local"):
        p = ROOT / name
        if p.exists():
            for line in p.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if line and "=" in line and not line.startswith("#"):
                    k, v = line.split("=", 1)
                    k = k.strip()
                    v = v.strip().strip('"').strip("'")
                    if k and k not in os.environ:
                        os.environ[k] = v

_load_env()


# ── Pipeline constants ─────────────────────────────────────────────

PHOTO_SIZE_THRESHOLD_BYTES = 100_000
"""Files above this size with an unrecognised MIME type route to ``photo``."""

LOW_CONFIDENCE_THRESHOLD = 0.6
"""Photo-path results below this confidence are flagged ``template_mode``."""

VISION_MAX_RETRIES = 2          # 3 attempts total
VISION_RETRY_DELAY_S = 1.0      # delay = attempt_index × this

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-6"
DEFAULT_GEMINI_MODEL = "gemini-flash-latest"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


# ── Settings ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class Settings:
    """Values that differ between deployments."""

    data_dir: Path
    """Root folder holding one sub-folder per project plus job records."""

    template_dir: Path
    """Folder probed for ``<category>.svg`` flat templates."""

    vision_provider: str = "anthropic"     # anthropic | gemini | openai
    anthropic_api_key: str = ""
    anthropic_model: str = DEFAULT_ANTHROPIC_MODEL
    gemini_api_key: str = ""
    gemini_model: str = DEFAULT_GEMINI_MODEL
    llm_base_url: str = ""
    llm_api_key: str = ""
    llm_model: str = DEFAULT_OPENAI_MODEL
    potrace_bin: str = "potrace"

    @property
    def records_dir(self) -> Path:
        """Project / job / asset JSON records, alongside the project folders."""
        return self.data_dir / "_records"

    @classmethod
    def from_env(cls) -> Settings:
        env = os.environ
        return cls(
            data_dir=Path(env.get("FLATSKETCH_DATA_DIR", ROOT / "outputs" / "projects")),
            template_dir=Path(env.get("FLATSKETCH_TEMPLATE_DIR", ROOT / "templates" / "flats")),
            vision_provider=env.get("VISION_PROVIDER", "anthropic").strip().lower(),
            anthropic_api_key=env.get("ANTHROPIC_API_KEY", ""),
            anthropic_model=env.get("ANTHROPIC_VISION_MODEL", DEFAULT_ANTHROPIC_MODEL),
            gemini_api_key=env.get("GEMINI_API_KEY", ""),
            gemini_model=env.get("GEMINI_VISION_MODEL", DEFAULT_GEMINI_MODEL),
            llm_base_url=env.get("LLM_BASE_URL", "").rstrip("/"),
            llm_api_key=env.get("LLM_API_KEY", ""),
            llm_model=env.get("LLM_MODEL", DEFAULT_OPENAI_MODEL),
            potrace_bin=env.get("POTRACE_BIN", "potrace"),
        )
