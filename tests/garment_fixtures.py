"""Shared fixtures — a scripted vision backend, canned replies and test images.

Nothing here talks to a real model or needs potrace.  The fake backend
plays back a script of replies (strings are returned, exceptions are
raised); once the script is down to its last entry that entry repeats.
"""

from __future__ import annotations

import io
import json
from pathlib import Path

from PIL import Image, ImageDraw

from flatsketch.jobs import FileJobStore, JobProcessor
from flatsketch.storage import ProjectStorage
from flatsketch.vision import RetryPolicy, VisionExtractor


class FakeVisionBackend:
    def __init__(self, *script):
        self.script = list(script)
        self.calls: list[dict] = []

    def complete(self, system, user, images, *, max_tokens):
        self.calls.append({"system": system, "user": user, "images": list(images),
                           "max_tokens": max_tokens})
        reply = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply


def make_extractor(backend) -> VisionExtractor:
    """Extractor whose retries never sleep."""
    return VisionExtractor(backend, RetryPolicy(sleep=lambda _s: None))


def make_processor(root: Path, backend, **kwargs) -> JobProcessor:
    return JobProcessor(
        FileJobStore(Path(root) / "_records"),
        ProjectStorage(Path(root)),
        make_extractor(backend),
        **kwargs,
    )


# ── Canned replies ─────────────────────────────────────────────────

def hoodie_reply(confidence: float = 0.82, kangaroo: bool = True, **features) -> str:
    return json.dumps({
        "category": "hoodie",
        "view": "front",
        "params": {
            "bodyWidth": 0.72,
            "bodyLength": 0.6,
            "shoulderWidth": 0.5,
            "sleeveLength": 0.6,
            "sleeveWidth": 0.3,
            "hoodWidth": 0.4,
            "hoodHeight": 0.3,
            "pocketTopY": 0.55,
        },
        "features": {
            "zip": False,
            "kangarooPocket": kangaroo,
            "drawcord": True,
            "ribHem": True,
            "ribCuff": True,
            **features,
        },
        "confidence": confidence,
    })


EXPANDED_REPLY = json.dumps({
    "category": "hoodie",
    "sub_type": "zip_hoodie",
    "fit": "oversized",
    "params": {"bodyWidth": 0.8, "bodyLength": 0.7},
    "features": {"zip": True, "zipperPullType": "loop_pull"},
    "material": {"primary": "Fleece", "weight_estimate": "heavyweight"},
    "color": {"primary_hex": "#112233", "primary_name": "Navy", "accent_hex": "nope"},
    "construction": {"shoulder_type": "drop", "hem_style": "folded", "seam_type": "stapled"},
    "branding": {"position": "", "type": "", "description": ""},
    "proportions": {"silhouette": "trapezoid", "hoodSize": "huge"},
    "confidence": 0.9,
})


# ── Images ─────────────────────────────────────────────────────────

def png_bytes(size: tuple[int, int] = (64, 48), color="white", mode: str = "RGB") -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format="PNG")
    return buf.getvalue()


def sketch_png_bytes(size: tuple[int, int] = (120, 160)) -> bytes:
    """Small black-on-white drawing of a garment body."""
    img = Image.new("RGB", size, "white")
    draw = ImageDraw.Draw(img)
    w, h = size
    draw.rectangle([w * 0.2, h * 0.15, w * 0.8, h * 0.9], outline="black", width=3)
    draw.line([w * 0.2, h * 0.2, w * 0.05, h * 0.55], fill="black", width=3)
    draw.line([w * 0.8, h * 0.2, w * 0.95, h * 0.55], fill="black", width=3)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


POTRACE_SVG = """<?xml version="1.0" standalone="no"?>
<svg version="1.0" xmlns="http://www.w3.org/2000/svg"
 width="120.000000pt" height="160.000000pt" viewBox="0 0 120.000000 160.000000"
 preserveAspectRatio="xMidYMid meet">
<metadata>
Created by potrace 1.16, written by Peter Selinger 2001-2019
</metadata>
<g transform="translate(0.000000,160.000000) scale(0.100000,-0.100000)"
fill="#000000" stroke="none">
<path d="M240 1360 l0 -1210 360 0 360 0 0 1210 0 1210 -360 0
-360 0 0 -1210z"/>
<path d="M100 800 l-60 -300 30 0 60 300z"/>
</g>
</svg>
"""
