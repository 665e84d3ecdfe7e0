"""Command line interface over the job pipeline and the renderer."""

from __future__ import annotations

import argparse
import json
import logging
import mimetypes
import sys
from pathlib import Path

from flatsketch.config import Settings
from flatsketch.render import render_flat_svg
from flatsketch.vision import GARMENT_CATEGORIES


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="flatsketch", description="Garment image → parameters → vector flat sketch")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    sv = sub.add_parser("serve", help="Start the HTTP server")
    sv.add_argument("--host", default="127.0.0.1", help="Host to bind")
    sv.add_argument("--port", type=int, default=8000, help="Port to bind")

    sb = sub.add_parser("submit", help="Create a project from an image and queue its first job")
    sb.add_argument("image", help="Path to the uploaded image")
    sb.add_argument("--category", required=True, choices=GARMENT_CATEGORIES)
    sb.add_argument("--title", default="", help="Project title")
    sb.add_argument("--mime", default=None, help="MIME type (guessed from the extension if omitted)")

    rn = sub.add_parser("run", help="Process the next queued job")
    rn.add_argument("--all", action="store_true", help="Drain the queue instead")

    rd = sub.add_parser("render", help="Render a flat sketch from parameters (no vision call)")
    rd.add_argument("category", choices=GARMENT_CATEGORIES)
    rd.add_argument("--params", default=None, help="JSON object of numeric params")
    rd.add_argument("--features", default=None, help="JSON object of feature flags")
    rd.add_argument("--template-dir", default=None, help="Use <category>.svg templates from here")
    rd.add_argument("--out", required=True, help="Output SVG path")

    st = sub.add_parser("status", help="Print a project's status as JSON")
    st.add_argument("project_id")

    return p


def _json_arg(value: str | None, name: str) -> dict | None:
    if value is None:
        return None
    try:
        obj = json.loads(value)
    except json.JSONDecodeError as e:
        raise SystemExit(f"--{name}: invalid JSON ({e})")
    if not isinstance(obj, dict):
        raise SystemExit(f"--{name}: expected a JSON object")
    return obj


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "serve":
        from flatsketch.web.server import main as serve
        serve(host=args.host, port=args.port)
        return 0

    if args.cmd == "render":
        svg = render_flat_svg(
            args.category,
            _json_arg(args.params, "params"),
            _json_arg(args.features, "features"),
            template_dir=Path(args.template_dir) if args.template_dir else None,
        )
        out = Path(args.out)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(svg, encoding="utf-8")
        print(f"Wrote {out}")
        return 0

    # Remaining commands work against the configured project store.
    from flatsketch.jobs import build_processor, project_status, run_next_job, run_until_idle, submit_project

    processor = build_processor(Settings.from_env())

    if args.cmd == "submit":
        path = Path(args.image)
        mime = args.mime or mimetypes.guess_type(path.name)[0]
        project = submit_project(processor.store, processor.storage, path.read_bytes(),
                                 category=args.category, title=args.title, mime_type=mime)
        print(project.id)
        return 0

    if args.cmd == "run":
        if args.all:
            jobs = run_until_idle(processor)
            failed = [j for j in jobs if j.error_message]
            print(f"Processed {len(jobs)} job(s), {len(failed)} failed")
            return 1 if failed else 0
        try:
            job = run_next_job(processor)
        except Exception as e:
            print(f"Job failed: {e}", file=sys.stderr)
            return 1
        if job is None:
            print("Queue is empty")
            return 0
        print(f"{job.id} {job.step.value} {job.status.value} {job.progress}%")
        return 0

    if args.cmd == "status":
        status = project_status(processor.store, processor.storage, args.project_id)
        if status is None:
            print(f"Unknown project: {args.project_id}", file=sys.stderr)
            return 1
        print(json.dumps(status, indent=2))
        return 0

    return 2
