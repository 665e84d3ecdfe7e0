"""Tests for the bitmap → vector chain (preprocess, lineart, trace, normalize).

The potrace round trip only runs where the binary is installed; the
failure modes of the wrapper are exercised with a patched subprocess.
"""

from __future__ import annotations

import subprocess
import tempfile
import unittest
import xml.etree.ElementTree as ET
from pathlib import Path
from unittest import mock

from PIL import Image

from flatsketch.errors import ErrorKind, ImageProcessingError
from flatsketch.render import GROUP_IDS, top_level_group_ids
from flatsketch.render.svg import find_group
from flatsketch.vectorize import (
    LineArtParams, NormalizeParams, PreprocessParams, TraceParams,
    count_paths, find_potrace, generate_lineart, normalize_svg, normalize_svg_text,
    potrace_command, preprocess_image, to_lineart, vectorize_to_svg,
)
from tests.garment_fixtures import POTRACE_SVG, sketch_png_bytes


class _TempDirCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()


class TestPreprocess(_TempDirCase):

    def test_downscales_long_edge_and_grays(self):
        src = self.dir / "big.png"
        Image.new("RGB", (300, 150), (200, 30, 30)).save(src)
        out = preprocess_image(src, self.dir / "pre.png", PreprocessParams(max_edge_px=100))
        with Image.open(out) as img:
            self.assertEqual(img.size, (100, 50))
            self.assertEqual(img.mode, "L")

    def test_never_upscales(self):
        src = self.dir / "small.png"
        Image.new("RGB", (40, 30), "white").save(src)
        out = preprocess_image(src, self.dir / "pre.png")
        with Image.open(out) as img:
            self.assertEqual(img.size, (40, 30))

    def test_transparency_reads_as_white(self):
        src = self.dir / "alpha.png"
        Image.new("RGBA", (20, 20), (0, 0, 0, 0)).save(src)
        out = preprocess_image(src, self.dir / "pre.png")
        with Image.open(out) as img:
            self.assertEqual(img.getextrema(), (255, 255))

    def test_unreadable_input(self):
        src = self.dir / "not_an_image.png"
        src.write_bytes(b"definitely not a png")
        with self.assertRaises(ImageProcessingError) as ctx:
            preprocess_image(src, self.dir / "pre.png")
        self.assertEqual(ctx.exception.kind, ErrorKind.IMAGE_PROCESSING)
        self.assertEqual(ctx.exception.stage, "preprocess")

    def test_missing_input(self):
        with self.assertRaises(ImageProcessingError):
            preprocess_image(self.dir / "nope.png", self.dir / "pre.png")


class TestLineArt(_TempDirCase):

    def test_output_is_two_tone(self):
        img = Image.linear_gradient("L").resize((64, 64))
        result = to_lineart(img)
        self.assertTrue(set(result.getdata()) <= {0, 255})

    def test_dark_strokes_survive(self):
        src = self.dir / "sketch.png"
        src.write_bytes(sketch_png_bytes())
        out = generate_lineart(src, self.dir / "lineart.png", LineArtParams())
        with Image.open(out) as img:
            self.assertEqual(img.getextrema(), (0, 255))

    def test_median_removes_speckle(self):
        img = Image.new("L", (30, 30), 255)
        img.putpixel((15, 15), 0)
        self.assertEqual(to_lineart(img).getextrema(), (255, 255))


class TestTrace(_TempDirCase):

    def test_command_flags(self):
        cmd = potrace_command("potrace", Path("in.bmp"), Path("out.svg"), TraceParams())
        self.assertEqual(cmd[:3], ["potrace", "in.bmp", "-s"])
        self.assertEqual(cmd[cmd.index("-o") + 1], "out.svg")
        self.assertEqual(cmd[cmd.index("-t") + 1], "2")
        self.assertEqual(cmd[cmd.index("-z") + 1], "black")

    def test_count_paths(self):
        self.assertEqual(count_paths(POTRACE_SVG), 2)
        self.assertEqual(count_paths("<svg"), 0)

    def test_missing_binary(self):
        src = self.dir / "lineart.png"
        src.write_bytes(sketch_png_bytes())
        with self.assertRaises(ImageProcessingError) as ctx:
            vectorize_to_svg(src, self.dir / "raw.svg", potrace_bin="no-such-potrace-binary")
        self.assertEqual(ctx.exception.stage, "vectorize")

    def _fake_run(self, svg_text: str | None, returncode: int = 0):
        def run(cmd, **kwargs):
            if svg_text is not None:
                Path(cmd[cmd.index("-o") + 1]).write_text(svg_text, encoding="utf-8")
            return subprocess.CompletedProcess(cmd, returncode, stdout="", stderr="bad bitmap")
        return run

    def _trace(self, run):
        src = self.dir / "lineart.png"
        src.write_bytes(sketch_png_bytes())
        with mock.patch("flatsketch.vectorize.trace.find_potrace", return_value="/usr/bin/potrace"), \
             mock.patch("flatsketch.vectorize.trace.subprocess.run", side_effect=run):
            return vectorize_to_svg(src, self.dir / "raw.svg")

    def test_zero_paths_is_error(self):
        empty = '<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"><g/></svg>'
        with self.assertRaises(ImageProcessingError):
            self._trace(self._fake_run(empty))
        self.assertFalse((self.dir / "raw.svg").exists())

    def test_nonzero_exit_is_error(self):
        with self.assertRaises(ImageProcessingError) as ctx:
            self._trace(self._fake_run(None, returncode=2))
        self.assertIn("bad bitmap", ctx.exception.message)

    def test_timeout_is_error(self):
        def run(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))
        with self.assertRaises(ImageProcessingError):
            self._trace(run)

    def test_output_written(self):
        out = self._trace(self._fake_run(POTRACE_SVG))
        self.assertEqual(count_paths(out.read_text(encoding="utf-8")), 2)

    @unittest.skipUnless(find_potrace(), "potrace not installed")
    def test_real_potrace(self):
        src = self.dir / "sketch.png"
        src.write_bytes(sketch_png_bytes())
        lineart = generate_lineart(src, self.dir / "lineart.png")
        out = vectorize_to_svg(lineart, self.dir / "raw.svg")
        self.assertGreater(count_paths(out.read_text(encoding="utf-8")), 0)


class TestNormalize(_TempDirCase):

    def test_contract_groups_and_styling(self):
        svg = normalize_svg_text(POTRACE_SVG)
        self.assertEqual(top_level_group_ids(svg), list(GROUP_IDS))
        details = find_group(ET.fromstring(svg), "Details")
        self.assertEqual(len(details), 2)
        for path in details:
            self.assertEqual(path.get("class"), "detail")
            self.assertEqual(path.get("fill"), "none")
            self.assertEqual(path.get("stroke"), "black")
            self.assertEqual(path.get("stroke-width"), "2")
            self.assertIn("scale(0.100000,-0.100000)", path.get("transform"))

    def test_viewbox_preserved(self):
        root = ET.fromstring(normalize_svg_text(POTRACE_SVG))
        self.assertEqual(root.get("viewBox"), "0 0 120.000000 160.000000")
        self.assertEqual(root.get("width"), "120")

    def test_idempotent(self):
        once = normalize_svg_text(POTRACE_SVG)
        self.assertEqual(normalize_svg_text(once), once)

    def test_custom_style(self):
        svg = normalize_svg_text(POTRACE_SVG, NormalizeParams(stroke="#333", stroke_width=1.5))
        path = find_group(ET.fromstring(svg), "Details")[0]
        self.assertEqual(path.get("stroke"), "#333")
        self.assertEqual(path.get("stroke-width"), "1.5")

    def test_no_paths_is_error(self):
        with self.assertRaises(ImageProcessingError):
            normalize_svg_text('<svg xmlns="http://www.w3.org/2000/svg"><g/></svg>')

    def test_unparsable_is_error(self):
        with self.assertRaises(ImageProcessingError):
            normalize_svg_text("<svg><path")

    def test_file_round_trip(self):
        src = self.dir / "raw.svg"
        src.write_text(POTRACE_SVG, encoding="utf-8")
        out = normalize_svg(src, self.dir / "nested" / "normalized.svg")
        self.assertEqual(out.read_text(encoding="utf-8"), normalize_svg_text(POTRACE_SVG))


if __name__ == "__main__":
    unittest.main()
