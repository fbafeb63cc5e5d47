"""Pixel comparator — differing-pixel fraction against a stored baseline."""

from __future__ import annotations

import io
import logging

from PIL import Image, ImageChops

from visual_check.errors import BaselineMissing
from visual_check.models.check_result import PixelDiffResult
from visual_check.storage.baseline_store import BaselineStore

logger = logging.getLogger(__name__)

DIFF_HIGHLIGHT = (255, 0, 0, 255)


def _load_rgba(data: bytes) -> Image.Image:
    with Image.open(io.BytesIO(data)) as img:
        return img.convert("RGBA")


def _on_canvas(img: Image.Image, size: tuple[int, int]) -> Image.Image:
    if img.size == size:
        return img
    canvas = Image.new("RGBA", size, (0, 0, 0, 0))
    canvas.paste(img, (0, 0))
    return canvas


def difference_mask(
    baseline: Image.Image, actual: Image.Image, pixel_tolerance: int = 40
) -> Image.Image:
    """Return an "L" mask, 255 where a pixel differs and 0 elsewhere.

    A pixel differs when any channel moves by more than ``pixel_tolerance``,
    which absorbs anti-aliasing and font rendering noise. Images of different
    sizes are laid on a shared canvas; area outside either image differs.
    """
    size = (max(baseline.width, actual.width), max(baseline.height, actual.height))
    a = _on_canvas(baseline, size)
    b = _on_canvas(actual, size)

    diff = ImageChops.difference(a, b)
    mask = Image.new("L", size, 0)
    for band in diff.split():
        mask = ImageChops.lighter(
            mask, band.point(lambda v: 255 if v > pixel_tolerance else 0)
        )

    if baseline.size != actual.size:
        # Padding is transparent black on both sides, which would compare
        # equal; mark everything outside the overlap as differing.
        overlap = Image.new("L", size, 255)
        overlap.paste(
            0,
            (0, 0, min(baseline.width, actual.width), min(baseline.height, actual.height)),
        )
        mask = ImageChops.lighter(mask, overlap)
    return mask


def render_diff_image(baseline: Image.Image, mask: Image.Image) -> bytes:
    """Baseline faded to grey with differing pixels painted red, as PNG."""
    base = _on_canvas(baseline, mask.size).convert("L").convert("RGBA")
    faded = Image.blend(base, Image.new("RGBA", mask.size, (255, 255, 255, 255)), 0.6)
    highlight = Image.new("RGBA", mask.size, DIFF_HIGHLIGHT)
    out = Image.composite(highlight, faded, mask)
    buf = io.BytesIO()
    out.save(buf, format="PNG")
    return buf.getvalue()


class PixelComparator:
    """Compares captures with baselines held in a BaselineStore."""

    def __init__(self, store: BaselineStore, pixel_tolerance: int = 40):
        self.store = store
        self.pixel_tolerance = pixel_tolerance

    def compare(self, name: str, actual_png: bytes, threshold: float = 0.3) -> PixelDiffResult:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")

        try:
            baseline_png = self.store.require_baseline(name)
        except BaselineMissing:
            logger.info("No baseline for %s, creating it from this capture", name)
            self.store.write_baseline(name, actual_png)
            return PixelDiffResult(
                name=name,
                threshold=threshold,
                passed=True,
                baseline_created=True,
                identical=True,
                baseline_png=actual_png,
            )

        baseline = _load_rgba(baseline_png)
        actual = _load_rgba(actual_png)
        mask = difference_mask(baseline, actual, self.pixel_tolerance)

        total = mask.width * mask.height
        differing = mask.histogram()[255]
        fraction = differing / total if total else 0.0
        size_mismatch = baseline.size != actual.size
        identical = not size_mismatch and all(
            high == 0 for _, high in ImageChops.difference(baseline, actual).getextrema()
        )
        passed = fraction <= threshold

        logger.info(
            "Pixel diff for %s: %.2f%% (threshold: %.2f%%)%s",
            name, fraction * 100, threshold * 100,
            " [size mismatch]" if size_mismatch else "",
        )

        result = PixelDiffResult(
            name=name,
            threshold=threshold,
            passed=passed,
            diff_fraction=fraction,
            differing_pixels=differing,
            total_pixels=total,
            size_mismatch=size_mismatch,
            identical=identical,
            baseline_png=baseline_png,
        )
        if passed:
            return result

        actual_path = self.store.write_actual(name, actual_png)
        diff_path = self.store.write_diff(name, render_diff_image(baseline, mask))
        return result.model_copy(
            update={"actual_path": str(actual_path), "diff_path": str(diff_path)}
        )
