"""Baseline store — named PNG baselines plus actual/diff artifacts on disk."""

from __future__ import annotations

import hashlib
import io
import json
import logging
import os
import tempfile
import time
from pathlib import Path

from PIL import Image

from visual_check.errors import BaselineMissing
from visual_check.models.visual_baseline import BaselineEntry

logger = logging.getLogger(__name__)

# Artifact files share the directory with baselines, so no baseline may
# carry one of these suffixes.
ARTIFACT_SUFFIXES = ("-actual", "-diff")


def is_artifact_name(name: str) -> bool:
    return name.endswith(ARTIFACT_SUFFIXES)


def _atomic_write(path: Path, data: bytes) -> None:
    """Write bytes via a temp file in the same directory, then rename over."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class BaselineStore:
    """Stores baseline, last-actual and last-diff images keyed by check name.

    Each name owns its own files, so checks with different names never
    contend for anything on disk.
    """

    def __init__(self, baselines_dir: Path):
        self.baselines_dir = Path(baselines_dir)

    def baseline_path(self, name: str) -> Path:
        return self.baselines_dir / f"{name}.png"

    def actual_path(self, name: str) -> Path:
        return self.baselines_dir / f"{name}-actual.png"

    def diff_path(self, name: str) -> Path:
        return self.baselines_dir / f"{name}-diff.png"

    def _entry_path(self, name: str) -> Path:
        return self.baselines_dir / f"{name}.json"

    def paths_for(self, name: str) -> dict[str, Path]:
        return {
            "baseline": self.baseline_path(name),
            "actual": self.actual_path(name),
            "diff": self.diff_path(name),
        }

    def read_baseline(self, name: str) -> bytes | None:
        """Return the stored baseline bytes, or None if there is none."""
        path = self.baseline_path(name)
        if not path.exists():
            return None
        return path.read_bytes()

    def require_baseline(self, name: str) -> bytes:
        """Return the stored baseline bytes or raise BaselineMissing."""
        data = self.read_baseline(name)
        if data is None:
            raise BaselineMissing(name)
        return data

    def write_baseline(self, name: str, image: bytes) -> BaselineEntry:
        """Store a new baseline and its metadata sidecar."""
        if is_artifact_name(name):
            raise ValueError(f"Baseline name {name!r} collides with an artifact file name")
        dest = self.baseline_path(name)
        _atomic_write(dest, image)

        with Image.open(io.BytesIO(image)) as img:
            width, height = img.size

        entry = BaselineEntry(
            name=name,
            image_path=str(dest.relative_to(self.baselines_dir)),
            width=width,
            height=height,
            captured_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            image_hash=hashlib.sha256(image).hexdigest(),
        )
        _atomic_write(
            self._entry_path(name),
            json.dumps(entry.model_dump(), indent=2).encode("utf-8"),
        )
        logger.info("Stored baseline for %s (%dx%d)", name, width, height)
        return entry

    def write_actual(self, name: str, image: bytes) -> Path:
        path = self.actual_path(name)
        _atomic_write(path, image)
        logger.debug("Wrote actual image for %s to %s", name, path)
        return path

    def write_diff(self, name: str, image: bytes) -> Path:
        path = self.diff_path(name)
        _atomic_write(path, image)
        logger.debug("Wrote diff image for %s to %s", name, path)
        return path

    def get_entry(self, name: str) -> BaselineEntry | None:
        """Look up baseline metadata; None if the baseline image is gone."""
        if not self.baseline_path(name).exists():
            return None
        entry_path = self._entry_path(name)
        if not entry_path.exists():
            return None
        try:
            with open(entry_path) as f:
                return BaselineEntry(**json.load(f))
        except Exception as e:
            logger.warning("Failed to read baseline metadata for %s: %s", name, e)
            return None

    def list_names(self) -> list[str]:
        """Names of all stored baselines."""
        if not self.baselines_dir.exists():
            return []
        names = []
        for path in sorted(self.baselines_dir.glob("*.png")):
            stem = path.stem
            if is_artifact_name(stem):
                continue
            names.append(stem)
        return names

    def list_entries(self) -> list[BaselineEntry]:
        entries = []
        for name in self.list_names():
            entry = self.get_entry(name)
            if entry is not None:
                entries.append(entry)
        return entries

    def delete(self, name: str) -> bool:
        """Remove a baseline and its artifacts. Returns True if anything was removed."""
        removed = False
        for path in [*self.paths_for(name).values(), self._entry_path(name)]:
            if path.exists():
                path.unlink()
                removed = True
        if removed:
            logger.info("Deleted baseline %s", name)
        return removed
