"""Visual baseline metadata."""

from __future__ import annotations

from pydantic import BaseModel


class BaselineEntry(BaseModel):
    name: str
    image_path: str  # relative path from baselines_dir to the PNG
    width: int
    height: int
    captured_at: str  # ISO timestamp
    image_hash: str  # SHA-256 hex digest
