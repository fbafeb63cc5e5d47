"""Configuration models for visual checks."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_FLAKEY_SELECTORS = [
    "video",
    ".animation",
    ".gif",
    '[data-testid="loading"]',
    ".loading",
    ".spinner",
]


class StabilizationPolicy(BaseModel):
    """Pre-capture steps applied to the page before every screenshot."""

    hide_flakey: bool = True
    mask_selectors: list[str] = Field(default_factory=list)
    wait_for_animations: bool = True
    animation_timeout_ms: int = Field(default=3000, ge=0)
    flakey_selectors: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FLAKEY_SELECTORS)
    )
    mask_color: str = "#cccccc"


class CheckOptions(BaseModel):
    """Per-check options for a single visual comparison."""

    stabilize: StabilizationPolicy = Field(default_factory=StabilizationPolicy)
    threshold: float = Field(default=0.3, ge=0.0, le=1.0)


class VisualCheckConfig(BaseModel):
    # Baseline storage
    baselines_dir: str = "base-images"

    # Pixel comparison
    default_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    pixel_tolerance: int = Field(default=40, ge=0, le=255)  # per-channel delta

    # Stabilization
    network_idle_timeout_ms: int = 10000
    stabilization: StabilizationPolicy = Field(default_factory=StabilizationPolicy)

    # AI settings
    anthropic_api_key: Optional[str] = Field(
        default="env:ANTHROPIC_API_KEY", validate_default=True
    )
    ai_model: str = "claude-sonnet-4-20250514"
    ai_max_tokens: int = 300
    ai_timeout_seconds: float = 60.0
    ai_strict_labels: bool = False

    # Debug output for AI exchanges
    debug_dir: str = "./.visual-check/debug"

    @field_validator("anthropic_api_key", mode="before")
    @classmethod
    def resolve_env_api_key(cls, v: Optional[str]) -> Optional[str]:
        # An unset variable means "AI not configured", which is a normal state.
        if isinstance(v, str) and v.startswith("env:"):
            return os.environ.get(v[4:]) or None
        return v or None

    def default_options(self) -> CheckOptions:
        """Build check options from the configured defaults."""
        return CheckOptions(
            stabilize=self.stabilization.model_copy(deep=True),
            threshold=self.default_threshold,
        )

    def resolve_options(self, options: Optional[CheckOptions] = None) -> CheckOptions:
        """Fill any field the caller did not set from the configured defaults."""
        defaults = self.default_options()
        if options is None:
            return defaults
        explicit = options.model_fields_set
        return CheckOptions(
            stabilize=options.stabilize if "stabilize" in explicit else defaults.stabilize,
            threshold=options.threshold if "threshold" in explicit else defaults.threshold,
        )

    @classmethod
    def load(cls, path: str | Path) -> "VisualCheckConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file. The API key itself is never written."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump(exclude={"anthropic_api_key"})
        data["anthropic_api_key"] = "env:ANTHROPIC_API_KEY"
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
