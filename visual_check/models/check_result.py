"""Result data structures produced by a visual check."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CheckReason(str, Enum):
    EXACT_MATCH = "EXACT_MATCH"
    WITHIN_THRESHOLD = "WITHIN_THRESHOLD"
    AI_OVERRIDE_MINOR = "AI_OVERRIDE_MINOR"
    FAILED_SIGNIFICANT = "FAILED_SIGNIFICANT"
    FAILED_NO_AI = "FAILED_NO_AI"


PASSING_REASONS = frozenset(
    {CheckReason.EXACT_MATCH, CheckReason.WITHIN_THRESHOLD, CheckReason.AI_OVERRIDE_MINOR}
)


class VerdictLabel(str, Enum):
    MINOR = "MINOR"
    SIGNIFICANT = "SIGNIFICANT"
    UNAVAILABLE = "UNAVAILABLE"


class AIVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: VerdictLabel
    rationale: str = ""
    raw_response: Optional[str] = None


class SelectorOutcome(BaseModel):
    """What happened to one selector during stabilization."""
    selector: str
    status: str = "found"  # found, not-found, error
    matched: int = 0
    error: Optional[str] = None


class StabilizationReport(BaseModel):
    network_idle: bool = True
    animations_settled: Optional[bool] = None  # None when the wait was skipped
    hidden: list[SelectorOutcome] = Field(default_factory=list)
    masked: list[SelectorOutcome] = Field(default_factory=list)

    @property
    def failed_selectors(self) -> list[SelectorOutcome]:
        return [o for o in self.hidden + self.masked if o.status == "error"]


class PixelDiffResult(BaseModel):
    """Outcome of comparing a capture against its baseline."""
    name: str
    threshold: float
    passed: bool
    diff_fraction: float = 0.0
    differing_pixels: int = 0
    total_pixels: int = 0
    size_mismatch: bool = False
    baseline_created: bool = False
    identical: bool = False  # no channel of any pixel differs
    actual_path: Optional[str] = None
    diff_path: Optional[str] = None
    baseline_png: Optional[bytes] = Field(default=None, repr=False, exclude=True)


class CheckResult(BaseModel):
    """Final verdict for one named visual check. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    name: str
    passed: bool
    reason: CheckReason
    rationale: Optional[str] = None
    threshold: float = 0.3
    diff_fraction: Optional[float] = None
    baseline_created: bool = False
    ai_attempted: bool = False
    ai_consulted: bool = False  # a MINOR or SIGNIFICANT verdict came back
    actual_path: Optional[str] = None
    diff_path: Optional[str] = None
    error: Optional[str] = None  # message of the original pixel-diff failure
    stabilization: Optional[StabilizationReport] = None

    @model_validator(mode="after")
    def _passed_matches_reason(self) -> "CheckResult":
        if self.passed != (self.reason in PASSING_REASONS):
            raise ValueError(
                f"passed={self.passed} is inconsistent with reason {self.reason.value}"
            )
        return self
