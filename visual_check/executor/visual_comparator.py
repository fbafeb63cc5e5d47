"""Visual comparator — stabilize, capture, diff, escalate, reconcile."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

from playwright.async_api import Page

from visual_check.ai.client import AIClient, set_debug_dir
from visual_check.errors import ThresholdExceeded
from visual_check.executor.capture_backend import CaptureBackend, PlaywrightCaptureBackend
from visual_check.executor.escalator import AIEscalator
from visual_check.executor.pixel_comparator import PixelComparator
from visual_check.executor.stabilizer import Stabilizer
from visual_check.models.check_result import (
    CheckReason,
    CheckResult,
    PixelDiffResult,
    StabilizationReport,
    VerdictLabel,
)
from visual_check.models.config import CheckOptions, StabilizationPolicy, VisualCheckConfig
from visual_check.storage.baseline_store import ARTIFACT_SUFFIXES, BaselineStore, is_artifact_name

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def validate_check_name(name: str) -> None:
    """Raise ValueError unless name is a non-empty filesystem-safe identifier."""
    if not name or not _NAME_RE.match(name) or name.endswith("."):
        raise ValueError(
            f"Invalid visual check name {name!r}: use letters, digits, '.', '_' or '-'"
        )
    if is_artifact_name(name):
        raise ValueError(
            f"Invalid visual check name {name!r}: names may not end in "
            + " or ".join(repr(s) for s in ARTIFACT_SUFFIXES)
        )


class VisualComparator:
    """Owns the pass/fail verdict for named visual checks on one page."""

    def __init__(
        self,
        backend: CaptureBackend,
        store: BaselineStore,
        escalator: AIEscalator,
        config: VisualCheckConfig | None = None,
    ):
        self.config = config or VisualCheckConfig()
        self.backend = backend
        self.store = store
        self.escalator = escalator
        self.stabilizer = Stabilizer(backend, self.config.network_idle_timeout_ms)
        self.pixel_comparator = PixelComparator(store, self.config.pixel_tolerance)
        self._seen_names: set[str] = set()

    @classmethod
    def from_page(cls, page: Page, config: VisualCheckConfig | None = None) -> "VisualComparator":
        """Wire a comparator for a Playwright page from configuration."""
        config = config or VisualCheckConfig()
        set_debug_dir(Path(config.debug_dir))
        ai_client = AIClient(
            api_key=config.anthropic_api_key,
            model=config.ai_model,
            max_tokens=config.ai_max_tokens,
            timeout=config.ai_timeout_seconds,
        )
        if not ai_client.configured:
            logger.warning("Anthropic API key not provided. AI analysis is disabled.")
        escalator = AIEscalator(
            ai_client,
            timeout_seconds=config.ai_timeout_seconds,
            strict_labels=config.ai_strict_labels,
        )
        return cls(
            backend=PlaywrightCaptureBackend(page),
            store=BaselineStore(Path(config.baselines_dir)),
            escalator=escalator,
            config=config,
        )

    async def setup_visual_test(
        self, policy: Optional[StabilizationPolicy] = None
    ) -> StabilizationReport:
        """Stabilize the page without capturing."""
        return await self.stabilizer.stabilize(policy or self.config.stabilization)

    async def run_visual_check(
        self, name: str, options: Optional[CheckOptions] = None
    ) -> CheckResult:
        """Run one named check and return its verdict."""
        result, _ = await self._run(name, options)
        return result

    async def compare_full_page(
        self, name: str, options: Optional[CheckOptions] = None
    ) -> CheckResult:
        """Assertion form of run_visual_check.

        Raises the original ThresholdExceeded when the check fails.
        """
        result, error = await self._run(name, options)
        if error is not None and not result.passed:
            raise error
        return result

    async def _run(
        self, name: str, options: Optional[CheckOptions]
    ) -> tuple[CheckResult, Optional[ThresholdExceeded]]:
        validate_check_name(name)
        if name in self._seen_names:
            raise ValueError(f"Visual check name {name!r} was already used in this run")
        self._seen_names.add(name)

        options = self.config.resolve_options(options)
        threshold = options.threshold

        report = await self.stabilizer.stabilize(options.stabilize)
        actual_png = await self.backend.capture_full_page()
        logger.debug("Captured %s (%d bytes)", name, len(actual_png))

        diff = self.pixel_comparator.compare(name, actual_png, threshold)
        if diff.passed:
            result = self._passed_result(diff, report)
            self._log_trace(result)
            return result, None

        error = ThresholdExceeded(
            name, diff.diff_fraction, threshold, diff.actual_path, diff.diff_path
        )
        logger.info("Visual test failed for %s. Analyzing with AI...", name)

        ai_attempted = self.escalator.available
        verdict = await self.escalator.classify(
            name, diff.baseline_png, actual_png, diff.diff_fraction
        )

        if verdict.label is VerdictLabel.MINOR:
            logger.info("AI determined differences are acceptable. %s passes.", name)
            reason = CheckReason.AI_OVERRIDE_MINOR
        elif verdict.label is VerdictLabel.SIGNIFICANT:
            logger.info("AI determined differences are significant. %s fails.", name)
            reason = CheckReason.FAILED_SIGNIFICANT
        else:
            reason = CheckReason.FAILED_NO_AI

        result = CheckResult(
            name=name,
            passed=reason is CheckReason.AI_OVERRIDE_MINOR,
            reason=reason,
            rationale=verdict.rationale or None,
            threshold=threshold,
            diff_fraction=diff.diff_fraction,
            ai_attempted=ai_attempted,
            ai_consulted=verdict.label is not VerdictLabel.UNAVAILABLE,
            actual_path=diff.actual_path,
            diff_path=diff.diff_path,
            error=str(error),
            stabilization=report,
        )
        self._log_trace(result)
        return result, error

    @staticmethod
    def _passed_result(diff: PixelDiffResult, report: StabilizationReport) -> CheckResult:
        exact = diff.baseline_created or diff.identical
        return CheckResult(
            name=diff.name,
            passed=True,
            reason=CheckReason.EXACT_MATCH if exact else CheckReason.WITHIN_THRESHOLD,
            threshold=diff.threshold,
            diff_fraction=None if diff.baseline_created else diff.diff_fraction,
            baseline_created=diff.baseline_created,
            stabilization=report,
        )

    @staticmethod
    def _log_trace(result: CheckResult) -> None:
        diff_text = "n/a" if result.diff_fraction is None else f"{result.diff_fraction:.2%}"
        logger.info(
            "Visual check %s: %s (%s) diff=%s threshold=%.2f%% ai=%s",
            result.name,
            "PASS" if result.passed else "FAIL",
            result.reason.value,
            diff_text,
            result.threshold * 100,
            _ai_trace(result),
        )
        if result.rationale:
            logger.info("AI Analysis for %s: %s", result.name, result.rationale)


def _ai_trace(result: CheckResult) -> str:
    if result.ai_consulted:
        return "yes"
    if result.ai_attempted:
        return "failed"
    return "no"
