"""Tests for check result models."""

import pytest
from pydantic import ValidationError

from visual_check.models.check_result import (
    AIVerdict,
    CheckReason,
    CheckResult,
    SelectorOutcome,
    StabilizationReport,
    VerdictLabel,
)


class TestCheckResult:

    @pytest.mark.parametrize("reason", [
        CheckReason.EXACT_MATCH,
        CheckReason.WITHIN_THRESHOLD,
        CheckReason.AI_OVERRIDE_MINOR,
    ])
    def test_passing_reasons(self, reason):
        assert CheckResult(name="home", passed=True, reason=reason).passed is True

    @pytest.mark.parametrize("reason", [CheckReason.FAILED_SIGNIFICANT, CheckReason.FAILED_NO_AI])
    def test_failing_reasons(self, reason):
        assert CheckResult(name="home", passed=False, reason=reason).passed is False

    def test_failed_ai_override_is_impossible(self):
        with pytest.raises(ValidationError):
            CheckResult(name="home", passed=False, reason=CheckReason.AI_OVERRIDE_MINOR)

    def test_passed_with_failure_reason_rejected(self):
        with pytest.raises(ValidationError):
            CheckResult(name="home", passed=True, reason=CheckReason.FAILED_SIGNIFICANT)

    def test_immutable(self):
        result = CheckResult(name="home", passed=True, reason=CheckReason.EXACT_MATCH)
        with pytest.raises(ValidationError):
            result.passed = False

    def test_serializes_reason_value(self):
        result = CheckResult(name="home", passed=False, reason=CheckReason.FAILED_NO_AI)
        assert result.model_dump(mode="json")["reason"] == "FAILED_NO_AI"


class TestAIVerdict:

    def test_defaults(self):
        verdict = AIVerdict(label=VerdictLabel.UNAVAILABLE)
        assert verdict.rationale == ""
        assert verdict.raw_response is None


class TestStabilizationReport:

    def test_failed_selectors(self):
        report = StabilizationReport(
            hidden=[SelectorOutcome(selector="video", matched=1),
                    SelectorOutcome(selector="bad[", status="error", error="syntax")],
            masked=[SelectorOutcome(selector=".clock", status="not-found")],
        )
        assert [o.selector for o in report.failed_selectors] == ["bad["]
