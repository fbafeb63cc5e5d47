"""AI escalation — asks Claude to judge a screenshot difference."""

from __future__ import annotations

import asyncio
import base64
import logging
import re
from typing import Optional

from visual_check.ai.client import AIClient
from visual_check.ai.prompts.visual_diff import VISUAL_DIFF_SYSTEM_PROMPT, build_visual_diff_prompt
from visual_check.errors import ClassifierError, ClassifierUnavailable
from visual_check.models.check_result import AIVerdict, VerdictLabel

logger = logging.getLogger(__name__)

MINOR_TOKENS = ("minor", "insignificant", "acceptable")

_LEADING_LABEL_RE = re.compile(r"^\W*(MINOR|SIGNIFICANT)\b", re.IGNORECASE)


def parse_verdict(text: str, strict: bool = False) -> AIVerdict:
    """Map a free-text classifier response to a verdict.

    The permissive mode treats any mention of "minor", "insignificant" or
    "acceptable" as MINOR, so "this is NOT minor" passes. Strict mode only
    honours a leading MINOR/SIGNIFICANT label and treats everything else as
    SIGNIFICANT.
    """
    rationale = text.strip()
    if strict:
        match = _LEADING_LABEL_RE.match(rationale)
        if match and match.group(1).upper() == "MINOR":
            label = VerdictLabel.MINOR
        else:
            label = VerdictLabel.SIGNIFICANT
    else:
        lowered = rationale.lower()
        if any(token in lowered for token in MINOR_TOKENS):
            label = VerdictLabel.MINOR
        else:
            label = VerdictLabel.SIGNIFICANT
    return AIVerdict(label=label, rationale=rationale, raw_response=text)


class AIEscalator:
    """Single-shot classification of a failed pixel comparison."""

    def __init__(
        self,
        ai_client: Optional[AIClient],
        timeout_seconds: float = 60.0,
        strict_labels: bool = False,
    ):
        self.ai_client = ai_client
        self.timeout_seconds = timeout_seconds
        self.strict_labels = strict_labels

    @property
    def available(self) -> bool:
        return self.ai_client is not None and self.ai_client.configured

    async def classify(
        self,
        name: str,
        baseline_png: bytes,
        actual_png: bytes,
        diff_fraction: float | None = None,
    ) -> AIVerdict:
        """Return MINOR, SIGNIFICANT or UNAVAILABLE. Never raises for AI failures."""
        if not self.available:
            logger.info("No AI credential configured. Skipping AI analysis for %s.", name)
            return AIVerdict(label=VerdictLabel.UNAVAILABLE, rationale="AI credential not configured")

        expected_b64 = base64.b64encode(baseline_png).decode()
        actual_b64 = base64.b64encode(actual_png).decode()
        user_message = build_visual_diff_prompt(name, diff_fraction)

        try:
            text = await asyncio.wait_for(
                asyncio.to_thread(
                    self.ai_client.complete_with_images,
                    system_prompt=VISUAL_DIFF_SYSTEM_PROMPT,
                    user_message=user_message,
                    images_base64=[expected_b64, actual_b64],
                ),
                timeout=self.timeout_seconds,
            )
        except ClassifierUnavailable as e:
            logger.info("AI unavailable for %s: %s", name, e)
            return AIVerdict(label=VerdictLabel.UNAVAILABLE, rationale=str(e))
        except ClassifierError as e:
            logger.error("Error during AI analysis of %s: %s", name, e)
            return AIVerdict(label=VerdictLabel.UNAVAILABLE, rationale=f"AI call failed: {e}")
        except asyncio.TimeoutError:
            logger.error("AI analysis of %s timed out after %.1fs", name, self.timeout_seconds)
            return AIVerdict(
                label=VerdictLabel.UNAVAILABLE,
                rationale=f"AI call timed out after {self.timeout_seconds:.1f}s",
            )
        except Exception as e:
            logger.error("Unexpected error during AI analysis of %s: %s", name, e)
            return AIVerdict(label=VerdictLabel.UNAVAILABLE, rationale=f"AI call failed: {e}")

        if not text.strip():
            logger.warning("AI returned an empty response for %s", name)
            return AIVerdict(label=VerdictLabel.UNAVAILABLE, rationale="AI returned an empty response")

        verdict = parse_verdict(text, strict=self.strict_labels)
        logger.debug("AI verdict for %s: %s - %s", name, verdict.label.value, verdict.rationale)
        return verdict
