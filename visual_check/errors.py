"""Error kinds raised inside the visual check pipeline."""

from __future__ import annotations

from typing import Optional


class VisualCheckError(Exception):
    """Base class for all visual check errors."""


class BaselineMissing(VisualCheckError):
    """No baseline image is stored for a check name."""

    def __init__(self, name: str):
        super().__init__(f"No baseline stored for '{name}'")
        self.name = name


class ThresholdExceeded(VisualCheckError):
    """Pixel comparison found more differing pixels than the threshold allows.

    This is the only error that reaches callers as a hard failure. The AI
    stage may suppress it but never replaces it.
    """

    def __init__(
        self,
        name: str,
        diff_fraction: float,
        threshold: float,
        actual_path: Optional[str] = None,
        diff_path: Optional[str] = None,
    ):
        msg = (
            f"Screenshot '{name}' differs from baseline: "
            f"{diff_fraction:.2%} of pixels differ (threshold: {threshold:.2%})"
        )
        if actual_path:
            msg += f"; actual: {actual_path}"
        if diff_path:
            msg += f"; diff: {diff_path}"
        super().__init__(msg)
        self.name = name
        self.diff_fraction = diff_fraction
        self.threshold = threshold
        self.actual_path = actual_path
        self.diff_path = diff_path


class ClassifierUnavailable(VisualCheckError):
    """No API credential is configured for the AI classifier."""


class ClassifierError(VisualCheckError):
    """The AI classifier call failed (transport, API or timeout)."""


class SelectorNotFound(VisualCheckError):
    """A stabilization selector matched no elements."""

    def __init__(self, selector: str):
        super().__init__(f"No elements match selector '{selector}'")
        self.selector = selector
