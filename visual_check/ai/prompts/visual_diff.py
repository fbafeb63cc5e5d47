"""Prompts for classifying screenshot differences."""

VISUAL_DIFF_SYSTEM_PROMPT = """You are an expert QA engineer reviewing visual regression test failures. You are shown two screenshots of the same web page and must decide whether the differences between them matter to a user.

Your response MUST start with exactly one of these labels: MINOR or SIGNIFICANT."""

MINOR_DIFFERENCES = [
    "Small font rendering variations",
    "Slight color differences due to browser rendering",
    "Minor spacing adjustments (under 3 pixels)",
    "Anti-aliasing differences",
    "Loading states or animations captured at different times",
]

SIGNIFICANT_DIFFERENCES = [
    "Layout changes (elements moved, resized, or missing)",
    "Color scheme changes",
    "Text content changes",
    "New or removed UI elements",
    "Broken layouts or styling",
]


def build_visual_diff_prompt(check_name: str, diff_fraction: float | None = None) -> str:
    """Build the user message sent alongside the baseline and actual images."""
    minor = "\n".join(f"- {item}" for item in MINOR_DIFFERENCES)
    significant = "\n".join(f"- {item}" for item in SIGNIFICANT_DIFFERENCES)
    stats = ""
    if diff_fraction is not None:
        stats = f"Pixel comparison flagged {diff_fraction:.2%} of pixels as different.\n\n"

    return (
        f"Visual check: {check_name}\n\n"
        "Please analyze these two website screenshots and determine if the visual "
        "differences are significant or minor.\n\n"
        "The first image is the expected baseline, and the second is the actual "
        "current state.\n\n"
        f"{stats}"
        f"Consider the following as MINOR differences:\n{minor}\n\n"
        f"Consider the following as SIGNIFICANT differences:\n{significant}\n\n"
        'Please respond with either "MINOR" or "SIGNIFICANT" followed by a brief '
        "explanation of what you observed."
    )
