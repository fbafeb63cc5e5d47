"""Claude API client wrapper for visual difference classification."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

import anthropic

from visual_check.errors import ClassifierError, ClassifierUnavailable

logger = logging.getLogger(__name__)

# Configurable debug directory, set by VisualComparator.from_page
_debug_dir: Path | None = None


def set_debug_dir(path: Path) -> None:
    """Set the directory for dumping AI exchanges."""
    global _debug_dir
    _debug_dir = Path(path)
    _debug_dir.mkdir(parents=True, exist_ok=True)


def _get_debug_dir() -> Path:
    """Get or create the debug directory."""
    global _debug_dir
    if _debug_dir is None:
        _debug_dir = Path("./.visual-check") / "debug"
    _debug_dir.mkdir(parents=True, exist_ok=True)
    return _debug_dir


class AIClient:
    """Wrapper around the Anthropic Claude API.

    The credential is passed in explicitly. A client built without one is
    valid and simply reports itself as unconfigured.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "claude-sonnet-4-20250514",
        max_tokens: int = 300,
        timeout: float = 60.0,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._call_count = 0
        self.client: anthropic.Anthropic | None = None
        if api_key:
            self.client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    @property
    def configured(self) -> bool:
        return self.client is not None

    @property
    def call_count(self) -> int:
        return self._call_count

    def complete_with_images(
        self,
        system_prompt: str,
        user_message: str,
        images_base64: list[str],
        media_type: str = "image/png",
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send a prompt plus one or more images and return the text response."""
        if self.client is None:
            raise ClassifierUnavailable("No Anthropic API key configured")

        self._call_count += 1
        tokens = max_tokens or self.max_tokens
        logger.info(
            "Calling AI with %d image(s) (call #%d, model=%s, max_tokens=%d)...",
            len(images_base64), self._call_count, self.model, tokens,
        )

        content: list[dict] = [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": media_type, "data": data},
            }
            for data in images_base64
        ]
        content.append({"type": "text", "text": user_message})

        try:
            call_start = time.time()
            response = self.client.messages.create(
                model=self.model,
                max_tokens=tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": content}],
            )
            call_duration = time.time() - call_start
            text = response.content[0].text if response.content else ""
            logger.info("AI image response received in %.1fs (%d chars)",
                        call_duration, len(text))
            self._save_exchange_log(
                call_number=self._call_count,
                system_prompt=system_prompt,
                user_message=f"[{len(images_base64)} IMAGE(S) ATTACHED]\n{user_message}",
                response_text=text,
                error=None,
            )
            return text
        except anthropic.APIError as e:
            logger.error("Claude API error (with images): %s", e)
            self._save_exchange_log(
                call_number=self._call_count,
                system_prompt=system_prompt,
                user_message=f"[{len(images_base64)} IMAGE(S) ATTACHED]\n{user_message}",
                response_text="",
                error=str(e),
            )
            raise ClassifierError(str(e)) from e

    # ------------------------------------------------------------------
    # Debug logging
    # ------------------------------------------------------------------

    @staticmethod
    def _save_exchange_log(
        call_number: int,
        system_prompt: str,
        user_message: str,
        response_text: str,
        error: str | None,
    ) -> None:
        """Save the full AI exchange (prompt + response) to a log file."""
        try:
            debug_dir = _get_debug_dir()
            ts = time.strftime("%Y%m%d_%H%M%S")
            log_file = debug_dir / f"ai_call_{ts}_{call_number:03d}.log"

            with open(log_file, "w", encoding="utf-8") as f:
                f.write(f"=== AI CALL #{call_number} at {time.strftime('%Y-%m-%d %H:%M:%S')} ===\n\n")
                f.write(f"=== SYSTEM PROMPT ({len(system_prompt)} chars) ===\n")
                f.write(system_prompt)
                f.write(f"\n\n=== USER MESSAGE ({len(user_message)} chars) ===\n")
                f.write(user_message)
                f.write(f"\n\n=== RESPONSE ({len(response_text)} chars) ===\n")
                f.write(response_text if response_text else "(empty)")
                if error:
                    f.write(f"\n\n=== ERROR ===\n{error}\n")

            logger.debug("AI exchange logged to %s", log_file)
        except Exception as log_err:
            logger.debug("Failed to save AI exchange log: %s", log_err)
