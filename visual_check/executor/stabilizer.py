"""Stabilizer — reduces screenshot nondeterminism before capture."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Iterable

from visual_check.errors import SelectorNotFound
from visual_check.executor.capture_backend import CaptureBackend
from visual_check.models.check_result import SelectorOutcome, StabilizationReport
from visual_check.models.config import StabilizationPolicy

logger = logging.getLogger(__name__)

ANIMATION_POLL_INTERVAL = 0.1  # seconds


class Stabilizer:
    """Applies a StabilizationPolicy to the page behind a capture backend."""

    def __init__(self, backend: CaptureBackend, network_idle_timeout_ms: int = 10000):
        self.backend = backend
        self.network_idle_timeout_ms = network_idle_timeout_ms

    async def _apply_to_selector(
        self, selector: str, apply: Callable[[Any], Awaitable[None]]
    ) -> SelectorOutcome:
        try:
            handles = await self.backend.locate_all(selector)
            if not handles:
                raise SelectorNotFound(selector)
            for handle in handles:
                await apply(handle)
            return SelectorOutcome(selector=selector, status="found", matched=len(handles))
        except SelectorNotFound as e:
            logger.debug("%s", e)
            return SelectorOutcome(selector=selector, status="not-found")
        except Exception as e:
            logger.warning("Stabilization failed for selector '%s': %s", selector, e)
            return SelectorOutcome(selector=selector, status="error", error=str(e))

    async def hide_volatile_elements(self, selectors: Iterable[str]) -> list[SelectorOutcome]:
        """Set visibility: hidden on every element matching each selector."""
        outcomes = []
        for selector in dict.fromkeys(selectors):
            outcomes.append(await self._apply_to_selector(
                selector, lambda h: self.backend.set_visibility(h, True)
            ))
        return outcomes

    async def mask_dynamic_regions(
        self, selectors: Iterable[str], color: str = "#cccccc"
    ) -> list[SelectorOutcome]:
        """Paint matching elements with an opaque fill and transparent text."""
        outcomes = []
        for selector in selectors:
            outcomes.append(await self._apply_to_selector(
                selector, lambda h: self.backend.set_style(h, color, "transparent")
            ))
        return outcomes

    async def await_animations_settled(self, timeout_ms: int = 3000) -> bool:
        """Wait until no animation is running. Returns False on timeout."""
        deadline = time.monotonic() + timeout_ms / 1000
        while True:
            try:
                active = await self.backend.list_active_animations()
            except Exception as e:
                logger.warning("Could not inspect page animations: %s", e)
                return False
            if not active:
                return True
            if time.monotonic() >= deadline:
                logger.info(
                    "%d animation(s) still running after %dms, capturing anyway",
                    len(active), timeout_ms,
                )
                return False
            await asyncio.sleep(ANIMATION_POLL_INTERVAL)

    async def await_network_idle(self) -> bool:
        """Wait for network idle. Returns False if the wait did not complete."""
        try:
            await self.backend.navigate_network_idle_wait(self.network_idle_timeout_ms)
            return True
        except Exception as e:
            logger.warning(
                "Network did not go idle within %dms: %s",
                self.network_idle_timeout_ms, e,
            )
            return False

    async def stabilize(self, policy: StabilizationPolicy) -> StabilizationReport:
        """Run the stabilization pass in order: network, animations, hide, mask."""
        report = StabilizationReport()
        report.network_idle = await self.await_network_idle()

        if policy.wait_for_animations:
            report.animations_settled = await self.await_animations_settled(
                policy.animation_timeout_ms
            )

        if policy.hide_flakey:
            report.hidden = await self.hide_volatile_elements(policy.flakey_selectors)

        if policy.mask_selectors:
            report.masked = await self.mask_dynamic_regions(
                policy.mask_selectors, policy.mask_color
            )

        logger.debug(
            "Stabilization: network_idle=%s animations_settled=%s hidden=%d masked=%d",
            report.network_idle, report.animations_settled,
            sum(o.matched for o in report.hidden), sum(o.matched for o in report.masked),
        )
        return report
