"""Capture backend — the browser operations the pipeline relies on."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from playwright.async_api import ElementHandle, Page

logger = logging.getLogger(__name__)


class CaptureBackend(Protocol):
    async def navigate_network_idle_wait(self, timeout_ms: int) -> None: ...

    async def locate_all(self, selector: str) -> list[Any]: ...

    async def set_visibility(self, handle: Any, hidden: bool) -> None: ...

    async def set_style(self, handle: Any, background: str, foreground_color: str) -> None: ...

    async def list_active_animations(self) -> list[dict]: ...

    async def capture_full_page(self) -> bytes: ...


class PlaywrightCaptureBackend:
    """CaptureBackend implementation on top of a Playwright page."""

    def __init__(self, page: Page):
        self.page = page

    async def navigate_network_idle_wait(self, timeout_ms: int) -> None:
        await self.page.wait_for_load_state("networkidle", timeout=timeout_ms)

    async def locate_all(self, selector: str) -> list[ElementHandle]:
        return await self.page.query_selector_all(selector)

    async def set_visibility(self, handle: ElementHandle, hidden: bool) -> None:
        await handle.evaluate(
            "(el, value) => { el.style.visibility = value; }",
            "hidden" if hidden else "visible",
        )

    async def set_style(self, handle: ElementHandle, background: str, foreground_color: str) -> None:
        # Paint-only properties, so the element keeps its box.
        await handle.evaluate(
            """(el, [bg, fg]) => {
                el.style.backgroundColor = bg;
                el.style.backgroundImage = 'none';
                el.style.color = fg;
            }""",
            [background, foreground_color],
        )

    async def list_active_animations(self) -> list[dict]:
        return await self.page.evaluate("""() => {
            return document.getAnimations()
                .filter(a => a.playState !== 'finished')
                .map(a => ({
                    id: a.id || '',
                    play_state: a.playState,
                    type: a.constructor ? a.constructor.name : 'Animation',
                }));
        }""")

    async def capture_full_page(self) -> bytes:
        return await self.page.screenshot(full_page=True, type="png")
