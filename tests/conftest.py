"""Pytest configuration and shared fixtures."""

import io
from pathlib import Path
from typing import Callable, Optional
from unittest.mock import AsyncMock, Mock

import pytest
from PIL import Image
from playwright.async_api import Page

from visual_check.ai.client import AIClient
from visual_check.executor.escalator import AIEscalator
from visual_check.executor.visual_comparator import VisualComparator
from visual_check.models.config import (
    CheckOptions,
    StabilizationPolicy,
    VisualCheckConfig,
)
from visual_check.storage.baseline_store import BaselineStore


# ============================================================================
# Image Helpers
# ============================================================================


def make_png(
    width: int = 100,
    height: int = 100,
    color: tuple = (255, 255, 255),
    changed_rows: int = 0,
    changed_color: tuple = (0, 0, 0),
) -> bytes:
    """Create PNG bytes; the top ``changed_rows`` rows use ``changed_color``.

    With the default 100x100 size, ``changed_rows`` is the percentage of
    pixels that differ from a plain image.
    """
    img = Image.new("RGB", (width, height), color)
    if changed_rows:
        img.paste(changed_color, (0, 0, width, changed_rows))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_factory() -> Callable[..., bytes]:
    return make_png


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def stabilization_policy() -> StabilizationPolicy:
    """A policy that exercises every stabilization step."""
    return StabilizationPolicy(
        hide_flakey=True,
        mask_selectors=[".clock", "#ad-banner"],
        wait_for_animations=True,
        animation_timeout_ms=200,
        flakey_selectors=["video", ".spinner"],
    )


@pytest.fixture
def check_options(stabilization_policy: StabilizationPolicy) -> CheckOptions:
    return CheckOptions(stabilize=stabilization_policy, threshold=0.3)


@pytest.fixture
def visual_config(tmp_path: Path) -> VisualCheckConfig:
    """Create a test configuration rooted in a temp directory."""
    return VisualCheckConfig(
        baselines_dir=str(tmp_path / "base-images"),
        anthropic_api_key=None,
        network_idle_timeout_ms=500,
        ai_timeout_seconds=5.0,
        debug_dir=str(tmp_path / "debug"),
    )


@pytest.fixture
def temp_config_file(visual_config: VisualCheckConfig, tmp_path: Path) -> Path:
    """Create a temporary config file."""
    config_file = tmp_path / "visual-check.json"
    visual_config.save(config_file)
    return config_file


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_anthropic_client() -> Mock:
    """Create a mock Anthropic client."""
    mock_client = Mock()
    mock_response = Mock()
    mock_response.content = [Mock(text="MINOR - font rendering differences")]
    mock_response.stop_reason = "end_turn"
    mock_client.messages.create.return_value = mock_response
    return mock_client


@pytest.fixture
def mock_page() -> AsyncMock:
    """Create a mock Playwright page."""
    page = AsyncMock(spec=Page)
    page.url = "https://example.com"
    page.screenshot = AsyncMock(return_value=make_png())
    page.goto = AsyncMock()
    page.query_selector_all = AsyncMock(return_value=[])
    page.evaluate = AsyncMock(return_value=[])
    page.wait_for_load_state = AsyncMock()
    return page


@pytest.fixture
def mock_backend() -> AsyncMock:
    """A capture backend with a quiet page and nothing to hide or mask."""
    backend = AsyncMock()
    backend.locate_all.return_value = []
    backend.list_active_animations.return_value = []
    backend.capture_full_page.return_value = make_png()
    return backend


def make_ai_client(response_text: Optional[str] = None, error: Optional[Exception] = None) -> Mock:
    """A configured AIClient double returning ``response_text`` or raising ``error``."""
    client = Mock(spec=AIClient)
    client.configured = True
    if error is not None:
        client.complete_with_images.side_effect = error
    else:
        client.complete_with_images.return_value = response_text
    return client


@pytest.fixture
def ai_client_factory() -> Callable[..., Mock]:
    return make_ai_client


@pytest.fixture
def baseline_store(tmp_path: Path) -> BaselineStore:
    return BaselineStore(tmp_path / "base-images")


@pytest.fixture
def comparator_factory(mock_backend, baseline_store, visual_config):
    """Build a VisualComparator around the mock backend and a given AI client."""

    def _build(ai_client=None, strict_labels: bool = False) -> VisualComparator:
        escalator = AIEscalator(ai_client, timeout_seconds=5.0, strict_labels=strict_labels)
        return VisualComparator(mock_backend, baseline_store, escalator, visual_config)

    return _build
