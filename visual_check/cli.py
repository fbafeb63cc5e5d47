"""CLI entry point for AI-assisted visual checks."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click
from playwright.async_api import async_playwright
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from visual_check.executor.visual_comparator import VisualComparator
from visual_check.models.check_result import CheckResult
from visual_check.models.config import CheckOptions, VisualCheckConfig
from visual_check.storage.baseline_store import BaselineStore

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(path: str) -> VisualCheckConfig:
    # A missing config file is fine here; defaults apply.
    if Path(path).exists():
        return VisualCheckConfig.load(path)
    return VisualCheckConfig()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """AI-assisted visual regression checks"""
    setup_logging(verbose)


@cli.command()
@click.option("--config", "-c", default="visual-check.json", help="Config file path")
def init(config: str) -> None:
    """Create a default configuration file."""
    config_path = Path(config)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return
    VisualCheckConfig().save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nSet ANTHROPIC_API_KEY to enable AI analysis of failed comparisons.")


@cli.command()
@click.option("--config", "-c", default="visual-check.json", help="Config file path")
def status(config: str) -> None:
    """Show the effective configuration and AI availability."""
    cfg = _load_config(config)
    store = BaselineStore(Path(cfg.baselines_dir))

    table = Table(title="Visual Check Setup")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_row("Baselines dir", cfg.baselines_dir)
    table.add_row("Stored baselines", str(len(store.list_names())))
    table.add_row("Threshold", f"{cfg.default_threshold:.0%} of pixels")
    table.add_row("Pixel tolerance", str(cfg.pixel_tolerance))
    table.add_row("AI model", cfg.ai_model)
    table.add_row(
        "AI analysis",
        "[green]enabled[/green]" if cfg.anthropic_api_key else "[yellow]disabled (no API key)[/yellow]",
    )
    table.add_row("Label parsing", "strict" if cfg.ai_strict_labels else "permissive")
    console.print(table)


def _print_result(result: CheckResult) -> None:
    table = Table(title=f"Visual Check: {result.name}")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    outcome = "[green]PASS[/green]" if result.passed else "[red]FAIL[/red]"
    table.add_row("Result", outcome)
    table.add_row("Reason", result.reason.value)
    if result.diff_fraction is not None:
        table.add_row("Pixel diff", f"{result.diff_fraction:.2%} (threshold {result.threshold:.2%})")
    if result.baseline_created:
        table.add_row("Baseline", "created from this capture")
    if result.ai_consulted:
        table.add_row("AI consulted", "yes")
    elif result.ai_attempted:
        table.add_row("AI consulted", "attempted, no verdict")
    else:
        table.add_row("AI consulted", "no")
    if result.rationale:
        table.add_row("Rationale", result.rationale)
    if result.actual_path:
        table.add_row("Actual", result.actual_path)
    if result.diff_path:
        table.add_row("Diff", result.diff_path)
    console.print(table)


async def _run_check(url: str, name: str, cfg: VisualCheckConfig, options: CheckOptions) -> CheckResult:
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=True)
        try:
            page = await browser.new_page()
            await page.goto(url, wait_until="load")
            comparator = VisualComparator.from_page(page, cfg)
            return await comparator.run_visual_check(name, options)
        finally:
            await browser.close()


@cli.command()
@click.argument("url")
@click.option("--name", "-n", required=True, help="Check name (baseline file name)")
@click.option("--threshold", "-t", type=float, default=None, help="Tolerated fraction of differing pixels")
@click.option("--mask", "-m", multiple=True, help="Selector to mask (repeatable)")
@click.option("--no-hide", is_flag=True, help="Do not hide flaky elements")
@click.option("--no-wait-animations", is_flag=True, help="Do not wait for animations")
@click.option("--config", "-c", default="visual-check.json", help="Config file path")
def check(
    url: str,
    name: str,
    threshold: float | None,
    mask: tuple[str, ...],
    no_hide: bool,
    no_wait_animations: bool,
    config: str,
) -> None:
    """Capture URL and compare it with the baseline NAME."""
    cfg = _load_config(config)
    policy = cfg.stabilization.model_copy(deep=True)
    policy.mask_selectors.extend(mask)
    if no_hide:
        policy.hide_flakey = False
    if no_wait_animations:
        policy.wait_for_animations = False

    try:
        options = CheckOptions(
            stabilize=policy,
            threshold=cfg.default_threshold if threshold is None else threshold,
        )
        result = asyncio.run(_run_check(url, name, cfg, options))
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(2)

    _print_result(result)
    if not result.passed:
        sys.exit(1)


@cli.group()
def baselines() -> None:
    """Manage stored baselines."""
    pass


@baselines.command("list")
@click.option("--config", "-c", default="visual-check.json", help="Config file path")
def baselines_list(config: str) -> None:
    """List stored baselines."""
    cfg = _load_config(config)
    store = BaselineStore(Path(cfg.baselines_dir))
    entries = store.list_entries()
    if not entries:
        console.print("[yellow]No baselines stored[/yellow]")
        return
    table = Table(title="Baselines")
    table.add_column("Name", style="bold")
    table.add_column("Size")
    table.add_column("Captured")
    table.add_column("SHA-256")
    for entry in entries:
        table.add_row(entry.name, f"{entry.width}x{entry.height}", entry.captured_at, entry.image_hash[:12])
    console.print(table)


@baselines.command("delete")
@click.argument("name")
@click.option("--config", "-c", default="visual-check.json", help="Config file path")
def baselines_delete(name: str, config: str) -> None:
    """Delete a baseline so the next run recreates it."""
    cfg = _load_config(config)
    store = BaselineStore(Path(cfg.baselines_dir))
    if store.delete(name):
        console.print(f"[green]Deleted baseline {name}[/green]")
    else:
        console.print(f"[yellow]No baseline named {name}[/yellow]")


if __name__ == "__main__":
    cli()
