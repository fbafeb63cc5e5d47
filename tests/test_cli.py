"""Tests for the command line interface."""

import json
import os
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from visual_check.cli import cli
from visual_check.models.check_result import CheckReason, CheckResult
from visual_check.models.config import VisualCheckConfig
from visual_check.storage.baseline_store import BaselineStore


class TestInit:

    def test_creates_config(self, tmp_path):
        path = tmp_path / "visual-check.json"
        result = CliRunner().invoke(cli, ["init", "--config", str(path)])

        assert result.exit_code == 0
        assert json.loads(path.read_text())["default_threshold"] == 0.3

    def test_keeps_existing_config_when_declined(self, tmp_path):
        path = tmp_path / "visual-check.json"
        path.write_text('{"baselines_dir": "mine"}')

        result = CliRunner().invoke(cli, ["init", "--config", str(path)], input="n\n")

        assert result.exit_code == 0
        assert json.loads(path.read_text()) == {"baselines_dir": "mine"}


class TestStatus:

    def test_reports_ai_disabled_without_key(self, temp_config_file):
        with patch.dict(os.environ, {}, clear=True):
            result = CliRunner().invoke(cli, ["status", "--config", str(temp_config_file)])

        assert result.exit_code == 0
        assert "disabled" in result.output

    def test_reports_ai_enabled_with_key(self, temp_config_file):
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "sk-test"}):
            result = CliRunner().invoke(cli, ["status", "--config", str(temp_config_file)])

        assert result.exit_code == 0
        assert "enabled" in result.output
        assert "disabled" not in result.output


class TestBaselines:

    def test_list_and_delete(self, temp_config_file, visual_config, png_factory):
        store = BaselineStore(visual_config.baselines_dir)
        store.write_baseline("home", png_factory())
        runner = CliRunner()

        listed = runner.invoke(cli, ["baselines", "list", "--config", str(temp_config_file)])
        assert listed.exit_code == 0
        assert "home" in listed.output

        deleted = runner.invoke(cli, ["baselines", "delete", "home", "--config", str(temp_config_file)])
        assert deleted.exit_code == 0
        assert store.read_baseline("home") is None

    def test_list_empty(self, temp_config_file):
        result = CliRunner().invoke(cli, ["baselines", "list", "--config", str(temp_config_file)])
        assert "No baselines stored" in result.output


class TestCheck:

    def _invoke(self, temp_config_file, check_result, extra=()):
        with patch("visual_check.cli._run_check", new=AsyncMock(return_value=check_result)) as run:
            result = CliRunner().invoke(
                cli,
                ["check", "https://example.com", "--name", "home", "--config", str(temp_config_file), *extra],
            )
        return result, run

    def test_passing_check_exits_zero(self, temp_config_file):
        passed = CheckResult(name="home", passed=True, reason=CheckReason.WITHIN_THRESHOLD, diff_fraction=0.02)
        result, run = self._invoke(temp_config_file, passed, ["--threshold", "0.1", "--mask", ".clock"])

        assert result.exit_code == 0
        assert "WITHIN_THRESHOLD" in result.output
        url, name, cfg, options = run.call_args.args
        assert (url, name) == ("https://example.com", "home")
        assert isinstance(cfg, VisualCheckConfig)
        assert options.threshold == 0.1
        assert options.stabilize.mask_selectors == [".clock"]

    def test_failing_check_exits_one(self, temp_config_file):
        failed = CheckResult(
            name="home", passed=False, reason=CheckReason.FAILED_SIGNIFICANT,
            diff_fraction=0.5, rationale="SIGNIFICANT - header missing",
        )
        result, _ = self._invoke(temp_config_file, failed)

        assert result.exit_code == 1
        assert "FAILED_SIGNIFICANT" in result.output

    def test_failed_ai_call_shown_as_attempted(self, temp_config_file):
        failed = CheckResult(
            name="home", passed=False, reason=CheckReason.FAILED_NO_AI,
            diff_fraction=0.5, ai_attempted=True,
        )
        result, _ = self._invoke(temp_config_file, failed)

        assert result.exit_code == 1
        assert "attempted" in result.output

    def test_invalid_threshold_exits_two(self, temp_config_file):
        passed = CheckResult(name="home", passed=True, reason=CheckReason.EXACT_MATCH)
        result, run = self._invoke(temp_config_file, passed, ["--threshold", "2"])

        assert result.exit_code == 2
        run.assert_not_called()

    def test_flags_disable_steps(self, temp_config_file):
        passed = CheckResult(name="home", passed=True, reason=CheckReason.EXACT_MATCH)
        _, run = self._invoke(temp_config_file, passed, ["--no-hide", "--no-wait-animations"])

        options = run.call_args.args[3]
        assert options.stabilize.hide_flakey is False
        assert options.stabilize.wait_for_animations is False
