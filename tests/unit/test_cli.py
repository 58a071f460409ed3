"""Tests for the command-line entry point."""

import os
import pytest
import yaml
from unittest.mock import patch

from wsl_devenv.cli.main import build_parser, main
from wsl_devenv.data.models import (
    CheckResult,
    CheckStatus,
    UpdateOutcome,
    UpdateStatus,
    VerificationSummary,
)
from wsl_devenv.tasks.base import TaskError

NOW = 1_760_000_000


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Isolated config pointing every path into tmp_path."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "project_dir": str(tmp_path / "ansible"),
        "fact_cache": {"directory": str(tmp_path / "facts"), "max_age_days": 30},
        "benchmark": {"directory": str(tmp_path / "bench")},
        "updates": {"stamp_file": str(tmp_path / "stamp")},
    }))
    return path


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args([])
        assert exc_info.value.code == 2

    def test_negative_age_rejected(self):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["cleanup-cache", "--age", "-3"])
        assert exc_info.value.code == 2

    def test_benchmark_flags(self):
        args = build_parser().parse_args(["benchmark", "--real-run", "-i", "hosts", "--keep", "3", "-y"])
        assert args.real_run is True
        assert args.inventory == "hosts"
        assert args.keep == 3
        assert args.yes is True

    def test_check_updates_flags(self):
        args = build_parser().parse_args(["check-updates", "--force", "-v", "--interval", "1"])
        assert args.force is True
        assert args.verbose is True
        assert args.interval == 1


class TestMain:
    def test_cleanup_cache_dry_run(self, config_file, tmp_path):
        facts = tmp_path / "facts"
        facts.mkdir()
        old = facts / "oldhost"
        old.write_text("{}")
        os.utime(old, (NOW - 90 * 86400, NOW - 90 * 86400))

        assert main(["--config", str(config_file), "cleanup-cache", "--dry-run"]) == 0
        assert old.exists()

        assert main(["--config", str(config_file), "cleanup-cache"]) == 0
        assert not old.exists()

    def test_cleanup_cache_missing_dir(self, config_file, tmp_path):
        code = main(["--config", str(config_file), "cleanup-cache", "--cache-dir", str(tmp_path / "none")])
        assert code == 0

    def test_check_updates_exit_codes(self, config_file):
        outcomes = {
            UpdateOutcome.UP_TO_DATE: 0,
            UpdateOutcome.SKIPPED: 0,
            UpdateOutcome.ERROR: 1,
            UpdateOutcome.UPDATES_AVAILABLE: 2,
        }
        for outcome, expected in outcomes.items():
            with patch("wsl_devenv.cli.main.UpdateChecker.run", return_value=UpdateStatus(outcome)):
                assert main(["--config", str(config_file), "check-updates"]) == expected

    def test_check_updates_options(self, config_file, tmp_path):
        with patch("wsl_devenv.cli.main.UpdateChecker") as checker_cls:
            checker_cls.return_value.run.return_value = UpdateStatus(UpdateOutcome.SKIPPED)
            main([
                "--config", str(config_file), "check-updates",
                "--force", "--interval", "3", "--remote", "upstream", "--repo-dir", str(tmp_path),
            ])
        kwargs = checker_cls.call_args.kwargs
        assert kwargs["force"] is True
        assert kwargs["interval_days"] == 3
        assert kwargs["remote"] == "upstream"
        assert kwargs["branch"] == "main"
        assert kwargs["repo_dir"] == tmp_path
        assert kwargs["stamp"].path == tmp_path / "stamp"

    def test_check_updates_not_a_repo(self, config_file, tmp_path, capsys):
        code = main(["--config", str(config_file), "check-updates", "--force", "--repo-dir", str(tmp_path / "x")])
        assert code == 1
        assert "[ERROR]" in capsys.readouterr().err

    def test_verify_exit_code(self, config_file):
        failing = VerificationSummary()
        with patch("wsl_devenv.cli.main.SetupVerifier.run", return_value=VerificationSummary()):
            assert main(["--config", str(config_file), "verify"]) == 0

        failing.results.append(CheckResult("Ansible Installation", "ansible", CheckStatus.FAIL, "missing"))
        with patch("wsl_devenv.cli.main.SetupVerifier.run", return_value=failing):
            assert main(["--config", str(config_file), "verify"]) == 1

    def test_benchmark_real_run_flag(self, config_file, tmp_path):
        with patch("wsl_devenv.cli.main.PlaybookBenchmark") as bench_cls:
            assert main(["--config", str(config_file), "benchmark", "--real-run", "--yes"]) == 0
        kwargs = bench_cls.call_args.kwargs
        assert kwargs["check_mode"] is False
        assert kwargs["assume_yes"] is True
        assert kwargs["keep_count"] == 10
        assert kwargs["store"].bench_dir == tmp_path / "bench"

    def test_task_error_is_exit_one(self, config_file, capsys):
        with patch("wsl_devenv.cli.main.Bootstrapper.run", side_effect=TaskError("bootstrap", "apt failed")):
            assert main(["--config", str(config_file), "bootstrap", "--yes"]) == 1
        assert "[bootstrap] apt failed" in capsys.readouterr().err

    def test_keyboard_interrupt(self, config_file):
        with patch("wsl_devenv.cli.main.Bootstrapper.run", side_effect=KeyboardInterrupt):
            assert main(["--config", str(config_file), "bootstrap"]) == 130

    def test_install_tool_requires_version(self, config_file, capsys):
        assert main(["--config", str(config_file), "install-tool", "kubectl"]) == 1
        assert "version is required" in capsys.readouterr().err

    def test_install_tool_uses_configured_version(self, config_file, tmp_path):
        config_file.write_text(yaml.safe_dump({"tools": {"versions": {"kubectl": "v1.30.2"}}}))
        with patch("wsl_devenv.cli.main.ToolInstaller") as installer_cls:
            assert main(["--config", str(config_file), "install-tool", "kubectl"]) == 0
        assert installer_cls.call_args.kwargs["version"] == "v1.30.2"

    def test_wslconfig_print(self, config_file, capsys):
        code = main(["--config", str(config_file), "wslconfig", "--print", "--memory", "6GB", "--processors", "1"])
        assert code == 0
        out = capsys.readouterr().out
        assert "[wsl2]" in out
        assert "memory = 6GB" in out

    def test_wslconfig_write(self, config_file, tmp_path):
        target = tmp_path / ".wslconfig"
        assert main(["--config", str(config_file), "wslconfig", "--output", str(target), "--processors", "1"]) == 0
        assert "processors = 1" in target.read_text()

    def test_wslconfig_output_is_directory(self, config_file, tmp_path, capsys):
        code = main(["--config", str(config_file), "wslconfig", "--output", str(tmp_path), "--processors", "1"])
        assert code == 1
        assert "[ERROR]" in capsys.readouterr().err

    def test_wslconfig_needs_path(self, config_file):
        assert main(["--config", str(config_file), "wslconfig", "--processors", "1"]) == 1

    def test_wslconfig_invalid_memory(self, config_file, capsys):
        code = main(["--config", str(config_file), "wslconfig", "--print", "--memory", "lots"])
        assert code == 1
        assert "memory must look like" in capsys.readouterr().err

    def test_show_config(self, config_file, capsys):
        assert main(["--config", str(config_file), "show-config"]) == 0
        out = capsys.readouterr().out
        assert f"Loaded from {config_file}" in out
        assert "max_age_days: 30" in out

    def test_invalid_config(self, tmp_path, capsys, monkeypatch):
        monkeypatch.chdir(tmp_path)
        bad = tmp_path / "bad.yaml"
        bad.write_text("fact_cache: [unclosed\n")
        assert main(["--config", str(bad), "show-config"]) == 1
        assert "Invalid configuration" in capsys.readouterr().err
