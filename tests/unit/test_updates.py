"""Tests for the repository update check."""

import subprocess

import pytest
from unittest.mock import patch

from wsl_devenv.data.models import UpdateOutcome
from wsl_devenv.data.persistence import UpdateStamp
from wsl_devenv.tasks.base import TaskError
from wsl_devenv.tasks.updates import SECONDS_PER_DAY, UpdateChecker

NOW = 1_760_000_000
HEAD = "1111111111111111111111111111111111111111"
REMOTE = "2222222222222222222222222222222222222222"


def completed(cmd, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)


class FakeGit:
    """Dispatches `git` subcommands to canned CompletedProcess results."""

    def __init__(self, head=HEAD, remote=REMOTE, behind=3, fetch_ok=True, dirty=False):
        self.head = head
        self.remote = remote
        self.behind = behind
        self.fetch_ok = fetch_ok
        self.dirty = dirty
        self.calls = []

    def __call__(self, cmd, **kwargs):
        assert cmd[0] == "git"
        args = tuple(cmd[1:])
        self.calls.append(args)
        sub = args[0]
        if sub == "branch":
            return completed(cmd, stdout="main\n")
        if sub == "rev-parse" and args[1] == "--short":
            return completed(cmd, stdout=self.head[:7] + "\n")
        if sub == "rev-parse" and args[1] == "HEAD":
            return completed(cmd, stdout=self.head + "\n")
        if sub == "rev-parse":
            if self.remote is None:
                return completed(cmd, 128, stderr="fatal: ambiguous argument\n")
            return completed(cmd, stdout=self.remote + "\n")
        if sub == "log" and args[1] == "-1":
            if "--date=short" in args:
                return completed(cmd, stdout="2026-10-01\n")
            return completed(cmd, stdout="Add docker role\n")
        if sub == "log":
            lines = [f"abc{i:04d} Commit {i}" for i in range(self.behind)]
            return completed(cmd, stdout="\n".join(lines) + "\n")
        if sub == "diff-index":
            return completed(cmd, 1 if self.dirty else 0)
        if sub == "status":
            return completed(cmd, stdout=" M vars/user_environment.yml\n")
        if sub == "fetch":
            return completed(cmd, 0 if self.fetch_ok else 128, stderr="" if self.fetch_ok else "fatal: offline\n")
        if sub == "rev-list":
            return completed(cmd, stdout=f"{self.behind}\n")
        raise AssertionError(f"unexpected git call: {args}")


@pytest.fixture
def repo(tmp_path):
    directory = tmp_path / "wsl2-devenv"
    (directory / ".git").mkdir(parents=True)
    return directory


@pytest.fixture
def stamp(tmp_path):
    return UpdateStamp(tmp_path / ".ansible-last-update-check")


def make_checker(repo, stamp, **kwargs):
    kwargs.setdefault("clock", lambda: NOW)
    return UpdateChecker(repo, stamp, **kwargs)


class TestThrottling:
    def test_no_stamp_means_check(self, repo, stamp):
        assert make_checker(repo, stamp).should_check() is True

    def test_recent_stamp_skips(self, repo, stamp):
        stamp.write(NOW - 2 * SECONDS_PER_DAY)
        assert make_checker(repo, stamp).should_check() is False

    def test_exact_interval_still_skips(self, repo, stamp):
        stamp.write(NOW - 7 * SECONDS_PER_DAY)
        assert make_checker(repo, stamp).should_check() is False

    def test_elapsed_interval_checks(self, repo, stamp):
        stamp.write(NOW - 7 * SECONDS_PER_DAY - 1)
        assert make_checker(repo, stamp).should_check() is True

    def test_force_overrides(self, repo, stamp):
        stamp.write(NOW)
        assert make_checker(repo, stamp, force=True).should_check() is True

    def test_malformed_stamp_checks(self, repo, stamp):
        stamp.path.write_text("soon\n")
        assert make_checker(repo, stamp).should_check() is True


class TestUpdateChecker:
    def test_name_property(self, repo, stamp):
        assert make_checker(repo, stamp).name == "updates"

    @patch("subprocess.run")
    def test_skipped_runs_no_git(self, mock_run, repo, stamp, capsys):
        stamp.write(NOW - 60)

        status = make_checker(repo, stamp, verbose=True).run()

        assert status.outcome is UpdateOutcome.SKIPPED
        assert status.exit_code == 0
        assert status.next_check is not None
        mock_run.assert_not_called()
        assert "Next check scheduled for:" in capsys.readouterr().out

    @patch("subprocess.run")
    def test_skipped_is_silent_without_verbose(self, mock_run, repo, stamp, capsys):
        stamp.write(NOW - 60)
        make_checker(repo, stamp).run()
        assert capsys.readouterr().out == ""

    @patch("subprocess.run")
    def test_updates_available(self, mock_run, repo, stamp, capsys):
        git = FakeGit(behind=3)
        mock_run.side_effect = git

        status = make_checker(repo, stamp).run()

        assert status.outcome is UpdateOutcome.UPDATES_AVAILABLE
        assert status.exit_code == 2
        assert status.commits_behind == 3
        assert len(status.recent_commits) == 3
        assert status.version.branch == "main"
        assert status.version.commit == HEAD[:7]
        assert stamp.read() == NOW
        out = capsys.readouterr().out
        assert "git pull origin main" in out
        assert ("fetch", "origin", "main", "--quiet") in git.calls

    @patch("subprocess.run")
    def test_up_to_date(self, mock_run, repo, stamp):
        mock_run.side_effect = FakeGit(remote=HEAD)

        status = make_checker(repo, stamp).run()

        assert status.outcome is UpdateOutcome.UP_TO_DATE
        assert status.exit_code == 0
        assert stamp.read() == NOW

    @patch("subprocess.run")
    def test_ahead_of_remote(self, mock_run, repo, stamp):
        mock_run.side_effect = FakeGit(behind=0)

        status = make_checker(repo, stamp).run()

        assert status.outcome is UpdateOutcome.UP_TO_DATE
        assert status.commits_behind == 0

    @patch("subprocess.run")
    def test_unresolvable_remote_is_not_an_update(self, mock_run, repo, stamp):
        mock_run.side_effect = FakeGit(remote=None)

        status = make_checker(repo, stamp).run()

        assert status.outcome is UpdateOutcome.UP_TO_DATE
        assert stamp.read() == NOW

    @patch("subprocess.run")
    def test_fetch_failure(self, mock_run, repo, stamp):
        mock_run.side_effect = FakeGit(fetch_ok=False)

        status = make_checker(repo, stamp).run()

        assert status.outcome is UpdateOutcome.ERROR
        assert status.exit_code == 1
        assert stamp.read() is None

    @patch("subprocess.run")
    def test_reports_local_changes(self, mock_run, repo, stamp, capsys):
        mock_run.side_effect = FakeGit(remote=HEAD, dirty=True)

        status = make_checker(repo, stamp).run()

        assert status.local_changes == ["M vars/user_environment.yml"]
        assert "uncommitted local changes" in capsys.readouterr().out

    @patch("subprocess.run")
    def test_custom_remote_and_branch(self, mock_run, repo, stamp):
        git = FakeGit()
        mock_run.side_effect = git

        make_checker(repo, stamp, remote="upstream", branch="develop").run()

        assert ("fetch", "upstream", "develop", "--quiet") in git.calls
        assert ("rev-list", "--count", "HEAD..upstream/develop") in git.calls

    def test_not_a_repository(self, tmp_path, stamp):
        with pytest.raises(TaskError):
            make_checker(tmp_path / "plain", stamp, force=True).run()

    @patch("subprocess.run")
    def test_git_commands_run_in_repo(self, mock_run, repo, stamp):
        mock_run.side_effect = FakeGit(remote=HEAD)

        make_checker(repo, stamp).run()

        for call in mock_run.call_args_list:
            assert call.kwargs["cwd"] == str(repo)
