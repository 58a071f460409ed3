"""Repository update notification.

Checks whether the local checkout is behind its remote branch. Runs at most
once per interval unless forced; the last check time lives in a stamp file.
"""

from __future__ import annotations

import time
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from .base import BaseTask, TaskError, output_lines
from ..console import banner, log_info, log_success, log_warning, CYAN, YELLOW
from ..data.models import UpdateOutcome, UpdateStatus, VersionInfo
from ..data.persistence import UpdateStamp

SECONDS_PER_DAY = 86400
RECENT_COMMITS_SHOWN = 10


class UpdateChecker(BaseTask):
    """Compares HEAD with <remote>/<branch> using git plumbing commands."""

    def __init__(
        self,
        repo_dir: Path,
        stamp: UpdateStamp,
        interval_days: int = 7,
        remote: str = "origin",
        branch: str = "main",
        force: bool = False,
        verbose: bool = False,
        git_timeout: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.repo_dir = Path(repo_dir).expanduser()
        self.stamp = stamp
        self.interval_days = interval_days
        self.remote = remote
        self.branch = branch
        self.force = force
        self.verbose = verbose
        self.git_timeout = git_timeout
        self.clock = clock

    @property
    def name(self) -> str:
        return "updates"

    @property
    def display_name(self) -> str:
        return "WSL2 DevEnv Update Check"

    @property
    def remote_ref(self) -> str:
        return f"{self.remote}/{self.branch}"

    @property
    def interval_seconds(self) -> int:
        return self.interval_days * SECONDS_PER_DAY

    def is_available(self) -> bool:
        return (self.repo_dir / ".git").exists()

    # --- Throttling ---

    def should_check(self) -> bool:
        """True when forced, never checked, or the interval has elapsed."""
        if self.force:
            return True
        last_check = self.stamp.read()
        if last_check is None:
            return True
        return int(self.clock()) - last_check > self.interval_seconds

    def next_check_time(self) -> Optional[datetime]:
        last_check = self.stamp.read()
        if last_check is None:
            return None
        return datetime.fromtimestamp(last_check + self.interval_seconds)

    # --- git plumbing ---

    def _git(self, *args: str, check: bool = True):
        return self.run_command(
            ["git", *args], check=check, timeout=self.git_timeout, cwd=self.repo_dir
        )

    def _git_out(self, *args: str) -> str:
        return self._git(*args).stdout.strip()

    def version_info(self) -> VersionInfo:
        return VersionInfo(
            repo_dir=self.repo_dir,
            branch=self._git_out("branch", "--show-current"),
            commit=self._git_out("rev-parse", "--short", "HEAD"),
            date=self._git_out("log", "-1", "--format=%cd", "--date=short"),
            message=self._git_out("log", "-1", "--format=%s"),
        )

    def local_changes(self) -> List[str]:
        """`git status --short` lines when the worktree differs from HEAD."""
        result = self._git("diff-index", "--quiet", "HEAD", "--", check=False)
        if result.returncode == 0:
            return []
        return output_lines(self._git_out("status", "--short")) or ["(uncommitted changes)"]

    def fetch(self) -> bool:
        result = self._git("fetch", self.remote, self.branch, "--quiet", check=False)
        return result.returncode == 0

    def resolve_remote(self) -> Optional[str]:
        result = self._git("rev-parse", self.remote_ref, check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def commits_behind(self) -> int:
        result = self._git("rev-list", "--count", f"HEAD..{self.remote_ref}", check=False)
        try:
            return int(result.stdout.strip())
        except ValueError:
            return 0

    def recent_commits(self) -> List[str]:
        result = self._git("log", "--oneline", "--decorate", f"HEAD..{self.remote_ref}", check=False)
        return output_lines(result.stdout)[:RECENT_COMMITS_SHOWN]

    def compare(self) -> UpdateStatus:
        """Compare HEAD with the fetched remote branch."""
        current = self._git_out("rev-parse", "HEAD")
        remote = self.resolve_remote()

        if remote is None:
            log_warning("Could not determine remote commit")
            return UpdateStatus(UpdateOutcome.UP_TO_DATE, message="Remote commit unknown")

        if current == remote:
            log_success("Your repository is up to date!")
            return UpdateStatus(UpdateOutcome.UP_TO_DATE, message="Up to date", remote_ref=remote)

        behind = self.commits_behind()
        if behind <= 0:
            return UpdateStatus(
                UpdateOutcome.UP_TO_DATE, message="Local branch is ahead of remote", remote_ref=remote
            )

        return UpdateStatus(
            UpdateOutcome.UPDATES_AVAILABLE,
            message=f"{behind} commit(s) behind {self.remote_ref}",
            remote_ref=remote,
            commits_behind=behind,
            recent_commits=self.recent_commits(),
        )

    # --- Reporting ---

    def _show_version(self, info: VersionInfo) -> None:
        log_info("Current version information:")
        print(flush=True)
        print(f"  Repository: {info.repo_dir}")
        print(f"  Branch: {info.branch}")
        print(f"  Commit: {info.commit}")
        print(f"  Date: {info.date}")
        print(f"  Message: {info.message}")
        print(flush=True)

    def _show_updates(self, status: UpdateStatus) -> None:
        banner("Updates Available!", YELLOW)
        log_warning(f"You are {status.commits_behind} commit(s) behind {self.remote_ref}")
        print(flush=True)
        log_info("Recent changes:")
        print(flush=True)
        for line in status.recent_commits:
            print(line)
        print()
        print("To update:")
        print(f"  cd {self.repo_dir}")
        print(f"  git pull {self.remote} {self.branch}")
        print()
        print("Note: Review changes before updating to avoid conflicts", flush=True)
        print(flush=True)

    def run(self) -> UpdateStatus:
        if not self.should_check():
            next_check = self.next_check_time()
            if self.verbose:
                log_info("Update check not needed yet")
                if next_check:
                    log_info(f"Next check scheduled for: {next_check:%Y-%m-%d %H:%M:%S}")
            return UpdateStatus(UpdateOutcome.SKIPPED, message="Interval not elapsed", next_check=next_check)

        banner(self.display_name, CYAN)

        if not self.is_available():
            raise TaskError(self.name, f"Not a git repository: {self.repo_dir}")

        info = self.version_info()
        self._show_version(info)

        changes = self.local_changes()
        if changes:
            log_warning("You have uncommitted local changes")
            print(flush=True)
            log_info("Modified files:")
            for line in changes:
                print(line)
            print(flush=True)
            log_info("Consider committing or stashing changes before updating")

        log_info("Fetching latest changes from remote...")
        if not self.fetch():
            log_warning("Failed to fetch updates (network issue or no remote configured)")
            log_warning("Could not check for updates")
            return UpdateStatus(
                UpdateOutcome.ERROR,
                message="Fetch failed",
                local_changes=changes,
                version=info,
            )
        log_success("Fetched latest changes")

        status = self.compare()
        status.local_changes = changes
        status.version = info
        if status.outcome is UpdateOutcome.UPDATES_AVAILABLE:
            self._show_updates(status)

        self.stamp.write(int(self.clock()))
        return status
