"""Data models for WSL2 dev environment maintenance.

This module defines the result structures produced by the maintenance tasks,
following these conventions:

1. EXPLICIT UNITS
   - Sizes: bytes (integers), with a human-readable rendering for display
   - Durations: whole seconds (integers), matching the shell `date +%s` clock
   - Timestamps: naive local datetimes (the tooling runs on a single host)

2. NORMALIZED STATUS VALUES
   - Checks: PASS, WARN, FAIL
   - Update check: UP_TO_DATE, SKIPPED, ERROR, UPDATES_AVAILABLE
   - Benchmark trend: improved, degraded, unchanged
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


# =============================================================================
# Status Enumerations
# =============================================================================


class CheckStatus(str, Enum):
    """Outcome of a single verification check."""

    PASS = "PASS"  # Requirement met
    WARN = "WARN"  # Optional requirement missing
    FAIL = "FAIL"  # Required component missing or broken


class UpdateOutcome(str, Enum):
    """Result of an update check, mapped to process exit codes."""

    UP_TO_DATE = "UP_TO_DATE"
    SKIPPED = "SKIPPED"  # Interval not yet elapsed
    ERROR = "ERROR"  # Fetch failed or not a repository
    UPDATES_AVAILABLE = "UPDATES_AVAILABLE"

    @property
    def exit_code(self) -> int:
        if self is UpdateOutcome.UPDATES_AVAILABLE:
            return 2
        if self is UpdateOutcome.ERROR:
            return 1
        return 0


def human_size(num_bytes: int) -> str:
    """Render a byte count the way `du -h` does (1024 based, one decimal under 10)."""
    size = float(num_bytes)
    for unit in ("B", "K", "M", "G", "T"):
        if size < 1024 or unit == "T":
            if unit == "B":
                return f"{int(size)}B"
            if size < 10:
                return f"{size:.1f}{unit}"
            return f"{size:.0f}{unit}"
        size /= 1024
    return f"{size:.0f}T"


# =============================================================================
# Fact Cache
# =============================================================================


@dataclass
class CacheStats:
    """File count and total size of a directory tree."""

    file_count: int  # Unit: files
    total_bytes: int  # Unit: bytes

    @property
    def size_display(self) -> str:
        return human_size(self.total_bytes)


@dataclass
class StaleFile:
    """A cache file older than the configured age."""

    path: Path
    size_bytes: int
    modified: datetime

    def describe(self) -> str:
        return f"{self.path} ({human_size(self.size_bytes)}, modified: {self.modified:%b %d %H:%M})"


@dataclass
class CleanupReport:
    """Outcome of a fact cache cleanup run."""

    cache_dir: Path
    max_age_days: int
    dry_run: bool
    exists: bool = True
    before: Optional[CacheStats] = None
    stale: List[StaleFile] = field(default_factory=list)
    deleted_count: int = 0
    after: Optional[CacheStats] = None
    removed_dirs: int = 0

    @property
    def stale_count(self) -> int:
        return len(self.stale)


# =============================================================================
# Benchmark
# =============================================================================


@dataclass
class SystemInfo:
    """Host details recorded at the top of every benchmark."""

    hostname: str
    os_description: str
    kernel: str
    cpu_model: str
    cpu_cores: int
    memory_total: str  # Display string, e.g. "15.5G"
    disk_free: str  # Display string for "/"
    ansible_version: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hostname": self.hostname,
            "os": self.os_description,
            "kernel": self.kernel,
            "cpu": self.cpu_model,
            "cpu_cores": self.cpu_cores,
            "memory": self.memory_total,
            "disk_free": self.disk_free,
            "ansible_version": self.ansible_version,
        }


@dataclass
class SlowTask:
    """Per-task timing reported by the profile_tasks callback."""

    name: str
    seconds: float  # Unit: seconds


@dataclass
class BenchmarkComparison:
    """Duration delta between the current and the previous benchmark."""

    previous_seconds: int
    current_seconds: int

    @property
    def difference(self) -> int:
        return self.current_seconds - self.previous_seconds

    @property
    def percent(self) -> Optional[float]:
        """Relative change in percent, None when the previous run took 0s."""
        if self.previous_seconds == 0:
            return None
        return round(self.difference / self.previous_seconds * 100, 2)

    @property
    def trend(self) -> str:
        if self.difference < 0:
            return "improved"
        if self.difference > 0:
            return "degraded"
        return "unchanged"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "previous_seconds": self.previous_seconds,
            "current_seconds": self.current_seconds,
            "difference_seconds": self.difference,
            "percent": self.percent,
            "trend": self.trend,
        }


@dataclass
class BenchmarkRun:
    """A single timed playbook run."""

    timestamp: str  # YYYYmmdd-HHMMSS, also the file name suffix
    playbook: str
    check_mode: bool
    results_file: Path
    metrics_file: Path
    start: int = 0  # Unit: epoch seconds
    end: int = 0  # Unit: epoch seconds
    exit_code: Optional[int] = None
    cancelled: bool = False
    system: Optional[SystemInfo] = None
    slow_tasks: List[SlowTask] = field(default_factory=list)
    comparison: Optional[BenchmarkComparison] = None
    pruned: int = 0

    @property
    def duration_seconds(self) -> int:
        return self.end - self.start

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "playbook": self.playbook,
            "check_mode": self.check_mode,
            "start": self.start,
            "end": self.end,
            "duration_seconds": self.duration_seconds,
            "exit_code": self.exit_code,
            "results_file": str(self.results_file),
            "system": self.system.to_dict() if self.system else None,
            "slow_tasks": [{"name": t.name, "seconds": t.seconds} for t in self.slow_tasks],
            "comparison": self.comparison.to_dict() if self.comparison else None,
        }


# =============================================================================
# Update Check
# =============================================================================


@dataclass
class VersionInfo:
    """Current checkout details."""

    repo_dir: Path
    branch: str
    commit: str  # Short hash
    date: str  # YYYY-MM-DD
    message: str


@dataclass
class UpdateStatus:
    """Result of comparing the checkout against its remote branch."""

    outcome: UpdateOutcome
    message: str = ""
    remote_ref: Optional[str] = None
    commits_behind: int = 0
    recent_commits: List[str] = field(default_factory=list)
    local_changes: List[str] = field(default_factory=list)
    version: Optional[VersionInfo] = None
    next_check: Optional[datetime] = None

    @property
    def exit_code(self) -> int:
        return self.outcome.exit_code


# =============================================================================
# Verification
# =============================================================================


@dataclass
class CheckResult:
    """A single verification line."""

    section: str
    name: str
    status: CheckStatus
    message: str

    @property
    def marker(self) -> str:
        return {CheckStatus.PASS: "✓", CheckStatus.WARN: "⚠", CheckStatus.FAIL: "✗"}[self.status]


@dataclass
class VerificationSummary:
    """Aggregated verification results."""

    results: List[CheckResult] = field(default_factory=list)

    def _count(self, status: CheckStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def passed(self) -> int:
        return self._count(CheckStatus.PASS)

    @property
    def warnings(self) -> int:
        return self._count(CheckStatus.WARN)

    @property
    def failed(self) -> int:
        return self._count(CheckStatus.FAIL)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def by_section(self) -> Dict[str, List[CheckResult]]:
        sections: Dict[str, List[CheckResult]] = {}
        for result in self.results:
            sections.setdefault(result.section, []).append(result)
        return sections
