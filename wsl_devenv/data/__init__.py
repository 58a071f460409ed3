"""Data layer - result models, output parsing, and flat-file persistence."""

from .persistence import BenchmarkStore, UpdateStamp, get_benchmark_dir
from .models import (
    CheckStatus,
    UpdateOutcome,
    CacheStats,
    StaleFile,
    CleanupReport,
    SystemInfo,
    SlowTask,
    BenchmarkComparison,
    BenchmarkRun,
    VersionInfo,
    UpdateStatus,
    CheckResult,
    VerificationSummary,
    human_size,
)

__all__ = [
    "BenchmarkStore",
    "UpdateStamp",
    "get_benchmark_dir",
    "CheckStatus",
    "UpdateOutcome",
    "CacheStats",
    "StaleFile",
    "CleanupReport",
    "SystemInfo",
    "SlowTask",
    "BenchmarkComparison",
    "BenchmarkRun",
    "VersionInfo",
    "UpdateStatus",
    "CheckResult",
    "VerificationSummary",
    "human_size",
]
