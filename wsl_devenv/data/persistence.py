"""Persistence layer for benchmark results and update-check stamps.

Benchmarks are stored as timestamped text reports plus JSON metrics in
~/.ansible-benchmarks/. The update check keeps a single epoch timestamp in
~/.ansible-last-update-check.
"""

from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional


RESULTS_PREFIX = "results-"
METRICS_PREFIX = "benchmark-"


def get_benchmark_dir(override: Optional[str] = None) -> Path:
    """Get the benchmark results directory.

    Returns ~/.ansible-benchmarks/ by default, or WSL_DEVENV_BENCHMARK_DIR env
    var, or the explicit override. Creates the directory if it doesn't exist.
    """
    if override:
        bench_dir = Path(override).expanduser()
    else:
        bench_dir = Path(
            os.environ.get("WSL_DEVENV_BENCHMARK_DIR", Path.home() / ".ansible-benchmarks")
        ).expanduser()
    bench_dir.mkdir(parents=True, exist_ok=True)
    return bench_dir


class BenchmarkStore:
    """Flat-file storage for benchmark runs.

    Each run produces two files sharing a timestamp suffix:
    - results-<ts>.txt: human-readable report including playbook output
    - benchmark-<ts>.json: machine-readable metrics
    """

    def __init__(self, bench_dir: Optional[Path] = None):
        self.bench_dir = bench_dir or get_benchmark_dir()
        self.bench_dir.mkdir(parents=True, exist_ok=True)

    def results_path(self, timestamp: str) -> Path:
        return self.bench_dir / f"{RESULTS_PREFIX}{timestamp}.txt"

    def metrics_path(self, timestamp: str) -> Path:
        return self.bench_dir / f"{METRICS_PREFIX}{timestamp}.json"

    # --- Text reports ---

    def write_results(self, timestamp: str, content: str) -> Path:
        """Create (or truncate) the results report."""
        path = self.results_path(timestamp)
        path.write_text(content, encoding="utf-8")
        return path

    def append_results(self, timestamp: str, content: str) -> None:
        with open(self.results_path(timestamp), "a", encoding="utf-8") as f:
            f.write(content)

    def read_results(self, timestamp: str) -> str:
        path = self.results_path(timestamp)
        if not path.exists():
            return ""
        return path.read_text(encoding="utf-8", errors="replace")

    def list_results(self) -> List[Path]:
        """All results reports, oldest first (name order == time order)."""
        return sorted(p for p in self.bench_dir.glob(f"{RESULTS_PREFIX}*.txt") if p.is_file())

    def previous_results(self, timestamp: str) -> Optional[Path]:
        """Most recent successful report other than the one for ``timestamp``.

        Runs whose metrics record a non-zero exit code are skipped.
        """
        current = self.results_path(timestamp).name
        others = [
            p for p in self.list_results()
            if p.name != current and not self._failed(p.stem[len(RESULTS_PREFIX):])
        ]
        return others[-1] if others else None

    def _failed(self, timestamp: str) -> bool:
        metrics = self.load_metrics(timestamp) or {}
        return metrics.get("exit_code", 0) not in (0, None)

    # --- JSON metrics ---

    def save_metrics(self, timestamp: str, data: Dict[str, Any]) -> Path:
        path = self.metrics_path(timestamp)
        path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
        return path

    def load_metrics(self, timestamp: str) -> Optional[Dict[str, Any]]:
        path = self.metrics_path(timestamp)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return None

    # --- Retention ---

    def prune(self, keep: int) -> int:
        """Delete all but the newest ``keep`` reports and their metrics.

        Returns number of reports removed.
        """
        reports = self.list_results()
        if keep < 0 or len(reports) <= keep:
            return 0
        doomed = reports[: len(reports) - keep]
        for report in doomed:
            timestamp = report.stem[len(RESULTS_PREFIX):]
            report.unlink(missing_ok=True)
            self.metrics_path(timestamp).unlink(missing_ok=True)
        return len(doomed)


class UpdateStamp:
    """Single-line epoch timestamp recording the last update check."""

    def __init__(self, path: Path):
        self.path = path

    def read(self) -> Optional[int]:
        """Return the stored epoch seconds, or None if missing/unreadable."""
        if not self.path.exists():
            return None
        try:
            return int(self.path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None

    def write(self, when: Optional[int] = None) -> int:
        value = int(time.time()) if when is None else int(when)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(f"{value}\n", encoding="utf-8")
        return value
