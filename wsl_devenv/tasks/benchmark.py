"""Playbook performance benchmarking.

Times one `ansible-playbook` run with the profile_tasks and timer callbacks
enabled, records the output in a timestamped report, and compares the total
duration with the previous run.
"""

from __future__ import annotations

import os
import platform
import shutil
import socket
import subprocess
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .base import BaseTask, TaskError, command_exists
from ..console import (
    banner,
    confirm,
    log_info,
    log_step,
    log_success,
    log_warning,
    GREEN,
)
from ..data.models import BenchmarkComparison, BenchmarkRun, SystemInfo, human_size
from ..data.parsing import (
    PROFILE_MARKER,
    extract_profile_section,
    format_hms,
    parse_profile_tasks,
    parse_total_duration,
)
from ..data.persistence import BenchmarkStore

RULE = "=" * 50

PROFILING_ENV = {
    "ANSIBLE_CALLBACKS_ENABLED": "profile_tasks,timer",
    "ANSIBLE_CALLBACK_RESULT_FORMAT": "json",
}


def _section(title: str, lines) -> str:
    body = "\n".join(lines)
    return f"\n{RULE}\n{title}\n{RULE}\n{body}\n{RULE}\n"


def _read_os_description() -> str:
    try:
        result = subprocess.run(["lsb_release", "-ds"], capture_output=True, text=True, timeout=10)
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip().strip('"')
    except (OSError, subprocess.TimeoutExpired):
        pass
    os_release = Path("/etc/os-release")
    if os_release.exists():
        for line in os_release.read_text(errors="ignore").splitlines():
            if line.startswith("PRETTY_NAME="):
                return line.split("=", 1)[1].strip().strip('"')
    return "Unknown"


def _read_cpu_model() -> str:
    try:
        for line in Path("/proc/cpuinfo").read_text(errors="ignore").splitlines():
            if line.startswith("model name"):
                return line.split(":", 1)[1].strip()
    except OSError:
        pass
    return platform.processor() or "Unknown"


def _read_memory_total() -> str:
    try:
        for line in Path("/proc/meminfo").read_text(errors="ignore").splitlines():
            if line.startswith("MemTotal:"):
                kib = int(line.split()[1])
                return human_size(kib * 1024)
    except (OSError, ValueError, IndexError):
        pass
    return "Unknown"


def _read_ansible_version() -> str:
    if not command_exists("ansible"):
        return "ansible not installed"
    try:
        result = subprocess.run(["ansible", "--version"], capture_output=True, text=True, timeout=30)
        return result.stdout.strip() or result.stderr.strip()
    except (OSError, subprocess.TimeoutExpired) as e:
        return f"unavailable ({e})"


def capture_system_info() -> SystemInfo:
    """Collect host details for the report header."""
    try:
        disk_free = human_size(shutil.disk_usage("/").free)
    except OSError:
        disk_free = "Unknown"
    return SystemInfo(
        hostname=socket.gethostname(),
        os_description=_read_os_description(),
        kernel=platform.release(),
        cpu_model=_read_cpu_model(),
        cpu_cores=os.cpu_count() or 0,
        memory_total=_read_memory_total(),
        disk_free=disk_free,
        ansible_version=_read_ansible_version(),
    )


def render_header(system: SystemInfo, when: datetime) -> str:
    return (
        f"{RULE}\n"
        "Ansible Playbook Performance Benchmark\n"
        f"{RULE}\n"
        f"Timestamp: {when.astimezone().isoformat(timespec='seconds')}\n"
        f"Hostname: {system.hostname}\n"
        "\n"
        "System Information:\n"
        "-------------------\n"
        f"OS: {system.os_description}\n"
        f"Kernel: {system.kernel}\n"
        f"CPU: {system.cpu_model}\n"
        f"CPU Cores: {system.cpu_cores}\n"
        f"Memory: {system.memory_total}\n"
        f"Disk Space: {system.disk_free}\n"
        "\n"
        "Ansible Version:\n"
        "---------------\n"
        f"{system.ansible_version}\n"
        "\n"
        f"{RULE}\n"
        "\n"
    )


class PlaybookBenchmark(BaseTask):
    """Benchmarks a playbook and keeps a rolling history of reports."""

    def __init__(
        self,
        store: BenchmarkStore,
        playbook: str = "playbooks/main.yml",
        check_mode: bool = True,
        keep_count: int = 10,
        inventory: Optional[str] = None,
        project_dir: Optional[Path] = None,
        assume_yes: Optional[bool] = None,
        system_info_fn: Callable[[], SystemInfo] = capture_system_info,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.playbook = playbook
        self.check_mode = check_mode
        self.keep_count = keep_count
        self.inventory = inventory
        self.project_dir = project_dir
        self.assume_yes = assume_yes
        self.system_info_fn = system_info_fn
        self.clock = clock

    @property
    def name(self) -> str:
        return "benchmark"

    @property
    def display_name(self) -> str:
        return "Ansible Playbook Benchmark"

    def is_available(self) -> bool:
        return command_exists("ansible-playbook")

    def build_command(self) -> list:
        cmd = ["ansible-playbook"]
        if self.inventory:
            cmd.extend(["-i", self.inventory])
        if self.check_mode:
            cmd.append("--check")
        cmd.append(self.playbook)
        return cmd

    def _run_playbook(self, timestamp: str) -> int:
        """Run the playbook, teeing merged output to stdout and the report."""
        env = os.environ.copy()
        env.update(PROFILING_ENV)
        cmd = self.build_command()
        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding="utf-8",
                errors="replace",
                cwd=str(self.project_dir) if self.project_dir else None,
                env=env,
            )
        except OSError as e:
            raise TaskError(self.name, f"Cannot run ansible-playbook: {e}", e)

        try:
            with open(self.store.results_path(timestamp), "a", encoding="utf-8") as report:
                for line in proc.stdout:
                    sys.stdout.write(line)
                    sys.stdout.flush()
                    report.write(line)
        except OSError as e:
            raise TaskError(self.name, f"Cannot write {self.store.results_path(timestamp)}: {e}", e)
        finally:
            proc.stdout.close()
            exit_code = proc.wait()
        return exit_code

    def analyze(self, run: BenchmarkRun) -> None:
        log_step("Analyzing results...")
        text = self.store.read_results(run.timestamp)
        if PROFILE_MARKER not in text:
            log_warning("Profile data not found. Enable profile_tasks callback for detailed analysis.")
            return
        section = extract_profile_section(text)
        self.store.append_results(run.timestamp, _section("Performance Analysis", section))
        run.slow_tasks = parse_profile_tasks(section)
        log_success("Performance analysis added to results")

    def compare(self, run: BenchmarkRun) -> None:
        log_step("Comparing with previous benchmarks...")
        reports = self.store.list_results()
        previous = self.store.previous_results(run.timestamp)
        if previous is None:
            log_info("No previous benchmarks to compare")
            return
        log_info(f"Found {len(reports)} benchmark runs")

        prev_seconds = parse_total_duration(previous.read_text(encoding="utf-8", errors="replace"))
        curr_seconds = parse_total_duration(self.store.read_results(run.timestamp))
        if prev_seconds is None or curr_seconds is None:
            log_info(f"No duration recorded in {previous.name}; skipping comparison")
            return

        comparison = BenchmarkComparison(previous_seconds=prev_seconds, current_seconds=curr_seconds)
        run.comparison = comparison
        percent = "n/a" if comparison.percent is None else f"{comparison.percent:.2f}%"
        self.store.append_results(
            run.timestamp,
            _section(
                "Comparison with Previous Run",
                [
                    f"Previous Duration: {prev_seconds}s",
                    f"Current Duration: {curr_seconds}s",
                    f"Difference: {comparison.difference}s ({percent})",
                ],
            ),
        )

        magnitude = "n/a" if comparison.percent is None else f"{abs(comparison.percent):.2f}%"
        if comparison.trend == "improved":
            log_success(f"Performance improved by {abs(comparison.difference)}s ({magnitude})")
        elif comparison.trend == "degraded":
            log_warning(f"Performance degraded by {comparison.difference}s ({magnitude})")
        else:
            log_info("Performance unchanged")

    def cleanup_old(self, run: BenchmarkRun) -> None:
        log_step(f"Cleaning up old benchmarks (keeping last {self.keep_count})...")
        total = len(self.store.list_results())
        run.pruned = self.store.prune(self.keep_count)
        if run.pruned:
            log_success(f"Removed {run.pruned} old benchmark files")
        else:
            log_info(f"No cleanup needed (only {total} benchmarks stored)")

    def run(self) -> BenchmarkRun:
        now = datetime.now()
        timestamp = now.strftime("%Y%m%d-%H%M%S")
        run = BenchmarkRun(
            timestamp=timestamp,
            playbook=self.playbook,
            check_mode=self.check_mode,
            results_file=self.store.results_path(timestamp),
            metrics_file=self.store.metrics_path(timestamp),
        )

        banner(self.display_name)
        log_info(f"Timestamp: {now:%c}")
        log_info(f"Benchmark file: {run.metrics_file}")
        log_info(f"Results file: {run.results_file}")

        log_step("Capturing system information...")
        run.system = self.system_info_fn()
        self.store.write_results(timestamp, render_header(run.system, now))
        log_success("System information captured")

        log_step("Running playbook with performance profiling...")
        log_info(f"Playbook: {self.playbook}")
        log_info(f"Check mode: {str(self.check_mode).lower()}")
        if self.check_mode:
            log_warning("Running in check mode (dry run)")
        else:
            log_warning("Running playbook (this will make changes!)")
            if not confirm("Continue?", self.assume_yes):
                log_info("Benchmark cancelled")
                run.results_file.unlink(missing_ok=True)
                run.cancelled = True
                return run

        run.start = int(self.clock())
        run.exit_code = self._run_playbook(timestamp)
        run.end = int(self.clock())

        times = [
            f"Start Time: {datetime.fromtimestamp(run.start):%c}",
            f"End Time: {datetime.fromtimestamp(run.end):%c}",
        ]

        if run.exit_code != 0:
            # failed runs record no Total Duration
            self.store.append_results(
                timestamp, _section("Benchmark Results", [f"Exit Code: {run.exit_code}"] + times)
            )
            self.store.save_metrics(timestamp, run.to_dict())
            raise TaskError(
                self.name,
                f"ansible-playbook exited with code {run.exit_code} (see {run.results_file})",
            )
        self.store.append_results(
            timestamp,
            _section(
                "Benchmark Results",
                [f"Total Duration: {run.duration_seconds}s ({format_hms(run.duration_seconds)})"] + times,
            ),
        )
        log_success(f"Playbook execution completed in {run.duration_seconds}s")

        self.analyze(run)
        self.compare(run)
        self.cleanup_old(run)
        self.store.save_metrics(timestamp, run.to_dict())
        self.show_summary(run)
        return run

    def show_summary(self, run: BenchmarkRun) -> None:
        log_step("Benchmark Summary")
        banner("Benchmark Complete!", GREEN)
        log_info(f"Results saved to: {run.results_file}")
        log_info(f"Total Duration: {run.duration_seconds}s")
        if run.slow_tasks:
            log_info("Slowest tasks:")
            for task in run.slow_tasks[:5]:
                print(f"  {task.seconds:8.2f}s  {task.name}", flush=True)
        print(flush=True)
        log_info(f"View full results: cat {run.results_file}")
        log_info(f"View all benchmarks: ls -lh {self.store.bench_dir}/")
