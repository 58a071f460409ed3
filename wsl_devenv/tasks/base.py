"""Base task interface for maintenance operations."""

import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence


class BaseTask(ABC):
    """Abstract base class for maintenance tasks.

    All tasks implement this interface so the CLI can drive them uniformly
    (fact cache cleanup, benchmarking, update checks, etc.).
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this task.

        Returns:
            A short, lowercase identifier (e.g., 'fact_cache', 'benchmark')
        """
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name used in banners.

        Returns:
            A user-friendly name (e.g., 'Ansible Fact Cache Cleanup')
        """
        pass

    @abstractmethod
    def run(self) -> Any:
        """Execute the task front to back.

        Returns:
            A result object describing what happened. Type varies by task.

        Raises:
            TaskError: If the task cannot complete.
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this task can run (tools and paths present).

        Returns:
            True if the task can operate, False otherwise.
        """
        pass

    # --- Subprocess helpers shared by tasks ---

    def run_command(
        self,
        cmd: Sequence[str],
        *,
        check: bool = True,
        timeout: Optional[int] = None,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        """Run a command capturing text output.

        Raises:
            TaskError: If the command fails (when ``check``), times out, or
                cannot be started.
        """
        try:
            return subprocess.run(
                list(cmd),
                capture_output=True,
                text=True,
                check=check,
                timeout=timeout,
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env is not None else None,
            )
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() or f"exit code {e.returncode}"
            raise TaskError(self.name, f"'{' '.join(cmd)}' failed: {detail}", e)
        except subprocess.TimeoutExpired as e:
            raise TaskError(self.name, f"Timeout running '{' '.join(cmd)}'", e)
        except OSError as e:
            raise TaskError(self.name, f"Cannot run '{cmd[0]}': {e}", e)


def command_exists(command: str) -> bool:
    """Equivalent of `command -v` for an executable on PATH."""
    return shutil.which(command) is not None


def is_wsl(proc_version: Path = Path("/proc/version")) -> bool:
    """Detect WSL by the Microsoft kernel signature."""
    try:
        return "microsoft" in proc_version.read_text(errors="ignore").lower()
    except OSError:
        return False


def output_lines(text: str) -> List[str]:
    return [line for line in (text or "").splitlines() if line.strip()]


class TaskError(Exception):
    """Exception raised when a task cannot complete."""

    def __init__(self, task_name: str, message: str, cause: Optional[Exception] = None):
        self.task_name = task_name
        self.cause = cause
        super().__init__(f"[{task_name}] {message}")
