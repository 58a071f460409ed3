"""Maintenance tasks - fact cache, benchmarks, updates, verification, installs."""

from .base import BaseTask, TaskError
from .fact_cache import FactCacheCleaner
from .benchmark import PlaybookBenchmark
from .updates import UpdateChecker
from .verify import SetupVerifier
from .bootstrap import Bootstrapper
from .tools import ToolInstaller, KNOWN_TOOLS
from .wslconfig import WslConfigWriter

__all__ = [
    "BaseTask",
    "TaskError",
    "FactCacheCleaner",
    "PlaybookBenchmark",
    "UpdateChecker",
    "SetupVerifier",
    "Bootstrapper",
    "ToolInstaller",
    "KNOWN_TOOLS",
    "WslConfigWriter",
]
