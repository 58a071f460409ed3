"""Configuration management for the WSL2 dev environment tooling.

Supports YAML-based configuration with per-task settings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..tasks.bootstrap import PIPX_PACKAGES, PREREQUISITE_PACKAGES, PYTHON_APT_PACKAGES
from ..tasks.verify import DEFAULT_OPTIONAL_TOOLS, DEFAULT_REQUIRED_FILES, DEFAULT_ROLES

TRUE_STRINGS = {"true", "yes", "on", "1"}
FALSE_STRINGS = {"false", "no", "off", "0"}


def _as_bool(value: Any, default: bool, key: str) -> bool:
    """YAML booleans pass through; quoted strings like "false" are parsed."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_STRINGS:
        return True
    if text in FALSE_STRINGS:
        return False
    raise ValueError(f"{key} must be true or false, got {value!r}")


@dataclass
class FactCacheConfig:
    """Fact cache cleanup configuration."""

    directory: str = "~/.ansible/facts_cache"
    max_age_days: int = 30


@dataclass
class BenchmarkConfig:
    """Benchmark configuration."""

    directory: Optional[str] = None  # None = ~/.ansible-benchmarks or env override
    playbook: str = "playbooks/main.yml"
    inventory: Optional[str] = None
    keep_count: int = 10
    check_mode: bool = True


@dataclass
class UpdateConfig:
    """Update check configuration."""

    stamp_file: str = "~/.ansible-last-update-check"
    interval_days: int = 7
    remote: str = "origin"
    branch: str = "main"
    repo_dir: Optional[str] = None  # None = parent of project_dir


@dataclass
class VerifyConfig:
    """Setup verification configuration."""

    roles: List[str] = field(default_factory=lambda: list(DEFAULT_ROLES))
    required_files: List[str] = field(default_factory=lambda: list(DEFAULT_REQUIRED_FILES))
    optional_tools: List[str] = field(default_factory=lambda: list(DEFAULT_OPTIONAL_TOOLS))


@dataclass
class BootstrapConfig:
    """Bootstrap package lists."""

    prerequisites: List[str] = field(default_factory=lambda: list(PREREQUISITE_PACKAGES))
    python_apt_packages: List[str] = field(default_factory=lambda: list(PYTHON_APT_PACKAGES))
    pipx_packages: List[str] = field(default_factory=lambda: list(PIPX_PACKAGES))


@dataclass
class ToolsConfig:
    """Binary download configuration."""

    install_dir: str = "~/.local/bin"
    retries: int = 3
    timeout: int = 60
    versions: Dict[str, str] = field(default_factory=dict)


@dataclass
class WslConfig:
    """WSL2 VM resource limits."""

    path: Optional[str] = None
    memory: str = "8GB"
    processors: int = 4
    swap: str = "2GB"
    localhost_forwarding: bool = True
    kernel_command_line: Optional[str] = None


@dataclass
class Config:
    """Main configuration container."""

    project_dir: str = "."

    fact_cache: FactCacheConfig = field(default_factory=FactCacheConfig)
    benchmark: BenchmarkConfig = field(default_factory=BenchmarkConfig)
    updates: UpdateConfig = field(default_factory=UpdateConfig)
    verify: VerifyConfig = field(default_factory=VerifyConfig)
    bootstrap: BootstrapConfig = field(default_factory=BootstrapConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    wsl: WslConfig = field(default_factory=WslConfig)

    # Path the config was loaded from, if any
    source: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary."""
        # Parse fact cache config
        fc_data = data.get("fact_cache") or {}
        fact_cache = FactCacheConfig(
            directory=fc_data.get("directory", "~/.ansible/facts_cache"),
            max_age_days=int(fc_data.get("max_age_days", 30)),
        )

        # Parse benchmark config
        bm_data = data.get("benchmark") or {}
        benchmark = BenchmarkConfig(
            directory=bm_data.get("directory"),
            playbook=bm_data.get("playbook", "playbooks/main.yml"),
            inventory=bm_data.get("inventory"),
            keep_count=int(bm_data.get("keep_count", 10)),
            check_mode=_as_bool(bm_data.get("check_mode"), True, "benchmark.check_mode"),
        )

        # Parse update check config
        up_data = data.get("updates") or {}
        updates = UpdateConfig(
            stamp_file=up_data.get("stamp_file", "~/.ansible-last-update-check"),
            interval_days=int(up_data.get("interval_days", 7)),
            remote=up_data.get("remote", "origin"),
            branch=up_data.get("branch", "main"),
            repo_dir=up_data.get("repo_dir"),
        )

        vf_data = data.get("verify") or {}
        verify = VerifyConfig(
            roles=vf_data.get("roles", list(DEFAULT_ROLES)),
            required_files=vf_data.get("required_files", list(DEFAULT_REQUIRED_FILES)),
            optional_tools=vf_data.get("optional_tools", list(DEFAULT_OPTIONAL_TOOLS)),
        )

        bs_data = data.get("bootstrap") or {}
        bootstrap = BootstrapConfig(
            prerequisites=bs_data.get("prerequisites", list(PREREQUISITE_PACKAGES)),
            python_apt_packages=bs_data.get("python_apt_packages", list(PYTHON_APT_PACKAGES)),
            pipx_packages=bs_data.get("pipx_packages", list(PIPX_PACKAGES)),
        )

        tl_data = data.get("tools") or {}
        tools = ToolsConfig(
            install_dir=tl_data.get("install_dir", "~/.local/bin"),
            retries=int(tl_data.get("retries", 3)),
            timeout=int(tl_data.get("timeout", 60)),
            versions={str(k): str(v) for k, v in (tl_data.get("versions") or {}).items()},
        )

        wsl_data = data.get("wsl") or {}
        wsl = WslConfig(
            path=wsl_data.get("path"),
            memory=str(wsl_data.get("memory", "8GB")),
            processors=int(wsl_data.get("processors", 4)),
            swap=str(wsl_data.get("swap", "2GB")),
            localhost_forwarding=_as_bool(wsl_data.get("localhost_forwarding"), True, "wsl.localhost_forwarding"),
            kernel_command_line=wsl_data.get("kernel_command_line"),
        )

        return cls(
            project_dir=data.get("project_dir", "."),
            fact_cache=fact_cache,
            benchmark=benchmark,
            updates=updates,
            verify=verify,
            bootstrap=bootstrap,
            tools=tools,
            wsl=wsl,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load config from YAML file."""
        if not path.exists():
            return cls()
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        config = cls.from_dict(data)
        config.source = str(path)
        return config

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """Load config from path or defaults.

        Checks in order:
        1. Provided path
        2. WSL_DEVENV_CONFIG env var
        3. ./configs/config.yaml
        4. ./config.yaml
        5. ~/.wsl_devenv/config.yaml
        6. Default config
        """
        paths_to_try = []

        if config_path:
            paths_to_try.append(Path(config_path).expanduser())

        if env_path := os.environ.get("WSL_DEVENV_CONFIG"):
            paths_to_try.append(Path(env_path).expanduser())

        paths_to_try.extend([
            Path("./configs/config.yaml"),
            Path("./config.yaml"),
            Path.home() / ".wsl_devenv" / "config.yaml",
        ])

        for path in paths_to_try:
            if path.exists():
                return cls.from_yaml(path)

        return cls()

    @property
    def project_path(self) -> Path:
        return Path(self.project_dir).expanduser().resolve()

    @property
    def repo_path(self) -> Path:
        """Repository root for update checks (the project lives in <repo>/ansible)."""
        if self.updates.repo_dir:
            return Path(self.updates.repo_dir).expanduser().resolve()
        project = self.project_path
        if (project / ".git").exists():
            return project
        return project.parent

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "project_dir": self.project_dir,
            "fact_cache": {
                "directory": self.fact_cache.directory,
                "max_age_days": self.fact_cache.max_age_days,
            },
            "benchmark": {
                "directory": self.benchmark.directory,
                "playbook": self.benchmark.playbook,
                "inventory": self.benchmark.inventory,
                "keep_count": self.benchmark.keep_count,
                "check_mode": self.benchmark.check_mode,
            },
            "updates": {
                "stamp_file": self.updates.stamp_file,
                "interval_days": self.updates.interval_days,
                "remote": self.updates.remote,
                "branch": self.updates.branch,
                "repo_dir": self.updates.repo_dir,
            },
            "verify": {
                "roles": self.verify.roles,
                "required_files": self.verify.required_files,
                "optional_tools": self.verify.optional_tools,
            },
            "bootstrap": {
                "prerequisites": self.bootstrap.prerequisites,
                "python_apt_packages": self.bootstrap.python_apt_packages,
                "pipx_packages": self.bootstrap.pipx_packages,
            },
            "tools": {
                "install_dir": self.tools.install_dir,
                "retries": self.tools.retries,
                "timeout": self.tools.timeout,
                "versions": self.tools.versions,
            },
            "wsl": {
                "path": self.wsl.path,
                "memory": self.wsl.memory,
                "processors": self.wsl.processors,
                "swap": self.wsl.swap,
                "localhost_forwarding": self.wsl.localhost_forwarding,
                "kernel_command_line": self.wsl.kernel_command_line,
            },
        }
