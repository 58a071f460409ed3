#!/usr/bin/env python3
"""
WSL2 DevEnv - Main entry point.

Dispatches the maintenance subcommands: fact cache cleanup, playbook
benchmarking, update checks, setup verification, bootstrap, binary installs,
and WSL2 resource limits.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import yaml

from .config import Config
from ..console import log_error, log_info
from ..data.models import UpdateOutcome
from ..data.persistence import BenchmarkStore, UpdateStamp, get_benchmark_dir
from ..tasks.base import TaskError
from ..tasks.benchmark import PlaybookBenchmark
from ..tasks.bootstrap import Bootstrapper
from ..tasks.fact_cache import FactCacheCleaner
from ..tasks.tools import KNOWN_TOOLS, ToolInstaller
from ..tasks.updates import UpdateChecker
from ..tasks.verify import SetupVerifier
from ..tasks.wslconfig import WslConfigWriter


def non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {value}")
    return number


def run_cleanup_cache(config: Config, args) -> int:
    cleaner = FactCacheCleaner(
        cache_dir=Path(args.cache_dir or config.fact_cache.directory),
        max_age_days=args.age if args.age is not None else config.fact_cache.max_age_days,
        dry_run=args.dry_run,
    )
    cleaner.run()
    return 0


def run_benchmark(config: Config, args) -> int:
    store = BenchmarkStore(get_benchmark_dir(args.results_dir or config.benchmark.directory))
    check_mode = config.benchmark.check_mode and not args.real_run
    benchmark = PlaybookBenchmark(
        store=store,
        playbook=args.playbook or config.benchmark.playbook,
        check_mode=check_mode,
        keep_count=args.keep if args.keep is not None else config.benchmark.keep_count,
        inventory=args.inventory or config.benchmark.inventory,
        project_dir=config.project_path,
        assume_yes=True if args.yes else None,
    )
    benchmark.run()
    return 0


def run_check_updates(config: Config, args) -> int:
    checker = UpdateChecker(
        repo_dir=Path(args.repo_dir).expanduser() if args.repo_dir else config.repo_path,
        stamp=UpdateStamp(Path(config.updates.stamp_file).expanduser()),
        interval_days=args.interval if args.interval is not None else config.updates.interval_days,
        remote=args.remote or config.updates.remote,
        branch=args.branch or config.updates.branch,
        force=args.force,
        verbose=args.verbose,
    )
    status = checker.run()
    if status.outcome is UpdateOutcome.UPDATES_AVAILABLE:
        log_info(f"Exit code 2: {status.message}")
    return status.exit_code


def run_verify(config: Config, args) -> int:
    verifier = SetupVerifier(
        project_dir=Path(args.project_dir).expanduser() if args.project_dir else config.project_path,
        roles=config.verify.roles,
        required_files=config.verify.required_files,
        optional_tools=config.verify.optional_tools,
    )
    summary = verifier.run()
    return 0 if summary.ok else 1


def run_bootstrap(config: Config, args) -> int:
    bootstrapper = Bootstrapper(
        prerequisites=config.bootstrap.prerequisites,
        python_apt_packages=config.bootstrap.python_apt_packages,
        pipx_packages=config.bootstrap.pipx_packages,
        assume_yes=True if args.yes else None,
        skip_upgrade=args.skip_upgrade,
    )
    bootstrapper.run()
    return 0


def run_install_tool(config: Config, args) -> int:
    version = args.version or config.tools.versions.get(args.tool)
    installer = ToolInstaller(
        tool=args.tool,
        version=version,
        url=args.url,
        sha256=args.sha256,
        install_dir=Path(args.install_dir or config.tools.install_dir),
        arch=args.arch,
        retries=config.tools.retries,
        timeout=config.tools.timeout,
    )
    installer.run()
    return 0


def run_wslconfig(config: Config, args) -> int:
    path = args.output or config.wsl.path
    if not path and not args.print_only:
        log_error("No .wslconfig path given (use --output or wsl.path in config)")
        return 1
    writer = WslConfigWriter(
        path=Path(path or ".wslconfig"),
        memory=args.memory or config.wsl.memory,
        processors=args.processors if args.processors is not None else config.wsl.processors,
        swap=args.swap or config.wsl.swap,
        localhost_forwarding=config.wsl.localhost_forwarding,
        kernel_command_line=config.wsl.kernel_command_line,
    )
    if args.print_only:
        print(writer.render(), end="", flush=True)
        return 0
    writer.run()
    return 0


def run_show_config(config: Config, args) -> int:
    if config.source:
        log_info(f"Loaded from {config.source}")
    else:
        log_info("Using built-in defaults")
    print(yaml.safe_dump(config.to_dict(), sort_keys=False), end="", flush=True)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wsl-devenv",
        description="WSL2 Ubuntu development environment maintenance",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--config", type=str, help="Path to config YAML file")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    # Fact cache
    p = sub.add_parser("cleanup-cache", help="Delete old Ansible fact cache files")
    p.add_argument("--age", type=non_negative_int, default=None,
                   help="Delete cache files older than DAYS (default: 30)")
    p.add_argument("--dry-run", action="store_true", help="Show what would be deleted without deleting")
    p.add_argument("--cache-dir", default=None, help="Fact cache directory")
    p.set_defaults(func=run_cleanup_cache)

    # Benchmark
    p = sub.add_parser("benchmark", help="Time a playbook run and compare with the previous one")
    p.add_argument("--playbook", default=None, help="Playbook to benchmark (default: playbooks/main.yml)")
    p.add_argument("--real-run", action="store_true", help="Run actual playbook instead of check mode")
    p.add_argument("--inventory", "-i", default=None, help="Inventory passed to ansible-playbook")
    p.add_argument("--keep", type=non_negative_int, default=None, help="Number of reports to keep")
    p.add_argument("--results-dir", default=None, help="Where reports are written")
    p.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    p.set_defaults(func=run_benchmark)

    # Update check
    p = sub.add_parser(
        "check-updates",
        help="Check the repository for upstream changes",
        description="Exit codes: 0 no updates, 1 error, 2 updates available",
    )
    p.add_argument("--force", action="store_true", help="Force update check regardless of interval")
    p.add_argument("--verbose", "-v", action="store_true", help="Show verbose output")
    p.add_argument("--interval", type=non_negative_int, default=None,
                   help="Set check interval in days (default: 7)")
    p.add_argument("--remote", default=None, help="Remote name")
    p.add_argument("--branch", default=None, help="Remote branch")
    p.add_argument("--repo-dir", default=None, help="Repository to check")
    p.set_defaults(func=run_check_updates)

    # Verify
    p = sub.add_parser("verify", help="Verify the Ansible environment")
    p.add_argument("--project-dir", default=None, help="Ansible project directory")
    p.set_defaults(func=run_verify)

    # Bootstrap
    p = sub.add_parser("bootstrap", help="Install Ansible and its tooling")
    p.add_argument("--yes", "-y", action="store_true", help="Answer yes to prompts")
    p.add_argument("--skip-upgrade", action="store_true", help="Skip 'apt upgrade'")
    p.set_defaults(func=run_bootstrap)

    # Tool install
    p = sub.add_parser("install-tool", help="Download and verify a CLI binary")
    p.add_argument("tool", help=f"Tool name ({', '.join(sorted(KNOWN_TOOLS))} or any name with --url)")
    p.add_argument("--version", default=None, help="Release version, e.g. v1.30.2")
    p.add_argument("--url", default=None, help="Explicit download URL")
    p.add_argument("--sha256", default=None, help="Expected SHA-256 (required with --url)")
    p.add_argument("--install-dir", default=None, help="Install directory")
    p.add_argument("--arch", default=None, help="Architecture override (amd64, arm64)")
    p.set_defaults(func=run_install_tool)

    # WSL config
    p = sub.add_parser("wslconfig", help="Write WSL2 resource limits to .wslconfig")
    p.add_argument("--output", default=None, help="Path of the .wslconfig file")
    p.add_argument("--memory", default=None, help="Memory limit, e.g. 8GB")
    p.add_argument("--processors", type=int, default=None, help="Virtual processors")
    p.add_argument("--swap", default=None, help="Swap size, e.g. 2GB")
    p.add_argument("--print", dest="print_only", action="store_true", help="Print instead of writing")
    p.set_defaults(func=run_wslconfig)

    p = sub.add_parser("show-config", help="Print the effective configuration")
    p.set_defaults(func=run_show_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the wsl-devenv command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = Config.load(args.config)
    except (yaml.YAMLError, ValueError, TypeError) as e:
        log_error(f"Invalid configuration: {e}")
        return 1

    try:
        return args.func(config, args)
    except TaskError as e:
        log_error(str(e))
        return 1
    except ValueError as e:
        log_error(str(e))
        return 1
    except KeyboardInterrupt:
        print()
        log_error("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
