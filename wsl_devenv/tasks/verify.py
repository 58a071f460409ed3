"""Setup verification for the Ansible project.

Runs a fixed sequence of presence checks (tools, files, roles), validates the
main playbook, and tallies PASS/WARN/FAIL results.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

import yaml

from .base import BaseTask, TaskError, command_exists, is_wsl
from ..console import banner, check_line, log_step, BLUE, GREEN, RED, YELLOW
from ..data.models import CheckResult, CheckStatus, VerificationSummary, human_size
from ..data.parsing import first_line

DEFAULT_ROLES = [
    "common",
    "ssh-keys",
    "gpg-keys",
    "development",
    "kubernetes-tools",
    "docker",
]

DEFAULT_REQUIRED_FILES = [
    "ansible.cfg",
    "inventory/hosts",
    "playbooks/main.yml",
    "vars/user_environment.yml",
]

DEFAULT_OPTIONAL_TOOLS = [
    "git", "curl", "wget", "vim", "docker", "node", "npm", "go", "rustc",
    "ruby", "terraform", "kubectl", "talosctl", "doppler", "gpg",
]

MAIN_PLAYBOOK = "playbooks/main.yml"

STATUS_COLORS = {
    CheckStatus.PASS: GREEN,
    CheckStatus.WARN: YELLOW,
    CheckStatus.FAIL: RED,
}


class PlaybookLoader(yaml.SafeLoader):
    """SafeLoader that accepts Ansible tags (!vault, !unsafe, ...) as opaque values."""


PlaybookLoader.add_multi_constructor("!", lambda loader, suffix, node: None)


class SetupVerifier(BaseTask):
    """Verifies that the Ansible environment is ready to run playbooks."""

    def __init__(
        self,
        project_dir: Path,
        roles: Optional[List[str]] = None,
        required_files: Optional[List[str]] = None,
        optional_tools: Optional[List[str]] = None,
        command_timeout: int = 120,
    ):
        self.project_dir = Path(project_dir).expanduser()
        self.roles = roles if roles is not None else list(DEFAULT_ROLES)
        self.required_files = required_files if required_files is not None else list(DEFAULT_REQUIRED_FILES)
        self.optional_tools = optional_tools if optional_tools is not None else list(DEFAULT_OPTIONAL_TOOLS)
        self.command_timeout = command_timeout
        self.summary = VerificationSummary()
        self._section = ""

    @property
    def name(self) -> str:
        return "verify"

    @property
    def display_name(self) -> str:
        return "WSL2 Ansible Setup Verification"

    def is_available(self) -> bool:
        return self.project_dir.is_dir()

    # --- Recording ---

    def section(self, title: str) -> None:
        self._section = title
        log_step(title)

    def record(self, name: str, status: CheckStatus, message: str) -> CheckResult:
        result = CheckResult(section=self._section, name=name, status=status, message=message)
        self.summary.results.append(result)
        check_line(result.marker, message, STATUS_COLORS[status])
        return result

    def _command_ok(self, cmd: List[str]) -> bool:
        try:
            result = self.run_command(cmd, check=False, timeout=self.command_timeout, cwd=self.project_dir)
        except TaskError:
            return False
        return result.returncode == 0

    def _version(self, cmd: List[str]) -> str:
        try:
            result = self.run_command(cmd, check=False, timeout=self.command_timeout)
        except TaskError:
            return ""
        return first_line(result.stdout) or first_line(result.stderr)

    # --- Checks ---

    def check_environment(self) -> None:
        self.section("Environment Check")
        if is_wsl():
            self.record("wsl", CheckStatus.PASS, "Running in WSL environment")
        else:
            self.record("wsl", CheckStatus.WARN, "Not running in WSL (this is okay if testing elsewhere)")

    def check_ansible(self) -> None:
        self.section("Ansible Installation")
        if command_exists("ansible"):
            version = self._version(["ansible", "--version"])
            self.record("ansible", CheckStatus.PASS, f"Ansible installed: {version}")
        else:
            self.record("ansible", CheckStatus.FAIL, "Ansible not found - run bootstrap")

    def check_python(self) -> None:
        self.section("Python Environment")
        if command_exists("python3"):
            version = self._version(["python3", "--version"])
            self.record("python3", CheckStatus.PASS, f"Python installed: {version}")
        else:
            self.record("python3", CheckStatus.FAIL, "Python3 not found")

        if command_exists("pip3"):
            self.record("pip3", CheckStatus.PASS, "pip3 installed")
        else:
            self.record("pip3", CheckStatus.FAIL, "pip3 not found")

        for linter in ("ansible-lint", "yamllint"):
            if command_exists(linter):
                self.record(linter, CheckStatus.PASS, f"{linter} installed")
            else:
                self.record(linter, CheckStatus.WARN, f"{linter} not found (optional but recommended)")

    def check_structure(self) -> None:
        self.section("Directory Structure")
        for relative in self.required_files:
            if (self.project_dir / relative).is_file():
                self.record(relative, CheckStatus.PASS, f"{relative} found")
            else:
                self.record(relative, CheckStatus.FAIL, f"{relative} not found")

    def check_roles(self) -> None:
        self.section("Ansible Roles")
        for role in self.roles:
            role_dir = self.project_dir / "roles" / role
            if not role_dir.is_dir():
                self.record(f"role:{role}", CheckStatus.FAIL, f"Role '{role}' not found")
                continue
            self.record(f"role:{role}", CheckStatus.PASS, f"Role '{role}' exists")
            if (role_dir / "tasks" / "main.yml").is_file():
                self.record(f"role:{role}:tasks", CheckStatus.PASS, "  - tasks/main.yml exists")
            else:
                self.record(f"role:{role}:tasks", CheckStatus.FAIL, "  - tasks/main.yml missing")

    def check_playbook(self) -> None:
        self.section("Playbook Validation")
        playbook = self.project_dir / MAIN_PLAYBOOK
        if not playbook.is_file():
            return

        try:
            yaml.load(playbook.read_text(encoding="utf-8"), Loader=PlaybookLoader)
        except yaml.YAMLError as e:
            self.record("playbook:yaml", CheckStatus.FAIL, f"Main playbook is not valid YAML: {e}")
            return
        self.record("playbook:yaml", CheckStatus.PASS, "Main playbook parses as YAML")

        if not command_exists("ansible-playbook"):
            return
        if self._command_ok(["ansible-playbook", "--syntax-check", MAIN_PLAYBOOK]):
            self.record("playbook:syntax", CheckStatus.PASS, "Main playbook syntax is valid")
        else:
            self.record("playbook:syntax", CheckStatus.FAIL, "Main playbook has syntax errors")
            print(f"Run: ansible-playbook --syntax-check {MAIN_PLAYBOOK}", flush=True)

    def check_inventory(self) -> None:
        self.section("Inventory Check")
        if not command_exists("ansible") or not (self.project_dir / "inventory" / "hosts").is_file():
            return
        if self._command_ok(["ansible", "local", "-m", "ping", "--become=false"]):
            self.record("inventory:ping", CheckStatus.PASS, "Localhost connectivity verified")
        else:
            self.record(
                "inventory:ping",
                CheckStatus.WARN,
                "Cannot connect to localhost (may require password for become)",
            )

    def check_resources(self) -> None:
        self.section("System Resources")
        try:
            pages = os.sysconf("SC_PHYS_PAGES")
            page_size = os.sysconf("SC_PAGE_SIZE")
            memory = human_size(pages * page_size)
        except (ValueError, OSError, AttributeError):
            memory = "unknown"
        self.record("memory", CheckStatus.PASS, f"Total Memory: {memory}")
        self.record("cpu", CheckStatus.PASS, f"CPU Cores: {os.cpu_count() or 'unknown'}")

    def check_optional_tools(self) -> None:
        self.section("Optional Development Tools")
        for tool in self.optional_tools:
            if command_exists(tool):
                self.record(f"tool:{tool}", CheckStatus.PASS, f"{tool} installed")
            else:
                self.record(
                    f"tool:{tool}",
                    CheckStatus.WARN,
                    f"{tool} not installed (will be installed by playbook if enabled)",
                )

    def run(self) -> VerificationSummary:
        banner(self.display_name, BLUE)
        self.summary = VerificationSummary()

        self.check_environment()
        self.check_ansible()
        self.check_python()
        self.check_structure()
        self.check_roles()
        self.check_playbook()
        self.check_inventory()
        self.check_resources()
        self.check_optional_tools()

        self.show_summary()
        return self.summary

    def show_summary(self) -> None:
        banner("Verification Summary", BLUE)
        print(f"Passed:   {self.summary.passed}")
        print(f"Warnings: {self.summary.warnings}")
        print(f"Failed:   {self.summary.failed}", flush=True)

        if self.summary.ok:
            check_line("\n✓", "All critical checks passed!", GREEN)
            print("\nNext steps:")
            print("  1. Review vars/user_environment.yml")
            print("  2. Customize settings as needed")
            print("  3. Run: ansible-playbook -K playbooks/main.yml", flush=True)
        else:
            check_line("\n✗", "Some checks failed", RED)
            print("\nPlease resolve the failed checks before running playbooks.", flush=True)
