"""Ansible bootstrap for WSL2 Ubuntu.

Installs Ansible, its Python helpers and linters, and prepares the user's
shell and ~/.ansible directories.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from .base import BaseTask, TaskError, command_exists, is_wsl
from ..console import banner, confirm, log_info, log_step, log_success, log_warning, CYAN, GREEN
from ..data.parsing import first_line

PREREQUISITE_PACKAGES = [
    "software-properties-common",
    "python3",
    "python3-pip",
    "python3-dev",
    "git",
    "curl",
    "wget",
    "build-essential",
    "libffi-dev",
    "libssl-dev",
    "libyaml-dev",
    "python3-apt",
]

PYTHON_APT_PACKAGES = [
    "python3-jmespath",
    "python3-netaddr",
    "python3-passlib",
]

PIPX_PACKAGES = [
    "ansible-lint",
    "yamllint",
]

ANSIBLE_PPA = "ppa:ansible/ansible"

APT_SOURCES = [Path("/etc/apt/sources.list"), Path("/etc/apt/sources.list.d")]

PATH_SNIPPET = '\n# Ansible bootstrap: Add pip user bin to PATH\nexport PATH="$HOME/.local/bin:$PATH"\n'


class Bootstrapper(BaseTask):
    """Installs Ansible and its tooling with apt, pipx, and pip."""

    def __init__(
        self,
        home: Optional[Path] = None,
        prerequisites: Optional[List[str]] = None,
        python_apt_packages: Optional[List[str]] = None,
        pipx_packages: Optional[List[str]] = None,
        assume_yes: Optional[bool] = None,
        skip_upgrade: bool = False,
        apt_timeout: int = 3600,
    ):
        self.home = Path(home).expanduser() if home else Path.home()
        self.prerequisites = prerequisites if prerequisites is not None else list(PREREQUISITE_PACKAGES)
        self.python_apt_packages = (
            python_apt_packages if python_apt_packages is not None else list(PYTHON_APT_PACKAGES)
        )
        self.pipx_packages = pipx_packages if pipx_packages is not None else list(PIPX_PACKAGES)
        self.assume_yes = assume_yes
        self.skip_upgrade = skip_upgrade
        self.apt_timeout = apt_timeout

    @property
    def name(self) -> str:
        return "bootstrap"

    @property
    def display_name(self) -> str:
        return "Ansible Bootstrap for WSL2"

    def is_available(self) -> bool:
        return command_exists("apt") and command_exists("sudo")

    def _sudo_apt(self, *args: str, check: bool = True):
        return self.run_command(["sudo", "apt", *args], check=check, timeout=self.apt_timeout)

    # --- Preconditions ---

    def check_root(self) -> None:
        if os.geteuid() == 0:
            raise TaskError(
                self.name,
                "This command should NOT be run as root. Run as regular user; sudo is used when needed.",
            )

    def check_wsl(self) -> bool:
        """Return False when the user declines to continue outside WSL."""
        if is_wsl():
            log_success("Running in WSL environment")
            return True
        log_warning("This bootstrap is designed for WSL2 Ubuntu")
        return confirm("Continue anyway?", self.assume_yes)

    # --- Steps ---

    def update_packages(self) -> None:
        log_step("Updating package lists...")
        self._sudo_apt("update")
        log_success("Package lists updated")

    def upgrade_packages(self) -> None:
        log_step("Upgrading existing packages...")
        log_warning("This may take a while...")
        self._sudo_apt("upgrade", "-y")
        log_success("Packages upgraded")

    def install_prerequisites(self) -> None:
        log_step("Installing prerequisites...")
        log_info(f"Installing: {' '.join(self.prerequisites)}")
        self._sudo_apt("install", "-y", *self.prerequisites)
        log_success("Prerequisites installed")

    def ppa_configured(self) -> bool:
        for source in APT_SOURCES:
            files = sorted(source.glob("*")) if source.is_dir() else [source]
            for path in files:
                try:
                    if "ansible/ansible" in path.read_text(errors="ignore"):
                        return True
                except OSError:
                    continue
        return False

    def add_ansible_ppa(self) -> None:
        log_step("Adding Ansible PPA...")
        if self.ppa_configured():
            log_warning("Ansible PPA already added, skipping...")
            return
        self.run_command(
            ["sudo", "add-apt-repository", "--yes", "--update", ANSIBLE_PPA],
            timeout=self.apt_timeout,
        )
        log_success("Ansible PPA added")

    def install_ansible(self) -> None:
        log_step("Installing Ansible...")
        if command_exists("ansible"):
            current = first_line(self.run_command(["ansible", "--version"], check=False).stdout)
            log_warning(f"Ansible already installed: {current}")
            if not confirm("Reinstall/Upgrade?", self.assume_yes):
                log_info("Skipping Ansible installation")
                return
        self._sudo_apt("install", "-y", "ansible")
        log_success("Ansible installed")

    def _ensure_pipx(self) -> bool:
        if command_exists("pipx"):
            return True
        log_info("Installing pipx for isolated package management...")
        result = self._sudo_apt("install", "-y", "pipx", check=False)
        if result.returncode != 0:
            log_warning("pipx not available via apt, falling back to pip")
            self.run_command(["pip3", "install", "--user", "--break-system-packages", "pipx"])
        ensure = self.run_command(["pipx", "ensurepath"], check=False) if command_exists("pipx") else None
        if ensure is not None and ensure.returncode != 0:
            log_warning("pipx ensurepath failed; add ~/.local/bin to PATH manually")
        return command_exists("pipx")

    def _pip_install(self, package: str) -> None:
        self.run_command(
            ["pip3", "install", "--user", "--break-system-packages", "--upgrade", package],
            timeout=self.apt_timeout,
        )

    def install_python_deps(self) -> None:
        log_step("Installing Python dependencies...")

        log_info(f"Installing Python packages from apt: {' '.join(self.python_apt_packages)}")
        result = self._sudo_apt("install", "-y", *self.python_apt_packages, check=False)
        if result.returncode != 0:
            log_warning("Some apt packages not available")

        have_pipx = self._ensure_pipx()
        log_info(f"Installing Python packages via pipx: {' '.join(self.pipx_packages)}")
        for package in self.pipx_packages:
            if not have_pipx:
                self._pip_install(package)
                continue
            if self.run_command(["pipx", "install", package], check=False).returncode == 0:
                continue
            if self.run_command(["pipx", "upgrade", package], check=False).returncode == 0:
                continue
            log_warning(f"pipx install failed for {package}, trying pip fallback")
            self._pip_install(package)

        log_success("Python dependencies installed")

    def configure_path(self) -> bool:
        """Append ~/.local/bin to PATH in ~/.bashrc. Returns True if written."""
        log_step("Configuring PATH...")
        pip_bin = str(self.home / ".local" / "bin")
        if pip_bin in os.environ.get("PATH", "").split(os.pathsep):
            log_info("PATH already configured")
            return False
        bashrc = self.home / ".bashrc"
        log_info(f"Adding {pip_bin} to PATH in {bashrc}")
        try:
            with open(bashrc, "a", encoding="utf-8") as f:
                f.write(PATH_SNIPPET)
        except OSError as e:
            raise TaskError(self.name, f"Cannot update {bashrc}: {e}", e)
        log_success("PATH configured (restart shell or source ~/.bashrc)")
        return True

    def setup_directories(self) -> List[Path]:
        log_step("Setting up Ansible directories...")
        created = []
        for relative in (".ansible", ".ansible/tmp", ".ansible/roles"):
            path = self.home / relative
            if not path.is_dir():
                try:
                    path.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    raise TaskError(self.name, f"Cannot create {path}: {e}", e)
                log_info(f"Created: {path}")
                created.append(path)
        log_success("Directories ready")
        return created

    def verify_installation(self) -> None:
        log_step("Verifying installation...")
        if not command_exists("ansible"):
            raise TaskError(self.name, "Ansible not found in PATH")

        log_success(f"Ansible: {first_line(self.run_command(['ansible', '--version'], check=False).stdout)}")
        log_success(f"Python: {first_line(self.run_command(['python3', '--version'], check=False).stdout)}")

        for tool, args in (("ansible-lint", ["--version"]), ("yamllint", ["--version"])):
            if command_exists(tool):
                version = first_line(self.run_command([tool, *args], check=False).stdout)
                log_success(f"{tool}: {version}")
            else:
                log_warning(f"{tool} not in PATH (may need to source ~/.bashrc)")

        log_success("Verification complete")

    def show_completion(self) -> None:
        banner("Ansible Bootstrap Complete!", GREEN)
        log_info("Ansible is now ready to use!")
        print()
        print("Quick Start:")
        print("  1. Reload shell or source ~/.bashrc:")
        print("     source ~/.bashrc")
        print("  2. Verify installation:")
        print("     wsl-devenv verify")
        print("  3. Run playbooks from the repository ansible directory:")
        print("     ansible-playbook -K playbooks/main.yml")
        print()
        print("Useful Commands:")
        print("  Check syntax:        ansible-playbook --syntax-check <playbook.yml>")
        print("  List tasks:          ansible-playbook --list-tasks <playbook.yml>")
        print("  Dry run:             ansible-playbook --check <playbook.yml>")
        print("  Lint playbook:       ansible-lint <playbook.yml>")
        print("  Lint YAML:           yamllint <file.yml>", flush=True)

    def run(self) -> bool:
        """Run every bootstrap step. Returns False if the user cancelled."""
        banner(self.display_name, CYAN)

        self.check_root()
        if not self.check_wsl():
            log_info("Installation cancelled")
            return False

        self.update_packages()
        if self.skip_upgrade:
            log_info("Skipping package upgrade")
        else:
            self.upgrade_packages()
        self.install_prerequisites()
        self.add_ansible_ppa()
        self.install_ansible()
        self.install_python_deps()
        self.configure_path()
        self.setup_directories()
        self.verify_installation()

        self.show_completion()
        return True
