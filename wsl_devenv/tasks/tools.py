"""Developer CLI binary installer.

Downloads a release binary, verifies its SHA-256 against the published
checksum, and installs it into ~/.local/bin.

Extras:
- Retries with exponential backoff for transient HTTP failures.
- Download goes to a temp file beside the target; nothing is installed unless
  the checksum matches.
"""

from __future__ import annotations

import hashlib
import os
import platform
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .base import BaseTask, TaskError
from ..console import log_info, log_step, log_success
from ..data.parsing import parse_checksum

USER_AGENT = "wsl-devenv/1.0"
CHUNK_SIZE = 1024 * 64


@dataclass
class ToolSpec:
    """Where to find a tool's binary and checksum for a given version."""

    name: str
    url_template: str
    checksum_template: str
    checksum_filename_template: Optional[str] = None  # Entry name in a sha256sum list

    def url(self, version: str, arch: str) -> str:
        return self.url_template.format(version=version, arch=arch)

    def checksum_url(self, version: str, arch: str) -> str:
        return self.checksum_template.format(version=version, arch=arch)

    def checksum_filename(self, version: str, arch: str) -> Optional[str]:
        if not self.checksum_filename_template:
            return None
        return self.checksum_filename_template.format(version=version, arch=arch)


KNOWN_TOOLS: Dict[str, ToolSpec] = {
    "kubectl": ToolSpec(
        name="kubectl",
        url_template="https://dl.k8s.io/release/{version}/bin/linux/{arch}/kubectl",
        checksum_template="https://dl.k8s.io/release/{version}/bin/linux/{arch}/kubectl.sha256",
    ),
    "talosctl": ToolSpec(
        name="talosctl",
        url_template="https://github.com/siderolabs/talos/releases/download/{version}/talosctl-linux-{arch}",
        checksum_template="https://github.com/siderolabs/talos/releases/download/{version}/sha256sum.txt",
        checksum_filename_template="talosctl-linux-{arch}",
    ),
}


def detect_arch() -> str:
    """Map the machine type onto release asset naming (amd64/arm64)."""
    machine = platform.machine().lower()
    if machine in ("x86_64", "amd64"):
        return "amd64"
    if machine in ("aarch64", "arm64"):
        return "arm64"
    return machine


# --- HTTP Session ------------------------------------------------------------

def _wrap_timeout(request_func, default_timeout: int):
    def wrapped(method, url, **kwargs):
        if "timeout" not in kwargs:
            kwargs["timeout"] = default_timeout
        return request_func(method, url, **kwargs)
    return wrapped


def make_session(retries: int = 3, backoff_factor: float = 1.0, timeout: int = 60) -> requests.Session:
    s = requests.Session()
    retry = Retry(
        total=retries, connect=retries, read=retries,
        backoff_factor=backoff_factor,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "HEAD")
    )
    adapter = HTTPAdapter(max_retries=retry)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    s.headers.update({"User-Agent": USER_AGENT})
    s.request = _wrap_timeout(s.request, default_timeout=timeout)
    return s


class ToolInstaller(BaseTask):
    """Download-and-verify installer for single-binary CLIs."""

    def __init__(
        self,
        tool: str,
        version: Optional[str] = None,
        url: Optional[str] = None,
        sha256: Optional[str] = None,
        install_dir: Path = Path("~/.local/bin"),
        arch: Optional[str] = None,
        retries: int = 3,
        timeout: int = 60,
        session: Optional[requests.Session] = None,
    ):
        if url is None and tool not in KNOWN_TOOLS:
            raise ValueError(f"Unknown tool '{tool}'; pass an explicit URL and checksum")
        if url is None and not version:
            raise ValueError(f"A version is required for {tool}")
        if url is not None and not sha256:
            raise ValueError("An explicit URL requires --sha256")
        self.tool = tool
        self.version = version
        self.url = url
        self.sha256 = sha256.lower() if sha256 else None
        self.install_dir = Path(install_dir).expanduser()
        self.arch = arch or detect_arch()
        self.retries = retries
        self.timeout = timeout
        self.session = session or make_session(retries=retries, timeout=timeout)

    @property
    def name(self) -> str:
        return "tools"

    @property
    def display_name(self) -> str:
        return f"Install {self.tool}"

    @property
    def target(self) -> Path:
        return self.install_dir / self.tool

    def is_available(self) -> bool:
        return True

    def download_url(self) -> str:
        if self.url:
            return self.url
        return KNOWN_TOOLS[self.tool].url(self.version, self.arch)

    def expected_checksum(self) -> str:
        """Explicit --sha256, else the digest published next to the release."""
        if self.sha256:
            return self.sha256
        spec = KNOWN_TOOLS[self.tool]
        checksum_url = spec.checksum_url(self.version, self.arch)
        try:
            resp = self.session.get(checksum_url)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise TaskError(self.name, f"Cannot fetch checksum from {checksum_url}: {e}", e)
        digest = parse_checksum(resp.text, spec.checksum_filename(self.version, self.arch))
        if not digest:
            raise TaskError(self.name, f"No SHA-256 found in {checksum_url}")
        return digest

    def download(self, url: str, dest: Path) -> str:
        """Stream ``url`` into ``dest`` and return its SHA-256 hex digest."""
        digest = hashlib.sha256()
        try:
            with self.session.get(url, stream=True) as resp:
                resp.raise_for_status()
                with open(dest, "wb") as f:
                    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
                            digest.update(chunk)
        except requests.RequestException as e:
            raise TaskError(self.name, f"Download failed for {url}: {e}", e)
        except OSError as e:
            raise TaskError(self.name, f"Cannot write {dest}: {e}", e)
        return digest.hexdigest()

    def run(self) -> Path:
        log_step(f"{self.display_name}{' ' + self.version if self.version else ''}...")
        url = self.download_url()
        log_info(f"Source: {url}")
        expected = self.expected_checksum()

        try:
            self.install_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.tool}-", dir=self.install_dir)
            os.close(fd)
        except OSError as e:
            raise TaskError(self.name, f"Cannot create files in {self.install_dir}: {e}", e)
        tmp_path = Path(tmp_name)
        try:
            actual = self.download(url, tmp_path)
            if actual != expected:
                raise TaskError(
                    self.name,
                    f"Checksum mismatch for {self.tool}: expected {expected}, got {actual}",
                )
            tmp_path.chmod(0o755)
            os.replace(tmp_path, self.target)
        except OSError as e:
            raise TaskError(self.name, f"Cannot install {self.target}: {e}", e)
        finally:
            tmp_path.unlink(missing_ok=True)

        log_success(f"{self.tool} installed to {self.target} (sha256 verified)")
        return self.target
