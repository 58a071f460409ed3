"""WSL2 resource limits.

Writes the `[wsl2]` section of the Windows-side `.wslconfig` file, which
caps memory, processors, and swap for the WSL2 VM.
"""

from __future__ import annotations

import configparser
import os
import re
from pathlib import Path
from typing import Dict, List, Optional

from .base import BaseTask, TaskError
from ..console import log_info, log_step, log_success, log_warning

SIZE_RE = re.compile(r"^\d+(GB|MB)$")

SECTION = "wsl2"
SECTION_RE = re.compile(r"^\s*\[(?P<name>[^\]]+)\]\s*$")
OPTION_RE = re.compile(r"^(?P<key>[^\s=:#;\[][^=:]*?)\s*[=:]")


def validate_size(value: str, field_name: str) -> str:
    value = str(value).strip()
    if not SIZE_RE.match(value):
        raise ValueError(f"{field_name} must look like 8GB or 512MB, got {value!r}")
    return value


class WslConfigWriter(BaseTask):
    """Merges resource limits into a `.wslconfig` file."""

    def __init__(
        self,
        path: Path,
        memory: str = "8GB",
        processors: int = 4,
        swap: str = "2GB",
        localhost_forwarding: bool = True,
        kernel_command_line: Optional[str] = None,
        host_cpus: Optional[int] = None,
    ):
        self.path = Path(path).expanduser()
        self.memory = validate_size(memory, "memory")
        self.swap = validate_size(swap, "swap")
        host_cpus = host_cpus if host_cpus is not None else os.cpu_count()
        if int(processors) < 1:
            raise ValueError("processors must be a positive integer")
        if host_cpus and int(processors) > host_cpus:
            raise ValueError(f"processors ({processors}) exceeds available CPUs ({host_cpus})")
        self.processors = int(processors)
        self.localhost_forwarding = localhost_forwarding
        self.kernel_command_line = kernel_command_line

    @property
    def name(self) -> str:
        return "wslconfig"

    @property
    def display_name(self) -> str:
        return "WSL2 Resource Limits"

    def is_available(self) -> bool:
        return self.path.parent.is_dir()

    def settings(self) -> Dict[str, str]:
        values = {
            "memory": self.memory,
            "processors": str(self.processors),
            "swap": self.swap,
            "localhostForwarding": "true" if self.localhost_forwarding else "false",
        }
        if self.kernel_command_line:
            values["kernelCommandLine"] = self.kernel_command_line
        return values

    def _read_existing(self) -> str:
        """Current file text, checked to be valid INI. Empty when there is no file."""
        try:
            if not self.path.exists():
                return ""
            text = self.path.read_text(encoding="utf-8-sig")
        except OSError as e:
            raise TaskError(self.name, f"Cannot read {self.path}: {e}", e)
        parser = configparser.ConfigParser(interpolation=None)
        parser.optionxform = str  # .wslconfig keys are camelCase
        try:
            parser.read_string(text)
        except configparser.Error as e:
            raise TaskError(self.name, f"Cannot parse {self.path}: {e}", e)
        return text

    def render(self) -> str:
        """Existing file content with the [wsl2] limits merged in.

        Only the option lines of the [wsl2] section that we set are rewritten.
        Comments, blank lines and every other section stay as written.
        Missing keys go after the last option of the section.
        """
        pending = self.settings()
        by_lower = {key.lower(): key for key in pending}
        out: List[str] = []
        in_section = False
        seen_section = False
        replacing = False
        insert_at = 0

        def flush():
            out[insert_at:insert_at] = [f"{key} = {value}" for key, value in pending.items()]
            pending.clear()

        for line in self._read_existing().splitlines():
            header = SECTION_RE.match(line)
            if header:
                if in_section:
                    flush()
                in_section = header.group("name").strip().lower() == SECTION
                replacing = False
                out.append(line)
                if in_section:
                    seen_section = True
                    insert_at = len(out)
                continue
            if not in_section:
                out.append(line)
                continue

            continuation = line[:1].isspace() and bool(line.strip()) and not line.strip().startswith(("#", ";"))
            if continuation:
                # multi-line value: dropped with a replaced key, kept otherwise
                if not replacing:
                    out.append(line)
                    insert_at = len(out)
                continue
            replacing = False

            option = OPTION_RE.match(line)
            key = by_lower.get(option.group("key").lower()) if option else None
            if key in pending:
                out.append(f"{key} = {pending.pop(key)}")
                replacing = True
            else:
                out.append(line)
            if option:
                insert_at = len(out)

        if in_section:
            flush()
        if not seen_section:
            if out and out[-1].strip():
                out.append("")
            out.append(f"[{SECTION}]")
            insert_at = len(out)
            flush()
        return "\n".join(out) + "\n"

    def run(self) -> Path:
        log_step(f"{self.display_name}: {self.path}")
        if not self.is_available():
            raise TaskError(self.name, f"Directory does not exist: {self.path.parent}")
        content = self.render()
        if self.path.exists():
            log_warning(f"Updating existing {self.path}")
        try:
            self.path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise TaskError(self.name, f"Cannot write {self.path}: {e}", e)
        log_success(f"Wrote {self.path}")
        log_info("Run 'wsl --shutdown' from Windows for the limits to take effect")
        return self.path
