"""Parsing helpers for Ansible and git command output.

Key parsers:
1. Benchmark results files → total duration in seconds
2. profile_tasks callback output → per-task timings
3. Durations → HH:MM:SS display strings
4. Checksum files → hex digests
"""

from __future__ import annotations

import re
from typing import List, Optional

from .models import SlowTask


TOTAL_DURATION_RE = re.compile(r"^Total Duration:\s*(\d+)s\b", re.MULTILINE)

# "Install packages ---------------------------------------- 12.34s"
PROFILE_TASK_RE = re.compile(r"^(?P<name>.+?)\s+-{3,}\s+(?P<seconds>\d+(?:\.\d+)?)s\s*$")

PROFILE_MARKER = "Playbook run took"

SHA256_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def parse_total_duration(text: str) -> Optional[int]:
    """Return the seconds from the first ``Total Duration: Ns`` line, if any."""
    match = TOTAL_DURATION_RE.search(text or "")
    if not match:
        return None
    return int(match.group(1))


def format_hms(seconds: int) -> str:
    """Format seconds as HH:MM:SS (wraps at 24h like `date -u +%T`)."""
    seconds = max(0, int(seconds)) % 86400
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def extract_profile_section(text: str, max_lines: int = 50) -> List[str]:
    """Return the marker line plus up to ``max_lines`` lines that follow it."""
    lines = (text or "").splitlines()
    for index, line in enumerate(lines):
        if PROFILE_MARKER in line:
            return lines[index:index + max_lines + 1]
    return []


def parse_profile_tasks(lines: List[str]) -> List[SlowTask]:
    """Parse profile_tasks summary lines, slowest first."""
    tasks = []
    for line in lines:
        match = PROFILE_TASK_RE.match(line.strip())
        if not match:
            continue
        tasks.append(SlowTask(name=match.group("name").strip(), seconds=float(match.group("seconds"))))
    tasks.sort(key=lambda t: t.seconds, reverse=True)
    return tasks


def first_line(text: str) -> str:
    """First non-empty line of command output."""
    for line in (text or "").splitlines():
        if line.strip():
            return line.strip()
    return ""


def parse_checksum(text: str, filename: Optional[str] = None) -> Optional[str]:
    """Extract a SHA-256 digest from checksum file content.

    Accepts a bare digest or `sha256sum` style ``<digest>  <name>`` lines. When
    ``filename`` is given, the line for that file wins.
    """
    candidates = []
    for raw in (text or "").splitlines():
        parts = raw.strip().split()
        if not parts or not SHA256_RE.match(parts[0]):
            continue
        name = parts[1].lstrip("*") if len(parts) > 1 else None
        if filename and name == filename:
            return parts[0].lower()
        candidates.append((parts[0].lower(), name))

    if filename:
        bare = [digest for digest, name in candidates if name is None]
        return bare[0] if bare else None
    return candidates[0][0] if candidates else None
