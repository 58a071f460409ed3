"""Terminal output helpers.

Every task reports progress as bracket-tagged lines ([INFO], [SUCCESS], ...),
printed with flush so output interleaves correctly with child processes.
"""

from __future__ import annotations

import os
import sys
from typing import Optional

RED = "\033[0;31m"
GREEN = "\033[0;32m"
YELLOW = "\033[1;33m"
BLUE = "\033[0;34m"
CYAN = "\033[0;36m"
NC = "\033[0m"


def _use_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _paint(color: str, text: str) -> str:
    return f"{color}{text}{NC}" if _use_color() else text


def _log(msg: str = "") -> None:
    """Print with flush for reliable ordering next to subprocess output."""
    print(msg, flush=True)


def log_info(msg: str) -> None:
    _log(f"{_paint(CYAN, '[INFO]')} {msg}")


def log_success(msg: str) -> None:
    _log(f"{_paint(GREEN, '[SUCCESS]')} {msg}")


def log_warning(msg: str) -> None:
    _log(f"{_paint(YELLOW, '[WARNING]')} {msg}")


def log_error(msg: str) -> None:
    print(f"{_paint(RED, '[ERROR]')} {msg}", file=sys.stderr, flush=True)


def log_step(msg: str) -> None:
    _log(f"\n{_paint(BLUE, '==>')} {msg}")


def banner(title: str, color: str = CYAN) -> None:
    rule = "=" * 40
    _log("")
    _log(_paint(color, rule))
    _log(_paint(color, f"  {title}"))
    _log(_paint(color, rule))
    _log("")


def check_line(marker: str, msg: str, color: str) -> None:
    _log(f"{_paint(color, marker)} {msg}")


def confirm(prompt: str, assume_yes: Optional[bool] = None) -> bool:
    """Ask a y/N question. Anything other than y/Y (or EOF) means no."""
    if assume_yes is not None:
        return assume_yes
    try:
        reply = input(f"{prompt} (y/N): ")
    except EOFError:
        _log("")
        return False
    return reply.strip()[:1] in ("y", "Y")
