"""Ansible fact cache cleanup.

Removes fact cache files older than a number of days so stale host facts do
not leak into playbook runs and the cache does not grow without bound.
"""

from __future__ import annotations

import os
import time
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from .base import BaseTask, TaskError
from ..console import banner, log_info, log_success, log_warning, BLUE
from ..data.models import CacheStats, CleanupReport, StaleFile

SECONDS_PER_DAY = 86400


class FactCacheCleaner(BaseTask):
    """Deletes fact cache files by modification age.

    A file is stale when its age in whole days exceeds ``max_age_days``
    (the `find -mtime +N` rule: a 30-day limit keeps files up to 30d 23h 59m old).
    """

    def __init__(self, cache_dir: Path, max_age_days: int = 30, dry_run: bool = False):
        if max_age_days < 0:
            raise ValueError("max_age_days must be >= 0")
        self.cache_dir = Path(cache_dir).expanduser()
        self.max_age_days = max_age_days
        self.dry_run = dry_run

    @property
    def name(self) -> str:
        return "fact_cache"

    @property
    def display_name(self) -> str:
        return "Ansible Fact Cache Cleanup"

    def is_available(self) -> bool:
        return self.cache_dir.is_dir()

    def _iter_files(self) -> Iterator[Path]:
        for root, _dirs, files in os.walk(self.cache_dir):
            for filename in files:
                yield Path(root) / filename

    def scan(self) -> CacheStats:
        """Count files and bytes under the cache directory."""
        count = 0
        total = 0
        for path in self._iter_files():
            try:
                total += path.stat().st_size
            except OSError:
                continue
            count += 1
        return CacheStats(file_count=count, total_bytes=total)

    def is_stale(self, mtime: float, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        age_days = int((now - mtime) // SECONDS_PER_DAY)
        return age_days > self.max_age_days

    def find_stale(self, now: Optional[float] = None) -> List[StaleFile]:
        """List files older than the configured age, sorted by path."""
        now = time.time() if now is None else now
        stale = []
        for path in self._iter_files():
            try:
                st = path.stat()
            except OSError:
                continue
            if self.is_stale(st.st_mtime, now):
                stale.append(
                    StaleFile(
                        path=path,
                        size_bytes=st.st_size,
                        modified=datetime.fromtimestamp(st.st_mtime),
                    )
                )
        return sorted(stale, key=lambda f: str(f.path))

    def remove_empty_dirs(self) -> int:
        """Remove empty subdirectories bottom-up. The cache root is kept."""
        removed = 0
        for root, dirs, files in os.walk(self.cache_dir, topdown=False):
            path = Path(root)
            if path == self.cache_dir:
                continue
            try:
                if not any(path.iterdir()):
                    path.rmdir()
                    removed += 1
            except OSError:
                continue
        return removed

    def run(self, now: Optional[float] = None) -> CleanupReport:
        banner(self.display_name, BLUE)

        report = CleanupReport(
            cache_dir=self.cache_dir,
            max_age_days=self.max_age_days,
            dry_run=self.dry_run,
        )

        if not self.is_available():
            log_warning(f"Cache directory does not exist: {self.cache_dir}")
            log_info("Nothing to clean up")
            report.exists = False
            return report

        log_info(f"Cache directory: {self.cache_dir}")
        log_info(f"Max age: {self.max_age_days} days")
        if self.dry_run:
            log_warning("DRY RUN MODE - No files will be deleted")

        report.before = self.scan()
        log_info(f"Total cache files: {report.before.file_count}")
        log_info(f"Total cache size: {report.before.size_display}")

        report.stale = self.find_stale(now)
        if not report.stale:
            log_success(f"No files older than {self.max_age_days} days found")
            return report

        log_warning(f"Found {report.stale_count} files older than {self.max_age_days} days")

        if self.dry_run:
            print(flush=True)
            log_info("Files that would be deleted:")
            for stale in report.stale:
                print(f"  {stale.describe()}", flush=True)
        else:
            print(flush=True)
            log_info("Deleting old cache files...")
            for stale in report.stale:
                if not stale.path.is_file():
                    continue
                try:
                    stale.path.unlink()
                except OSError as e:
                    raise TaskError(self.name, f"Cannot delete {stale.path}: {e}", e)
                report.deleted_count += 1
            log_success(f"Deleted {report.deleted_count} files")

            report.after = self.scan()
            log_info(f"Remaining files: {report.after.file_count}")
            log_info(f"Remaining size: {report.after.size_display}")

            report.removed_dirs = self.remove_empty_dirs()

        print(flush=True)
        log_success("Cleanup complete!")
        if self.dry_run:
            log_info("Run without --dry-run to actually delete files")
        else:
            log_info("Fact gathering will regenerate cache on next playbook run")
        return report
