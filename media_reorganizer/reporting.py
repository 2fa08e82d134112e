import logging
import time
from typing import Callable, Dict, Optional

from . import config
from .models import ProcessingStatistics

SUMMARY_LINES = [
    ("Total files found", 'total'),
    ("Successfully processed", 'processed'),
    ("Skipped", 'skipped'),
    ("Errors", 'errored'),
    ("Files transferred", 'transferred'),
    ("Metadata updated", 'metadata_updated'),
    ("Metadata missed", 'metadata_missed'),
]


def format_duration(seconds: float) -> str:
    """1h2m3s / 2m3s / 3s"""
    total = int(round(seconds))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h}h{m}m{s}s"
    if m:
        return f"{m}m{s}s"
    return f"{s}s"


class ProgressReporter:
    """
    Logs a progress line every N completions or every T seconds, whichever
    comes first. Called from the thread collecting worker results.
    """

    def __init__(self,
                 stats: ProcessingStatistics,
                 every_files: int = config.PROGRESS_EVERY_FILES,
                 every_seconds: float = config.PROGRESS_EVERY_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.stats = stats
        self.every_files = every_files
        self.every_seconds = every_seconds
        self.clock = clock
        self.start = clock()
        self.last_report = self.start

    def update(self, force: bool = False) -> Optional[str]:
        snap = self.stats.snapshot()
        done = snap['processed'] + snap['skipped'] + snap['errored']
        now = self.clock()

        due = done % self.every_files == 0 or (now - self.last_report) >= self.every_seconds
        if done == 0 or not (force or due):
            return None

        self.last_report = now
        elapsed = max(now - self.start, 1e-9)
        rate = done / elapsed
        total = snap['total'] or done

        eta = ""
        if rate > 0 and total > done:
            eta = f" | ETA: {format_duration((total - done) / rate)}"

        line = (f"Progress: {done}/{total} files ({done / total * 100:.1f}%) | "
                f"Processed: {snap['processed']} | Skipped: {snap['skipped']} | "
                f"Errors: {snap['errored']} | Rate: {rate:.1f} files/sec | "
                f"Elapsed: {format_duration(elapsed)}{eta}")
        logging.info(line)
        return line


def format_summary(snapshot: Dict[str, int]) -> str:
    width = max(len(label) for label, _ in SUMMARY_LINES) + 1
    lines = ["=== Processing Statistics ==="]
    for label, key in SUMMARY_LINES:
        lines.append(f"{label + ':':<{width}} {snapshot.get(key, 0)}")
    lines.append("=" * 29)
    return "\n".join(lines)


def log_summary(stats: ProcessingStatistics):
    for line in format_summary(stats.snapshot()).splitlines():
        logging.info(line)
