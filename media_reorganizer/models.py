import threading
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from pathlib import PurePosixPath
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Sequence

from . import config
from .exceptions import ConfigurationError


@dataclass(frozen=True)
class ParsedDate:
    """
    A best-guess calendar date recovered from a filename or path.
    """
    year: int
    month: int
    day: int
    time_of_day: Optional[time] = None
    source_text: str = ""

    def __post_init__(self):
        if not config.MIN_YEAR <= self.year <= config.MAX_YEAR:
            raise ValueError(f"year {self.year} outside {config.MIN_YEAR}-{config.MAX_YEAR}")
        if not 1 <= self.month <= 12:
            raise ValueError(f"month {self.month} outside 1-12")
        if not 1 <= self.day <= 31:
            raise ValueError(f"day {self.day} outside 1-31")

    @property
    def has_explicit_time(self) -> bool:
        return self.time_of_day is not None and self.time_of_day != config.DEFAULT_TIME_OF_DAY

    def to_datetime(self) -> datetime:
        """
        Converts to a naive datetime, defaulting to midday when no time is known.

        Day values past the end of the month roll over into the next month
        (e.g. Feb 31 -> Mar 3) instead of raising.
        """
        tod = self.time_of_day or config.DEFAULT_TIME_OF_DAY
        base = datetime(self.year, self.month, 1, tod.hour, tod.minute, tod.second)
        return base + timedelta(days=self.day - 1)

    def midnight(self) -> datetime:
        return self.to_datetime().replace(hour=0, minute=0, second=0)

    def directory_path(self) -> str:
        """Relative folder for this date: YYYY/YYYY-MM"""
        return config.FOLDER_PATTERN.format(year=self.year, month=self.month)


@dataclass(frozen=True)
class CandidatePath:
    """
    One media item to process, identified by its (local or remote) path.
    """
    path: str
    ext: str
    position: int

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @classmethod
    def from_sorted(cls, paths: Sequence[str]) -> list:
        """Wraps already natural-sorted paths, recording each one's position."""
        return [cls(path=p, ext=PurePosixPath(p).suffix, position=i) for i, p in enumerate(paths)]


@dataclass(frozen=True)
class AllocatedTimestamp:
    timestamp: datetime
    from_authoritative_source: bool

    @property
    def source_label(self) -> str:
        return "EXIF" if self.from_authoritative_source else "parsed+sequential"


class TimestampAssignment(Mapping):
    """
    Read-only path -> AllocatedTimestamp table.

    Built once by the allocator before any worker starts; workers only read it,
    so lookups need no locking.
    """

    def __init__(self, entries: Dict[str, AllocatedTimestamp]):
        self._entries = MappingProxyType(dict(entries))

    def __getitem__(self, path: str) -> AllocatedTimestamp:
        return self._entries[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"TimestampAssignment({len(self)} entries)"


@dataclass
class FileOutcome:
    """Result of processing a single candidate."""
    path: str
    status: str                 # processed/skipped/error
    dest_path: Optional[str] = None
    transferred: bool = False
    metadata_updated: bool = False
    metadata_missed: bool = False
    reason: str = ""


@dataclass
class ProcessingStatistics:
    """
    Run counters shared by all workers. Every mutation goes through `record`
    or `set_total`, which hold the internal lock.
    """
    total: int = 0
    processed: int = 0
    skipped: int = 0
    errored: int = 0
    transferred: int = 0
    metadata_updated: int = 0
    metadata_missed: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def set_total(self, total: int):
        with self._lock:
            self.total = total

    def record(self, outcome: FileOutcome):
        with self._lock:
            if outcome.status == 'processed':
                self.processed += 1
            elif outcome.status == 'skipped':
                self.skipped += 1
            else:
                self.errored += 1

            if outcome.transferred:
                self.transferred += 1
            if outcome.metadata_updated:
                self.metadata_updated += 1
            if outcome.metadata_missed:
                self.metadata_missed += 1

    @property
    def completed(self) -> int:
        with self._lock:
            return self.processed + self.skipped + self.errored

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return {
                'total': self.total,
                'processed': self.processed,
                'skipped': self.skipped,
                'errored': self.errored,
                'transferred': self.transferred,
                'metadata_updated': self.metadata_updated,
                'metadata_missed': self.metadata_missed,
            }


@dataclass
class RunConfig:
    source_root: str
    dest_root: str
    dry_run: bool = False
    ssh_host: Optional[str] = None
    dest_ssh_host: Optional[str] = None
    remote_dest: bool = False
    skip_existing: bool = False
    workers: int = config.DEFAULT_WORKERS
    test_dir: Optional[str] = None
    fix_metadata: bool = False
    verbose: bool = False
    exiftool_backend: Optional[str] = None   # native/docker/None (disabled)

    def __post_init__(self):
        if self.remote_dest and not self.dest_ssh_host:
            self.dest_ssh_host = self.ssh_host

    @property
    def scan_root(self) -> str:
        """Directory actually enumerated; narrowed by test_dir when set."""
        if self.test_dir:
            return str(PurePosixPath(self.source_root) / self.test_dir)
        return self.source_root

    def validate(self):
        if not self.source_root or not self.dest_root:
            raise ConfigurationError("Both a source and a destination root are required.")
        if self.workers < 1:
            raise ConfigurationError(f"Worker count must be at least 1 (got {self.workers}).")
        if self.remote_dest and not self.dest_ssh_host:
            raise ConfigurationError("Remote destination requires --dest-ssh-host or --ssh-host.")
