import logging
import re
from datetime import datetime, timedelta
from functools import cmp_to_key
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from ..dating.resolver import DateResolver
from ..exceptions import MediaReorganizerError
from ..models import AllocatedTimestamp, CandidatePath, TimestampAssignment
from .reconcile import TimestampReconciler

TimestampReader = Callable[[str], Optional[datetime]]

_RUNS = re.compile(r'[0-9]+|[^0-9]+')
_DIGITS = re.compile(r'[0-9]+')

SYNTHETIC_STEP = timedelta(seconds=1)


def natural_compare(a: str, b: str) -> int:
    """
    Compares strings run by run: digit runs numerically, everything else
    lexicographically. On a full prefix match the shorter run list sorts first.
    """
    a_parts = _RUNS.findall(a)
    b_parts = _RUNS.findall(b)

    for a_part, b_part in zip(a_parts, b_parts):
        if _DIGITS.fullmatch(a_part) and _DIGITS.fullmatch(b_part):
            a_num, b_num = int(a_part), int(b_part)
            if a_num != b_num:
                return -1 if a_num < b_num else 1
        elif a_part != b_part:
            return -1 if a_part < b_part else 1

    return (len(a_parts) > len(b_parts)) - (len(a_parts) < len(b_parts))


natural_sort_key = cmp_to_key(natural_compare)


def natural_sorted(paths: Iterable[str]) -> List[str]:
    return sorted(paths, key=natural_sort_key)


class SequentialTimestampAllocator:
    """
    Pre-computes the final timestamp of every dated file in one sequential pass.

    Files are visited in natural order carrying a single running timestamp.
    Authoritative (embedded) timestamps are used as-is and may push the running
    clock forward, never back. Every other file gets the running clock plus one
    second (or midnight of its parsed date if nothing has been emitted yet), so
    synthetic timestamps strictly increase in filename order no matter how the
    worker pool later schedules the transfers.

    Must finish before any worker starts; the result is read-only.
    """

    def __init__(self,
                 read_timestamp: TimestampReader,
                 resolver: Optional[DateResolver] = None,
                 reconciler: Optional[TimestampReconciler] = None):
        self.read_timestamp = read_timestamp
        self.resolver = resolver or DateResolver()
        self.reconciler = reconciler or TimestampReconciler()

    def preallocate(self, candidates: Sequence[Union[CandidatePath, str]]) -> TimestampAssignment:
        paths = natural_sorted(c.path if isinstance(c, CandidatePath) else c for c in candidates)

        entries: Dict[str, AllocatedTimestamp] = {}
        last_timestamp: Optional[datetime] = None

        for path in paths:
            parsed = self.resolver.resolve(path)
            if parsed is None:
                # Routed to the unknown bucket later; nothing to allocate
                continue

            embedded = self._read_embedded(path)
            reconciled, authoritative = self.reconciler.reconcile(embedded, parsed)

            if authoritative:
                final = reconciled
                if last_timestamp is None or final > last_timestamp:
                    last_timestamp = final
            else:
                if last_timestamp is None:
                    final = parsed.midnight()
                else:
                    final = last_timestamp + SYNTHETIC_STEP
                last_timestamp = final

            entries[path] = AllocatedTimestamp(final, authoritative)
            logging.debug(f"[Prealloc] {path} -> {final:%Y-%m-%d %H:%M:%S} "
                          f"(from {entries[path].source_label})")

        logging.info(f"Pre-allocated timestamps for {len(entries)} of {len(paths)} files.")
        return TimestampAssignment(entries)

    def _read_embedded(self, path: str) -> Optional[datetime]:
        try:
            return self.read_timestamp(path)
        except (MediaReorganizerError, OSError) as e:
            logging.warning(f"Could not read embedded timestamp for {path}, using parsed date: {e}")
            return None
