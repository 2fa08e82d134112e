import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, Iterable, Optional

from .. import config
from ..dating.context import DirectoryContextExtractor
from ..dating.resolver import DateResolver, standardized_filename
from ..models import ParsedDate


@dataclass(frozen=True)
class PlannedDestination:
    parsed: ParsedDate
    dest_path: str


class DestinationPlanner:
    """
    Computes where each candidate lands under the destination root.

    Dated files go to YYYY/YYYY-MM/<standardized name>, with in-run name
    collisions suffixed by `plan_all` in natural order. Undated files go to the
    unknown bucket under their own name, suffixed _1, _2, ... on collision.
    The collision check and the reservation happen under one lock, and names
    handed out in this run are remembered, so concurrent workers can never be
    given the same unknown-bucket name.
    """

    def __init__(self,
                 dest_storage,
                 dest_root: str,
                 source_root: str,
                 resolver: Optional[DateResolver] = None,
                 context: Optional[DirectoryContextExtractor] = None):
        self.dest = dest_storage
        self.dest_root = dest_root
        self.source_root = source_root
        self.resolver = resolver or DateResolver()
        self.context = context or DirectoryContextExtractor()

        # Dated destinations fixed up front by plan_all
        self.planned: Dict[str, PlannedDestination] = {}

        # Cache used names to prevent collisions within a single run
        self.used_names = defaultdict(set)
        self._lock = threading.Lock()

    @property
    def unknown_dir(self) -> str:
        return self.dest.join(self.dest_root, config.UNKNOWN_DIR)

    def describe(self, path: str) -> str:
        """Original stem, prefixed with the cleaned directory context when there is one."""
        stem = PurePosixPath(path).stem
        dir_context = self.context.extract(path, self.source_root)
        return f"{dir_context}_{stem}" if dir_context else stem

    def plan(self, path: str) -> Optional[PlannedDestination]:
        """Dated destination for path, or None when no date can be resolved."""
        if path in self.planned:
            return self.planned[path]

        parsed = self.resolver.resolve(path)
        if parsed is None:
            return None

        new_name = standardized_filename(parsed, self.describe(path), PurePosixPath(path).suffix)
        dest_path = self.dest.join(self.dest_root, parsed.directory_path(), new_name)
        return PlannedDestination(parsed, dest_path)

    def plan_all(self, paths: Iterable[str]) -> Dict[str, PlannedDestination]:
        """
        Plans every dated path in the given (natural) order before any worker runs.

        When several sources standardize to the same name, the first keeps it
        and later ones get _1, _2, ... so no two workers write one destination.
        `plan` serves these results afterwards.
        """
        claimed = set()
        planned: Dict[str, PlannedDestination] = {}

        for path in paths:
            dest = self.plan(path)
            if dest is None:
                continue

            dest_path = dest.dest_path
            if dest_path in claimed:
                folder = self.dest.join(self.dest_root, dest.parsed.directory_path())
                name = PurePosixPath(standardized_filename(dest.parsed, self.describe(path),
                                                           PurePosixPath(path).suffix))
                counter = 1
                while dest_path in claimed:
                    dest_path = self.dest.join(folder, f"{name.stem}_{counter}{name.suffix}")
                    counter += 1
                logging.warning(f"Destination name collision for {path}, using {dest_path}")

            claimed.add(dest_path)
            planned[path] = PlannedDestination(dest.parsed, dest_path)

        self.planned = planned
        return planned

    def reserve_unknown(self, path: str) -> str:
        """Picks and reserves a free name for path in the unknown bucket."""
        name = PurePosixPath(path).name
        p = PurePosixPath(name)
        stem, ext = p.stem, p.suffix
        folder = self.unknown_dir

        with self._lock:
            candidate = name
            counter = 1
            while (candidate in self.used_names[folder]
                   or self.dest.exists(self.dest.join(folder, candidate))):
                candidate = f"{stem}_{counter}{ext}"
                counter += 1

            self.used_names[folder].add(candidate)
            return self.dest.join(folder, candidate)
