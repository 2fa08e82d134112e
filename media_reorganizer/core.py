import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from .dating.resolver import DateResolver
from .exceptions import MediaReorganizerError, MetadataWriteError
from .metadata.exiftool import ExifToolWriter
from .metadata.extract import MetadataExtractor
from .models import (AllocatedTimestamp, CandidatePath, FileOutcome, ProcessingStatistics,
                     RunConfig, TimestampAssignment)
from .organization.planner import DestinationPlanner, PlannedDestination
from .reporting import ProgressReporter, log_summary
from .scanning.filesystem import LocalStorage
from .scanning.remote import RemoteHost, RemoteStorage
from .timestamps.allocator import SequentialTimestampAllocator, natural_sorted


def build_storages(cfg: RunConfig):
    """Source and destination storages for the configured hosts."""
    source = RemoteStorage(RemoteHost(cfg.ssh_host)) if cfg.ssh_host else LocalStorage()

    if not cfg.remote_dest:
        return source, LocalStorage()
    if cfg.dest_ssh_host == cfg.ssh_host and source.is_remote:
        return source, source
    return source, RemoteStorage(RemoteHost(cfg.dest_ssh_host))


class ReorganizationOrchestrator:
    """
    Two-phase pipeline:
      1. Enumerate, natural-sort and pre-allocate every timestamp (sequential).
      2. Fan the candidates out to a fixed worker pool that only reads the
         frozen timestamp table.
    """

    def __init__(self,
                 cfg: RunConfig,
                 source=None,
                 dest=None,
                 reader: Optional[MetadataExtractor] = None,
                 writer: Optional[ExifToolWriter] = None):
        cfg.validate()
        self.cfg = cfg

        if source is None or dest is None:
            default_source, default_dest = build_storages(cfg)
            source = source or default_source
            dest = dest or default_dest
        self.source = source
        self.dest = dest

        self.reader = reader or MetadataExtractor()
        if writer is None and cfg.exiftool_backend:
            writer = ExifToolWriter(cfg.exiftool_backend)
        self.writer = writer

        self.resolver = DateResolver()
        self.stats = ProcessingStatistics()
        self.assignment: Optional[TimestampAssignment] = None

    # --- Phase 1 ---

    def enumerate(self) -> List[CandidatePath]:
        """Lists media under the scan root. EnumerationError propagates and ends the run."""
        paths = self.source.list_media_files(self.cfg.scan_root)
        return CandidatePath.from_sorted(natural_sorted(paths))

    def read_embedded(self, path: str) -> Optional[datetime]:
        with self.source.fetch(path) as local:
            return self.reader.read_capture_timestamp(local)

    def preallocate(self, candidates: List[CandidatePath]) -> TimestampAssignment:
        allocator = SequentialTimestampAllocator(self.read_embedded, resolver=self.resolver)
        return allocator.preallocate(candidates)

    # --- Phase 2 ---

    def run(self) -> ProcessingStatistics:
        if self.cfg.test_dir:
            logging.info(f"Processing test directory: {self.cfg.scan_root}")

        candidates = self.enumerate()
        self.stats.set_total(len(candidates))
        logging.info(f"Found {len(candidates)} media files to process with {self.cfg.workers} workers")

        if self.writer is None and not self.cfg.dry_run:
            logging.warning("exiftool not available. Metadata will not be updated.")

        # Barrier: the table is complete and frozen before any worker exists
        self.assignment = self.preallocate(candidates)

        planner = DestinationPlanner(self.dest, self.cfg.dest_root, self.cfg.source_root,
                                     resolver=self.resolver)
        planner.plan_all(c.path for c in candidates)
        reporter = ProgressReporter(self.stats)

        with ThreadPoolExecutor(max_workers=self.cfg.workers) as executor:
            futures = {executor.submit(self.process_file, c, planner): c for c in candidates}
            for future in tqdm(as_completed(futures), total=len(futures), desc="Reorganizing", disable=None):
                candidate = futures[future]
                try:
                    future.result()
                except Exception as e:
                    logging.exception(f"Unexpected failure processing {candidate.path}")
                    self.stats.record(FileOutcome(candidate.path, 'error', reason=str(e)))
                reporter.update()

        reporter.update(force=True)
        log_summary(self.stats)
        return self.stats

    def process_file(self, candidate: CandidatePath, planner: DestinationPlanner) -> FileOutcome:
        """Worker entry point. Per-file failures are recorded, never raised."""
        path = candidate.path
        logging.debug(f"Processing: {path}")
        try:
            outcome = self._process(path, planner)
        except (MediaReorganizerError, OSError) as e:
            logging.error(f"ERROR: {path}: {e}")
            outcome = FileOutcome(path, 'error', reason=str(e))

        self.stats.record(outcome)
        return outcome

    def _process(self, path: str, planner: DestinationPlanner) -> FileOutcome:
        planned = planner.plan(path)
        if planned is None:
            return self._route_unknown(path, planner)

        if self.cfg.fix_metadata:
            return self._fix_metadata(path, planned)

        if self.cfg.skip_existing and self.dest.exists(planned.dest_path):
            logging.debug(f"Skipping (already exists): {planned.dest_path}")
            return FileOutcome(path, 'skipped', planned.dest_path, reason="destination exists")

        allocated = self.timestamp_for(path, planned)

        if self.cfg.dry_run:
            logging.info(f"[DRY RUN] Would copy: {path} -> {planned.dest_path} | "
                         f"timestamp: {allocated.timestamp:%Y-%m-%d %H:%M:%S} (from {allocated.source_label})")
            return FileOutcome(path, 'processed', planned.dest_path)

        result = {}

        def finalize(local_copy: Path):
            result['metadata'] = self._write_metadata(local_copy, allocated.timestamp)

        with self.source.fetch(path) as local_src:
            self.dest.put(local_src, planned.dest_path, finalize=finalize)

        return FileOutcome(path, 'processed', planned.dest_path,
                           transferred=True,
                           metadata_updated=result.get('metadata') is True,
                           metadata_missed=result.get('metadata') is False)

    def _route_unknown(self, path: str, planner: DestinationPlanner) -> FileOutcome:
        if self.cfg.fix_metadata:
            logging.debug(f"Skipping (no date found): {path}")
            return FileOutcome(path, 'skipped', reason="no date")

        if self.cfg.dry_run:
            logging.info(f"[DRY RUN] Would copy (no date found): {path} -> {planner.unknown_dir}/")
            return FileOutcome(path, 'skipped', reason="no date")

        dest_path = planner.reserve_unknown(path)
        logging.info(f"Skipping (no date found): {path} -> {dest_path}")
        with self.source.fetch(path) as local_src:
            self.dest.put(local_src, dest_path)
        return FileOutcome(path, 'skipped', dest_path, transferred=True, reason="no date")

    def _fix_metadata(self, path: str, planned: PlannedDestination) -> FileOutcome:
        if not self.dest.exists(planned.dest_path):
            logging.debug(f"Skipping (dest doesn't exist): {planned.dest_path}")
            return FileOutcome(path, 'skipped', planned.dest_path, reason="destination missing")

        allocated = self.timestamp_for(path, planned)

        if self.cfg.dry_run:
            logging.info(f"[DRY RUN] Would fix metadata: {planned.dest_path} -> "
                         f"{allocated.timestamp:%Y-%m-%d %H:%M:%S} (from {allocated.source_label})")
            return FileOutcome(path, 'processed', planned.dest_path)

        if self.writer is None:
            return FileOutcome(path, 'processed', planned.dest_path)

        with self.dest.edit(planned.dest_path) as local:
            updated = self._write_metadata(local, allocated.timestamp)

        return FileOutcome(path, 'processed', planned.dest_path,
                           metadata_updated=updated is True,
                           metadata_missed=updated is False)

    def timestamp_for(self, path: str, planned: PlannedDestination) -> AllocatedTimestamp:
        """Looks up the pre-allocated timestamp; workers never recompute it."""
        if self.assignment is not None and path in self.assignment:
            return self.assignment[path]

        logging.warning(f"No pre-allocated timestamp for {path}, using parsed date")
        return AllocatedTimestamp(planned.parsed.to_datetime(), False)

    def _write_metadata(self, local_path: Path, timestamp: datetime) -> Optional[bool]:
        """True on success, False on failure, None when metadata writing is disabled."""
        if self.writer is None:
            return None
        try:
            self.writer.write_capture_timestamp(local_path, timestamp)
        except MetadataWriteError as e:
            logging.warning(f"Failed to update metadata for {local_path}: {e}")
            return False
        return True
