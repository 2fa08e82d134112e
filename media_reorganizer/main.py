import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import config
from .core import ReorganizationOrchestrator
from .exceptions import ConfigurationError, EnumerationError
from .metadata.exiftool import detect_exiftool_backend
from .models import RunConfig


def setup_logging(log_dir: Optional[Path], verbose: bool):
    """Sets up logging to the console and, for local destinations, a file in the destination."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_dir is not None:
        # Create dest root if it doesn't exist so we can log there
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.insert(0, logging.FileHandler(log_dir / config.LOG_FILENAME, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
        force=True,
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Media Reorganizer: date-based layout with order-preserving timestamps")

    p.add_argument("--source", default="", help="Source directory (local, or remote with --ssh-host)")
    p.add_argument("--dest", default="", help="Destination library root")

    p.add_argument("--dry-run", action="store_true", help="Simulate actions without modifying anything")
    p.add_argument("--ssh-host", default=None, help="SSH host for the source (alias or user@host:port)")
    p.add_argument("--dest-ssh-host", default=None, help="SSH host for the destination (defaults to --ssh-host)")
    p.add_argument("--remote-dest", action="store_true", help="Destination lives on a remote host")
    p.add_argument("--workers", type=int, default=config.DEFAULT_WORKERS,
                   help=f"Number of concurrent workers (default: {config.DEFAULT_WORKERS})")
    p.add_argument("--skip-existing", action="store_true", help="Skip files whose destination already exists")
    p.add_argument("--test-dir", default=None, help="Only process this subdirectory of --source")
    p.add_argument("--fix-metadata", action="store_true",
                   help="Only rewrite timestamps on already-copied destination files")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    if not args.source or not args.dest:
        print("Usage: media-reorganizer --source <source-dir> --dest <dest-dir> [options]", file=sys.stderr)
        return 1

    log_dir = None if args.remote_dest or args.dry_run else Path(args.dest)
    setup_logging(log_dir, args.verbose)

    logging.info("=== Media Reorganizer Started ===")
    logging.info(f"Source: {args.source}")
    logging.info(f"Dest:   {args.dest}")

    cfg = RunConfig(
        source_root=args.source,
        dest_root=args.dest,
        dry_run=args.dry_run,
        ssh_host=args.ssh_host,
        dest_ssh_host=args.dest_ssh_host,
        remote_dest=args.remote_dest,
        skip_existing=args.skip_existing,
        workers=args.workers,
        test_dir=args.test_dir,
        fix_metadata=args.fix_metadata,
        verbose=args.verbose,
        exiftool_backend=None if args.dry_run else detect_exiftool_backend(),
    )

    try:
        app = ReorganizationOrchestrator(cfg)
        app.run()
    except ConfigurationError as e:
        logging.error(f"Configuration error: {e}")
        return 1
    except EnumerationError as e:
        logging.error(f"Failed to enumerate source: {e}")
        return 1
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        return 1
    except Exception:
        logging.exception("Fatal error during reorganization.")
        return 1

    logging.info("Media reorganization complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
