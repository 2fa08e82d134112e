import logging
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import exifread

from .. import config

# Type hint 'Any' prevents Pylance from complaining about "None" having no attribute "parse"
MediaInfo: Any = None
try:
    from pymediainfo import MediaInfo
except ImportError:
    MediaInfo = None

# Formats exiftool emits for date tags, most common first
EXIFTOOL_DATE_FORMATS = [
    "%Y:%m:%d %H:%M:%S",
    "%Y:%m:%d %H:%M:%S%z",
    "%Y:%m:%d %H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S",
]


class MetadataExtractor:
    """
    Reads the embedded capture timestamp of a media file.

    Strategies:
      - Images: 'exifread' (fast, Python-native) -> falls back to 'exiftool'.
      - Video: 'pymediainfo' -> falls back to 'exiftool' (robust, covers most containers).

    Never raises for unreadable or tagless files; returns None instead.
    All returned datetimes are naive (wall-clock as recorded).
    """

    def read_capture_timestamp(self, path: Path) -> Optional[datetime]:
        path = Path(path)
        ftype = config.EXT_TO_TYPE.get(path.suffix.lower())

        dt = None
        if ftype == 'image':
            dt = self._read_exifread(path)
        elif ftype == 'video':
            dt = self._read_mediainfo(path)

        if dt is None:
            dt = self._read_exiftool(path)
        return dt

    # --- Internal Extraction Helpers ---

    def _read_exifread(self, path: Path) -> Optional[datetime]:
        try:
            with path.open('rb') as f:
                # details=False speeds up processing significantly
                tags = exifread.process_file(f, details=False)
        except Exception as e:
            logging.warning(f"ExifRead failed for {path}: {e}")
            return None

        if not tags:
            logging.debug(f"No EXIF tags found for {path}")
            return None

        for tag in config.DATE_TAGS:
            if tag in tags:
                dt = parse_exif_datetime(str(tags[tag]))
                if dt:
                    return dt
        return None

    def _read_mediainfo(self, path: Path) -> Optional[datetime]:
        if MediaInfo is None:
            return None

        try:
            mi = MediaInfo.parse(str(path))
        except Exception as e:
            logging.debug(f"MediaInfo failed for {path}: {e}")
            return None

        for track in mi.tracks:
            if track.track_type != "General":
                continue
            for field in config.MEDIAINFO_DATE_FIELDS:
                val = getattr(track, field, None)
                if val:
                    dt = parse_flexible_datetime(str(val))
                    if dt:
                        return dt
        return None

    def _read_exiftool(self, path: Path) -> Optional[datetime]:
        """
        Wraps the 'exiftool' command line utility.
        Returns None when exiftool is not on PATH.
        """
        if shutil.which("exiftool") is None:
            return None

        cmd = ["exiftool"] + [f"-{f}" for f in config.EXIFTOOL_READ_FIELDS] + ["-s", "-s", "-s", str(path)]
        try:
            out = subprocess.check_output(cmd, stderr=subprocess.DEVNULL, text=True)
        except (subprocess.CalledProcessError, OSError) as e:
            logging.debug(f"ExifTool failed for {path}: {e}")
            return None

        for line in out.splitlines():
            dt = parse_flexible_datetime(line)
            if dt:
                return dt
        return None


def parse_exif_datetime(dt_str: str) -> Optional[datetime]:
    """EXIF format is usually "YYYY:MM:DD HH:MM:SS"."""
    try:
        return datetime.strptime(dt_str.strip(), config.EXIF_DATETIME_FORMAT)
    except ValueError:
        return None


def parse_flexible_datetime(dt_str: str) -> Optional[datetime]:
    """
    Handles the date spellings of exiftool and MediaInfo (EXIF colons,
    ISO, 'UTC' markers, numeric offsets, sub-seconds).
    Returns a naive datetime.
    """
    clean = dt_str.replace("UTC", "").strip()
    if not clean:
        return None

    if "." in clean:
        # Sub-second precision, optionally followed by an offset
        head, _, tail = clean.partition(".")
        offset = tail.lstrip("0123456789")
        clean = head + offset

    for fmt in EXIFTOOL_DATE_FORMATS:
        try:
            return datetime.strptime(clean, fmt).replace(tzinfo=None)
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(clean).replace(tzinfo=None)
    except ValueError:
        return None
