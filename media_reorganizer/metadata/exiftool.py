import logging
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .. import config
from ..exceptions import ConfigurationError, MetadataWriteError

BACKENDS = ('native', 'docker')


def detect_exiftool_backend() -> Optional[str]:
    """
    Picks the exiftool backend once per run.

    Prefers a native exiftool on PATH, then a local (or pullable) Docker image.
    Returns None when neither is usable.
    """
    if shutil.which("exiftool"):
        return 'native'

    if shutil.which("docker"):
        inspect = subprocess.run(
            ["docker", "image", "inspect", config.EXIFTOOL_DOCKER_IMAGE],
            stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
        )
        if inspect.returncode == 0:
            return 'docker'

        logging.info("Pulling exiftool Docker image (this may take a moment)...")
        pull = subprocess.run(
            ["docker", "pull", config.EXIFTOOL_DOCKER_IMAGE],
            stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
        )
        if pull.returncode == 0:
            return 'docker'

    return None


class ExifToolWriter:
    """
    Writes a capture timestamp into DateTimeOriginal, CreateDate and ModifyDate
    in a single exiftool call, either natively or through the exiftool container.
    """

    def __init__(self, backend: str = 'native'):
        if backend not in BACKENDS:
            raise ConfigurationError(f"Unknown exiftool backend: {backend!r}")
        self.backend = backend

    def build_command(self, path: Path, timestamp: datetime) -> List[str]:
        stamp = timestamp.strftime(config.EXIF_DATETIME_FORMAT)
        assignments = [f"-{field}={stamp}" for field in config.EXIFTOOL_WRITE_FIELDS]

        if self.backend == 'docker':
            abs_path = Path(path).resolve()
            return [
                "docker", "run", "--rm",
                "-v", f"{abs_path.parent}:/work",
                config.EXIFTOOL_DOCKER_IMAGE,
                "-overwrite_original", *assignments,
                f"/work/{abs_path.name}",
            ]

        return ["exiftool", "-overwrite_original", *assignments, str(path)]

    def write_capture_timestamp(self, path: Path, timestamp: datetime):
        cmd = self.build_command(path, timestamp)
        try:
            subprocess.run(cmd, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() or f"exit status {e.returncode}"
            raise MetadataWriteError(f"exiftool failed for {path}: {detail}") from e
        except OSError as e:
            raise MetadataWriteError(f"Could not run exiftool for {path}: {e}") from e
