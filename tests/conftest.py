import threading
from datetime import datetime
from pathlib import Path

import pytest

from media_reorganizer.dating.resolver import DateResolver
from media_reorganizer.exceptions import MetadataWriteError, TransferError


class StubReader:
    """Stands in for MetadataExtractor: embedded timestamps keyed by file name."""

    def __init__(self, timestamps=None):
        self.timestamps = timestamps or {}
        self.calls = []

    def read_capture_timestamp(self, path):
        self.calls.append(str(path))
        return self.timestamps.get(Path(path).name)


class RecordingWriter:
    """Stands in for ExifToolWriter; records (path, timestamp) and can fail on demand."""

    def __init__(self, fail_names=()):
        self.fail_names = set(fail_names)
        self.calls = []
        self._lock = threading.Lock()

    def write_capture_timestamp(self, path, timestamp: datetime):
        if Path(path).name in self.fail_names:
            raise MetadataWriteError(f"simulated failure for {path}")
        with self._lock:
            self.calls.append((Path(path), timestamp))

    def by_name(self):
        return {p.name: ts for p, ts in self.calls}


class FakeHost:
    """In-memory stand-in for RemoteHost."""

    def __init__(self, files=None, name="fake"):
        self.host = name
        self.files = dict(files or {})
        self.dirs = set()
        self.uploads = []
        self._lock = threading.Lock()

    def list_files(self, directory):
        prefix = directory.rstrip("/") + "/"
        return [p for p in self.files if p.startswith(prefix)]

    def download(self, remote_path, local_path):
        if remote_path not in self.files:
            raise TransferError(f"missing {remote_path}")
        Path(local_path).write_bytes(self.files[remote_path])

    def upload(self, local_path, remote_path):
        data = Path(local_path).read_bytes()
        with self._lock:
            self.files[remote_path] = data
            self.uploads.append(remote_path)

    def exists(self, remote_path):
        return remote_path in self.files

    def makedirs(self, remote_path):
        with self._lock:
            self.dirs.add(remote_path)


@pytest.fixture
def fake_host():
    return FakeHost


@pytest.fixture
def resolver():
    return DateResolver()


@pytest.fixture
def make_tree(tmp_path):
    """Creates files (relative path -> bytes) under tmp_path/src and returns the root."""
    def _make(files):
        root = tmp_path / "src"
        root.mkdir(exist_ok=True)
        for rel, data in files.items():
            p = root / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_bytes(data)
        return root
    return _make
