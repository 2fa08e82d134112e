"""
Remote source/destination access over the system `ssh` client.

Everything is plain shell over ssh (find, cat, mv, test, mkdir), so the remote
side only needs a POSIX shell; no SFTP subsystem is required.
"""
import os
import logging
import posixpath
import shlex
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from .. import config
from ..exceptions import EnumerationError, TransferError
from .filesystem import Finalizer, copy_file, is_excluded, is_media_file


def ssh_base_command(host: str) -> List[str]:
    """
    'user@host:port' -> ['ssh', ..., '-p', 'port', 'user@host'].
    A bare alias is passed through so ~/.ssh/config applies.
    """
    target, port = host, None
    head, sep, tail = host.rpartition(':')
    if sep and tail.isdigit():
        target, port = head, tail

    cmd = ["ssh", "-o", "BatchMode=yes"]
    if port:
        cmd += ["-p", port]
    cmd.append(target)
    return cmd


class RemoteHost:
    def __init__(self, host: str):
        self.host = host
        self.base_cmd = ssh_base_command(host)

    def _run(self, remote_cmd: str, **kwargs) -> subprocess.CompletedProcess:
        return subprocess.run(self.base_cmd + [remote_cmd], check=True, **kwargs)

    def list_files(self, directory: str) -> List[str]:
        try:
            proc = self._run(f"find {shlex.quote(directory)} -type f",
                             capture_output=True, text=True)
        except (subprocess.CalledProcessError, OSError) as e:
            raise EnumerationError(f"Failed to list {self.host}:{directory}: {e}") from e
        return [line.strip() for line in proc.stdout.splitlines() if line.strip()]

    def download(self, remote_path: str, local_path: Path):
        """Streams the remote file into local_path and fsyncs it."""
        try:
            with open(local_path, 'wb') as f:
                self._run(f"cat {shlex.quote(remote_path)}", stdout=f, stderr=subprocess.PIPE)
                f.flush()
                os.fsync(f.fileno())
        except (subprocess.CalledProcessError, OSError) as e:
            raise TransferError(f"Failed to download {self.host}:{remote_path}: {e}") from e

    def upload(self, local_path: Path, remote_path: str):
        """Streams to a partial sibling and moves it over remote_path once complete."""
        partial = shlex.quote(remote_path + config.PARTIAL_SUFFIX)
        target = shlex.quote(remote_path)
        remote_cmd = f"cat > {partial} && mv -f {partial} {target} || {{ rm -f {partial}; exit 1; }}"
        try:
            with open(local_path, 'rb') as f:
                self._run(remote_cmd, stdin=f, stderr=subprocess.PIPE)
        except (subprocess.CalledProcessError, OSError) as e:
            raise TransferError(f"Failed to upload to {self.host}:{remote_path}: {e}") from e

    def exists(self, remote_path: str) -> bool:
        try:
            proc = self._run(f"test -f {shlex.quote(remote_path)} && echo exists || echo notfound",
                             capture_output=True, text=True)
        except (subprocess.CalledProcessError, OSError) as e:
            raise TransferError(f"Failed to check {self.host}:{remote_path}: {e}") from e
        return proc.stdout.strip() == "exists"

    def makedirs(self, remote_path: str):
        try:
            self._run(f"mkdir -p {shlex.quote(remote_path)}", stderr=subprocess.PIPE)
        except (subprocess.CalledProcessError, OSError) as e:
            raise TransferError(f"Failed to create {self.host}:{remote_path}: {e}") from e


def _temp_path(suffix: str, prefix: str) -> Path:
    fd, name = tempfile.mkstemp(suffix=suffix, prefix=prefix)
    os.close(fd)
    return Path(name)


class RemoteStorage:
    """
    Same interface as LocalStorage, backed by a RemoteHost. Reads and edits go
    through temporary local copies.
    """
    is_remote = True

    def __init__(self, host: RemoteHost):
        self.host = host

    def list_media_files(self, root: str) -> List[str]:
        files = self.host.list_files(root)
        return [p for p in files if not is_excluded(p) and is_media_file(p)]

    def join(self, *parts: str) -> str:
        return posixpath.join(*parts)

    def exists(self, path: str) -> bool:
        return self.host.exists(path)

    def makedirs(self, path: str):
        self.host.makedirs(path)

    @contextmanager
    def fetch(self, path: str) -> Iterator[Path]:
        tmp = _temp_path(posixpath.splitext(path)[1], "media-source-")
        try:
            self.host.download(path, tmp)
            yield tmp
        finally:
            tmp.unlink(missing_ok=True)

    @contextmanager
    def edit(self, path: str) -> Iterator[Path]:
        """Downloads path, yields the local copy and uploads it back on success."""
        with self.fetch(path) as local:
            yield local
            self.host.upload(local, path)

    def put(self, local_src: Path, dest: str, finalize: Optional[Finalizer] = None):
        """
        Uploads local_src to dest. With a finalize hook, the bytes are staged in
        a temporary copy, finalized there, and only then uploaded.
        """
        self.makedirs(posixpath.dirname(dest))
        if finalize is None:
            self.host.upload(Path(local_src), dest)
            return

        staged = _temp_path(posixpath.splitext(dest)[1], "media-stage-")
        try:
            try:
                copy_file(Path(local_src), staged)
            except OSError as e:
                raise TransferError(f"Failed to stage {local_src}: {e}") from e
            finalize(staged)
            self.host.upload(staged, dest)
            logging.debug(f"Uploaded {dest} to {self.host.host}")
        finally:
            staged.unlink(missing_ok=True)
