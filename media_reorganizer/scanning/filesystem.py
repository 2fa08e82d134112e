import os
import logging
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from .. import config
from ..exceptions import EnumerationError, TransferError

Finalizer = Callable[[Path], None]


def classify(path) -> Optional[str]:
    """'image', 'video' or None for anything we don't reorganize."""
    name = os.path.basename(str(path))
    if name.startswith("._"):
        # AppleDouble resource forks share the media extension
        return None
    return config.EXT_TO_TYPE.get(os.path.splitext(name)[1].lower())


def is_media_file(path) -> bool:
    return classify(path) is not None


def is_excluded(path) -> bool:
    """True for anything inside a vendor metadata directory (e.g. Synology @eaDir)."""
    return any(marker in str(path) for marker in config.EXCLUDED_DIR_MARKERS)


def copy_file(src: Path, dest: Path):
    """Streams src into dest and fsyncs before returning."""
    with open(src, 'rb') as fsrc, open(dest, 'wb') as fdst:
        shutil.copyfileobj(fsrc, fdst, config.COPY_CHUNK_SIZE)
        fdst.flush()
        os.fsync(fdst.fileno())


class LocalStorage:
    """
    Listing and transfer collaborator for the local filesystem.
    """
    is_remote = False

    def list_media_files(self, root) -> List[str]:
        root = Path(root)
        if not root.is_dir():
            raise EnumerationError(f"Source directory not found: {root}")
        try:
            with os.scandir(root):
                pass
        except OSError as e:
            raise EnumerationError(f"Cannot list {root}: {e}") from e

        return [str(p) for p in self._iter_files(root) if is_media_file(p)]

    def _iter_files(self, root: Path) -> Iterator[Path]:
        """Depth-first walker using os.scandir for speed."""
        stack = [root]
        while stack:
            current = stack.pop()
            if is_excluded(current):
                continue

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except (OSError, PermissionError):
                logging.warning(f"Permission denied: {current}")
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            files = []
            for e in entries:
                if e.is_dir(follow_symlinks=False):
                    dirs.append(Path(e.path))
                elif e.is_file(follow_symlinks=False):
                    files.append(Path(e.path))

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)

            for f in files:
                yield f

    def join(self, *parts: str) -> str:
        return str(Path(*parts))

    def exists(self, path: str) -> bool:
        return Path(path).exists()

    def makedirs(self, path: str):
        try:
            Path(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TransferError(f"Failed to create directory {path}: {e}") from e

    @contextmanager
    def fetch(self, path: str) -> Iterator[Path]:
        """Local files are already readable in place."""
        yield Path(path)

    @contextmanager
    def edit(self, path: str) -> Iterator[Path]:
        yield Path(path)

    def put(self, local_src: Path, dest: str, finalize: Optional[Finalizer] = None):
        """
        Copies local_src to dest, then runs finalize on the copy.

        Bytes go to a sibling partial file first and are renamed over dest only
        once complete, so a failed copy never leaves a truncated dest behind.
        """
        dest_path = Path(dest)
        self.makedirs(str(dest_path.parent))
        partial = dest_path.with_name(dest_path.name + config.PARTIAL_SUFFIX)
        try:
            copy_file(Path(local_src), partial)
            os.replace(partial, dest_path)
        except OSError as e:
            partial.unlink(missing_ok=True)
            raise TransferError(f"Failed to copy {local_src} -> {dest}: {e}") from e

        if finalize is not None:
            finalize(dest_path)
