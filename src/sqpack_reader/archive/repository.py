"""SqPack repository facade: inner path -> decoded file.

The repository discovers which packs exist when it is opened but only
parses a pack's index the first time something inside it is requested.
Each pack gets its own single-initialization cell so concurrent first
lookups trigger exactly one parse.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from pathlib import Path

from sqpack_reader.archive.dat import DataFileReader, FileContainer, ModelFile, TextureFile
from sqpack_reader.archive.index import FileLocator, IndexStore, load_index
from sqpack_reader.archive.paths import ArchivePath, PackId
from sqpack_reader.config import settings
from sqpack_reader.constants import BASE_REPO_DIR, REPO_FILE_RE
from sqpack_reader.errors import FileNotFound, InvalidPath, RepositoryUnavailable

logger = logging.getLogger(__name__)


class _IndexCell:
    """Build-once slot for one pack's :class:`IndexStore`.

    The first caller runs the build; callers arriving meanwhile wait on
    the same future and see the same store or the same exception.  A
    failed build clears the slot so a later call can try again.
    """

    def __init__(self, index_file: Path) -> None:
        self.index_file = index_file
        self._lock = threading.Lock()
        self._future: Future[IndexStore] | None = None

    def get(self, build: Callable[[Path], IndexStore]) -> IndexStore:
        with self._lock:
            future = self._future
            owner = future is None
            if future is None:
                future = self._future = Future()

        if owner:
            try:
                store = build(self.index_file)
            except BaseException as exc:
                with self._lock:
                    self._future = None
                future.set_exception(exc)
                raise
            future.set_result(store)
        return future.result()


def _discover_index_files(root: Path) -> dict[PackId, Path]:
    """Map each pack to its index file, preferring ``.index`` over ``.index2``."""
    found: dict[PackId, Path] = {}
    for repo_dir in sorted(p for p in root.iterdir() if p.is_dir()):
        for file_path in sorted(repo_dir.iterdir()):
            m = REPO_FILE_RE.match(file_path.name)
            if not m or not m.group(4).startswith("index"):
                continue
            pack = PackId.from_repo_file(file_path)
            current = found.get(pack)
            if current is None or (current.suffix == ".index2" and file_path.suffix == ".index"):
                found[pack] = file_path
    return found


class Repository:
    """Read-only view over a SqPack installation directory.

    Safe to share between threads: index caches are per instance and
    every file read opens its own shard handle.
    """

    def __init__(self, root: Path, index_files: dict[PackId, Path]) -> None:
        self.root = root
        self._cells = {pack: _IndexCell(path) for pack, path in index_files.items()}

    @classmethod
    def open(cls, root: str | Path | None = None) -> Repository:
        """Open the repository rooted at *root* (the ``sqpack`` directory).

        Raises:
            RepositoryUnavailable: If *root* is missing or lacks the base
                ``ffxiv`` directory.
        """
        if root is None:
            if settings.repo_dir == Path(""):
                raise RepositoryUnavailable("", "no path given and SQPACK_REPO_DIR is unset")
            root = settings.repo_dir
        root = Path(root)
        if not root.is_dir():
            raise RepositoryUnavailable(root, "not a directory")
        if not (root / BASE_REPO_DIR).is_dir():
            raise RepositoryUnavailable(root, f"missing required '{BASE_REPO_DIR}' directory")

        try:
            index_files = _discover_index_files(root)
        except OSError as exc:
            raise RepositoryUnavailable(root, str(exc)) from exc
        logger.info("Opened SqPack repository %s (%d packs)", root, len(index_files))
        return cls(root, index_files)

    @property
    def packs(self) -> list[PackId]:
        return sorted(self._cells)

    def index_for(self, pack: PackId) -> IndexStore | None:
        cell = self._cells.get(pack)
        if cell is None:
            return None
        return cell.get(load_index)

    def find(self, path: str | ArchivePath) -> FileLocator | None:
        """Return the locator for *path*, or ``None`` if it is not in the repository."""
        apath = path if isinstance(path, ArchivePath) else ArchivePath(path)
        index = self.index_for(apath.pack)
        if index is None:
            return None
        return index.resolve(apath.hash, apath.path)

    def exists(self, path: str | ArchivePath) -> bool:
        try:
            return self.find(path) is not None
        except InvalidPath:
            return False

    def read(self, path: str | ArchivePath) -> FileContainer:
        apath = path if isinstance(path, ArchivePath) else ArchivePath(path)
        locator = self.find(apath)
        if locator is None:
            raise FileNotFound(apath.path)
        return DataFileReader(self.root, apath.pack).read(locator)

    def resolve_bytes(self, path: str | ArchivePath) -> bytes | ModelFile | TextureFile:
        """Return the flattened bytes of a standard file.

        Model and texture files are returned as their containers so that
        callers keep the part and mipmap boundaries.
        """
        container = self.read(path)
        if isinstance(container, ModelFile | TextureFile):
            return container
        return container.to_bytes()

    def read_plain(self, path: str | ArchivePath) -> bytes:
        """Like :meth:`resolve_bytes` but always flattens to bytes."""
        return self.read(path).to_bytes()
