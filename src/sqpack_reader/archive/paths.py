"""Logical archive paths and the pack they live in.

An inner path such as ``exd/ex1/foo.exh`` selects a category from its
first segment, an expansion from an optional ``exN`` second segment and,
for expansion content, a patch from an ``xx_`` prefix on the third.
Together these form a :class:`PackId`, which names one index file and
its numbered data shards on disk.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from sqpack_reader.archive.hashing import PathHash, hash_path
from sqpack_reader.constants import (
    BASE_REPO_DIR,
    CATEGORY_IDS,
    EXPANSION_RE,
    PATCH_RE,
    PLATFORM,
    REPO_FILE_RE,
)
from sqpack_reader.errors import InvalidPath


@dataclass(frozen=True, slots=True, order=True)
class PackId:
    category: int
    expansion: int = 0
    patch: int = 0

    @classmethod
    def from_inner_path(cls, path: str) -> PackId:
        nodes = path.split("/")
        if len(nodes) < 2:
            raise InvalidPath(path, "expected at least a category and a file name")

        category = CATEGORY_IDS.get(nodes[0])
        if category is None:
            raise InvalidPath(path, f"unknown category {nodes[0]!r}")

        expansion = 0
        patch = 0
        if m := EXPANSION_RE.match(nodes[1]):
            expansion = int(m.group(1))
            if len(nodes) > 2 and (p := PATCH_RE.match(nodes[2])):
                patch = int(p.group(1), 16)
        return cls(category, expansion, patch)

    @classmethod
    def from_repo_file(cls, path: str | Path) -> PackId:
        """Parse a repository file name like ``0a0000.win32.index2``."""
        name = Path(path).name
        m = REPO_FILE_RE.match(name)
        if not m:
            raise InvalidPath(name, "not a SqPack repository file name")
        return cls(int(m.group(1), 16), int(m.group(2), 16), int(m.group(3), 16))

    @property
    def repo_dir(self) -> str:
        return BASE_REPO_DIR if self.expansion == 0 else f"ex{self.expansion}"

    @property
    def stem(self) -> str:
        return f"{self.category:02x}{self.expansion:02x}{self.patch:02x}"

    def index_path(self, *, index2: bool = False) -> PurePosixPath:
        suffix = "index2" if index2 else "index"
        return PurePosixPath(self.repo_dir, f"{self.stem}.{PLATFORM}.{suffix}")

    def dat_path(self, data_file_id: int) -> PurePosixPath:
        return PurePosixPath(self.repo_dir, f"{self.stem}.{PLATFORM}.dat{data_file_id}")

    def __str__(self) -> str:
        return f"PackId({self.stem})"


@dataclass(frozen=True, slots=True)
class ArchivePath:
    """A case-folded inner path together with its pack and hashes."""

    path: str
    pack: PackId = field(init=False)
    hash: PathHash = field(init=False)

    def __post_init__(self) -> None:
        normalized = self.path.strip().replace("\\", "/").lower().strip("/")
        if not normalized:
            raise InvalidPath(self.path, "empty path")
        object.__setattr__(self, "path", normalized)
        object.__setattr__(self, "pack", PackId.from_inner_path(normalized))
        object.__setattr__(self, "hash", hash_path(normalized))

    @property
    def directory(self) -> str:
        return self.path.rpartition("/")[0]

    @property
    def filename(self) -> str:
        return self.path.rpartition("/")[2]

    def __str__(self) -> str:
        return self.path
