"""Parser for SqPack ``.index`` / ``.index2`` hash tables.

Both variants share a layout: an 8-byte ``SqPack`` magic, a pointer at
0x0C to the index header, and inside that header the offset and byte
size of a flat entry table.  They differ only in the entry key:

  .index   16 bytes: filename hash, directory hash, packed locator, padding
  .index2   8 bytes: full-path hash, packed locator

The packed locator bit-splits into a synonym flag (bit 0), the data
shard number (bits 1-3) and a block offset in 8-byte units (the rest).
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path

from sqpack_reader.archive.hashing import PathHash
from sqpack_reader.constants import SQPACK_MAGIC
from sqpack_reader.errors import AmbiguousPath, FileNotFound, MalformedIndex, SqPackIOError

logger = logging.getLogger(__name__)

HEADER_POINTER_OFFSET = 0x0C
ENTRIES_POINTER_DELTA = 8
OFFSET_UNIT = 8

_U32 = "<I"
_TABLE_PTR_FMT = "<II"
_INDEX1_ENTRY_FMT = "<IIII"
_INDEX2_ENTRY_FMT = "<II"


class IndexKind(IntEnum):
    INDEX1 = 1
    INDEX2 = 2

    @property
    def entry_size(self) -> int:
        return 16 if self is IndexKind.INDEX1 else 8


@dataclass(frozen=True, slots=True)
class FileLocator:
    data_file_id: int
    offset: int


@dataclass(frozen=True, slots=True)
class IndexEntry:
    key: int | tuple[int, int]  # full hash (index2) or (directory, filename) pair
    packed: int

    @property
    def is_synonym(self) -> bool:
        return bool(self.packed & 0x1)

    @property
    def data_file_id(self) -> int:
        return (self.packed >> 1) & 0x7

    @property
    def offset(self) -> int:
        return (self.packed & ~0xF) * OFFSET_UNIT

    @property
    def locator(self) -> FileLocator:
        return FileLocator(data_file_id=self.data_file_id, offset=self.offset)


class IndexStore:
    """Immutable hash -> entry table for one pack.

    Built once and then only read, so it can be shared between threads
    without locking.
    """

    def __init__(
        self,
        kind: IndexKind,
        entries: dict[int | tuple[int, int], IndexEntry],
        collisions: frozenset[int | tuple[int, int]] = frozenset(),
        source: str = "<memory>",
    ) -> None:
        self.kind = kind
        self.source = source
        self._entries = entries
        self._collisions = collisions

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"IndexStore({self.kind.name}, {len(self)} entries, source={self.source!r})"

    @classmethod
    def from_bytes(cls, data: bytes, kind: IndexKind, source: str = "<memory>") -> IndexStore:
        if len(data) < HEADER_POINTER_OFFSET + 4 or data[: len(SQPACK_MAGIC)] != SQPACK_MAGIC:
            raise MalformedIndex(source, "missing SqPack magic")

        (header_offset,) = struct.unpack_from(_U32, data, HEADER_POINTER_OFFSET)
        ptr_at = header_offset + ENTRIES_POINTER_DELTA
        if ptr_at + 8 > len(data):
            raise MalformedIndex(source, f"index header at {header_offset:#x} is truncated")
        entries_offset, entries_size = struct.unpack_from(_TABLE_PTR_FMT, data, ptr_at)

        if entries_size % kind.entry_size:
            raise MalformedIndex(
                source,
                f"entry table size {entries_size} is not a multiple of {kind.entry_size}",
            )
        if entries_offset + entries_size > len(data):
            raise MalformedIndex(
                source,
                f"entry table truncated: need {entries_offset + entries_size} bytes, "
                f"have {len(data)}",
            )

        entries: dict[int | tuple[int, int], IndexEntry] = {}
        collisions: set[int | tuple[int, int]] = set()
        count = entries_size // kind.entry_size
        for i in range(count):
            pos = entries_offset + i * kind.entry_size
            key: int | tuple[int, int]
            if kind is IndexKind.INDEX1:
                file_hash, dir_hash, packed, _pad = struct.unpack_from(_INDEX1_ENTRY_FMT, data, pos)
                key = (dir_hash, file_hash)
            else:
                key, packed = struct.unpack_from(_INDEX2_ENTRY_FMT, data, pos)
            if key in entries:
                collisions.add(key)
            entries[key] = IndexEntry(key=key, packed=packed)

        if collisions:
            logger.warning("%s: %d colliding hash keys", source, len(collisions))
        return cls(kind, entries, frozenset(collisions), source)

    def _key_for(self, path_hash: PathHash) -> int | tuple[int, int]:
        return path_hash.pair if self.kind is IndexKind.INDEX1 else path_hash.full_hash

    def resolve(self, path_hash: PathHash, path: str = "") -> FileLocator | None:
        """Return the locator for *path_hash*, or ``None`` when absent.

        Raises:
            AmbiguousPath: If the key collides with another path.
        """
        key = self._key_for(path_hash)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if key in self._collisions or entry.is_synonym:
            raise AmbiguousPath(path or repr(path_hash), key)
        return entry.locator

    def locate(self, path_hash: PathHash, path: str = "") -> FileLocator:
        locator = self.resolve(path_hash, path)
        if locator is None:
            raise FileNotFound(path or repr(path_hash))
        return locator


def index_kind_for(path: str | Path) -> IndexKind:
    return IndexKind.INDEX2 if str(path).endswith(".index2") else IndexKind.INDEX1


def load_index(path: str | Path) -> IndexStore:
    """Read and parse an index file from disk."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise SqPackIOError(path, str(exc)) from exc
    store = IndexStore.from_bytes(data, index_kind_for(path), source=str(path))
    logger.info("Loaded %s (%d entries)", path.name, len(store))
    return store
