"""Path hashing used as the index lookup key.

SqPack hashes are CRC-32/JAMCRC: the standard CRC-32 with the final XOR
left out.  Input is lower-cased first, so lookups are case-insensitive.
"""

from __future__ import annotations

import zlib
from dataclasses import dataclass

_MASK32 = 0xFFFFFFFF


@dataclass(frozen=True, slots=True)
class PathHash:
    directory_hash: int
    filename_hash: int
    full_hash: int

    @property
    def pair(self) -> tuple[int, int]:
        return (self.directory_hash, self.filename_hash)


def hash_segment(segment: str) -> int:
    """Return the 32-bit JAMCRC of the lower-cased *segment*."""
    return zlib.crc32(segment.lower().encode("utf-8")) ^ _MASK32


def hash_path(path: str) -> PathHash:
    """Hash a normalized ``directory/filename`` path for both index variants."""
    normalized = path.strip().replace("\\", "/").lower()
    directory, _, filename = normalized.rpartition("/")
    return PathHash(
        directory_hash=hash_segment(directory),
        filename_hash=hash_segment(filename),
        full_hash=hash_segment(normalized),
    )
