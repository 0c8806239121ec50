"""Reader for file bodies packed inside SqPack ``.datN`` shards.

Every packed file starts with a little-endian header::

  header_len u32, file_type u32, raw_size u32, unk u32, unk u32

followed by a type-specific block table.  File data begins at
``file_offset + header_len`` and is stored as a run of blocks, each
with its own 16-byte header and either a raw-deflate or a stored
payload, padded to 128 bytes.
"""

from __future__ import annotations

import logging
import struct
import zlib
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import BinaryIO, ClassVar

from sqpack_reader.archive.index import FileLocator
from sqpack_reader.archive.paths import PackId
from sqpack_reader.errors import CorruptBlock, SqPackIOError

logger = logging.getLogger(__name__)

BLOCK_HEADER_SIZE = 16
BLOCK_ALIGNMENT = 128
STORED_BLOCK_MARKER = 32000  # compressed_size value of an uncompressed block
MODEL_PART_COUNT = 11
TEXTURE_HEADER_SIZE = 16

_COMMON_HEADER_FMT = "<IIIII"
_COMMON_HEADER_SIZE = struct.calcsize(_COMMON_HEADER_FMT)
_BLOCK_HEADER_FMT = "<IIII"
_STD_BLOCK_FMT = "<IHH"
_MIP_FMT = "<IIIII"
_TEX_HEADER_FMT = "<IIHHHH"
_MODEL_HEADER_FMT = (
    f"<I{MODEL_PART_COUNT}I{MODEL_PART_COUNT}I{MODEL_PART_COUNT}I"
    f"{MODEL_PART_COUNT}H{MODEL_PART_COUNT}HHHB3x"
)

MODEL_PART_NAMES = (
    "stack",
    "runtime",
    "vertex_buffer_0",
    "vertex_buffer_1",
    "vertex_buffer_2",
    "edge_geometry_0",
    "edge_geometry_1",
    "edge_geometry_2",
    "index_buffer_0",
    "index_buffer_1",
    "index_buffer_2",
)


class FileKind(IntEnum):
    EMPTY = 1
    STANDARD = 2
    MODEL = 3
    TEXTURE = 4


@dataclass(frozen=True, slots=True)
class EmptyFile:
    kind: ClassVar[FileKind] = FileKind.EMPTY
    raw_size: int = 0

    def to_bytes(self) -> bytes:
        return b""


@dataclass(frozen=True, slots=True)
class StandardFile:
    kind: ClassVar[FileKind] = FileKind.STANDARD
    raw_size: int
    blocks: tuple[bytes, ...]

    @property
    def data(self) -> bytes:
        return b"".join(self.blocks)

    def to_bytes(self) -> bytes:
        return self.data


@dataclass(frozen=True, slots=True)
class ModelFile:
    kind: ClassVar[FileKind] = FileKind.MODEL
    raw_size: int
    version: int
    parts: tuple[tuple[bytes, ...], ...]  # one block tuple per MODEL_PART_NAMES entry
    mesh_count: int
    material_count: int
    lod_count: int

    def part(self, name: str) -> bytes:
        return b"".join(self.parts[MODEL_PART_NAMES.index(name)])

    def to_bytes(self) -> bytes:
        return b"".join(b"".join(blocks) for blocks in self.parts)


@dataclass(frozen=True, slots=True)
class TextureHeader:
    attribute: int
    format: int
    width: int
    height: int
    depth: int
    mip_levels: int


@dataclass(frozen=True, slots=True)
class TextureFile:
    """Texture container; pixel data is left encoded for downstream transcoders."""

    kind: ClassVar[FileKind] = FileKind.TEXTURE
    raw_size: int
    header: TextureHeader
    header_bytes: bytes
    mipmaps: tuple[tuple[bytes, ...], ...]

    def mipmap(self, level: int) -> bytes:
        return b"".join(self.mipmaps[level])

    def to_bytes(self) -> bytes:
        return self.header_bytes + b"".join(b"".join(blocks) for blocks in self.mipmaps)


FileContainer = EmptyFile | StandardFile | ModelFile | TextureFile


def _align(size: int) -> int:
    return (size + BLOCK_ALIGNMENT - 1) & ~(BLOCK_ALIGNMENT - 1)


def _read_exact(stream: BinaryIO, size: int, offset: int, what: str) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise CorruptBlock(f"{what} truncated: need {size} bytes, got {len(data)}", offset=offset)
    return data


def read_block(stream: BinaryIO, offset: int) -> tuple[bytes, int]:
    """Decode the block at *offset*.

    Returns the decompressed payload and the padded number of bytes the
    block occupies on disk.
    """
    stream.seek(offset)
    raw_header = _read_exact(stream, BLOCK_HEADER_SIZE, offset, "block header")
    header_size, _unk, compressed, decompressed = struct.unpack(_BLOCK_HEADER_FMT, raw_header)
    if header_size != BLOCK_HEADER_SIZE:
        raise CorruptBlock(f"unexpected block header size {header_size}", offset=offset)

    if compressed == STORED_BLOCK_MARKER:
        payload = _read_exact(stream, decompressed, offset, "stored block")
        stored = decompressed
    else:
        raw = _read_exact(stream, compressed, offset, "compressed block")
        try:
            payload = zlib.decompress(raw, -zlib.MAX_WBITS)
        except zlib.error as exc:
            raise CorruptBlock(f"inflate failed: {exc}", offset=offset) from exc
        stored = compressed

    if len(payload) != decompressed:
        raise CorruptBlock(
            f"block declares {decompressed} bytes, decoded {len(payload)}", offset=offset
        )
    return payload, _align(BLOCK_HEADER_SIZE + stored)


def _read_standard(stream: BinaryIO, offset: int, header_len: int, raw_size: int) -> StandardFile:
    (count,) = struct.unpack("<I", _read_exact(stream, 4, offset, "block count"))
    table_size = count * struct.calcsize(_STD_BLOCK_FMT)
    table = _read_exact(stream, table_size, offset, "block table")

    blocks: list[bytes] = []
    for i, (block_offset, _compressed, declared) in enumerate(
        struct.iter_unpack(_STD_BLOCK_FMT, table)
    ):
        at = offset + header_len + block_offset
        payload, _ = read_block(stream, at)
        if len(payload) != declared:
            raise CorruptBlock(
                f"block {i} table declares {declared} bytes, decoded {len(payload)}", offset=at
            )
        blocks.append(payload)

    total = sum(len(b) for b in blocks)
    if total != raw_size:
        raise CorruptBlock(f"file declares {raw_size} bytes, decoded {total}", offset=offset)
    return StandardFile(raw_size=raw_size, blocks=tuple(blocks))


def _read_texture(stream: BinaryIO, offset: int, header_len: int, raw_size: int) -> TextureFile:
    (count,) = struct.unpack("<I", _read_exact(stream, 4, offset, "mipmap count"))
    table = _read_exact(stream, count * struct.calcsize(_MIP_FMT), offset, "mipmap table")
    mips = list(struct.iter_unpack(_MIP_FMT, table))

    data_start = offset + header_len
    header_size = mips[0][0] if mips else TEXTURE_HEADER_SIZE
    if header_size < TEXTURE_HEADER_SIZE:
        raise CorruptBlock(f"texture header too small ({header_size} bytes)", offset=data_start)
    stream.seek(data_start)
    header_bytes = _read_exact(stream, header_size, data_start, "texture header")
    header = TextureHeader(*struct.unpack_from(_TEX_HEADER_FMT, header_bytes))

    mipmaps: list[tuple[bytes, ...]] = []
    for level, (mip_offset, _compressed, declared, _block_start, block_count) in enumerate(mips):
        pos = data_start + mip_offset
        blocks: list[bytes] = []
        for _ in range(block_count):
            payload, consumed = read_block(stream, pos)
            blocks.append(payload)
            pos += consumed
        decoded = sum(len(b) for b in blocks)
        if decoded != declared:
            raise CorruptBlock(
                f"mipmap {level} declares {declared} bytes, decoded {decoded}",
                offset=data_start + mip_offset,
            )
        mipmaps.append(tuple(blocks))

    return TextureFile(
        raw_size=raw_size, header=header, header_bytes=header_bytes, mipmaps=tuple(mipmaps)
    )


def _read_model(stream: BinaryIO, offset: int, header_len: int, raw_size: int) -> ModelFile:
    fields = struct.unpack(
        _MODEL_HEADER_FMT,
        _read_exact(stream, struct.calcsize(_MODEL_HEADER_FMT), offset, "model header"),
    )
    n = MODEL_PART_COUNT
    version = fields[0]
    sizes = fields[1 : 1 + n]
    offsets = fields[1 + 2 * n : 1 + 3 * n]
    starts = fields[1 + 3 * n : 1 + 4 * n]
    counts = fields[1 + 4 * n : 1 + 5 * n]
    mesh_count, material_count, lod_count = fields[1 + 5 * n :]

    total_blocks = max((s + c for s, c in zip(starts, counts, strict=True)), default=0)
    raw_sizes = _read_exact(stream, total_blocks * 2, offset, "model block sizes")
    block_sizes = struct.unpack(f"<{total_blocks}H", raw_sizes)

    parts: list[tuple[bytes, ...]] = []
    for i in range(n):
        pos = offset + header_len + offsets[i]
        blocks: list[bytes] = []
        for block_index in range(starts[i], starts[i] + counts[i]):
            payload, _ = read_block(stream, pos)
            blocks.append(payload)
            pos += block_sizes[block_index]
        decoded = sum(len(b) for b in blocks)
        if counts[i] and decoded != sizes[i]:
            raise CorruptBlock(
                f"model part {MODEL_PART_NAMES[i]} declares {sizes[i]} bytes, decoded {decoded}",
                offset=offset + header_len + offsets[i],
            )
        parts.append(tuple(blocks))

    return ModelFile(
        raw_size=raw_size,
        version=version,
        parts=tuple(parts),
        mesh_count=mesh_count,
        material_count=material_count,
        lod_count=lod_count,
    )


def read_container(stream: BinaryIO, offset: int) -> FileContainer:
    """Decode the packed file starting at *offset* in *stream*."""
    stream.seek(offset)
    header_len, file_type, raw_size, _unk0, _unk1 = struct.unpack(
        _COMMON_HEADER_FMT, _read_exact(stream, _COMMON_HEADER_SIZE, offset, "file header")
    )
    try:
        kind = FileKind(file_type)
    except ValueError:
        raise CorruptBlock(f"unknown file type {file_type}", offset=offset) from None

    if kind is FileKind.EMPTY:
        return EmptyFile(raw_size=raw_size)
    if kind is FileKind.STANDARD:
        return _read_standard(stream, offset, header_len, raw_size)
    if kind is FileKind.TEXTURE:
        return _read_texture(stream, offset, header_len, raw_size)
    return _read_model(stream, offset, header_len, raw_size)


class DataFileReader:
    """Reads packed files out of the ``.datN`` shards of one pack.

    Each read opens its shard, seeks and decodes independently, so
    concurrent reads never share a file cursor.
    """

    def __init__(self, root: str | Path, pack: PackId) -> None:
        self.root = Path(root)
        self.pack = pack

    def shard_path(self, data_file_id: int) -> Path:
        return self.root / self.pack.dat_path(data_file_id)

    def read(self, locator: FileLocator) -> FileContainer:
        path = self.shard_path(locator.data_file_id)
        logger.debug("Reading %s @ %#x", path.name, locator.offset)
        try:
            with path.open("rb") as f:
                return read_container(f, locator.offset)
        except OSError as exc:
            raise SqPackIOError(path, str(exc)) from exc
