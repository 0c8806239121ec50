import struct
import zlib
from collections import defaultdict
from pathlib import Path

import pytest

from sqpack_reader.archive.paths import ArchivePath
from sqpack_reader.excel.schema import Locale, SheetVariant, WireType

BLOCK_ALIGNMENT = 128


def _pad(data: bytes, alignment: int = BLOCK_ALIGNMENT) -> bytes:
    return data + b"\x00" * (-len(data) % alignment)


class SqPackBuilder:
    """Builds synthetic SqPack / EXH / EXD binaries for tests."""

    @staticmethod
    def block(payload: bytes, *, compress: bool = True) -> bytes:
        if compress:
            c = zlib.compressobj(9, zlib.DEFLATED, -zlib.MAX_WBITS)
            raw = c.compress(payload) + c.flush()
            header = struct.pack("<IIII", 16, 0, len(raw), len(payload))
        else:
            raw = payload
            header = struct.pack("<IIII", 16, 0, 32000, len(payload))
        return _pad(header + raw)

    @classmethod
    def standard_entry(
        cls, payload: bytes, *, block_size: int = 16000, compress: bool = True
    ) -> bytes:
        chunks = [payload[i : i + block_size] for i in range(0, len(payload), block_size)]
        blocks = [cls.block(c, compress=compress) for c in chunks]

        table = b""
        offset = 0
        for chunk, block in zip(chunks, blocks, strict=True):
            table += struct.pack("<IHH", offset, len(block), len(chunk))
            offset += len(block)

        head_size = 24 + len(table)
        header_len = head_size + (-head_size % BLOCK_ALIGNMENT)
        header = struct.pack("<IIIIII", header_len, 2, len(payload), 0, 0, len(blocks)) + table
        return _pad(header) + b"".join(blocks)

    @staticmethod
    def empty_entry() -> bytes:
        return _pad(struct.pack("<IIIII", BLOCK_ALIGNMENT, 1, 0, 0, 0))

    @classmethod
    def texture_entry(
        cls,
        mips: list[bytes],
        *,
        fmt: int = 5200,
        width: int = 4,
        height: int = 4,
        header_size: int = 80,
    ) -> bytes:
        tex_header = struct.pack("<IIHHHH", 0x800000, fmt, width, height, 1, len(mips))
        tex_header = tex_header.ljust(header_size, b"\x00")

        entries = b""
        body = b""
        offset = len(tex_header)
        for level, mip in enumerate(mips):
            block = cls.block(mip)
            entries += struct.pack("<IIIII", offset, len(block), len(mip), level, 1)
            body += block
            offset += len(block)

        head_size = 24 + len(entries)
        header_len = head_size + (-head_size % BLOCK_ALIGNMENT)
        raw_size = len(tex_header) + sum(len(m) for m in mips)
        header = struct.pack("<IIIIII", header_len, 4, raw_size, 0, 0, len(mips)) + entries
        return _pad(_pad(header) + tex_header + body)

    @classmethod
    def model_entry(
        cls, parts: dict[int, list[bytes]], *, meshes: int = 2, materials: int = 1, lods: int = 3
    ) -> bytes:
        sizes, compressed, offsets, starts, counts = [], [], [], [], []
        block_sizes: list[int] = []
        body = b""
        for i in range(11):
            chunks = parts.get(i, [])
            blocks = [cls.block(c) for c in chunks]
            sizes.append(sum(len(c) for c in chunks))
            compressed.append(sum(len(b) for b in blocks))
            offsets.append(len(body))
            starts.append(len(block_sizes))
            counts.append(len(blocks))
            block_sizes.extend(len(b) for b in blocks)
            body += b"".join(blocks)

        fixed = (
            struct.pack("<I", 0x01000005)
            + struct.pack("<11I", *sizes)
            + struct.pack("<11I", *compressed)
            + struct.pack("<11I", *offsets)
            + struct.pack("<11H", *starts)
            + struct.pack("<11H", *counts)
            + struct.pack("<HHB3x", meshes, materials, lods)
            + struct.pack(f"<{len(block_sizes)}H", *block_sizes)
        )
        head_size = 20 + len(fixed)
        header_len = head_size + (-head_size % BLOCK_ALIGNMENT)
        header = struct.pack("<IIIII", header_len, 3, sum(sizes), 0, 0) + fixed
        return _pad(header) + body

    @staticmethod
    def packed_locator(data_file_id: int, offset: int, *, synonym: bool = False) -> int:
        assert offset % BLOCK_ALIGNMENT == 0
        return (offset // 8) | (data_file_id << 1) | int(synonym)

    @staticmethod
    def index(entries: list[tuple[int | tuple[int, int], int]], *, index2: bool = False) -> bytes:
        """Build an index file from ``(key, packed)`` pairs.

        Keys are ``(directory_hash, filename_hash)`` for .index and the
        full-path hash for .index2.
        """
        header_offset = 0x20
        entries_offset = 0x40
        table = b""
        for key, packed in entries:
            if index2:
                table += struct.pack("<II", key, packed)
            else:
                dir_hash, file_hash = key
                table += struct.pack("<IIII", file_hash, dir_hash, packed, 0)

        head = bytearray(entries_offset)
        head[0:8] = b"SqPack\x00\x00"
        struct.pack_into("<I", head, 0x0C, header_offset)
        struct.pack_into("<II", head, header_offset, 0x400, 1)
        struct.pack_into("<II", head, header_offset + 8, entries_offset, len(table))
        return bytes(head) + table

    @staticmethod
    def exh(
        columns: list[tuple[WireType, int]],
        row_size: int,
        pages: list[tuple[int, int]],
        locales: list[Locale],
        *,
        variant: SheetVariant = SheetVariant.DEFAULT,
    ) -> bytes:
        row_count = sum(count for _, count in pages)
        data = struct.pack(
            ">4sHHHHHHBBHIII",
            b"EXHF",
            3,
            row_size,
            len(columns),
            len(pages),
            len(locales),
            0,
            0,
            variant,
            0,
            row_count,
            0,
            0,
        )
        data += b"".join(struct.pack(">HH", t, o) for t, o in columns)
        data += b"".join(struct.pack(">II", s, c) for s, c in pages)
        data += b"".join(struct.pack("<H", loc) for loc in locales)
        return data

    @staticmethod
    def exd(rows: list[tuple[int, int, bytes]]) -> bytes:
        """Build an EXD page from ``(row_id, sub_row_count, payload)`` triples."""
        index_size = 8 * len(rows)
        offset = 32 + index_size
        index = b""
        body = b""
        for row_id, sub_row_count, payload in rows:
            index += struct.pack(">II", row_id, offset + len(body))
            body += struct.pack(">IH", len(payload), sub_row_count) + payload
        header = struct.pack(">4sHHII16x", b"EXDF", 2, 0, index_size, len(body))
        return header + index + body


RACE_COLUMNS = [
    (WireType.STRING, 0),
    (WireType.STRING, 4),
    (WireType.INT32, 8),
    (WireType.UINT8, 12),
    (WireType.PACKED_BOOL0, 13),
    (WireType.PACKED_BOOL2, 13),
    (WireType.FLOAT32, 16),
]
RACE_ROW_SIZE = 20


def race_row(
    masculine: str, feminine: str, model: int, unk: int, flag_a: bool, flag_b: bool, scale: float
) -> bytes:
    masc = masculine.encode("utf-8") + b"\x00"
    fem = feminine.encode("utf-8") + b"\x00"
    packed = int(flag_a) | (int(flag_b) << 2)
    fixed = struct.pack(">IIiBB2xf", 0, len(masc), model, unk, packed, scale)
    return fixed + masc + fem


RACE_PAGES = {
    1: [
        (1, ("Hyur", "Hyur", 101, 1, True, False, 1.0)),
        (2, ("Elezen", "Elezen", -2, 2, False, True, 1.5)),
        (3, ("Lalafell", "Lalafell", 103, 3, True, True, 0.5)),
    ],
    10: [
        (10, ("Miqo'te", "Miqo'te", 110, 4, False, False, 2.0)),
        (11, ("Roegadyn", "Roegadyn", 111, 5, True, False, 2.5)),
    ],
}


@pytest.fixture
def builder() -> type[SqPackBuilder]:
    return SqPackBuilder


@pytest.fixture
def make_sqpack(tmp_path):
    """Write a SqPack repository under ``tmp_path / "sqpack"``.

    *files* maps inner paths to plain contents (stored as standard
    entries); *packed* maps inner paths to prebuilt entries.
    """

    def _make(
        files: dict[str, bytes] | None = None,
        *,
        packed: dict[str, bytes] | None = None,
        index2: bool = False,
        shards: int = 1,
    ) -> Path:
        root = tmp_path / "sqpack"
        (root / "ffxiv").mkdir(parents=True, exist_ok=True)

        entries: dict[str, bytes] = {
            path: SqPackBuilder.standard_entry(data) for path, data in (files or {}).items()
        }
        entries.update(packed or {})

        by_pack = defaultdict(list)
        for inner, entry in entries.items():
            apath = ArchivePath(inner)
            by_pack[apath.pack].append((apath, entry))

        for pack, items in by_pack.items():
            shard_data = [b"" for _ in range(shards)]
            index_entries = []
            for n, (apath, entry) in enumerate(items):
                shard = n % shards
                offset = len(shard_data[shard])
                shard_data[shard] += _pad(entry)
                packed_loc = SqPackBuilder.packed_locator(shard, offset)
                key = apath.hash.full_hash if index2 else apath.hash.pair
                index_entries.append((key, packed_loc))

            for shard, data in enumerate(shard_data):
                dat = root / pack.dat_path(shard)
                dat.parent.mkdir(parents=True, exist_ok=True)
                dat.write_bytes(data)
            index_file = root / pack.index_path(index2=index2)
            index_file.write_bytes(SqPackBuilder.index(index_entries, index2=index2))
        return root

    return _make


@pytest.fixture
def race_files() -> dict[str, bytes]:
    """The ``Race`` sheet in English and Japanese, split over two pages."""
    files = {
        "exd/race.exh": SqPackBuilder.exh(
            RACE_COLUMNS,
            RACE_ROW_SIZE,
            [(1, 3), (10, 2)],
            [Locale.JAPANESE, Locale.ENGLISH],
        ),
        "exd/root.exl": b"EXLT,2\r\nRace,0\r\nModelChara,1\r\n",
    }
    for start, rows in RACE_PAGES.items():
        en = [(row_id, 1, race_row(*values)) for row_id, values in rows]
        ja = [(row_id, 1, race_row(f"{v[0]}-ja", f"{v[1]}-ja", *v[2:])) for row_id, v in rows]
        files[f"exd/race_{start}_en.exd"] = SqPackBuilder.exd(en)
        files[f"exd/race_{start}_ja.exd"] = SqPackBuilder.exd(ja)
    return files


@pytest.fixture
def race_repo_root(make_sqpack, race_files) -> Path:
    return make_sqpack(race_files)
