"""Decoder for ``.exd`` record pages.

An EXD page is big-endian: a 32-byte ``EXDF`` header, a table of
``(row_id u32, offset u32)`` pointers, then the row bodies.  Each row
starts with ``size u32, sub_row_count u16``.  Default sheets store one
fixed-size body followed by that row's string heap; sub-row sheets
store ``sub_row_count`` bodies, each prefixed by a u16 sub-row id.
String offsets of a sub-row are relative to the end of its own body.
"""

from __future__ import annotations

import logging
import struct
from collections.abc import Iterator
from dataclasses import dataclass

from sqpack_reader.config import settings
from sqpack_reader.constants import EXD_MAGIC
from sqpack_reader.errors import MalformedRecord
from sqpack_reader.excel.schema import Schema, WireType

logger = logging.getLogger(__name__)

HEADER_SIZE = 32
ROW_HEADER_SIZE = 6
SUB_ROW_HEADER_SIZE = 2

_HEADER_FMT = ">4sHHII16x"
_ROW_PTR_FMT = ">II"
_ROW_HEADER_FMT = ">IH"

Scalar = bool | int | float | str


@dataclass(frozen=True, slots=True)
class Value:
    """One decoded cell, tagged with the wire type it was read as."""

    wire_type: WireType
    data: Scalar

    @property
    def type_tag(self) -> str:
        return self.wire_type.type_tag


@dataclass(frozen=True, slots=True)
class Row:
    row_id: int
    sub_row_id: int
    fields: tuple[Value, ...]

    def __len__(self) -> int:
        return len(self.fields)

    def __getitem__(self, index: int) -> Value:
        return self.fields[index]

    @property
    def values(self) -> tuple[Scalar, ...]:
        return tuple(v.data for v in self.fields)


@dataclass(frozen=True, slots=True)
class RowPointer:
    row_id: int
    offset: int


def parse_row_pointers(data: bytes) -> tuple[RowPointer, ...]:
    """Parse the EXD header and its row pointer table.

    Any problem here is structural and invalidates the whole page.
    """
    if len(data) < HEADER_SIZE:
        raise MalformedRecord(f"header too short: {len(data)} bytes, need {HEADER_SIZE}")
    magic, _version, _unk, index_size, _data_size = struct.unpack_from(_HEADER_FMT, data, 0)
    if magic != EXD_MAGIC:
        raise MalformedRecord(f"invalid magic {magic!r}")
    if index_size % struct.calcsize(_ROW_PTR_FMT):
        raise MalformedRecord(f"row index size {index_size} is not a multiple of 8")
    if HEADER_SIZE + index_size > len(data):
        raise MalformedRecord(
            f"row index truncated: need {HEADER_SIZE + index_size} bytes, have {len(data)}"
        )
    table = data[HEADER_SIZE : HEADER_SIZE + index_size]
    return tuple(
        RowPointer(row_id, offset) for row_id, offset in struct.iter_unpack(_ROW_PTR_FMT, table)
    )


def _read_string(data: bytes, start: int, end: int, row_id: int) -> str:
    if start >= end:
        raise MalformedRecord(f"string offset {start:#x} outside row", row_id=row_id)
    terminator = data.find(b"\x00", start, end)
    if terminator < 0:
        raise MalformedRecord(f"unterminated string at {start:#x}", row_id=row_id)
    return data[start:terminator].decode("utf-8", errors="replace")


def _decode_fields(
    schema: Schema, data: bytes, body: int, heap: int, end: int, row_id: int
) -> tuple[Value, ...]:
    values: list[Value] = []
    for column in schema.columns:
        wire_type = column.wire_type
        try:
            (raw,) = struct.unpack_from(wire_type.struct_format, data, body + column.offset)
        except struct.error as exc:
            raise MalformedRecord(str(exc), row_id=row_id) from exc
        if wire_type is WireType.STRING:
            value: Scalar = _read_string(data, heap + raw, end, row_id)
        elif wire_type is WireType.BOOL:
            value = raw != 0
        elif wire_type.is_packed_bool:
            value = bool((raw >> wire_type.bit) & 1)
        else:
            value = raw
        values.append(Value(wire_type, value))
    return tuple(values)


def decode_row(schema: Schema, data: bytes, pointer: RowPointer) -> list[Row]:
    """Decode every (sub-)row stored at *pointer*."""
    row_id = pointer.row_id
    start = pointer.offset
    if start + ROW_HEADER_SIZE > len(data):
        raise MalformedRecord(f"row header at {start:#x} is past end of data", row_id=row_id)
    size, sub_row_count = struct.unpack_from(_ROW_HEADER_FMT, data, start)
    first = start + ROW_HEADER_SIZE
    end = first + size
    if end > len(data):
        raise MalformedRecord(f"row declares {size} bytes past end of data", row_id=row_id)

    if not schema.has_sub_rows:
        if first + schema.row_size > end:
            raise MalformedRecord(
                f"row body of {size} bytes is smaller than row size {schema.row_size}",
                row_id=row_id,
            )
        heap = first + schema.row_size
        return [Row(row_id, 0, _decode_fields(schema, data, first, heap, end, row_id))]

    stride = SUB_ROW_HEADER_SIZE + schema.row_size
    if first + sub_row_count * stride > end:
        raise MalformedRecord(
            f"{sub_row_count} sub-rows of {stride} bytes overrun row size {size}", row_id=row_id
        )
    rows: list[Row] = []
    for i in range(sub_row_count):
        body = first + i * stride + SUB_ROW_HEADER_SIZE
        heap = body + schema.row_size
        rows.append(Row(row_id, i, _decode_fields(schema, data, body, heap, end, row_id)))
    return rows


class RowSequence:
    """Lazy, restartable view over the rows of one EXD page.

    Every ``iter()`` re-reads the pointer table and decodes rows on
    demand; nothing survives between iterations.  A damaged row is
    logged and skipped unless *strict*, in which case it raises.
    """

    def __init__(self, schema: Schema, data: bytes, *, strict: bool | None = None) -> None:
        self.schema = schema
        self._data = data
        self.strict = settings.strict_rows if strict is None else strict

    def __iter__(self) -> Iterator[Row]:
        pointers = parse_row_pointers(self._data)
        for pointer in pointers:
            try:
                rows = decode_row(self.schema, self._data, pointer)
            except MalformedRecord as exc:
                if self.strict:
                    raise
                logger.warning("Skipping row %d: %s", pointer.row_id, exc)
                continue
            yield from rows

    def collect(self) -> list[Row]:
        return list(self)


def read_rows(schema: Schema, data: bytes, *, strict: bool | None = None) -> RowSequence:
    """Return the lazily decoded rows of one EXD page."""
    return RowSequence(schema, data, strict=strict)
