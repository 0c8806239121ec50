"""Parser for ``.exh`` sheet headers.

An EXH file is big-endian and self-describing::

  "EXHF", version u16, row_size u16, column_count u16, page_count u16,
  locale_count u16, unk u16, unk u8, variant u8, unk u16,
  row_count u32, unk u32, unk u32                          (32 bytes)
  column_count x (type u16, offset u16)
  page_count   x (start_id u32, row_count u32)
  locale_count x  locale u16 (little-endian)

Column order is significant: it is the field order of decoded rows and
the positional contract for typed mapping.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from sqpack_reader.constants import EXH_MAGIC
from sqpack_reader.errors import MalformedSchema, UnknownLocale

HEADER_SIZE = 32

_HEADER_FMT = ">4sHHHHHHBBHIII"
_COLUMN_FMT = ">HH"
_PAGE_FMT = ">II"
_LOCALE_FMT = "<H"


class WireType(IntEnum):
    STRING = 0x0
    BOOL = 0x1
    INT8 = 0x2
    UINT8 = 0x3
    INT16 = 0x4
    UINT16 = 0x5
    INT32 = 0x6
    UINT32 = 0x7
    FLOAT32 = 0x9
    INT64 = 0xA
    UINT64 = 0xB
    PACKED_BOOL0 = 0x19
    PACKED_BOOL1 = 0x1A
    PACKED_BOOL2 = 0x1B
    PACKED_BOOL3 = 0x1C
    PACKED_BOOL4 = 0x1D
    PACKED_BOOL5 = 0x1E
    PACKED_BOOL6 = 0x1F
    PACKED_BOOL7 = 0x20

    @property
    def is_packed_bool(self) -> bool:
        return self >= WireType.PACKED_BOOL0

    @property
    def bit(self) -> int:
        """Bit index inside the shared byte for packed booleans."""
        return self - WireType.PACKED_BOOL0

    @property
    def struct_format(self) -> str:
        if self.is_packed_bool:
            return ">B"
        return _STRUCT_FORMATS[self]

    @property
    def width(self) -> int:
        return struct.calcsize(self.struct_format)

    @property
    def type_tag(self) -> str:
        if self is WireType.BOOL or self.is_packed_bool:
            return "bool"
        return _TYPE_TAGS[self]


_STRUCT_FORMATS = {
    WireType.STRING: ">I",
    WireType.BOOL: ">B",
    WireType.INT8: ">b",
    WireType.UINT8: ">B",
    WireType.INT16: ">h",
    WireType.UINT16: ">H",
    WireType.INT32: ">i",
    WireType.UINT32: ">I",
    WireType.FLOAT32: ">f",
    WireType.INT64: ">q",
    WireType.UINT64: ">Q",
}

_TYPE_TAGS = {
    WireType.STRING: "str",
    WireType.INT8: "i8",
    WireType.UINT8: "u8",
    WireType.INT16: "i16",
    WireType.UINT16: "u16",
    WireType.INT32: "i32",
    WireType.UINT32: "u32",
    WireType.FLOAT32: "f32",
    WireType.INT64: "i64",
    WireType.UINT64: "u64",
}


class Locale(IntEnum):
    NONE = 0x0
    JAPANESE = 0x1
    ENGLISH = 0x2
    GERMAN = 0x3
    FRENCH = 0x4
    CHINESE_SIMPLIFIED = 0x5
    CHINESE_TRADITIONAL = 0x6
    KOREAN = 0x7

    @property
    def code(self) -> str:
        return _LOCALE_CODES[self]

    @property
    def suffix(self) -> str:
        """File-name suffix of this locale's record pages (``_en``, or ``""``)."""
        return f"_{self.code}" if self.code else ""

    @classmethod
    def from_code(cls, code: str) -> Locale:
        code = code.strip().lower().lstrip("_")
        for locale, known in _LOCALE_CODES.items():
            if known == code:
                return locale
        raise UnknownLocale(code)


_LOCALE_CODES = {
    Locale.NONE: "",
    Locale.JAPANESE: "ja",
    Locale.ENGLISH: "en",
    Locale.GERMAN: "de",
    Locale.FRENCH: "fr",
    Locale.CHINESE_SIMPLIFIED: "chs",
    Locale.CHINESE_TRADITIONAL: "cht",
    Locale.KOREAN: "ko",
}


class SheetVariant(IntEnum):
    DEFAULT = 1
    SUB_ROWS = 2


@dataclass(frozen=True, slots=True)
class Column:
    wire_type: WireType
    offset: int


@dataclass(frozen=True, slots=True)
class Page:
    start_id: int
    row_count: int


@dataclass(frozen=True, slots=True)
class Schema:
    version: int
    row_size: int
    variant: SheetVariant
    row_count: int
    columns: tuple[Column, ...]
    pages: tuple[Page, ...]
    locales: tuple[Locale, ...]

    @property
    def has_sub_rows(self) -> bool:
        return self.variant is SheetVariant.SUB_ROWS

    def resolve_locale(self, requested: Locale) -> Locale:
        """Pick the record-file locale for *requested*.

        Falls back to the first locale the sheet ships, then to the
        locale-agnostic variant.
        """
        if requested in self.locales:
            return requested
        if self.locales:
            return self.locales[0]
        return Locale.NONE

    def page_path(self, sheet: str, page: Page, locale: Locale) -> str:
        return f"exd/{sheet.lower()}_{page.start_id}{locale.suffix}.exd"


def _enum_or_fail(enum: type[IntEnum], value: int, what: str) -> IntEnum:
    try:
        return enum(value)
    except ValueError:
        raise MalformedSchema(f"unknown {what} {value:#x}") from None


def parse_schema(data: bytes) -> Schema:
    """Parse raw ``.exh`` bytes into a :class:`Schema`."""
    if len(data) < HEADER_SIZE:
        raise MalformedSchema(f"header too short: {len(data)} bytes, need {HEADER_SIZE}")
    (
        magic,
        version,
        row_size,
        column_count,
        page_count,
        locale_count,
        _unk0,
        _unk1,
        variant,
        _unk2,
        row_count,
        _unk3,
        _unk4,
    ) = struct.unpack_from(_HEADER_FMT, data, 0)
    if magic != EXH_MAGIC:
        raise MalformedSchema(f"invalid magic {magic!r}")

    expected = HEADER_SIZE + column_count * 4 + page_count * 8 + locale_count * 2
    if len(data) < expected:
        raise MalformedSchema(
            f"declares {column_count} columns, {page_count} pages, {locale_count} locales "
            f"({expected} bytes) but has {len(data)} bytes"
        )

    pos = HEADER_SIZE
    columns: list[Column] = []
    for type_code, offset in struct.iter_unpack(_COLUMN_FMT, data[pos : pos + column_count * 4]):
        wire_type = _enum_or_fail(WireType, type_code, "column type")
        if offset + wire_type.width > row_size:
            raise MalformedSchema(
                f"column {len(columns)} ({wire_type.type_tag} @ {offset}) "
                f"overruns row size {row_size}"
            )
        columns.append(Column(wire_type=wire_type, offset=offset))
    pos += column_count * 4

    pages = tuple(
        Page(start_id=start, row_count=count)
        for start, count in struct.iter_unpack(_PAGE_FMT, data[pos : pos + page_count * 8])
    )
    pos += page_count * 8

    locales = tuple(
        _enum_or_fail(Locale, code, "locale")
        for (code,) in struct.iter_unpack(_LOCALE_FMT, data[pos : pos + locale_count * 2])
    )

    return Schema(
        version=version,
        row_size=row_size,
        variant=_enum_or_fail(SheetVariant, variant, "sheet variant"),
        row_count=row_count,
        columns=tuple(columns),
        pages=pages,
        locales=locales,
    )
