"""Read-only access to SqPack archives and the Excel sheets stored in them."""

from sqpack_reader.archive import ArchivePath, FileKind, PackId, Repository
from sqpack_reader.errors import (
    AmbiguousPath,
    CorruptBlock,
    FileNotFound,
    InvalidPath,
    MalformedIndex,
    MalformedRecord,
    MalformedSchema,
    MappingError,
    RepositoryUnavailable,
    SqPackError,
    SqPackIOError,
    UnknownLocale,
)
from sqpack_reader.excel import Locale, Row, Value, WireType, list_sheets, map_row, read_sheet

__version__ = "0.1.0"

__all__ = [
    "AmbiguousPath",
    "ArchivePath",
    "CorruptBlock",
    "FileKind",
    "FileNotFound",
    "InvalidPath",
    "Locale",
    "MalformedIndex",
    "MalformedRecord",
    "MalformedSchema",
    "MappingError",
    "PackId",
    "Repository",
    "RepositoryUnavailable",
    "Row",
    "SqPackError",
    "SqPackIOError",
    "UnknownLocale",
    "Value",
    "WireType",
    "list_sheets",
    "map_row",
    "read_sheet",
]
