from sqpack_reader.excel.mapper import map_row, map_rows
from sqpack_reader.excel.records import Row, RowSequence, Value, read_rows
from sqpack_reader.excel.schema import (
    Column,
    Locale,
    Page,
    Schema,
    SheetVariant,
    WireType,
    parse_schema,
)
from sqpack_reader.excel.sheets import Sheet, list_sheets, read_schema, read_sheet

__all__ = [
    "Column",
    "Locale",
    "Page",
    "Row",
    "RowSequence",
    "Schema",
    "Sheet",
    "SheetVariant",
    "Value",
    "WireType",
    "list_sheets",
    "map_row",
    "map_rows",
    "parse_schema",
    "read_rows",
    "read_schema",
    "read_sheet",
]
