"""Positional projection of dynamic rows onto caller-declared types.

Sheets have no column names, so the only contract between a row and a
target type is order: the i-th declared field receives the i-th value.
Targets may be dataclasses or pydantic models.  Values are converted
only within compatible kinds (any integer width into ``int``, integers
or floats into ``float``); anything else fails with ``MappingError``.
"""

from __future__ import annotations

import dataclasses
import types
import typing
from collections.abc import Iterable, Iterator
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from sqpack_reader.errors import MappingError
from sqpack_reader.excel.records import Row, Value
from sqpack_reader.excel.schema import WireType

T = TypeVar("T")

_INTEGER_TYPES = frozenset(
    {
        WireType.INT8,
        WireType.UINT8,
        WireType.INT16,
        WireType.UINT16,
        WireType.INT32,
        WireType.UINT32,
        WireType.INT64,
        WireType.UINT64,
    }
)


def _target_fields(target: type) -> list[tuple[str, Any]]:
    if isinstance(target, type) and issubclass(target, BaseModel):
        return [(name, info.annotation) for name, info in target.model_fields.items()]
    if dataclasses.is_dataclass(target):
        hints = typing.get_type_hints(target)
        return [(f.name, hints[f.name]) for f in dataclasses.fields(target) if f.init]
    raise MappingError(target, "target must be a dataclass or a pydantic model")


def _unwrap_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _convert(target: type, name: str, annotation: Any, value: Value) -> Any:
    annotation = _unwrap_optional(annotation)
    wire_type = value.wire_type

    if annotation is Value:
        return value
    if annotation is Any or annotation is object:
        return value.data
    if annotation is bool:
        if wire_type is WireType.BOOL or wire_type.is_packed_bool:
            return value.data
    elif annotation is int:
        if wire_type in _INTEGER_TYPES:
            return value.data
    elif annotation is float:
        if wire_type is WireType.FLOAT32 or wire_type in _INTEGER_TYPES:
            return float(value.data)
    elif annotation is str:
        if wire_type is WireType.STRING:
            return value.data
    else:
        raise MappingError(target, f"field {name!r} has unsupported type {annotation!r}")

    raise MappingError(
        target, f"field {name!r} ({annotation.__name__}) cannot take a {wire_type.type_tag} value"
    )


def map_row(
    row: Row,
    target: type[T],
    *,
    include_row_id: bool = False,
    include_sub_row_id: bool = False,
) -> T:
    """Build a *target* instance from *row* by column order.

    With *include_row_id* the row id is supplied as the first field,
    for record types that declare their id ahead of the columns.
    *include_sub_row_id* then supplies the sub-row id next, so records
    of a sub-row sheet that share a row id stay distinguishable.
    """
    ids: list[Value] = []
    if include_row_id:
        ids.append(Value(WireType.UINT32, row.row_id))
    if include_sub_row_id:
        ids.append(Value(WireType.UINT16, row.sub_row_id))
    values = ids + list(row.fields)

    fields = _target_fields(target)
    if len(fields) != len(values):
        raise MappingError(
            target, f"declares {len(fields)} fields but the row has {len(values)} values"
        )

    kwargs = {
        name: _convert(target, name, annotation, value)
        for (name, annotation), value in zip(fields, values, strict=True)
    }
    if issubclass(target, BaseModel):
        try:
            return target.model_validate(kwargs, strict=True)
        except ValidationError as exc:
            raise MappingError(target, str(exc)) from exc
    return target(**kwargs)


def map_rows(
    rows: Iterable[Row],
    target: type[T],
    *,
    include_row_id: bool = False,
    include_sub_row_id: bool = False,
) -> Iterator[T]:
    for row in rows:
        yield map_row(
            row, target, include_row_id=include_row_id, include_sub_row_id=include_sub_row_id
        )
