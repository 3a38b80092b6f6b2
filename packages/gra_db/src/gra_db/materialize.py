from __future__ import annotations

import dataclasses
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Type, TypeVar

from .entity import EMBEDDED
from .schema import column_map, type_hints, unwrap_optional

T = TypeVar("T")

# Fixed textual layout used by SQLite's CURRENT_TIMESTAMP and MySQL DATETIME
TIMESTAMP_LAYOUT = "%Y-%m-%d %H:%M:%S"

_TRUE_STRINGS = frozenset({"1", "t", "true", "y", "yes", "on"})


class _Skip:
    """Marker for values that cannot be coerced; the field keeps its default."""


SKIP = _Skip()


def parse_timestamp(value: str) -> datetime | None:
    """
    Parse ISO-8601 text or the fixed ``YYYY-MM-DD HH:MM:SS`` layout.

    >>> parse_timestamp("2024-01-02 03:04:05")
    datetime.datetime(2024, 1, 2, 3, 4, 5)
    """
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.strptime(value[:19], TIMESTAMP_LAYOUT)
    except ValueError:
        return None


def coerce_value(annotation: Any, value: Any) -> Any:
    """
    Convert a driver value to the field's declared scalar type.

    Handles str, int, float, bool and datetime (optionally wrapped in
    Optional). Values that cannot be converted yield ``SKIP``; other
    annotations receive the driver value unchanged.
    """
    if value is None:
        return None

    target = unwrap_optional(annotation)

    # bool before int: bool is an int subclass.
    if target is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, Decimal)):
            return value != 0
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_STRINGS
        return SKIP

    if target is int:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        if isinstance(value, (float, Decimal)):
            return int(value) if value == int(value) else SKIP
        if isinstance(value, (str, bytes)):
            try:
                return int(value)
            except ValueError:
                return SKIP
        return SKIP

    if target is float:
        if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, (str, bytes)):
            try:
                return float(value)
            except ValueError:
                return SKIP
        return SKIP

    if target is str:
        if isinstance(value, str):
            return value
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value).decode("utf-8")
        return str(value)

    if target is datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        if isinstance(value, str):
            parsed = parse_timestamp(value)
            return SKIP if parsed is None else parsed
        return SKIP

    return value


def _required(field: dataclasses.Field) -> bool:
    return (
        field.default is dataclasses.MISSING
        and field.default_factory is dataclasses.MISSING
    )


def _construct(cls: type, assigned: Mapping[tuple[str, ...], Any], prefix: tuple) -> Any:
    hints = type_hints(cls)
    init_kwargs: dict[str, Any] = {}
    late: dict[str, Any] = {}

    for field in dataclasses.fields(cls):
        key = (*prefix, field.name)
        if field.metadata.get(EMBEDDED):
            value = _construct(hints[field.name], assigned, key)
        elif key in assigned:
            value = assigned[key]
        elif field.init and _required(field):
            # Unselected, missing or uncoercible: the row cannot supply it.
            value = None
        else:
            continue

        if field.init:
            init_kwargs[field.name] = value
        else:
            late[field.name] = value

    instance = cls(**init_kwargs)
    for name, value in late.items():
        setattr(instance, name, value)
    return instance


def materialize(entity_type: Type[T], row: Mapping[str, Any]) -> T:
    """
    Build a new entity instance from a result row keyed by column name.

    Columns without a matching field are ignored. A required field the row
    cannot fill (column missing or value not coercible) is set to None.

    Example:
        >>> user = materialize(User, {"id": 1, "name": "Ada", "extra": 5})
        >>> user.name
        'Ada'
    """
    mapping = column_map(entity_type)
    assigned: dict[tuple[str, ...], Any] = {}

    for column_name, raw in row.items():
        info = mapping.get(column_name)
        if info is None:
            continue
        value = coerce_value(info.annotation, raw)
        if value is SKIP:
            continue
        assigned[info.path] = value

    return _construct(entity_type, assigned, ())
