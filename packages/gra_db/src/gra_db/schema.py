"""
Schema reflection for dataclass entities.

Derives table names, column names, the identifier column and bound values from
plain ``@dataclass`` types, so entities need no mapping code. Fields marked
``embedded()`` are flattened in place, which is how ``BaseEntity`` fields reach
the owner's table when it is composed rather than inherited.
"""

from __future__ import annotations

import dataclasses
import re
from datetime import datetime, timedelta, timezone
from functools import cache
from types import UnionType
from typing import Any, NamedTuple, Union, get_args, get_origin, get_type_hints

from .dialects import Dialect, placeholder
from .entity import COLUMN, EMBEDDED, NOT_PERSISTED, PRIMARY_KEY

CREATED_AT = "created_at"
UPDATED_AT = "updated_at"

_ACRONYM_RE = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_RE = re.compile(r"([a-z0-9])([A-Z])")


class ColumnInfo(NamedTuple):
    """A persisted field: its column name and where it lives on the entity."""

    name: str
    path: tuple[str, ...]
    annotation: Any
    primary_key: bool


class FieldData(NamedTuple):
    """Aligned column, value and placeholder lists for one entity."""

    columns: list[str]
    values: list[Any]
    placeholders: list[str]


def to_snake_case(name: str) -> str:
    """
    Convert a CamelCase name to snake_case.

    >>> to_snake_case("OrderItem")
    'order_item'
    >>> to_snake_case("HTTPRequestLog")
    'http_request_log'
    """
    name = _ACRONYM_RE.sub(r"\1_\2", name)
    return _CAMEL_RE.sub(r"\1_\2", name).lower()


def unwrap_optional(annotation: Any) -> Any:
    """
    Strip ``None`` from ``Optional[X]`` / ``X | None``.

    >>> unwrap_optional(int | None)
    <class 'int'>
    """
    if get_origin(annotation) in (Union, UnionType):
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _entity_type(entity: Any) -> type:
    return entity if isinstance(entity, type) else type(entity)


def table_name(entity: Any) -> str:
    """
    Return the table for an entity instance or type.

    An explicit ``__tablename__`` wins; otherwise the class name in snake_case.
    """
    cls = _entity_type(entity)
    explicit = getattr(cls, "__tablename__", None)
    if explicit:
        return explicit
    return to_snake_case(cls.__name__)


@cache
def type_hints(cls: type) -> dict[str, Any]:
    return get_type_hints(cls)


def _is_persisted(field: dataclasses.Field) -> bool:
    return not field.name.startswith("_") and field.metadata.get(COLUMN) != NOT_PERSISTED


def _walk(cls: type, prefix: tuple[str, ...]) -> list[ColumnInfo]:
    hints = type_hints(cls)
    found: list[ColumnInfo] = []
    for field in dataclasses.fields(cls):
        if not _is_persisted(field):
            continue
        path = (*prefix, field.name)
        annotation = hints.get(field.name, Any)
        if field.metadata.get(EMBEDDED):
            found.extend(_walk(annotation, path))
            continue
        found.append(
            ColumnInfo(
                name=field.metadata.get(COLUMN) or to_snake_case(field.name),
                path=path,
                annotation=annotation,
                primary_key=bool(field.metadata.get(PRIMARY_KEY)),
            )
        )
    return found


@cache
def columns(entity_type: type) -> tuple[ColumnInfo, ...]:
    """
    All persisted columns of an entity type in declaration order.

    Embedded fields are expanded where they are declared.
    """
    if not dataclasses.is_dataclass(entity_type):
        raise TypeError(f"{entity_type.__name__} is not a dataclass entity")

    found = _walk(entity_type, ())
    if any(c.primary_key for c in found):
        return tuple(found)

    # Conventional identifier: the first field literally named "id".
    for i, c in enumerate(found):
        if c.path[-1].lower() == "id":
            found[i] = c._replace(primary_key=True)
            break
    return tuple(found)


@cache
def column_map(entity_type: type) -> dict[str, ColumnInfo]:
    """Column name -> ColumnInfo, used to materialise result rows."""
    return {c.name: c for c in columns(entity_type)}


def identifier(entity: Any) -> ColumnInfo | None:
    """The identifier column of an entity, or None when it has none."""
    for c in columns(_entity_type(entity)):
        if c.primary_key:
            return c
    return None


def get_value(entity: Any, path: tuple[str, ...]) -> Any:
    value = entity
    for name in path:
        value = getattr(value, name)
    return value


def set_value(entity: Any, path: tuple[str, ...], value: Any) -> None:
    target = get_value(entity, path[:-1])
    setattr(target, path[-1], value)


def field_data(
    entity: Any,
    exclude_id: bool = False,
    dialect: Dialect = Dialect.SQLITE,
    start: int = 0,
) -> FieldData:
    """
    Collect columns, values and placeholders for an INSERT or UPDATE.

    Args:
        entity: The entity instance.
        exclude_id: Omit the identifier column (insert path).
        dialect: Decides the placeholder style.
        start: Parameters already consumed by the statement; numbered
            placeholders continue after it.
    """
    data = FieldData([], [], [])
    for c in columns(type(entity)):
        if exclude_id and c.primary_key:
            continue
        data.columns.append(c.name)
        data.values.append(get_value(entity, c.path))
        data.placeholders.append(placeholder(dialect, start + len(data.values)))
    return data


def get_id(entity: Any) -> Any:
    """Current identifier value, or None when the entity has no identifier."""
    info = identifier(entity)
    if info is None:
        return None
    return get_value(entity, info.path)


def set_id(entity: Any, value: Any) -> bool:
    """
    Write a database-assigned identifier into the entity.

    Returns False when the entity has no identifier field.
    """
    info = identifier(entity)
    if info is None:
        return False
    if unwrap_optional(info.annotation) is int and value is not None:
        value = int(value)
    set_value(entity, info.path, value)
    return True


def _timestamp_path(entity: Any, field_name: str) -> tuple[str, ...] | None:
    for c in columns(type(entity)):
        if c.path[-1] == field_name:
            return c.path
    return None


def stamp_timestamps(
    entity: Any,
    *,
    created: bool,
    now: datetime | None = None,
) -> datetime:
    """
    Set ``updated_at`` (and ``created_at`` when ``created``) on the entity.

    The update stamp never moves backwards or repeats for a given entity, even
    when two saves land on the same clock tick.
    """
    now = now or datetime.now(timezone.utc)

    updated_path = _timestamp_path(entity, UPDATED_AT)
    if updated_path is not None:
        previous = get_value(entity, updated_path)
        if (
            not created
            and isinstance(previous, datetime)
            and (previous.tzinfo is None) == (now.tzinfo is None)
            and previous >= now
        ):
            now = previous + timedelta(microseconds=1)
        set_value(entity, updated_path, now)

    if created:
        created_path = _timestamp_path(entity, CREATED_AT)
        if created_path is not None:
            set_value(entity, created_path, now)

    return now
