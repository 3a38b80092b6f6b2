from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

# Keys understood by the schema reflector in ``dataclasses.field(metadata=...)``
COLUMN = "db"
EMBEDDED = "embedded"
PRIMARY_KEY = "primary_key"

# Value of the ``db`` metadata key that keeps a field out of SQL entirely
NOT_PERSISTED = "-"


def column(
    name: str | None = None,
    *,
    primary_key: bool = False,
    **kwargs: Any,
) -> Any:
    """
    Declare a persisted field with an explicit column name or primary key flag.

    Remaining keyword arguments go to ``dataclasses.field``.

    Example:
        >>> @dataclass
        ... class Customer(BaseEntity):
        ...     email: str = column("email_address", default="")
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    if name:
        metadata[COLUMN] = name
    if primary_key:
        metadata[PRIMARY_KEY] = True
    return field(metadata=metadata, **kwargs)


def transient(**kwargs: Any) -> Any:
    """
    Declare a field that is never persisted (navigation data, caches, ...).

    Example:
        >>> @dataclass
        ... class User(BaseEntity):
        ...     roles: list[str] = transient(default_factory=list)
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[COLUMN] = NOT_PERSISTED
    return field(metadata=metadata, **kwargs)


def embedded(entity_type: type, **kwargs: Any) -> Any:
    """
    Declare a field whose own columns are spliced into the owner's table.

    Example:
        >>> @dataclass
        ... class Invoice:
        ...     base: BaseEntity = embedded(BaseEntity)
        ...     total: float = 0.0
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[EMBEDDED] = True
    kwargs.setdefault("default_factory", entity_type)
    return field(metadata=metadata, **kwargs)


@dataclass
class BaseEntity:
    """
    Shared identifier and timestamp fields.

    ``created_at`` and ``updated_at`` are stamped by ``EntityContext.save_changes``.

    Example:
        >>> @dataclass
        ... class Product(BaseEntity):
        ...     name: str = ""
    """

    id: int = column(primary_key=True, default=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class SoftDeleteEntity(BaseEntity):
    """
    BaseEntity with a ``deleted_at`` marker for logical deletion.

    Soft deletion is an ordinary update: mark the entity, then
    ``context.update(entity)`` and save.
    """

    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        self.deleted_at = datetime.now(timezone.utc)

    def restore(self) -> None:
        self.deleted_at = None
