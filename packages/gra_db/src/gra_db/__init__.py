from .context import EntityContext
from .db import close_db, get_context, get_engine, init_db
from .dialects import Dialect, detect_dialect, rewrite_placeholders
from .entity import BaseEntity, SoftDeleteEntity, column, embedded, transient
from .exceptions import (
    DoesNotExistError,
    GraDBError,
    MissingIdentifierError,
    MultipleObjectsReturnedError,
    QueryError,
    SaveChangesError,
)
from .queryset import QuerySet
from .tracking import ChangeTracker, EntityState
from .transaction import atomic

__all__ = [
    "BaseEntity",
    "ChangeTracker",
    "Dialect",
    "DoesNotExistError",
    "EntityContext",
    "EntityState",
    "GraDBError",
    "MissingIdentifierError",
    "MultipleObjectsReturnedError",
    "QueryError",
    "QuerySet",
    "SaveChangesError",
    "SoftDeleteEntity",
    "atomic",
    "close_db",
    "column",
    "detect_dialect",
    "embedded",
    "get_context",
    "get_engine",
    "init_db",
    "rewrite_placeholders",
    "transient",
]
