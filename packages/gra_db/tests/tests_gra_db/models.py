from dataclasses import dataclass, field
from typing import Optional

from gra_db import BaseEntity, SoftDeleteEntity, column, embedded, transient


@dataclass
class User(BaseEntity):
    name: str = ""
    email: str = ""
    age: int = 0
    is_active: bool = True
    nickname: Optional[str] = None

    # Navigation data, never persisted
    roles: list[str] = transient(default_factory=list)
    _cache: dict = field(default_factory=dict, repr=False, compare=False)


@dataclass
class Product(BaseEntity):
    __tablename__ = "products"

    name: str = ""
    price: float = 0.0
    sku: str = column("stock_code", default="")
    in_stock: bool = True


@dataclass
class Invoice:
    """Composes BaseEntity instead of inheriting it."""

    base: BaseEntity = embedded(BaseEntity)
    number: str = ""
    total: float = 0.0


@dataclass
class AuditEntry:
    """Identifier is excluded from persistence."""

    id: int = transient(default=0)
    message: str = ""


@dataclass
class Note(SoftDeleteEntity):
    text: str = ""


SCHEMA = (
    """
    CREATE TABLE user (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created_at TEXT,
        updated_at TEXT,
        name TEXT NOT NULL,
        email TEXT,
        age INTEGER,
        is_active INTEGER,
        nickname TEXT
    )
    """,
    """
    CREATE TABLE products (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created_at TEXT,
        updated_at TEXT,
        name TEXT NOT NULL,
        price REAL,
        stock_code TEXT UNIQUE,
        in_stock INTEGER
    )
    """,
    """
    CREATE TABLE invoice (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created_at TEXT,
        updated_at TEXT,
        number TEXT,
        total REAL
    )
    """,
    """
    CREATE TABLE audit_entry (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        message TEXT
    )
    """,
    """
    CREATE TABLE note (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created_at TEXT,
        updated_at TEXT,
        deleted_at TEXT,
        text TEXT
    )
    """,
)
