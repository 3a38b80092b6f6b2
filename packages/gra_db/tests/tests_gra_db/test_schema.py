from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from gra_db import schema
from gra_db.dialects import Dialect

from .models import AuditEntry, Invoice, Product, User


class TestTableNames:
    def test_derived_from_class_name_in_snake_case(self):
        """Should snake_case the class name without pluralising it."""
        assert schema.table_name(User) == "user"
        assert schema.table_name(AuditEntry()) == "audit_entry"

    def test_explicit_tablename_wins(self):
        """Should prefer an explicit __tablename__ over the derived name."""
        assert schema.table_name(Product) == "products"
        assert schema.table_name(Product(name="x")) == "products"

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("OrderItem", "order_item"),
            ("HTTPRequestLog", "http_request_log"),
            ("user", "user"),
            ("created_at", "created_at"),
        ],
    )
    def test_to_snake_case(self, name, expected):
        assert schema.to_snake_case(name) == expected


class TestColumns:
    def test_inherited_base_fields_come_first_in_declaration_order(self):
        """Should list BaseEntity fields first, then the subclass fields."""
        names = [c.name for c in schema.columns(User)]
        assert names == [
            "id",
            "created_at",
            "updated_at",
            "name",
            "email",
            "age",
            "is_active",
            "nickname",
        ]

    def test_transient_and_private_fields_are_skipped(self):
        """Should never map transient or underscore-prefixed fields."""
        names = {c.name for c in schema.columns(User)}
        assert "roles" not in names
        assert "_cache" not in names

    def test_column_tag_overrides_field_name(self):
        """Should use the explicit column name from column()."""
        info = schema.column_map(Product)["stock_code"]
        assert info.path == ("sku",)

    def test_embedded_fields_are_flattened_in_place(self):
        """Should splice embedded BaseEntity columns where the field is declared."""
        cols = schema.columns(Invoice)
        assert [c.name for c in cols] == [
            "id",
            "created_at",
            "updated_at",
            "number",
            "total",
        ]
        assert cols[0].path == ("base", "id")

    def test_non_dataclass_is_rejected(self):
        class Plain:
            pass

        with pytest.raises(TypeError, match="not a dataclass"):
            schema.columns(Plain)


class TestIdentifier:
    def test_primary_key_from_base_entity(self):
        info = schema.identifier(User)
        assert info is not None
        assert info.name == "id"

    def test_identifier_found_through_embedded_field(self):
        info = schema.identifier(Invoice())
        assert info is not None
        assert info.path == ("base", "id")

    def test_excluded_identifier_is_never_mapped(self):
        """An identifier marked not persisted must not appear anywhere."""
        assert schema.identifier(AuditEntry) is None
        data = schema.field_data(AuditEntry(id=7, message="hi"))
        assert data.columns == ["message"]
        assert 7 not in data.values

    def test_conventional_id_field_without_metadata(self):
        @dataclass
        class Tag:
            id: int = 0
            label: str = ""

        info = schema.identifier(Tag)
        assert info is not None
        assert info.name == "id"

    def test_set_id_writes_through_embedded_field(self):
        invoice = Invoice(number="INV-1")
        assert schema.set_id(invoice, "12") is True
        assert invoice.base.id == 12
        assert schema.get_id(invoice) == 12

    def test_set_id_without_identifier_is_a_no_op(self):
        entry = AuditEntry(message="x")
        assert schema.set_id(entry, 5) is False
        assert entry.id == 0


class TestFieldData:
    def test_insert_data_excludes_identifier(self):
        user = User(id=3, name="Ada", email="ada@example.com", age=36)
        data = schema.field_data(user, exclude_id=True)

        assert "id" not in data.columns
        assert data.columns[:2] == ["created_at", "updated_at"]
        assert data.values[data.columns.index("name")] == "Ada"
        assert len(data.columns) == len(data.values) == len(data.placeholders)

    def test_qmark_placeholders_for_sqlite(self):
        data = schema.field_data(Product(name="p"), exclude_id=True)
        assert set(data.placeholders) == {"?"}

    def test_numbered_placeholders_for_postgresql(self):
        data = schema.field_data(
            Product(name="p"), exclude_id=True, dialect=Dialect.POSTGRESQL
        )
        assert data.placeholders == [f"${i}" for i in range(1, 7)]

    def test_numbered_placeholders_continue_after_start(self):
        data = schema.field_data(
            Invoice(), exclude_id=True, dialect=Dialect.POSTGRESQL, start=2
        )
        assert data.placeholders == ["$3", "$4", "$5", "$6"]

    def test_format_placeholders_for_mysql(self):
        data = schema.field_data(Invoice(), dialect=Dialect.MYSQL)
        assert set(data.placeholders) == {"%s"}


class TestTimestamps:
    def test_created_stamps_both_fields_with_same_value(self):
        user = User(name="Ada")
        now = schema.stamp_timestamps(user, created=True)
        assert user.created_at == user.updated_at == now
        assert now.tzinfo is timezone.utc

    def test_stamps_reach_embedded_fields(self):
        invoice = Invoice()
        schema.stamp_timestamps(invoice, created=True)
        assert invoice.base.created_at is not None
        assert invoice.base.updated_at == invoice.base.created_at

    def test_update_leaves_created_at_alone(self):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        user = User(created_at=created, updated_at=created)
        schema.stamp_timestamps(user, created=False)
        assert user.created_at == created
        assert user.updated_at > created

    def test_update_stamp_strictly_increases_on_clock_tie(self):
        """Should bump by a microsecond when the clock has not moved."""
        tick = datetime(2030, 1, 1, tzinfo=timezone.utc)
        user = User(created_at=tick, updated_at=tick)
        schema.stamp_timestamps(user, created=False, now=tick)
        assert user.updated_at == tick + timedelta(microseconds=1)

    def test_entities_without_timestamps_are_untouched(self):
        entry = AuditEntry(message="x")
        schema.stamp_timestamps(entry, created=True)
        assert not hasattr(entry, "created_at")
