from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest
from gra_db.materialize import SKIP, coerce_value, materialize, parse_timestamp

from .models import AuditEntry, Invoice, Product, User


class TestCoercion:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(1, True), (0, False), ("true", True), ("0", False), (Decimal(1), True)],
    )
    def test_bool(self, value, expected):
        assert coerce_value(bool, value) is expected

    def test_int_from_text_and_whole_float(self):
        assert coerce_value(int, "42") == 42
        assert coerce_value(int, 3.0) == 3

    def test_lossy_int_is_skipped(self):
        assert coerce_value(int, 3.5) is SKIP
        assert coerce_value(int, "abc") is SKIP

    def test_float_from_decimal(self):
        assert coerce_value(float, Decimal("9.99")) == pytest.approx(9.99)

    def test_str_from_bytes(self):
        assert coerce_value(str, b"hello") == "hello"

    def test_optional_none(self):
        assert coerce_value(Optional[int], None) is None

    def test_datetime_from_iso_text(self):
        value = coerce_value(Optional[datetime], "2024-01-02 03:04:05.123456+00:00")
        assert value == datetime(2024, 1, 2, 3, 4, 5, 123456, tzinfo=timezone.utc)

    def test_unparseable_datetime_is_skipped(self):
        assert coerce_value(datetime, "yesterday") is SKIP

    def test_fixed_layout_with_trailing_text(self):
        assert parse_timestamp("2024-01-02 03:04:05 UTC") == datetime(
            2024, 1, 2, 3, 4, 5
        )


class TestMaterialize:
    def test_builds_entity_from_row(self):
        user = materialize(
            User,
            {
                "id": 7,
                "name": "Ada",
                "email": "ada@example.com",
                "age": "36",
                "is_active": 0,
                "nickname": None,
                "created_at": "2024-01-02 03:04:05",
            },
        )

        assert user.id == 7
        assert user.age == 36
        assert user.is_active is False
        assert user.created_at == datetime(2024, 1, 2, 3, 4, 5)
        assert user.roles == []

    def test_unknown_columns_are_ignored(self):
        product = materialize(Product, {"id": 1, "name": "Pen", "legacy_col": "x"})
        assert product.name == "Pen"
        assert not hasattr(product, "legacy_col")

    def test_uncoercible_value_keeps_default(self):
        product = materialize(Product, {"name": "Pen", "price": "n/a"})
        assert product.price == 0.0

    def test_tagged_column_reaches_its_field(self):
        product = materialize(Product, {"stock_code": "PEN-1"})
        assert product.sku == "PEN-1"

    def test_embedded_fields_are_rebuilt(self):
        invoice = materialize(Invoice, {"id": 3, "number": "INV-3", "total": 12})
        assert invoice.base.id == 3
        assert invoice.number == "INV-3"
        assert invoice.total == 12.0

    def test_required_field_without_value_becomes_none(self):
        """Should not fail when a required field cannot be filled from the row."""

        @dataclass
        class Reading:
            sensor: str
            value: int
            id: int = 0

        reading = materialize(Reading, {"id": 1, "value": "not-a-number"})
        assert reading.id == 1
        assert reading.sensor is None
        assert reading.value is None

    def test_excluded_identifier_is_not_set(self):
        entry = materialize(AuditEntry, {"id": 9, "message": "hi"})
        assert entry.id == 0
        assert entry.message == "hi"
