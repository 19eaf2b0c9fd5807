"""Tests for the SQLAlchemy schema and session helpers."""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import inspect

from database import ClientModel, InvoiceModel, OrderModel, QuoteModel, StoreError
from database.models import COLLECTIONS, unique_fields
from database.session import drop_db, get_engine, session_scope


class TestSchema:
    """Test table definitions."""

    def test_init_db_creates_tables(self, db_store):
        """Test every lifecycle table exists after init_db."""
        tables = set(inspect(get_engine()).get_table_names())

        assert {"clients", "quotes", "orders", "invoices"} <= tables

    def test_drop_db_removes_tables(self, db_store):
        """Test drop_db removes every lifecycle table."""
        drop_db()

        assert inspect(get_engine()).get_table_names() == []

    def test_collections_map_to_models(self):
        """Test collection names resolve to their models."""
        assert COLLECTIONS["quotes"] is QuoteModel
        assert COLLECTIONS["orders"] is OrderModel
        assert COLLECTIONS["invoices"] is InvoiceModel
        assert COLLECTIONS["clients"] is ClientModel

    def test_unique_fields(self):
        """Test unique columns declared on each table."""
        assert sorted(unique_fields(InvoiceModel)) == ["access_key", "invoice_number"]
        assert unique_fields(OrderModel) == ["quote_id"]
        assert unique_fields(ClientModel) == ["email"]
        assert unique_fields(QuoteModel) == []


class TestSessionScope:
    """Test the unit-of-work helper."""

    def test_commit_on_success(self, db_store):
        """Test rows added in a scope are committed."""
        with session_scope() as session:
            session.add(ClientModel(id="C-1", name="Ana", email="ana@example.com"))

        with session_scope() as session:
            assert session.get(ClientModel, "C-1").email == "ana@example.com"

    def test_rollback_on_error(self, db_store):
        """Test an exception discards the scope's writes."""
        with pytest.raises(RuntimeError):
            with session_scope() as session:
                session.add(ClientModel(id="C-2", name="Bo", email="bo@example.com"))
                session.flush()
                raise RuntimeError("boom")

        with session_scope() as session:
            assert session.get(ClientModel, "C-2") is None


class TestDatabaseDocumentStore:
    """Test behaviour specific to the SQL store."""

    def test_unknown_collection(self, db_store):
        """Test unknown collections raise StoreError."""
        with pytest.raises(StoreError, match="Unknown collection"):
            db_store.get("shipments", "S-1")

    def test_unknown_filter_field(self, db_store):
        """Test filtering on a missing column raises StoreError."""
        from database import where

        with pytest.raises(StoreError, match="Unknown field"):
            db_store.query("orders", where("colour", "==", "red"))
        with pytest.raises(StoreError, match="Unknown field"):
            db_store.count("orders", where("colour", "==", "red"))

    def test_foreign_key_enforced(self, db_store):
        """Test invoices must reference an existing order."""
        with pytest.raises(StoreError):
            db_store.insert(
                "invoices",
                {
                    "invoice_number": "NF-1",
                    "access_key": None,
                    "order_id": "missing",
                    "customer_name": "Ana",
                    "date": datetime(2024, 3, 2),
                    "status": "paid",
                    "total": Decimal("10.00"),
                    "created_at": datetime(2024, 3, 2),
                },
            )

    def test_money_round_trips_as_decimal(self, db_store):
        """Test numeric columns come back as two-place Decimals."""
        order_id = db_store.insert(
            "orders",
            {
                "quote_id": None,
                "customer_name": "Ana",
                "customer_email": "ana@example.com",
                "date": datetime(2024, 3, 1),
                "amount": Decimal("99.90"),
                "status": "processing",
                "outstanding": Decimal("99.90"),
                "created_at": datetime(2024, 3, 1),
            },
        )

        record = db_store.get("orders", order_id)

        assert isinstance(record["amount"], Decimal)
        assert record["amount"] == Decimal("99.90")
