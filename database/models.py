"""
SQLAlchemy models for the commerce lifecycle.

Tables:
- clients: Client records (email is unique)
- quotes: Priced proposals with status
- orders: Orders spawned from quotes, one per quote
- invoices: Invoices registered against orders
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    JSON,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase


def _new_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class ClientModel(Base):
    """Client table."""

    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(40), nullable=True)
    company = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("email", name="uq_clients_email"),
    )

    def __repr__(self) -> str:
        return f"<Client {self.email}>"


class QuoteModel(Base):
    """Quote table."""

    __tablename__ = "quotes"

    id = Column(String(36), primary_key=True, default=_new_id)
    client_id = Column(String(36), nullable=True, index=True)

    # Denormalized client snapshot
    client_name = Column(String(255), nullable=False)
    client_email = Column(String(255), nullable=False)

    # Product configuration is opaque to the lifecycle
    product = Column(JSON, nullable=True)

    price = Column(Numeric(12, 2), nullable=False)
    delivery_date = Column(Date, nullable=True)
    status = Column(String(20), default="pending", nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_quotes_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Quote {self.id} status={self.status}>"


class OrderModel(Base):
    """Order table."""

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_new_id)
    quote_id = Column(String(36), ForeignKey("quotes.id"), nullable=True)

    # Denormalized customer snapshot
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)

    date = Column(DateTime, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), default="processing", nullable=False, index=True)
    outstanding = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # One order per originating quote
    __table_args__ = (
        UniqueConstraint("quote_id", name="uq_orders_quote_id"),
        Index("ix_orders_status_date", "status", "date"),
    )

    def __repr__(self) -> str:
        return f"<Order {self.id} status={self.status} outstanding={self.outstanding}>"


class InvoiceModel(Base):
    """Invoice table."""

    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=_new_id)
    invoice_number = Column(String(60), nullable=False)
    access_key = Column(String(44), nullable=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    date = Column(DateTime, nullable=False)
    status = Column(String(20), default="paid", nullable=False, index=True)
    total = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        UniqueConstraint("access_key", name="uq_invoices_access_key"),
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} status={self.status}>"


COLLECTIONS: dict[str, type[Base]] = {
    "clients": ClientModel,
    "quotes": QuoteModel,
    "orders": OrderModel,
    "invoices": InvoiceModel,
}


def unique_fields(model: type[Base]) -> list[str]:
    """Return the single-column unique fields declared on a model."""
    fields = []
    for constraint in model.__table__.constraints:
        if isinstance(constraint, UniqueConstraint) and len(constraint.columns) == 1:
            fields.extend(column.name for column in constraint.columns)
    return fields
