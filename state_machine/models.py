"""Core domain models for the commerce lifecycle."""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

CENTS = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Coerce a number to a two-place Decimal currency amount."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class QuoteStatus(str, Enum):
    """Possible quote statuses."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class OrderStatus(str, Enum):
    """Possible order statuses."""

    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    EXCEPTION = "exception"
    INVOICED = "invoiced"


class InvoiceStatus(str, Enum):
    """Possible invoice statuses."""

    PAID = "paid"
    PENDING = "pending"
    CANCELLED = "cancelled"


class Client(BaseModel):
    """Client entity."""

    id: str
    name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    created_at: datetime


class CustomerSnapshot(BaseModel):
    """Customer data copied onto an order at creation time."""

    name: str
    email: str

    class Config:
        frozen = True


class Quote(BaseModel):
    """A priced proposal awaiting the client's decision."""

    id: str
    client_id: Optional[str] = None
    client_name: str
    client_email: str
    product: dict[str, Any] = Field(default_factory=dict)
    price: Decimal = Field(..., gt=0)
    delivery_date: Optional[date] = None
    status: QuoteStatus = QuoteStatus.PENDING
    created_at: datetime

    @field_validator("price")
    @classmethod
    def quantize_price(cls, value: Decimal) -> Decimal:
        return to_money(value)

    @property
    def client(self) -> CustomerSnapshot:
        return CustomerSnapshot(name=self.client_name, email=self.client_email)


class Order(BaseModel):
    """A confirmed commitment derived from a quote."""

    id: str
    quote_id: Optional[str] = None
    customer_name: str
    customer_email: str
    date: datetime
    amount: Decimal = Field(..., ge=0)
    status: OrderStatus = OrderStatus.PROCESSING
    outstanding: Decimal = Field(..., ge=0)
    created_at: datetime

    @field_validator("amount", "outstanding")
    @classmethod
    def quantize_amounts(cls, value: Decimal) -> Decimal:
        return to_money(value)

    @property
    def customer(self) -> CustomerSnapshot:
        return CustomerSnapshot(name=self.customer_name, email=self.customer_email)


class Invoice(BaseModel):
    """A fiscal billing record referencing exactly one order."""

    id: str
    invoice_number: str
    access_key: Optional[str] = None
    order_id: str
    customer_name: str
    date: datetime
    status: InvoiceStatus = InvoiceStatus.PAID
    total: Decimal = Field(..., gt=0)
    created_at: datetime

    @field_validator("total")
    @classmethod
    def quantize_total(cls, value: Decimal) -> Decimal:
        return to_money(value)


class ClientOverview(BaseModel):
    """A client with the quotes and orders recorded against it."""

    client: Client
    quotes: list[Quote] = Field(default_factory=list)
    orders: list[Order] = Field(default_factory=list)
    total_ordered: Decimal = Decimal("0.00")
    total_outstanding: Decimal = Decimal("0.00")
