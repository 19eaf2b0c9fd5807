"""Input schemas validated before a lifecycle operation touches the store."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from state_machine.models import OrderStatus, QuoteStatus, to_money

ACCESS_KEY_LENGTH = 44


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _as_datetime(value: Any) -> Any:
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time())
    return value


def _check_email(value: str) -> str:
    if "@" not in value:
        raise ValueError("must be a valid email address")
    return value.lower()


class CreateClientRequest(BaseModel):
    """Input schema for registering a client."""

    name: str = Field(..., min_length=3, description="Client display name")
    email: str = Field(..., min_length=3, description="Client email")
    phone: Optional[str] = None
    company: Optional[str] = None

    @field_validator("name", "email", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("phone", "company", mode="before")
    @classmethod
    def blank_as_missing(cls, value: Any) -> Any:
        return _strip(value) or None

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _check_email(value)


class CreateQuoteRequest(BaseModel):
    """Input schema for creating a quote."""

    client_name: str = Field(..., min_length=1, description="Client display name")
    client_email: str = Field(..., min_length=3, description="Client email")
    price: Decimal = Field(..., gt=0, description="Quoted price")
    delivery_date: Optional[date] = Field(None, description="Expected delivery")
    product: dict[str, Any] = Field(default_factory=dict, description="Product configuration")
    client_id: Optional[str] = Field(None, description="Existing client id")
    client_phone: Optional[str] = None

    @field_validator("client_name", "client_email", "client_id", "client_phone", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("client_email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("price")
    @classmethod
    def quantize_price(cls, value: Decimal) -> Decimal:
        value = to_money(value)
        if value <= 0:
            raise ValueError("must be at least 0.01")
        return value


class QuoteStatusRequest(BaseModel):
    """Input schema for a quote decision."""

    status: QuoteStatus

    @field_validator("status")
    @classmethod
    def check_decision(cls, value: QuoteStatus) -> QuoteStatus:
        if value == QuoteStatus.PENDING:
            raise ValueError("a quote can only be set to approved or rejected")
        return value


class OrderStatusRequest(BaseModel):
    """Input schema for an operational order status change."""

    status: OrderStatus

    @field_validator("status")
    @classmethod
    def check_operational(cls, value: OrderStatus) -> OrderStatus:
        if value == OrderStatus.INVOICED:
            raise ValueError(
                "orders become invoiced only through invoicing or mark-as-billed"
            )
        return value


class GenerateInvoiceRequest(BaseModel):
    """Input schema for registering an invoice against an order."""

    order_id: str = Field(..., min_length=1, description="Order being invoiced")
    invoice_number: str = Field(..., min_length=1, description="Fiscal invoice number")
    access_key: Optional[str] = Field(
        None, description=f"Fiscal access key ({ACCESS_KEY_LENGTH} characters)"
    )
    issue_date: datetime = Field(..., description="Issue date")
    amount: Decimal = Field(..., gt=0, description="Amount invoiced")

    @field_validator("order_id", "invoice_number", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("access_key", mode="before")
    @classmethod
    def normalize_access_key(cls, value: Any) -> Any:
        value = _strip(value)
        return value or None

    @field_validator("access_key")
    @classmethod
    def check_access_key(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value) != ACCESS_KEY_LENGTH:
            raise ValueError(f"access key must be {ACCESS_KEY_LENGTH} characters")
        return value

    @field_validator("issue_date", mode="before")
    @classmethod
    def coerce_issue_date(cls, value: Any) -> Any:
        return _as_datetime(value)

    @field_validator("amount")
    @classmethod
    def quantize_amount(cls, value: Decimal) -> Decimal:
        value = to_money(value)
        if value <= 0:
            raise ValueError("must be at least 0.01")
        return value
