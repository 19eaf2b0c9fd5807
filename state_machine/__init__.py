"""State machine module for quote, order and invoice lifecycles."""

from state_machine.lifecycle_state import (
    InvoiceFSM,
    OrderFSM,
    QuoteFSM,
    RecordFSM,
    TransitionError,
)
from state_machine.models import (
    Client,
    ClientOverview,
    CustomerSnapshot,
    Invoice,
    InvoiceStatus,
    Order,
    OrderStatus,
    Quote,
    QuoteStatus,
)

__all__ = [
    "RecordFSM",
    "QuoteFSM",
    "OrderFSM",
    "InvoiceFSM",
    "TransitionError",
    "Client",
    "ClientOverview",
    "CustomerSnapshot",
    "Quote",
    "QuoteStatus",
    "Order",
    "OrderStatus",
    "Invoice",
    "InvoiceStatus",
]
