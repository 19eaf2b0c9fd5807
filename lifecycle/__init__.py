"""Quote → order → invoice lifecycle engine."""

from lifecycle.audit import AuditAction, AuditEntry, AuditLog
from lifecycle.engine import CommerceLifecycleEngine, LifecyclePolicy
from lifecycle.errors import (
    DuplicateAccessKeyError,
    DuplicateClientEmailError,
    DuplicateInvoiceNumberError,
    DuplicateOrderForQuoteError,
    InputValidationError,
    LifecycleError,
    RecordNotFoundError,
    StoreWriteFailure,
)
from lifecycle.requests import (
    ACCESS_KEY_LENGTH,
    CreateClientRequest,
    CreateQuoteRequest,
    GenerateInvoiceRequest,
    OrderStatusRequest,
    QuoteStatusRequest,
)

__all__ = [
    "CommerceLifecycleEngine",
    "LifecyclePolicy",
    "AuditAction",
    "AuditEntry",
    "AuditLog",
    "LifecycleError",
    "RecordNotFoundError",
    "DuplicateInvoiceNumberError",
    "DuplicateAccessKeyError",
    "DuplicateOrderForQuoteError",
    "DuplicateClientEmailError",
    "StoreWriteFailure",
    "InputValidationError",
    "ACCESS_KEY_LENGTH",
    "CreateClientRequest",
    "CreateQuoteRequest",
    "QuoteStatusRequest",
    "OrderStatusRequest",
    "GenerateInvoiceRequest",
]
