"""Structured errors raised by the lifecycle engine."""

from typing import Any, Optional


class LifecycleError(Exception):
    """Base class for every error the engine reports to its callers."""

    code = "LIFECYCLE_ERROR"

    def __init__(self, message: str, **details: Any):
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": str(self),
            **self.details,
        }


class RecordNotFoundError(LifecycleError):
    """A referenced quote, order or invoice does not exist."""

    def __init__(self, entity: str, record_id: str):
        self.entity = entity
        self.record_id = record_id
        self.code = f"{entity.upper()}_NOT_FOUND"
        super().__init__(
            f"{entity.capitalize()} '{record_id}' not found",
            record_id=record_id,
        )


class DuplicateInvoiceNumberError(LifecycleError):
    code = "DUPLICATE_INVOICE_NUMBER"

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(
            f"Invoice number '{invoice_number}' is already registered",
            invoice_number=invoice_number,
        )


class DuplicateAccessKeyError(LifecycleError):
    code = "DUPLICATE_ACCESS_KEY"

    def __init__(self, access_key: str):
        self.access_key = access_key
        super().__init__(
            f"Access key '{access_key}' is already registered",
            access_key=access_key,
        )


class DuplicateOrderForQuoteError(LifecycleError):
    code = "DUPLICATE_ORDER_FOR_QUOTE"

    def __init__(self, quote_id: str, order_id: Optional[str] = None):
        self.quote_id = quote_id
        self.order_id = order_id
        super().__init__(
            f"Quote '{quote_id}' has already been used to generate an order",
            quote_id=quote_id,
            order_id=order_id,
        )


class DuplicateClientEmailError(LifecycleError):
    code = "DUPLICATE_CLIENT_EMAIL"

    def __init__(self, email: str):
        self.email = email
        super().__init__(
            f"A client with email '{email}' is already registered",
            email=email,
        )


class StoreWriteFailure(LifecycleError):
    """The store rejected a write; nothing is retried."""

    code = "STORE_WRITE_FAILURE"

    def __init__(self, action: str, cause: Exception):
        self.action = action
        self.cause = cause
        super().__init__(f"Store failure during {action}: {cause}", action=action)


class InputValidationError(LifecycleError):
    """Malformed input caught before any store call."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Optional[list[dict[str, Any]]] = None):
        self.errors = errors or []
        super().__init__(message, errors=self.errors)

    @classmethod
    def from_pydantic(cls, exc: Any) -> "InputValidationError":
        """Build from a pydantic ValidationError."""
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        summary = "; ".join(
            f"{e['field']}: {e['message']}" if e["field"] else e["message"]
            for e in errors
        )
        return cls(f"Invalid input: {summary}", errors=errors)
