"""
FastAPI application exposing the commerce lifecycle.

Endpoints:
- GET  /health                  - Health check
- POST /clients                 - Register a client
- GET  /clients                 - List clients (by name)
- GET  /clients/{id}/overview   - Client with its quotes and orders
- POST /quotes                  - Create a quote
- GET  /quotes                  - List quotes (newest first)
- GET  /quotes/{id}             - Get a quote
- POST /quotes/{id}/status      - Approve or reject a quote
- POST /quotes/{id}/order       - Generate the order for a quote
- GET  /orders                  - List orders
- GET  /orders/billable         - Orders that can still be invoiced
- GET  /orders/{id}             - Get an order
- POST /orders/{id}/bill        - Mark an order as billed
- POST /orders/{id}/status      - Set an operational order status
- GET  /invoices                - List invoices
- POST /invoices                - Register an invoice against an order
- GET  /invoices/{id}           - Get an invoice
- POST /invoices/{id}/cancel    - Cancel an invoice
"""

import logging
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from actions import (
    BaseLifecycleAction,
    CancelInvoiceAction,
    CreateClientAction,
    CreateQuoteAction,
    GenerateInvoiceAction,
    GenerateOrderAction,
    MarkOrderBilledAction,
    SetOrderStatusAction,
    SetQuoteStatusAction,
)
from database import DatabaseDocumentStore, DocumentStore, StoreError, init_db
from lifecycle import AuditLog, CommerceLifecycleEngine, LifecycleError, LifecyclePolicy
from server.config import Settings, get_settings
from state_machine import (
    Client,
    ClientOverview,
    Invoice,
    Order,
    Quote,
    TransitionError,
)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# HTTP status per error code; any *_NOT_FOUND code maps to 404
ERROR_STATUS = {
    "DUPLICATE_CLIENT_EMAIL": 409,
    "DUPLICATE_INVOICE_NUMBER": 409,
    "DUPLICATE_ACCESS_KEY": 409,
    "DUPLICATE_ORDER_FOR_QUOTE": 409,
    "INVALID_TRANSITION": 409,
    "VALIDATION_ERROR": 422,
    "STORE_WRITE_FAILURE": 503,
    "STORE_ERROR": 503,
    "INTERNAL_ERROR": 500,
}


def status_for_code(code: str) -> int:
    """HTTP status for an error code."""
    if code.endswith("_NOT_FOUND"):
        return 404
    return ERROR_STATUS.get(code, 400)


# ============================================================================
# Request / Response Models
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    strict_transitions: bool
    clients_count: int
    quotes_count: int
    orders_count: int
    invoices_count: int


class CreateClientBody(BaseModel):
    """Request to register a client."""

    name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None


class CreateQuoteBody(BaseModel):
    """Request to create a quote."""

    client_name: str
    client_email: str
    price: Decimal
    delivery_date: Optional[date] = None
    product: dict[str, Any] = Field(default_factory=dict)
    client_id: Optional[str] = None
    client_phone: Optional[str] = None


class StatusBody(BaseModel):
    """Request to change a quote or order status."""

    status: str


class GenerateInvoiceBody(BaseModel):
    """Request to register an invoice."""

    order_id: str
    invoice_number: str
    issue_date: date
    amount: Decimal
    access_key: Optional[str] = None


# ============================================================================
# Application State
# ============================================================================


class AppState:
    """Application state container."""

    def __init__(self, settings: Settings, store: Optional[DocumentStore] = None):
        self.settings = settings

        # Create shared store
        if store is None:
            store = DatabaseDocumentStore(init_db(settings.database_url))
        self.store = store

        # Create audit log
        audit_path = Path(settings.audit_log_path) if settings.audit_log_path else None
        self.audit_log = AuditLog(audit_path)

        # Create lifecycle engine
        self.lifecycle = CommerceLifecycleEngine(
            store=self.store,
            policy=LifecyclePolicy(strict_transitions=settings.strict_transitions),
            audit_log=self.audit_log,
        )


# Global state (will be initialized on startup)
app_state: Optional[AppState] = None


def _require_state() -> AppState:
    if not app_state:
        raise HTTPException(status_code=503, detail="Service not ready")
    return app_state


# ============================================================================
# Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global app_state

    settings = get_settings()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info("Starting Commerce Lifecycle Server...")

    app_state = AppState(settings)

    logger.info(f"Server ready on {settings.host}:{settings.port}")
    logger.info(f"Strict transitions: {settings.strict_transitions}")

    yield

    # Cleanup
    logger.info("Shutting down...")
    app_state.audit_log.close()


# ============================================================================
# Error Handlers
# ============================================================================


async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    return JSONResponse(status_code=status_for_code(exc.code), content=exc.to_dict())


async def transition_error_handler(request: Request, exc: TransitionError) -> JSONResponse:
    return JSONResponse(status_code=409, content=exc.to_dict())


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error(f"Store error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"error": type(exc).__name__, "code": "STORE_ERROR", "message": str(exc)},
    )


# ============================================================================
# Application Factory
# ============================================================================


def create_app() -> FastAPI:
    """Create FastAPI application."""
    app = FastAPI(
        title="Commerce Lifecycle Engine",
        description="Quote, order and invoice lifecycle for a small commerce back-office",
        version=VERSION,
        lifespan=lifespan,
    )

    app.add_exception_handler(LifecycleError, lifecycle_error_handler)
    app.add_exception_handler(TransitionError, transition_error_handler)
    app.add_exception_handler(StoreError, store_error_handler)

    # Register routes
    app.add_api_route("/health", health_check, methods=["GET"])

    app.add_api_route("/clients", create_client, methods=["POST"], status_code=201)
    app.add_api_route("/clients", list_clients, methods=["GET"])
    app.add_api_route("/clients/{client_id}/overview", client_overview, methods=["GET"])

    app.add_api_route("/quotes", create_quote, methods=["POST"], status_code=201)
    app.add_api_route("/quotes", list_quotes, methods=["GET"])
    app.add_api_route("/quotes/{quote_id}", get_quote, methods=["GET"])
    app.add_api_route("/quotes/{quote_id}/status", set_quote_status, methods=["POST"])
    app.add_api_route("/quotes/{quote_id}/order", generate_order, methods=["POST"], status_code=201)

    app.add_api_route("/orders", list_orders, methods=["GET"])
    app.add_api_route("/orders/billable", list_billable_orders, methods=["GET"])
    app.add_api_route("/orders/{order_id}", get_order, methods=["GET"])
    app.add_api_route("/orders/{order_id}/bill", mark_order_billed, methods=["POST"])
    app.add_api_route("/orders/{order_id}/status", set_order_status, methods=["POST"])

    app.add_api_route("/invoices", list_invoices, methods=["GET"])
    app.add_api_route("/invoices", generate_invoice, methods=["POST"], status_code=201)
    app.add_api_route("/invoices/{invoice_id}", get_invoice, methods=["GET"])
    app.add_api_route("/invoices/{invoice_id}/cancel", cancel_invoice, methods=["POST"])

    return app


def _run_action(action: BaseLifecycleAction, **kwargs: Any) -> Any:
    """Run an action, turning a failed result into an error response."""
    result = action.run(**kwargs)
    if result["success"]:
        return result

    code = result.get("error", {}).get("code", "INTERNAL_ERROR")
    return JSONResponse(status_code=status_for_code(code), content=result)


# ============================================================================
# Health
# ============================================================================


async def health_check() -> HealthResponse:
    """Health check endpoint."""
    state = _require_state()
    counts = state.lifecycle.counts()

    return HealthResponse(
        status="healthy",
        version=VERSION,
        strict_transitions=state.lifecycle.policy.strict_transitions,
        clients_count=counts["clients"],
        quotes_count=counts["quotes"],
        orders_count=counts["orders"],
        invoices_count=counts["invoices"],
    )


# ============================================================================
# Client Endpoints
# ============================================================================


async def create_client(body: CreateClientBody) -> Any:
    """Register a client."""
    state = _require_state()
    return _run_action(CreateClientAction(state.lifecycle), **body.model_dump())


async def list_clients() -> list[Client]:
    """List clients by name."""
    return _require_state().lifecycle.list_clients()


async def client_overview(client_id: str) -> ClientOverview:
    """Get a client with its quotes and orders."""
    return _require_state().lifecycle.client_overview(client_id)


# ============================================================================
# Quote Endpoints
# ============================================================================


async def create_quote(body: CreateQuoteBody) -> Any:
    """Create a pending quote."""
    state = _require_state()
    return _run_action(CreateQuoteAction(state.lifecycle), **body.model_dump())


async def list_quotes() -> list[Quote]:
    """List quotes, newest first."""
    return _require_state().lifecycle.list_quotes()


async def get_quote(quote_id: str) -> Quote:
    """Get a specific quote."""
    return _require_state().lifecycle.get_quote(quote_id)


async def set_quote_status(quote_id: str, body: StatusBody) -> Any:
    """Approve or reject a quote."""
    state = _require_state()
    return _run_action(
        SetQuoteStatusAction(state.lifecycle), quote_id=quote_id, status=body.status
    )


async def generate_order(quote_id: str) -> Any:
    """Generate the order for a quote."""
    state = _require_state()
    return _run_action(GenerateOrderAction(state.lifecycle), quote_id=quote_id)


# ============================================================================
# Order Endpoints
# ============================================================================


async def list_orders() -> list[Order]:
    """List orders, most recent first."""
    return _require_state().lifecycle.list_orders()


async def list_billable_orders() -> list[Order]:
    """List orders that can still be invoiced."""
    return _require_state().lifecycle.list_billable_orders()


async def get_order(order_id: str) -> Order:
    """Get a specific order."""
    return _require_state().lifecycle.get_order(order_id)


async def mark_order_billed(order_id: str) -> Any:
    """Zero an order's outstanding balance."""
    state = _require_state()
    return _run_action(MarkOrderBilledAction(state.lifecycle), order_id=order_id)


async def set_order_status(order_id: str, body: StatusBody) -> Any:
    """Set an operational order status."""
    state = _require_state()
    return _run_action(
        SetOrderStatusAction(state.lifecycle), order_id=order_id, status=body.status
    )


# ============================================================================
# Invoice Endpoints
# ============================================================================


async def list_invoices() -> list[Invoice]:
    """List invoices, newest first."""
    return _require_state().lifecycle.list_invoices()


async def generate_invoice(body: GenerateInvoiceBody) -> Any:
    """Register an invoice against an order."""
    state = _require_state()
    return _run_action(GenerateInvoiceAction(state.lifecycle), **body.model_dump())


async def get_invoice(invoice_id: str) -> Invoice:
    """Get a specific invoice."""
    return _require_state().lifecycle.get_invoice(invoice_id)


async def cancel_invoice(invoice_id: str) -> Any:
    """Cancel an invoice."""
    state = _require_state()
    return _run_action(CancelInvoiceAction(state.lifecycle), invoice_id=invoice_id)


# ============================================================================
# App Instance
# ============================================================================


app = create_app()
