"""
Commerce lifecycle engine.

Orchestrates the cross-record transitions between quotes, orders and
invoices:

    Quote (pending) --generate order--> Order (processing) + Quote (approved)
    Order --generate invoice--> Invoice (paid) + Order.outstanding decreases
    Invoice --cancel--> Invoice (cancelled) + Order.outstanding restored

Every operation re-reads the records its guards depend on, and every
multi-record write goes through a single atomic batch.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional, Type, TypeVar, Union
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from database.base import (
    DocumentStore,
    Insert,
    Operation,
    StoreError,
    UniqueConstraintError,
    Update,
    where,
)
from lifecycle.audit import AuditAction, AuditLog
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
    CreateClientRequest,
    CreateQuoteRequest,
    GenerateInvoiceRequest,
    OrderStatusRequest,
    QuoteStatusRequest,
)
from state_machine.lifecycle_state import (
    InvoiceFSM,
    OrderFSM,
    QuoteFSM,
    TransitionError,
)
from state_machine.models import (
    Client,
    ClientOverview,
    Invoice,
    InvoiceStatus,
    Order,
    OrderStatus,
    Quote,
    QuoteStatus,
)

logger = logging.getLogger(__name__)

CLIENTS = "clients"
QUOTES = "quotes"
ORDERS = "orders"
INVOICES = "invoices"

ZERO = Decimal("0.00")

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class LifecyclePolicy:
    """
    How strictly source statuses are checked before a status overwrite.

    Loose mode (the default) allows any quote to be force-set and resets
    any order to processing when one of its paid invoices is cancelled,
    logging a warning each time. Strict mode enforces the state machines.
    """

    strict_transitions: bool = False


class CommerceLifecycleEngine:
    """Quote → order → invoice lifecycle over a document store."""

    def __init__(
        self,
        store: DocumentStore,
        clock: Optional[Callable[[], datetime]] = None,
        policy: Optional[LifecyclePolicy] = None,
        audit_log: Optional[AuditLog] = None,
    ):
        """
        Initialize the engine.

        Args:
            store: Document store holding clients, quotes, orders and invoices.
            clock: Returns the current (naive UTC) time. Defaults to utcnow.
            policy: Transition strictness. Defaults to loose.
            audit_log: Audit trail. A private in-memory log if not provided.
        """
        self.store = store
        self._clock = clock or datetime.utcnow
        self.policy = policy or LifecyclePolicy()
        self.audit_log = audit_log if audit_log is not None else AuditLog()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(schema: Type[M], **data: Any) -> M:
        try:
            return schema(**data)
        except ValidationError as e:
            raise InputValidationError.from_pydantic(e) from e

    def _load(self, collection: str, entity: str, model: Type[M], record_id: str) -> M:
        record = self.store.get(collection, record_id)
        if record is None:
            raise RecordNotFoundError(entity, record_id)
        return model.model_validate(record)

    def _list(
        self,
        collection: str,
        model: Type[M],
        *filters: Any,
        order_by: str,
        descending: bool = True,
    ) -> list[M]:
        records = self.store.query(
            collection, *filters, order_by=order_by, descending=descending
        )
        return [model.model_validate(record) for record in records]

    def _duplicate_error(self, action: str, e: UniqueConstraintError) -> LifecycleError:
        if e.collection == INVOICES and e.field == "invoice_number":
            return DuplicateInvoiceNumberError(e.value)
        if e.collection == INVOICES and e.field == "access_key":
            return DuplicateAccessKeyError(e.value)
        if e.collection == ORDERS and e.field == "quote_id":
            return DuplicateOrderForQuoteError(e.value)
        if e.collection == CLIENTS and e.field == "email":
            return DuplicateClientEmailError(e.value)
        return StoreWriteFailure(action, e)

    def _commit(self, action: str, operations: list[Operation]) -> None:
        """Write operations all-or-nothing, translating store failures."""
        try:
            self.store.atomic_batch(operations)
        except UniqueConstraintError as e:
            error = self._duplicate_error(action, e)
            logger.warning(f"{action} rejected by store constraint: {e}")
            raise error from e
        except StoreError as e:
            logger.error(f"{action} failed, nothing was written: {e}")
            raise StoreWriteFailure(action, e) from e

    def _blocked(self, error: LifecycleError, record_id: Optional[str]) -> LifecycleError:
        logger.warning(f"Blocked duplicate: {error}")
        self.audit_log.log(
            AuditAction.DUPLICATE_BLOCKED,
            record_id=record_id,
            code=error.code,
            message=str(error),
        )
        return error

    def _override(
        self,
        fsm: Any,
        attempted: str,
        target: str,
        error_message: str,
    ) -> None:
        """Enforce or flag a transition the state machine does not allow."""
        if self.policy.strict_transitions:
            raise TransitionError(
                error_message,
                current_state=fsm.current_state,
                attempted_trigger=attempted,
                record_id=fsm.record_id,
            )
        logger.warning(
            f"Overriding {fsm.kind} {fsm.record_id} status "
            f"'{fsm.current_state}' -> '{target}' (loose policy)"
        )
        self.audit_log.log(
            AuditAction.POLICY_OVERRIDE,
            record_id=fsm.record_id,
            kind=fsm.kind,
            source=fsm.current_state,
            dest=target,
            trigger=attempted,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_client(self, client_id: str) -> Client:
        return self._load(CLIENTS, "client", Client, client_id)

    def get_quote(self, quote_id: str) -> Quote:
        return self._load(QUOTES, "quote", Quote, quote_id)

    def get_order(self, order_id: str) -> Order:
        return self._load(ORDERS, "order", Order, order_id)

    def get_invoice(self, invoice_id: str) -> Invoice:
        return self._load(INVOICES, "invoice", Invoice, invoice_id)

    def list_clients(self) -> list[Client]:
        """All clients, alphabetically by name."""
        return self._list(CLIENTS, Client, order_by="name", descending=False)

    def list_quotes(self) -> list[Quote]:
        """All quotes, newest first."""
        return self._list(QUOTES, Quote, order_by="created_at")

    def list_orders(self) -> list[Order]:
        """All orders, most recent order date first."""
        return self._list(ORDERS, Order, order_by="date")

    def list_invoices(self) -> list[Invoice]:
        """All invoices, newest first."""
        return self._list(INVOICES, Invoice, order_by="created_at")

    def list_billable_orders(self) -> list[Order]:
        """Orders that may still receive invoices (anything not cancelled)."""
        return self._list(
            ORDERS,
            Order,
            where("status", "not-in", [OrderStatus.CANCELLED.value]),
            order_by="date",
        )

    def linked_quote_ids(self) -> set[str]:
        """Ids of quotes that have already produced an order."""
        records = self.store.query(ORDERS, where("quote_id", "!=", None))
        return {record["quote_id"] for record in records}

    def client_overview(self, client_id: str) -> ClientOverview:
        """
        A client with its quotes and the orders placed under its email.

        Orders carry a customer snapshot rather than a client id, so they are
        matched on the email the client is registered with. Cancelled orders
        are listed but left out of the ordered total.
        """
        client = self.get_client(client_id)
        quotes = self._list(
            QUOTES, Quote, where("client_id", "==", client.id), order_by="created_at"
        )
        orders = self._list(
            ORDERS, Order, where("customer_email", "==", client.email), order_by="date"
        )
        return ClientOverview(
            client=client,
            quotes=quotes,
            orders=orders,
            total_ordered=sum(
                (o.amount for o in orders if o.status != OrderStatus.CANCELLED), ZERO
            ),
            total_outstanding=sum((o.outstanding for o in orders), ZERO),
        )

    def counts(self) -> dict[str, int]:
        """Record totals per collection."""
        return {
            collection: self.store.count(collection)
            for collection in (CLIENTS, QUOTES, ORDERS, INVOICES)
        }

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def create_client(
        self,
        name: str,
        email: str,
        phone: Optional[str] = None,
        company: Optional[str] = None,
    ) -> Client:
        """
        Register a client.

        Raises:
            InputValidationError: Name shorter than 3 characters or bad email.
            DuplicateClientEmailError: Email already registered.
            StoreWriteFailure: The write failed.
        """
        request = self._validate(
            CreateClientRequest, name=name, email=email, phone=phone, company=company
        )

        if self.store.query(CLIENTS, where("email", "==", request.email)):
            raise self._blocked(DuplicateClientEmailError(request.email), None)

        client_id = str(uuid4())
        data = {
            "name": request.name,
            "email": request.email,
            "phone": request.phone,
            "company": request.company,
            "created_at": self._clock(),
        }

        try:
            self._commit("create client", [Insert(CLIENTS, data, client_id)])
        except DuplicateClientEmailError as e:
            raise self._blocked(e, None)

        client = Client(id=client_id, **data)
        self.audit_log.log(AuditAction.CLIENT_CREATED, record_id=client.id, email=client.email)
        logger.info(f"Client {client.id} registered: {client.name} <{client.email}>")
        return client

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    def create_quote(
        self,
        client_name: str,
        client_email: str,
        price: Any,
        delivery_date: Optional[date] = None,
        product: Optional[dict[str, Any]] = None,
        client_id: Optional[str] = None,
        client_phone: Optional[str] = None,
    ) -> Quote:
        """
        Create a pending quote, registering the client if needed.

        When no client_id is given the client is looked up by email; an
        existing client is reused with its stored name, otherwise a new
        client is written in the same batch as the quote.
        """
        request = self._validate(
            CreateQuoteRequest,
            client_name=client_name,
            client_email=client_email,
            price=price,
            delivery_date=delivery_date,
            product=product or {},
            client_id=client_id,
            client_phone=client_phone,
        )
        now = self._clock()
        operations: list[Operation] = []

        resolved_id = request.client_id
        resolved_name = request.client_name
        if resolved_id is None:
            existing = self.store.query(CLIENTS, where("email", "==", request.client_email))
            if existing:
                client = Client.model_validate(existing[0])
                resolved_id = client.id
                resolved_name = client.name
                logger.info(f"Reusing client {resolved_id} for {request.client_email}")
            else:
                resolved_id = str(uuid4())
                operations.append(
                    Insert(
                        CLIENTS,
                        {
                            "name": request.client_name,
                            "email": request.client_email,
                            "phone": request.client_phone,
                            "company": None,
                            "created_at": now,
                        },
                        resolved_id,
                    )
                )

        quote_id = str(uuid4())
        data = {
            "client_id": resolved_id,
            "client_name": resolved_name,
            "client_email": request.client_email,
            "product": request.product,
            "price": request.price,
            "delivery_date": request.delivery_date,
            "status": QuoteStatus.PENDING.value,
            "created_at": now,
        }
        operations.append(Insert(QUOTES, data, quote_id))
        self._commit("create quote", operations)

        quote = Quote(id=quote_id, **data)
        self.audit_log.log(
            AuditAction.QUOTE_CREATED,
            record_id=quote.id,
            client_id=resolved_id,
            price=quote.price,
        )
        logger.info(f"Quote {quote.id} created for {resolved_name} ({quote.price})")
        return quote

    def set_quote_status(self, quote_id: str, new_status: Union[QuoteStatus, str]) -> Quote:
        """
        Approve or reject a quote.

        Single-document update with no side effects on orders or invoices.
        """
        request = self._validate(QuoteStatusRequest, status=new_status)
        quote = self.get_quote(quote_id)
        target = request.status

        if quote.status != target:
            fsm = QuoteFSM(quote.id, quote.status.value)
            trigger = "approve" if target == QuoteStatus.APPROVED else "reject"
            if fsm.can_trigger(trigger):
                fsm.trigger(trigger)
            else:
                self._override(
                    fsm,
                    trigger,
                    target.value,
                    f"Quote {quote.id} is already '{quote.status.value}' "
                    f"and cannot be set to '{target.value}'",
                )

        self._commit("update quote status", [Update(QUOTES, quote.id, {"status": target.value})])

        self.audit_log.log(
            AuditAction.QUOTE_STATUS_CHANGED,
            record_id=quote.id,
            previous_status=quote.status.value,
            status=target.value,
        )
        logger.info(f"Quote {quote.id}: {quote.status.value} -> {target.value}")
        return quote.model_copy(update={"status": target})

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def generate_order_from_quote(self, quote: Union[Quote, str]) -> Order:
        """
        Create the single order for a quote and mark the quote approved.

        Raises:
            DuplicateOrderForQuoteError: If the quote already has an order.
            StoreWriteFailure: If the batch fails; nothing is persisted.
        """
        if isinstance(quote, str):
            quote = self.get_quote(quote)

        existing = self.store.query(ORDERS, where("quote_id", "==", quote.id))
        if existing:
            raise self._blocked(
                DuplicateOrderForQuoteError(quote.id, existing[0]["id"]),
                quote.id,
            )

        now = self._clock()
        order_id = str(uuid4())
        customer = quote.client
        data = {
            "quote_id": quote.id,
            "customer_name": customer.name,
            "customer_email": customer.email,
            "date": now,
            "amount": quote.price,
            "status": OrderStatus.PROCESSING.value,
            "outstanding": quote.price,
            "created_at": now,
        }

        operations: list[Operation] = [Insert(ORDERS, data, order_id)]
        if quote.status != QuoteStatus.APPROVED:
            operations.append(
                Update(QUOTES, quote.id, {"status": QuoteStatus.APPROVED.value})
            )

        try:
            self._commit("generate order", operations)
        except DuplicateOrderForQuoteError as e:
            raise self._blocked(e, quote.id)

        order = Order(id=order_id, **data)
        self.audit_log.log(
            AuditAction.ORDER_GENERATED,
            record_id=order.id,
            quote_id=quote.id,
            amount=order.amount,
        )
        logger.info(f"Order {order.id} generated from quote {quote.id} ({order.amount})")
        return order

    def mark_order_billed(self, order: Union[Order, str]) -> Order:
        """
        Zero an order's outstanding balance without registering an invoice.

        Internal control action for invoicing tracked outside the system.
        No-op if nothing is outstanding.
        """
        order_id = order if isinstance(order, str) else order.id
        current = self.get_order(order_id)

        if current.outstanding == 0:
            logger.info(f"Order {current.id} has nothing outstanding, not billing")
            return current

        fsm = OrderFSM(current.id, current.status.value)
        if not fsm.can_trigger("bill") and current.status != OrderStatus.INVOICED:
            self._override(
                fsm,
                "bill",
                OrderStatus.INVOICED.value,
                f"Order {current.id} in state '{current.status.value}' cannot be billed",
            )

        fields = {"status": OrderStatus.INVOICED.value, "outstanding": ZERO}
        self._commit("mark order billed", [Update(ORDERS, current.id, fields)])

        self.audit_log.log(
            AuditAction.ORDER_BILLED,
            record_id=current.id,
            previous_outstanding=current.outstanding,
        )
        logger.info(f"Order {current.id} marked as billed (was {current.outstanding} outstanding)")
        return current.model_copy(
            update={"status": OrderStatus.INVOICED, "outstanding": ZERO}
        )

    def set_order_status(self, order_id: str, status: Union[OrderStatus, str]) -> Order:
        """Apply an operational status (shipped, delivered, cancelled, ...)."""
        request = self._validate(OrderStatusRequest, status=status)
        current = self.get_order(order_id)
        target = request.status

        if current.status != target:
            fsm = OrderFSM(current.id, current.status.value)
            trigger = fsm.trigger_for(target.value)
            if trigger:
                fsm.trigger(trigger)
            else:
                self._override(
                    fsm,
                    f"set_{target.value}",
                    target.value,
                    f"Order {current.id} cannot move from "
                    f"'{current.status.value}' to '{target.value}'",
                )

        self._commit("update order status", [Update(ORDERS, current.id, {"status": target.value})])

        self.audit_log.log(
            AuditAction.ORDER_STATUS_CHANGED,
            record_id=current.id,
            previous_status=current.status.value,
            status=target.value,
        )
        logger.info(f"Order {current.id}: {current.status.value} -> {target.value}")
        return current.model_copy(update={"status": target})

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    def generate_invoice(
        self,
        order_id: str,
        invoice_number: str,
        issue_date: Union[date, datetime],
        amount: Any,
        access_key: Optional[str] = None,
    ) -> Invoice:
        """Register a paid invoice against an order and reduce its balance."""
        invoice, _ = self.generate_invoice_for_order(
            order_id, invoice_number, issue_date, amount, access_key
        )
        return invoice

    def generate_invoice_for_order(
        self,
        order_id: str,
        invoice_number: str,
        issue_date: Union[date, datetime],
        amount: Any,
        access_key: Optional[str] = None,
    ) -> tuple[Invoice, Order]:
        """
        Register a paid invoice and return it with the order as written.

        The outstanding balance is floored at zero, so overpayment is
        absorbed. The order becomes invoiced once nothing is outstanding.
        The returned order is built from the committed fields rather than
        read back from the store.

        Raises:
            InputValidationError: Bad amount, number or access key.
            DuplicateInvoiceNumberError: Number already registered.
            DuplicateAccessKeyError: Access key already registered.
            RecordNotFoundError: Order does not exist.
            StoreWriteFailure: The batch failed; nothing is persisted.
        """
        request = self._validate(
            GenerateInvoiceRequest,
            order_id=order_id,
            invoice_number=invoice_number,
            access_key=access_key,
            issue_date=issue_date,
            amount=amount,
        )

        if self.store.query(INVOICES, where("invoice_number", "==", request.invoice_number)):
            raise self._blocked(
                DuplicateInvoiceNumberError(request.invoice_number), request.order_id
            )

        if request.access_key and self.store.query(
            INVOICES, where("access_key", "==", request.access_key)
        ):
            raise self._blocked(
                DuplicateAccessKeyError(request.access_key), request.order_id
            )

        order = self.get_order(request.order_id)

        if order.status == OrderStatus.CANCELLED:
            self._override(
                OrderFSM(order.id, order.status.value),
                "bill",
                OrderStatus.INVOICED.value,
                f"Order {order.id} is cancelled and cannot be invoiced",
            )

        new_outstanding = max(ZERO, order.outstanding - request.amount)
        order_fields: dict[str, Any] = {"outstanding": new_outstanding}
        if new_outstanding == 0:
            order_fields["status"] = OrderStatus.INVOICED.value

        now = self._clock()
        invoice_id = str(uuid4())
        data = {
            "invoice_number": request.invoice_number,
            "access_key": request.access_key,
            "order_id": order.id,
            "customer_name": order.customer.name,
            "date": request.issue_date,
            "status": InvoiceStatus.PAID.value,
            "total": request.amount,
            "created_at": now,
        }

        try:
            self._commit(
                "generate invoice",
                [Insert(INVOICES, data, invoice_id), Update(ORDERS, order.id, order_fields)],
            )
        except (DuplicateInvoiceNumberError, DuplicateAccessKeyError) as e:
            raise self._blocked(e, order.id)

        invoice = Invoice(id=invoice_id, **data)
        self.audit_log.log(
            AuditAction.INVOICE_GENERATED,
            record_id=invoice.id,
            order_id=order.id,
            invoice_number=invoice.invoice_number,
            total=invoice.total,
            outstanding=new_outstanding,
        )
        logger.info(
            f"Invoice {invoice.invoice_number} registered for order {order.id}: "
            f"{invoice.total} (outstanding {order.outstanding} -> {new_outstanding})"
        )
        updated = order.model_copy(
            update={
                "outstanding": new_outstanding,
                "status": OrderStatus(order_fields.get("status", order.status)),
            }
        )
        return invoice, updated

    def cancel_invoice(self, invoice: Union[Invoice, str]) -> Invoice:
        """
        Cancel an invoice and give its total back to the order.

        Cancelling an already cancelled invoice is a no-op. The balance is
        only restored when the invoice was paid. Both writes share one batch.
        """
        invoice_id = invoice if isinstance(invoice, str) else invoice.id
        current = self.get_invoice(invoice_id)

        if current.status == InvoiceStatus.CANCELLED:
            logger.info(f"Invoice {current.invoice_number} already cancelled")
            return current

        InvoiceFSM(current.id, current.status.value).trigger("cancel")

        operations: list[Operation] = [
            Update(INVOICES, current.id, {"status": InvoiceStatus.CANCELLED.value})
        ]
        restored: Optional[Decimal] = None

        if current.status == InvoiceStatus.PAID and current.order_id:
            record = self.store.get(ORDERS, current.order_id)
            if record is None:
                logger.warning(
                    f"Invoice {current.invoice_number} references missing order "
                    f"{current.order_id}; cancelling without reversal"
                )
            else:
                order = Order.model_validate(record)
                restored = min(order.amount, order.outstanding + current.total)
                order_fields: dict[str, Any] = {"outstanding": restored}

                fsm = OrderFSM(order.id, order.status.value)
                if fsm.can_trigger("reopen"):
                    order_fields["status"] = OrderStatus.PROCESSING.value
                elif self.policy.strict_transitions:
                    logger.info(
                        f"Order {order.id} stays '{order.status.value}' "
                        f"after invoice cancellation (strict policy)"
                    )
                else:
                    self._override(
                        fsm,
                        "reopen",
                        OrderStatus.PROCESSING.value,
                        f"Order {order.id} cannot be reopened",
                    )
                    order_fields["status"] = OrderStatus.PROCESSING.value

                operations.append(Update(ORDERS, order.id, order_fields))

        self._commit("cancel invoice", operations)

        self.audit_log.log(
            AuditAction.INVOICE_CANCELLED,
            record_id=current.id,
            order_id=current.order_id,
            previous_status=current.status.value,
            restored_outstanding=restored,
        )
        logger.info(f"Invoice {current.invoice_number} cancelled")
        return current.model_copy(update={"status": InvoiceStatus.CANCELLED})
