"""Lifecycle actions run from the HTTP surface and other front ends."""

import logging
from typing import Any, Optional

from actions.base import ActionResult, BaseLifecycleAction

logger = logging.getLogger(__name__)


# ============================================================================
# Client Actions
# ============================================================================


class CreateClientAction(BaseLifecycleAction):
    """Register a client."""

    name = "create_client"
    description = "Register a client. Emails are unique across clients."
    verb = "create client"

    def _execute(self, **kwargs: Any) -> ActionResult:
        client = self.engine.create_client(**kwargs)
        return ActionResult(
            success=True,
            message=f"Client {client.name} registered.",
            data={"client": client.model_dump(mode="json")},
        )


# ============================================================================
# Quote Actions
# ============================================================================


class CreateQuoteAction(BaseLifecycleAction):
    """Register a new pending quote."""

    name = "create_quote"
    description = "Create a pending quote, registering the client by email if needed."
    verb = "create quote"

    def _execute(self, **kwargs: Any) -> ActionResult:
        quote = self.engine.create_quote(**kwargs)
        return ActionResult(
            success=True,
            message=f"Quote created for {quote.client_name} ({quote.price}).",
            data={"quote": quote.model_dump(mode="json")},
        )


class SetQuoteStatusAction(BaseLifecycleAction):
    """Approve or reject a quote."""

    name = "set_quote_status"
    description = "Set a quote to approved or rejected."
    verb = "update quote status"

    def _execute(self, quote_id: str = "", status: str = "", **kwargs: Any) -> ActionResult:
        quote = self.engine.set_quote_status(quote_id, status)
        return ActionResult(
            success=True,
            message=f"Quote {quote.id} is now {quote.status.value}.",
            data={"quote": quote.model_dump(mode="json")},
        )


# ============================================================================
# Order Actions
# ============================================================================


class GenerateOrderAction(BaseLifecycleAction):
    """Turn a quote into its order."""

    name = "generate_order"
    description = (
        "Create the order for a quote and mark the quote approved. "
        "Each quote produces at most one order."
    )
    verb = "generate order"

    def _execute(self, quote_id: str = "", **kwargs: Any) -> ActionResult:
        order = self.engine.generate_order_from_quote(quote_id)
        return ActionResult(
            success=True,
            message=f"Order generated successfully for {order.customer_name}.",
            data={"order": order.model_dump(mode="json")},
        )


class MarkOrderBilledAction(BaseLifecycleAction):
    """Zero an order's balance without registering an invoice."""

    name = "mark_order_billed"
    description = "Mark an order as fully invoiced outside the system."
    verb = "mark order as billed"

    def _execute(self, order_id: str = "", **kwargs: Any) -> ActionResult:
        before = self.engine.get_order(order_id)
        order = self.engine.mark_order_billed(before)

        if before.outstanding == 0:
            message = f"Order {order.id} has nothing outstanding."
        else:
            message = f"Order {order.id} marked as billed."

        return ActionResult(
            success=True,
            message=message,
            data={"order": order.model_dump(mode="json")},
        )


class SetOrderStatusAction(BaseLifecycleAction):
    """Apply an operational order status."""

    name = "set_order_status"
    description = "Set an order to processing, shipped, delivered, cancelled or exception."
    verb = "update order status"

    def _execute(self, order_id: str = "", status: str = "", **kwargs: Any) -> ActionResult:
        order = self.engine.set_order_status(order_id, status)
        return ActionResult(
            success=True,
            message=f"Order {order.id} is now {order.status.value}.",
            data={"order": order.model_dump(mode="json")},
        )


# ============================================================================
# Invoice Actions
# ============================================================================


class GenerateInvoiceAction(BaseLifecycleAction):
    """Register an invoice against an order."""

    name = "generate_invoice"
    description = (
        "Register a paid invoice for an order and reduce its outstanding balance. "
        "Invoice numbers and access keys must be unique."
    )
    verb = "generate invoice"

    def _execute(
        self,
        order_id: str = "",
        invoice_number: str = "",
        issue_date: Any = None,
        amount: Any = None,
        access_key: Optional[str] = None,
        **kwargs: Any,
    ) -> ActionResult:
        invoice, order = self.engine.generate_invoice_for_order(
            order_id=order_id,
            invoice_number=invoice_number,
            issue_date=issue_date,
            amount=amount,
            access_key=access_key,
        )
        return ActionResult(
            success=True,
            message=(
                f"Invoice {invoice.invoice_number} registered. "
                f"Outstanding on order: {order.outstanding}."
            ),
            data={
                "invoice": invoice.model_dump(mode="json"),
                "order": order.model_dump(mode="json"),
            },
        )


class CancelInvoiceAction(BaseLifecycleAction):
    """Cancel an invoice and restore the order balance."""

    name = "cancel_invoice"
    description = "Cancel an invoice. Paid invoices give their total back to the order."
    verb = "cancel invoice"

    def _execute(self, invoice_id: str = "", **kwargs: Any) -> ActionResult:
        invoice = self.engine.cancel_invoice(invoice_id)
        return ActionResult(
            success=True,
            message=f"Invoice {invoice.invoice_number} cancelled.",
            data={"invoice": invoice.model_dump(mode="json")},
        )
