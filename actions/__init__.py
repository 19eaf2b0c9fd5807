"""User-facing lifecycle actions returning structured results."""

from actions.base import ActionResult, BaseLifecycleAction
from actions.lifecycle_actions import (
    CancelInvoiceAction,
    CreateClientAction,
    CreateQuoteAction,
    GenerateInvoiceAction,
    GenerateOrderAction,
    MarkOrderBilledAction,
    SetOrderStatusAction,
    SetQuoteStatusAction,
)

__all__ = [
    "ActionResult",
    "BaseLifecycleAction",
    "CreateClientAction",
    "CreateQuoteAction",
    "SetQuoteStatusAction",
    "GenerateOrderAction",
    "MarkOrderBilledAction",
    "SetOrderStatusAction",
    "GenerateInvoiceAction",
    "CancelInvoiceAction",
]
