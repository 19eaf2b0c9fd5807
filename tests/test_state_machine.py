"""Tests for the quote, order and invoice state machines."""

import pytest

from state_machine import (
    InvoiceFSM,
    InvoiceStatus,
    OrderFSM,
    OrderStatus,
    QuoteFSM,
    QuoteStatus,
    TransitionError,
)


class TestQuoteFSM:
    """Test quote transitions."""

    def test_initial_state_is_pending(self):
        """Test a new quote machine starts pending."""
        fsm = QuoteFSM("Q-1")

        assert fsm.current_state == QuoteStatus.PENDING.value
        assert not fsm.is_terminal

    def test_approve_from_pending(self):
        """Test pending quotes can be approved."""
        fsm = QuoteFSM("Q-1")

        result = fsm.trigger("approve")

        assert result["success"] is True
        assert result["previous_state"] == "pending"
        assert fsm.current_state == "approved"

    def test_reject_from_pending(self):
        """Test pending quotes can be rejected."""
        fsm = QuoteFSM("Q-1", QuoteStatus.PENDING)

        fsm.trigger("reject")

        assert fsm.current_state == "rejected"

    def test_cannot_approve_rejected(self):
        """Test a decided quote cannot be decided again."""
        fsm = QuoteFSM("Q-1", "rejected")

        with pytest.raises(TransitionError) as exc_info:
            fsm.trigger("approve")

        assert exc_info.value.current_state == "rejected"
        assert exc_info.value.attempted_trigger == "approve"
        assert exc_info.value.record_id == "Q-1"

    def test_invalid_initial_state(self):
        """Test unknown states are refused."""
        with pytest.raises(ValueError, match="Invalid initial state"):
            QuoteFSM("Q-1", "archived")


class TestOrderFSM:
    """Test order transitions."""

    def test_operational_path(self):
        """Test processing -> shipped -> delivered."""
        fsm = OrderFSM("O-1")

        fsm.trigger("ship")
        fsm.trigger("deliver")

        assert fsm.current_state == OrderStatus.DELIVERED.value

    def test_bill_from_delivered(self):
        """Test delivered orders can be billed."""
        fsm = OrderFSM("O-1", "delivered")

        assert fsm.can_trigger("bill")
        fsm.trigger("bill")

        assert fsm.current_state == "invoiced"

    def test_cannot_bill_cancelled(self):
        """Test cancelled orders cannot be billed."""
        fsm = OrderFSM("O-1", "cancelled")

        assert not fsm.can_trigger("bill")
        with pytest.raises(TransitionError):
            fsm.trigger("bill")

    def test_reopen_invoiced(self):
        """Test an invoiced order can go back to processing."""
        fsm = OrderFSM("O-1", "invoiced")

        fsm.trigger("reopen")

        assert fsm.current_state == "processing"

    def test_reopen_not_available_for_delivered(self):
        """Test delivered orders are not reopened."""
        fsm = OrderFSM("O-1", "delivered")

        assert not fsm.can_trigger("reopen")

    def test_trigger_for_destination(self):
        """Test looking up the trigger that reaches a status."""
        assert OrderFSM("O-1", "processing").trigger_for("shipped") == "ship"
        assert OrderFSM("O-1", "exception").trigger_for("processing") == "resume"
        assert OrderFSM("O-1", "cancelled").trigger_for("processing") is None

    def test_available_triggers(self):
        """Test available triggers for a shipped order."""
        triggers = OrderFSM("O-1", "shipped").get_available_triggers()

        assert set(triggers) == {"deliver", "cancel", "flag_exception", "bill", "reopen"}

    def test_history_records_transitions(self):
        """Test transitions are recorded in history."""
        fsm = OrderFSM("O-1")
        fsm.trigger("flag_exception")
        fsm.trigger("resume")

        history = fsm.history

        assert [h["trigger"] for h in history] == ["initialized", "flag_exception", "resume"]
        assert history[-1]["source"] == "exception"
        assert history[-1]["dest"] == "processing"

    def test_on_transition_callback(self):
        """Test the transition callback receives source and destination."""
        calls = []
        fsm = OrderFSM("O-1", on_transition=lambda *args: calls.append(args))

        fsm.trigger("ship")

        assert calls == [("O-1", "processing", "shipped")]


class TestInvoiceFSM:
    """Test invoice transitions."""

    def test_cancel_paid(self):
        """Test paid invoices can be cancelled."""
        fsm = InvoiceFSM("I-1", InvoiceStatus.PAID)

        fsm.trigger("cancel")

        assert fsm.current_state == "cancelled"
        assert fsm.is_terminal

    def test_settle_pending(self):
        """Test pending invoices settle to paid."""
        fsm = InvoiceFSM("I-1", "pending")

        fsm.trigger("settle")

        assert fsm.current_state == "paid"

    def test_cancelled_is_terminal(self):
        """Test nothing leaves the cancelled state."""
        fsm = InvoiceFSM("I-1", "cancelled")

        with pytest.raises(TransitionError, match="terminal"):
            fsm.trigger("cancel")

    def test_error_to_dict(self):
        """Test transition errors serialize with their context."""
        fsm = InvoiceFSM("I-1", "paid")

        with pytest.raises(TransitionError) as exc_info:
            fsm.trigger("settle")

        data = exc_info.value.to_dict()
        assert data["code"] == "INVALID_TRANSITION"
        assert data["current_state"] == "paid"
        assert data["attempted_trigger"] == "settle"
        assert data["record_id"] == "I-1"

    def test_to_dict(self):
        """Test serializing the machine."""
        data = InvoiceFSM("I-1", "paid").to_dict()

        assert data["record_id"] == "I-1"
        assert data["current_state"] == "paid"
        assert data["available_triggers"] == ["cancel"]
