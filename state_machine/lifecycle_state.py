"""Quote, order and invoice state machines built on the transitions library."""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from transitions import Machine, MachineError

from state_machine.models import InvoiceStatus, OrderStatus, QuoteStatus

logger = logging.getLogger(__name__)


class TransitionError(Exception):
    """Raised when an invalid status transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(
        self,
        message: str,
        current_state: str,
        attempted_trigger: str,
        record_id: Optional[str] = None,
    ):
        self.current_state = current_state
        self.attempted_trigger = attempted_trigger
        self.record_id = record_id
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "error": "TransitionError",
            "code": self.code,
            "message": str(self),
            "current_state": self.current_state,
            "attempted_trigger": self.attempted_trigger,
            "record_id": self.record_id,
        }


class RecordFSM:
    """
    Finite state machine over the status field of a stored record.

    Subclasses declare STATES, TERMINAL_STATES and TRANSITIONS. The machine
    only validates and records transitions; persisting the resulting status
    is the caller's job.
    """

    kind: str = "record"
    STATES: list[str] = []
    TERMINAL_STATES: list[str] = []
    TRANSITIONS: list[dict[str, Any]] = []

    def __init__(
        self,
        record_id: str,
        initial_state: Optional[str] = None,
        on_transition: Optional[Callable[[str, str, str], None]] = None,
    ):
        """
        Initialize the state machine.

        Args:
            record_id: Identifier of the record whose status is tracked
            initial_state: Starting state (default: first declared state)
            on_transition: Optional callback called on each transition
                          with (record_id, source_state, dest_state)
        """
        self.record_id = record_id
        self._on_transition = on_transition
        self._history: list[dict[str, Any]] = []

        if initial_state is None:
            initial_state = self.STATES[0]
        initial_state = getattr(initial_state, "value", initial_state)

        if initial_state not in self.STATES:
            raise ValueError(f"Invalid initial state: {initial_state}")

        self.machine = Machine(
            model=self,
            states=self.STATES,
            transitions=self.TRANSITIONS,
            initial=initial_state,
            auto_transitions=False,
            send_event=True,
            before_state_change=self._before_transition,
            after_state_change=self._after_transition,
        )

        self._record_history(None, initial_state, "initialized")

    @property
    def current_state(self) -> str:
        """Get the current state."""
        return self.state  # type: ignore[return-value]

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self.current_state in self.TERMINAL_STATES

    @property
    def history(self) -> list[dict[str, Any]]:
        """Get transition history."""
        return self._history.copy()

    def _before_transition(self, event: Any) -> None:
        logger.debug(
            f"{self.kind} {self.record_id}: Attempting transition "
            f"'{event.event.name}' from '{self.state}'"
        )

    def _after_transition(self, event: Any) -> None:
        source = event.transition.source
        dest = event.transition.dest
        trigger = event.event.name

        self._record_history(source, dest, trigger)

        logger.debug(
            f"{self.kind} {self.record_id}: Transition '{trigger}' "
            f"completed: {source} -> {dest}"
        )

        if self._on_transition:
            self._on_transition(self.record_id, source, dest)

    def _record_history(
        self, source: Optional[str], dest: str, trigger: str
    ) -> None:
        self._history.append(
            {
                "timestamp": datetime.utcnow().isoformat(),
                "source": source,
                "dest": dest,
                "trigger": trigger,
            }
        )

    def can_trigger(self, trigger: str) -> bool:
        """Check if a trigger can be executed from current state."""
        may_method = getattr(self, f"may_{trigger}", None)
        if may_method:
            return may_method()
        return False

    def get_available_triggers(self) -> list[str]:
        """Get list of triggers available from current state."""
        available = []
        for transition in self.TRANSITIONS:
            trigger = transition["trigger"]
            sources = transition["source"]
            if isinstance(sources, str):
                sources = [sources]
            if self.current_state in sources and trigger not in available:
                available.append(trigger)
        return available

    def trigger_for(self, dest: str) -> Optional[str]:
        """Return the trigger leading from the current state to dest, if any."""
        dest = getattr(dest, "value", dest)
        for transition in self.TRANSITIONS:
            if transition["dest"] != dest:
                continue
            if self.can_trigger(transition["trigger"]):
                return transition["trigger"]
        return None

    def trigger(self, trigger_name: str, **kwargs: Any) -> dict[str, Any]:
        """
        Execute a status transition.

        Args:
            trigger_name: Name of the trigger to execute
            **kwargs: Additional arguments passed to transition callbacks

        Returns:
            Dictionary with transition result

        Raises:
            TransitionError: If the transition is not valid from current state
        """
        if self.is_terminal:
            raise TransitionError(
                f"Cannot transition {self.kind} from terminal state "
                f"'{self.current_state}'",
                current_state=self.current_state,
                attempted_trigger=trigger_name,
                record_id=self.record_id,
            )

        if not self.can_trigger(trigger_name):
            available = self.get_available_triggers()
            raise TransitionError(
                f"Cannot execute '{trigger_name}' on {self.kind} in state "
                f"'{self.current_state}'. Available triggers: {available}",
                current_state=self.current_state,
                attempted_trigger=trigger_name,
                record_id=self.record_id,
            )

        previous_state = self.current_state

        try:
            getattr(self, trigger_name)(**kwargs)
        except MachineError as e:
            raise TransitionError(
                str(e),
                current_state=previous_state,
                attempted_trigger=trigger_name,
                record_id=self.record_id,
            ) from e

        return {
            "success": True,
            "record_id": self.record_id,
            "previous_state": previous_state,
            "current_state": self.current_state,
            "trigger": trigger_name,
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize state machine to dictionary."""
        return {
            "record_id": self.record_id,
            "current_state": self.current_state,
            "is_terminal": self.is_terminal,
            "available_triggers": self.get_available_triggers(),
            "history": self.history,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(record_id={self.record_id!r}, "
            f"state={self.current_state!r})"
        )


class QuoteFSM(RecordFSM):
    """
    Quote lifecycle.

    Transitions:
        - approve: pending -> approved
        - reject: pending -> rejected
    """

    kind = "Quote"
    STATES = [s.value for s in QuoteStatus]
    TERMINAL_STATES: list[str] = []
    TRANSITIONS = [
        {
            "trigger": "approve",
            "source": QuoteStatus.PENDING.value,
            "dest": QuoteStatus.APPROVED.value,
        },
        {
            "trigger": "reject",
            "source": QuoteStatus.PENDING.value,
            "dest": QuoteStatus.REJECTED.value,
        },
    ]


class OrderFSM(RecordFSM):
    """
    Order lifecycle.

    Transitions:
        - ship: processing -> shipped
        - deliver: shipped -> delivered
        - cancel: processing/shipped/exception -> cancelled
        - flag_exception: processing/shipped -> exception
        - resume: exception -> processing
        - bill: processing/shipped/delivered/exception -> invoiced
        - reopen: invoiced/processing/shipped/exception -> processing
    """

    kind = "Order"
    STATES = [s.value for s in OrderStatus]
    TERMINAL_STATES: list[str] = []
    TRANSITIONS = [
        {
            "trigger": "ship",
            "source": OrderStatus.PROCESSING.value,
            "dest": OrderStatus.SHIPPED.value,
        },
        {
            "trigger": "deliver",
            "source": OrderStatus.SHIPPED.value,
            "dest": OrderStatus.DELIVERED.value,
        },
        {
            "trigger": "cancel",
            "source": [
                OrderStatus.PROCESSING.value,
                OrderStatus.SHIPPED.value,
                OrderStatus.EXCEPTION.value,
            ],
            "dest": OrderStatus.CANCELLED.value,
        },
        {
            "trigger": "flag_exception",
            "source": [OrderStatus.PROCESSING.value, OrderStatus.SHIPPED.value],
            "dest": OrderStatus.EXCEPTION.value,
        },
        {
            "trigger": "resume",
            "source": OrderStatus.EXCEPTION.value,
            "dest": OrderStatus.PROCESSING.value,
        },
        {
            "trigger": "bill",
            "source": [
                OrderStatus.PROCESSING.value,
                OrderStatus.SHIPPED.value,
                OrderStatus.DELIVERED.value,
                OrderStatus.EXCEPTION.value,
            ],
            "dest": OrderStatus.INVOICED.value,
        },
        {
            "trigger": "reopen",
            "source": [
                OrderStatus.INVOICED.value,
                OrderStatus.PROCESSING.value,
                OrderStatus.SHIPPED.value,
                OrderStatus.EXCEPTION.value,
            ],
            "dest": OrderStatus.PROCESSING.value,
        },
    ]


class InvoiceFSM(RecordFSM):
    """
    Invoice lifecycle.

    Transitions:
        - settle: pending -> paid
        - cancel: paid/pending -> cancelled (terminal)
    """

    kind = "Invoice"
    STATES = [s.value for s in InvoiceStatus]
    TERMINAL_STATES = [InvoiceStatus.CANCELLED.value]
    TRANSITIONS = [
        {
            "trigger": "settle",
            "source": InvoiceStatus.PENDING.value,
            "dest": InvoiceStatus.PAID.value,
        },
        {
            "trigger": "cancel",
            "source": [InvoiceStatus.PAID.value, InvoiceStatus.PENDING.value],
            "dest": InvoiceStatus.CANCELLED.value,
        },
    ]
