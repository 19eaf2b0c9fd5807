"""
Append-only audit trail of lifecycle actions.

Entries live in memory and, optionally, are mirrored to a JSON-lines file.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, TextIO
from uuid import uuid4

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    """Types of auditable actions."""

    CLIENT_CREATED = "client_created"
    QUOTE_CREATED = "quote_created"
    QUOTE_STATUS_CHANGED = "quote_status_changed"
    ORDER_GENERATED = "order_generated"
    ORDER_STATUS_CHANGED = "order_status_changed"
    ORDER_BILLED = "order_billed"
    INVOICE_GENERATED = "invoice_generated"
    INVOICE_CANCELLED = "invoice_cancelled"
    DUPLICATE_BLOCKED = "duplicate_blocked"
    POLICY_OVERRIDE = "policy_override"


@dataclass
class AuditEntry:
    """A single audit log entry."""

    action: AuditAction
    timestamp: datetime
    record_id: Optional[str]
    details: dict[str, Any]
    entry_id: str = field(default_factory=lambda: str(uuid4()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "action": self.action.value,
            "timestamp": self.timestamp.isoformat(),
            "record_id": self.record_id,
            "details": self.details,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class AuditLog:
    """
    Append-only audit log for lifecycle actions.

    Entries cannot be modified or removed once logged.
    """

    def __init__(self, file_path: Optional[Path] = None):
        """
        Initialize the audit log.

        Args:
            file_path: Optional path for JSON-lines persistence.
        """
        self._entries: list[AuditEntry] = []
        self._file_handle: Optional[TextIO] = None

        if file_path:
            self._file_handle = open(file_path, "a", encoding="utf-8")

    def log(
        self,
        action: AuditAction,
        record_id: Optional[str] = None,
        **details: Any,
    ) -> AuditEntry:
        """Append an entry and return it."""
        entry = AuditEntry(
            action=action,
            timestamp=datetime.utcnow(),
            record_id=record_id,
            details=details,
        )

        self._entries.append(entry)

        if self._file_handle:
            self._file_handle.write(entry.to_json() + "\n")
            self._file_handle.flush()

        logger.debug(f"Audit: {action.value} - {record_id or 'N/A'}")

        return entry

    def get_entries(
        self,
        action: Optional[AuditAction] = None,
        record_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[AuditEntry]:
        """Query entries, oldest first."""
        entries = [
            e
            for e in self._entries
            if (action is None or e.action == action)
            and (record_id is None or e.record_id == record_id)
        ]
        if limit:
            entries = entries[-limit:]
        return entries

    def __len__(self) -> int:
        return len(self._entries)

    def close(self) -> None:
        """Close the backing file, if any."""
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None
