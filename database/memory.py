"""In-memory document store for development and testing."""

import copy
import logging
from typing import Any, Iterable, Optional
from uuid import uuid4

from database.base import (
    Filter,
    Insert,
    MissingRecordError,
    Operation,
    StoreError,
    UniqueConstraintError,
    Update,
)

logger = logging.getLogger(__name__)

DEFAULT_UNIQUE_FIELDS: dict[str, tuple[str, ...]] = {
    "clients": ("email",),
    "orders": ("quote_id",),
    "invoices": ("invoice_number", "access_key"),
}


class InMemoryDocumentStore:
    """
    Simple dict-backed document store.

    Enforces the same unique fields as the database schema. Records are
    copied on the way in and out so callers never share state with the
    store.
    """

    def __init__(
        self,
        unique_fields: Optional[dict[str, tuple[str, ...]]] = None,
    ) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._unique_fields = (
            DEFAULT_UNIQUE_FIELDS if unique_fields is None else unique_fields
        )

    def _check_unique(
        self,
        collections: dict[str, dict[str, dict[str, Any]]],
        collection: str,
        record_id: str,
        record: dict[str, Any],
    ) -> None:
        for field_name in self._unique_fields.get(collection, ()):
            value = record.get(field_name)
            if value is None:
                continue
            for other_id, other in collections.get(collection, {}).items():
                if other_id != record_id and other.get(field_name) == value:
                    raise UniqueConstraintError(collection, field_name, value)

    def _apply(
        self,
        collections: dict[str, dict[str, dict[str, Any]]],
        operation: Operation,
    ) -> None:
        records = collections.setdefault(operation.collection, {})

        if isinstance(operation, Insert):
            if operation.record_id in records:
                raise StoreError(
                    f"Record '{operation.record_id}' already exists in "
                    f"'{operation.collection}'"
                )
            record = copy.deepcopy(operation.data)
            record["id"] = operation.record_id
        else:
            if operation.record_id not in records:
                raise MissingRecordError(operation.collection, operation.record_id)
            record = {**records[operation.record_id], **copy.deepcopy(operation.fields)}

        self._check_unique(collections, operation.collection, operation.record_id, record)
        records[operation.record_id] = record

    def get(self, collection: str, record_id: str) -> Optional[dict[str, Any]]:
        """Get a record by id."""
        record = self._collections.get(collection, {}).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    def query(
        self,
        collection: str,
        *filters: Filter,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Return copies of the records matching every filter."""
        records = [
            record
            for record in self._collections.get(collection, {}).values()
            if all(flt.matches(record) for flt in filters)
        ]
        if order_by:
            records.sort(
                key=lambda r: (r.get(order_by) is None, r.get(order_by)),
                reverse=descending,
            )
        return copy.deepcopy(records)

    def insert(
        self,
        collection: str,
        data: dict[str, Any],
        record_id: Optional[str] = None,
    ) -> str:
        """Create a record and return its id."""
        operation = Insert(collection, data, record_id or str(uuid4()))
        self._apply(self._collections, operation)
        logger.debug(f"Inserted {collection}/{operation.record_id}")
        return operation.record_id

    def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        """Update fields of an existing record."""
        self._apply(self._collections, Update(collection, record_id, fields))
        logger.debug(f"Updated {collection}/{record_id}: {sorted(fields)}")

    def atomic_batch(self, operations: Iterable[Operation]) -> None:
        """Apply operations to a working copy and swap it in on success."""
        operations = list(operations)
        working = copy.deepcopy(self._collections)
        for operation in operations:
            self._apply(working, operation)
        self._collections = working
        logger.debug(f"Committed batch of {len(operations)} operation(s)")

    def count(self, collection: str, *filters: Filter) -> int:
        """Number of records matching every filter."""
        return sum(
            1
            for record in self._collections.get(collection, {}).values()
            if all(flt.matches(record) for flt in filters)
        )
