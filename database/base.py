"""Document store contract shared by the SQL and in-memory stores."""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Protocol, Union
from uuid import uuid4

FILTER_OPS = ("==", "!=", "in", "not-in")


class StoreError(Exception):
    """Raised when the backing store fails an operation."""


class MissingRecordError(StoreError):
    """Raised when an update targets a record that does not exist."""

    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"No record '{record_id}' in collection '{collection}'")


class UniqueConstraintError(StoreError):
    """Raised when a write collides with a unique field."""

    def __init__(self, collection: str, field_name: str, value: Any):
        self.collection = collection
        self.field = field_name
        self.value = value
        super().__init__(
            f"Duplicate value for {collection}.{field_name}: {value!r}"
        )


@dataclass(frozen=True)
class Filter:
    """Single-field query predicate."""

    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in FILTER_OPS:
            raise ValueError(f"Unsupported filter operator: {self.op}")

    def matches(self, record: dict[str, Any]) -> bool:
        """Evaluate the predicate against a plain record."""
        actual = record.get(self.field)
        if self.op == "==":
            return actual == self.value
        # Inequality and exclusion never match an unset field
        if actual is None:
            return False
        if self.op == "!=":
            return actual != self.value
        if self.op == "in":
            return actual in self.value
        return actual not in self.value


def where(field_name: str, op: str, value: Any) -> Filter:
    """Shorthand for building a Filter."""
    return Filter(field_name, op, value)


@dataclass
class Insert:
    """Batch operation creating a record."""

    collection: str
    data: dict[str, Any]
    record_id: str = field(default_factory=lambda: str(uuid4()))


@dataclass
class Update:
    """Batch operation changing fields of an existing record."""

    collection: str
    record_id: str
    fields: dict[str, Any]


Operation = Union[Insert, Update]


class DocumentStore(Protocol):
    """Protocol for record storage used by the lifecycle engine."""

    def get(self, collection: str, record_id: str) -> Optional[dict[str, Any]]:
        """Get a record by id, or None."""
        ...

    def query(
        self,
        collection: str,
        *filters: Filter,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Return records matching every filter."""
        ...

    def insert(
        self,
        collection: str,
        data: dict[str, Any],
        record_id: Optional[str] = None,
    ) -> str:
        """Create a record and return its id."""
        ...

    def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        """Update fields of an existing record."""
        ...

    def atomic_batch(self, operations: Iterable[Operation]) -> None:
        """Apply all operations or none of them."""
        ...

    def count(self, collection: str, *filters: Filter) -> int:
        """Number of records matching every filter."""
        ...
