"""Database module for persistent storage."""

from database.base import (
    DocumentStore,
    Filter,
    Insert,
    MissingRecordError,
    StoreError,
    UniqueConstraintError,
    Update,
    where,
)
from database.memory import InMemoryDocumentStore
from database.models import (
    Base,
    ClientModel,
    InvoiceModel,
    OrderModel,
    QuoteModel,
)
from database.session import get_engine, get_session, init_db, session_scope, reset_engine
from database.store import DatabaseDocumentStore

__all__ = [
    "DocumentStore",
    "Filter",
    "Insert",
    "Update",
    "where",
    "StoreError",
    "MissingRecordError",
    "UniqueConstraintError",
    "InMemoryDocumentStore",
    "DatabaseDocumentStore",
    "Base",
    "ClientModel",
    "QuoteModel",
    "OrderModel",
    "InvoiceModel",
    "get_engine",
    "get_session",
    "session_scope",
    "init_db",
    "reset_engine",
]
