"""Database-backed document store implementation."""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Iterable, Optional
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from database.base import (
    Filter,
    Insert,
    MissingRecordError,
    Operation,
    StoreError,
    UniqueConstraintError,
    Update,
)
from database.models import COLLECTIONS, Base, unique_fields
from database.session import session_scope

logger = logging.getLogger(__name__)


class DatabaseDocumentStore:
    """
    Production document store using SQLAlchemy.

    Implements the DocumentStore protocol on top of one table per
    collection. Unique columns are enforced by the database itself and
    surface as UniqueConstraintError.
    """

    def __init__(self, engine: Optional[Engine] = None):
        """
        Initialize the database store.

        Args:
            engine: Optional SQLAlchemy engine. Defaults to the global
                    engine configured through database.session.
        """
        self._engine = engine

    @contextmanager
    def _unit_of_work(self) -> Generator[Session, None, None]:
        try:
            with session_scope(self._engine) as session:
                yield session
        except StoreError:
            raise
        except SQLAlchemyError as e:
            raise StoreError(f"Database error: {e}") from e

    def _model(self, collection: str) -> type[Base]:
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise StoreError(f"Unknown collection '{collection}'") from None

    @staticmethod
    def _to_record(row: Base) -> dict[str, Any]:
        return {
            column.key: getattr(row, column.key)
            for column in row.__table__.columns
        }

    def _flush(
        self,
        session: Session,
        collection: str,
        values: dict[str, Any],
    ) -> None:
        """Flush pending writes, translating unique violations."""
        try:
            session.flush()
        except IntegrityError as e:
            message = str(e.orig)
            table = self._model(collection).__tablename__
            for field_name in unique_fields(self._model(collection)):
                if (
                    f"{table}.{field_name}" in message
                    or f"uq_{table}_{field_name}" in message
                ):
                    raise UniqueConstraintError(
                        collection, field_name, values.get(field_name)
                    ) from e
            raise StoreError(f"Integrity error on {collection}: {message}") from e

    def _apply(self, session: Session, operation: Operation) -> None:
        model = self._model(operation.collection)

        if isinstance(operation, Insert):
            row = model(id=operation.record_id, **operation.data)
            session.add(row)
            self._flush(session, operation.collection, operation.data)
            return

        row = session.get(model, operation.record_id)
        if row is None:
            raise MissingRecordError(operation.collection, operation.record_id)
        for key, value in operation.fields.items():
            setattr(row, key, value)
        self._flush(session, operation.collection, operation.fields)

    def _filtered(
        self,
        query: Query,
        model: type[Base],
        collection: str,
        filters: Iterable[Filter],
    ) -> Query:
        for flt in filters:
            column = getattr(model, flt.field, None)
            if column is None:
                raise StoreError(f"Unknown field '{collection}.{flt.field}'")
            if flt.op == "==":
                query = query.filter(
                    column.is_(None) if flt.value is None else column == flt.value
                )
            elif flt.op == "!=":
                query = query.filter(column.isnot(None))
                if flt.value is not None:
                    query = query.filter(column != flt.value)
            elif flt.op == "in":
                query = query.filter(column.in_(list(flt.value)))
            else:
                query = query.filter(column.isnot(None), column.not_in(list(flt.value)))
        return query

    def get(self, collection: str, record_id: str) -> Optional[dict[str, Any]]:
        """
        Get a record by id.

        Returns:
            Record dictionary or None if not found.
        """
        model = self._model(collection)
        with self._unit_of_work() as session:
            row = session.get(model, record_id)
            if row is None:
                return None
            return self._to_record(row)

    def query(
        self,
        collection: str,
        *filters: Filter,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """
        Query records with equality, inequality and membership filters.

        Args:
            collection: Collection name.
            *filters: Predicates that must all hold.
            order_by: Optional field to sort by.
            descending: Sort direction.

        Returns:
            List of record dictionaries.
        """
        model = self._model(collection)
        with self._unit_of_work() as session:
            query = self._filtered(session.query(model), model, collection, filters)

            if order_by:
                column = getattr(model, order_by)
                query = query.order_by(column.desc() if descending else column.asc())

            return [self._to_record(row) for row in query.all()]

    def insert(
        self,
        collection: str,
        data: dict[str, Any],
        record_id: Optional[str] = None,
    ) -> str:
        """
        Create a record.

        Raises:
            UniqueConstraintError: If a unique column collides.
        """
        record_id = record_id or str(uuid4())
        with self._unit_of_work() as session:
            self._apply(session, Insert(collection, data, record_id))
        logger.debug(f"Inserted {collection}/{record_id}")
        return record_id

    def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        """
        Update fields of an existing record.

        Raises:
            MissingRecordError: If the record does not exist.
        """
        with self._unit_of_work() as session:
            self._apply(session, Update(collection, record_id, fields))
        logger.debug(f"Updated {collection}/{record_id}: {sorted(fields)}")

    def atomic_batch(self, operations: Iterable[Operation]) -> None:
        """Apply every operation in a single transaction."""
        operations = list(operations)
        with self._unit_of_work() as session:
            for operation in operations:
                self._apply(session, operation)
        logger.debug(f"Committed batch of {len(operations)} operation(s)")

    def count(self, collection: str, *filters: Filter) -> int:
        """Count records matching every filter without loading them."""
        model = self._model(collection)
        with self._unit_of_work() as session:
            query = self._filtered(
                session.query(func.count(model.id)), model, collection, filters
            )
            return query.scalar() or 0
