"""
Pytest configuration and fixtures.

Environment variables are loaded from .env BEFORE test collection so
settings-dependent fixtures see them.
"""

from datetime import date, datetime, timedelta

import pytest
from dotenv import load_dotenv

from database import DatabaseDocumentStore, InMemoryDocumentStore, init_db, reset_engine
from lifecycle import AuditLog, CommerceLifecycleEngine, LifecyclePolicy

# Load environment variables before pytest collects tests
load_dotenv()


class FakeClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 9, 0)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(minutes=1)
        return current


@pytest.fixture
def clock():
    """Fresh deterministic clock."""
    return FakeClock()


@pytest.fixture
def memory_store():
    """Fresh in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def db_store():
    """Fresh SQLite in-memory database store."""
    reset_engine()
    engine = init_db("sqlite:///:memory:")

    yield DatabaseDocumentStore(engine)

    reset_engine()


@pytest.fixture(params=["memory", "database"])
def store(request):
    """Run the test against both store implementations."""
    if request.param == "memory":
        yield InMemoryDocumentStore()
        return

    reset_engine()
    engine = init_db("sqlite:///:memory:")
    yield DatabaseDocumentStore(engine)
    reset_engine()


@pytest.fixture
def audit_log():
    return AuditLog()


@pytest.fixture
def engine(store, clock, audit_log):
    """Lifecycle engine with the default (loose) policy."""
    return CommerceLifecycleEngine(store=store, clock=clock, audit_log=audit_log)


@pytest.fixture
def strict_engine(store, clock, audit_log):
    """Lifecycle engine enforcing the state machines."""
    return CommerceLifecycleEngine(
        store=store,
        clock=clock,
        policy=LifecyclePolicy(strict_transitions=True),
        audit_log=audit_log,
    )


@pytest.fixture
def make_quote():
    """Factory creating a quote through an engine."""

    def _make(engine, price="1250.00", email="ana@example.com", name="Ana Souza", **kwargs):
        return engine.create_quote(
            client_name=name,
            client_email=email,
            price=price,
            delivery_date=kwargs.pop("delivery_date", date(2024, 4, 1)),
            product=kwargs.pop("product", {"model": "oak table", "size": "180x90"}),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_order(make_quote):
    """Factory creating an order (via a quote) through an engine."""

    def _make(engine, price="1250.00", email="ana@example.com", **kwargs):
        quote = make_quote(engine, price=price, email=email, **kwargs)
        return engine.generate_order_from_quote(quote)

    return _make
