"""Tests for the HTTP server."""

import pytest
from fastapi.testclient import TestClient

from database import InMemoryDocumentStore

ACCESS_KEY = "35240312345678000190550010000012341000012345"


def _make_client(strict: bool = False) -> TestClient:
    import server.app as app_module
    from server.app import AppState, create_app
    from server.config import Settings

    app = create_app()
    app_module.app_state = AppState(
        Settings(strict_transitions=strict, audit_log_path=None),
        store=InMemoryDocumentStore(),
    )
    return TestClient(app)


@pytest.fixture
def client():
    """Create test client backed by an in-memory store."""
    import server.app as app_module

    yield _make_client()

    app_module.app_state = None


@pytest.fixture
def strict_client():
    """Create test client enforcing the state machines."""
    import server.app as app_module

    yield _make_client(strict=True)

    app_module.app_state = None


def create_quote(client, price="1250.00", email="ana@example.com"):
    response = client.post(
        "/quotes",
        json={
            "client_name": "Ana Souza",
            "client_email": email,
            "price": price,
            "delivery_date": "2024-04-01",
            "product": {"model": "oak table"},
        },
    )
    assert response.status_code == 201
    return response.json()["data"]["quote"]


def create_order(client, price="1250.00", email="ana@example.com"):
    quote = create_quote(client, price=price, email=email)
    response = client.post(f"/quotes/{quote['id']}/order")
    assert response.status_code == 201
    return response.json()["data"]["order"]


def create_invoice(client, order_id, number="NF-1", amount="1250.00", access_key=None):
    return client.post(
        "/invoices",
        json={
            "order_id": order_id,
            "invoice_number": number,
            "issue_date": "2024-03-05",
            "amount": amount,
            "access_key": access_key,
        },
    )


class TestHealth:
    """Test health check endpoint."""

    def test_health(self, client):
        """Test health reports counts."""
        create_order(client)

        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["strict_transitions"] is False
        assert data["clients_count"] == 1
        assert data["quotes_count"] == 1
        assert data["orders_count"] == 1
        assert data["invoices_count"] == 0

    def test_health_counts_without_loading_records(self):
        """Test health uses store counts instead of listing collections."""
        import server.app as app_module
        from server.app import AppState, create_app
        from server.config import Settings

        class CountOnlyStore(InMemoryDocumentStore):
            def query(self, collection, *filters, **kwargs):
                raise AssertionError(f"{collection} was loaded")

        store = CountOnlyStore()
        store.insert("quotes", {"status": "pending"})
        store.insert("quotes", {"status": "approved"})
        app_module.app_state = AppState(Settings(audit_log_path=None), store=store)
        try:
            response = TestClient(create_app()).get("/health")
        finally:
            app_module.app_state = None

        assert response.status_code == 200
        assert response.json()["quotes_count"] == 2
        assert response.json()["clients_count"] == 0

    def test_not_ready(self):
        """Test 503 before the app state is initialized."""
        import server.app as app_module
        from server.app import create_app

        app_module.app_state = None
        response = TestClient(create_app()).get("/health")

        assert response.status_code == 503


class TestClientEndpoints:
    """Test client endpoints."""

    def test_create_client(self, client):
        """Test registering a client."""
        response = client.post(
            "/clients",
            json={"name": "Carla Dias", "email": "Carla@Example.com", "phone": "11 5555-0000"},
        )

        assert response.status_code == 201
        created = response.json()["data"]["client"]
        assert created["email"] == "carla@example.com"
        assert created["company"] is None

    def test_duplicate_email(self, client):
        """Test a repeated email is a conflict."""
        client.post("/clients", json={"name": "Carla Dias", "email": "carla@example.com"})

        response = client.post("/clients", json={"name": "Carla D.", "email": "carla@example.com"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_CLIENT_EMAIL"

    def test_invalid_client(self, client):
        """Test a short name is rejected."""
        response = client.post("/clients", json={"name": "Al", "email": "al@example.com"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_list_clients(self, client):
        """Test clients are listed by name."""
        client.post("/clients", json={"name": "Marta Reis", "email": "marta@example.com"})
        client.post("/clients", json={"name": "Bruno Lima", "email": "bruno@example.com"})

        response = client.get("/clients")

        assert response.status_code == 200
        assert [c["name"] for c in response.json()] == ["Bruno Lima", "Marta Reis"]

    def test_overview(self, client):
        """Test the overview lists the client's quotes and orders."""
        registered = client.post(
            "/clients", json={"name": "Ana Souza", "email": "ana@example.com"}
        ).json()["data"]["client"]
        order = create_order(client, price="1250.00")
        create_invoice(client, order["id"], amount="250.00")

        response = client.get(f"/clients/{registered['id']}/overview")

        assert response.status_code == 200
        data = response.json()
        assert data["client"]["id"] == registered["id"]
        assert len(data["quotes"]) == 1
        assert [o["id"] for o in data["orders"]] == [order["id"]]
        assert data["total_ordered"] == "1250.00"
        assert data["total_outstanding"] == "1000.00"

    def test_overview_missing_client(self, client):
        """Test 404 for an unknown client."""
        response = client.get("/clients/missing/overview")

        assert response.status_code == 404


class TestQuoteEndpoints:
    """Test quote endpoints."""

    def test_create_quote(self, client):
        """Test creating a quote."""
        quote = create_quote(client, price="990.5")

        assert quote["status"] == "pending"
        assert quote["price"] == "990.50"
        assert quote["product"] == {"model": "oak table"}

    def test_create_quote_invalid_price(self, client):
        """Test non-positive prices are rejected with 422."""
        response = client.post(
            "/quotes",
            json={"client_name": "Ana", "client_email": "ana@example.com", "price": "0"},
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_list_and_get_quotes(self, client):
        """Test listing and fetching quotes."""
        quote = create_quote(client)

        listed = client.get("/quotes").json()
        fetched = client.get(f"/quotes/{quote['id']}").json()

        assert [q["id"] for q in listed] == [quote["id"]]
        assert fetched["client_email"] == "ana@example.com"

    def test_get_missing_quote(self, client):
        """Test 404 for unknown quotes."""
        response = client.get("/quotes/missing")

        assert response.status_code == 404
        assert response.json()["code"] == "QUOTE_NOT_FOUND"

    def test_set_quote_status(self, client):
        """Test rejecting a quote."""
        quote = create_quote(client)

        response = client.post(f"/quotes/{quote['id']}/status", json={"status": "rejected"})

        assert response.status_code == 200
        assert response.json()["data"]["quote"]["status"] == "rejected"

    def test_set_quote_status_invalid(self, client):
        """Test pending is not an accepted decision."""
        quote = create_quote(client)

        response = client.post(f"/quotes/{quote['id']}/status", json={"status": "pending"})

        assert response.status_code == 422

    def test_strict_refusal(self, strict_client):
        """Test strict mode answers 409 for a refused transition."""
        quote = create_quote(strict_client)
        strict_client.post(f"/quotes/{quote['id']}/status", json={"status": "rejected"})

        response = strict_client.post(
            f"/quotes/{quote['id']}/status", json={"status": "approved"}
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_TRANSITION"

    def test_generate_order(self, client):
        """Test generating an order approves the quote."""
        quote = create_quote(client)

        response = client.post(f"/quotes/{quote['id']}/order")

        assert response.status_code == 201
        order = response.json()["data"]["order"]
        assert order["status"] == "processing"
        assert order["outstanding"] == "1250.00"
        assert client.get(f"/quotes/{quote['id']}").json()["status"] == "approved"

    def test_generate_order_twice(self, client):
        """Test 409 for a second order from the same quote."""
        quote = create_quote(client)
        client.post(f"/quotes/{quote['id']}/order")

        response = client.post(f"/quotes/{quote['id']}/order")

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "DUPLICATE_ORDER_FOR_QUOTE"
        assert len(client.get("/orders").json()) == 1

    def test_generate_order_missing_quote(self, client):
        """Test 404 when the quote does not exist."""
        response = client.post("/quotes/missing/order")

        assert response.status_code == 404


class TestOrderEndpoints:
    """Test order endpoints."""

    def test_list_and_get(self, client):
        """Test listing and fetching orders."""
        order = create_order(client)

        assert [o["id"] for o in client.get("/orders").json()] == [order["id"]]
        assert client.get(f"/orders/{order['id']}").json()["amount"] == "1250.00"

    def test_billable_excludes_cancelled(self, client):
        """Test cancelled orders are not billable."""
        active = create_order(client, email="a@example.com")
        cancelled = create_order(client, email="b@example.com")
        client.post(f"/orders/{cancelled['id']}/status", json={"status": "cancelled"})

        billable = client.get("/orders/billable").json()

        assert [o["id"] for o in billable] == [active["id"]]
        assert len(client.get("/orders").json()) == 2

    def test_mark_billed(self, client):
        """Test marking an order as billed."""
        order = create_order(client)

        response = client.post(f"/orders/{order['id']}/bill")

        assert response.status_code == 200
        fetched = client.get(f"/orders/{order['id']}").json()
        assert fetched["status"] == "invoiced"
        assert fetched["outstanding"] == "0.00"

    def test_set_status_invoiced_rejected(self, client):
        """Test orders cannot be set to invoiced directly."""
        order = create_order(client)

        response = client.post(f"/orders/{order['id']}/status", json={"status": "invoiced"})

        assert response.status_code == 422

    def test_get_missing_order(self, client):
        """Test 404 for unknown orders."""
        response = client.get("/orders/missing")

        assert response.status_code == 404
        assert response.json()["code"] == "ORDER_NOT_FOUND"


class TestInvoiceEndpoints:
    """Test invoice endpoints."""

    def test_generate_invoice(self, client):
        """Test registering a full invoice settles the order."""
        order = create_order(client)

        response = create_invoice(client, order["id"], access_key=ACCESS_KEY)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["invoice"]["status"] == "paid"
        assert data["invoice"]["access_key"] == ACCESS_KEY
        assert data["order"]["status"] == "invoiced"
        assert data["order"]["outstanding"] == "0.00"

    def test_duplicate_invoice_number(self, client):
        """Test 409 for a reused invoice number."""
        order = create_order(client)
        create_invoice(client, order["id"], amount="100.00")

        response = create_invoice(client, order["id"], amount="100.00")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_INVOICE_NUMBER"
        assert client.get(f"/orders/{order['id']}").json()["outstanding"] == "1150.00"

    def test_bad_access_key(self, client):
        """Test 422 for an access key of the wrong length."""
        order = create_order(client)

        response = create_invoice(client, order["id"], access_key="123")

        assert response.status_code == 422

    def test_invoice_missing_order(self, client):
        """Test 404 when invoicing an unknown order."""
        response = create_invoice(client, "missing")

        assert response.status_code == 404

    def test_cancel_invoice(self, client):
        """Test cancelling restores the order balance."""
        order = create_order(client)
        invoice = create_invoice(client, order["id"]).json()["data"]["invoice"]

        response = client.post(f"/invoices/{invoice['id']}/cancel")

        assert response.status_code == 200
        assert client.get(f"/invoices/{invoice['id']}").json()["status"] == "cancelled"
        fetched = client.get(f"/orders/{order['id']}").json()
        assert fetched["outstanding"] == "1250.00"
        assert fetched["status"] == "processing"

    def test_list_invoices(self, client):
        """Test listing invoices."""
        order = create_order(client)
        create_invoice(client, order["id"], number="NF-1", amount="10")
        create_invoice(client, order["id"], number="NF-2", amount="10")

        listed = client.get("/invoices").json()

        assert {i["invoice_number"] for i in listed} == {"NF-1", "NF-2"}
        assert all(i["total"] == "10.00" for i in listed)

    def test_get_missing_invoice(self, client):
        """Test 404 for unknown invoices."""
        response = client.get("/invoices/missing")

        assert response.status_code == 404
        assert response.json()["code"] == "INVOICE_NOT_FOUND"
