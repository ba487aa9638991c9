"""End-to-end tests through the HTTP layer."""

import pytest
from fastapi.testclient import TestClient

from qrorder.main import create_app
from qrorder.repositories import Repositories
from qrorder.repositories.memory import InMemoryOrderRepository, InMemoryTableRepository
from qrorder.services.payment.mock import DemoPaymentService
from qrorder.services.payment.stripe import StripePaymentService
from tests.helpers import PHO, TEA, WEBHOOK_SECRET, make_settings, sign_payload, stripe_event


def build_client(payment_service=None, **settings):
    settings.setdefault("seed_demo_tables", 3)
    app = create_app(
        settings=make_settings(**settings),
        repositories=Repositories(orders=InMemoryOrderRepository(), tables=InMemoryTableRepository()),
        payment_service=payment_service or DemoPaymentService(),
    )
    return TestClient(app)


@pytest.fixture
def client():
    with build_client() as client:
        yield client


def auth(client, user_id, role="customer"):
    response = client.post("/api/auth/dev-token", json={"user_id": user_id, "role": role})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['data']['access_token']}"}


def place(client, headers=None, **body):
    body.setdefault("items", [PHO, TEA])
    response = client.post("/api/orders", json=body, headers=headers or {})
    assert response.status_code == 201, response.text
    return response.json()["data"]


# =============================================================================
# ROOT & HEALTH
# =============================================================================

def test_root_and_health(client):
    assert client.get("/").json()["environment"] == "development"

    health = client.get("/health").json()
    assert health["status"] == "operational"
    assert health["payment_provider"] == "stripe-demo"


# =============================================================================
# ORDERS
# =============================================================================

def test_guest_places_order(client):
    response = client.post("/api/orders", json={"items": [PHO, TEA], "meta": {"qr_slug": "table-1"}})

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert set(body["data"]) == {"id", "order_number", "status", "totals", "created_at"}
    assert body["data"]["totals"] == 9.48
    assert body["data"]["status"] == "placed"


def test_invalid_item_reports_field(client):
    response = client.post("/api/orders", json={"items": [PHO, {"name": "Tea", "price": "abc"}]})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["errors"] == [{"field": "items[1].price", "message": "Item 'Tea' at index 1 has an invalid price"}]


def test_huge_price_and_quantity_are_field_errors(client):
    response = client.post("/api/orders", json={"items": [
        {"name": "Pho", "price": 1e30, "qty": 1},
        {"name": "Tea", "price": 2, "qty": 10**30},
    ]})

    assert response.status_code == 400
    fields = [e["field"] for e in response.json()["errors"]]
    assert fields == ["items[0].price", "items[1].qty"]


def test_empty_order_is_rejected(client):
    response = client.post("/api/orders", json={"items": []})
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "items"


def test_malformed_body_is_a_400(client):
    response = client.post("/api/orders", json={"items": ["pho"]})
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "items[0]"


def test_order_on_scanned_table(client):
    table = client.get("/api/tables/qr/table-2").json()["data"]
    order = place(client, table_id=table["id"])

    staff = auth(client, "kim", "staff")
    listed = client.get(f"/api/orders?table_id={table['id']}", headers=staff).json()["data"]
    assert [o["id"] for o in listed] == [order["id"]]


def test_unknown_table_is_404(client):
    response = client.post("/api/orders", json={"items": [PHO], "table_id": "nope"})
    assert response.status_code == 404


def test_listing_requires_a_token(client):
    response = client.get("/api/orders")
    assert response.status_code == 401
    assert response.json()["success"] is False

    bad = client.get("/api/orders", headers={"Authorization": "Bearer forged"})
    assert bad.status_code == 401


def test_customers_see_only_their_orders(client):
    alice, bob = auth(client, "alice"), auth(client, "bob")
    mine = place(client, alice)
    place(client, bob)
    place(client)

    listed = client.get("/api/orders?status=ready", headers=alice).json()["data"]
    assert [o["id"] for o in listed] == [mine["id"]]
    assert listed[0]["customer_id"] == "alice"

    staff = auth(client, "kim", "staff")
    assert len(client.get("/api/orders", headers=staff).json()["data"]) == 3


def test_order_visibility(client):
    alice, bob = auth(client, "alice"), auth(client, "bob")
    guest = place(client)
    mine = place(client, alice)

    assert client.get(f"/api/orders/{guest['id']}").status_code == 200
    assert client.get(f"/api/orders/{mine['id']}").status_code == 401
    assert client.get(f"/api/orders/{mine['id']}", headers=bob).status_code == 403
    assert client.get(f"/api/orders/{mine['id']}", headers=alice).status_code == 200
    assert client.get("/api/orders/missing").status_code == 404


def test_optional_auth_treats_bad_token_as_anonymous(client):
    order = place(client, {"Authorization": "Bearer forged"})
    detail = client.get(f"/api/orders/{order['id']}").json()["data"]
    assert detail["customer_id"] is None


def test_staff_drive_the_workflow(client):
    staff, alice = auth(client, "kim", "staff"), auth(client, "alice")
    order = place(client, alice)

    for status in ("preparing", "ready", "served", "completed"):
        response = client.patch(f"/api/orders/{order['id']}/status", json={"status": status}, headers=staff)
        assert response.json()["data"] == {"id": order["id"], "status": status}

    assert client.patch(
        f"/api/orders/{order['id']}/status", json={"status": "ready"}, headers=alice
    ).status_code == 403
    assert client.patch(
        f"/api/orders/{order['id']}/status", json={"status": "cooking"}, headers=staff
    ).status_code == 400


def test_strict_transitions():
    with build_client(strict_status_transitions=True) as strict:
        staff = auth(strict, "kim", "staff")
        order = place(strict)
        response = strict.patch(f"/api/orders/{order['id']}/status", json={"status": "served"}, headers=staff)
        assert response.status_code == 409


def test_payment_override(client):
    admin = auth(client, "root", "admin")
    order = place(client)

    response = client.patch(f"/api/orders/{order['id']}/payment", json={"status": "paid"}, headers=admin)

    assert response.status_code == 200
    assert response.json()["data"]["payment"]["status"] == "paid"


def test_cancel(client):
    alice, bob = auth(client, "alice"), auth(client, "bob")
    order = place(client, alice)

    assert client.post(f"/api/orders/{order['id']}/cancel").status_code == 401
    assert client.post(f"/api/orders/{order['id']}/cancel", headers=bob).status_code == 403

    response = client.post(f"/api/orders/{order['id']}/cancel", headers=alice)
    assert response.json()["data"]["status"] == "canceled"


# =============================================================================
# PAYMENTS
# =============================================================================

def test_demo_payment_intent(client):
    alice = auth(client, "alice")
    order = place(client, alice)

    response = client.post("/api/payments/create-intent", json={"order_id": order["id"]}, headers=alice)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["amount"] == 948
    assert data["currency"] == "usd"
    assert data["provider"] == "stripe-demo"
    assert data["client_secret"].startswith("demo_client_secret_")
    assert data["payment_intent_id"].startswith("pi_demo_")

    payment = client.get(f"/api/orders/{order['id']}", headers=alice).json()["data"]["payment"]
    assert payment == {"status": "pending", "provider": "stripe-demo", "payment_intent_id": data["payment_intent_id"]}


def test_payment_intent_needs_owner(client):
    alice, bob = auth(client, "alice"), auth(client, "bob")
    order = place(client, alice)

    assert client.post("/api/payments/create-intent", json={"order_id": order["id"]}).status_code == 401
    assert client.post(
        "/api/payments/create-intent", json={"order_id": order["id"]}, headers=bob
    ).status_code == 403


def test_webhook_in_demo_mode_is_acknowledged(client):
    response = client.post("/api/payments/webhook", content=b"{}", headers={"Stripe-Signature": "t=1,v1=x"})
    assert response.status_code == 200
    assert response.json()["received"] is True
    assert response.json()["applied"] is False


def test_signed_webhook_marks_order_paid():
    stripe_service = StripePaymentService(api_key="sk_test_dummy", webhook_secret=WEBHOOK_SECRET)
    with build_client(payment_service=stripe_service) as client:
        order = place(client)
        payload = stripe_event(
            "payment_intent.succeeded",
            {"id": "pi_123", "metadata": {"order_id": order["id"]}},
        )

        rejected = client.post(
            "/api/payments/webhook",
            content=payload.encode(),
            headers={"Stripe-Signature": sign_payload(payload, secret="whsec_wrong")},
        )
        assert rejected.status_code == 400
        assert rejected.json()["success"] is False

        accepted = client.post(
            "/api/payments/webhook",
            content=payload.encode(),
            headers={"Stripe-Signature": sign_payload(payload), "Content-Type": "application/json"},
        )
        assert accepted.status_code == 200
        assert accepted.json()["applied"] is True

        payment = client.get(f"/api/orders/{order['id']}").json()["data"]["payment"]
        assert payment["status"] == "paid"
        assert payment["payment_intent_id"] == "pi_123"


# =============================================================================
# TABLES & AUTH
# =============================================================================

def test_scanning_a_table_starts_a_new_session(client):
    first = client.get("/api/tables/qr/table-1").json()["data"]
    second = client.get("/api/tables/qr/table-1").json()["data"]

    assert first["number"] == 1
    assert first["active_session_id"] and second["active_session_id"]
    assert first["active_session_id"] != second["active_session_id"]
    assert client.get("/api/tables/qr/table-99").status_code == 404


def test_refresh_tokens(client):
    pair = client.post("/api/auth/dev-token", json={"user_id": "alice"}).json()["data"]

    response = client.post("/api/auth/refresh", json={"refresh_token": pair["refresh_token"]})
    assert response.status_code == 200
    access = response.json()["data"]["access_token"]
    assert client.get("/api/orders", headers={"Authorization": f"Bearer {access}"}).status_code == 200

    assert client.post("/api/auth/refresh", json={"refresh_token": pair["access_token"]}).status_code == 401


def test_dev_tokens_are_disabled_outside_development():
    with build_client(env_mode="production") as client:
        response = client.post("/api/auth/dev-token", json={"user_id": "mallory", "role": "admin"})
        assert response.status_code == 404
