import pytest

from storefront.utils.security import require_user

TOKEN_URL = "/api/v1/payments/token"
PAY_URL = "/api/v1/payments/payment"


# --- GET /token ---

def test_token_returns_gateway_payload(client, gateway):
    r = client.get(TOKEN_URL)
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["clientToken"].startswith("fake_token_")
    assert gateway.calls == [{"method": "generate_client_token"}]


def test_token_does_not_require_authentication(app, client):
    app.dependency_overrides.pop(require_user, None)
    assert client.get(TOKEN_URL).status_code == 200


def test_token_failure_envelope(client, gateway):
    gateway.configure(should_succeed=False, failure_reason="Authentication failed")
    r = client.get(TOKEN_URL)
    assert r.status_code == 500
    assert r.json() == {
        "success": False,
        "message": "Error generating payment token",
        "error": "Authentication failed",
    }


# --- POST /payment: validation ---

@pytest.mark.parametrize("payload,message", [
    ({}, "Payment nonce is required"),
    ({"cart": [{"id": "p1", "price": 100}]}, "Payment nonce is required"),
    ({"nonce": "fake-valid-nonce"}, "Shopping cart is required"),
    ({"nonce": "fake-valid-nonce", "cart": []}, "Shopping cart cannot be empty"),
    ({"nonce": "fake-valid-nonce", "cart": {"id": "p1"}}, "Shopping cart is invalid"),
    ({"nonce": "fake-valid-nonce", "cart": [{"id": "ghost", "price": 1}]}, "Unknown product in cart: ghost"),
])
def test_payment_validation_errors_are_400(client, gateway, catalog, fake_db, payload, message):
    r = client.post(PAY_URL, json=payload)
    assert r.status_code == 400
    assert r.json() == {"success": False, "message": message}
    assert gateway.sales() == []
    assert fake_db.rows("orders") == []


def test_payment_invalid_json_body_is_treated_as_empty(client, gateway):
    r = client.post(PAY_URL, content=b"{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json()["message"] == "Payment nonce is required"
    assert gateway.sales() == []


def test_payment_requires_authentication(app, client, gateway, cart):
    app.dependency_overrides.pop(require_user, None)
    r = client.post(PAY_URL, json={"nonce": "fake-valid-nonce", "cart": cart})
    assert r.status_code == 401
    assert r.json() == {"detail": "Not authenticated"}
    assert gateway.sales() == []


# --- POST /payment: succès / échecs ---

def test_payment_success(client, gateway, cart, fake_db):
    r = client.post(PAY_URL, json={"nonce": "fake-valid-nonce", "cart": cart})
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Payment done"}

    assert gateway.sales()[0]["amount"] == 600
    orders = fake_db.rows("orders")
    assert len(orders) == 1
    assert orders[0]["buyer"] == "test-user"
    assert orders[0]["products"] == ["p1", "p2", "p3"]
    assert orders[0]["status"] == "Not Process"


def test_payment_declined_envelope(client, gateway, cart, fake_db):
    gateway.configure(should_succeed=False, failure_reason="Card declined")
    r = client.post(PAY_URL, json={"nonce": "fake-declined-nonce", "cart": cart})
    assert r.status_code == 500
    assert r.json() == {"success": False, "message": "Error processing payment", "error": "Card declined"}
    assert fake_db.rows("orders") == []


def test_payment_order_save_failure_envelope(client, gateway, cart, fake_db):
    fake_db.fail("orders", "insert", RuntimeError("db down"))
    r = client.post(PAY_URL, json={"nonce": "fake-valid-nonce", "cart": cart})
    assert r.status_code == 500
    assert r.json() == {"success": False, "message": "Error processing payment", "error": "db down"}
    assert len(gateway.sales()) == 1
    assert fake_db.rows("checkout_attempts")[0]["status"] == "capture_unrecorded"


def test_payment_catalog_unavailable_envelope(client, gateway, cart, fake_db):
    fake_db.fail("products", "select", ConnectionError("catalog unreachable"))
    r = client.post(PAY_URL, json={"nonce": "fake-valid-nonce", "cart": cart})
    assert r.status_code == 500
    assert r.json() == {"success": False, "message": "Error processing payment", "error": "catalog unreachable"}
    assert gateway.sales() == []


# --- Idempotency-Key ---

def test_payment_replay_with_same_key_charges_once(client, gateway, cart, fake_db):
    headers = {"Idempotency-Key": "order-abc"}
    first = client.post(PAY_URL, json={"nonce": "fake-valid-nonce", "cart": cart}, headers=headers)
    second = client.post(PAY_URL, json={"nonce": "fake-valid-nonce", "cart": cart}, headers=headers)

    assert first.status_code == second.status_code == 200
    assert len(gateway.sales()) == 1
    assert len(fake_db.rows("orders")) == 1


def test_payment_key_reused_for_other_cart_is_409(client, gateway, cart):
    headers = {"Idempotency-Key": "order-xyz"}
    assert client.post(PAY_URL, json={"nonce": "n", "cart": cart}, headers=headers).status_code == 200
    r = client.post(PAY_URL, json={"nonce": "n", "cart": cart[:1]}, headers=headers)
    assert r.status_code == 409
    assert r.json() == {"success": False, "message": "Idempotency key already used"}
    assert len(gateway.sales()) == 1


def test_payment_key_taken_after_lookup_is_409(monkeypatch, client, gateway, cart, fake_db):
    # Une autre requête insère la tentative juste après notre lecture
    from storefront.payments import repository as payments_repo

    def _lookup_then_lose_race(key):
        fake_db.tables.setdefault("checkout_attempts", []).append(
            {"idempotency_key": key, "attempt_no": 1, "status": payments_repo.SUBMITTED}
        )
        return None

    monkeypatch.setattr(payments_repo, "get_attempt", _lookup_then_lose_race)
    r = client.post(PAY_URL, json={"nonce": "n", "cart": cart}, headers={"Idempotency-Key": "late"})
    assert r.status_code == 409
    assert r.json() == {"success": False, "message": "Payment already in progress"}
    assert gateway.sales() == []
    assert fake_db.rows("orders") == []


# --- Rate limit ---

def test_payment_rate_limited_with_memory_fallback(monkeypatch, app, client, gateway):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    app.state._rl_store = {}
    try:
        codes = [client.post(PAY_URL, json={}).status_code for _ in range(11)]
    finally:
        app.state._rl_store = {}
    assert codes[:10] == [400] * 10
    assert codes[10] == 429
