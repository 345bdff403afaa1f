ADMIN = {"X-Admin-Key": "test-admin-key"}

ADDRESS = {
    "name": "Ada Lovelace",
    "line1": "1 Market St",
    "city": "San Francisco",
    "state": "CA",
    "postal_code": "94105",
    "country": "US",
}


def user(user_id):
    return {"X-User-Id": user_id}


def add_to_cart(client, headers, variant_id, quantity=1):
    r = client.post("/api/cart/items", json={"variant_id": variant_id, "quantity": quantity}, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


def open_session(client, headers, **extra):
    payload = {"shipping_method": "standard", "shipping_address": ADDRESS}
    payload.update(extra)
    r = client.post("/api/checkout/sessions", json=payload, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()["session_id"]


def pay(client, session_id, headers=None):
    return client.post(
        "/api/webhooks/payment",
        json={"type": "checkout.session.completed", "session_id": session_id},
        headers=headers or {},
    )
