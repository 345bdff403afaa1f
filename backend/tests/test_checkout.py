from datetime import timedelta

from storefront.container import get_container
from storefront.models import checkout_session as cs
from storefront.models.checkout_session import CheckoutSession
from storefront.models.inventory import Inventory
from storefront.models.product import ProductVariant
from storefront.services.checkout_service import CheckoutService
from storefront.utils.clock import utcnow

from helpers import ADDRESS, add_to_cart, open_session, user


def test_empty_cart_cannot_check_out(client, catalogue):
    res = client.post(
        "/api/checkout/sessions",
        json={"shipping_method": "standard", "shipping_address": ADDRESS},
        headers=user("u-1"),
    )
    assert res.status_code == 400


def test_session_snapshots_cart_and_totals(client, catalogue):
    h = user("u-1")
    add_to_cart(client, h, catalogue["mug"], 4)
    res = client.post(
        "/api/checkout/sessions",
        json={"shipping_method": "express", "shipping_address": ADDRESS, "discount_code": "SAVE10"},
        headers=h,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["session_id"].startswith("cs_")
    assert body["session_id"] in body["redirect_url"]

    s = client.get(f"/api/checkout/sessions/{body['session_id']}", headers=h).json()
    assert s["status"] == "PENDING"
    assert s["subtotal_cents"] == 10000
    assert s["shipping_cents"] == 1299
    # CA 7.25% of subtotal + shipping
    assert s["tax_cents"] == 819
    assert s["discount_cents"] == 1000
    assert s["total_cents"] == 10000 + 1299 + 819 - 1000
    assert s["discount_code"] == "SAVE10"
    assert s["lines"][0]["product_name"] == "Stoneware Mug"
    assert s["lines"][0]["unit_price_cents"] == 2500


def test_snapshot_keeps_price_after_catalogue_change(client, catalogue, db):
    h = user("u-1")
    add_to_cart(client, h, catalogue["mug"], 1)
    sid = open_session(client, h)
    db.query(ProductVariant).filter(ProductVariant.id == catalogue["mug"]).update({"price_cents": 9999})
    db.commit()
    s = client.get(f"/api/checkout/sessions/{sid}", headers=h).json()
    assert s["lines"][0]["unit_price_cents"] == 2500


def test_deactivated_product_blocks_checkout(client, catalogue, db):
    h = user("u-1")
    add_to_cart(client, h, catalogue["mug"], 1)
    db.query(ProductVariant).filter(ProductVariant.id == catalogue["mug"]).update({"active": False})
    db.commit()
    res = client.post(
        "/api/checkout/sessions",
        json={"shipping_method": "standard", "shipping_address": ADDRESS},
        headers=h,
    )
    assert res.status_code == 400


def test_stock_is_rechecked_at_checkout(client, catalogue, db):
    h = user("u-1")
    add_to_cart(client, h, catalogue["mug"], 5)
    db.query(Inventory).filter(Inventory.variant_id == catalogue["mug"]).update({"quantity": 3})
    db.commit()
    res = client.post(
        "/api/checkout/sessions",
        json={"shipping_method": "standard", "shipping_address": ADDRESS},
        headers=h,
    )
    assert res.status_code == 409
    assert res.json()["code"] == "INSUFFICIENT_STOCK"


def test_exhausted_discount_blocks_checkout(client, catalogue):
    h = user("u-1")
    add_to_cart(client, h, catalogue["mug"], 1)
    res = client.post(
        "/api/checkout/sessions",
        json={"shipping_method": "standard", "shipping_address": ADDRESS, "discount_code": "USEDUP"},
        headers=h,
    )
    assert res.status_code == 400


def test_unknown_shipping_method(client, catalogue):
    h = user("u-1")
    add_to_cart(client, h, catalogue["mug"], 1)
    res = client.post(
        "/api/checkout/sessions",
        json={"shipping_method": "drone", "shipping_address": ADDRESS},
        headers=h,
    )
    assert res.status_code == 400


def test_billing_defaults_to_shipping(client, catalogue, db):
    h = user("u-1")
    add_to_cart(client, h, catalogue["gift"], 1)
    sid = open_session(client, h)
    session = db.get(CheckoutSession, sid)
    assert session.billing_address == session.shipping_address
    assert session.shipping_address["postal_code"] == "94105"


def test_several_pending_sessions_per_cart(client, catalogue):
    h = user("u-1")
    add_to_cart(client, h, catalogue["gift"], 1)
    assert open_session(client, h) != open_session(client, h)


def test_cancel_session(client, catalogue):
    h = user("u-1")
    add_to_cart(client, h, catalogue["gift"], 1)
    sid = open_session(client, h)

    res = client.post(f"/api/checkout/sessions/{sid}/cancel", headers=user("someone-else"))
    assert res.status_code == 403

    res = client.post(f"/api/checkout/sessions/{sid}/cancel", headers=h)
    assert res.status_code == 200
    assert res.json()["status"] == "CANCELLED"

    res = client.post(f"/api/checkout/sessions/{sid}/cancel", headers=h)
    assert res.status_code == 409


def test_session_is_private(client, catalogue):
    h = user("u-1")
    add_to_cart(client, h, catalogue["gift"], 1)
    sid = open_session(client, h)
    assert client.get(f"/api/checkout/sessions/{sid}", headers=user("u-2")).status_code == 403
    assert client.get("/api/checkout/sessions/cs_missing", headers=h).status_code == 404


def test_gateway_expiry_webhook(client, catalogue):
    h = user("u-1")
    add_to_cart(client, h, catalogue["gift"], 1)
    sid = open_session(client, h)
    res = client.post("/api/webhooks/payment", json={"type": "checkout.session.expired", "session_id": sid})
    assert res.status_code == 200
    assert res.json()["status"] == "EXPIRED"


def test_expire_overdue_sweep(client, catalogue, db):
    h = user("u-1")
    add_to_cart(client, h, catalogue["gift"], 1)
    stale = open_session(client, h)
    fresh = open_session(client, h)
    db.query(CheckoutSession).filter(CheckoutSession.id == stale).update(
        {"expires_at": utcnow() - timedelta(minutes=5)}
    )
    db.commit()

    c = get_container()
    assert CheckoutService(db, c.payment_gateway).expire_overdue() == 1
    db.expire_all()
    assert db.get(CheckoutSession, stale).status == cs.EXPIRED
    assert db.get(CheckoutSession, fresh).status == cs.PENDING
