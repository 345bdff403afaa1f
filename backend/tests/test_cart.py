from decimal import Decimal

from storefront.models.cart import Cart
from storefront.models.discount import PERCENTAGE
from storefront.models.product import Product
from storefront.repositories.discount_repo import DiscountRepository

from helpers import add_to_cart, user


def test_add_item_issues_guest_cookie(client, catalogue):
    res = client.post("/api/cart/items", json={"variant_id": catalogue["mug"], "quantity": 2})
    assert res.status_code == 200
    assert "cart_session" in res.cookies
    body = res.json()
    assert body["subtotal_cents"] == 5000
    assert [it["quantity"] for it in body["items"]] == [2]


def test_guest_cart_survives_between_requests(client, catalogue):
    add_to_cart(client, {}, catalogue["mug"])
    res = client.get("/api/cart")
    assert res.status_code == 200
    assert len(res.json()["items"]) == 1


def test_same_variant_merges_into_one_line(client, catalogue):
    h = user("u-1")
    add_to_cart(client, h, catalogue["mug"], 1)
    body = add_to_cart(client, h, catalogue["mug"], 2)
    assert len(body["items"]) == 1
    assert body["items"][0]["quantity"] == 3


def test_cumulative_quantity_over_stock_is_rejected(client, catalogue):
    h = user("u-1")
    add_to_cart(client, h, catalogue["tea"], 1)
    res = client.post("/api/cart/items", json={"variant_id": catalogue["tea"], "quantity": 2}, headers=h)
    assert res.status_code == 409
    body = res.json()
    assert body["code"] == "INSUFFICIENT_STOCK"
    assert body["details"] == {"variant_id": catalogue["tea"], "requested": 3, "available": 2}
    # nothing changed
    cart = client.get("/api/cart", headers=h).json()
    assert cart["items"][0]["quantity"] == 1


def test_out_of_stock(client, catalogue):
    res = client.post("/api/cart/items", json={"variant_id": catalogue["sold_out"], "quantity": 1}, headers=user("u-1"))
    assert res.status_code == 409
    assert res.json()["code"] == "OUT_OF_STOCK"


def test_inactive_or_unknown_variant_not_found(client, catalogue):
    h = user("u-1")
    res = client.post("/api/cart/items", json={"variant_id": catalogue["retired"], "quantity": 1}, headers=h)
    assert res.status_code == 404
    res = client.post("/api/cart/items", json={"variant_id": 999999, "quantity": 1}, headers=h)
    assert res.status_code == 404


def test_inactive_product_hides_its_variants(client, catalogue, db):
    db.query(Product).filter(Product.slug == "mug").update({"active": False})
    db.commit()
    res = client.post("/api/cart/items", json={"variant_id": catalogue["mug"], "quantity": 1}, headers=user("u-1"))
    assert res.status_code == 404


def test_quantity_must_be_positive(client, catalogue):
    res = client.post("/api/cart/items", json={"variant_id": catalogue["mug"], "quantity": 0}, headers=user("u-1"))
    assert res.status_code == 400
    assert res.json()["code"] == "BAD_REQUEST"


def test_update_quantity(client, catalogue):
    h = user("u-1")
    item_id = add_to_cart(client, h, catalogue["mug"], 1)["items"][0]["id"]

    res = client.patch(f"/api/cart/items/{item_id}", json={"quantity": 4}, headers=h)
    assert res.status_code == 200
    assert res.json()["items"][0]["quantity"] == 4

    res = client.patch(f"/api/cart/items/{item_id}", json={"quantity": 11}, headers=h)
    assert res.status_code == 409

    res = client.patch(f"/api/cart/items/{item_id}", json={"quantity": -1}, headers=h)
    assert res.status_code == 400

    res = client.patch(f"/api/cart/items/{item_id}", json={"quantity": 0}, headers=h)
    assert res.status_code == 200
    assert res.json()["items"] == []


def test_items_of_other_carts_are_forbidden(client, catalogue):
    item_id = add_to_cart(client, user("owner"), catalogue["mug"])["items"][0]["id"]
    res = client.delete(f"/api/cart/items/{item_id}", headers=user("intruder"))
    assert res.status_code == 403
    res = client.patch(f"/api/cart/items/{item_id}", json={"quantity": 2}, headers=user("intruder"))
    assert res.status_code == 403
    res = client.delete("/api/cart/items/424242", headers=user("intruder"))
    assert res.status_code == 404


def test_remove_and_clear(client, catalogue):
    h = user("u-1")
    add_to_cart(client, h, catalogue["mug"])
    body = add_to_cart(client, h, catalogue["gift"], 2)
    first = body["items"][0]["id"]

    res = client.delete(f"/api/cart/items/{first}", headers=h)
    assert [it["variant_id"] for it in res.json()["items"]] == [catalogue["gift"]]

    res = client.delete("/api/cart", headers=h)
    assert res.status_code == 200
    assert res.json()["items"] == []
    assert res.json()["estimated_total_cents"] == 0


def test_summary_with_discount_and_destination(client, catalogue):
    h = user("u-1")
    add_to_cart(client, h, catalogue["mug"], 4)
    res = client.get(
        "/api/cart",
        params={"discount_code": "save10", "country": "US", "state": "CA"},
        headers=h,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["subtotal_cents"] == 10000
    assert body["estimated_shipping_cents"] == 599
    assert body["estimated_tax_cents"] == 768
    assert body["estimated_discount_cents"] == 1000
    assert body["estimated_total_cents"] == 10000 + 599 + 768 - 1000


def test_fractional_percentage_code_survives_storage(client, catalogue, db):
    DiscountRepository(db).create_or_update("HALFTEN", kind=PERCENTAGE, value=Decimal("12.5"))
    db.commit()
    h = user("u-1")
    add_to_cart(client, h, catalogue["mug"], 4)
    body = client.get("/api/cart", params={"discount_code": "halften"}, headers=h).json()
    assert body["estimated_discount_cents"] == 1250


def test_summary_rejects_unusable_discount(client, catalogue):
    h = user("u-1")
    add_to_cart(client, h, catalogue["mug"], 1)
    for code in ("USEDUP", "OLD", "NOPE"):
        res = client.get("/api/cart", params={"discount_code": code}, headers=h)
        assert res.status_code == 400, code
    # SAVE10 needs a 50.00 subtotal
    res = client.get("/api/cart", params={"discount_code": "SAVE10"}, headers=h)
    assert res.status_code == 400


def test_empty_cart_summary(client, catalogue):
    body = client.get("/api/cart", headers=user("nobody")).json()
    assert body["items"] == []
    assert body["estimated_shipping_cents"] == 0
    assert body["estimated_total_cents"] == 0


def test_merge_guest_cart_into_user_cart(client, catalogue, db):
    # guest cart lives on the client's cookie
    add_to_cart(client, {}, catalogue["tea"], 2)
    add_to_cart(client, {}, catalogue["gift"], 1)
    add_to_cart(client, user("u-9"), catalogue["tea"], 1)

    res = client.post("/api/cart/merge", headers=user("u-9"))
    assert res.status_code == 200
    items = {it["variant_id"]: it["quantity"] for it in res.json()["items"]}
    # 1 + 2 tea clamped to the 2 in stock
    assert items == {catalogue["tea"]: 2, catalogue["gift"]: 1}
    assert db.query(Cart).filter(Cart.session_token.isnot(None)).count() == 0


def test_merge_reowns_guest_cart_when_user_has_none(client, catalogue, db):
    add_to_cart(client, {}, catalogue["mug"], 2)
    res = client.post("/api/cart/merge", headers=user("u-new"))
    assert res.status_code == 200
    assert res.json()["items"][0]["quantity"] == 2
    cart = db.query(Cart).filter(Cart.user_id == "u-new").one()
    assert cart.session_token is None


def test_merge_requires_signed_in_user(client, catalogue):
    add_to_cart(client, {}, catalogue["mug"], 1)
    res = client.post("/api/cart/merge")
    assert res.status_code == 400
