import pytest

from storefront.container import get_container
from storefront.models.dropship_order import DropshipOrder
from storefront.models.inventory import Inventory
from storefront.models.inventory_shortfall import InventoryShortfall
from storefront.models.order import Order
from storefront.services.events import DROPSHIP_STATUS_CHANGED, ORDER_CANCELLED

from helpers import ADMIN, add_to_cart, open_session, pay, user


def stock(db, variant_id):
    db.expire_all()
    return db.get(Inventory, variant_id).quantity


def dropship_statuses(db, order_number):
    db.expire_all()
    o = db.query(Order).filter(Order.order_number == order_number).one()
    return {d.supplier_id: d.status for d in o.dropship_orders}


def cancel(client, headers, order_number):
    return client.post(f"/api/orders/{order_number}/cancel", headers=headers)


@pytest.fixture
def buyer():
    return user("u-1")


@pytest.fixture
def order(client, catalogue, buyer):
    """mug x2 (Harbour), tea x1 (Northwind), gift x1 (in-house)."""
    add_to_cart(client, buyer, catalogue["mug"], 2)
    add_to_cart(client, buyer, catalogue["tea"], 1)
    add_to_cart(client, buyer, catalogue["gift"], 1)
    return pay(client, open_session(client, buyer)).json()


def test_cancel_restores_stock_and_refunds(client, catalogue, db, buyer, order):
    assert stock(db, catalogue["mug"]) == 8
    seen = []
    bus = get_container().event_bus
    bus.subscribe(ORDER_CANCELLED, lambda e, p: seen.append((e, p["order_number"])))
    bus.subscribe(DROPSHIP_STATUS_CHANGED, lambda e, p: seen.append((e, p["to"])))

    res = cancel(client, buyer, order["order_number"])
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["status"] == "CANCELLED"
    assert body["payment_status"] == "REFUNDED"
    assert body["cancelled_at"] is not None
    assert body["shipping_status"] == "UNFULFILLED"

    assert stock(db, catalogue["mug"]) == 10
    assert stock(db, catalogue["tea"]) == 2
    assert stock(db, catalogue["gift"]) == 5
    assert set(dropship_statuses(db, order["order_number"]).values()) == {"CANCELLED"}
    assert (ORDER_CANCELLED, order["order_number"]) in seen
    assert seen.count((DROPSHIP_STATUS_CHANGED, "CANCELLED")) == 2


def test_cancelling_twice_is_refused(client, catalogue, db, buyer, order):
    assert cancel(client, buyer, order["order_number"]).status_code == 200
    res = cancel(client, buyer, order["order_number"])
    assert res.status_code == 409
    assert res.json()["code"] == "CONFLICT"
    # stock went back once only
    assert stock(db, catalogue["mug"]) == 10


def test_only_the_owner_can_cancel(client, catalogue, db, order):
    assert cancel(client, user("u-2"), order["order_number"]).status_code == 403
    assert cancel(client, user("u-2"), "ORD-NOPE").status_code == 404
    assert stock(db, catalogue["mug"]) == 8


def test_shipped_order_cannot_be_cancelled(client, catalogue, db, buyer, order):
    for d in db.query(DropshipOrder).all():
        res = client.post(f"/api/admin/fulfillment/{d.id}/status", json={"status": "SHIPPED"}, headers=ADMIN)
        assert res.status_code == 200

    res = cancel(client, buyer, order["order_number"])
    assert res.status_code == 409
    assert res.json()["details"]["shipping_status"] == "SHIPPED"
    assert stock(db, catalogue["mug"]) == 8


def test_partly_shipped_order_is_left_untouched(client, catalogue, db, buyer, order):
    harbour = db.query(DropshipOrder).filter(DropshipOrder.supplier_id == catalogue["harbour"]).one()
    client.post(f"/api/admin/fulfillment/{harbour.id}/status", json={"status": "SHIPPED"}, headers=ADMIN)

    res = cancel(client, buyer, order["order_number"])
    assert res.status_code == 409
    assert dropship_statuses(db, order["order_number"]) == {
        catalogue["harbour"]: "SHIPPED",
        catalogue["northwind"]: "PENDING",
    }
    o = db.query(Order).filter(Order.order_number == order["order_number"]).one()
    assert o.status == "CONFIRMED"
    assert o.payment_status == "COMPLETED"
    assert stock(db, catalogue["tea"]) == 1


def test_cancel_does_not_restock_units_never_taken(client, catalogue, db):
    a, b = user("a"), user("b")
    add_to_cart(client, a, catalogue["tea"], 2)
    add_to_cart(client, b, catalogue["tea"], 2)
    sa, sb = open_session(client, a), open_session(client, b)
    first = pay(client, sa).json()
    second = pay(client, sb).json()
    assert stock(db, catalogue["tea"]) == 0
    short = db.query(InventoryShortfall).one()

    # the second order got no stock, so cancelling it gives none back
    assert cancel(client, b, second["order_number"]).status_code == 200
    assert stock(db, catalogue["tea"]) == 0
    db.expire_all()
    assert db.get(InventoryShortfall, short.id).status == "VOID"
    res = client.post(f"/api/admin/inventory/shortfalls/{short.id}/retry", headers=ADMIN)
    assert res.status_code == 409

    assert cancel(client, a, first["order_number"]).status_code == 200
    assert stock(db, catalogue["tea"]) == 2
