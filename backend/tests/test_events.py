from storefront.container import get_container
from storefront.db import SessionLocal
from storefront.models.cart_activity import CartActivity
from storefront.services.abandonment import AbandonmentTracker
from storefront.services.events import CART_UPDATED, ORDER_CREATED, EventBus

from helpers import add_to_cart, open_session, pay, user


def test_failing_subscriber_does_not_break_publisher():
    bus = EventBus(synchronous=True)
    seen = []

    def broken(event, payload):
        raise RuntimeError("index down")

    bus.subscribe(CART_UPDATED, broken)
    bus.subscribe(CART_UPDATED, lambda e, p: seen.append((e, p["cart_id"])))
    bus.publish(CART_UPDATED, {"cart_id": 7})
    assert seen == [(CART_UPDATED, 7)]


def test_threaded_bus_delivers():
    bus = EventBus(synchronous=False, workers=2)
    seen = []
    bus.subscribe(ORDER_CREATED, lambda e, p: seen.append(p["order_id"]))
    bus.publish(ORDER_CREATED, {"order_id": 1})
    bus.publish(ORDER_CREATED, {"order_id": 2})
    bus.shutdown()
    assert sorted(seen) == [1, 2]


def test_cart_activity_is_tracked(client, catalogue, db):
    body = add_to_cart(client, user("u-1"), catalogue["mug"], 2)
    rec = db.query(CartActivity).filter(CartActivity.cart_id == body["cart_id"]).one()
    assert rec.item_count == 2
    assert rec.last_event == CART_UPDATED
    assert rec.owner_id == "u-1"


def test_order_marks_cart_recovered(client, catalogue, db):
    h = user("u-1")
    cart_id = add_to_cart(client, h, catalogue["gift"], 1)["cart_id"]
    pay(client, open_session(client, h))
    rec = db.query(CartActivity).filter(CartActivity.cart_id == cart_id).one()
    assert rec.last_event == ORDER_CREATED
    assert rec.item_count == 0
    assert rec.recovered_at is not None


def test_idle_carts(catalogue):
    tracker = AbandonmentTracker(SessionLocal)
    tracker.handle(CART_UPDATED, {"cart_id": 1, "owner_id": "u-1", "item_count": 3})
    tracker.handle(CART_UPDATED, {"cart_id": 2, "owner_id": "u-2", "item_count": 0})
    assert tracker.idle_carts(idle_hours=24) == []
    idle = tracker.idle_carts(idle_hours=-1)
    assert [r.cart_id for r in idle] == [1]


def test_container_wires_tracker():
    c = get_container()
    assert c.abandonment is not None
    assert c.event_bus.synchronous is True
