import pytest

from storefront.errors import BadRequest, Conflict, InsufficientStock, NotFound, OutOfStock
from storefront.models.inventory import Inventory
from storefront.models.inventory_shortfall import InventoryShortfall
from storefront.services.inventory_service import InventoryService
from storefront.utils.locks import LockFactory

from helpers import ADMIN


def test_availability_endpoint(client, catalogue):
    res = client.get(f"/api/inventory/{catalogue['tea']}")
    assert res.status_code == 200
    assert res.json() == {"variant_id": catalogue["tea"], "available": 2, "in_stock": True}
    res = client.get(f"/api/inventory/{catalogue['sold_out']}")
    assert res.json()["in_stock"] is False
    assert client.get("/api/inventory/123456").status_code == 404


def test_check_available(catalogue, db):
    svc = InventoryService(db)
    assert svc.check_available(catalogue["mug"], 10) == 10
    with pytest.raises(InsufficientStock) as exc:
        svc.check_available(catalogue["mug"], 11)
    assert exc.value.requested == 11
    assert exc.value.available == 10
    with pytest.raises(OutOfStock):
        svc.check_available(catalogue["sold_out"], 1)
    with pytest.raises(NotFound):
        svc.available_quantity(987654)


def test_decrement_clamps_at_zero(catalogue, db):
    svc = InventoryService(db)
    shortfalls = svc.decrement_for_order(1, [(catalogue["tea"], 1), (catalogue["tea"], 2), (catalogue["mug"], 3)])
    db.commit()
    assert db.get(Inventory, catalogue["tea"]).quantity == 0
    assert db.get(Inventory, catalogue["mug"]).quantity == 7
    assert [(s.variant_id, s.requested, s.decremented, s.shortfall) for s in shortfalls] == [
        (catalogue["tea"], 3, 2, 1)
    ]


def test_reserved_units_are_not_available(catalogue, db):
    db.get(Inventory, catalogue["mug"]).reserved = 4
    db.commit()
    svc = InventoryService(db)
    assert svc.available_quantity(catalogue["mug"]) == 6
    svc.decrement_for_order(1, [(catalogue["mug"], 8)])
    db.commit()
    row = db.get(Inventory, catalogue["mug"])
    assert row.quantity == 4
    assert row.available == 0


def test_retry_needs_a_lock_factory(catalogue, db):
    sf = InventoryShortfall(order_id=1, variant_id=catalogue["tea"], requested=3, decremented=2, shortfall=1)
    db.add(sf)
    db.commit()
    with pytest.raises(Conflict):
        InventoryService(db).retry_shortfall(sf.id)


def test_retry_and_restock(catalogue, db, tmp_path):
    svc = InventoryService(db, LockFactory(str(tmp_path)))
    svc.decrement_for_order(1, [(catalogue["tea"], 3)])
    db.commit()
    sf = svc.list_shortfalls()[0]

    with pytest.raises(InsufficientStock):
        svc.retry_shortfall(sf.id)
    svc.restock(catalogue["tea"], 1)
    resolved = svc.retry_shortfall(sf.id)
    assert resolved.status == "RESOLVED"
    assert resolved.decremented == 3
    assert svc.available_quantity(catalogue["tea"]) == 0
    assert svc.list_shortfalls() == []
    assert len(svc.list_shortfalls(status=None)) == 1
    # resolving twice is harmless
    assert svc.retry_shortfall(sf.id).status == "RESOLVED"

    with pytest.raises(NotFound):
        svc.retry_shortfall(4242)


def test_restock_validation(catalogue, db):
    svc = InventoryService(db)
    with pytest.raises(BadRequest):
        svc.restock(catalogue["mug"], 0)
    with pytest.raises(NotFound):
        svc.restock(999999, 1)


def test_restock_endpoint_requires_admin(client, catalogue):
    url = f"/api/admin/inventory/{catalogue['gift']}/restock"
    assert client.post(url, json={"quantity": 3}).status_code == 403
    res = client.post(url, json={"quantity": 3}, headers=ADMIN)
    assert res.status_code == 200
    assert res.json()["available"] == 8


def test_lock_names_are_sanitized(tmp_path):
    locks = LockFactory(str(tmp_path))
    assert locks.path_for("inventory/commit").endswith("inventory_commit.lock")
    with locks.hold("inventory-commit"):
        pass
