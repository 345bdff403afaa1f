import os
import tempfile

# must be in place before storefront (and its engine) is imported
_TMP = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_TMP, "test.db")
os.environ["EVENTS_SYNCHRONOUS"] = "true"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["LOCK_DIR"] = os.path.join(_TMP, "locks")
os.environ["PAYMENT_WEBHOOK_SECRET"] = ""
os.environ["SUPPLIER_WEBHOOK_SECRET"] = ""
os.environ["SESSION_SWEEP_SECONDS"] = "0"

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from storefront.container import reset_container
from storefront.db import SessionLocal, init_db
from storefront.main import app
from storefront.models.discount import FIXED, PERCENTAGE
from storefront.repositories.discount_repo import DiscountRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.utils.clock import utcnow

from helpers import ADMIN


@pytest.fixture(autouse=True)
def fresh_db():
    init_db(reset=True)
    reset_container()
    yield
    reset_container()


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def admin_headers():
    return dict(ADMIN)


@pytest.fixture
def catalogue():
    """
    mug   2500c, 10 in stock, shipped by Harbour
    tea   1000c,  2 in stock, shipped by Northwind
    gift   500c,  5 in stock, shipped in-house
    sold_out 800c, 0 in stock
    retired  900c, inactive variant
    """
    s = SessionLocal()
    try:
        repo = ProductRepository(s)
        harbour = repo.create_or_update_supplier("Harbour")
        northwind = repo.create_or_update_supplier("Northwind")

        mug_p = repo.create_or_update_product("mug", "Stoneware Mug")
        mug = repo.create_or_update_variant(mug_p, "MUG-BLU", "Blue", 2500, stock=10)
        repo.link_source(mug, harbour, "H-MUG-1", 900)

        tea_p = repo.create_or_update_product("tea", "Green Tea")
        tea = repo.create_or_update_variant(tea_p, "TEA-100", "100g", 1000, stock=2)
        repo.link_source(tea, northwind, "N-TEA-1", 300)

        gift_p = repo.create_or_update_product("gift", "Gift Box")
        gift = repo.create_or_update_variant(gift_p, "GIFT-1", "Standard", 500, stock=5)

        sold_out = repo.create_or_update_variant(gift_p, "GIFT-2", "Deluxe", 800, stock=0)
        retired = repo.create_or_update_variant(gift_p, "GIFT-OLD", "Old", 900, stock=5, active=False)

        codes = DiscountRepository(s)
        codes.create_or_update("SAVE10", kind=PERCENTAGE, value=10, min_order_cents=5000)
        codes.create_or_update("FIVEOFF", kind=FIXED, value=500)
        codes.create_or_update("ONCE", kind=PERCENTAGE, value=20, usage_limit=1)
        codes.create_or_update("USEDUP", kind=FIXED, value=100, usage_limit=1, usage_count=1)
        codes.create_or_update("OLD", kind=FIXED, value=100, valid_to=utcnow() - timedelta(days=1))
        s.commit()
        ids = {
            "mug": mug.id,
            "tea": tea.id,
            "gift": gift.id,
            "sold_out": sold_out.id,
            "retired": retired.id,
            "harbour": harbour.id,
            "northwind": northwind.id,
        }
    finally:
        s.close()
    return ids

