#!/usr/bin/env python3
"""
Seed a development catalogue: products, variants with stock, the suppliers
that dropship some of them, and a few discount codes.

A JSON file can replace the built-in catalogue. Expected shape:
    {"suppliers": [{"name": ...}],
     "products": [{"slug", "name", "variants": [{"sku", "name", "price_cents",
                   "stock", "supplier"?, "supplier_sku"?, "unit_cost_cents"?}]}]}

Usage:
    python scripts/seed_products.py
    python scripts/seed_products.py --file catalogue.json --reset
"""
import argparse
import json
import logging
import os
import sys
from datetime import timedelta

# allow running from repo/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from storefront.db import SessionLocal, init_db
from storefront.models.discount import FIXED, PERCENTAGE
from storefront.repositories.discount_repo import DiscountRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.utils.clock import utcnow
from storefront.utils.logging import configure_logging

log = logging.getLogger("storefront.seed")

DEFAULT_CATALOGUE = {
    "suppliers": [{"name": "Harbour Roasters"}, {"name": "Northwind Ceramics"}],
    "products": [
        {
            "slug": "house-blend-coffee",
            "name": "House Blend Coffee",
            "variants": [
                {"sku": "COF-HB-250", "name": "250g", "price_cents": 1299, "stock": 40,
                 "supplier": "Harbour Roasters", "supplier_sku": "HR-HB-250", "unit_cost_cents": 650},
                {"sku": "COF-HB-1K", "name": "1kg", "price_cents": 3999, "stock": 12,
                 "supplier": "Harbour Roasters", "supplier_sku": "HR-HB-1000", "unit_cost_cents": 2100},
            ],
        },
        {
            "slug": "stoneware-mug",
            "name": "Stoneware Mug",
            "variants": [
                {"sku": "MUG-SW-BLU", "name": "Blue", "price_cents": 1800, "stock": 25,
                 "supplier": "Northwind Ceramics", "supplier_sku": "NW-MUG-B", "unit_cost_cents": 700},
                {"sku": "MUG-SW-WHT", "name": "White", "price_cents": 1800, "stock": 2,
                 "supplier": "Northwind Ceramics", "supplier_sku": "NW-MUG-W", "unit_cost_cents": 700},
            ],
        },
        {
            "slug": "gift-card-box",
            "name": "Gift Card Box",
            # shipped in-house, no supplier
            "variants": [{"sku": "GIFT-BOX", "name": "Standard", "price_cents": 500, "stock": 100}],
        },
    ],
}

DEFAULT_DISCOUNTS = [
    {"code": "SAVE10", "kind": PERCENTAGE, "value": 10, "min_order_cents": 5000},
    {"code": "WELCOME5", "kind": FIXED, "value": 500, "usage_limit": 100},
    {"code": "HALFOFF", "kind": PERCENTAGE, "value": 50, "max_discount_cents": 2500, "usage_limit": 10},
]


def seed(catalogue: dict, discounts: list):
    db = SessionLocal()
    repo = ProductRepository(db)
    codes = DiscountRepository(db)
    try:
        suppliers = {}
        for s in catalogue.get("suppliers", []):
            suppliers[s["name"]] = repo.create_or_update_supplier(s["name"], s.get("status", "ACTIVE"))

        variants = 0
        for p in catalogue.get("products", []):
            product = repo.create_or_update_product(p["slug"], p["name"], p.get("active", True))
            for v in p.get("variants", []):
                variant = repo.create_or_update_variant(
                    product,
                    sku=v["sku"],
                    name=v.get("name", v["sku"]),
                    price_cents=int(v["price_cents"]),
                    stock=int(v.get("stock", 0)),
                    active=v.get("active", True),
                )
                if v.get("supplier"):
                    supplier = suppliers.get(v["supplier"]) or repo.create_or_update_supplier(v["supplier"])
                    repo.link_source(
                        variant,
                        supplier,
                        v.get("supplier_sku") or v["sku"],
                        int(v.get("unit_cost_cents", 0)),
                    )
                variants += 1

        for d in discounts:
            fields = dict(d)
            code = fields.pop("code")
            fields.setdefault("valid_to", utcnow() + timedelta(days=365))
            codes.create_or_update(code, **fields)

        db.commit()
        log.info("Seeded %d variants, %d suppliers, %d discount codes", variants, len(suppliers), len(discounts))
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--file", "-f", help="Path to a catalogue json; defaults to the built-in sample")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate all tables first")
    args = parser.parse_args()

    configure_logging()
    catalogue = DEFAULT_CATALOGUE
    if args.file:
        if not os.path.exists(args.file):
            print("File not found:", args.file)
            sys.exit(1)
        with open(args.file, "r", encoding="utf-8") as f:
            catalogue = json.load(f)

    init_db(reset=args.reset)
    seed(catalogue, DEFAULT_DISCOUNTS)
