import os
import sys
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import argparse
import concurrent.futures
from uuid import uuid4

import requests

BASE = os.environ.get("STOREFRONT_BASE", "http://127.0.0.1:8000")

ADDRESS = {
    "name": "Load Test",
    "line1": "1 Test Street",
    "city": "San Francisco",
    "state": "CA",
    "postal_code": "94105",
    "country": "US",
}


def open_session(user_id, variant_id, qty):
    """Fill a fresh user's cart and open a checkout session for it."""
    headers = {"X-User-Id": user_id}
    r = requests.post(
        f"{BASE}/api/cart/items",
        json={"variant_id": variant_id, "quantity": qty},
        headers=headers,
        timeout=10,
    )
    r.raise_for_status()
    r = requests.post(
        f"{BASE}/api/checkout/sessions",
        json={"shipping_method": "standard", "shipping_address": ADDRESS},
        headers=headers,
        timeout=10,
    )
    r.raise_for_status()
    return r.json()["session_id"]


def confirm_task(i, session_id, secret):
    headers = {"Content-Type": "application/json"}
    if secret:
        headers["X-Webhook-Secret"] = secret
    payload = {"type": "checkout.session.completed", "session_id": session_id}
    try:
        r = requests.post(f"{BASE}/api/webhooks/payment", json=payload, headers=headers, timeout=20)
        return (i, session_id, r.status_code, r.json())
    except requests.RequestException as e:
        return (i, session_id, "ERR", str(e))


def run_duplicates(workers, variant_id, qty, secret):
    """Same session confirmed by many workers at once: expect exactly one order number."""
    session_id = open_session(f"dup-{uuid4().hex[:8]}", variant_id, qty)
    print(f"Confirming {session_id} from {workers} workers")
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(confirm_task, i, session_id, secret) for i in range(workers)]
        results = [f.result() for f in futures]
    for r in results:
        print(r[:3])
    numbers = {r[3].get("order_number") for r in results if r[2] == 200}
    print("Unique order numbers:", numbers)


def run_oversell(workers, variant_id, qty, secret):
    """Distinct sessions racing for the same stock: expect shortfalls, never negative stock."""
    sessions = [open_session(f"race-{i}-{uuid4().hex[:6]}", variant_id, qty) for i in range(workers)]
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(confirm_task, i, s, secret) for i, s in enumerate(sessions)]
        results = [f.result() for f in futures]
    for r in results:
        print(r[:3])
    avail = requests.get(f"{BASE}/api/inventory/{variant_id}", timeout=10).json()
    print("Available after run:", avail)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrency test tool for payment confirmation.")
    sub = parser.add_subparsers(dest="mode", required=True)

    d = sub.add_parser("duplicates")
    d.add_argument("--workers", type=int, default=8)
    d.add_argument("--variant", type=int, default=1)
    d.add_argument("--qty", type=int, default=1)

    o = sub.add_parser("oversell")
    o.add_argument("--workers", type=int, default=4)
    o.add_argument("--variant", type=int, default=4)
    o.add_argument("--qty", type=int, default=2)

    for p in (d, o):
        p.add_argument("--secret", default=os.environ.get("PAYMENT_WEBHOOK_SECRET", ""))

    args = parser.parse_args()

    if args.mode == "duplicates":
        run_duplicates(args.workers, args.variant, args.qty, args.secret)
    elif args.mode == "oversell":
        run_oversell(args.workers, args.variant, args.qty, args.secret)
