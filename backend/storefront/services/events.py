import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List

log = logging.getLogger("storefront.events")

CART_UPDATED = "cart.updated"
CART_CLEARED = "cart.cleared"
ORDER_CREATED = "order.created"
ORDER_CANCELLED = "order.cancelled"
INVENTORY_SHORTFALL = "inventory.shortfall"
DROPSHIP_STATUS_CHANGED = "dropship.status_changed"

Handler = Callable[[str, Dict[str, Any]], None]


class EventBus:
    """
    Publish/subscribe hook for secondary systems (abandonment tracking,
    search-index sync, notifications).

    Delivery is fire-and-forget: handlers run on a small thread pool and any
    exception they raise is logged and dropped, so a subscriber can never
    fail or block the cart/order transaction that published the event.
    ``synchronous=True`` runs handlers inline (still swallowing errors),
    which keeps tests deterministic.
    """

    def __init__(self, synchronous: bool = False, workers: int = 2):
        self.synchronous = synchronous
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._pool = None if synchronous else ThreadPoolExecutor(
            max_workers=max(1, workers), thread_name_prefix="storefront-events"
        )

    def subscribe(self, event: str, handler: Handler):
        self._handlers[event].append(handler)

    def publish(self, event: str, payload: Dict[str, Any]):
        for handler in list(self._handlers.get(event, ())):
            if self._pool is None:
                self._deliver(handler, event, payload)
            else:
                self._pool.submit(self._deliver, handler, event, payload)

    def _deliver(self, handler: Handler, event: str, payload: Dict[str, Any]):
        try:
            handler(event, payload)
        except Exception:
            log.exception("subscriber %r failed for %s", getattr(handler, "__name__", handler), event)

    def shutdown(self):
        if self._pool is not None:
            self._pool.shutdown(wait=True)


def log_subscriber(event: str, payload: Dict[str, Any]):
    """Default search-index hook: records what an indexer would pick up."""
    log.info("event %s %s", event, payload)
