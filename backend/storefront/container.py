import logging
from typing import Optional

from storefront.adapters.mock_payment import MockPaymentGateway
from storefront.config import Settings, settings as default_settings
from storefront.db import SessionLocal
from storefront.services.abandonment import AbandonmentTracker
from storefront.services.events import ORDER_CREATED, EventBus, log_subscriber
from storefront.services.tax import StaticTaxCalculator
from storefront.utils.locks import LockFactory

log = logging.getLogger("storefront.container")


class Container:
    """Process-wide collaborators, built once at startup and shared by reference."""

    def __init__(self, settings: Settings, payment_gateway=None, tax_calculator=None):
        self.settings = settings
        self.payment_gateway = payment_gateway or MockPaymentGateway(
            settings.APP_BASE_URL,
            ttl_seconds=settings.CHECKOUT_SESSION_TTL_SECONDS,
            delay_ms=settings.PAYMENT_MOCK_DELAY_MS,
        )
        self.tax_calculator = tax_calculator or StaticTaxCalculator()
        self.event_bus = EventBus(
            synchronous=settings.EVENTS_SYNCHRONOUS, workers=settings.EVENT_WORKERS
        )
        self.locks = LockFactory(settings.LOCK_DIR, timeout=settings.LOCK_TIMEOUT_SECONDS)
        self.abandonment = AbandonmentTracker(SessionLocal)
        self.abandonment.register(self.event_bus)
        self.event_bus.subscribe(ORDER_CREATED, log_subscriber)

    def shutdown(self):
        self.event_bus.shutdown()


_container: Optional[Container] = None


def build_container(settings: Optional[Settings] = None) -> Container:
    global _container
    _container = Container(settings or default_settings)
    log.info("container built (events synchronous=%s)", _container.settings.EVENTS_SYNCHRONOUS)
    return _container


def get_container() -> Container:
    if _container is None:
        return build_container()
    return _container


def reset_container():
    global _container
    if _container is not None:
        _container.shutdown()
    _container = None
