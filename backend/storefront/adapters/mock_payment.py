import logging
import time
from datetime import timedelta
from typing import Dict, List, Optional
from uuid import uuid4

from storefront.utils.clock import utcnow

log = logging.getLogger("storefront.payment")


class PaymentGatewayError(Exception):
    """Raised when the gateway cannot open a hosted checkout session."""
    pass


class MockPaymentGateway:
    """
    Stand-in for a hosted-checkout provider.

    ``create_session`` hands back a provider session id (``cs_...``), the
    URL the shopper is redirected to, and the moment the session stops
    accepting payment. Confirmation later arrives through the payment
    webhook, never through this object.
    """

    def __init__(self, base_url: str, ttl_seconds: int = 1800, delay_ms: int = 0):
        self.base_url = base_url.rstrip("/")
        self.ttl_seconds = ttl_seconds
        # Convert delay from milliseconds to seconds for time.sleep
        self.delay_seconds = delay_ms / 1000.0

    def create_session(self, line_items: List[Dict], metadata: Optional[Dict] = None) -> Dict:
        """
        Args:
            line_items: [{name, unit_amount_cents, quantity}] as shown to the shopper.
            metadata: opaque key/values echoed back on the webhook (cart id, owner).

        Returns:
            {"session_id", "redirect_url", "expires_at"}
        """
        if not line_items:
            raise PaymentGatewayError("Cannot open a payment session without line items")
        if self.delay_seconds:
            time.sleep(self.delay_seconds)

        session_id = f"cs_{uuid4().hex}"
        expires_at = utcnow() + timedelta(seconds=self.ttl_seconds)
        log.info(
            "opened payment session %s for %d line(s) metadata=%s",
            session_id, len(line_items), metadata or {},
        )
        return {
            "session_id": session_id,
            "redirect_url": f"{self.base_url}/checkout/pay?session_id={session_id}",
            "expires_at": expires_at,
        }

    def health_check(self) -> Dict:
        return {"status": "ok", "provider": "mock", "ttl_seconds": self.ttl_seconds}
