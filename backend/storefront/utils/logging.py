import logging
import sys

from storefront.config import settings

_FORMAT = "[%(name)s] %(levelname)s %(message)s"


def configure_logging(level: str = None):
    """Attach a stdout handler to the ``storefront`` logger tree (once)."""
    root = logging.getLogger("storefront")
    root.setLevel((level or settings.LOG_LEVEL).upper())
    if not root.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(h)
    return root
