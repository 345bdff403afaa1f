from typing import Any, Dict, Optional


class DomainError(Exception):
    """
    Base class for every error the core hands back to a caller.

    Each subclass carries a stable machine-readable ``code`` and the HTTP
    status the API boundary maps it to; ``details`` holds structured context
    (e.g. requested/available quantities).
    """

    code = "DOMAIN_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, "details": self.details}


class BadRequest(DomainError):
    code = "BAD_REQUEST"
    status_code = 400


class Forbidden(DomainError):
    code = "FORBIDDEN"
    status_code = 403


class NotFound(DomainError):
    code = "NOT_FOUND"
    status_code = 404


class Conflict(DomainError):
    code = "CONFLICT"
    status_code = 409


class OutOfStock(DomainError):
    code = "OUT_OF_STOCK"
    status_code = 409

    def __init__(self, variant_id: int, message: Optional[str] = None):
        super().__init__(
            message or f"Variant {variant_id} is out of stock",
            {"variant_id": variant_id, "available": 0},
        )
        self.variant_id = variant_id


class InsufficientStock(DomainError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, variant_id: int, requested: int, available: int):
        super().__init__(
            f"Only {available} available for variant {variant_id} (requested {requested})",
            {"variant_id": variant_id, "requested": requested, "available": available},
        )
        self.variant_id = variant_id
        self.requested = requested
        self.available = available


class Expired(DomainError):
    code = "EXPIRED"
    status_code = 410
