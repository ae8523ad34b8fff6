"""Marketplace error taxonomy.

Every error carries a stable ``kind`` that the HTTP layer returns to callers,
and the status code it maps to. Malformed input is reported with Protean's
``ValidationError`` instead.
"""


class MarketplaceError(Exception):
    kind = "marketplace_error"
    status_code = 400

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class NotFound(MarketplaceError):
    kind = "not_found"
    status_code = 404


class ProductNotFound(NotFound):
    kind = "product_not_found"


class Forbidden(MarketplaceError):
    kind = "forbidden"
    status_code = 403


class InvalidTransition(MarketplaceError):
    kind = "invalid_transition"
    status_code = 409


class InvalidDeliveryTransition(MarketplaceError):
    kind = "invalid_delivery_transition"
    status_code = 409


class ReturnWindowExpired(MarketplaceError):
    kind = "return_window_expired"
    status_code = 409


class NotReturnable(MarketplaceError):
    kind = "not_returnable"
    status_code = 409


class AlreadyAssigned(MarketplaceError):
    kind = "already_assigned"
    status_code = 409


class InsufficientStock(MarketplaceError):
    kind = "insufficient_stock"
    status_code = 409


class ConcurrentModification(MarketplaceError):
    kind = "concurrent_modification"
    status_code = 409


class Expired(MarketplaceError):
    kind = "expired"
    status_code = 400


class InvalidCode(MarketplaceError):
    kind = "invalid_code"
    status_code = 400


class TooManyAttempts(MarketplaceError):
    kind = "too_many_attempts"
    status_code = 429
