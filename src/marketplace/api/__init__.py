"""Marketplace API package."""

from marketplace.api.errors import register_error_handlers
from marketplace.api.routes import (
    catalogue_router,
    dispatch_router,
    order_router,
    payment_router,
    verification_router,
)

__all__ = [
    "catalogue_router",
    "dispatch_router",
    "order_router",
    "payment_router",
    "register_error_handlers",
    "verification_router",
]
