"""DeliveryAgent aggregate — a courier in the dispatch pool.

Dispatch owns the assignment pointer (``last_assigned_*``); the delivery
counters move only when a delivery the agent carried reaches a terminal
outcome (verified delivery or failed delivery).
"""

from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, ValueObject

from marketplace.domain import marketplace
from marketplace.shared.geo import GeoPoint
from marketplace.shared.money import as_float, to_decimal


@marketplace.aggregate
class DeliveryAgent:
    name: String(required=True, max_length=150)
    phone: String(required=True, max_length=20)
    email: String(max_length=254)
    is_online: Boolean(default=False)
    is_verified: Boolean(default=False)
    location: ValueObject(GeoPoint)
    completed_deliveries: Integer(default=0, min_value=0)
    failed_deliveries: Integer(default=0, min_value=0)
    total_earnings: Float(default=0.0, min_value=0.0)
    last_assigned_order_id: Identifier()
    last_assigned_at: DateTime()
    created_at: DateTime()
    updated_at: DateTime()

    @classmethod
    def register(cls, name: str, phone: str, email: str | None = None):
        now = datetime.now(UTC)
        return cls(name=name, phone=phone, email=email, created_at=now, updated_at=now)

    @property
    def is_dispatchable(self) -> bool:
        """Online, verified, and with a known position."""
        return bool(self.is_online and self.is_verified and self.location)

    def verify(self) -> None:
        if self.is_verified:
            return
        self.is_verified = True
        self.updated_at = datetime.now(UTC)

    def set_availability(self, is_online: bool, latitude: float | None = None, longitude: float | None = None) -> None:
        self.is_online = is_online
        if latitude is not None and longitude is not None:
            self.location = GeoPoint(latitude=latitude, longitude=longitude)
        self.updated_at = datetime.now(UTC)

    def move_to(self, latitude: float, longitude: float) -> None:
        self.location = GeoPoint(latitude=latitude, longitude=longitude)
        self.updated_at = datetime.now(UTC)

    def record_assignment(self, order_id: str) -> None:
        now = datetime.now(UTC)
        self.last_assigned_order_id = order_id
        self.last_assigned_at = now
        self.updated_at = now

    def record_completed_delivery(self, earnings: float) -> None:
        self.completed_deliveries = (self.completed_deliveries or 0) + 1
        self.total_earnings = as_float(to_decimal(self.total_earnings or 0.0) + to_decimal(earnings or 0.0))
        self.updated_at = datetime.now(UTC)

    def record_failed_delivery(self) -> None:
        self.failed_deliveries = (self.failed_deliveries or 0) + 1
        self.updated_at = datetime.now(UTC)
