"""Coupon aggregate.

A coupon that is inactive, outside its validity window, used up, or applied
below its minimum purchase yields no discount rather than an error.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from marketplace.domain import marketplace
from marketplace.shared.clock import ensure_aware
from marketplace.shared.money import round_money, to_decimal


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@marketplace.aggregate
class Coupon:
    code: String(required=True, max_length=50)
    discount_type: String(required=True, choices=DiscountType)
    value: Float(required=True, min_value=0.0)
    min_purchase: Float(default=0.0, min_value=0.0)
    max_discount: Float(min_value=0.0)
    starts_at: DateTime()
    ends_at: DateTime()
    usage_limit: Integer(min_value=1)
    used_count: Integer(default=0, min_value=0)
    is_active: Boolean(default=True)

    @invariant.post
    def percentage_must_be_within_bounds(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and self.value > 100:
            raise ValidationError({"value": ["Percentage discount cannot exceed 100"]})

    @staticmethod
    def normalize(code: str) -> str:
        return code.strip().upper()

    def is_valid(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        if not self.is_active:
            return False
        if self.starts_at and now < ensure_aware(self.starts_at):
            return False
        if self.ends_at and now > ensure_aware(self.ends_at):
            return False
        if self.usage_limit is not None and self.used_count >= self.usage_limit:
            return False
        return True

    def discount_for(self, amount, now: datetime | None = None) -> Decimal:
        """Discount applicable to ``amount``, never more than the amount itself."""
        amount = to_decimal(amount)
        if not self.is_valid(now) or amount < to_decimal(self.min_purchase):
            return Decimal("0")

        if self.discount_type == DiscountType.PERCENTAGE.value:
            discount = amount * to_decimal(self.value) / Decimal("100")
            if self.max_discount:
                discount = min(discount, to_decimal(self.max_discount))
        else:
            discount = to_decimal(self.value)

        return round_money(min(discount, amount))

    def record_use(self) -> None:
        self.used_count = (self.used_count or 0) + 1
