"""PricingEngine — money breakdown for one supplier's group of cart lines.

All arithmetic is done in ``Decimal``. Each money field is rounded half-up to
the minor unit, and the total is summed from the rounded fields so that the
order pricing invariant holds exactly.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from marketplace import config
from marketplace.catalogue.category import Category
from marketplace.catalogue.product import Product, Variation
from marketplace.shared.money import as_float, round_money, to_decimal

ZERO = Decimal("0")


@dataclass(frozen=True)
class PricedLine:
    product: Product
    quantity: int
    variation: Variation | None = None
    category: Category | None = None

    @property
    def surcharge(self) -> Decimal:
        return to_decimal(self.variation.additional_price) if self.variation else ZERO

    @property
    def unit_price(self) -> Decimal:
        return to_decimal(self.product.base_price) + self.surcharge

    @property
    def discounted_price(self) -> Decimal:
        return to_decimal(self.product.effective_price) + self.surcharge

    @property
    def line_total(self) -> Decimal:
        return self.discounted_price * self.quantity

    @property
    def gst(self) -> Decimal:
        return self.line_total * to_decimal(self.product.gst_rate) / Decimal("100")

    @property
    def handling_fee(self) -> Decimal:
        return to_decimal(self.category.chargeable_handling_fee) if self.category else ZERO

    def as_item_data(self) -> dict:
        return {
            "product_id": str(self.product.id),
            "title": self.product.title,
            "quantity": self.quantity,
            "unit_price": as_float(self.unit_price),
            "discounted_price": as_float(self.discounted_price),
            "variation_name": self.variation.name if self.variation else None,
            "variation_value": self.variation.value if self.variation else None,
            "line_total": as_float(self.line_total),
        }


@dataclass(frozen=True)
class PricedGroup:
    supplier_id: str
    lines: list[PricedLine] = field(default_factory=list)
    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    gst: Decimal = ZERO
    delivery_charge: Decimal = ZERO
    platform_fee: Decimal = ZERO
    handling_fee: Decimal = ZERO

    @property
    def total_amount(self) -> Decimal:
        return (
            self.subtotal
            - self.discount_amount
            + self.gst
            + self.delivery_charge
            + self.platform_fee
            + self.handling_fee
        )

    def as_pricing(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "discount_amount": float(self.discount_amount),
            "gst": float(self.gst),
            "delivery_charge": float(self.delivery_charge),
            "platform_fee": float(self.platform_fee),
            "handling_fee": float(self.handling_fee),
            "total_amount": float(self.total_amount),
            "currency": config.CURRENCY,
        }


class PricingEngine:
    """Stateless pricing rules, parameterised by the marketplace fee schedule."""

    def __init__(
        self,
        free_delivery_threshold=config.FREE_DELIVERY_THRESHOLD,
        standard_delivery_charge=config.STANDARD_DELIVERY_CHARGE,
        express_delivery_charge=config.EXPRESS_DELIVERY_CHARGE,
        platform_fee=config.PLATFORM_FEE,
    ):
        self.free_delivery_threshold = to_decimal(free_delivery_threshold)
        self.standard_delivery_charge = to_decimal(standard_delivery_charge)
        self.express_delivery_charge = to_decimal(express_delivery_charge)
        self.platform_fee = to_decimal(platform_fee)

    def delivery_charge(self, subtotal: Decimal, is_express: bool) -> Decimal:
        if subtotal >= self.free_delivery_threshold:
            return ZERO
        return self.express_delivery_charge if is_express else self.standard_delivery_charge

    def subtotal(self, lines: list[PricedLine]) -> Decimal:
        return round_money(sum((line.line_total for line in lines), ZERO))

    def price_group(
        self,
        supplier_id: str,
        lines: list[PricedLine],
        is_express: bool = False,
        discount_amount: Decimal = ZERO,
    ) -> PricedGroup:
        subtotal = self.subtotal(lines)
        return PricedGroup(
            supplier_id=supplier_id,
            lines=lines,
            subtotal=subtotal,
            discount_amount=round_money(min(discount_amount, subtotal)),
            gst=round_money(sum((line.gst for line in lines), ZERO)),
            delivery_charge=round_money(self.delivery_charge(subtotal, is_express)),
            platform_fee=round_money(self.platform_fee),
            handling_fee=round_money(sum((line.handling_fee for line in lines), ZERO)),
        )

    @staticmethod
    def split_discount(total_discount: Decimal, subtotals: dict[str, Decimal]) -> dict[str, Decimal]:
        """Apportion a checkout-wide discount across supplier groups by subtotal.

        Shares are rounded to the minor unit; the rounding remainder goes to
        the largest group so the shares add up to the discount exactly.
        """
        total_discount = round_money(total_discount)
        checkout_subtotal = sum(subtotals.values(), ZERO)
        if total_discount <= ZERO or checkout_subtotal <= ZERO:
            return {supplier_id: ZERO for supplier_id in subtotals}

        shares = {
            supplier_id: round_money(total_discount * subtotal / checkout_subtotal)
            for supplier_id, subtotal in subtotals.items()
        }
        largest = max(subtotals, key=lambda supplier_id: subtotals[supplier_id])
        shares[largest] += total_discount - sum(shares.values(), ZERO)
        return shares
