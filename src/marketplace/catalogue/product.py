"""Product aggregate root with its Variation entity."""

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, HasMany, Identifier, Integer, String

from marketplace.domain import marketplace
from marketplace.errors import InsufficientStock


@marketplace.entity(part_of="Product")
class Variation:
    """A purchasable variation (size, colour...) with its own surcharge and stock."""

    name: String(required=True, max_length=50)
    value: String(required=True, max_length=100)
    additional_price: Float(default=0.0, min_value=0.0)
    stock_quantity: Integer(default=0, min_value=0)


@marketplace.aggregate
class Product:
    """A supplier's listing. Prices are in the marketplace currency."""

    supplier_id: Identifier(required=True)
    title: String(required=True, max_length=255)
    category_id: Identifier()
    base_price: Float(required=True, min_value=0.01)
    discounted_price: Float(min_value=0.0)
    gst_rate: Float(default=0.0, min_value=0.0, max_value=100.0)
    stock_quantity: Integer(default=0, min_value=0)
    is_active: Boolean(default=True)
    variations: HasMany(Variation)

    @invariant.post
    def discounted_price_cannot_exceed_base_price(self):
        if self.discounted_price is not None and self.discounted_price > self.base_price:
            raise ValidationError({"discounted_price": ["Discounted price cannot exceed the base price"]})

    @property
    def effective_price(self) -> float:
        return self.discounted_price if self.discounted_price is not None else self.base_price

    def find_variation(self, name: str, value: str) -> Variation | None:
        return next(
            (v for v in (self.variations or []) if v.name == name and v.value == value),
            None,
        )

    def available_quantity(self, variation: Variation | None = None) -> int:
        if variation is not None:
            return min(self.stock_quantity, variation.stock_quantity)
        return self.stock_quantity

    def decrement_stock(self, quantity: int, variation: Variation | None = None) -> None:
        """Take ``quantity`` units out of stock, including the variation's own count."""
        if quantity > self.available_quantity(variation):
            raise InsufficientStock(
                f"Insufficient stock for {self.title}",
                product_id=str(self.id),
                requested=quantity,
                available=self.available_quantity(variation),
            )
        self.stock_quantity -= quantity
        if variation is not None:
            variation.stock_quantity -= quantity
