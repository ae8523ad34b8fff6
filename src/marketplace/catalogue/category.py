"""Category aggregate.

A category with a parent is a sub-category; only sub-categories carry a
handling fee into order pricing.
"""

from protean.fields import Float, Identifier, String

from marketplace.domain import marketplace


@marketplace.aggregate
class Category:
    """Product category, optionally nested under a parent."""

    name: String(required=True, max_length=100)
    parent_id: Identifier()
    handling_fee: Float(default=0.0, min_value=0.0)

    @property
    def is_subcategory(self) -> bool:
        return bool(self.parent_id)

    @property
    def chargeable_handling_fee(self) -> float:
        return (self.handling_fee or 0.0) if self.is_subcategory else 0.0
