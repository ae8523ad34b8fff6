"""Tests for PricingEngine — per-supplier money breakdown and discount apportioning."""

from decimal import Decimal

import pytest
from marketplace.catalogue.category import Category
from marketplace.catalogue.product import Product, Variation
from marketplace.order.order import OrderPricing
from marketplace.order.pricing import PricedLine, PricingEngine
from protean.exceptions import ValidationError


def _product(base_price, discounted_price=None, gst_rate=0.0, supplier_id="sup-a"):
    return Product(
        supplier_id=supplier_id,
        title="Item",
        base_price=base_price,
        discounted_price=discounted_price,
        gst_rate=gst_rate,
        stock_quantity=100,
    )


@pytest.fixture()
def subcategory():
    return Category(name="Phone Cases", parent_id="cat-electronics", handling_fee=15.0)


@pytest.fixture()
def root_category():
    return Category(name="Furniture", handling_fee=15.0)


class TestPricedLine:
    def test_line_total_uses_discounted_price(self):
        line = PricedLine(product=_product(200.0, discounted_price=150.0), quantity=2)
        assert line.unit_price == Decimal("200.0")
        assert line.line_total == Decimal("300.0")

    def test_variation_surcharge_added_to_both_prices(self):
        variation = Variation(name="Size", value="XL", additional_price=25.0, stock_quantity=5)
        line = PricedLine(product=_product(200.0, discounted_price=150.0), quantity=1, variation=variation)

        assert line.unit_price == Decimal("225.0")
        assert line.discounted_price == Decimal("175.0")
        assert line.as_item_data()["variation_value"] == "XL"

    def test_gst_computed_on_line_total(self):
        line = PricedLine(product=_product(100.0, gst_rate=5.0), quantity=3)
        assert line.gst == Decimal("15")

    def test_handling_fee_only_for_subcategories(self, subcategory, root_category):
        product = _product(100.0)
        assert PricedLine(product=product, quantity=1, category=subcategory).handling_fee == Decimal("15.0")
        assert PricedLine(product=product, quantity=1, category=root_category).handling_fee == Decimal("0")
        assert PricedLine(product=product, quantity=1).handling_fee == Decimal("0")


class TestPriceGroup:
    def test_breakdown_below_free_delivery_threshold(self, subcategory):
        lines = [PricedLine(product=_product(100.0, gst_rate=5.0), quantity=3, category=subcategory)]
        group = PricingEngine().price_group("sup-a", lines)

        assert group.subtotal == Decimal("300.00")
        assert group.gst == Decimal("15.00")
        assert group.delivery_charge == Decimal("20.00")
        assert group.platform_fee == Decimal("2.00")
        assert group.handling_fee == Decimal("15.00")
        assert group.total_amount == Decimal("352.00")

    def test_free_delivery_at_threshold(self, root_category):
        lines = [PricedLine(product=_product(600.0, supplier_id="sup-b"), quantity=1, category=root_category)]
        group = PricingEngine().price_group("sup-b", lines)

        assert group.delivery_charge == Decimal("0.00")
        assert group.handling_fee == Decimal("0.00")
        assert group.total_amount == Decimal("602.00")

    def test_express_delivery_charge(self):
        lines = [PricedLine(product=_product(100.0), quantity=1)]
        group = PricingEngine().price_group("sup-a", lines, is_express=True)
        assert group.delivery_charge == Decimal("50.00")

    def test_discount_capped_at_subtotal(self):
        lines = [PricedLine(product=_product(40.0), quantity=1)]
        group = PricingEngine().price_group("sup-a", lines, discount_amount=Decimal("100"))

        assert group.discount_amount == Decimal("40.00")
        assert group.total_amount == Decimal("22.00")

    def test_handling_fee_charged_per_line(self, subcategory):
        lines = [
            PricedLine(product=_product(10.0), quantity=4, category=subcategory),
            PricedLine(product=_product(20.0), quantity=1, category=subcategory),
        ]
        assert PricingEngine().price_group("sup-a", lines).handling_fee == Decimal("30.00")

    def test_custom_fee_schedule(self):
        engine = PricingEngine(free_delivery_threshold=1000, standard_delivery_charge=40, platform_fee=0)
        group = engine.price_group("sup-a", [PricedLine(product=_product(600.0), quantity=1)])

        assert group.delivery_charge == Decimal("40.00")
        assert group.platform_fee == Decimal("0.00")

    def test_rounding_half_up_to_minor_unit(self):
        lines = [PricedLine(product=_product(10.05, gst_rate=5.0), quantity=1)]
        group = PricingEngine().price_group("sup-a", lines)
        # 10.05 * 5% = 0.5025
        assert group.gst == Decimal("0.50")

    def test_as_pricing_satisfies_order_pricing_invariant(self, subcategory):
        lines = [PricedLine(product=_product(99.99, gst_rate=18.0), quantity=3, category=subcategory)]
        group = PricingEngine().price_group("sup-a", lines, discount_amount=Decimal("12.34"))

        pricing = OrderPricing(**group.as_pricing())
        assert pricing.total_amount == float(group.total_amount)
        assert pricing.currency == "INR"


class TestSplitDiscount:
    def test_pro_rata_by_subtotal(self):
        shares = PricingEngine.split_discount(Decimal("90"), {"sup-a": Decimal("300"), "sup-b": Decimal("600")})
        assert shares == {"sup-a": Decimal("30.00"), "sup-b": Decimal("60.00")}

    def test_remainder_goes_to_largest_group(self):
        shares = PricingEngine.split_discount(
            Decimal("10"),
            {"sup-a": Decimal("100"), "sup-b": Decimal("100"), "sup-c": Decimal("200")},
        )
        assert sum(shares.values()) == Decimal("10.00")
        assert shares["sup-a"] == Decimal("2.50")
        assert shares["sup-c"] == Decimal("5.00")

    def test_shares_always_sum_to_discount(self):
        shares = PricingEngine.split_discount(
            Decimal("10"),
            {"sup-a": Decimal("1"), "sup-b": Decimal("1"), "sup-c": Decimal("1")},
        )
        assert sum(shares.values()) == Decimal("10.00")
        assert sorted(shares.values()) == [Decimal("3.33"), Decimal("3.33"), Decimal("3.34")]

    def test_no_discount(self):
        assert PricingEngine.split_discount(Decimal("0"), {"sup-a": Decimal("50")}) == {"sup-a": Decimal("0")}


class TestOrderPricingInvariant:
    def test_mismatched_total_rejected(self):
        with pytest.raises(ValidationError) as exc:
            OrderPricing(subtotal=100.0, platform_fee=2.0, delivery_charge=20.0, total_amount=100.0)
        assert "total_amount" in exc.value.messages
