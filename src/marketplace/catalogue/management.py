"""Catalogue management — commands and handlers for categories, products and coupons."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from marketplace.catalogue.category import Category
from marketplace.catalogue.coupon import Coupon
from marketplace.catalogue.product import Product, Variation
from marketplace.domain import marketplace


@marketplace.command(part_of="Category")
class CreateCategory:
    name = String(required=True, max_length=100)
    parent_id = Identifier()
    handling_fee = Float(default=0.0)


@marketplace.command(part_of="Product")
class AddProduct:
    supplier_id = Identifier(required=True)
    title = String(required=True, max_length=255)
    category_id = Identifier()
    base_price = Float(required=True)
    discounted_price = Float()
    gst_rate = Float(default=0.0)
    stock_quantity = Integer(default=0)
    variations = Text()  # JSON: list of variation dicts


@marketplace.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=50)
    discount_type = String(required=True, max_length=20)
    value = Float(required=True)
    min_purchase = Float(default=0.0)
    max_discount = Float()
    starts_at = DateTime()
    ends_at = DateTime()
    usage_limit = Integer()
    is_active = Boolean(default=True)


@marketplace.command_handler(part_of=Category)
class CategoryCommandHandler:
    @handle(CreateCategory)
    def create_category(self, command):
        repo = current_domain.repository_for(Category)
        if command.parent_id:
            # Raises ObjectNotFoundError for an unknown parent
            repo.get(command.parent_id)

        category = Category(
            name=command.name,
            parent_id=command.parent_id,
            handling_fee=command.handling_fee or 0.0,
        )
        repo.add(category)
        return str(category.id)


@marketplace.command_handler(part_of=Product)
class ProductCommandHandler:
    @handle(AddProduct)
    def add_product(self, command):
        variations_data = json.loads(command.variations) if command.variations else []

        product = Product(
            supplier_id=command.supplier_id,
            title=command.title,
            category_id=command.category_id,
            base_price=command.base_price,
            discounted_price=command.discounted_price,
            gst_rate=command.gst_rate or 0.0,
            stock_quantity=command.stock_quantity or 0,
        )
        for variation_data in variations_data:
            product.add_variations(Variation(**variation_data))

        current_domain.repository_for(Product).add(product)
        return str(product.id)


@marketplace.command_handler(part_of=Coupon)
class CouponCommandHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        code = Coupon.normalize(command.code)
        if repo._dao.query.filter(code=code).all().items:
            raise ValidationError({"code": [f"Coupon {code} already exists"]})

        coupon = Coupon(
            code=code,
            discount_type=command.discount_type,
            value=command.value,
            min_purchase=command.min_purchase or 0.0,
            max_discount=command.max_discount,
            starts_at=command.starts_at,
            ends_at=command.ends_at,
            usage_limit=command.usage_limit,
            is_active=command.is_active if command.is_active is not None else True,
        )
        repo.add(coupon)
        return str(coupon.id)
