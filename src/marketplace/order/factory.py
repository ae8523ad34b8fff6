"""Order placement — command, handler, and the OrderFactory entry point.

A checkout is split into one Order per supplier. The whole checkout is a
single unit of work: every product, variation and stock level is checked
before anything is mutated, so either all supplier orders and stock
decrements commit together or none do.
"""

import json
from collections import defaultdict
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace import config
from marketplace.catalogue.category import Category
from marketplace.catalogue.coupon import Coupon
from marketplace.catalogue.product import Product
from marketplace.domain import marketplace
from marketplace.errors import InsufficientStock, ProductNotFound
from marketplace.order.order import Order
from marketplace.order.pricing import PricedLine, PricingEngine
from marketplace.order.status import PaymentMethod, PaymentStatus
from marketplace.shared.actors import Actor, ActorRole

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    customer_email = String(max_length=254)
    lines = Text(required=True)  # JSON: [{"product_id", "quantity", "variation": {"name", "value"}}]
    delivery_address = Text(required=True)  # JSON: address dict
    payment_method = String(max_length=50, default=PaymentMethod.CASH_ON_DELIVERY.value)
    payment_status = String(max_length=50, default=PaymentStatus.PENDING.value)
    transaction_id = String(max_length=255)
    coupon_code = String(max_length=50)
    is_express_delivery = Boolean(default=False)
    notes = Text()


def _parse_lines(raw_lines: list[dict]) -> list[dict]:
    if not raw_lines:
        raise ValidationError({"lines": ["Cart must contain at least one item"]})

    parsed = []
    for index, line in enumerate(raw_lines):
        product_id = line.get("product_id")
        quantity = line.get("quantity")
        if not product_id:
            raise ValidationError({"lines": [f"Line {index + 1} is missing a product"]})
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError({"lines": [f"Line {index + 1} must have a quantity of at least 1"]})
        parsed.append({"product_id": product_id, "quantity": quantity, "variation": line.get("variation")})
    return parsed


def _validate_payment(payment_method: str, payment_status: str) -> None:
    if payment_method not in {m.value for m in PaymentMethod}:
        raise ValidationError({"payment_method": [f"Unsupported payment method: {payment_method}"]})
    if payment_status not in {s.value for s in PaymentStatus}:
        raise ValidationError({"payment_status": [f"Unsupported payment status: {payment_status}"]})


class _CheckoutResolver:
    """Loads each product and category once and checks aggregate stock demand."""

    def __init__(self):
        self.products: dict[str, Product] = {}
        self.categories: dict[str, Category | None] = {}

    def product(self, product_id: str) -> Product:
        if product_id not in self.products:
            try:
                product = current_domain.repository_for(Product).get(product_id)
            except ObjectNotFoundError:
                raise ProductNotFound(f"Product {product_id} does not exist", product_id=product_id) from None
            if not product.is_active:
                raise ProductNotFound(f"Product {product_id} is not available", product_id=product_id)
            self.products[product_id] = product
        return self.products[product_id]

    def category(self, category_id: str | None) -> Category | None:
        if not category_id:
            return None
        if category_id not in self.categories:
            try:
                self.categories[category_id] = current_domain.repository_for(Category).get(category_id)
            except ObjectNotFoundError:
                logger.warning("Product category not found, no handling fee applied", category_id=category_id)
                self.categories[category_id] = None
        return self.categories[category_id]

    def resolve(self, lines: list[dict]) -> list[PricedLine]:
        priced = []
        for line in lines:
            product = self.product(line["product_id"])
            variation = None
            selector = line.get("variation")
            if selector:
                variation = product.find_variation(selector.get("name"), selector.get("value"))
                if variation is None:
                    raise ValidationError(
                        {"variation": [f"{product.title} has no variation {selector.get('name')}={selector.get('value')}"]}
                    )
            priced.append(
                PricedLine(
                    product=product,
                    quantity=line["quantity"],
                    variation=variation,
                    category=self.category(product.category_id),
                )
            )
        return priced

    @staticmethod
    def check_stock(lines: list[PricedLine]) -> None:
        product_demand: dict[str, int] = defaultdict(int)
        variation_demand: dict[tuple, int] = defaultdict(int)
        for line in lines:
            product_demand[str(line.product.id)] += line.quantity
            if line.variation is not None:
                variation_demand[(str(line.product.id), str(line.variation.id))] += line.quantity

        for line in lines:
            product = line.product
            demanded = product_demand[str(product.id)]
            if demanded > product.stock_quantity:
                raise InsufficientStock(
                    f"Insufficient stock for {product.title}",
                    product_id=str(product.id),
                    requested=demanded,
                    available=product.stock_quantity,
                )
            if line.variation is not None:
                demanded = variation_demand[(str(product.id), str(line.variation.id))]
                if demanded > line.variation.stock_quantity:
                    raise InsufficientStock(
                        f"Insufficient stock for {product.title} ({line.variation.name}: {line.variation.value})",
                        product_id=str(product.id),
                        variation=f"{line.variation.name}={line.variation.value}",
                        requested=demanded,
                        available=line.variation.stock_quantity,
                    )


def _coupon_discount(coupon_code: str | None, checkout_subtotal: Decimal, now: datetime) -> tuple[Decimal, Coupon | None]:
    if not coupon_code:
        return Decimal("0"), None

    code = Coupon.normalize(coupon_code)
    matches = current_domain.repository_for(Coupon)._dao.query.filter(code=code).all().items
    if not matches:
        logger.info("Coupon not found, no discount applied", coupon_code=code)
        return Decimal("0"), None

    coupon = matches[0]
    discount = coupon.discount_for(checkout_subtotal, now)
    if discount <= 0:
        logger.info("Coupon not applicable, no discount applied", coupon_code=code, subtotal=str(checkout_subtotal))
        return Decimal("0"), None
    return discount, coupon


@marketplace.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        raw_lines = json.loads(command.lines) if isinstance(command.lines, str) else command.lines
        delivery_address = (
            json.loads(command.delivery_address)
            if isinstance(command.delivery_address, str)
            else command.delivery_address
        )
        payment_method = command.payment_method or PaymentMethod.CASH_ON_DELIVERY.value
        payment_status = command.payment_status or PaymentStatus.PENDING.value
        _validate_payment(payment_method, payment_status)

        # Resolve and validate everything before the first mutation
        resolver = _CheckoutResolver()
        priced_lines = resolver.resolve(_parse_lines(raw_lines))
        resolver.check_stock(priced_lines)

        groups: dict[str, list[PricedLine]] = defaultdict(list)
        for line in priced_lines:
            groups[str(line.product.supplier_id)].append(line)

        engine = PricingEngine()
        now = datetime.now(UTC)
        subtotals = {supplier_id: engine.subtotal(lines) for supplier_id, lines in groups.items()}
        discount, coupon = _coupon_discount(command.coupon_code, sum(subtotals.values(), Decimal("0")), now)
        shares = engine.split_discount(discount, subtotals)

        actor = Actor(id=str(command.customer_id), role=ActorRole.CUSTOMER)
        order_repo = current_domain.repository_for(Order)
        order_ids = []
        for supplier_id, lines in groups.items():
            group = engine.price_group(
                supplier_id,
                lines,
                is_express=bool(command.is_express_delivery),
                discount_amount=shares[supplier_id],
            )
            order = Order.create(
                customer_id=command.customer_id,
                supplier_id=supplier_id,
                items_data=[line.as_item_data() for line in lines],
                pricing=group.as_pricing(),
                delivery_address=delivery_address,
                actor=actor,
                payment_method=payment_method,
                payment_status=payment_status,
                transaction_id=command.transaction_id,
                coupon_code=coupon.code if coupon else None,
                is_express_delivery=bool(command.is_express_delivery),
                estimated_delivery_date=now + timedelta(days=config.ESTIMATED_DELIVERY_DAYS),
                customer_email=command.customer_email,
                notes=command.notes,
            )
            order_repo.add(order)
            order_ids.append(str(order.id))

        for line in priced_lines:
            line.product.decrement_stock(line.quantity, line.variation)
        product_repo = current_domain.repository_for(Product)
        for product in resolver.products.values():
            product_repo.add(product)

        if coupon is not None:
            coupon.record_use()
            current_domain.repository_for(Coupon).add(coupon)

        logger.info(
            "Checkout split into supplier orders",
            customer_id=command.customer_id,
            order_ids=order_ids,
            supplier_count=len(order_ids),
        )
        return order_ids


class OrderFactory:
    """Turns a validated cart into one pending Order per supplier."""

    def place(
        self,
        customer_id: str,
        lines: list[dict],
        delivery_address: dict,
        payment_method: str = PaymentMethod.CASH_ON_DELIVERY.value,
        coupon_code: str | None = None,
        is_express_delivery: bool = False,
        notes: str | None = None,
        payment_status: str = PaymentStatus.PENDING.value,
        transaction_id: str | None = None,
        customer_email: str | None = None,
    ) -> list[Order]:
        order_ids = current_domain.process(
            PlaceOrder(
                customer_id=customer_id,
                customer_email=customer_email,
                lines=json.dumps(lines),
                delivery_address=json.dumps(delivery_address),
                payment_method=payment_method,
                payment_status=payment_status,
                transaction_id=transaction_id,
                coupon_code=coupon_code,
                is_express_delivery=is_express_delivery,
                notes=notes,
            ),
            asynchronous=False,
        )

        repo = current_domain.repository_for(Order)
        return [repo.get(order_id) for order_id in order_ids]
