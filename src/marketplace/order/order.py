"""Order aggregate (CQRS) — one supplier's share of a customer checkout.

An order never spans suppliers. It carries two state machines:

Order status (role-scoped, validated by ``OrderStateMachine``):
    pending → processing → out_for_delivery → delivered → returned
    pending/processing → packaging → out_for_delivery   (dispatch, on the agent's behalf)
    out_for_delivery → {damaged, failed}; most states → cancelled

Delivery sub-status (validated by ``DeliveryLeg``):
    assigned → {picked_up, packaging} → out_for_delivery → {delivered, failed}

The aggregate offers the primitive mutations; the rules deciding whether a
mutation is allowed live in the state machine and dispatch modules, which are
the only callers of ``transition_to`` and ``change_delivery_sub_status``.
"""

import secrets
from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from marketplace import config
from marketplace.domain import marketplace
from marketplace.errors import AlreadyAssigned
from marketplace.order.events import (
    DeliveryAgentAssigned,
    OrderPlaced,
    OrderStatusChanged,
    PaymentStatusUpdated,
)
from marketplace.order.status import (
    DeliverySubStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from marketplace.shared.actors import Actor
from marketplace.shared.money import round_money

ORDER_NUMBER_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
ORDER_NUMBER_LENGTH = 8


def generate_order_number() -> str:
    return "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(ORDER_NUMBER_LENGTH))


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class DeliveryAddress:
    """Where the order is delivered, captured at checkout time."""

    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=100, default="India")
    phone = String(required=True, max_length=20)
    latitude = Float(min_value=-90.0, max_value=90.0)
    longitude = Float(min_value=-180.0, max_value=180.0)

    @invariant.post
    def coordinates_come_in_pairs(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValidationError({"coordinates": ["Both latitude and longitude are required"]})


@marketplace.value_object(part_of="Order")
class OrderPricing:
    """Money breakdown of an order, locked at checkout.

    ``total_amount = subtotal - discount_amount + gst + delivery_charge
    + platform_fee + handling_fee``, every term rounded to the minor unit.
    """

    subtotal = Float(default=0.0, min_value=0.0)
    discount_amount = Float(default=0.0, min_value=0.0)
    gst = Float(default=0.0, min_value=0.0)
    delivery_charge = Float(default=0.0, min_value=0.0)
    platform_fee = Float(default=0.0, min_value=0.0)
    handling_fee = Float(default=0.0, min_value=0.0)
    total_amount = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3, default=config.CURRENCY)

    @invariant.post
    def total_must_match_components(self):
        expected = (
            round_money(self.subtotal)
            - round_money(self.discount_amount)
            + round_money(self.gst)
            + round_money(self.delivery_charge)
            + round_money(self.platform_fee)
            + round_money(self.handling_fee)
        )
        if round_money(self.total_amount) != expected:
            raise ValidationError({"total_amount": [f"Total {self.total_amount} does not match its components ({expected})"]})


@marketplace.value_object(part_of="Order")
class DeliveryAssignment:
    """The delivery leg: who carries the order and how far they have got."""

    agent_id = String(required=True, max_length=100)
    assigned_at = DateTime(required=True)
    sub_status = String(required=True, choices=DeliverySubStatus)
    current_latitude = Float(min_value=-90.0, max_value=90.0)
    current_longitude = Float(min_value=-180.0, max_value=180.0)
    location_updated_at = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Order")
class OrderItem:
    """A priced line, frozen at checkout."""

    product_id = Identifier(required=True)
    title = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    discounted_price = Float(required=True, min_value=0.0)
    variation_name = String(max_length=50)
    variation_value = String(max_length=100)
    line_total = Float(required=True, min_value=0.0)


@marketplace.entity(part_of="Order")
class StatusHistoryEntry:
    """One audit-trail record. Entries are appended, never edited."""

    sequence = Integer(required=True, min_value=1)
    status = String(required=True, choices=OrderStatus)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, max_length=50)
    note = String(max_length=1000)
    occurred_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Order:
    order_number = String(required=True, max_length=20)
    customer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    customer_email = String(max_length=254)
    items = HasMany(OrderItem)
    pricing = ValueObject(OrderPricing)
    coupon_code = String(max_length=50)
    payment_method = String(
        choices=PaymentMethod,
        default=PaymentMethod.CASH_ON_DELIVERY.value,
    )
    payment_status = String(
        choices=PaymentStatus,
        default=PaymentStatus.PENDING.value,
    )
    transaction_id = String(max_length=255)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    status_history = HasMany(StatusHistoryEntry)
    delivery_address = ValueObject(DeliveryAddress)
    is_express_delivery = Boolean(default=False)
    delivery = ValueObject(DeliveryAssignment)
    otp_hash = String(max_length=128)
    otp_salt = String(max_length=64)
    otp_expires_at = DateTime()
    otp_attempts = Integer(default=0)
    otp_locked = Boolean(default=False)
    qr_nonce = String(max_length=64)
    invoice_ref = String(max_length=500)
    return_reason = String(max_length=1000)
    delivered_at = DateTime()
    estimated_delivery_date = DateTime()
    notes = Text()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        customer_id: str,
        supplier_id: str,
        items_data: list[dict],
        pricing: dict,
        delivery_address: dict,
        actor: Actor,
        payment_method: str = PaymentMethod.CASH_ON_DELIVERY.value,
        payment_status: str = PaymentStatus.PENDING.value,
        transaction_id: str | None = None,
        coupon_code: str | None = None,
        is_express_delivery: bool = False,
        estimated_delivery_date: datetime | None = None,
        customer_email: str | None = None,
        notes: str | None = None,
    ):
        """Create a pending order for one supplier's group of cart lines."""
        now = datetime.now(UTC)
        order = cls(
            order_number=generate_order_number(),
            customer_id=customer_id,
            supplier_id=supplier_id,
            customer_email=customer_email,
            pricing=OrderPricing(**pricing),
            coupon_code=coupon_code,
            payment_method=payment_method,
            payment_status=payment_status,
            transaction_id=transaction_id,
            status=OrderStatus.PENDING.value,
            delivery_address=DeliveryAddress(**delivery_address),
            is_express_delivery=is_express_delivery,
            estimated_delivery_date=estimated_delivery_date,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        for item_data in items_data:
            order.add_items(OrderItem(**item_data))
        order.append_history(OrderStatus.PENDING, actor, "Order placed", now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=customer_id,
                supplier_id=supplier_id,
                item_count=len(items_data),
                total_amount=order.pricing.total_amount,
                payment_method=payment_method,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------
    @property
    def history(self) -> list[StatusHistoryEntry]:
        """Status history in the order the entries were appended."""
        return sorted(self.status_history or [], key=lambda entry: entry.sequence)

    def append_history(self, status: OrderStatus, actor: Actor, note: str | None, now: datetime) -> None:
        self.add_status_history(
            StatusHistoryEntry(
                sequence=len(self.status_history or []) + 1,
                status=status.value,
                actor_id=actor.id,
                actor_role=actor.role.value,
                note=note,
                occurred_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------
    def transition_to(self, target: OrderStatus, actor: Actor, note: str | None = None, now: datetime | None = None) -> None:
        """Record a status change that has already been validated."""
        now = now or datetime.now(UTC)
        from_status = self.status

        self.status = target.value
        if target == OrderStatus.DELIVERED:
            self.delivered_at = now
        if target == OrderStatus.RETURNED and note:
            self.return_reason = note
        self.append_history(target, actor, note, now)
        self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                from_status=from_status,
                to_status=target.value,
                actor_id=actor.id,
                actor_role=actor.role.value,
                note=note,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Delivery leg
    # -------------------------------------------------------------------
    @property
    def agent_id(self) -> str | None:
        return self.delivery.agent_id if self.delivery else None

    def is_assigned_to(self, agent_id: str) -> bool:
        return self.agent_id is not None and self.agent_id == agent_id

    def assign_delivery(self, agent_id: str, sub_status: DeliverySubStatus, self_claimed: bool = False) -> None:
        """Fill the unassigned delivery slot. A taken slot is never overwritten."""
        if self.agent_id:
            raise AlreadyAssigned(
                f"Order {self.order_number} is already assigned",
                order_id=str(self.id),
                agent_id=self.agent_id,
            )

        now = datetime.now(UTC)
        self.delivery = DeliveryAssignment(agent_id=agent_id, assigned_at=now, sub_status=sub_status.value)
        self.updated_at = now
        self.raise_(
            DeliveryAgentAssigned(
                order_id=str(self.id),
                agent_id=agent_id,
                sub_status=sub_status.value,
                self_claimed=self_claimed,
                assigned_at=now,
            )
        )

    def change_delivery_sub_status(self, target: DeliverySubStatus) -> None:
        now = datetime.now(UTC)
        current = self.delivery
        self.delivery = DeliveryAssignment(
            agent_id=current.agent_id,
            assigned_at=current.assigned_at,
            sub_status=target.value,
            current_latitude=current.current_latitude,
            current_longitude=current.current_longitude,
            location_updated_at=current.location_updated_at,
        )
        self.updated_at = now

    def record_delivery_location(self, latitude: float, longitude: float, now: datetime | None = None) -> None:
        now = now or datetime.now(UTC)
        current = self.delivery
        self.delivery = DeliveryAssignment(
            agent_id=current.agent_id,
            assigned_at=current.assigned_at,
            sub_status=current.sub_status,
            current_latitude=latitude,
            current_longitude=longitude,
            location_updated_at=now,
        )
        self.updated_at = now

    # -------------------------------------------------------------------
    # Delivery verification challenge
    # -------------------------------------------------------------------
    @property
    def has_outstanding_challenge(self) -> bool:
        return bool(self.otp_hash)

    def issue_challenge(self, otp_hash: str, otp_salt: str, qr_nonce: str, expires_at: datetime) -> None:
        """Store a fresh challenge. Any earlier code stops matching immediately."""
        now = datetime.now(UTC)
        self.otp_hash = otp_hash
        self.otp_salt = otp_salt
        self.qr_nonce = qr_nonce
        self.otp_expires_at = expires_at
        self.otp_attempts = 0
        self.otp_locked = False
        self.updated_at = now

    def clear_challenge(self) -> None:
        self.otp_hash = None
        self.otp_salt = None
        self.otp_expires_at = None
        self.qr_nonce = None
        self.otp_attempts = 0

    def register_failed_attempt(self, max_attempts: int) -> bool:
        """Count a wrong code. Returns True when the challenge is now locked out."""
        attempts = (self.otp_attempts or 0) + 1
        locked = attempts >= max_attempts
        if locked:
            self.clear_challenge()
            self.otp_locked = True
        self.otp_attempts = attempts
        self.updated_at = datetime.now(UTC)
        return locked

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    @property
    def is_cash_on_delivery(self) -> bool:
        return self.payment_method == PaymentMethod.CASH_ON_DELIVERY.value

    def record_payment(
        self,
        payment_status: PaymentStatus,
        actor: Actor,
        note: str,
        transaction_id: str | None = None,
    ) -> None:
        """Set the payment status and log it against the current order status."""
        now = datetime.now(UTC)
        self.payment_status = payment_status.value
        if transaction_id:
            self.transaction_id = transaction_id
        self.append_history(OrderStatus(self.status), actor, note, now)
        self.updated_at = now
        self.raise_(
            PaymentStatusUpdated(
                order_id=str(self.id),
                payment_status=payment_status.value,
                transaction_id=self.transaction_id,
                updated_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Invoice
    # -------------------------------------------------------------------
    def attach_invoice(self, invoice_ref: str) -> None:
        if self.invoice_ref:
            raise ValidationError({"invoice_ref": ["An invoice is already attached to this order"]})

        self.invoice_ref = invoice_ref
        self.updated_at = datetime.now(UTC)
