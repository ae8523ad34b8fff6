"""Order domain events — immutable facts about order lifecycle changes.

Events never carry verification secrets. Marketplace reactions to them
live in ``marketplace.notifications.order_events``.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """An order was created for one supplier's share of a checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    item_count = Integer(required=True)
    total_amount = Float(required=True)
    payment_method = String(required=True)
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderStatusChanged:
    """The order moved from one status to another (or logged a same-status ping)."""

    __version__ = 1

    order_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    actor_id = String(required=True)
    actor_role = String(required=True)
    note = String()
    changed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class DeliveryAgentAssigned:
    """A delivery agent took charge of the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    agent_id = Identifier(required=True)
    sub_status = String(required=True)
    self_claimed = Boolean(default=False)
    assigned_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class PaymentStatusUpdated:
    """The order's payment status changed."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_status = String(required=True)
    transaction_id = String()
    updated_at = DateTime(required=True)
