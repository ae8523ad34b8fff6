"""OrderLifecycleService — application entry point for reading and moving orders.

Each call processes one command in its own unit of work. Side effects that
must not affect the outcome (notifications, invoicing) are handled by
``marketplace.notifications.order_events`` after commit.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.errors import NotFound
from marketplace.order.order import Order
from marketplace.order.payment import RecordPaymentStatus
from marketplace.order.state_machine import assert_can_act_on, parse_status
from marketplace.order.status_update import UpdateOrderStatus
from marketplace.shared.actors import Actor, ActorRole
from marketplace.shared.processing import process

logger = structlog.get_logger(__name__)


class OrderLifecycleService:
    @staticmethod
    def get(order_id: str) -> Order:
        try:
            return current_domain.repository_for(Order).get(order_id)
        except ObjectNotFoundError:
            raise NotFound(f"Order {order_id} does not exist", order_id=str(order_id)) from None

    def view(self, order_id: str, actor: Actor) -> Order:
        order = self.get(order_id)
        assert_can_act_on(order, actor)
        return order

    def orders_for(self, actor: Actor) -> list[Order]:
        """Orders visible to ``actor``: their own as customer or supplier, all for admins."""
        dao = current_domain.repository_for(Order)._dao
        if actor.role == ActorRole.CUSTOMER:
            return dao.query.filter(customer_id=actor.id).limit(None).all().items
        if actor.role == ActorRole.SUPPLIER:
            return dao.query.filter(supplier_id=actor.id).limit(None).all().items
        if actor.role in (ActorRole.ADMIN, ActorRole.SYSTEM):
            return dao.query.limit(None).all().items
        return [order for order in dao.query.limit(None).all().items if order.is_assigned_to(actor.id)]

    def update_status(self, order_id: str, target, actor: Actor, note: str | None = None) -> Order:
        """Move the order for ``actor``.

        Notifications and invoicing run in the order event handler before this
        returns, so the order handed back already carries any invoice reference.
        """
        target = parse_status(target)
        previous = process(
            UpdateOrderStatus(
                order_id=order_id,
                status=target.value,
                actor_id=actor.id,
                actor_role=actor.role.value,
                note=note,
            )
        )
        order = self.get(order_id)
        logger.info(
            "Order status changed",
            order_id=str(order.id),
            from_status=previous,
            to_status=order.status,
            actor_id=actor.id,
            actor_role=actor.role.value,
        )
        return order

    def record_payment(self, order_id: str, payment_status: str, transaction_id: str | None = None) -> Order:
        """Apply a payment status reported by the payment processor."""
        process(
            RecordPaymentStatus(
                order_id=order_id,
                payment_status=payment_status,
                transaction_id=transaction_id,
            )
        )
        return self.get(order_id)
