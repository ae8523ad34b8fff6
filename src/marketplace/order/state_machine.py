"""OrderStateMachine — the single authority on order status transitions.

Transitions are role-scoped: a move must be listed for the requesting role
*and* the order's current status. Dispatch and delivery verification move
orders through a narrow system table on an actor's behalf; nothing else
writes ``Order.status``.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean.exceptions import ValidationError

from marketplace import config
from marketplace.errors import Forbidden, InvalidTransition, NotReturnable, ReturnWindowExpired
from marketplace.order.order import Order
from marketplace.order.status import OrderStatus
from marketplace.shared.actors import Actor, ActorRole
from marketplace.shared.clock import ensure_aware

logger = structlog.get_logger(__name__)

_S = OrderStatus

_ROLE_TRANSITIONS = {
    ActorRole.CUSTOMER: {
        _S.PENDING: {_S.CANCELLED},
        _S.DELIVERED: {_S.RETURNED},
    },
    ActorRole.SUPPLIER: {
        _S.PENDING: {_S.PENDING, _S.CANCELLED},
        _S.PROCESSING: {_S.PROCESSING, _S.CANCELLED},
        _S.OUT_FOR_DELIVERY: {_S.CANCELLED, _S.DAMAGED},
    },
    ActorRole.ADMIN: {
        _S.PENDING: {_S.PROCESSING, _S.CANCELLED},
        _S.PROCESSING: {_S.OUT_FOR_DELIVERY, _S.CANCELLED},
        _S.OUT_FOR_DELIVERY: {_S.DELIVERED, _S.CANCELLED, _S.DAMAGED},
        _S.DELIVERED: {_S.RETURNED},
        _S.CANCELLED: {_S.PENDING},
        _S.RETURNED: {_S.PROCESSING},
    },
    # Location pings only
    ActorRole.DELIVERY_ASSOCIATE: {
        _S.OUT_FOR_DELIVERY: {_S.OUT_FOR_DELIVERY},
    },
}

# Moves made by dispatch and delivery verification on an actor's behalf
_SYSTEM_TRANSITIONS = {
    _S.PENDING: {_S.PACKAGING},
    _S.PROCESSING: {_S.PACKAGING, _S.OUT_FOR_DELIVERY, _S.FAILED},
    _S.PACKAGING: {_S.OUT_FOR_DELIVERY, _S.FAILED},
    _S.OUT_FOR_DELIVERY: {_S.DELIVERED, _S.FAILED},
}


def parse_status(value) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError({"status": [f"Unknown order status: {value}"]}) from None


def assert_can_act_on(order: Order, actor: Actor) -> None:
    """Customers and suppliers act on their own orders, agents on orders assigned to them."""
    if actor.role in (ActorRole.ADMIN, ActorRole.SYSTEM):
        return
    owner = {
        ActorRole.CUSTOMER: str(order.customer_id),
        ActorRole.SUPPLIER: str(order.supplier_id),
        ActorRole.DELIVERY_ASSOCIATE: order.agent_id,
    }.get(actor.role)
    if owner is None or owner != actor.id:
        raise Forbidden(
            f"{actor.role.value} {actor.id} may not act on order {order.order_number}",
            order_id=str(order.id),
        )


class OrderStateMachine:
    def __init__(self, return_window: timedelta = timedelta(days=config.RETURN_WINDOW_DAYS)):
        self.return_window = return_window

    @staticmethod
    def allowed_targets(role: ActorRole, current: OrderStatus) -> set[OrderStatus]:
        return set(_ROLE_TRANSITIONS.get(role, {}).get(current, set()))

    def apply(
        self,
        order: Order,
        target,
        actor: Actor,
        note: str | None = None,
        now: datetime | None = None,
    ) -> Order:
        """Validate and record a transition requested by ``actor``.

        Raises ``InvalidTransition`` when the (role, current, target) triple is
        not in the table; return requests are further checked against the
        return rules. The order is left untouched on any failure.
        """
        target = parse_status(target)
        current = OrderStatus(order.status)
        now = now or datetime.now(UTC)

        if target not in self.allowed_targets(actor.role, current):
            raise InvalidTransition(
                f"{actor.role.value} cannot move an order from {current.value} to {target.value}",
                order_id=str(order.id),
                from_status=current.value,
                to_status=target.value,
            )

        if target == OrderStatus.RETURNED:
            self._check_return(order, actor, note, now)

        order.transition_to(target, actor, note, now)

        if target == OrderStatus.DAMAGED:
            logger.warning(
                "Order marked damaged, manual follow-up required",
                order_id=str(order.id),
                actor_id=actor.id,
                actor_role=actor.role.value,
            )
        return order

    def apply_on_behalf(
        self,
        order: Order,
        target: OrderStatus,
        actor: Actor,
        note: str | None = None,
        now: datetime | None = None,
    ) -> Order:
        """Record a transition the system performs for ``actor`` (dispatch, verification)."""
        current = OrderStatus(order.status)
        if target not in _SYSTEM_TRANSITIONS.get(current, set()):
            raise InvalidTransition(
                f"Order cannot move from {current.value} to {target.value}",
                order_id=str(order.id),
                from_status=current.value,
                to_status=target.value,
            )
        order.transition_to(target, actor, note, now)
        return order

    def _check_return(self, order: Order, actor: Actor, note: str | None, now: datetime) -> None:
        if actor.role != ActorRole.CUSTOMER:
            raise NotReturnable("Only the customer can return an order", order_id=str(order.id))
        if OrderStatus(order.status) != OrderStatus.DELIVERED:
            raise NotReturnable("Only delivered orders can be returned", order_id=str(order.id))
        delivered_at = ensure_aware(order.delivered_at)
        if delivered_at and now - delivered_at > self.return_window:
            raise ReturnWindowExpired(
                f"Orders can only be returned within {self.return_window.days} days of delivery",
                order_id=str(order.id),
                delivered_at=delivered_at.isoformat(),
            )
        if not note or not note.strip():
            raise ValidationError({"note": ["A reason is required to return an order"]})
