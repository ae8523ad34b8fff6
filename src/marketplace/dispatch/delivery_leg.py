"""DeliveryLeg — the delivery sub-status state machine.

The sub-status tracks the assigned agent's progress and has its own
vocabulary. It touches the order's main status only through two promotion
rules: ``packaging → out_for_delivery`` promotes the order to
``out_for_delivery``, and ``failed`` drives the order to ``failed``.
``delivered`` is reached only through delivery verification.
"""

from protean.exceptions import ValidationError

from marketplace.errors import InvalidDeliveryTransition
from marketplace.order.order import Order
from marketplace.order.status import DeliverySubStatus, OrderStatus

_D = DeliverySubStatus

AGENT_TRANSITIONS = {
    _D.ASSIGNED: {_D.PICKED_UP, _D.PACKAGING},
    _D.PICKED_UP: {_D.OUT_FOR_DELIVERY},
    _D.PACKAGING: {_D.OUT_FOR_DELIVERY},
    _D.OUT_FOR_DELIVERY: {_D.FAILED},
}

# Sub-status moves that also move the order's main status
PROMOTIONS = {
    (_D.PACKAGING, _D.OUT_FOR_DELIVERY): OrderStatus.OUT_FOR_DELIVERY,
    (_D.OUT_FOR_DELIVERY, _D.FAILED): OrderStatus.FAILED,
}


def parse_sub_status(value) -> DeliverySubStatus:
    if isinstance(value, DeliverySubStatus):
        return value
    try:
        return DeliverySubStatus(value)
    except ValueError:
        raise ValidationError({"status": [f"Unknown delivery status: {value}"]}) from None


class DeliveryLeg:
    @staticmethod
    def check(order: Order, target: DeliverySubStatus) -> OrderStatus | None:
        """Validate an agent-driven move; return the main status it promotes to, if any."""
        current = DeliverySubStatus(order.delivery.sub_status)
        if target not in AGENT_TRANSITIONS.get(current, set()):
            raise InvalidDeliveryTransition(
                f"Delivery cannot move from {current.value} to {target.value}",
                order_id=str(order.id),
                from_status=current.value,
                to_status=target.value,
            )
        return PROMOTIONS.get((current, target))
