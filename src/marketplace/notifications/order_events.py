"""Order event handler — notifications and invoicing react to Order events.

Events are processed synchronously once the order's unit of work has
committed, so the handlers reload the order and describe its committed
state. The delivery code is never on an event; verification sends it
directly.
"""

import structlog
from protean import handle
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.invoicing.trigger import InvoiceTrigger
from marketplace.notifications import lifecycle
from marketplace.order.events import DeliveryAgentAssigned, OrderPlaced, OrderStatusChanged, PaymentStatusUpdated
from marketplace.order.order import Order
from marketplace.order.status import OrderStatus, PaymentStatus

logger = structlog.get_logger(__name__)


def _order(order_id) -> Order:
    return current_domain.repository_for(Order).get(str(order_id))


@marketplace.event_handler(part_of=Order)
class OrderEventsHandler:
    """Tells customers and suppliers about order changes and invoices delivered or prepaid orders."""

    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        lifecycle.order_placed(_order(event.order_id))

    @handle(OrderStatusChanged)
    def on_status_changed(self, event: OrderStatusChanged) -> None:
        # Location pings and same-status notes
        if event.from_status == event.to_status:
            return

        if event.to_status == OrderStatus.DELIVERED.value:
            InvoiceTrigger().fire(str(event.order_id))
            lifecycle.delivered(_order(event.order_id))
        elif event.to_status == OrderStatus.FAILED.value:
            lifecycle.delivery_failed(_order(event.order_id))
        elif event.to_status == OrderStatus.RETURNED.value:
            order = _order(event.order_id)
            lifecycle.status_changed(order)
            lifecycle.return_requested(order)
        else:
            lifecycle.status_changed(_order(event.order_id))

    @handle(DeliveryAgentAssigned)
    def on_agent_assigned(self, event: DeliveryAgentAssigned) -> None:
        lifecycle.agent_assigned(_order(event.order_id))

    @handle(PaymentStatusUpdated)
    def on_payment_status_updated(self, event: PaymentStatusUpdated) -> None:
        if event.payment_status != PaymentStatus.PAID.value:
            return

        order = _order(event.order_id)
        if order.is_cash_on_delivery:
            logger.debug("Cash on delivery order is invoiced on delivery", order_id=str(order.id))
            return
        InvoiceTrigger().fire(str(order.id))
