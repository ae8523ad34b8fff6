"""InvoiceTrigger — renders an order's invoice at most once.

An order is eligible once it is delivered, or once a prepaid order is paid.
Fires for the same order are serialized in-process, and the reference is
stored through ``AttachInvoice``, which refuses to overwrite an existing
one, so a renderer is never asked twice for an order that already has an
invoice. Renderer failures are logged and leave the order untouched.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import ConcurrentModification
from marketplace.invoicing import get_invoice_renderer
from marketplace.notifications.directory import get_directory
from marketplace.order.order import Order
from marketplace.order.status import OrderStatus, PaymentStatus
from marketplace.shared.locks import KeyedLock
from marketplace.shared.processing import process

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class AttachInvoice:
    order_id = Identifier(required=True)
    invoice_ref = String(required=True, max_length=500)


@marketplace.command_handler(part_of=Order)
class AttachInvoiceHandler:
    @handle(AttachInvoice)
    def attach_invoice(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.attach_invoice(command.invoice_ref)
        repo.add(order)


def _contact(party_id) -> dict | None:
    contact = get_directory().lookup(party_id)
    return contact.as_dict() if contact else None


class InvoiceTrigger:
    _locks = KeyedLock()

    @staticmethod
    def is_eligible(order: Order) -> bool:
        if order.status == OrderStatus.DELIVERED.value:
            return True
        return not order.is_cash_on_delivery and order.payment_status == PaymentStatus.PAID.value

    def fire(self, order_id: str) -> str | None:
        """Render and attach the invoice if the order is eligible.

        Returns the stored reference (existing or new), or None when the
        order is not eligible or rendering failed. Never raises for renderer
        failures.
        """
        order_id = str(order_id)
        with self._locks.hold(order_id):
            order = current_domain.repository_for(Order).get(order_id)
            if order.invoice_ref:
                return order.invoice_ref
            if not self.is_eligible(order):
                logger.debug(
                    "Order not eligible for invoicing",
                    order_id=order_id,
                    status=order.status,
                    payment_status=order.payment_status,
                )
                return None

            renderer = get_invoice_renderer()
            try:
                result = renderer.render(order, _contact(order.customer_id), _contact(order.supplier_id))
            except Exception as exc:
                logger.error("Invoice renderer raised", order_id=order_id, error=str(exc), exc_info=True)
                return None

            if not result.success or not result.invoice_ref:
                logger.error("Invoice render failed", order_id=order_id, reason=result.failure_reason)
                return None

            try:
                process(AttachInvoice(order_id=order_id, invoice_ref=result.invoice_ref))
            except (ConcurrentModification, ValidationError):
                # Another process attached one first
                existing = current_domain.repository_for(Order).get(order_id).invoice_ref
                logger.error(
                    "Invoice rendered but could not be attached",
                    order_id=order_id,
                    invoice_ref=result.invoice_ref,
                    existing_ref=existing,
                )
                return existing

            logger.info("Invoice attached", order_id=order_id, invoice_ref=result.invoice_ref)
            return result.invoice_ref
