"""Payment status as reported by the external processor — command and handler."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.order import Order
from marketplace.order.status import PaymentStatus
from marketplace.shared.actors import Actor


@marketplace.command(part_of="Order")
class RecordPaymentStatus:
    order_id = Identifier(required=True)
    payment_status = String(required=True, max_length=50)
    transaction_id = String(max_length=255)


@marketplace.command_handler(part_of=Order)
class PaymentStatusHandler:
    @handle(RecordPaymentStatus)
    def record_payment_status(self, command):
        try:
            payment_status = PaymentStatus(command.payment_status)
        except ValueError:
            raise ValidationError({"payment_status": [f"Unknown payment status: {command.payment_status}"]}) from None

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_payment(
            payment_status,
            Actor.system(),
            note=f"Payment status updated to {payment_status.value} via webhook",
            transaction_id=command.transaction_id,
        )
        repo.add(order)
