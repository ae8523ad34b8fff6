"""Lifecycle notifications — who hears about which order event, on which channel.

Called from the order event handler once a unit of work has committed, and
by delivery verification for the code itself. Recipients come from the order
(delivery phone, checkout email) or the contact directory.
"""

import structlog

from marketplace import config
from marketplace.notifications.directory import get_directory
from marketplace.notifications.fanout import get_fanout

logger = structlog.get_logger(__name__)


def _context(order, **extra) -> dict:
    context = {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "status": order.status,
        "item_count": len(order.items or []),
        "total_amount": order.pricing.total_amount if order.pricing else 0.0,
        "currency": order.pricing.currency if order.pricing else config.CURRENCY,
    }
    if order.estimated_delivery_date:
        context["estimated_delivery"] = order.estimated_delivery_date.date().isoformat()
    context.update(extra)
    return context


def _customer_phone(order) -> str | None:
    if order.delivery_address and order.delivery_address.phone:
        return order.delivery_address.phone
    contact = get_directory().lookup(order.customer_id)
    return contact.phone if contact else None


def _customer_email(order) -> str | None:
    if order.customer_email:
        return order.customer_email
    contact = get_directory().lookup(order.customer_id)
    return contact.email if contact else None


def _supplier_email(order) -> str | None:
    contact = get_directory().lookup(order.supplier_id)
    return contact.email if contact else None


def _notify_customer(order, template_key: str, context: dict) -> None:
    fanout = get_fanout()
    fanout.notify("sms", _customer_phone(order), template_key, context)
    fanout.notify("email", _customer_email(order), template_key, context)


def order_placed(order) -> None:
    context = _context(order)
    _notify_customer(order, "order_placed", context)
    get_fanout().notify("email", _supplier_email(order), "supplier_new_order", context)


def status_changed(order) -> None:
    _notify_customer(order, "order_status_changed", _context(order))


def return_requested(order) -> None:
    get_fanout().notify(
        "email",
        _supplier_email(order),
        "return_requested",
        _context(order, reason=order.return_reason),
    )


def agent_assigned(order) -> None:
    contact = get_directory().lookup(order.agent_id)
    get_fanout().notify(
        "sms",
        _customer_phone(order),
        "agent_assigned",
        _context(order, agent_name=contact.name if contact else None),
    )


def delivery_challenge(order, otp: str, qr_payload: str) -> None:
    """The code and QR token go to the customer's delivery phone only, never to the agent."""
    phone = _customer_phone(order)
    get_fanout().notify("sms", phone, "delivery_otp", _context(order, otp=otp, ttl_minutes=config.OTP_TTL_MINUTES))
    get_fanout().notify("whatsapp", phone, "delivery_qr", _context(order, qr_payload=qr_payload))


def delivered(order) -> None:
    context = _context(order)
    _notify_customer(order, "order_delivered", context)
    get_fanout().notify("whatsapp", _customer_phone(order), "order_delivered", context)


def delivery_failed(order) -> None:
    context = _context(order)
    get_fanout().notify("sms", _customer_phone(order), "delivery_failed", context)
    get_fanout().notify("email", _supplier_email(order), "delivery_failed", context)
    logger.info("Delivery failure notifications queued", order_id=str(order.id))
